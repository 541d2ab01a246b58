"""Decoded values handed to callers of the connection."""

from dataclasses import dataclass, field
from typing import Any, Generic, List, Optional, TypeVar

import base58
from solders.pubkey import Pubkey

from solana_connection.schemas import (
    AccountInfoResult,
    ConfirmedBlockResult,
    ConfirmedBlockTransaction,
    ProgramAccountInfoResult,
)
from solana_connection.utils.errors import SchemaError

T = TypeVar("T")


@dataclass(frozen=True)
class Context:
    """Slot at which a query was evaluated."""

    slot: int


@dataclass(frozen=True)
class RpcResponseAndContext(Generic[T]):
    """A query result together with its evaluation context."""

    context: Context
    value: T


@dataclass(frozen=True)
class AccountInfo:
    """Information describing an account.

    Attributes:
        executable: True if this account's data contains a loaded program
        owner: Identifier of the program that owns the account
        lamports: Number of lamports assigned to the account
        data: Data assigned to the account
        rent_epoch: Epoch at which this account will next owe rent
    """

    executable: bool
    owner: Pubkey
    lamports: int
    data: bytes = field(repr=False)
    rent_epoch: Optional[int] = None

    @classmethod
    def from_result(cls, result: AccountInfoResult) -> "AccountInfo":
        """Decode a validated account result.

        Raises:
            SchemaError: If the owner or data is not valid base58
        """
        try:
            owner = Pubkey.from_string(result.owner)
            data = base58.b58decode(result.data)
        except ValueError as e:
            raise SchemaError(f"Malformed account info: {str(e)}") from e
        return cls(
            executable=result.executable,
            owner=owner,
            lamports=result.lamports,
            data=data,
            rent_epoch=result.rent_epoch,
        )


@dataclass(frozen=True)
class KeyedAccountInfo:
    """Account information identified by pubkey."""

    account_id: str
    account_info: AccountInfo

    @classmethod
    def from_result(cls, result: ProgramAccountInfoResult) -> "KeyedAccountInfo":
        return cls(
            account_id=result.pubkey,
            account_info=AccountInfo.from_result(result.account),
        )


@dataclass(frozen=True)
class PublicKeyAndAccount:
    """An account owned by a program, as returned by getProgramAccounts."""

    pubkey: str
    account: AccountInfo

    @classmethod
    def from_result(cls, result: ProgramAccountInfoResult) -> "PublicKeyAndAccount":
        return cls(pubkey=result.pubkey, account=AccountInfo.from_result(result.account))


@dataclass(frozen=True)
class ConfirmedBlock:
    """A confirmed block on the ledger.

    Transactions are kept in their RPC form; turning them into signable
    transaction values is left to the transaction library.
    """

    blockhash: str
    previous_blockhash: str
    parent_slot: int
    transactions: List[ConfirmedBlockTransaction]

    @classmethod
    def from_result(cls, result: ConfirmedBlockResult) -> "ConfirmedBlock":
        try:
            blockhash = Pubkey.from_string(result.blockhash)
            previous_blockhash = Pubkey.from_string(result.previous_blockhash)
        except ValueError as e:
            raise SchemaError(f"Malformed confirmed block: {str(e)}") from e
        return cls(
            blockhash=str(blockhash),
            previous_blockhash=str(previous_blockhash),
            parent_slot=result.parent_slot,
            transactions=list(result.transactions),
        )


def with_context(result: Any, value: Any) -> RpcResponseAndContext:
    """Pair a decoded value with the context of its validated result."""
    return RpcResponseAndContext(context=Context(slot=result.context.slot), value=value)
