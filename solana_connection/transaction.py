"""Interfaces of the transaction values accepted by the send path.

Signing and wire serialization belong to the transaction library; the
connection only needs the small surface described here.
"""

from typing import Any, Optional, Protocol, runtime_checkable

import base58


class Signer(Protocol):
    """Anything able to sign a transaction (a keypair, a hardware wallet)."""


@runtime_checkable
class Transaction(Protocol):
    """A transaction that can be signed against a recent blockhash."""

    recent_blockhash: Optional[str]
    nonce_info: Optional[Any]

    @property
    def signature(self) -> Optional[bytes]:
        """First signature of the transaction, once signed."""

    def sign(self, *signers: Signer) -> None:
        """Sign with ``signers`` over the current message."""

    def serialize(self) -> bytes:
        """Return the signed transaction in wire format."""


def signature_string(transaction: Transaction) -> str:
    """Base58 form of a signed transaction's first signature.

    Raises:
        ValueError: If the transaction carries no signature
    """
    signature = transaction.signature
    if not signature:
        raise ValueError("Transaction has no signature")
    return base58.b58encode(bytes(signature)).decode("ascii")
