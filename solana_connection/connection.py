"""Async connection to a Solana fullnode JSON RPC endpoint."""

# Standard library imports
from typing import Any, Callable, List, Optional

# Internal imports
from solana_connection import schemas
from solana_connection.blockhash import BlockhashCache
from solana_connection.config import ConnectionConfig, get_connection_config
from solana_connection.logging_config import get_logger
from solana_connection.models import (
    AccountInfo,
    ConfirmedBlock,
    KeyedAccountInfo,
    PublicKeyAndAccount,
    RpcResponseAndContext,
    with_context,
)
from solana_connection.nonce_account import NonceAccount
from solana_connection.rpc_channel import RpcChannel
from solana_connection.schemas import (
    BlockhashAndFeeCalculator,
    ContactInfo,
    EpochInfo,
    EpochSchedule,
    InflationResult,
    SignatureStatusResult,
    SlotInfo,
    Version,
    VoteAccountStatus,
)
from solana_connection.subscriptions import SubscriptionKind, SubscriptionManager
from solana_connection.transaction import Signer, Transaction
from solana_connection.utils.errors import RpcError
from solana_connection.utils.validation import (
    PublicKeyLike,
    require_transaction_signature,
    to_base58,
)
from solana_connection.websocket import WebSocketTransport

logger = get_logger(__name__)

AccountChangeCallback = Callable[[AccountInfo], Any]
ProgramAccountChangeCallback = Callable[[KeyedAccountInfo], Any]
SlotChangeCallback = Callable[[SlotInfo], Any]
SignatureResultCallback = Callable[[SignatureStatusResult], Any]


class Connection:
    """A connection to a fullnode JSON RPC endpoint.

    Queries and transaction submission go over HTTP. Account, program, slot
    and signature listeners share one WebSocket, opened on the first
    registration and closed when the last one is removed.
    """

    def __init__(
        self,
        config: Optional[ConnectionConfig] = None,
        channel: Optional[RpcChannel] = None,
        socket: Optional[Any] = None
    ):
        """Initialize the connection.

        Args:
            config: Connection configuration. Defaults to environment-based config.
            channel: HTTP channel to use instead of one built from ``config``
            socket: WebSocket transport to use instead of one built from ``config``
        """
        self.config = config or get_connection_config()
        self.commitment = self.config.commitment
        self._channel = channel or RpcChannel(self.config.rpc_url, timeout=self.config.timeout)
        self._socket = socket or WebSocketTransport(
            self.config.websocket_url,
            reconnect_delay=self.config.ws_reconnect_delay,
            request_timeout=self.config.timeout
        )
        self._subscriptions = SubscriptionManager(self._socket)
        self._blockhash_cache = BlockhashCache(
            fetch_blockhash=self._fetch_blockhash,
            send_raw_transaction=self.send_raw_transaction,
            validity_seconds=self.config.blockhash_validity_seconds,
            max_polls=self.config.blockhash_max_polls,
            disable_caching=self.config.disable_blockhash_caching,
        )

    @property
    def subscriptions(self) -> SubscriptionManager:
        return self._subscriptions

    @property
    def blockhash_cache(self) -> BlockhashCache:
        return self._blockhash_cache

    def _args_with_commitment(self, args: List[Any], commitment: Optional[str]) -> List[Any]:
        commitment = commitment or self.commitment
        if commitment:
            args.append({"commitment": commitment})
        return args

    # Accounts

    async def get_balance_and_context(
        self,
        public_key: PublicKeyLike,
        commitment: Optional[str] = None
    ) -> RpcResponseAndContext:
        """Fetch the balance for the specified public key, with context."""
        args = self._args_with_commitment([to_base58(public_key)], commitment)
        result = await self._channel.call("getBalance", args, schemas.GET_BALANCE)
        return with_context(result, result.value)

    async def get_balance(self, public_key: PublicKeyLike, commitment: Optional[str] = None) -> Optional[int]:
        """Fetch the balance, in lamports, for the specified public key."""
        return (await self.get_balance_and_context(public_key, commitment)).value

    async def get_account_info_and_context(
        self,
        public_key: PublicKeyLike,
        commitment: Optional[str] = None
    ) -> RpcResponseAndContext:
        """Fetch all the account info for the specified public key, with context.

        Args:
            public_key: The account public key
            commitment: Optional commitment level overriding the default

        Returns:
            The decoded account and the slot it was read at

        Raises:
            InvalidPublicKeyError: If ``public_key`` is not a valid public key
            RpcError: If the server reported an error or the account does not exist
        """
        args = self._args_with_commitment([to_base58(public_key)], commitment)
        result = await self._channel.call("getAccountInfo", args, schemas.GET_ACCOUNT_INFO)
        if result.value is None:
            raise RpcError("Invalid request")
        return with_context(result, AccountInfo.from_result(result.value))

    async def get_account_info(self, public_key: PublicKeyLike, commitment: Optional[str] = None) -> AccountInfo:
        """Fetch all the account info for the specified public key."""
        return (await self.get_account_info_and_context(public_key, commitment)).value

    async def get_program_accounts(
        self,
        program_id: PublicKeyLike,
        commitment: Optional[str] = None
    ) -> List[PublicKeyAndAccount]:
        """Fetch all the accounts owned by the specified program id.

        Args:
            program_id: The program ID
            commitment: Optional commitment level overriding the default

        Returns:
            List of program accounts with decoded data
        """
        args = self._args_with_commitment([to_base58(program_id)], commitment)
        result = await self._channel.call("getProgramAccounts", args, schemas.GET_PROGRAM_ACCOUNTS)
        return [PublicKeyAndAccount.from_result(item) for item in result]

    async def get_nonce_and_context(
        self,
        nonce_account: PublicKeyLike,
        commitment: Optional[str] = None
    ) -> RpcResponseAndContext:
        """Fetch the contents of a nonce account, with context.

        Raises:
            RpcError: If the account does not exist
            SchemaError: If the account data is not a nonce account
        """
        args = self._args_with_commitment([to_base58(nonce_account)], commitment)
        result = await self._channel.call("getAccountInfo", args, schemas.GET_ACCOUNT_INFO)
        if result.value is None:
            raise RpcError("Invalid request")
        data = AccountInfo.from_result(result.value).data
        return with_context(result, NonceAccount.from_account_data(data))

    async def get_nonce(self, nonce_account: PublicKeyLike, commitment: Optional[str] = None) -> NonceAccount:
        """Fetch the contents of a nonce account."""
        return (await self.get_nonce_and_context(nonce_account, commitment)).value

    # Transactions and signatures

    async def confirm_transaction_and_context(
        self,
        signature: str,
        commitment: Optional[str] = None
    ) -> RpcResponseAndContext:
        """Confirm the transaction identified by the specified signature, with context."""
        require_transaction_signature(signature)
        args = self._args_with_commitment([signature], commitment)
        result = await self._channel.call("confirmTransaction", args, schemas.CONFIRM_TRANSACTION)
        return with_context(result, result.value)

    async def confirm_transaction(self, signature: str, commitment: Optional[str] = None) -> bool:
        """Confirm the transaction identified by the specified signature."""
        return (await self.confirm_transaction_and_context(signature, commitment)).value

    async def get_signature_status(
        self,
        signature: str,
        commitment: Optional[str] = None
    ) -> Optional[SignatureStatusResult]:
        """Fetch the current status of a signature (None if unknown to the node)."""
        args = self._args_with_commitment([signature], commitment)
        return await self._channel.call("getSignatureStatus", args, schemas.GET_SIGNATURE_STATUS)

    async def get_recent_blockhash_and_context(self, commitment: Optional[str] = None) -> RpcResponseAndContext:
        """Fetch a recent blockhash from the cluster, with context."""
        args = self._args_with_commitment([], commitment)
        result = await self._channel.call("getRecentBlockhash", args, schemas.GET_RECENT_BLOCKHASH)
        return with_context(result, result.value)

    async def get_recent_blockhash(self, commitment: Optional[str] = None) -> BlockhashAndFeeCalculator:
        """Fetch a recent blockhash and its fee calculator from the cluster."""
        return (await self.get_recent_blockhash_and_context(commitment)).value

    async def _fetch_blockhash(self) -> str:
        return (await self.get_recent_blockhash()).blockhash

    async def request_airdrop(
        self,
        to: PublicKeyLike,
        amount: int,
        commitment: Optional[str] = None
    ) -> str:
        """Request an allocation of lamports to the specified account.

        Returns:
            Signature of the airdrop transaction
        """
        args = self._args_with_commitment([to_base58(to), amount], commitment)
        return await self._channel.call("requestAirdrop", args, schemas.REQUEST_AIRDROP)

    async def send_transaction(self, transaction: Transaction, *signers: Signer) -> str:
        """Sign and send a transaction.

        A recent blockhash is taken from the cache, or fetched when the cache
        is stale or this exact transaction was already sent with it.
        Transactions using a durable nonce are signed as they are.

        Args:
            transaction: The unsigned transaction
            signers: Accounts whose signatures are required

        Returns:
            The transaction signature

        Raises:
            BlockhashTimeoutError: If no new blockhash could be obtained
            RpcError: If the server rejected the transaction
        """
        return await self._blockhash_cache.prepare_and_send(transaction, *signers)

    async def send_raw_transaction(self, raw_transaction: bytes) -> str:
        """Send a transaction that has already been signed and serialized into the wire format."""
        return await self._channel.send_raw_transaction(raw_transaction)

    async def send_encoded_transaction(self, encoded_transaction: str) -> str:
        """Send a signed transaction already serialized and encoded as a base58 string."""
        return await self._channel.send_encoded_transaction(encoded_transaction)

    # Cluster

    async def get_cluster_nodes(self) -> List[ContactInfo]:
        """Return the list of nodes that are currently participating in the cluster."""
        return await self._channel.call("getClusterNodes", [], schemas.GET_CLUSTER_NODES)

    async def get_vote_accounts(self, commitment: Optional[str] = None) -> VoteAccountStatus:
        """Return the current and delinquent vote accounts."""
        args = self._args_with_commitment([], commitment)
        return await self._channel.call("getVoteAccounts", args, schemas.GET_VOTE_ACCOUNTS)

    async def get_slot(self, commitment: Optional[str] = None) -> int:
        """Fetch the current slot that the node is processing."""
        args = self._args_with_commitment([], commitment)
        return await self._channel.call("getSlot", args, schemas.GET_SLOT)

    async def get_slot_leader(self, commitment: Optional[str] = None) -> str:
        """Fetch the current slot leader of the cluster."""
        args = self._args_with_commitment([], commitment)
        return await self._channel.call("getSlotLeader", args, schemas.GET_SLOT_LEADER)

    async def get_transaction_count(self, commitment: Optional[str] = None) -> int:
        args = self._args_with_commitment([], commitment)
        return await self._channel.call("getTransactionCount", args, schemas.GET_TRANSACTION_COUNT)

    async def get_total_supply(self, commitment: Optional[str] = None) -> int:
        """Fetch the current total currency supply of the cluster in lamports."""
        args = self._args_with_commitment([], commitment)
        return await self._channel.call("getTotalSupply", args, schemas.GET_TOTAL_SUPPLY)

    async def get_inflation(self, commitment: Optional[str] = None) -> InflationResult:
        args = self._args_with_commitment([], commitment)
        return await self._channel.call("getInflation", args, schemas.GET_INFLATION)

    async def get_epoch_info(self, commitment: Optional[str] = None) -> EpochInfo:
        args = self._args_with_commitment([], commitment)
        return await self._channel.call("getEpochInfo", args, schemas.GET_EPOCH_INFO)

    async def get_epoch_schedule(self) -> EpochSchedule:
        return await self._channel.call("getEpochSchedule", [], schemas.GET_EPOCH_SCHEDULE)

    async def get_minimum_balance_for_rent_exemption(
        self,
        data_length: int,
        commitment: Optional[str] = None
    ) -> int:
        """Fetch the minimum balance needed to exempt an account of ``data_length`` bytes from rent.

        A server error is logged and reported as 0.
        """
        args = self._args_with_commitment([data_length], commitment)
        try:
            return await self._channel.call(
                "getMinimumBalanceForRentExemption", args,
                schemas.GET_MINIMUM_BALANCE_FOR_RENT_EXEMPTION
            )
        except RpcError as e:
            logger.warning(f"Unable to fetch minimum balance for rent exemption: {e.message}")
            return 0

    async def get_version(self) -> Version:
        """Fetch the node version."""
        return await self._channel.call("getVersion", [], schemas.GET_VERSION)

    async def get_confirmed_block(self, slot: int) -> ConfirmedBlock:
        """Fetch the transactions and statuses of a confirmed block.

        Raises:
            RpcError: If the block is not available
        """
        result = await self._channel.call("getConfirmedBlock", [slot], schemas.GET_CONFIRMED_BLOCK)
        if result is None:
            raise RpcError(f"Confirmed block {slot} not found")
        return ConfirmedBlock.from_result(result)

    async def validator_exit(self) -> bool:
        return await self._channel.call("validatorExit", [], schemas.VALIDATOR_EXIT)

    # Subscriptions

    def on_account_change(self, public_key: PublicKeyLike, callback: AccountChangeCallback) -> int:
        """Register a callback to be invoked whenever the specified account changes.

        Args:
            public_key: Public key of the account to monitor
            callback: Function to invoke whenever the account is changed

        Returns:
            Subscription id
        """
        return self._subscriptions.register(SubscriptionKind.ACCOUNT, to_base58(public_key), callback)

    async def remove_account_change_listener(self, subscription_id: int) -> None:
        """Deregister an account notification callback."""
        await self._subscriptions.remove(SubscriptionKind.ACCOUNT, subscription_id)

    def on_program_account_change(
        self,
        program_id: PublicKeyLike,
        callback: ProgramAccountChangeCallback
    ) -> int:
        """Register a callback to be invoked whenever accounts owned by the program change.

        Returns:
            Subscription id
        """
        return self._subscriptions.register(SubscriptionKind.PROGRAM, to_base58(program_id), callback)

    async def remove_program_account_change_listener(self, subscription_id: int) -> None:
        await self._subscriptions.remove(SubscriptionKind.PROGRAM, subscription_id)

    def on_slot_change(self, callback: SlotChangeCallback) -> int:
        """Register a callback to be invoked upon slot changes."""
        return self._subscriptions.register(SubscriptionKind.SLOT, None, callback)

    async def remove_slot_change_listener(self, subscription_id: int) -> None:
        await self._subscriptions.remove(SubscriptionKind.SLOT, subscription_id)

    def on_signature(self, signature: str, callback: SignatureResultCallback) -> int:
        """Register a callback to be invoked once the signature is processed.

        The listener is dropped after its first notification.

        Returns:
            Subscription id
        """
        require_transaction_signature(signature)
        return self._subscriptions.register(SubscriptionKind.SIGNATURE, signature, callback)

    async def remove_signature_listener(self, subscription_id: int) -> None:
        await self._subscriptions.remove(SubscriptionKind.SIGNATURE, subscription_id)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Close the WebSocket and the HTTP channel."""
        await self._subscriptions.close()
        await self._socket.aclose()
        await self._channel.close()

