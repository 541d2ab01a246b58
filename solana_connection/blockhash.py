"""
Recent blockhash cache for transaction signing.

A cached blockhash is reused for a fixed window after it was fetched. The
cache also remembers which signatures were produced against the current
blockhash: signing the exact same payload twice under one blockhash would
produce a bit-identical transaction, so a new blockhash is fetched first.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Set

from solana_connection.constants import (
    BLOCKHASH_MAX_POLLS,
    BLOCKHASH_POLL_INTERVAL,
    BLOCKHASH_VALIDITY_SECONDS,
)
from solana_connection.logging_config import get_logger
from solana_connection.transaction import Signer, Transaction, signature_string
from solana_connection.utils.errors import BlockhashTimeoutError

logger = get_logger(__name__)


@dataclass
class CachedBlockhash:
    """Blockhash with the time it was recorded and the signatures made against it."""

    hash: Optional[str] = None
    timestamp: Optional[float] = None
    seen_signatures: Set[str] = field(default_factory=set)

    def age_seconds(self, now: float) -> Optional[float]:
        if self.timestamp is None:
            return None
        return now - self.timestamp

    def is_fresh(self, now: float, max_age: float) -> bool:
        age = self.age_seconds(now)
        return self.hash is not None and age is not None and age < max_age


class BlockhashCache:
    """Supplies recent blockhashes to the transaction send path.

    Args:
        fetch_blockhash: Coroutine returning the cluster's current blockhash
        send_raw_transaction: Coroutine submitting wire bytes, returning the signature
        validity_seconds: How long a fetched blockhash is reused
        max_polls: Fetch attempts before giving up on a new blockhash
        poll_interval: Seconds between fetch attempts
        disable_caching: Expire the blockhash after every signed transaction
        sleep: Delay primitive
        clock: Monotonic clock in seconds
    """

    def __init__(
        self,
        fetch_blockhash: Callable[[], Awaitable[str]],
        send_raw_transaction: Callable[[bytes], Awaitable[str]],
        validity_seconds: float = BLOCKHASH_VALIDITY_SECONDS,
        max_polls: int = BLOCKHASH_MAX_POLLS,
        poll_interval: float = BLOCKHASH_POLL_INTERVAL,
        disable_caching: bool = False,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._fetch_blockhash = fetch_blockhash
        self._send_raw_transaction = send_raw_transaction
        self.validity_seconds = validity_seconds
        self.max_polls = max_polls
        self.poll_interval = poll_interval
        self.disable_caching = disable_caching
        self._sleep = sleep
        self._clock = clock
        self._cached = CachedBlockhash()

    @property
    def cached(self) -> CachedBlockhash:
        return self._cached

    def is_fresh(self) -> bool:
        return self._cached.is_fresh(self._clock(), self.validity_seconds)

    async def refresh(self) -> str:
        """Poll until the cluster reports a blockhash different from the cached one.

        If another caller replaces the cached blockhash while this one is
        polling, that entry is kept (with the signatures already recorded
        against it) and returned.

        Returns:
            The new blockhash

        Raises:
            BlockhashTimeoutError: If every poll returned the cached blockhash
        """
        start = self._clock()
        previous = self._cached.hash

        for poll in range(1, self.max_polls + 1):
            blockhash = await self._fetch_blockhash()
            current = self._cached.hash
            if current != previous:
                logger.debug(f"Blockhash {current} installed by a concurrent refresh")
                return current
            if blockhash != current:
                self._cached = CachedBlockhash(hash=blockhash, timestamp=self._clock())
                logger.info(f"New blockhash {blockhash} after {poll} poll(s)")
                return blockhash
            if poll < self.max_polls:
                await self._sleep(self.poll_interval)

        elapsed_ms = int((self._clock() - start) * 1000)
        raise BlockhashTimeoutError(self.max_polls, elapsed_ms)

    async def sign(self, transaction: Transaction, *signers: Signer) -> None:
        """Sign ``transaction`` against a fresh blockhash it has not been sent with.

        Transactions carrying durable nonce information are signed as they are.
        """
        if transaction.nonce_info:
            transaction.sign(*signers)
            return

        while True:
            if self.is_fresh():
                transaction.recent_blockhash = self._cached.hash
                transaction.sign(*signers)
                signature = signature_string(transaction)

                if signature not in self._cached.seen_signatures:
                    self._cached.seen_signatures.add(signature)
                    if self.disable_caching:
                        self._cached.timestamp = None
                    return
                logger.debug(f"Signature {signature} already sent with this blockhash")

            await self.refresh()

    async def prepare_and_send(self, transaction: Transaction, *signers: Signer) -> str:
        """Sign ``transaction`` and submit it.

        Returns:
            The transaction signature assigned by the server

        Raises:
            BlockhashTimeoutError: If no new blockhash could be obtained
            RpcError: If the server rejected the transaction
        """
        await self.sign(transaction, *signers)
        wire_transaction = transaction.serialize()
        return await self._send_raw_transaction(wire_transaction)
