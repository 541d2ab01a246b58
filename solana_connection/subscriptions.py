"""Subscription bookkeeping for WebSocket push notifications.

Callers register interest locally and get an id back at once. ``resync``
reconciles the server side with the local registrations: it opens the socket
when there is something to watch, closes it when there is nothing, and issues
subscribe calls for records that have no server subscription yet. It runs
after every mutating event, including reconnects.
"""

import asyncio
import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterator, Optional, Set, Tuple, Union

from pydantic import ValidationError

from solana_connection.logging_config import get_logger, log_with_context
from solana_connection.models import AccountInfo, KeyedAccountInfo
from solana_connection.schemas import (
    SUBSCRIPTION_ID,
    UNSUBSCRIBE_RESULT,
    AccountNotification,
    ProgramAccountNotification,
    SignatureNotification,
    SlotNotification,
    validate_notification,
)
from solana_connection.utils.errors import (
    RpcError,
    SchemaError,
    TransportError,
    UnknownSubscriptionError,
)
from solana_connection.websocket import SocketEvent, SocketEventKind

logger = get_logger(__name__)


class SubscriptionKind(str, Enum):
    """Kinds of WebSocket subscriptions, each with its own id namespace."""

    ACCOUNT = "account"
    PROGRAM = "program"
    SLOT = "slot"
    SIGNATURE = "signature"

    @property
    def subscribe_method(self) -> str:
        return f"{self.value}Subscribe"

    @property
    def unsubscribe_method(self) -> str:
        return f"{self.value}Unsubscribe"

    @property
    def notification_method(self) -> str:
        return f"{self.value}Notification"


@dataclass(frozen=True)
class Unset:
    """No subscribe call outstanding or confirmed."""


@dataclass(frozen=True, eq=False)
class Pending:
    """A subscribe call is in flight. Each attempt gets its own instance."""


@dataclass(frozen=True)
class Active:
    """Confirmed by the server; notifications for ``server_id`` route here."""

    server_id: int


UNSET = Unset()

RemoteState = Union[Unset, Pending, Active]


@dataclass
class SubscriptionRecord:
    """One local registration.

    Attributes:
        kind: Subscription kind
        target: Base58 key or signature being watched, None for slots
        callback: Called with the decoded notification payload
        remote_state: Server side state of this registration
    """

    kind: SubscriptionKind
    target: Optional[str]
    callback: Callable[[Any], Any]
    remote_state: RemoteState = field(default=UNSET)

    @property
    def subscribe_params(self):
        return [self.target] if self.target is not None else []


def _decode_account(notification) -> AccountInfo:
    return AccountInfo.from_result(notification.result)


def _decode_program_account(notification) -> KeyedAccountInfo:
    return KeyedAccountInfo.from_result(notification.result)


def _decode_result(notification) -> Any:
    return notification.result


NOTIFICATION_SHAPES = {
    SubscriptionKind.ACCOUNT: (AccountNotification, _decode_account),
    SubscriptionKind.PROGRAM: (ProgramAccountNotification, _decode_program_account),
    SubscriptionKind.SLOT: (SlotNotification, _decode_result),
    SubscriptionKind.SIGNATURE: (SignatureNotification, _decode_result),
}

KIND_BY_NOTIFICATION = {kind.notification_method: kind for kind in SubscriptionKind}


class SubscriptionManager:
    """Keeps server side subscriptions in sync with local registrations.

    Args:
        socket: WebSocket transport exposing ``connect()``, ``close()``,
            ``call(method, params)`` and an ``events`` queue
    """

    def __init__(self, socket):
        self._socket = socket
        self._records: Dict[SubscriptionKind, Dict[int, SubscriptionRecord]] = {
            kind: {} for kind in SubscriptionKind
        }
        self._counters: Dict[SubscriptionKind, int] = {kind: 0 for kind in SubscriptionKind}
        self._connected = False
        self._dispatcher: Optional[asyncio.Task] = None
        self._subscribe_tasks: Set[asyncio.Task] = set()

    @property
    def connected(self) -> bool:
        return self._connected

    def get(self, kind: SubscriptionKind, subscription_id: int) -> Optional[SubscriptionRecord]:
        """Return the record registered under ``subscription_id``, if any."""
        return self._records[kind].get(subscription_id)

    def _iter_records(self) -> Iterator[Tuple[SubscriptionKind, int, SubscriptionRecord]]:
        for kind, records in self._records.items():
            for subscription_id, record in list(records.items()):
                yield kind, subscription_id, record

    def _has_records(self) -> bool:
        return any(self._records[kind] for kind in SubscriptionKind)

    def register(
        self,
        kind: SubscriptionKind,
        target: Optional[str],
        callback: Callable[[Any], Any]
    ) -> int:
        """Register a callback and return its id without waiting for the server.

        Must be called from a running event loop.

        Args:
            kind: Subscription kind
            target: What to watch (None for slot subscriptions)
            callback: Called with each decoded notification payload

        Returns:
            Id of the registration, unique within ``kind``
        """
        self._counters[kind] += 1
        subscription_id = self._counters[kind]
        self._records[kind][subscription_id] = SubscriptionRecord(kind, target, callback)
        logger.debug(f"Registered {kind.value} subscription {subscription_id} for {target}")
        self.resync()
        return subscription_id

    async def remove(self, kind: SubscriptionKind, subscription_id: int) -> None:
        """Remove a registration.

        The server subscription, if confirmed, is cancelled on a best effort
        basis: a failed unsubscribe call is logged and not raised.

        Raises:
            UnknownSubscriptionError: If ``subscription_id`` is not registered
        """
        record = self._records[kind].pop(subscription_id, None)
        if record is None:
            raise UnknownSubscriptionError(kind.value, subscription_id)

        state = record.remote_state
        if isinstance(state, Active):
            await self._unsubscribe(record, state.server_id)
        logger.debug(f"Removed {kind.value} subscription {subscription_id}")
        self.resync()

    async def _unsubscribe(self, record: SubscriptionRecord, server_id: int) -> None:
        method = record.kind.unsubscribe_method
        try:
            result = await self._socket.call(method, [server_id])
            UNSUBSCRIBE_RESULT.validate_python(result)
        except (TransportError, RpcError, ValidationError) as e:
            log_with_context(logger, "warning", f"{method} failed", server_id=server_id, error=str(e))

    def resync(self) -> None:
        """Reconcile server subscriptions with local registrations.

        Idempotent. With nothing registered the socket is closed. With the
        socket down every record is reset and a connection is started; the
        OPEN event triggers the next pass. With the socket up every record
        without a server subscription gets a subscribe call.
        """
        if not self._has_records():
            if self._connected:
                logger.info("No subscriptions left, closing WebSocket")
            self._connected = False
            self._socket.close()
            return

        if not self._connected:
            for _, _, record in self._iter_records():
                record.remote_state = UNSET
            self._ensure_dispatcher()
            self._socket.connect()
            return

        for kind, subscription_id, record in self._iter_records():
            if isinstance(record.remote_state, Unset):
                pending = Pending()
                record.remote_state = pending
                task = asyncio.create_task(self._subscribe(kind, subscription_id, record, pending))
                self._subscribe_tasks.add(task)
                task.add_done_callback(self._subscribe_tasks.discard)

    async def _subscribe(
        self,
        kind: SubscriptionKind,
        subscription_id: int,
        record: SubscriptionRecord,
        pending: Pending
    ) -> None:
        method = kind.subscribe_method
        try:
            result = await self._socket.call(method, record.subscribe_params)
            server_id = SUBSCRIPTION_ID.validate_python(result)
        except (TransportError, RpcError, ValidationError) as e:
            log_with_context(
                logger, "error", f"{method} failed",
                subscription_id=subscription_id, target=record.target, error=str(e)
            )
            if record.remote_state is pending:
                record.remote_state = UNSET
            return

        if record.remote_state is pending:
            record.remote_state = Active(server_id)
            logger.debug(f"{kind.value} subscription {subscription_id} active as {server_id}")

    def _ensure_dispatcher(self) -> None:
        if self._dispatcher is None or self._dispatcher.done():
            self._dispatcher = asyncio.create_task(self._dispatch_events())

    async def _dispatch_events(self) -> None:
        while True:
            event = await self._socket.events.get()
            await self.handle_event(event)

    async def handle_event(self, event: SocketEvent) -> None:
        """Apply one inbound socket event."""
        if event.kind is SocketEventKind.OPEN:
            logger.info("WebSocket connected")
            self._connected = True
            self.resync()
        elif event.kind is SocketEventKind.CLOSE:
            if event.initiated_locally:
                logger.debug("WebSocket closed")
            else:
                logger.warning(f"WebSocket closed unexpectedly: code={event.code} {event.reason}")
            self._connected = False
            for _, _, record in self._iter_records():
                record.remote_state = UNSET
            self.resync()
        elif event.kind is SocketEventKind.ERROR:
            logger.warning(f"WebSocket error: {event.reason}")
        elif event.kind is SocketEventKind.NOTIFICATION:
            await self._dispatch_notification(event.method, event.params)

    async def _dispatch_notification(self, method: str, params: Any) -> None:
        kind = KIND_BY_NOTIFICATION.get(method)
        if kind is None:
            logger.warning(f"Ignoring notification for unknown method {method}")
            return

        shape, decode = NOTIFICATION_SHAPES[kind]
        try:
            notification = validate_notification(shape, params)
            payload = decode(notification)
        except (SchemaError, ValueError) as e:
            logger.error(f"Dropping malformed {method}: {str(e)}")
            return

        for subscription_id, record in list(self._records[kind].items()):
            state = record.remote_state
            if isinstance(state, Active) and state.server_id == notification.subscription:
                if kind is SubscriptionKind.SIGNATURE:
                    # The server drops signature subscriptions after the first notification
                    del self._records[kind][subscription_id]
                    self.resync()
                await self._invoke(record, payload)
                return

    async def _invoke(self, record: SubscriptionRecord, payload: Any) -> None:
        try:
            result = record.callback(payload)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception(f"Error in {record.kind.value} notification callback")

    async def flush(self) -> None:
        """Wait for every in-flight subscribe call to settle."""
        while self._subscribe_tasks:
            await asyncio.gather(*list(self._subscribe_tasks), return_exceptions=True)

    async def close(self) -> None:
        """Drop every registration, close the socket and stop dispatching."""
        for records in self._records.values():
            records.clear()
        tasks = list(self._subscribe_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._connected = False
        self._socket.close()
        if self._dispatcher is not None:
            self._dispatcher.cancel()
            try:
                await self._dispatcher
            except asyncio.CancelledError:
                pass
            self._dispatcher = None
