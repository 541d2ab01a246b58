"""WebSocket transport for subscription traffic.

The transport owns the socket and a reader task. Everything it observes
(open, close, error, push notifications) is queued as a ``SocketEvent`` on
``events`` for a single consumer. Replies to calls made over the socket
resolve per-request futures instead.
"""

import asyncio
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from solana_connection.constants import WS_INTERNAL_ERROR, WS_NORMAL_CLOSURE
from solana_connection.logging_config import get_logger
from solana_connection.utils.errors import RpcError, TransportError

logger = get_logger(__name__)


class SocketEventKind(str, Enum):
    """Kinds of events emitted by the WebSocket transport."""

    OPEN = "open"
    CLOSE = "close"
    ERROR = "error"
    NOTIFICATION = "notification"


@dataclass(frozen=True)
class SocketEvent:
    """An inbound event from the WebSocket transport.

    Attributes:
        kind: What happened
        method: Notification method name (``accountNotification``...)
        params: Notification params, ``{"subscription": id, "result": ...}``
        code: Close code, when known
        reason: Close reason or error text
        initiated_locally: True when the close was requested through ``close()``
    """

    kind: SocketEventKind
    method: Optional[str] = None
    params: Any = None
    code: Optional[int] = None
    reason: str = ""
    initiated_locally: bool = False


class WebSocketTransport:
    """JSON-RPC over a WebSocket, with notifications delivered as events."""

    def __init__(
        self,
        ws_url: str,
        reconnect_delay: float = 1.0,
        request_timeout: float = 30.0,
        connector=None
    ):
        """Initialize the transport.

        Args:
            ws_url: WebSocket endpoint
            reconnect_delay: Seconds to wait before connecting again after a failure
            request_timeout: Seconds to wait for the reply to a call
            connector: Replacement for ``websockets.connect``
        """
        self.ws_url = ws_url
        self.reconnect_delay = reconnect_delay
        self.request_timeout = request_timeout
        self.events: "asyncio.Queue[SocketEvent]" = asyncio.Queue()
        self._connector = connector or websockets.connect

        self._ws = None
        self._task: Optional[asyncio.Task] = None
        self._close_task: Optional[asyncio.Task] = None
        self._active = False
        self._closing = False
        self._restart = False
        self._failures = 0

        self.request_id = 0
        self.response_futures: Dict[int, asyncio.Future] = {}

    @property
    def is_open(self) -> bool:
        return self._ws is not None

    def _get_next_id(self) -> int:
        self.request_id += 1
        return self.request_id

    def _emit(self, event: SocketEvent) -> None:
        logger.debug(f"Socket event: {event.kind.value}")
        self.events.put_nowait(event)

    def connect(self) -> None:
        """Start connecting in the background.

        An OPEN event is queued once the socket is established. Calling this
        while a connection is being made or is open does nothing; calling it
        while a close is in progress reconnects once the close completes.
        """
        if self._active:
            if self._closing:
                self._restart = True
            return
        self._start()

    def _start(self) -> None:
        self._active = True
        self._closing = False
        self._task = asyncio.create_task(self._run())

    def close(self) -> None:
        """Close the socket with a normal closure code, if one is open or opening."""
        self._restart = False
        if not self._active or self._closing:
            return
        self._closing = True
        if self._ws is not None:
            self._close_task = asyncio.create_task(self._ws.close(code=WS_NORMAL_CLOSURE))
        elif self._task is not None:
            self._task.cancel()

    async def _run(self) -> None:
        code: Optional[int] = None
        reason = ""
        try:
            try:
                if self._failures:
                    await asyncio.sleep(self.reconnect_delay)
                self._ws = await self._connector(
                    self.ws_url,
                    max_size=None,  # No limit on message size
                    ping_interval=20,
                    ping_timeout=20
                )
            except asyncio.CancelledError:
                reason = "connect cancelled"
            except (OSError, WebSocketException, asyncio.TimeoutError) as e:
                self._failures += 1
                reason = str(e)
                self._emit(SocketEvent(SocketEventKind.ERROR, reason=reason))
            else:
                self._failures = 0
                self._emit(SocketEvent(SocketEventKind.OPEN))
                code, reason = await self._listen()
        finally:
            self._finish(code, reason)

    def _finish(self, code: Optional[int], reason: str) -> None:
        """Reset connection state and queue the CLOSE event for a finished run."""
        initiated_locally = self._closing
        if not initiated_locally and code is not None and code != WS_NORMAL_CLOSURE:
            self._failures += 1

        self._ws = None
        self._active = False
        self._fail_pending(TransportError("WebSocket closed", details={"code": code}))
        if self._restart:
            self._restart = False
            self._start()

        self._emit(SocketEvent(
            SocketEventKind.CLOSE,
            code=code,
            reason=reason,
            initiated_locally=initiated_locally
        ))

    async def _listen(self):
        """Read messages until the socket closes; returns (code, reason)."""
        ws = self._ws
        try:
            async for message in ws:
                self._handle_message(message)
        except ConnectionClosed:
            pass
        except Exception as e:
            logger.error(f"WebSocket error: {str(e)}")
            await ws.close(code=WS_INTERNAL_ERROR, reason="reader failed")
        return getattr(ws, "close_code", None), getattr(ws, "close_reason", None) or ""

    def _handle_message(self, message: Any) -> None:
        try:
            data = json.loads(message)
        except (TypeError, ValueError):
            logger.warning("Ignoring non-JSON WebSocket message")
            return
        if not isinstance(data, dict):
            logger.warning("Ignoring WebSocket message that is not an object")
            return

        if "method" in data and "params" in data:
            self._emit(SocketEvent(
                SocketEventKind.NOTIFICATION,
                method=data["method"],
                params=data["params"]
            ))
        elif "id" in data:
            request_id = data["id"]
            if not isinstance(request_id, int) or isinstance(request_id, bool):
                logger.warning(f"Ignoring WebSocket reply with unexpected id: {request_id!r}")
                return
            future = self.response_futures.pop(request_id, None)
            if future is None or future.done():
                return
            if data.get("error") is not None:
                future.set_exception(RpcError.from_response(data["error"]))
            else:
                future.set_result(data.get("result"))
        else:
            logger.debug(f"Unhandled WebSocket message: {data}")

    def _fail_pending(self, error: Exception) -> None:
        futures = list(self.response_futures.values())
        self.response_futures.clear()
        for future in futures:
            if not future.done():
                future.set_exception(error)

    async def call(self, method: str, params: List[Any]) -> Any:
        """Send a JSON-RPC request over the socket and wait for its result.

        Raises:
            TransportError: If the socket is not open, closes, or the reply times out
            RpcError: If the server answered with an error
        """
        if self._ws is None:
            raise TransportError(f"{method}: WebSocket not connected")

        request_id = self._get_next_id()
        request = {
            "jsonrpc": "2.0",
            "id": request_id,
            "method": method,
            "params": params
        }
        future = asyncio.get_running_loop().create_future()
        self.response_futures[request_id] = future

        try:
            await self._ws.send(json.dumps(request))
        except (ConnectionClosed, OSError) as e:
            self.response_futures.pop(request_id, None)
            raise TransportError(f"{method}: send failed: {str(e)}") from e

        try:
            return await asyncio.wait_for(future, timeout=self.request_timeout)
        except asyncio.TimeoutError as e:
            self.response_futures.pop(request_id, None)
            raise TransportError(f"{method}: WebSocket request timed out") from e

    async def aclose(self) -> None:
        """Close the socket and wait for the reader task to finish."""
        self.close()
        task = self._task
        if task is not None and not task.done():
            try:
                await task
            except asyncio.CancelledError:
                pass
