"""Unit tests for the WebSocket transport."""

import asyncio
import json

import pytest
import pytest_asyncio

from solana_connection.utils.errors import RpcError, TransportError
from solana_connection.websocket import SocketEventKind, WebSocketTransport
from tests.fixtures.common import wait_until

WS_URL = "ws://localhost:8900"


class FakeWebSocket:
    """Server side of an in-memory WebSocket."""

    def __init__(self):
        self.sent = []
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.close_code = None
        self.close_reason = ""
        self.closed = False

    async def send(self, message):
        self.sent.append(json.loads(message))

    async def close(self, code=1000, reason=""):
        if not self.closed:
            self.drop(code, reason)

    def drop(self, code=1006, reason=""):
        self.closed = True
        self.close_code = code
        self.close_reason = reason
        self.incoming.put_nowait(None)

    def feed(self, message):
        self.incoming.put_nowait(json.dumps(message))

    def fail(self, error):
        self.incoming.put_nowait(error)

    def __aiter__(self):
        return self

    async def __anext__(self):
        message = await self.incoming.get()
        if message is None:
            raise StopAsyncIteration
        if isinstance(message, Exception):
            raise message
        return message


class Connector:
    """Replacement for ``websockets.connect``."""

    def __init__(self, failures=0):
        self.sockets = []
        self.kwargs = []
        self.failures = failures

    async def __call__(self, url, **kwargs):
        self.kwargs.append(kwargs)
        if self.failures:
            self.failures -= 1
            raise OSError("connection refused")
        ws = FakeWebSocket()
        self.sockets.append(ws)
        return ws


async def next_event(transport):
    return await asyncio.wait_for(transport.events.get(), 1.0)


@pytest.fixture
def connector():
    return Connector()


@pytest_asyncio.fixture
async def transport(connector):
    transport = WebSocketTransport(WS_URL, reconnect_delay=0, request_timeout=1.0, connector=connector)
    yield transport
    await transport.aclose()


@pytest.mark.asyncio
async def test_connect_emits_open(transport, connector):
    """Test that a successful connection is reported once."""
    transport.connect()
    transport.connect()

    event = await next_event(transport)

    assert event.kind is SocketEventKind.OPEN
    assert transport.is_open
    assert len(connector.sockets) == 1
    assert connector.kwargs[0]["max_size"] is None


@pytest.mark.asyncio
async def test_call_resolves_with_result(transport, connector):
    """Test a request answered over the socket."""
    transport.connect()
    await next_event(transport)
    ws = connector.sockets[0]

    task = asyncio.create_task(transport.call("slotSubscribe", []))
    await wait_until(lambda: ws.sent)
    request = ws.sent[0]
    ws.feed({"jsonrpc": "2.0", "id": request["id"], "result": 9})

    assert await task == 9
    assert request["method"] == "slotSubscribe"
    assert request["params"] == []


@pytest.mark.asyncio
async def test_call_error_reply_raises(transport, connector):
    """Test that an error reply surfaces as RpcError."""
    transport.connect()
    await next_event(transport)
    ws = connector.sockets[0]

    task = asyncio.create_task(transport.call("accountSubscribe", ["bad"]))
    await wait_until(lambda: ws.sent)
    ws.feed({
        "jsonrpc": "2.0",
        "id": ws.sent[0]["id"],
        "error": {"code": -32602, "message": "Invalid params"}
    })

    with pytest.raises(RpcError) as exc_info:
        await task
    assert exc_info.value.rpc_code == -32602


@pytest.mark.asyncio
async def test_call_without_socket_raises(transport):
    """Test that calling before the socket opens fails fast."""
    with pytest.raises(TransportError):
        await transport.call("slotSubscribe", [])


@pytest.mark.asyncio
async def test_notification_is_queued(transport, connector):
    """Test that push messages become NOTIFICATION events."""
    transport.connect()
    await next_event(transport)

    connector.sockets[0].feed({
        "jsonrpc": "2.0",
        "method": "slotNotification",
        "params": {"subscription": 3, "result": {"parent": 1, "slot": 2, "root": 0}}
    })
    event = await next_event(transport)

    assert event.kind is SocketEventKind.NOTIFICATION
    assert event.method == "slotNotification"
    assert event.params["subscription"] == 3


@pytest.mark.asyncio
async def test_local_close_uses_normal_closure(transport, connector):
    """Test that close() sends code 1000 and reports a local close."""
    transport.connect()
    await next_event(transport)

    transport.close()
    event = await next_event(transport)

    assert event.kind is SocketEventKind.CLOSE
    assert event.code == 1000
    assert event.initiated_locally
    assert not transport.is_open


@pytest.mark.asyncio
async def test_server_drop_fails_pending_calls(transport, connector):
    """Test that an unexpected close fails outstanding requests."""
    transport.connect()
    await next_event(transport)
    ws = connector.sockets[0]

    task = asyncio.create_task(transport.call("slotSubscribe", []))
    await wait_until(lambda: ws.sent)
    ws.drop(1006)

    with pytest.raises(TransportError):
        await task
    event = await next_event(transport)
    assert event.kind is SocketEventKind.CLOSE
    assert event.code == 1006
    assert not event.initiated_locally


@pytest.mark.asyncio
async def test_failed_connect_emits_error_then_close(connector):
    """Test that a refused connection is reported and can be retried."""
    connector.failures = 1
    transport = WebSocketTransport(WS_URL, reconnect_delay=0, connector=connector)

    transport.connect()
    error = await next_event(transport)
    closed = await next_event(transport)

    assert error.kind is SocketEventKind.ERROR
    assert "refused" in error.reason
    assert closed.kind is SocketEventKind.CLOSE
    assert not closed.initiated_locally

    transport.connect()
    assert (await next_event(transport)).kind is SocketEventKind.OPEN
    await transport.aclose()


@pytest.mark.asyncio
async def test_connect_during_close_reconnects(transport, connector):
    """Test that a connect request made while closing opens a new socket."""
    transport.connect()
    await next_event(transport)

    transport.close()
    transport.connect()

    kinds = [(await next_event(transport)).kind for _ in range(2)]

    assert SocketEventKind.CLOSE in kinds
    assert SocketEventKind.OPEN in kinds
    assert len(connector.sockets) == 2


@pytest.mark.asyncio
async def test_non_json_message_is_ignored(transport, connector):
    """Test that garbage on the socket does not stop the reader."""
    transport.connect()
    await next_event(transport)
    ws = connector.sockets[0]

    ws.incoming.put_nowait("not json")
    ws.feed({"jsonrpc": "2.0", "method": "slotNotification", "params": {"subscription": 1, "result": {}}})

    event = await next_event(transport)
    assert event.kind is SocketEventKind.NOTIFICATION


@pytest.mark.asyncio
async def test_reply_with_unhashable_id_is_ignored(transport, connector):
    """Test that a reply whose id is not an integer leaves the reader running."""
    transport.connect()
    await next_event(transport)
    ws = connector.sockets[0]

    task = asyncio.create_task(transport.call("slotSubscribe", []))
    await wait_until(lambda: ws.sent)
    ws.feed({"jsonrpc": "2.0", "id": [1], "result": 5})
    ws.feed({"jsonrpc": "2.0", "id": True, "result": 6})
    ws.feed({"jsonrpc": "2.0", "id": ws.sent[0]["id"], "result": 7})

    assert await task == 7
    assert transport.is_open
    assert transport.events.empty()


@pytest.mark.asyncio
async def test_reader_failure_still_reports_close(transport, connector):
    """Test that an unexpected reader error closes the socket and emits CLOSE."""
    transport.connect()
    await next_event(transport)
    ws = connector.sockets[0]

    task = asyncio.create_task(transport.call("slotSubscribe", []))
    await wait_until(lambda: ws.sent)
    ws.fail(RuntimeError("decoder exploded"))

    event = await next_event(transport)
    assert event.kind is SocketEventKind.CLOSE
    assert event.code == 1011
    assert not event.initiated_locally
    assert not transport.is_open
    with pytest.raises(TransportError):
        await task

    transport.connect()
    assert (await next_event(transport)).kind is SocketEventKind.OPEN
    assert len(connector.sockets) == 2
