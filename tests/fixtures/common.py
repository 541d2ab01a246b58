"""Common test fixtures for the Solana connection tests.

This module provides in-memory stand-ins for the HTTP endpoint, the
WebSocket transport and transaction values.
"""

import asyncio
import hashlib
import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import base58
import httpx
import pytest
import pytest_asyncio

from solana_connection.rpc_channel import RpcChannel
from solana_connection.subscriptions import SubscriptionManager
from solana_connection.websocket import SocketEvent, SocketEventKind

RPC_URL = "http://localhost:8899"

SYSTEM_PROGRAM = "11111111111111111111111111111111"
VOTE_PROGRAM = "Vote111111111111111111111111111111111111111"
TOKEN_PROGRAM = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
CLOCK_SYSVAR = "SysvarC1ock11111111111111111111111111111111"

SIGNATURE = (
    "5VERv8NMvzbJMEkV8xnrLkEaWRtSz9CosKDYjCJjBRnbJLgp8uirBgmQpjKhoR4tjF3ZpRzrFmBV6UjKdiSZkQUW"
)


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the event loop until ``predicate`` holds."""
    async def poll():
        while not predicate():
            await asyncio.sleep(0)

    await asyncio.wait_for(poll(), timeout)


def context(value: Any, slot: int = 1) -> Dict[str, Any]:
    """Wrap a value the way context-carrying RPC results are wrapped."""
    return {"context": {"slot": slot}, "value": value}


def make_account_result(lamports: int = 5000, data: bytes = b"hello", owner: str = SYSTEM_PROGRAM):
    return {
        "executable": False,
        "owner": owner,
        "lamports": lamports,
        "data": base58.b58encode(data).decode("ascii"),
        "rentEpoch": 3,
    }


@dataclass
class ErrorReply:
    """A JSON-RPC error the stub answers with."""

    code: int
    message: str


class RpcStub:
    """In-memory JSON RPC endpoint served through ``httpx.MockTransport``.

    ``routes`` maps a method to its result, to an ``ErrorReply``, or to a
    callable receiving the params and returning either.
    """

    def __init__(self):
        self.routes: Dict[str, Any] = {}
        self.requests: List[Dict[str, Any]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.requests.append(payload)

        route = self.routes.get(payload["method"], ErrorReply(-32601, "Method not found"))
        outcome = route(payload["params"]) if callable(route) else route

        body = {"jsonrpc": "2.0", "id": payload["id"]}
        if isinstance(outcome, ErrorReply):
            body["error"] = {"code": outcome.code, "message": outcome.message}
        else:
            body["error"] = None
            body["result"] = outcome
        return httpx.Response(200, json=body)

    def calls(self, method: str) -> List[List[Any]]:
        """Params of every request made for ``method``."""
        return [request["params"] for request in self.requests if request["method"] == method]

    def channel(self) -> RpcChannel:
        client = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        return RpcChannel(RPC_URL, http_client=client)


class FakeSocket:
    """Stand-in for ``WebSocketTransport`` that records calls.

    Subscribe calls answer with increasing server ids starting at 100 unless
    ``replies`` holds a value (or exception) for the method. With ``hold``
    set, calls wait on futures collected in ``pending`` instead.
    """

    def __init__(self):
        self.events: "asyncio.Queue[SocketEvent]" = asyncio.Queue()
        self.connect_count = 0
        self.close_count = 0
        self.calls: List[tuple] = []
        self.replies: Dict[str, Any] = {}
        self.hold = False
        self.pending: List[asyncio.Future] = []
        self._next_server_id = 100

    def connect(self) -> None:
        self.connect_count += 1

    def close(self) -> None:
        self.close_count += 1

    def open(self) -> None:
        self.events.put_nowait(SocketEvent(SocketEventKind.OPEN))

    def drop(self, code: int = 1006) -> None:
        self.events.put_nowait(SocketEvent(SocketEventKind.CLOSE, code=code, reason="gone"))

    def notify(self, method: str, subscription: int, result: Any) -> None:
        self.events.put_nowait(SocketEvent(
            SocketEventKind.NOTIFICATION,
            method=method,
            params={"subscription": subscription, "result": result}
        ))

    def calls_for(self, method: str) -> List[List[Any]]:
        return [params for name, params in self.calls if name == method]

    async def call(self, method: str, params: List[Any]) -> Any:
        self.calls.append((method, list(params)))
        if self.hold:
            future = asyncio.get_running_loop().create_future()
            self.pending.append(future)
            return await future

        if method in self.replies:
            reply = self.replies[method]
            if isinstance(reply, Exception):
                raise reply
            return reply
        if method.endswith("Unsubscribe"):
            return True
        server_id = self._next_server_id
        self._next_server_id += 1
        return server_id

    async def aclose(self) -> None:
        self.close()


class FakeTransaction:
    """Transaction whose signature is a digest of its blockhash and payload."""

    def __init__(self, payload: bytes = b"transfer", nonce_info: Optional[Any] = None):
        self.payload = payload
        self.recent_blockhash: Optional[str] = None
        self.nonce_info = nonce_info
        self.signature: Optional[bytes] = None
        self.signed_with: List[Optional[str]] = []

    def sign(self, *signers) -> None:
        self.signed_with.append(self.recent_blockhash)
        self.signature = hashlib.sha512(
            f"{self.recent_blockhash}".encode() + self.payload
        ).digest()

    def serialize(self) -> bytes:
        return self.signature + self.payload


class FakeClock:
    """Monotonic clock advanced by the fake sleep."""

    def __init__(self):
        self.now = 1000.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    """Create a controllable clock."""
    return FakeClock()


@pytest.fixture
def fake_socket():
    """Create an in-memory WebSocket transport."""
    return FakeSocket()


@pytest.fixture
def rpc_stub():
    """Create an in-memory JSON RPC endpoint."""
    return RpcStub()


@pytest_asyncio.fixture
async def subscription_manager(fake_socket):
    """Create a subscription manager over the fake socket."""
    manager = SubscriptionManager(fake_socket)
    yield manager
    await manager.close()

