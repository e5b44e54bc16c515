"""Test fixtures — an in-memory push channel and REST backend.

Learn: Nothing here touches the network.

1. FakeConnector stands in for websockets.connect(). Every call records
   the URL and hands back a FakeSocket, or raises `fail_with`, and can be
   held mid-handshake with a `gate` event.
2. FakeSocket is an async-iterable socket. push() delivers a frame,
   drop(code) simulates the server closing the connection.
3. rest_backend builds a PedalAPI on top of httpx.MockTransport.

Timing knobs (heartbeat, backoff) are shrunk to milliseconds so the
connection manager's real timers run inside a test in well under a second.
"""

import asyncio
import json
from typing import Any, Callable, Optional

import httpx
import pytest
import structlog

from pedalsync.api.client import PedalAPI
from pedalsync.realtime.backoff import ReconnectPolicy

ENDPOINT = "wss://push.test/ws/orders"


class FakeSocket:
    def __init__(self):
        self.sent: list[str] = []
        self.close_code: Optional[int] = None
        self.closed = False
        self._inbox: asyncio.Queue = asyncio.Queue()

    @property
    def sent_frames(self) -> list[dict]:
        return [json.loads(s) for s in self.sent]

    def push(self, frame: Any) -> None:
        """Deliver one server → client frame (dicts are JSON-encoded)."""
        self._inbox.put_nowait(json.dumps(frame) if isinstance(frame, dict) else frame)

    def drop(self, code: int = 1006) -> None:
        """Server-side closure with the given close code."""
        if self.closed:
            return
        self.closed = True
        self.close_code = code
        self._inbox.put_nowait(None)

    async def send(self, payload: str) -> None:
        if self.closed:
            raise ConnectionError("socket is closed")
        self.sent.append(payload)

    async def close(self, code: int = 1000) -> None:
        if self.closed:
            return
        self.closed = True
        self.close_code = code
        self._inbox.put_nowait(None)

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        item = await self._inbox.get()
        if item is None:
            raise StopAsyncIteration
        return item


class FakeConnector:
    def __init__(self):
        self.urls: list[str] = []
        self.sockets: list[FakeSocket] = []
        self.fail_with: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None

    async def __call__(self, url: str) -> FakeSocket:
        self.urls.append(url)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with
        ws = FakeSocket()
        self.sockets.append(ws)
        return ws

    @property
    def last(self) -> FakeSocket:
        return self.sockets[-1]


async def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.001)


def order_payload(order_id: str, status: str = "pending", **extra: Any) -> dict:
    return {
        "id": order_id,
        "order_number": f"ORD-{order_id}",
        "status": status,
        "customer_id": extra.pop("customer_id", "cust-1"),
        "restaurant_id": "rest-1",
        "total_amount": extra.pop("total_amount", 12.5),
        "created_at": "2026-10-01T12:00:00Z",
        **extra,
    }


@pytest.fixture(autouse=True)
def reset_structlog():
    """The CLI reconfigures structlog; keep that from leaking between tests."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def connector():
    return FakeConnector()


@pytest.fixture
def fast_policy():
    """1, 2, 4, 8, 16, 30, 30... milliseconds."""
    return ReconnectPolicy(base_ms=1, max_ms=30, warn_after=3)


@pytest.fixture
def wait_until():
    return _wait_until


@pytest.fixture
def order():
    return order_payload


@pytest.fixture
def rest_backend():
    """Build a PedalAPI whose requests go to `handler(request) -> httpx.Response`."""
    def build(handler, token: Optional[str] = "tok-admin") -> PedalAPI:
        return PedalAPI(
            base_url="https://api.test/api/v1",
            credentials=lambda: token,
            transport=httpx.MockTransport(handler),
        )

    return build
