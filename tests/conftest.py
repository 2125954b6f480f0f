"""Shared test fixtures and fakes."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable, Coroutine
from typing import Any, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient
from websockets.exceptions import ConnectionClosedError

from samvaad.core import state
from samvaad.services.chat_service import ChatService
from samvaad.services.connection_manager import ConnectionManager
from samvaad.services.message_store import InMemoryMessageStore
from samvaad.services.user_manager import UserManager
from samvaad.services.volunteer_manager import VolunteerManager


@pytest.fixture
def advance() -> Callable[[int], Coroutine[Any, Any, None]]:
    """Yield control so pending tasks (channel readers) can run."""

    async def _advance(n: int = 10) -> None:
        for _ in range(n):
            await asyncio.sleep(0)

    return _advance


# ============================================================================
# SERVER SIDE
# ============================================================================

@pytest.fixture
def app_state(tmp_path, monkeypatch):
    """Fresh in-memory singletons with JSON files under tmp_path."""
    manager = ConnectionManager()
    store = InMemoryMessageStore()
    monkeypatch.setattr(state, "connection_manager", manager)
    monkeypatch.setattr(state, "message_store", store)
    monkeypatch.setattr(state, "chat_service", ChatService(store=store, publisher=manager))
    monkeypatch.setattr(state, "user_manager", UserManager(str(tmp_path / "users.json")))
    monkeypatch.setattr(state, "volunteer_manager", VolunteerManager(str(tmp_path / "volunteers.json")))
    monkeypatch.setattr(state, "redis_service", None)
    return state


@pytest.fixture
def client(app_state):
    from samvaad.main import app

    with TestClient(app) as c:
        yield c


class FakeWebSocket:
    """Stands in for fastapi.WebSocket inside the connection manager."""

    def __init__(self, name: str = "ws", fail: bool = False):
        self.name = name
        self.fail = fail
        self.accepted = False
        self.sent: List[dict] = []

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, data: dict) -> None:
        if self.fail:
            raise RuntimeError("connection closed")
        self.sent.append(data)

    def __repr__(self) -> str:
        return f"FakeWebSocket({self.name})"


# ============================================================================
# CLIENT SIDE
# ============================================================================

class FakeConnection:
    """
    Client transport double for DeliveryChannel.

    Frames pushed with push() are yielded by async iteration; drop() ends the
    stream as if the server went away. ``on_send`` lets a test play server.
    """

    def __init__(self, on_send: Optional[Callable[["FakeConnection", dict], None]] = None):
        self.on_send = on_send
        self.sent: List[dict] = []
        self.closed = False
        self._incoming: asyncio.Queue = asyncio.Queue()

    async def send(self, raw: str) -> None:
        if self.closed:
            raise ConnectionClosedError(None, None)
        frame = json.loads(raw)
        self.sent.append(frame)
        if self.on_send:
            self.on_send(self, frame)

    def push(self, frame: dict) -> None:
        self._incoming.put_nowait(json.dumps(frame))

    def drop(self) -> None:
        self.closed = True
        self._incoming.put_nowait(None)

    async def close(self) -> None:
        self.drop()

    def actions(self) -> List[str]:
        return [f["action"] for f in self.sent]

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        item = await self._incoming.get()
        if item is None:
            raise StopAsyncIteration
        return item


class FakeConnector:
    """Callable passed as DeliveryChannel(connector=...)."""

    def __init__(self, failures: int = 0, on_send=None, error: Optional[Callable[[], BaseException]] = None):
        self.failures = failures
        self.on_send = on_send
        self.error = error or (lambda: OSError("connection refused"))
        self.calls = 0
        self.connections: List[FakeConnection] = []

    async def __call__(self, url: str) -> FakeConnection:
        self.calls += 1
        if self.failures > 0:
            self.failures -= 1
            raise self.error()
        connection = FakeConnection(on_send=self.on_send)
        self.connections.append(connection)
        return connection

    @property
    def latest(self) -> FakeConnection:
        return self.connections[-1]


def echo_server(with_client_id: bool = True):
    """on_send hook that answers like the real server does."""
    counter = {"next": 0}

    def handle(connection: FakeConnection, frame: dict) -> None:
        if frame["action"] == "join":
            connection.push({"type": "joined", "roomId": frame["roomId"], "memberCount": 1})
        elif frame["action"] == "sendMessage":
            counter["next"] += 1
            data = dict(frame["data"], id=str(counter["next"]))
            if not with_client_id:
                data.pop("clientId", None)
            connection.push({"type": "receiveMessage", "data": data})

    return handle


def history_client(messages: Optional[list] = None, status_code: int = 200) -> httpx.AsyncClient:
    """httpx client whose GET /messages/... returns a canned response."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=messages if messages is not None else [])

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))
