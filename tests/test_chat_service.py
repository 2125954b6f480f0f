"""Tests for the persist-then-broadcast send path."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from samvaad.core.errors import StoreUnavailable, ValidationError
from samvaad.models.models import SendMessageRequest
from samvaad.services.chat_service import ChatService
from samvaad.services.connection_manager import ConnectionManager
from samvaad.services.message_store import InMemoryMessageStore, MessageStore
from tests.conftest import FakeWebSocket


class DownStore(MessageStore):
    async def append(self, room_id, sender_id, body, timestamp, client_id=None):
        raise StoreUnavailable("down")

    async def list_by_room(self, room_id):
        raise StoreUnavailable("down")


class ExplodingPublisher:
    async def broadcast_to_room(self, room_id, message):
        raise RuntimeError("fan-out failed")


@pytest.fixture
def manager() -> ConnectionManager:
    return ConnectionManager()


@pytest.fixture
def store() -> InMemoryMessageStore:
    return InMemoryMessageStore()


@pytest.fixture
def service(store, manager) -> ChatService:
    return ChatService(store=store, publisher=manager)


async def member(manager, name, room="A_B") -> FakeWebSocket:
    ws = FakeWebSocket(name)
    await manager.connect(ws, name)
    manager.join_room(ws, room)
    return ws


def request(body="hello", sender="A", **kwargs) -> SendMessageRequest:
    return SendMessageRequest(room_id="A_B", sender_id=sender, body=body, **kwargs)


async def test_send_persists_and_echoes_to_all_members(service, store, manager) -> None:
    a = await member(manager, "A")
    b = await member(manager, "B")

    message = await service.send(request(client_id="c-1"))

    assert [m.id for m in await store.list_by_room("A_B")] == [message.id]
    for ws in (a, b):
        assert ws.sent == [{"type": "receiveMessage", "data": message.to_wire()}]
        data = ws.sent[0]["data"]
        assert data["roomId"] == "A_B"
        assert data["senderId"] == "A"
        assert data["body"] == "hello"
        assert data["clientId"] == "c-1"
        assert data["id"] == message.id
    assert service.message_count == 1


async def test_client_timestamp_kept(service) -> None:
    sent_at = datetime(2024, 1, 1, 9, 30, tzinfo=timezone.utc)
    message = await service.send(request(timestamp=sent_at))
    assert message.timestamp == sent_at


async def test_authenticated_sender_overrides_payload(service) -> None:
    message = await service.send(request(sender="spoofed"), sender_id="A")
    assert message.sender_id == "A"


async def test_blank_body_rejected_before_store(service, store, manager) -> None:
    a = await member(manager, "A")
    with pytest.raises(ValidationError):
        await service.send(request(body="   "))
    assert store.rooms == {}
    assert a.sent == []


async def test_store_down_nothing_broadcast(manager) -> None:
    a = await member(manager, "A")
    service = ChatService(store=DownStore(), publisher=manager)

    with pytest.raises(StoreUnavailable):
        await service.send(request())

    assert a.sent == []
    assert service.message_count == 0


async def test_broadcast_failure_keeps_stored_message(store) -> None:
    service = ChatService(store=store, publisher=ExplodingPublisher())
    message = await service.send(request())
    assert [m.id for m in await store.list_by_room("A_B")] == [message.id]


async def test_concurrent_sends_arrive_in_store_order(service, store, manager) -> None:
    a = await member(manager, "A")
    b = await member(manager, "B")

    await asyncio.gather(*(service.send(request(body=f"m{n}")) for n in range(10)))

    stored = [m.body for m in await store.list_by_room("A_B")]
    assert [f["data"]["body"] for f in a.sent] == stored
    assert [f["data"]["body"] for f in b.sent] == stored


async def test_history_for_fresh_room_is_empty(service) -> None:
    assert await service.history("A_B") == []
