"""Tests for the message store backends."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import fakeredis
import pytest

from samvaad.core.errors import StoreUnavailable, ValidationError
from samvaad.services.message_store import InMemoryMessageStore, RedisMessageStore

T0 = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def memory_store() -> InMemoryMessageStore:
    return InMemoryMessageStore()


@pytest.fixture
async def redis_store():
    store = RedisMessageStore(client=fakeredis.FakeAsyncRedis(decode_responses=True))
    await store.connect()
    yield store
    await store.close()


@pytest.fixture(params=["memory", "redis"])
async def store(request, memory_store, redis_store):
    return memory_store if request.param == "memory" else redis_store


class TestAppend:
    async def test_append_then_list_contains_message_once(self, store) -> None:
        message = await store.append("A_B", "A", "hello", T0)
        history = await store.list_by_room("A_B")

        assert [m.id for m in history] == [message.id]
        assert history[0].room_id == "A_B"
        assert history[0].sender_id == "A"
        assert history[0].body == "hello"
        assert history[0].timestamp == T0

    async def test_ids_are_unique(self, store) -> None:
        first = await store.append("A_B", "A", "one", T0)
        second = await store.append("A_B", "B", "two", T0)
        assert first.id and second.id
        assert first.id != second.id

    @pytest.mark.parametrize("body", ["", "   ", "\n\t"])
    async def test_blank_body_rejected_and_not_stored(self, store, body) -> None:
        with pytest.raises(ValidationError):
            await store.append("A_B", "A", body, T0)
        assert await store.list_by_room("A_B") == []

    async def test_client_id_echoed_but_not_persisted(self, store) -> None:
        message = await store.append("A_B", "A", "hi", T0, client_id="tmp-1")
        assert message.client_id == "tmp-1"
        history = await store.list_by_room("A_B")
        assert history[0].client_id is None


class TestListByRoom:
    async def test_unknown_room_is_empty(self, store) -> None:
        assert await store.list_by_room("nobody_here") == []

    async def test_rooms_are_isolated(self, store) -> None:
        await store.append("A_B", "A", "for B", T0)
        await store.append("A_C", "A", "for C", T0)
        assert [m.body for m in await store.list_by_room("A_B")] == ["for B"]

    async def test_ordered_by_timestamp_then_insertion(self, store) -> None:
        await store.append("A_B", "A", "late", T0 + timedelta(seconds=5))
        await store.append("A_B", "B", "tie-1", T0)
        await store.append("A_B", "A", "tie-2", T0)
        await store.append("A_B", "B", "early", T0 - timedelta(seconds=5))

        bodies = [m.body for m in await store.list_by_room("A_B")]
        assert bodies == ["early", "tie-1", "tie-2", "late"]


class TestRedisUnavailable:
    async def test_append_raises_store_unavailable(self) -> None:
        server = fakeredis.FakeServer()
        store = RedisMessageStore(client=fakeredis.FakeAsyncRedis(server=server, decode_responses=True))
        server.connected = False

        with pytest.raises(StoreUnavailable):
            await store.append("A_B", "A", "hello", T0)

    async def test_list_raises_store_unavailable(self) -> None:
        server = fakeredis.FakeServer()
        store = RedisMessageStore(client=fakeredis.FakeAsyncRedis(server=server, decode_responses=True))
        server.connected = False

        with pytest.raises(StoreUnavailable):
            await store.list_by_room("A_B")

    async def test_connect_raises_store_unavailable(self) -> None:
        server = fakeredis.FakeServer()
        server.connected = False
        store = RedisMessageStore(client=fakeredis.FakeAsyncRedis(server=server, decode_responses=True))

        with pytest.raises(StoreUnavailable):
            await store.connect()

    async def test_not_connected(self) -> None:
        store = RedisMessageStore(url="redis://localhost:6379")
        with pytest.raises(StoreUnavailable):
            await store.list_by_room("A_B")

    async def test_ping_reports_outage(self) -> None:
        server = fakeredis.FakeServer()
        store = RedisMessageStore(client=fakeredis.FakeAsyncRedis(server=server, decode_responses=True))
        assert await store.ping() is True

        server.connected = False
        assert await store.ping() is False

    async def test_ping_before_connect(self) -> None:
        assert await RedisMessageStore(url="redis://localhost:6379").ping() is False


async def test_memory_store_always_pings(memory_store) -> None:
    assert await memory_store.ping() is True
