"""Tests for the Redis progress store (Redis client mocked).

Covers:
- Documents stored as orjson bytes
- WATCH on read, MULTI/EXEC on commit
- WatchError retries and connection failures
"""

from unittest.mock import AsyncMock, Mock

import orjson
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import WatchError

from progression_engine.exceptions import StoreUnavailable, TransactionConflict
from progression_engine.store.base import Transaction
from progression_engine.store.redis_store import RedisProgressStore


def make_pipeline(stored: dict[str, dict] | None = None) -> Mock:
    """Pipeline mock usable as ``async with redis.pipeline(...)``."""
    stored = stored or {}
    pipe = Mock()
    pipe.__aenter__ = AsyncMock(return_value=pipe)
    pipe.__aexit__ = AsyncMock(return_value=False)
    pipe.watch = AsyncMock()
    pipe.get = AsyncMock(
        side_effect=lambda key: orjson.dumps(stored[key]) if key in stored else None
    )
    pipe.multi = Mock()
    pipe.set = Mock()
    pipe.execute = AsyncMock(return_value=[True])
    return pipe


@pytest.fixture
def mock_redis_client():
    client = Mock()
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock(return_value=True)
    client.mget = AsyncMock(return_value=[])
    return client


class TestRedisGetSet:
    @pytest.mark.asyncio
    async def test_get_decodes_document(self, mock_redis_client):
        mock_redis_client.get.return_value = orjson.dumps({"completed": True})
        store = RedisProgressStore(mock_redis_client)

        assert await store.get("progress:u1:c1") == {"completed": True}
        mock_redis_client.get.assert_awaited_once_with("progress:u1:c1")

    @pytest.mark.asyncio
    async def test_set_encodes_document(self, mock_redis_client):
        store = RedisProgressStore(mock_redis_client)

        await store.set("progress:u1:c1", {"watched_percent": 50})

        mock_redis_client.set.assert_awaited_once_with(
            "progress:u1:c1", orjson.dumps({"watched_percent": 50})
        )

    @pytest.mark.asyncio
    async def test_get_many_uses_mget(self, mock_redis_client):
        mock_redis_client.mget.return_value = [orjson.dumps({"v": 1}), None]
        store = RedisProgressStore(mock_redis_client)

        assert await store.get_many(["a", "b"]) == [{"v": 1}, None]

    @pytest.mark.asyncio
    async def test_connection_error_maps_to_store_unavailable(self, mock_redis_client):
        mock_redis_client.get.side_effect = RedisConnectionError("down")
        store = RedisProgressStore(mock_redis_client)

        with pytest.raises(StoreUnavailable):
            await store.get("progress:u1:c1")


class TestRedisTransact:
    @pytest.mark.asyncio
    async def test_watches_reads_and_queues_writes(self, mock_redis_client):
        pipe = make_pipeline({"counter": {"n": 1}})
        mock_redis_client.pipeline = Mock(return_value=pipe)
        store = RedisProgressStore(mock_redis_client)

        async def write(tx: Transaction) -> int:
            current = await tx.get("counter")
            tx.set("counter", {"n": current["n"] + 1})
            return current["n"] + 1

        result = await store.transact(["counter"], write)

        assert result == 2
        mock_redis_client.pipeline.assert_called_once_with(transaction=True)
        pipe.watch.assert_awaited_once_with("counter")
        pipe.multi.assert_called_once()
        pipe.set.assert_called_once_with("counter", orjson.dumps({"n": 2}))
        pipe.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_lazy_reads_are_watched_once(self, mock_redis_client):
        pipe = make_pipeline({"a": {"v": 1}})
        mock_redis_client.pipeline = Mock(return_value=pipe)
        store = RedisProgressStore(mock_redis_client)

        async def write(tx: Transaction) -> None:
            await tx.get("a")
            await tx.get("b")
            tx.set("b", {"v": 2})

        await store.transact(["a"], write)

        watched = [call.args for call in pipe.watch.await_args_list]
        assert watched == [("a",), ("b",)]

    @pytest.mark.asyncio
    async def test_watch_error_retries(self, mock_redis_client):
        first = make_pipeline()
        first.execute.side_effect = WatchError("changed")
        second = make_pipeline()
        mock_redis_client.pipeline = Mock(side_effect=[first, second])
        store = RedisProgressStore(mock_redis_client)
        runs = 0

        async def write(tx: Transaction) -> int:
            nonlocal runs
            runs += 1
            tx.set("k", {"run": runs})
            return runs

        assert await store.transact(["k"], write) == 2
        second.set.assert_called_once_with("k", orjson.dumps({"run": 2}))

    @pytest.mark.asyncio
    async def test_persistent_watch_errors_raise_conflict(self, mock_redis_client):
        pipes = [make_pipeline() for _ in range(2)]
        for pipe in pipes:
            pipe.execute.side_effect = WatchError("changed")
        mock_redis_client.pipeline = Mock(side_effect=pipes)
        store = RedisProgressStore(mock_redis_client, max_attempts=2)

        async def write(tx: Transaction) -> None:
            tx.set("k", {"v": 1})

        with pytest.raises(TransactionConflict):
            await store.transact(["k"], write)

    @pytest.mark.asyncio
    async def test_connection_error_during_transaction(self, mock_redis_client):
        pipe = make_pipeline()
        pipe.watch.side_effect = RedisConnectionError("down")
        mock_redis_client.pipeline = Mock(return_value=pipe)
        store = RedisProgressStore(mock_redis_client)

        async def write(tx: Transaction) -> None:
            tx.set("k", {"v": 1})

        with pytest.raises(StoreUnavailable):
            await store.transact(["k"], write)
