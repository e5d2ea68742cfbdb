"""Redis-backed progress store.

Each document is an orjson-encoded string under its logical key.
Transactions use Redis optimistic locking: keys are WATCHed as they are
read, buffered writes are queued after MULTI, and EXEC aborts with a
WatchError if any watched key changed in between.
"""

from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING

import structlog
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from redis.exceptions import WatchError

from progression_engine.exceptions import StoreUnavailable

from .base import (
    DEFAULT_MAX_ATTEMPTS,
    ConflictDetected,
    ProgressStore,
    Record,
    T,
    Transaction,
    decode_record,
    encode_record,
)


if TYPE_CHECKING:
    from redis.asyncio import Redis
    from redis.asyncio.client import Pipeline


logger = structlog.get_logger(__name__)

_UNAVAILABLE_ERRORS = (RedisConnectionError, RedisTimeoutError)


class _RedisTransaction(Transaction):
    def __init__(self, pipe: "Pipeline") -> None:
        super().__init__()
        self._pipe = pipe
        self._watched: set[str] = set()

    async def watch(self, *keys: str) -> None:
        new_keys = [k for k in keys if k not in self._watched]
        if new_keys:
            await self._pipe.watch(*new_keys)
            self._watched.update(new_keys)

    async def _read(self, key: str) -> Record | None:
        await self.watch(key)
        return decode_record(await self._pipe.get(key))


class RedisProgressStore(ProgressStore):
    """Progress store on a Redis client created with ``decode_responses=False``."""

    def __init__(self, redis: "Redis", max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> None:
        super().__init__(max_attempts=max_attempts)
        self.redis = redis

    async def get(self, key: str) -> Record | None:
        try:
            return decode_record(await self.redis.get(key))
        except _UNAVAILABLE_ERRORS as e:
            logger.error("redis_store_read_failed", key=key, error=str(e))
            raise StoreUnavailable from e

    async def set(self, key: str, record: Record) -> None:
        try:
            await self.redis.set(key, encode_record(record))
        except _UNAVAILABLE_ERRORS as e:
            logger.error("redis_store_write_failed", key=key, error=str(e))
            raise StoreUnavailable from e

    async def get_many(self, keys: Sequence[str]) -> list[Record | None]:
        if not keys:
            return []
        try:
            raws = await self.redis.mget(list(keys))
        except _UNAVAILABLE_ERRORS as e:
            logger.error("redis_store_read_failed", keys=list(keys), error=str(e))
            raise StoreUnavailable from e
        return [decode_record(raw) for raw in raws]

    async def _run_transaction(
        self,
        read_keys: Sequence[str],
        write_fn: Callable[[Transaction], Awaitable[T]],
    ) -> T:
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                tx = _RedisTransaction(pipe)
                await tx.watch(*read_keys)

                result = await write_fn(tx)

                pipe.multi()
                for key, record in tx.writes.items():
                    pipe.set(key, encode_record(record))
                try:
                    await pipe.execute()
                except WatchError as e:
                    raise ConflictDetected(sorted(tx._watched)) from e

                return result
        except _UNAVAILABLE_ERRORS as e:
            logger.error("redis_store_transaction_failed", error=str(e))
            raise StoreUnavailable from e
