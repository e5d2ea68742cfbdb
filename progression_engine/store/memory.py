"""In-process progress store.

Documents are kept encoded, each with a monotonically increasing version.
Transactions record the version of every key they read and commit under a
lock only if those versions are unchanged (compare-and-set). Used for local
development and tests; state does not survive the process.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence

import structlog

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


logger = structlog.get_logger(__name__)


class _MemoryTransaction(Transaction):
    def __init__(self, store: "MemoryProgressStore") -> None:
        super().__init__()
        self._store = store
        self.read_versions: dict[str, int] = {}

    def watch(self, key: str) -> None:
        self.read_versions.setdefault(key, self._store.version_of(key))

    async def _read(self, key: str) -> Record | None:
        self.watch(key)
        return decode_record(self._store._data.get(key))


class MemoryProgressStore(ProgressStore):
    """Versioned dictionary store with compare-and-set commits."""

    def __init__(self, max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> None:
        super().__init__(max_attempts=max_attempts)
        self._data: dict[str, bytes] = {}
        self._versions: dict[str, int] = {}
        self._commit_lock = asyncio.Lock()

    def version_of(self, key: str) -> int:
        return self._versions.get(key, 0)

    async def get(self, key: str) -> Record | None:
        return decode_record(self._data.get(key))

    async def set(self, key: str, record: Record) -> None:
        self._write(key, record)

    def _write(self, key: str, record: Record) -> None:
        self._data[key] = encode_record(record)
        self._versions[key] = self.version_of(key) + 1

    async def _run_transaction(
        self,
        read_keys: Sequence[str],
        write_fn: Callable[[Transaction], Awaitable[T]],
    ) -> T:
        tx = _MemoryTransaction(self)
        for key in read_keys:
            tx.watch(key)

        result = await write_fn(tx)

        async with self._commit_lock:
            changed = [
                key
                for key, version in tx.read_versions.items()
                if self.version_of(key) != version
            ]
            if changed:
                logger.debug("memory_transaction_conflict", keys=changed)
                raise ConflictDetected(changed)

            for key, record in tx.writes.items():
                self._write(key, record)

        return result
