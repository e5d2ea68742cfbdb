"""Progress store contract.

A document store keyed by composite identifiers with three primitives:

- ``get(key)``: read one document (or None)
- ``set(key, record)``: unconditional upsert, best effort
- ``transact(read_keys, write_fn)``: optimistic read-modify-write across keys

``write_fn`` receives a :class:`Transaction`. Every ``tx.get`` is watched and
every ``tx.set`` is buffered; the buffer commits atomically only if none of the
watched keys changed meanwhile. On conflict the whole ``write_fn`` runs again,
so it must not have side effects outside the transaction.
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

import orjson
import structlog

from progression_engine.exceptions import TransactionConflict


logger = structlog.get_logger(__name__)

Record = dict[str, Any]
T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 5


def encode_record(record: Record) -> bytes:
    """Serialize a document for storage."""
    return orjson.dumps(record)


def decode_record(raw: bytes | str | None) -> Record | None:
    """Deserialize a stored document."""
    if raw is None:
        return None
    return orjson.loads(raw)


class ConflictDetected(Exception):
    """A watched key changed before commit (internal, triggers a retry)."""


class Transaction(ABC):
    """Read-modify-write unit handed to ``write_fn``."""

    def __init__(self) -> None:
        self.writes: dict[str, Record] = {}

    async def get(self, key: str) -> Record | None:
        """Read a key, watching it for the commit check.

        Reads observe this transaction's own buffered writes.
        """
        if key in self.writes:
            return decode_record(encode_record(self.writes[key]))
        return await self._read(key)

    def set(self, key: str, record: Record) -> None:
        """Buffer a write; nothing is visible until commit."""
        self.writes[key] = record

    @abstractmethod
    async def _read(self, key: str) -> Record | None: ...


class ProgressStore(ABC):
    """Persistence abstraction for progression documents."""

    def __init__(self, max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> None:
        self.max_attempts = max_attempts

    @abstractmethod
    async def get(self, key: str) -> Record | None:
        """Read one document."""

    @abstractmethod
    async def set(self, key: str, record: Record) -> None:
        """Unconditional upsert."""

    async def get_many(self, keys: Sequence[str]) -> list[Record | None]:
        """Read several documents (not atomic)."""
        return [await self.get(key) for key in keys]

    async def transact(
        self,
        read_keys: Sequence[str],
        write_fn: Callable[[Transaction], Awaitable[T]],
    ) -> T:
        """Run ``write_fn`` as an optimistic transaction.

        Args:
            read_keys: Keys watched before ``write_fn`` runs
            write_fn: Coroutine reading and writing through the transaction

        Returns:
            Whatever ``write_fn`` returned on the committed run

        Raises:
            TransactionConflict: If every attempt conflicted
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await self._run_transaction(read_keys, write_fn)
            except ConflictDetected:
                logger.info(
                    "transaction_conflict_retry",
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                )

        logger.warning(
            "transaction_conflict_exhausted",
            attempts=self.max_attempts,
            read_keys=list(read_keys),
        )
        raise TransactionConflict(self.max_attempts)

    @abstractmethod
    async def _run_transaction(
        self,
        read_keys: Sequence[str],
        write_fn: Callable[[Transaction], Awaitable[T]],
    ) -> T:
        """Single attempt; raises ConflictDetected when a watched key changed."""
