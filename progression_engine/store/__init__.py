"""Progress store: persistence for progression documents.

Provides:
- Store contract with optimistic multi-key transactions
- In-process backend (development, tests)
- Redis backend (WATCH/MULTI/EXEC)
"""

from .base import ProgressStore, Record, Transaction
from .memory import MemoryProgressStore
from .redis_store import RedisProgressStore


__all__ = [
    "MemoryProgressStore",
    "ProgressStore",
    "Record",
    "RedisProgressStore",
    "Transaction",
]
