"""
Key-value store for consultations, patients, trials and matches.

Records are stored as JSON-like dicts (camelCase keys, as dumped by the
schemas). Services validate them back into models on read.
"""
import asyncio
import copy
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

CONSULTATIONS = "consultations"
PATIENTS = "patients"
TRIALS = "trials"
MATCHES = "matches"

COLLECTIONS = (CONSULTATIONS, PATIENTS, TRIALS, MATCHES)

Record = Dict[str, Any]


def new_id(prefix: str = "") -> str:
    return f"{prefix}{uuid.uuid4().hex}"


class KeyValueStore(ABC):
    """Async key-value store, one namespace per collection."""

    @abstractmethod
    async def get(self, collection: str, key: str) -> Optional[Record]:
        """Return a copy of the record, or None."""

    @abstractmethod
    async def put(self, collection: str, key: str, value: Record) -> None:
        """Insert or replace a record."""

    @abstractmethod
    async def update(self, collection: str, key: str, patch: Record) -> Optional[Record]:
        """
        Merge `patch` into an existing record atomically.

        Top-level keys in the patch replace those in the record; all other
        fields are left as they are. Returns a copy of the updated record,
        or None if there is no such record.
        """

    @abstractmethod
    async def delete(self, collection: str, key: str) -> bool:
        """Delete a record. Returns False if it did not exist."""

    @abstractmethod
    async def list(
        self,
        collection: str,
        predicate: Optional[Callable[[Record], bool]] = None,
    ) -> List[Record]:
        """All records in insertion order, optionally filtered."""


class InMemoryKeyValueStore(KeyValueStore):
    """
    Process-local store guarded by an asyncio Lock.

    Values are deep-copied in and out so callers never share mutable state
    with the store.
    """

    def __init__(self):
        self._data: Dict[str, Dict[str, Record]] = {name: {} for name in COLLECTIONS}
        self._lock = asyncio.Lock()

    def _collection(self, collection: str) -> Dict[str, Record]:
        if collection not in self._data:
            raise KeyError(f"Unknown collection: {collection}")
        return self._data[collection]

    async def get(self, collection: str, key: str) -> Optional[Record]:
        async with self._lock:
            value = self._collection(collection).get(key)
            return copy.deepcopy(value) if value is not None else None

    async def put(self, collection: str, key: str, value: Record) -> None:
        async with self._lock:
            self._collection(collection)[key] = copy.deepcopy(value)
        logger.debug(f"Stored {collection}/{key}")

    async def update(self, collection: str, key: str, patch: Record) -> Optional[Record]:
        async with self._lock:
            records = self._collection(collection)
            if key not in records:
                return None
            records[key].update(copy.deepcopy(patch))
            logger.debug(f"Updated {collection}/{key}: {sorted(patch)}")
            return copy.deepcopy(records[key])

    async def delete(self, collection: str, key: str) -> bool:
        async with self._lock:
            return self._collection(collection).pop(key, None) is not None

    async def list(
        self,
        collection: str,
        predicate: Optional[Callable[[Record], bool]] = None,
    ) -> List[Record]:
        async with self._lock:
            values = [copy.deepcopy(v) for v in self._collection(collection).values()]
        if predicate is None:
            return values
        return [v for v in values if predicate(v)]


_store: Optional[KeyValueStore] = None


def get_store() -> KeyValueStore:
    """Get the process-wide store."""
    global _store
    if _store is None:
        _store = InMemoryKeyValueStore()
    return _store


def set_store(store: Optional[KeyValueStore]) -> None:
    """Replace the process-wide store (None resets to a fresh in-memory one on next use)."""
    global _store
    _store = store
