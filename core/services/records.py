"""
Record storage interface for flat collections keyed by opaque string ids.

The facility roster is written through this interface; collaborators outside the
monitoring core (personnel, work orders, ...) can use the same contract.
"""

import copy
import threading
import uuid
from typing import Any, Protocol

from core.domain.errors import InvalidRequestError, NotFoundError

Record = dict[str, Any]


class RecordStore(Protocol):
    """
    CRUD over one collection of JSON-like records.

    Every record carries its key under "id". get/update/delete raise NotFoundError
    for unknown ids.
    """

    collection: str

    def create(self, record: Record) -> Record: ...

    def get(self, record_id: str) -> Record: ...

    def list(self) -> list[Record]: ...

    def update(self, record_id: str, changes: Record) -> Record: ...

    def delete(self, record_id: str) -> None: ...


class InMemoryRecordStore:
    """Lock-serialized dict-backed store. Returns copies so callers can't alias state."""

    def __init__(self, collection: str, records: list[Record] | None = None) -> None:
        self.collection = collection
        self._lock = threading.RLock()
        self._records: dict[str, Record] = {}
        for record in records or []:
            self._insert(record)

    def create(self, record: Record) -> Record:
        with self._lock:
            stored = self._prepare(record)
            self._commit(stored["id"], stored)
            return copy.deepcopy(stored)

    def get(self, record_id: str) -> Record:
        with self._lock:
            return copy.deepcopy(self._require(record_id))

    def list(self) -> list[Record]:
        with self._lock:
            return [copy.deepcopy(record) for record in self._records.values()]

    def update(self, record_id: str, changes: Record) -> Record:
        with self._lock:
            current = self._require(record_id)
            if "id" in changes and changes["id"] != record_id:
                raise InvalidRequestError("record id cannot be changed")
            updated = {**copy.deepcopy(current), **copy.deepcopy(changes)}
            self._commit(record_id, updated)
            return copy.deepcopy(updated)

    def delete(self, record_id: str) -> None:
        with self._lock:
            self._require(record_id)
            self._commit(record_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _insert(self, record: Record) -> Record:
        stored = self._prepare(record)
        self._records[stored["id"]] = stored
        return stored

    def _prepare(self, record: Record) -> Record:
        stored = copy.deepcopy(record)
        record_id = str(stored.get("id") or uuid.uuid4().hex)
        if record_id in self._records:
            raise InvalidRequestError(f"{self.collection} record already exists: {record_id}")
        stored["id"] = record_id
        return stored

    def _commit(self, record_id: str, record: Record | None) -> None:
        """Swap in the new record (None deletes) and restore the old one if the hook fails."""
        previous = self._records.get(record_id)
        if record is None:
            del self._records[record_id]
        else:
            self._records[record_id] = record
        try:
            self._after_mutation()
        except BaseException:
            if previous is None:
                self._records.pop(record_id, None)
            else:
                self._records[record_id] = previous
            raise

    def _require(self, record_id: str) -> Record:
        try:
            return self._records[record_id]
        except KeyError:
            raise NotFoundError(self.collection, record_id) from None

    def _after_mutation(self) -> None:
        """Hook for durable subclasses; the in-memory store has nothing to flush."""
