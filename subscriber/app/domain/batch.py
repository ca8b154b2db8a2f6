"""Pending deletions accumulated by the acknowledge stage."""
from __future__ import annotations

from subscriber.app.constants import MAX_DELETE_BATCH_SIZE
from subscriber.app.domain.models import DeleteEntry


class BatchFullError(Exception):
    """Raised when adding to a batch that already holds the maximum entries."""


class DeletionBatch:
    """Ordered (sequence id, receipt handle) pairs awaiting a batch delete.

    The sequence id is the entry's 0-based position in the current batch,
    which is all the queue needs to correlate per-entry results.
    """

    def __init__(self, max_size: int = MAX_DELETE_BATCH_SIZE) -> None:
        if not 1 <= max_size <= MAX_DELETE_BATCH_SIZE:
            raise ValueError(f"max_size must be between 1 and {MAX_DELETE_BATCH_SIZE}")
        self._max_size = max_size
        self._entries: list[DeleteEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    @property
    def full(self) -> bool:
        return len(self._entries) >= self._max_size

    @property
    def entries(self) -> list[DeleteEntry]:
        return list(self._entries)

    def add(self, receipt_handle: str) -> DeleteEntry:
        if self.full:
            raise BatchFullError(f"deletion batch already holds {self._max_size} entries")
        entry = DeleteEntry(id=str(len(self._entries)), receipt_handle=receipt_handle)
        self._entries.append(entry)
        return entry

    def clear(self) -> None:
        self._entries = []
