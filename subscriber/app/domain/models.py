"""Domain models."""
from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class QueueMessage:
    """One delivery of a queue message.

    receipt_handle identifies this delivery, not the message: a redelivered
    message carries a new handle and only the latest one can delete it.
    """

    message_id: str
    body: str
    receipt_handle: str


@dataclass(frozen=True)
class DeleteEntry:
    """(sequence id, receipt handle) pair sent in a batch delete."""

    id: str
    receipt_handle: str


@dataclass(frozen=True)
class DeleteFailure:
    id: str
    code: str
    message: str = ""
    sender_fault: bool = False


@dataclass(frozen=True)
class DeleteBatchResult:
    """Per-entry outcome of a batch delete call."""

    successful: list[str] = field(default_factory=list)
    failed: list[DeleteFailure] = field(default_factory=list)


@dataclass(frozen=True)
class ArchiveObject:
    key: str
    size: int = 0


@dataclass(frozen=True)
class ObjectPage:
    """One page of an archive listing; next_token is None on the last page."""

    objects: list[ArchiveObject]
    next_token: str | None = None
