"""Queue client port: contract for the remote at-least-once message queue.

The pipeline depends on this port; infrastructure (SQS via aioboto3, or the
in-memory queue) implements it. Implementations must be safe to call from
the receive and delete stages concurrently.
"""
from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable

from subscriber.app.domain.models import DeleteBatchResult, DeleteEntry, QueueMessage


class QueueClientError(Exception):
    """Base for queue service failures (network, throttling, auth, ...)."""


class QueueNotFoundError(QueueClientError):
    """Raised when no queue matches the requested name."""


@runtime_checkable
class QueueClient(Protocol):
    async def connect(self) -> None: ...

    async def resolve_queue_url(self, queue_name: str) -> str:
        """Return the address of `queue_name`; raise QueueNotFoundError if absent."""
        ...

    async def receive_messages(
        self,
        queue_url: str,
        *,
        max_messages: int,
        wait_time_seconds: int,
        visibility_timeout: int,
    ) -> list[QueueMessage]:
        """Long-poll for up to max_messages; an empty list means the wait elapsed."""
        ...

    async def delete_message_batch(
        self,
        queue_url: str,
        entries: Sequence[DeleteEntry],
    ) -> DeleteBatchResult: ...

    async def close(self) -> None:
        """Release resources. No-op allowed if nothing to close."""
        ...
