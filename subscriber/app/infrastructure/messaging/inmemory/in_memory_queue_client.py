"""In-memory queue for local mode and tests.

Models the parts of an at-least-once queue the pipeline relies on: long-poll
receives, visibility timeout, a fresh receipt handle per delivery, and batch
deletes that only accept the latest handle. Failures can be injected for the
next N receive or delete calls.
"""
from __future__ import annotations

import asyncio
import itertools
import uuid
from dataclasses import dataclass
from typing import Sequence

from subscriber.app.constants import MAX_DELETE_BATCH_SIZE, MAX_RECEIVE_MESSAGES
from subscriber.app.domain.models import DeleteBatchResult, DeleteEntry, DeleteFailure, QueueMessage
from subscriber.app.ports.queue_client import QueueClientError, QueueNotFoundError


@dataclass
class _StoredMessage:
    message_id: str
    body: str
    receipt_handle: str | None = None
    visible_at: float = 0.0
    receive_count: int = 0


class InMemoryQueueClient:
    def __init__(self, queue_names: Sequence[str] = (), *, base_url: str = "memory://queues") -> None:
        self._base_url = base_url.rstrip("/")
        self._queues: dict[str, list[_StoredMessage]] = {name: [] for name in queue_names}
        self._condition = asyncio.Condition()
        self._handles = itertools.count(1)
        self._receive_failures: list[Exception] = []
        self._delete_failures: list[Exception] = []
        self.delete_calls: list[list[DeleteEntry]] = []
        self.receive_calls = 0

    async def connect(self) -> None:
        return

    async def close(self) -> None:
        return

    def create_queue(self, queue_name: str) -> str:
        self._queues.setdefault(queue_name, [])
        return self._url(queue_name)

    def _url(self, queue_name: str) -> str:
        return f"{self._base_url}/{queue_name}"

    def _queue(self, queue_url: str) -> list[_StoredMessage]:
        name = queue_url.rsplit("/", 1)[-1]
        if self._url(name) != queue_url or name not in self._queues:
            raise QueueNotFoundError(f"queue not found, {queue_url}")
        return self._queues[name]

    async def send_message(self, queue_name: str, body: str) -> str:
        if queue_name not in self._queues:
            raise QueueNotFoundError(f"queue not found, {queue_name}")
        message_id = str(uuid.uuid4())
        async with self._condition:
            self._queues[queue_name].append(_StoredMessage(message_id=message_id, body=body))
            self._condition.notify_all()
        return message_id

    def fail_receives(self, *errors: Exception) -> None:
        """Make the next len(errors) receive calls raise these errors, in order."""
        self._receive_failures.extend(errors)

    def fail_deletes(self, *errors: Exception) -> None:
        """Make the next len(errors) delete calls raise these errors, in order."""
        self._delete_failures.extend(errors)

    def pending(self, queue_name: str) -> int:
        """Messages not yet deleted, visible or in flight."""
        return len(self._queues[queue_name])

    async def resolve_queue_url(self, queue_name: str) -> str:
        if queue_name not in self._queues:
            raise QueueNotFoundError(f"queue not found, {queue_name}")
        return self._url(queue_name)

    def _take_visible(
        self,
        messages: list[_StoredMessage],
        max_messages: int,
        visibility_timeout: int,
        now: float,
    ) -> list[QueueMessage]:
        taken: list[QueueMessage] = []
        for stored in messages:
            if len(taken) >= max_messages:
                break
            if stored.visible_at > now:
                continue
            stored.receipt_handle = f"rh-{next(self._handles)}-{stored.message_id}"
            stored.visible_at = now + visibility_timeout
            stored.receive_count += 1
            taken.append(
                QueueMessage(
                    message_id=stored.message_id,
                    body=stored.body,
                    receipt_handle=stored.receipt_handle,
                )
            )
        return taken

    async def receive_messages(
        self,
        queue_url: str,
        *,
        max_messages: int,
        wait_time_seconds: int,
        visibility_timeout: int,
    ) -> list[QueueMessage]:
        self.receive_calls += 1
        if self._receive_failures:
            raise self._receive_failures.pop(0)
        if not 1 <= max_messages <= MAX_RECEIVE_MESSAGES:
            raise QueueClientError(f"max_messages must be between 1 and {MAX_RECEIVE_MESSAGES}")

        messages = self._queue(queue_url)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + wait_time_seconds
        async with self._condition:
            while True:
                now = loop.time()
                taken = self._take_visible(messages, max_messages, visibility_timeout, now)
                if taken:
                    return taken
                if now >= deadline:
                    break
                wake_at = min(
                    [deadline] + [m.visible_at for m in messages if m.visible_at > now]
                )
                try:
                    async with asyncio.timeout(wake_at - now):
                        await self._condition.wait()
                except TimeoutError:
                    pass
        # an empty short poll still yields to the event loop
        await asyncio.sleep(0)
        return []

    async def delete_message_batch(
        self,
        queue_url: str,
        entries: Sequence[DeleteEntry],
    ) -> DeleteBatchResult:
        if self._delete_failures:
            raise self._delete_failures.pop(0)
        if not 1 <= len(entries) <= MAX_DELETE_BATCH_SIZE:
            raise QueueClientError(f"batch must hold between 1 and {MAX_DELETE_BATCH_SIZE} entries")
        if len({entry.id for entry in entries}) != len(entries):
            raise QueueClientError("batch entry ids must be distinct")

        messages = self._queue(queue_url)
        self.delete_calls.append(list(entries))
        successful: list[str] = []
        failed: list[DeleteFailure] = []
        async with self._condition:
            for entry in entries:
                match = next((m for m in messages if m.receipt_handle == entry.receipt_handle), None)
                if match is None:
                    failed.append(
                        DeleteFailure(
                            id=entry.id,
                            code="ReceiptHandleIsInvalid",
                            message=f"unknown receipt handle {entry.receipt_handle}",
                            sender_fault=True,
                        )
                    )
                    continue
                messages.remove(match)
                successful.append(entry.id)
        return DeleteBatchResult(successful=successful, failed=failed)
