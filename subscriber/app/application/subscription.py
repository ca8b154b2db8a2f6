"""Queue subscription: wires the pipeline stages and supervises them as one unit.

Lifecycle:
  subscribe() resolves the queue, starts receive/handle/delete tasks and
  returns a Subscription. The first stage to fail cancels the other two
  (fail-fast, no partial restart). close() cancels everything, waits for all
  three stages to exit and re-raises the first failure, if any. A shutdown
  that was only requested is not a failure.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from loguru import logger

from subscriber.app.application.pipeline import delete_loop, handle_loop, receive_loop
from subscriber.app.constants import (
    DEFAULT_CHANNEL_CAPACITY,
    DEFAULT_DELETE_FLUSH_INTERVAL_SECONDS,
    DEFAULT_DELETE_MAX_ATTEMPTS,
    DEFAULT_DELETE_RETRY_SECONDS,
    DEFAULT_RECEIVE_RETRY_SECONDS,
    DEFAULT_RECEIVE_WAIT_SECONDS,
    DEFAULT_VISIBILITY_TIMEOUT_SECONDS,
    MAX_RECEIVE_MESSAGES,
)
from subscriber.app.core import SERVICE_NAME
from subscriber.app.core.backoff import exponential_backoff
from subscriber.app.domain.models import QueueMessage
from subscriber.app.ports.event_handler import EventHandler
from subscriber.app.ports.queue_client import QueueClient, QueueNotFoundError
from subscriber.app.ports.serializer import EventSerializer


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


@dataclass(frozen=True)
class SubscriptionOptions:
    """Tuning for one subscription. Defaults match the queue service limits."""

    delete_flush_interval_seconds: float = DEFAULT_DELETE_FLUSH_INTERVAL_SECONDS
    delete_max_attempts: int = DEFAULT_DELETE_MAX_ATTEMPTS
    delete_retry_seconds: float = DEFAULT_DELETE_RETRY_SECONDS
    receive_max_messages: int = MAX_RECEIVE_MESSAGES
    receive_wait_seconds: int = DEFAULT_RECEIVE_WAIT_SECONDS
    visibility_timeout_seconds: int = DEFAULT_VISIBILITY_TIMEOUT_SECONDS
    receive_retry_seconds: float = DEFAULT_RECEIVE_RETRY_SECONDS
    channel_capacity: int = DEFAULT_CHANNEL_CAPACITY
    # None keeps handler calls unbounded.
    handler_timeout_seconds: float | None = None
    resolve_attempts: int = 1
    resolve_initial_backoff_seconds: float = 1.0
    resolve_max_backoff_seconds: float = 30.0
    resolve_backoff_multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.delete_flush_interval_seconds <= 0:
            raise ValueError("delete_flush_interval_seconds must be > 0")
        if self.delete_max_attempts < 1:
            raise ValueError("delete_max_attempts must be >= 1")
        if not 1 <= self.receive_max_messages <= MAX_RECEIVE_MESSAGES:
            raise ValueError(f"receive_max_messages must be between 1 and {MAX_RECEIVE_MESSAGES}")
        if self.receive_wait_seconds < 0:
            raise ValueError("receive_wait_seconds must be >= 0")
        if self.visibility_timeout_seconds < 0:
            raise ValueError("visibility_timeout_seconds must be >= 0")
        if self.channel_capacity < 1:
            raise ValueError("channel_capacity must be >= 1")
        if self.handler_timeout_seconds is not None and self.handler_timeout_seconds <= 0:
            raise ValueError("handler_timeout_seconds must be > 0 or None")
        if self.resolve_attempts < 1:
            raise ValueError("resolve_attempts must be >= 1")


class Subscription:
    """A running pipeline over one queue."""

    def __init__(self, queue_url: str, tasks: list[asyncio.Task[None]]) -> None:
        self._queue_url = queue_url
        self._tasks = tasks
        self._error: BaseException | None = None
        for task in tasks:
            task.add_done_callback(self._on_stage_done)

    @property
    def queue_url(self) -> str:
        return self._queue_url

    @property
    def error(self) -> BaseException | None:
        """First stage failure, if any."""
        return self._error

    @property
    def running(self) -> bool:
        return not all(task.done() for task in self._tasks)

    def _on_stage_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None or self._error is not None:
            return
        self._error = exc
        _log("subscription_failed", stage=task.get_name(), error=str(exc))
        self._cancel_stages()

    def _cancel_stages(self) -> None:
        for task in self._tasks:
            if not task.done():
                task.cancel()

    async def wait(self) -> None:
        """Block until the pipeline stops by itself, then behave like close()."""
        await asyncio.wait(self._tasks)
        await self.close()

    async def close(self) -> None:
        """Stop all stages and wait for them to exit; re-raise the first failure."""
        self._cancel_stages()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        _log("subscription_closed", queue_url=self._queue_url)
        if self._error is not None:
            raise self._error

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


async def _resolve_queue_url(
    client: QueueClient,
    queue_name: str,
    options: SubscriptionOptions,
) -> str:
    async for attempt in exponential_backoff(
        options.resolve_initial_backoff_seconds,
        options.resolve_max_backoff_seconds,
        options.resolve_backoff_multiplier,
        options.resolve_attempts,
    ):
        try:
            return await client.resolve_queue_url(queue_name)
        except QueueNotFoundError:
            raise
        except Exception as e:
            logger.warning("resolve queue {} failed (attempt {}): {}", queue_name, attempt, e)
            if attempt >= options.resolve_attempts:
                raise
    raise RuntimeError("queue resolution exhausted")


async def subscribe(
    client: QueueClient,
    queue_name: str,
    serializer: EventSerializer,
    handler: EventHandler,
    options: SubscriptionOptions | None = None,
) -> Subscription:
    """Resolve `queue_name` and start consuming it.

    Raises QueueNotFoundError when the queue does not exist; nothing is
    started in that case.
    """
    options = options or SubscriptionOptions()
    _log("subscribing", queue_name=queue_name)
    queue_url = await _resolve_queue_url(client, queue_name, options)
    _log("queue_resolved", queue_name=queue_name, queue_url=queue_url)

    received: asyncio.Queue[QueueMessage] = asyncio.Queue(maxsize=options.channel_capacity)
    completed: asyncio.Queue[QueueMessage] = asyncio.Queue(maxsize=options.channel_capacity)

    tasks = [
        asyncio.create_task(
            receive_loop(
                client,
                queue_url,
                received,
                max_messages=options.receive_max_messages,
                wait_time_seconds=options.receive_wait_seconds,
                visibility_timeout=options.visibility_timeout_seconds,
                retry_seconds=options.receive_retry_seconds,
            ),
            name="subscription-receive",
        ),
        asyncio.create_task(
            handle_loop(
                received,
                completed,
                serializer,
                handler,
                handler_timeout_seconds=options.handler_timeout_seconds,
            ),
            name="subscription-handle",
        ),
        asyncio.create_task(
            delete_loop(
                client,
                queue_url,
                completed,
                flush_interval=options.delete_flush_interval_seconds,
                max_attempts=options.delete_max_attempts,
                retry_seconds=options.delete_retry_seconds,
            ),
            name="subscription-delete",
        ),
    ]
    return Subscription(queue_url, tasks)
