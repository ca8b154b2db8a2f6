"""Receive, handle and delete stages of a queue subscription.

Each stage runs as its own asyncio task and the stages are connected by
bounded queues:

  receive_loop -> received -> handle_loop -> completed -> delete_loop -> queue

Cancelling a stage task is the shutdown signal. Every await below is a
cancellation point, so long-polls, backoff sleeps, queue hand-offs and
delete retry pauses all stop promptly when the subscription closes.
Stages never return on their own; they exit by cancellation or by raising.
"""
from __future__ import annotations

import asyncio
from typing import Any

from loguru import logger

from subscriber.app.constants import (
    DEFAULT_DELETE_FLUSH_INTERVAL_SECONDS,
    DEFAULT_DELETE_MAX_ATTEMPTS,
    DEFAULT_DELETE_RETRY_SECONDS,
    DEFAULT_RECEIVE_RETRY_SECONDS,
    DEFAULT_RECEIVE_WAIT_SECONDS,
    DEFAULT_VISIBILITY_TIMEOUT_SECONDS,
    MAX_RECEIVE_MESSAGES,
)
from subscriber.app.core import SERVICE_NAME
from subscriber.app.core.backoff import fixed_backoff
from subscriber.app.domain.batch import DeletionBatch
from subscriber.app.domain.models import QueueMessage
from subscriber.app.domain.records import MalformedRecordError, decode_record
from subscriber.app.ports.event_handler import EventHandler
from subscriber.app.ports.queue_client import QueueClient
from subscriber.app.ports.serializer import EventSerializer


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


class HandlerTimeoutError(Exception):
    """Raised when the event handler runs longer than the configured timeout."""


async def receive_loop(
    client: QueueClient,
    queue_url: str,
    received: asyncio.Queue[QueueMessage],
    *,
    max_messages: int = MAX_RECEIVE_MESSAGES,
    wait_time_seconds: int = DEFAULT_RECEIVE_WAIT_SECONDS,
    visibility_timeout: int = DEFAULT_VISIBILITY_TIMEOUT_SECONDS,
    retry_seconds: float = DEFAULT_RECEIVE_RETRY_SECONDS,
) -> None:
    """Long-poll the queue forever, feeding `received`.

    Receive failures are retried after `retry_seconds`. A full `received`
    queue blocks the loop, which throttles delivery to the handle stage.
    """
    while True:
        try:
            messages = await client.receive_messages(
                queue_url,
                max_messages=max_messages,
                wait_time_seconds=wait_time_seconds,
                visibility_timeout=visibility_timeout,
            )
        except Exception as exc:
            logger.warning("receive messages failed, retrying in {}s: {}", retry_seconds, exc)
            await asyncio.sleep(retry_seconds)
            continue

        if messages:
            _log("messages_received", count=len(messages))

        for message in messages:
            await received.put(message)


async def handle_message(
    message: QueueMessage,
    serializer: EventSerializer,
    handler: EventHandler,
    *,
    handler_timeout_seconds: float | None = None,
) -> bool:
    """Decode one message and dispatch it to the handler.

    Returns False when the body is not valid base64: the message is dropped
    without being acknowledged. EventDecodeError and handler errors propagate.
    """
    try:
        event = decode_record(serializer, message.body)
    except MalformedRecordError as exc:
        logger.warning("unable to decode message body, dropping {}: {}", message.message_id, exc)
        return False

    if handler_timeout_seconds is None:
        await handler(event)
        return True

    try:
        async with asyncio.timeout(handler_timeout_seconds) as deadline:
            await handler(event)
    except TimeoutError as exc:
        if not deadline.expired():
            raise
        raise HandlerTimeoutError(
            f"handler exceeded {handler_timeout_seconds}s for message {message.message_id}"
        ) from exc
    return True


async def handle_loop(
    received: asyncio.Queue[QueueMessage],
    completed: asyncio.Queue[QueueMessage],
    serializer: EventSerializer,
    handler: EventHandler,
    *,
    handler_timeout_seconds: float | None = None,
) -> None:
    """Handle messages one at a time, in receive order.

    Only successfully handled messages are passed on to `completed`. Any
    error other than a malformed body stops the loop and, with it, the
    subscription.
    """
    while True:
        message = await received.get()
        try:
            handled = await handle_message(
                message,
                serializer,
                handler,
                handler_timeout_seconds=handler_timeout_seconds,
            )
        except Exception as exc:
            logger.error("unable to handle message {}: {}", message.message_id, exc)
            raise

        if handled:
            await completed.put(message)


async def flush_batch(
    client: QueueClient,
    queue_url: str,
    batch: DeletionBatch,
    *,
    max_attempts: int = DEFAULT_DELETE_MAX_ATTEMPTS,
    retry_seconds: float = DEFAULT_DELETE_RETRY_SECONDS,
) -> bool:
    """Delete every entry of `batch` from the queue, then clear it.

    The batch is cleared whatever the outcome: once attempts are exhausted
    (or the stage is cancelled during a pause) the entries are dropped and
    those messages are redelivered after their visibility timeout.
    Returns True when a delete call succeeded.
    """
    if not batch:
        return True

    entries = batch.entries
    try:
        async for attempt in fixed_backoff(retry_seconds, max_attempts):
            try:
                result = await client.delete_message_batch(queue_url, entries)
            except Exception as exc:
                logger.warning(
                    "delete messages failed (attempt {}/{}): {}", attempt, max_attempts, exc
                )
                continue

            _log("messages_deleted", count=len(result.successful))
            for failure in result.failed:
                logger.warning(
                    "delete rejected for entry {}: {} {}", failure.id, failure.code, failure.message
                )
            return True

        _log("delete_batch_dropped", count=len(entries), attempts=max_attempts)
        return False
    finally:
        batch.clear()


async def delete_loop(
    client: QueueClient,
    queue_url: str,
    completed: asyncio.Queue[QueueMessage],
    *,
    flush_interval: float = DEFAULT_DELETE_FLUSH_INTERVAL_SECONDS,
    max_attempts: int = DEFAULT_DELETE_MAX_ATTEMPTS,
    retry_seconds: float = DEFAULT_DELETE_RETRY_SECONDS,
) -> None:
    """Batch completed messages and delete them from the queue.

    A flush happens when the batch is full, every `flush_interval` seconds,
    and once more when the loop is cancelled. On cancellation, messages
    already waiting in `completed` are batched too. Shutdown flushes make a
    single attempt so they never wait out a retry pause.
    """
    loop = asyncio.get_running_loop()
    batch = DeletionBatch()
    next_tick = loop.time() + flush_interval
    try:
        while True:
            timeout = max(next_tick - loop.time(), 0.0)
            try:
                async with asyncio.timeout(timeout):
                    message = await completed.get()
            except TimeoutError:
                next_tick = loop.time() + flush_interval
                await flush_batch(
                    client, queue_url, batch, max_attempts=max_attempts, retry_seconds=retry_seconds
                )
                continue

            batch.add(message.receipt_handle)
            if batch.full:
                await flush_batch(
                    client, queue_url, batch, max_attempts=max_attempts, retry_seconds=retry_seconds
                )
    finally:
        while not completed.empty():
            batch.add(completed.get_nowait().receipt_handle)
            if batch.full:
                await flush_batch(client, queue_url, batch, max_attempts=1, retry_seconds=0.0)
        await flush_batch(client, queue_url, batch, max_attempts=1, retry_seconds=0.0)
