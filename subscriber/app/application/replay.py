"""Replay archived events through an event handler.

Walks every object under bucket/prefix in listing order and every line of
each object in file order, dispatching events one at a time. The first
error aborts the replay; there is no checkpoint, so a rerun starts again
from the first object.

Blank (or whitespace only) lines are skipped rather than treated as a decode
error, so a trailing newline or an empty separator line never aborts a
replay. Line numbers in errors still count blank lines.
"""
from __future__ import annotations

from typing import Any

from loguru import logger

from subscriber.app.core import SERVICE_NAME
from subscriber.app.domain.records import RecordDecodeError, decode_record
from subscriber.app.ports.archive_client import ArchiveClient
from subscriber.app.ports.event_handler import EventHandler
from subscriber.app.ports.serializer import EventSerializer


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


class ReplayError(Exception):
    """Replay aborted. The original error is chained as __cause__."""

    def __init__(self, message: str, *, key: str | None = None, line: int | None = None) -> None:
        super().__init__(message)
        self.key = key
        self.line = line


async def _replay_object(
    client: ArchiveClient,
    serializer: EventSerializer,
    handler: EventHandler,
    bucket: str,
    key: str,
) -> int:
    dispatched = 0
    line_number = 0
    async for line in client.iter_lines(bucket, key):
        line_number += 1
        if not line.strip():
            continue
        try:
            event = decode_record(serializer, line)
        except RecordDecodeError as exc:
            raise ReplayError(f"line {line_number}: {exc}", key=key, line=line_number) from exc
        try:
            await handler(event)
        except Exception as exc:
            raise ReplayError(f"line {line_number}: handler failed - {exc}", key=key, line=line_number) from exc
        dispatched += 1
    return dispatched


async def replay(
    client: ArchiveClient,
    serializer: EventSerializer,
    handler: EventHandler,
    bucket: str,
    prefix: str,
) -> int:
    """Dispatch every archived event under bucket/prefix. Returns the event count."""
    _log("replay_started", bucket=bucket, prefix=prefix)
    token: str | None = None
    dispatched = 0
    objects = 0
    while True:
        try:
            page = await client.list_objects(bucket, prefix, continuation_token=token)
        except Exception as exc:
            raise ReplayError(f"unable to list objects from s3://{bucket}/{prefix} - {exc}") from exc

        for item in page.objects:
            try:
                dispatched += await _replay_object(client, serializer, handler, bucket, item.key)
            except ReplayError as exc:
                logger.error("replay aborted at s3://{}/{}: {}", bucket, item.key, exc)
                raise ReplayError(
                    f"unable to process s3 object, s3://{bucket}/{item.key} - {exc}",
                    key=item.key,
                    line=exc.line,
                ) from exc.__cause__
            except Exception as exc:
                logger.error("replay aborted at s3://{}/{}: {}", bucket, item.key, exc)
                raise ReplayError(
                    f"unable to process s3 object, s3://{bucket}/{item.key} - {exc}", key=item.key
                ) from exc
            objects += 1

        token = page.next_token
        if token is None:
            break

    _log("replay_finished", bucket=bucket, prefix=prefix, objects=objects, events=dispatched)
    return dispatched
