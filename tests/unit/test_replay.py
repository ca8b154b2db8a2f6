"""Unit tests for archive replay over the in-memory archive."""
from __future__ import annotations

import pytest

from subscriber.app.application.replay import ReplayError, replay
from subscriber.app.infrastructure.archive.inmemory.in_memory_archive_client import InMemoryArchiveClient
from tests.conftest import RecordingHandler, b64

BUCKET = "archive"


@pytest.mark.asyncio
async def test_replay_dispatches_objects_then_lines_in_order(echo_serializer):
    client = InMemoryArchiveClient()
    client.put_lines(BUCKET, "events/2024/01.log", [b64("e1"), b64("e2")])
    client.put_lines(BUCKET, "events/2024/02.log", [b64("e3"), b64("e4")])
    handler = RecordingHandler()

    count = await replay(client, echo_serializer, handler, BUCKET, "events/")

    assert count == 4
    assert handler.events == ["e1", "e2", "e3", "e4"]


@pytest.mark.asyncio
async def test_replay_follows_continuation_tokens(echo_serializer):
    client = InMemoryArchiveClient(page_size=1)
    for n in range(3):
        client.put_lines(BUCKET, f"events/{n}.log", [b64(f"e{n}")])
    handler = RecordingHandler()

    count = await replay(client, echo_serializer, handler, BUCKET, "events/")

    assert count == 3
    assert handler.events == ["e0", "e1", "e2"]
    assert [token for _, _, token in client.list_calls] == [None, "1", "2"]


@pytest.mark.asyncio
async def test_replay_only_reads_objects_under_prefix(echo_serializer):
    client = InMemoryArchiveClient()
    client.put_lines(BUCKET, "events/a.log", [b64("wanted")])
    client.put_lines(BUCKET, "other/b.log", [b64("ignored")])
    handler = RecordingHandler()

    assert await replay(client, echo_serializer, handler, BUCKET, "events/") == 1
    assert handler.events == ["wanted"]


@pytest.mark.asyncio
async def test_replay_skips_blank_lines(echo_serializer):
    client = InMemoryArchiveClient()
    client.put_lines(BUCKET, "events/a.log", [b64("e1"), "", "   ", b64("e2")])
    handler = RecordingHandler()

    assert await replay(client, echo_serializer, handler, BUCKET, "events/") == 2
    assert handler.events == ["e1", "e2"]


@pytest.mark.asyncio
async def test_replay_empty_prefix_returns_zero(echo_serializer):
    client = InMemoryArchiveClient()
    client.put_lines(BUCKET, "other/a.log", [b64("e1")])
    handler = RecordingHandler()

    assert await replay(client, echo_serializer, handler, BUCKET, "events/") == 0
    assert handler.events == []


@pytest.mark.asyncio
async def test_replay_malformed_line_aborts_with_location(echo_serializer):
    client = InMemoryArchiveClient()
    client.put_lines(BUCKET, "events/a.log", [b64("e1"), "not base64 !!", b64("e3")])
    client.put_lines(BUCKET, "events/b.log", [b64("e4")])
    handler = RecordingHandler()

    with pytest.raises(ReplayError) as exc_info:
        await replay(client, echo_serializer, handler, BUCKET, "events/")

    assert exc_info.value.key == "events/a.log"
    assert exc_info.value.line == 2
    assert "s3://archive/events/a.log" in str(exc_info.value)
    assert handler.events == ["e1"]


@pytest.mark.asyncio
async def test_replay_unmarshal_failure_aborts(echo_serializer):
    client = InMemoryArchiveClient()
    client.put_lines(BUCKET, "events/a.log", [b64("!unknown")])

    with pytest.raises(ReplayError) as exc_info:
        await replay(client, echo_serializer, RecordingHandler(), BUCKET, "events/")

    assert exc_info.value.line == 1


@pytest.mark.asyncio
async def test_replay_handler_error_is_chained(echo_serializer):
    error = RuntimeError("projection store down")
    client = InMemoryArchiveClient()
    client.put_lines(BUCKET, "events/a.log", [b64("e1"), b64("e2")])
    handler = RecordingHandler(fail_on="e2", error=error)

    with pytest.raises(ReplayError) as exc_info:
        await replay(client, echo_serializer, handler, BUCKET, "events/")

    assert exc_info.value.__cause__ is error
    assert exc_info.value.key == "events/a.log"
    assert exc_info.value.line == 2
    assert handler.events == ["e1"]


@pytest.mark.asyncio
async def test_replay_listing_failure_is_wrapped(echo_serializer):
    client = InMemoryArchiveClient()

    with pytest.raises(ReplayError, match="unable to list objects from s3://missing/events/") as exc_info:
        await replay(client, echo_serializer, RecordingHandler(), "missing", "events/")

    assert exc_info.value.key is None
