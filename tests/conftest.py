from __future__ import annotations

import asyncio
import base64
from typing import Any, Sequence

import pytest

from subscriber.app.domain.models import DeleteBatchResult, DeleteEntry, QueueMessage
from subscriber.app.infrastructure.serialization.json_serializer import JSONEventSerializer
from subscriber.app.ports.serializer import SerializerError
from tests.sample_events import AccountOpened, FundsDeposited

QUEUE_URL = "https://sqs.us-east-1.amazonaws.com/123456789012/events"


def b64(data: bytes | str) -> str:
    if isinstance(data, str):
        data = data.encode()
    return base64.b64encode(data).decode()


def make_message(body: str, n: int = 1) -> QueueMessage:
    return QueueMessage(message_id=f"m-{n}", body=body, receipt_handle=f"rh-{n}")


async def wait_until(predicate, timeout: float = 2.0, interval: float = 0.005) -> None:
    """Poll `predicate` until it is truthy or fail the test after `timeout`."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() >= deadline:
            pytest.fail("condition not met before timeout")
        await asyncio.sleep(interval)


class EchoSerializer:
    """Implements EventSerializer over plain utf-8 text; b"!" prefixed payloads are rejected."""

    def marshal(self, event: Any) -> bytes:
        return str(event).encode()

    def unmarshal(self, data: bytes) -> Any:
        if data.startswith(b"!"):
            raise SerializerError(f"rejected payload {data!r}")
        return data.decode()


class RecordingHandler:
    """Async event handler that records events and can fail on a given event."""

    def __init__(self, *, fail_on: Any = None, error: Exception | None = None, delay: float = 0.0) -> None:
        self.events: list[Any] = []
        self.handled = asyncio.Event()
        self._fail_on = fail_on
        self._error = error or RuntimeError("handler failed")
        self._delay = delay

    async def __call__(self, event: Any) -> None:
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._fail_on is not None and event == self._fail_on:
            raise self._error
        self.events.append(event)
        self.handled.set()


class ScriptedQueueClient:
    """Implements QueueClient for tests.

    Each receive call returns the next scripted item: a list of messages or an
    exception to raise. Once the script is exhausted, receive blocks until
    cancelled, like a long-poll on an empty queue that never times out.
    """

    def __init__(
        self,
        script: Sequence[list[QueueMessage] | Exception] = (),
        *,
        queue_url: str = QUEUE_URL,
        resolve_errors: Sequence[Exception] = (),
        delete_errors: Sequence[Exception] = (),
    ) -> None:
        self._script = list(script)
        self._queue_url = queue_url
        self._resolve_errors = list(resolve_errors)
        self._delete_errors = list(delete_errors)
        self.receive_calls = 0
        self.resolve_calls = 0
        self.delete_calls: list[list[DeleteEntry]] = []
        self.delete_attempts = 0
        self.connected = False
        self.closed = False

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.closed = True

    async def resolve_queue_url(self, queue_name: str) -> str:
        self.resolve_calls += 1
        if self._resolve_errors:
            raise self._resolve_errors.pop(0)
        return self._queue_url

    async def receive_messages(self, queue_url: str, **kwargs: Any) -> list[QueueMessage]:
        self.receive_calls += 1
        if not self._script:
            await asyncio.Event().wait()
        item = self._script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def delete_message_batch(
        self, queue_url: str, entries: Sequence[DeleteEntry]
    ) -> DeleteBatchResult:
        self.delete_attempts += 1
        if self._delete_errors:
            raise self._delete_errors.pop(0)
        self.delete_calls.append(list(entries))
        return DeleteBatchResult(successful=[entry.id for entry in entries])

    @property
    def deleted_handles(self) -> list[str]:
        return [entry.receipt_handle for call in self.delete_calls for entry in call]


@pytest.fixture()
def echo_serializer() -> EchoSerializer:
    return EchoSerializer()


@pytest.fixture()
def json_serializer() -> JSONEventSerializer:
    return JSONEventSerializer(AccountOpened, FundsDeposited)
