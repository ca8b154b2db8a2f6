"""Unit tests for the SQS adapter against a fake aioboto3 session."""
from __future__ import annotations

from typing import Any

import pytest
import pytest_asyncio
from botocore.exceptions import ClientError

from subscriber.app.domain.models import DeleteEntry
from subscriber.app.infrastructure.messaging.sqs.sqs_queue_client import SqsQueueClient
from subscriber.app.ports.queue_client import QueueClientError, QueueNotFoundError

URL = "https://sqs.eu-west-1.amazonaws.com/123456789012/events"


def _client_error(operation: str) -> ClientError:
    return ClientError({"Error": {"Code": "AWS.SimpleQueueService.NonExistentQueue", "Message": "nope"}}, operation)


class FakeSqs:
    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.responses: dict[str, Any] = {}
        self.entered = False
        self.exited = False

    async def __aenter__(self) -> "FakeSqs":
        self.entered = True
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.exited = True

    async def _call(self, name: str, **kwargs: Any) -> Any:
        self.calls.append((name, kwargs))
        response = self.responses.get(name, {})
        if isinstance(response, Exception):
            raise response
        return response

    async def list_queues(self, **kwargs: Any) -> Any:
        return await self._call("list_queues", **kwargs)

    async def receive_message(self, **kwargs: Any) -> Any:
        return await self._call("receive_message", **kwargs)

    async def delete_message_batch(self, **kwargs: Any) -> Any:
        return await self._call("delete_message_batch", **kwargs)


class FakeSession:
    def __init__(self, client: Any) -> None:
        self._client = client
        self.client_args: list[tuple[str, dict[str, Any]]] = []

    def client(self, service_name: str, **kwargs: Any) -> Any:
        self.client_args.append((service_name, kwargs))
        return self._client


@pytest.fixture()
def sqs() -> FakeSqs:
    return FakeSqs()


@pytest_asyncio.fixture()
async def client(sqs):
    adapter = SqsQueueClient(FakeSession(sqs), region_name="eu-west-1", endpoint_url=None)
    await adapter.connect()
    yield adapter
    await adapter.close()


@pytest.mark.asyncio
async def test_connect_and_close_manage_the_boto_client(sqs):
    session = FakeSession(sqs)
    adapter = SqsQueueClient(session, region_name="eu-west-1", endpoint_url="http://localhost:4566")

    await adapter.connect()
    await adapter.connect()
    await adapter.close()

    assert session.client_args == [
        ("sqs", {"region_name": "eu-west-1", "endpoint_url": "http://localhost:4566"})
    ]
    assert sqs.entered and sqs.exited


@pytest.mark.asyncio
async def test_calls_before_connect_fail(sqs):
    adapter = SqsQueueClient(FakeSession(sqs))

    with pytest.raises(RuntimeError):
        await adapter.resolve_queue_url("events")


@pytest.mark.asyncio
async def test_resolve_queue_url_matches_exact_name(client, sqs):
    sqs.responses["list_queues"] = {"QueueUrls": [URL + "-dlq", URL]}

    assert await client.resolve_queue_url("events") == URL
    assert sqs.calls == [("list_queues", {"QueueNamePrefix": "events"})]


@pytest.mark.asyncio
async def test_resolve_queue_url_not_found(client, sqs):
    sqs.responses["list_queues"] = {"QueueUrls": [URL + "-dlq"]}

    with pytest.raises(QueueNotFoundError, match="queue not found, events"):
        await client.resolve_queue_url("events")


@pytest.mark.asyncio
async def test_resolve_queue_url_with_no_queues(client, sqs):
    sqs.responses["list_queues"] = {}

    with pytest.raises(QueueNotFoundError):
        await client.resolve_queue_url("events")


@pytest.mark.asyncio
async def test_receive_messages_maps_response(client, sqs):
    sqs.responses["receive_message"] = {
        "Messages": [
            {"MessageId": "m-1", "Body": "Ym9keQ==", "ReceiptHandle": "rh-1"},
            {"MessageId": "m-2", "ReceiptHandle": "rh-2"},
        ]
    }

    messages = await client.receive_messages(
        URL, max_messages=10, wait_time_seconds=20, visibility_timeout=240
    )

    assert [(m.message_id, m.body, m.receipt_handle) for m in messages] == [
        ("m-1", "Ym9keQ==", "rh-1"),
        ("m-2", "", "rh-2"),
    ]
    assert sqs.calls[0] == (
        "receive_message",
        {"QueueUrl": URL, "MaxNumberOfMessages": 10, "WaitTimeSeconds": 20, "VisibilityTimeout": 240},
    )


@pytest.mark.asyncio
async def test_receive_messages_empty(client, sqs):
    assert await client.receive_messages(
        URL, max_messages=10, wait_time_seconds=0, visibility_timeout=30
    ) == []


@pytest.mark.asyncio
async def test_receive_error_is_wrapped(client, sqs):
    sqs.responses["receive_message"] = _client_error("ReceiveMessage")

    with pytest.raises(QueueClientError, match="receive_message failed") as exc_info:
        await client.receive_messages(URL, max_messages=10, wait_time_seconds=0, visibility_timeout=30)
    assert isinstance(exc_info.value.__cause__, ClientError)


@pytest.mark.asyncio
async def test_delete_message_batch_maps_entries_and_failures(client, sqs):
    sqs.responses["delete_message_batch"] = {
        "Successful": [{"Id": "0"}],
        "Failed": [{"Id": "1", "Code": "ReceiptHandleIsInvalid", "Message": "bad", "SenderFault": True}],
    }

    result = await client.delete_message_batch(
        URL,
        [DeleteEntry(id="0", receipt_handle="rh-a"), DeleteEntry(id="1", receipt_handle="rh-b")],
    )

    assert result.successful == ["0"]
    assert result.failed[0].id == "1"
    assert result.failed[0].code == "ReceiptHandleIsInvalid"
    assert result.failed[0].sender_fault is True
    assert sqs.calls[0][1]["Entries"] == [
        {"Id": "0", "ReceiptHandle": "rh-a"},
        {"Id": "1", "ReceiptHandle": "rh-b"},
    ]


@pytest.mark.asyncio
async def test_delete_error_is_wrapped(client, sqs):
    sqs.responses["delete_message_batch"] = _client_error("DeleteMessageBatch")

    with pytest.raises(QueueClientError):
        await client.delete_message_batch(URL, [DeleteEntry(id="0", receipt_handle="rh")])
