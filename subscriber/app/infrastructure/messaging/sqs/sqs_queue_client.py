"""Concrete queue client for Amazon SQS using aioboto3.

The aioboto3 client is an async context manager; connect() enters it and
close() exits it, so one HTTP connection pool serves the receive and delete
stages for the lifetime of the subscription.
"""
from __future__ import annotations

from contextlib import AsyncExitStack
from typing import Any, Sequence

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from subscriber.app.domain.models import DeleteBatchResult, DeleteEntry, DeleteFailure, QueueMessage
from subscriber.app.ports.queue_client import QueueClientError, QueueNotFoundError


class SqsQueueClient:
    """QueueClient implementation for SQS."""

    def __init__(
        self,
        session: aioboto3.Session,
        *,
        region_name: str | None = None,
        endpoint_url: str | None = None,
    ) -> None:
        self._session = session
        self._region_name = region_name
        self._endpoint_url = endpoint_url
        self._exit_stack: AsyncExitStack | None = None
        self._client: Any = None

    @property
    def _sqs(self) -> Any:
        if self._client is None:
            raise RuntimeError("sqs client not connected")
        return self._client

    async def connect(self) -> None:
        if self._client is not None:
            return
        stack = AsyncExitStack()
        self._client = await stack.enter_async_context(
            self._session.client(
                "sqs",
                region_name=self._region_name,
                endpoint_url=self._endpoint_url,
            )
        )
        self._exit_stack = stack

    async def resolve_queue_url(self, queue_name: str) -> str:
        try:
            response = await self._sqs.list_queues(QueueNamePrefix=queue_name)
        except (BotoCoreError, ClientError) as exc:
            raise QueueClientError(f"sqs list_queues failed - {exc}") from exc

        for url in response.get("QueueUrls", []):
            if url.endswith("/" + queue_name):
                return url
        raise QueueNotFoundError(f"queue not found, {queue_name}")

    async def receive_messages(
        self,
        queue_url: str,
        *,
        max_messages: int,
        wait_time_seconds: int,
        visibility_timeout: int,
    ) -> list[QueueMessage]:
        try:
            response = await self._sqs.receive_message(
                QueueUrl=queue_url,
                MaxNumberOfMessages=max_messages,
                WaitTimeSeconds=wait_time_seconds,
                VisibilityTimeout=visibility_timeout,
            )
        except (BotoCoreError, ClientError) as exc:
            raise QueueClientError(f"sqs receive_message failed - {exc}") from exc

        return [
            QueueMessage(
                message_id=item["MessageId"],
                body=item.get("Body", ""),
                receipt_handle=item["ReceiptHandle"],
            )
            for item in response.get("Messages", [])
        ]

    async def delete_message_batch(
        self,
        queue_url: str,
        entries: Sequence[DeleteEntry],
    ) -> DeleteBatchResult:
        try:
            response = await self._sqs.delete_message_batch(
                QueueUrl=queue_url,
                Entries=[
                    {"Id": entry.id, "ReceiptHandle": entry.receipt_handle} for entry in entries
                ],
            )
        except (BotoCoreError, ClientError) as exc:
            raise QueueClientError(f"sqs delete_message_batch failed - {exc}") from exc

        return DeleteBatchResult(
            successful=[item["Id"] for item in response.get("Successful", [])],
            failed=[
                DeleteFailure(
                    id=item["Id"],
                    code=item.get("Code", ""),
                    message=item.get("Message", ""),
                    sender_fault=bool(item.get("SenderFault", False)),
                )
                for item in response.get("Failed", [])
            ],
        )

    async def close(self) -> None:
        stack, self._exit_stack = self._exit_stack, None
        self._client = None
        if stack is not None:
            await stack.aclose()
