"""Queue client factory: selects implementation from config. Only place that imports concrete queue clients."""
from __future__ import annotations

import aioboto3

from subscriber.app.config.settings import Settings
from subscriber.app.constants import QUEUE_BACKEND
from subscriber.app.infrastructure.messaging.inmemory.in_memory_queue_client import InMemoryQueueClient
from subscriber.app.infrastructure.messaging.sqs.sqs_queue_client import SqsQueueClient
from subscriber.app.ports.queue_client import QueueClient


def create_queue_client(settings: Settings, session: aioboto3.Session | None = None) -> QueueClient:
    backend = settings.queue_backend.strip().lower()

    if backend == QUEUE_BACKEND.SQS:
        return SqsQueueClient(
            session or aioboto3.Session(),
            region_name=settings.aws_region,
            endpoint_url=settings.aws_endpoint_url,
        )

    if backend == QUEUE_BACKEND.INMEMORY:
        return InMemoryQueueClient([settings.queue_name])

    raise ValueError(f"Unsupported queue backend: {backend}")
