"""Subscriber-level constants shared across modules."""
from __future__ import annotations

# Queue service limits.
MAX_RECEIVE_MESSAGES = 10
MAX_DELETE_BATCH_SIZE = 10

DEFAULT_RECEIVE_WAIT_SECONDS = 20
DEFAULT_VISIBILITY_TIMEOUT_SECONDS = 240
DEFAULT_RECEIVE_RETRY_SECONDS = 15.0

DEFAULT_DELETE_FLUSH_INTERVAL_SECONDS = 15.0
DEFAULT_DELETE_MAX_ATTEMPTS = 3
DEFAULT_DELETE_RETRY_SECONDS = 15.0

DEFAULT_CHANNEL_CAPACITY = 10


class QUEUE_BACKEND:
    SQS = "sqs"
    INMEMORY = "inmemory"


class ARCHIVE_BACKEND:
    S3 = "s3"
    INMEMORY = "inmemory"
