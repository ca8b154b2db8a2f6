"""Archive client factory: selects implementation from config."""
from __future__ import annotations

import aioboto3

from subscriber.app.config.settings import Settings
from subscriber.app.constants import ARCHIVE_BACKEND
from subscriber.app.infrastructure.archive.inmemory.in_memory_archive_client import InMemoryArchiveClient
from subscriber.app.infrastructure.archive.s3.s3_archive_client import S3ArchiveClient
from subscriber.app.ports.archive_client import ArchiveClient


def create_archive_client(settings: Settings, session: aioboto3.Session | None = None) -> ArchiveClient:
    backend = settings.archive_backend.strip().lower()

    if backend == ARCHIVE_BACKEND.S3:
        return S3ArchiveClient(
            session or aioboto3.Session(),
            region_name=settings.aws_region,
            endpoint_url=settings.aws_endpoint_url,
        )

    if backend == ARCHIVE_BACKEND.INMEMORY:
        return InMemoryArchiveClient()

    raise ValueError(f"Unsupported archive backend: {backend}")
