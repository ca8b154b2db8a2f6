"""In-memory archive for local mode and tests. Objects are listed in key order."""
from __future__ import annotations

from typing import AsyncIterator

from subscriber.app.domain.models import ArchiveObject, ObjectPage
from subscriber.app.ports.archive_client import ArchiveClientError


class InMemoryArchiveClient:
    def __init__(self, *, page_size: int = 1000) -> None:
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self._page_size = page_size
        self._buckets: dict[str, dict[str, bytes]] = {}
        self.list_calls: list[tuple[str, str, str | None]] = []

    async def connect(self) -> None:
        return

    async def close(self) -> None:
        return

    def put_object(self, bucket: str, key: str, data: bytes) -> None:
        self._buckets.setdefault(bucket, {})[key] = data

    def put_lines(self, bucket: str, key: str, lines: list[str]) -> None:
        self.put_object(bucket, key, "".join(f"{line}\n" for line in lines).encode())

    async def list_objects(
        self,
        bucket: str,
        prefix: str,
        continuation_token: str | None = None,
    ) -> ObjectPage:
        self.list_calls.append((bucket, prefix, continuation_token))
        if bucket not in self._buckets:
            raise ArchiveClientError(f"no such bucket: {bucket}")
        keys = sorted(key for key in self._buckets[bucket] if key.startswith(prefix))
        try:
            start = int(continuation_token) if continuation_token else 0
        except ValueError as exc:
            raise ArchiveClientError(f"invalid continuation token: {continuation_token}") from exc

        page = keys[start : start + self._page_size]
        end = start + len(page)
        return ObjectPage(
            objects=[ArchiveObject(key=key, size=len(self._buckets[bucket][key])) for key in page],
            next_token=str(end) if end < len(keys) else None,
        )

    async def iter_lines(self, bucket: str, key: str) -> AsyncIterator[bytes]:
        try:
            data = self._buckets[bucket][key]
        except KeyError as exc:
            raise ArchiveClientError(f"no such object: s3://{bucket}/{key}") from exc
        for line in data.splitlines():
            yield line
