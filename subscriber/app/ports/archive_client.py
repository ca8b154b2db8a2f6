"""Port: append-only object archive used by the replay path."""
from __future__ import annotations

from typing import AsyncIterator, Protocol, runtime_checkable

from subscriber.app.domain.models import ObjectPage


class ArchiveClientError(Exception):
    """Base for archive listing/read failures."""


@runtime_checkable
class ArchiveClient(Protocol):
    async def connect(self) -> None: ...

    async def list_objects(
        self,
        bucket: str,
        prefix: str,
        continuation_token: str | None = None,
    ) -> ObjectPage: ...

    def iter_lines(self, bucket: str, key: str) -> AsyncIterator[bytes]:
        """Stream an object's content one newline-delimited line at a time."""
        ...

    async def close(self) -> None: ...
