"""Concrete archive client for Amazon S3 using aioboto3."""
from __future__ import annotations

from contextlib import AsyncExitStack
from typing import Any, AsyncIterator

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from subscriber.app.domain.models import ArchiveObject, ObjectPage
from subscriber.app.ports.archive_client import ArchiveClientError


class S3ArchiveClient:
    """ArchiveClient implementation over list_objects_v2 / get_object."""

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
    def _s3(self) -> Any:
        if self._client is None:
            raise RuntimeError("s3 client not connected")
        return self._client

    async def connect(self) -> None:
        if self._client is not None:
            return
        stack = AsyncExitStack()
        self._client = await stack.enter_async_context(
            self._session.client(
                "s3",
                region_name=self._region_name,
                endpoint_url=self._endpoint_url,
            )
        )
        self._exit_stack = stack

    async def list_objects(
        self,
        bucket: str,
        prefix: str,
        continuation_token: str | None = None,
    ) -> ObjectPage:
        kwargs: dict[str, Any] = {"Bucket": bucket, "Prefix": prefix}
        if continuation_token:
            kwargs["ContinuationToken"] = continuation_token
        try:
            response = await self._s3.list_objects_v2(**kwargs)
        except (BotoCoreError, ClientError) as exc:
            raise ArchiveClientError(f"s3 list_objects_v2 failed for s3://{bucket}/{prefix} - {exc}") from exc

        return ObjectPage(
            objects=[
                ArchiveObject(key=item["Key"], size=int(item.get("Size", 0)))
                for item in response.get("Contents", [])
            ],
            next_token=response.get("NextContinuationToken"),
        )

    async def iter_lines(self, bucket: str, key: str) -> AsyncIterator[bytes]:
        try:
            response = await self._s3.get_object(Bucket=bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise ArchiveClientError(f"s3 get_object failed for s3://{bucket}/{key} - {exc}") from exc

        async with response["Body"] as body:
            async for line in body.iter_lines():
                yield line

    async def close(self) -> None:
        stack, self._exit_stack = self._exit_stack, None
        self._client = None
        if stack is not None:
            await stack.aclose()
