"""Subscriber composition root: build and lifecycle-manage concrete dependencies.

Composition may: import concrete classes, call factories, resolve the
configured handler and event types, manage high-level lifecycle.
"""
from __future__ import annotations

from typing import Any

import aioboto3
from loguru import logger

from subscriber.app.application.subscription import SubscriptionOptions
from subscriber.app.config.settings import Settings
from subscriber.app.core import SERVICE_NAME
from subscriber.app.core.imports import import_string
from subscriber.app.infrastructure.archive.factory import create_archive_client
from subscriber.app.infrastructure.messaging.factory import create_queue_client
from subscriber.app.infrastructure.serialization.json_serializer import JSONEventSerializer
from subscriber.app.ports.archive_client import ArchiveClient
from subscriber.app.ports.event_handler import EventHandler
from subscriber.app.ports.queue_client import QueueClient
from subscriber.app.ports.serializer import EventSerializer


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


def create_serializer(settings: Settings) -> EventSerializer:
    event_types = [import_string(path) for path in settings.event_type_paths]
    if not event_types:
        logger.warning("EVENT_TYPES is empty; every event will fail to unmarshal")
    return JSONEventSerializer(*event_types)


def create_subscription_options(settings: Settings) -> SubscriptionOptions:
    return SubscriptionOptions(
        delete_flush_interval_seconds=settings.delete_flush_interval_seconds,
        delete_max_attempts=settings.delete_max_attempts,
        delete_retry_seconds=settings.delete_retry_seconds,
        receive_max_messages=settings.receive_max_messages,
        receive_wait_seconds=settings.receive_wait_seconds,
        visibility_timeout_seconds=settings.visibility_timeout_seconds,
        receive_retry_seconds=settings.receive_retry_seconds,
        channel_capacity=settings.channel_capacity,
        handler_timeout_seconds=settings.handler_timeout_seconds,
        resolve_attempts=settings.max_connection_attempts,
        resolve_initial_backoff_seconds=settings.initial_backoff_seconds,
        resolve_max_backoff_seconds=settings.max_backoff_seconds,
        resolve_backoff_multiplier=settings.backoff_multiplier,
    )


def create_event_handler(settings: Settings) -> EventHandler:
    handler = import_string(settings.event_handler)
    if not callable(handler):
        raise ValueError(f"EVENT_HANDLER {settings.event_handler!r} is not callable")
    return handler


class SubscriberDependencies:
    """Holds wired subscriber dependencies and their lifecycle."""

    def __init__(self, *, settings: Settings, session: aioboto3.Session | None = None) -> None:
        self._settings = settings
        self._session = session
        self._queue_client: QueueClient | None = None
        self._archive_client: ArchiveClient | None = None
        self._serializer: EventSerializer | None = None
        self._handler: EventHandler | None = None

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def queue_client(self) -> QueueClient:
        if self._queue_client is None:
            raise RuntimeError("queue_client is not initialized")
        return self._queue_client

    @property
    def archive_client(self) -> ArchiveClient:
        if self._archive_client is None:
            raise RuntimeError("archive_client is not initialized")
        return self._archive_client

    @property
    def serializer(self) -> EventSerializer:
        if self._serializer is None:
            raise RuntimeError("serializer is not initialized")
        return self._serializer

    @property
    def handler(self) -> EventHandler:
        if self._handler is None:
            raise RuntimeError("handler is not initialized")
        return self._handler

    def _ensure_codec(self) -> None:
        if self._serializer is None:
            self._serializer = create_serializer(self._settings)
        if self._handler is None:
            self._handler = create_event_handler(self._settings)

    async def connect_queue(self) -> None:
        self._ensure_codec()
        self._queue_client = create_queue_client(self._settings, self._session)
        await self._queue_client.connect()
        _log("queue_client_connected", backend=self._settings.queue_backend)

    async def connect_archive(self) -> None:
        self._ensure_codec()
        self._archive_client = create_archive_client(self._settings, self._session)
        await self._archive_client.connect()
        _log("archive_client_connected", backend=self._settings.archive_backend)

    async def close(self) -> None:
        if self._queue_client is not None:
            try:
                await self._queue_client.close()
            except Exception as exc:
                logger.warning("queue client close failed: {}", exc)
            self._queue_client = None

        if self._archive_client is not None:
            try:
                await self._archive_client.close()
            except Exception as exc:
                logger.warning("archive client close failed: {}", exc)
            self._archive_client = None


def create_subscriber_dependencies(settings: Settings | None = None) -> SubscriberDependencies:
    return SubscriberDependencies(settings=settings or Settings())
