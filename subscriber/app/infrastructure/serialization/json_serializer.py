"""JSON event codec for DomainEvent subclasses.

Wire format: {"type": "<event class name>", "data": {<model fields>}}.
Only registered event types can be marshalled or unmarshalled.
"""
from __future__ import annotations

import json

from pydantic import ValidationError

from subscriber.app.domain.events import DomainEvent
from subscriber.app.ports.serializer import SerializerError


class JSONEventSerializer:
    """EventSerializer implementation backed by pydantic models."""

    def __init__(self, *event_types: type[DomainEvent]) -> None:
        self._types: dict[str, type[DomainEvent]] = {}
        for event_type in event_types:
            if not (isinstance(event_type, type) and issubclass(event_type, DomainEvent)):
                raise TypeError(f"{event_type!r} is not a DomainEvent subclass")
            name = event_type.__name__
            if name in self._types:
                raise ValueError(f"duplicate event type name: {name}")
            self._types[name] = event_type

    @property
    def event_types(self) -> list[str]:
        return sorted(self._types)

    def marshal(self, event: DomainEvent) -> bytes:
        name = type(event).__name__
        if self._types.get(name) is not type(event):
            raise SerializerError(f"unregistered event type: {name}")
        envelope = {"type": name, "data": event.model_dump(mode="json")}
        return json.dumps(envelope, separators=(",", ":")).encode()

    def unmarshal(self, data: bytes) -> DomainEvent:
        try:
            envelope = json.loads(data)
        except (UnicodeDecodeError, ValueError) as exc:
            raise SerializerError(f"invalid event json: {exc}") from exc
        if not isinstance(envelope, dict):
            raise SerializerError("event envelope must be a json object")

        name = envelope.get("type")
        event_type = self._types.get(name) if isinstance(name, str) else None
        if event_type is None:
            raise SerializerError(f"unknown event type: {name!r}")
        try:
            return event_type.model_validate(envelope.get("data") or {})
        except ValidationError as exc:
            raise SerializerError(f"invalid {name} event: {exc}") from exc
