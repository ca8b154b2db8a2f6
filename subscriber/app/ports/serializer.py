"""Port: event codec. Turns serialized bytes into domain events and back."""
from __future__ import annotations

from typing import Any, Protocol


class SerializerError(Exception):
    """Payload does not describe a known, valid event."""


class EventSerializer(Protocol):
    def marshal(self, event: Any) -> bytes: ...

    def unmarshal(self, data: bytes) -> Any: ...
