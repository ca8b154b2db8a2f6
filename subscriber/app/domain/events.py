"""Base model for domain events carried on the queue and in the archive."""
from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DomainEvent(BaseModel):
    """Immutable event about one aggregate.

    Subclasses add their own fields; the class name is the event type name
    used on the wire.
    """

    model_config = ConfigDict(frozen=True)

    aggregate_id: str = Field(..., min_length=1)
    version: int = Field(0, ge=0)
    at: datetime = Field(default_factory=_utcnow)
