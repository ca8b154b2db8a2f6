"""Built-in event handlers."""
from __future__ import annotations

from typing import Any

from loguru import logger

from subscriber.app.core import SERVICE_NAME


async def log_event(event: Any) -> None:
    """Log the event and do nothing else. Default when no handler is configured."""
    logger.bind(
        service_name=SERVICE_NAME,
        event="event_handled",
        event_type=type(event).__name__,
        aggregate_id=getattr(event, "aggregate_id", None),
        version=getattr(event, "version", None),
    ).info("")
