"""Loguru sink configuration for the subscriber entry points.

Human-readable output by default; one JSON object per line when
`json_logs` is set, so bound fields (service_name, event, ...) reach the
log pipeline as structured data.
"""
from __future__ import annotations

import sys

from loguru import logger

HUMAN_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[service_name]}</cyan> | "
    "{extra[event]} {message}"
)


def configure_logging(level: str = "INFO", *, json_logs: bool = False) -> None:
    logger.remove()
    logger.configure(extra={"service_name": "-", "event": ""})
    if json_logs:
        logger.add(sys.stderr, format="{message}", level=level.upper(), serialize=True)
    else:
        logger.add(sys.stderr, format=HUMAN_FORMAT, level=level.upper(), colorize=True)
