"""Backoff utilities.

`exponential_backoff` is an async generator that yields the attempt number
(1-based) for the caller to try an operation. When the caller asks for the
next attempt the generator first sleeps: `initial_delay` after the first
attempt, multiplied by `multiplier` after every later one and capped at
`max_delay`. No sleep follows the final attempt. Breaking out of the loop
stops the sequence without sleeping.
"""
from __future__ import annotations

import asyncio
from typing import AsyncIterator


async def exponential_backoff(
    initial_delay: float,
    max_delay: float,
    multiplier: float,
    max_attempts: int,
) -> AsyncIterator[int]:
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")
    delay = min(initial_delay, max_delay)
    for attempt in range(1, max_attempts + 1):
        yield attempt
        if attempt < max_attempts:
            await asyncio.sleep(delay)
            delay = min(delay * multiplier, max_delay)


def fixed_backoff(delay: float, max_attempts: int) -> AsyncIterator[int]:
    """Same as exponential_backoff with a constant pause between attempts."""
    return exponential_backoff(delay, delay, 1.0, max_attempts)
