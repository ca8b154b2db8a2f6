"""Port: application event handler invoked once per decoded event.

Delivery is at-least-once, so a handler must tolerate seeing the same
event more than once.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable

EventHandler = Callable[[Any], Awaitable[None]]
