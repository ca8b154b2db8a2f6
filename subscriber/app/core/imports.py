"""Resolve `package.module:attribute` strings from configuration."""
from __future__ import annotations

from importlib import import_module
from typing import Any


def import_string(path: str) -> Any:
    module_path, sep, attribute = path.strip().partition(":")
    if not sep or not module_path or not attribute:
        raise ValueError(f"expected 'module:attribute', got {path!r}")
    module = import_module(module_path)
    target: Any = module
    for part in attribute.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as exc:
            raise ValueError(f"{module_path!r} has no attribute {attribute!r}") from exc
    return target
