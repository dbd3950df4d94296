"""Shared validation helpers for model constructors.

Private module -- not part of the public API. Used by ``__post_init__``
methods in sibling model modules to enforce runtime type constraints on
values that arrive from untrusted relays.
"""

from __future__ import annotations

import re
from typing import Any


_HEX64 = re.compile(r"[0-9a-f]{64}")


def validate_instance(value: Any, expected: type | tuple[type, ...], name: str) -> None:
    """Raise ``TypeError`` if *value* is not an instance of *expected*."""
    if not isinstance(value, expected):
        names = (
            " or ".join(t.__name__ for t in expected)
            if isinstance(expected, tuple)
            else expected.__name__
        )
        raise TypeError(f"{name} must be {names}, got {type(value).__name__}")


def validate_int(value: Any, name: str, *, minimum: int = 0, maximum: int | None = None) -> None:
    """Raise if *value* is not an ``int`` within ``[minimum, maximum]`` (``bool`` excluded)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    if maximum is not None and value > maximum:
        raise ValueError(f"{name} must be <= {maximum}")


def validate_hex64(value: Any, name: str) -> None:
    """Raise if *value* is not a lowercase 64-character hex string."""
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a str, got {type(value).__name__}")
    if not _HEX64.fullmatch(value):
        raise ValueError(f"{name} must be 64 lowercase hex characters")


def is_hex64(value: Any) -> bool:
    """Return True if *value* is a lowercase 64-character hex string."""
    return isinstance(value, str) and _HEX64.fullmatch(value) is not None


def validate_tags(value: Any, name: str) -> None:
    """Raise if *value* is not a list of non-empty string lists."""
    if not isinstance(value, list | tuple):
        raise TypeError(f"{name} must be a list, got {type(value).__name__}")
    for tag in value:
        if not isinstance(tag, list | tuple) or not tag:
            raise ValueError(f"{name} entries must be non-empty lists")
        for item in tag:
            if not isinstance(item, str):
                raise TypeError(f"{name} values must be str, got {type(item).__name__}")
