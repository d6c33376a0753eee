"""Shared validators for policy models."""

from __future__ import annotations

from typing import Any, Iterable, List

from pydantic_core import PydanticUndefined


def sanitize_string_sequence(value: Any) -> List[str]:
    """Normalise diverse inputs into a trimmed list of strings."""

    if value is None or value is PydanticUndefined:
        return []
    if isinstance(value, str):
        items = [value]
    elif isinstance(value, Iterable) and not isinstance(value, (bytes, bytearray)):
        items = list(value)
    else:
        items = [value]

    cleaned: List[str] = []
    for item in items:
        if not isinstance(item, str):
            raise TypeError("Expected string entries, but received non-string input")
        stripped = item.strip()
        if stripped:
            cleaned.append(stripped)
    return cleaned


__all__ = ["sanitize_string_sequence"]
