"""Deterministic helpers for ordering and checksumming pipeline outputs.

Harmonization must produce byte-identical outputs for identical inputs. This
module centralises stable ordering of keys that may contain ``None``,
canonical serialisation and reproducibility checksums.
"""
from __future__ import annotations

from dataclasses import asdict, is_dataclass
from hashlib import sha256
import json
from typing import Any, Callable, Iterable, Mapping, Sequence, TypeVar

_T = TypeVar("_T")


def _convert(value: Any) -> Any:
    """Recursively convert *value* into JSON-serialisable primitives.

    Dataclasses become dictionaries, mappings become key-sorted pair lists and
    sets are sorted so the resulting structure has a single canonical form.
    """

    if is_dataclass(value) and not isinstance(value, type):
        value = asdict(value)
    if hasattr(value, "model_dump"):
        value = value.model_dump(mode="json")
    if isinstance(value, Mapping):
        return [
            (str(key), _convert(val))
            for key, val in sorted(value.items(), key=lambda item: str(item[0]))
        ]
    if isinstance(value, (list, tuple)):
        return [_convert(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return sorted((_convert(item) for item in value), key=repr)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def canonical_json(payload: Any) -> str:
    """Serialise *payload* into a canonical JSON string."""

    converted = _convert(payload)
    return json.dumps(converted, separators=(",", ":"), sort_keys=False, default=str)


def stable_hash(payload: Any) -> str:
    """Return a hex digest for *payload* using canonical JSON serialisation."""

    return sha256(canonical_json(payload).encode("utf-8")).hexdigest()


def stable_sorted(
    items: Iterable[_T], *, key: Callable[[_T], Any] | None = None, reverse: bool = False
) -> list[_T]:
    """Stable sorting helper that always materialises into a list."""

    return sorted(list(items), key=key, reverse=reverse)


def none_safe_key(values: Sequence[Any]) -> tuple:
    """Sort key for tuples mixing ``None``, numbers and strings.

    ``None`` sorts before any present value; present values compare within
    their own type family.
    """

    key = []
    for value in values:
        if value is None:
            key.append((0, 0, ""))
        elif isinstance(value, (int, float)):
            key.append((1, value, ""))
        else:
            key.append((2, 0, str(value)))
    return tuple(key)


__all__ = ["canonical_json", "stable_hash", "stable_sorted", "none_safe_key"]
