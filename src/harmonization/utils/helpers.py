"""General-purpose helpers for deterministic record processing."""

from __future__ import annotations

import json
import re
import unicodedata
from pathlib import Path

from .logging import get_logger

_WHITESPACE_PATTERN = re.compile(r"\s+")
_PUNCTUATION_PATTERN = re.compile(r"[^\w\s]+")

_LOGGER = get_logger(module=__name__)


def normalize_whitespace(text: str) -> str:
    """Collapse repeated whitespace into single spaces."""

    return _WHITESPACE_PATTERN.sub(" ", text.strip())


def fold_diacritics(text: str) -> str:
    """Remove diacritics by decomposing unicode characters."""

    normalized = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in normalized if not unicodedata.combining(ch))


def normalize_key_text(text: str | None) -> str | None:
    """Canonical form used for composite key comparison.

    Case-folds, strips punctuation and squeezes whitespace. ``None`` stays
    ``None`` so that missing components still take part in the key literally.
    """

    if text is None:
        return None
    stripped = _PUNCTUATION_PATTERN.sub(" ", text.casefold())
    return normalize_whitespace(stripped)


def normalize_name(text: str) -> str:
    """Lowercase and whitespace-normalise a collector name for roster matching."""

    return normalize_whitespace(fold_diacritics(text).casefold())


def ensure_directory(path: Path | str) -> Path:
    """Ensure that a directory exists and return the resolved Path."""

    target = Path(path)
    target.mkdir(parents=True, exist_ok=True)
    return target.resolve()


def serialize_json(data: object, destination: Path | str, *, indent: int = 2) -> Path:
    """Serialize data to JSON with deterministic ordering."""

    dest_path = Path(destination)
    dest_path.parent.mkdir(parents=True, exist_ok=True)
    dest_path.write_text(
        json.dumps(data, indent=indent, sort_keys=True, ensure_ascii=False, default=str) + "\n",
        encoding="utf-8",
    )
    _LOGGER.debug("Serialized JSON", path=str(dest_path), size=dest_path.stat().st_size)
    return dest_path


__all__ = [
    "normalize_whitespace",
    "fold_diacritics",
    "normalize_key_text",
    "normalize_name",
    "ensure_directory",
    "serialize_json",
]
