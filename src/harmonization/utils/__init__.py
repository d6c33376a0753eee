"""Utility helpers shared across harmonization modules."""

from .helpers import (
    ensure_directory,
    fold_diacritics,
    normalize_key_text,
    normalize_name,
    normalize_whitespace,
    serialize_json,
)
from .logging import configure_logging, get_logger, log_timing, logging_context

__all__ = [
    "configure_logging",
    "get_logger",
    "logging_context",
    "log_timing",
    "normalize_whitespace",
    "fold_diacritics",
    "normalize_key_text",
    "normalize_name",
    "ensure_directory",
    "serialize_json",
]
