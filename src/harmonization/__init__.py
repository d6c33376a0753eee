"""Top-level package for the herbarium occurrence harmonization engine."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("herbarium-harmonization")
except PackageNotFoundError:  # pragma: no cover - running from a source checkout
    __version__ = "0.1.0"

from .config.settings import Settings, get_settings
from .entities import (
    CollectionDate,
    DuplicationAuditEntry,
    Geolocation,
    HarmonizationError,
    MergedRecord,
    OccurrenceRecord,
    StructuralError,
)

__all__ = [
    "__version__",
    "Settings",
    "get_settings",
    "CollectionDate",
    "Geolocation",
    "OccurrenceRecord",
    "MergedRecord",
    "DuplicationAuditEntry",
    "HarmonizationError",
    "StructuralError",
]
