"""Domain entities for the harmonization engine."""

from .core import (
    BasisOfRecord,
    CollectionDate,
    DuplicationAuditEntry,
    Geolocation,
    HarmonizationError,
    MergedRecord,
    OccurrenceRecord,
    StructuralError,
)

__all__ = [
    "HarmonizationError",
    "StructuralError",
    "BasisOfRecord",
    "CollectionDate",
    "Geolocation",
    "OccurrenceRecord",
    "MergedRecord",
    "DuplicationAuditEntry",
]
