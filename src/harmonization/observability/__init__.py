"""Observability infrastructure for the harmonization pipeline."""
from __future__ import annotations

from .determinism import canonical_json, none_safe_key, stable_hash, stable_sorted
from .quarantine import (
    NO_DATE,
    PROBLEM_YEAR,
    REJECTED_MISSING_COLLECTOR,
    REJECTED_MISSING_TAXON,
    QuarantinedItem,
    QuarantineManager,
    QuarantineSnapshot,
)

__all__ = [
    "QuarantineManager",
    "QuarantineSnapshot",
    "QuarantinedItem",
    "REJECTED_MISSING_COLLECTOR",
    "REJECTED_MISSING_TAXON",
    "NO_DATE",
    "PROBLEM_YEAR",
    "canonical_json",
    "none_safe_key",
    "stable_hash",
    "stable_sorted",
]
