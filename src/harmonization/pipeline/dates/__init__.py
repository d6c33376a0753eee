"""Date parsing, sentinel normalisation and the date normalizer stage."""

from .normalizer import DateNormalizationResult, DateNormalizationStep, normalize_date, normalize_dates
from .parser import DateParser, FormatDateParser, ParsedDate
from .sentinels import apply_sentinels

__all__ = [
    "DateParser",
    "FormatDateParser",
    "ParsedDate",
    "DateNormalizationResult",
    "DateNormalizationStep",
    "normalize_date",
    "normalize_dates",
    "apply_sentinels",
]
