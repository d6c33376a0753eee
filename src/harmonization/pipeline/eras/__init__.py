"""Collector era classification and era-based year correction."""

from .classifier import Era, EraClassificationStep, EraPartition, classify_collector, classify_records
from .corrector import CorrectionOutcome, YearCorrectionStep, YearCorrector
from .roster import CollectorEraRoster, build_roster, roster_from_policy
from .rules import (
    GENERIC_RULES,
    CollectorOverrideTable,
    ExactRewrite,
    PrefixRewrite,
    apply_rules,
    correct_year_text,
    rules_for_collector,
    triggered_rules,
)

__all__ = [
    "CollectorEraRoster",
    "build_roster",
    "roster_from_policy",
    "Era",
    "EraPartition",
    "EraClassificationStep",
    "classify_collector",
    "classify_records",
    "CorrectionOutcome",
    "YearCorrector",
    "YearCorrectionStep",
    "GENERIC_RULES",
    "CollectorOverrideTable",
    "ExactRewrite",
    "PrefixRewrite",
    "apply_rules",
    "correct_year_text",
    "rules_for_collector",
    "triggered_rules",
]
