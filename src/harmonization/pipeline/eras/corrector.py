"""Era-based year correction stage."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List

from harmonization.config.policies import EraPolicy
from harmonization.entities.core import OccurrenceRecord
from harmonization.observability.quarantine import PROBLEM_YEAR, QuarantineManager
from harmonization.utils.logging import get_logger

from .classifier import EraPartition
from .rules import CollectorOverrideTable, apply_rules, rules_for_collector, triggered_rules

if TYPE_CHECKING:  # pragma: no cover - imported for type checking only
    from harmonization.pipeline.context import HarmonizationContext


_LOGGER = get_logger(module=__name__)


@dataclass
class CorrectionOutcome:
    """Corrected record stream plus the audit of every rewrite."""

    records: List[OccurrenceRecord] = field(default_factory=list)
    problem_years: List[OccurrenceRecord] = field(default_factory=list)
    corrections: List[Dict[str, Any]] = field(default_factory=list)


class YearCorrector:
    """Rewrite implausible years using collector-era knowledge.

    Pre-cutoff records go through the ordered generic rules and any
    collector-specific exceptions. Modern records only receive explicit
    per-record fixes; those still carrying an unresolvable year are split off
    for manual review.
    """

    def __init__(self, policy: EraPolicy) -> None:
        self.policy = policy
        self.overrides = CollectorOverrideTable(policy.collector_overrides)
        self._unresolvable = frozenset(policy.unresolvable_years)

    def _with_year(self, record: OccurrenceRecord, year: int) -> OccurrenceRecord:
        date = record.date.model_copy(update={"year": year, "year_text": str(year)})
        return record.model_copy(update={"date": date})

    def _apply_record_override(
        self, record: OccurrenceRecord, corrections: List[Dict[str, Any]]
    ) -> OccurrenceRecord:
        pinned = self.policy.record_year_overrides.get(record.id)
        if pinned is None or pinned == record.date.year:
            return record
        corrections.append(
            {
                "record_id": record.id,
                "from": record.date.year,
                "to": pinned,
                "rules": ["record_year_override"],
            }
        )
        return self._with_year(record, pinned)

    def correct_pre_cutoff(
        self, record: OccurrenceRecord, corrections: List[Dict[str, Any]] | None = None
    ) -> OccurrenceRecord:
        corrections = corrections if corrections is not None else []
        year = record.date.year
        if year is not None:
            rules = rules_for_collector(record.collector, self.overrides)
            original = record.date.year_digits() or str(year)
            corrected = apply_rules(original, rules)
            if corrected != original:
                corrections.append(
                    {
                        "record_id": record.id,
                        "from": year,
                        "to": int(corrected),
                        "rules": triggered_rules(original, rules),
                    }
                )
                record = self._with_year(record, int(corrected))
        return self._apply_record_override(record, corrections)

    def clean_modern(
        self, record: OccurrenceRecord, corrections: List[Dict[str, Any]] | None = None
    ) -> tuple[OccurrenceRecord, bool]:
        """Return the cleaned record and whether its year is unresolvable."""

        corrections = corrections if corrections is not None else []
        record = self._apply_record_override(record, corrections)
        year = record.date.year
        return record, year is not None and record.date.year_digits() in self._unresolvable

    def correct(
        self,
        partition: EraPartition,
        quarantine: QuarantineManager | None = None,
        *,
        stage: str = "correct_years",
    ) -> CorrectionOutcome:
        outcome = CorrectionOutcome()
        for record in partition.pre_cutoff:
            outcome.records.append(self.correct_pre_cutoff(record, outcome.corrections))
        for record in partition.modern:
            cleaned, unresolvable = self.clean_modern(record, outcome.corrections)
            if unresolvable:
                outcome.problem_years.append(cleaned)
                if quarantine is not None:
                    quarantine.quarantine(
                        stage=stage,
                        reason=PROBLEM_YEAR,
                        record_id=cleaned.id,
                        payload={"year": cleaned.date.year, "collector": cleaned.collector},
                    )
                continue
            outcome.records.append(cleaned)
        outcome.records.extend(partition.observations)
        outcome.records.sort(key=lambda record: record.sequence)
        return outcome


class YearCorrectionStep:
    name = "correct_years"

    def run(self, context: "HarmonizationContext") -> None:
        if context.partition is None:
            raise RuntimeError("classify_eras must run before correct_years")
        corrector = YearCorrector(context.policies.eras)
        outcome = corrector.correct(context.partition, context.quarantine, stage=self.name)
        context.records = outcome.records
        context.problem_years = outcome.problem_years
        context.corrections = outcome.corrections
        context.stats[self.name] = {
            "corrected": len(outcome.corrections),
            "problem_years": len(outcome.problem_years),
            "collector_overrides": len(corrector.overrides),
        }
        _LOGGER.info(
            "Corrected collection years",
            corrected=len(outcome.corrections),
            problem_years=len(outcome.problem_years),
        )


__all__ = ["CorrectionOutcome", "YearCorrector", "YearCorrectionStep"]
