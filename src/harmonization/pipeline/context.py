"""Mutable state shared by the harmonization pipeline steps."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List

from harmonization.config.policies import Policies
from harmonization.entities.core import OccurrenceRecord
from harmonization.observability.quarantine import QuarantineManager

from .dates.parser import DateParser, FormatDateParser
from .eras.classifier import EraPartition
from .eras.roster import CollectorEraRoster

if TYPE_CHECKING:  # pragma: no cover - imported for type checking only
    from .assembly.assembler import AssemblyResult
    from .deduplication.processor import DeduplicationResult


@dataclass
class HarmonizationContext:
    """Record stream and per-stage results threaded through the pipeline.

    Each step reads ``records`` and replaces it with its own output. Records
    diverted from the main stream (undated or problem years) are kept on the
    context so the assembler can decide whether to emit them.
    """

    policies: Policies
    column_order: List[str]
    records: List[OccurrenceRecord]
    roster: CollectorEraRoster
    date_parser: DateParser | None = None
    quarantine: QuarantineManager = field(default_factory=QuarantineManager)
    input_count: int = 0
    rejected: List[OccurrenceRecord] = field(default_factory=list)
    undated: List[OccurrenceRecord] = field(default_factory=list)
    problem_years: List[OccurrenceRecord] = field(default_factory=list)
    partition: EraPartition | None = None
    corrections: List[Dict[str, Any]] = field(default_factory=list)
    deduplication: "DeduplicationResult | None" = None
    assembly: "AssemblyResult | None" = None
    stats: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.date_parser is None:
            self.date_parser = FormatDateParser(self.policies.dates.grammars)
        if not self.input_count:
            self.input_count = len(self.records)


__all__ = ["HarmonizationContext"]
