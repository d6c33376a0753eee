"""Collector era classification stage."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Iterable, List

from harmonization.entities.core import OccurrenceRecord
from harmonization.utils.logging import get_logger

from .roster import CollectorEraRoster

if TYPE_CHECKING:  # pragma: no cover - imported for type checking only
    from harmonization.pipeline.context import HarmonizationContext


_LOGGER = get_logger(module=__name__)


class Era(str, Enum):
    PRE_CUTOFF = "pre_cutoff"
    MODERN = "modern"


@dataclass
class EraPartition:
    """Records split by collector era; observations are never classified."""

    pre_cutoff: List[OccurrenceRecord] = field(default_factory=list)
    modern: List[OccurrenceRecord] = field(default_factory=list)
    observations: List[OccurrenceRecord] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.pre_cutoff) + len(self.modern) + len(self.observations)


def classify_collector(collector: str | None, roster: CollectorEraRoster) -> Era:
    return Era.PRE_CUTOFF if roster.matches(collector) else Era.MODERN


def classify_records(records: Iterable[OccurrenceRecord], roster: CollectorEraRoster) -> EraPartition:
    partition = EraPartition()
    for record in records:
        if record.is_observation:
            partition.observations.append(record)
        elif classify_collector(record.collector, roster) is Era.PRE_CUTOFF:
            partition.pre_cutoff.append(record)
        else:
            partition.modern.append(record)
    return partition


class EraClassificationStep:
    name = "classify_eras"

    def run(self, context: "HarmonizationContext") -> None:
        partition = classify_records(context.records, context.roster)
        context.partition = partition
        context.stats[self.name] = {
            "pre_cutoff": len(partition.pre_cutoff),
            "modern": len(partition.modern),
            "observations": len(partition.observations),
            "roster_size": len(context.roster),
        }
        _LOGGER.info(
            "Classified collector eras",
            pre_cutoff=len(partition.pre_cutoff),
            modern=len(partition.modern),
            observations=len(partition.observations),
        )


__all__ = ["Era", "EraPartition", "EraClassificationStep", "classify_collector", "classify_records"]
