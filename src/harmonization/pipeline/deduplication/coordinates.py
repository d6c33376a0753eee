"""Geolocation conflict resolution for clusters with several coordinates."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Tuple

from harmonization.config.policies import DeduplicationPolicy
from harmonization.entities.core import OccurrenceRecord, StructuralError
from harmonization.pipeline.records import count_null_fields
from harmonization.utils.logging import get_logger

from .grouping import DuplicateCluster

_LOGGER = get_logger(module=__name__)


@dataclass(frozen=True)
class CoordinateDecision:
    """Outcome of ranking a cluster's geolocation candidates."""

    winner: OccurrenceRecord
    candidate_ids: Tuple[str, ...]
    high_confidence_ids: Tuple[str, ...]
    null_counts: Tuple[Tuple[str, int], ...]

    @property
    def used_high_confidence(self) -> bool:
        return bool(self.high_confidence_ids)


class CoordinateResolver:
    """Select exactly one winning geolocation block per conflicting cluster.

    Ranking: records whose verification status matches the high-confidence
    pattern first; within that pool (or all candidates when nobody qualifies)
    the fewest null fields; then ingestion sequence; then record id.
    """

    def __init__(
        self,
        policy: DeduplicationPolicy,
        null_counter: Callable[[OccurrenceRecord], int] = count_null_fields,
    ) -> None:
        self.policy = policy
        self._null_counter = null_counter

    def is_high_confidence(self, record: OccurrenceRecord) -> bool:
        status = record.geolocation.verification_status if record.geolocation else None
        return status is not None and self.policy.high_confidence.search(status) is not None

    def resolve(self, cluster: DuplicateCluster) -> CoordinateDecision:
        candidates: List[OccurrenceRecord] = [record for record in cluster.members if record.has_coordinates()]
        if not candidates:
            raise StructuralError(
                f"Cluster {cluster.cluster_id} has a coordinate conflict but no geolocated members"
            )
        preferred = [record for record in candidates if self.is_high_confidence(record)]
        pool = preferred or candidates
        null_counts = {record.id: self._null_counter(record) for record in pool}
        winner = min(pool, key=lambda record: (null_counts[record.id], record.sequence, record.id))
        _LOGGER.debug(
            "Resolved coordinate conflict",
            cluster_id=cluster.cluster_id,
            winner=winner.id,
            candidates=len(candidates),
            high_confidence=len(preferred),
        )
        return CoordinateDecision(
            winner=winner,
            candidate_ids=tuple(record.id for record in candidates),
            high_confidence_ids=tuple(record.id for record in preferred),
            null_counts=tuple(sorted(null_counts.items())),
        )


__all__ = ["CoordinateDecision", "CoordinateResolver"]
