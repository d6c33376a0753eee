"""Deduplication processor orchestrating grouping, coordinate resolution and merging."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from time import perf_counter
from typing import TYPE_CHECKING, Dict, Iterable, List, Sequence

from harmonization.config.policies import ColumnPolicy, DeduplicationPolicy
from harmonization.entities.core import (
    DuplicationAuditEntry,
    MergedRecord,
    OccurrenceRecord,
    StructuralError,
)
from harmonization.utils.logging import get_logger

from .coordinates import CoordinateResolver
from .grouping import DuplicateCluster, group_records
from .merger import ClusterMerger, MergeOutcome

if TYPE_CHECKING:  # pragma: no cover - imported for type checking only
    from harmonization.pipeline.context import HarmonizationContext


_LOGGER = get_logger(module=__name__)


@dataclass
class DeduplicationResult:
    """Aggregate result from deduplication processing."""

    clusters: List[DuplicateCluster]
    merged: List[MergedRecord]
    audit: List[DuplicationAuditEntry]
    passthrough: List[OccurrenceRecord]
    stats: Dict[str, object]
    samples: List[Dict[str, object]] = field(default_factory=list)


class DeduplicationProcessor:
    """Coordinator for grouping and resolving duplicate clusters.

    Clusters are independent, so resolution can fan out over a thread pool
    (``max_workers``). Ranking only uses the ingestion ``sequence`` captured
    before dispatch and results are collected in cluster-id order, so the
    output does not depend on scheduling. Calls to :meth:`process` are
    serialised with an internal lock.
    """

    def __init__(
        self,
        policy: DeduplicationPolicy,
        columns: ColumnPolicy,
        column_order: Sequence[str],
    ) -> None:
        self.policy = policy
        self.resolver = CoordinateResolver(policy)
        self.merger = ClusterMerger(policy, columns, column_order)
        self._lock = threading.Lock()

    def resolve_cluster(self, cluster: DuplicateCluster) -> MergeOutcome:
        decision = self.resolver.resolve(cluster) if cluster.has_coordinate_conflict else None
        return self.merger.merge(cluster, decision)

    def _resolve_all(self, clusters: Sequence[DuplicateCluster]) -> List[MergeOutcome]:
        if self.policy.max_workers <= 1 or len(clusters) <= 1:
            return [self.resolve_cluster(cluster) for cluster in clusters]
        with ThreadPoolExecutor(max_workers=self.policy.max_workers) as executor:
            return list(executor.map(self.resolve_cluster, clusters))

    def process(self, records: Iterable[OccurrenceRecord]) -> DeduplicationResult:
        with self._lock:
            start_time = perf_counter()
            materialized = list(records)
            _LOGGER.info("Deduplication run started", total_records=len(materialized))

            grouping = group_records(materialized)
            duplicate_clusters = [
                cluster for cluster in grouping.clusters if cluster.member_count >= self.policy.min_cluster_size
            ]
            passthrough = list(grouping.ungrouped)
            for cluster in grouping.clusters:
                if cluster.member_count < self.policy.min_cluster_size:
                    passthrough.extend(cluster.members)
            passthrough.sort(key=lambda record: record.sequence)

            outcomes = self._resolve_all(duplicate_clusters)
            merged = [outcome.merged for outcome in outcomes]
            audit = [outcome.audit for outcome in outcomes]

            clustered_members = sum(cluster.member_count for cluster in duplicate_clusters)
            if clustered_members + len(passthrough) != len(materialized):
                raise StructuralError(
                    "Record conservation violated: "
                    f"{clustered_members} clustered + {len(passthrough)} passthrough != {len(materialized)} input"
                )

            conflicts = [cluster for cluster in duplicate_clusters if cluster.has_coordinate_conflict]
            samples: List[Dict[str, object]] = []
            for outcome in outcomes[: self.policy.sample_merge_count]:
                samples.append(
                    {
                        "id": outcome.merged.id,
                        "members": list(outcome.merged.member_ids),
                        "distinct_coordinate_count": outcome.merged.distinct_coordinate_count,
                        "geolocation_winner": outcome.merged.geolocation_winner,
                    }
                )

            elapsed_seconds = perf_counter() - start_time
            stats: Dict[str, object] = {
                "input_records": len(materialized),
                "ungrouped": len(grouping.ungrouped),
                "keys": len(grouping.clusters),
                "duplicate_clusters": len(duplicate_clusters),
                "clustered_records": clustered_members,
                "below_min_cluster_size": len(grouping.clusters) - len(duplicate_clusters),
                "coordinate_conflicts": len(conflicts),
                "passthrough": len(passthrough),
                "timing": {"elapsed_seconds": elapsed_seconds},
            }
            _LOGGER.info(
                "Deduplication run finished",
                total_records=len(materialized),
                duplicate_clusters=len(duplicate_clusters),
                clustered_records=clustered_members,
                coordinate_conflicts=len(conflicts),
                passthrough=len(passthrough),
                elapsed_seconds=elapsed_seconds,
            )
            return DeduplicationResult(
                clusters=duplicate_clusters,
                merged=merged,
                audit=audit,
                passthrough=passthrough,
                stats=stats,
                samples=samples,
            )


class DeduplicationStep:
    name = "deduplicate"

    def run(self, context: "HarmonizationContext") -> None:
        processor = DeduplicationProcessor(
            context.policies.deduplication,
            context.policies.columns,
            context.column_order,
        )
        context.deduplication = processor.process(context.records)
        context.stats[self.name] = context.deduplication.stats


__all__ = ["DeduplicationProcessor", "DeduplicationResult", "DeduplicationStep"]
