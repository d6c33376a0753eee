"""Distinct-value-join merge of duplicate clusters."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Sequence

from harmonization.config.policies import ColumnPolicy, DeduplicationPolicy
from harmonization.entities.core import DuplicationAuditEntry, MergedRecord, StructuralError
from harmonization.pipeline.records import geolocation_to_row, record_to_row
from harmonization.utils.logging import get_logger

from .coordinates import CoordinateDecision
from .grouping import DuplicateCluster

_LOGGER = get_logger(module=__name__)


def join_distinct(
    values: Iterable[Any],
    *,
    case_insensitive: bool = True,
    separator: str = ",",
) -> Any:
    """Deduplicate, sort and join the non-null *values*.

    All-null input yields ``None``. When every member carries the same value it
    is returned unchanged and in its original type, so joining one value is a
    no-op. Values that differ only by case collapse to their folded form.
    """

    distinct: Dict[str, List[Any]] = {}
    for value in values:
        if value is None:
            continue
        text = str(value).strip()
        if not text:
            continue
        if case_insensitive:
            text = text.casefold()
        distinct.setdefault(text, []).append(value)
    if not distinct:
        return None
    if len(distinct) == 1:
        text, originals = next(iter(distinct.items()))
        first = originals[0]
        return first if all(original == first for original in originals) else text
    return separator.join(sorted(distinct))


@dataclass
class MergeOutcome:
    merged: MergedRecord
    audit: DuplicationAuditEntry


class ClusterMerger:
    """Collapse a cluster into one row with the distinct-value-join rule.

    Geolocation columns follow the join rule too unless the cluster carries
    more than one distinct coordinate pair, in which case the resolver's
    winning block is copied verbatim.
    """

    def __init__(
        self,
        policy: DeduplicationPolicy,
        columns: ColumnPolicy,
        column_order: Sequence[str],
    ) -> None:
        self.policy = policy
        self.columns = columns
        self.column_order = list(column_order)
        self._geo_columns = set(columns.geolocation_columns())
        self._coordinate_axes = {columns.latitude: 0, columns.longitude: 1}

    def _join(self, values: Iterable[Any]) -> Any:
        return join_distinct(
            values,
            case_insensitive=self.policy.case_insensitive_join,
            separator=self.policy.join_separator,
        )

    def _join_coordinate(self, cluster: DuplicateCluster, axis: int) -> Any:
        """Join one coordinate axis by numeric value, keeping the first source spelling of each."""

        spellings: Dict[float, Any] = {}
        for record in cluster.members:
            if record.geolocation is None:
                continue
            value = record.geolocation.coordinate_pair()[axis]
            if value is not None:
                spellings.setdefault(value, record.geolocation.coordinate_cells()[axis])
        if len(spellings) == 1:
            return next(iter(spellings.values()))
        return self._join(spellings.values())

    def merged_id(self, cluster_id: int) -> str:
        return f"{self.policy.merged_id_prefix}{cluster_id}"

    def merge(self, cluster: DuplicateCluster, decision: CoordinateDecision | None = None) -> MergeOutcome:
        if not cluster.members:
            raise StructuralError(f"Cluster {cluster.cluster_id} has no members")
        coordinate_count = cluster.distinct_coordinate_count
        if coordinate_count > 1 and decision is None:
            raise StructuralError(
                f"Cluster {cluster.cluster_id} has {coordinate_count} coordinates but no resolved geolocation"
            )

        member_rows = [record_to_row(record, self.columns, self.column_order) for record in cluster.members]
        winner_geo: Dict[str, Any] = {}
        if coordinate_count > 1 and decision is not None:
            winner_geo = geolocation_to_row(decision.winner.geolocation, self.columns)

        row: Dict[str, Any] = {}
        for column in self.column_order:
            if column == self.columns.id:
                row[column] = self.merged_id(cluster.cluster_id)
            elif winner_geo and column in self._geo_columns:
                row[column] = winner_geo.get(column)
            elif column in self._coordinate_axes:
                row[column] = self._join_coordinate(cluster, self._coordinate_axes[column])
            else:
                row[column] = self._join(member_row.get(column) for member_row in member_rows)
        row[self.columns.cluster_id_column] = cluster.cluster_id
        row[self.columns.coordinate_count_column] = coordinate_count

        member_ids = cluster.member_ids
        merged = MergedRecord(
            id=self.merged_id(cluster.cluster_id),
            cluster_id=cluster.cluster_id,
            member_ids=member_ids,
            distinct_coordinate_count=coordinate_count,
            geolocation_winner=decision.winner.id if winner_geo and decision is not None else None,
            row=row,
        )
        audit = DuplicationAuditEntry(
            cluster_id=cluster.cluster_id,
            original_id=",".join(member_ids),
            member_count=cluster.member_count,
            institution_code=self._join(record.institution_code for record in cluster.members),
        )
        _LOGGER.debug(
            "Merged cluster",
            cluster_id=cluster.cluster_id,
            members=member_ids,
            distinct_coordinates=coordinate_count,
        )
        return MergeOutcome(merged=merged, audit=audit)


__all__ = ["ClusterMerger", "MergeOutcome", "join_distinct"]
