"""Exact composite-key grouping of occurrence records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

from harmonization.entities.core import OccurrenceRecord
from harmonization.observability.determinism import none_safe_key, stable_sorted
from harmonization.utils.helpers import normalize_key_text

CompositeKey = Tuple[str | None, str | None, int | None, int | None, int | None, str | None]


def composite_key(record: OccurrenceRecord) -> CompositeKey:
    """``(collector, taxon, month, day, year, locality)`` with normalised strings.

    Missing components stay ``None`` and take part in the key literally, so two
    records that both lack a day can still share a key.
    """

    return (
        normalize_key_text(record.collector),
        normalize_key_text(record.taxon),
        record.date.month,
        record.date.day,
        record.date.year,
        normalize_key_text(record.locality),
    )


def is_groupable(record: OccurrenceRecord) -> bool:
    """Observations and records without a locality are never grouped."""

    return not record.is_observation and record.locality is not None


def distinct_coordinates(members: Iterable[OccurrenceRecord]) -> List[Tuple[float | None, float | None]]:
    """Distinct ``(latitude, longitude)`` pairs among members with a latitude, in encounter order."""

    seen: Dict[Tuple[float | None, float | None], None] = {}
    for record in members:
        if record.has_coordinates():
            assert record.geolocation is not None
            seen.setdefault(record.geolocation.coordinate_pair(), None)
    return list(seen)


@dataclass
class DuplicateCluster:
    """Records sharing one composite key."""

    cluster_id: int
    key: CompositeKey
    members: List[OccurrenceRecord] = field(default_factory=list)

    @property
    def member_count(self) -> int:
        return len(self.members)

    @property
    def member_ids(self) -> List[str]:
        return [record.id for record in self.members]

    @property
    def distinct_coordinate_count(self) -> int:
        return len(distinct_coordinates(self.members))

    @property
    def has_coordinate_conflict(self) -> bool:
        return self.distinct_coordinate_count > 1


@dataclass
class GroupingResult:
    clusters: List[DuplicateCluster]
    ungrouped: List[OccurrenceRecord]


def group_records(records: Iterable[OccurrenceRecord]) -> GroupingResult:
    """Partition groupable records by composite key.

    Cluster ids are assigned by enumerating the sorted keys starting at 1, so
    the same input always yields the same ids. Members keep ingestion order.
    """

    buckets: Dict[CompositeKey, List[OccurrenceRecord]] = {}
    ungrouped: List[OccurrenceRecord] = []
    for record in records:
        if not is_groupable(record):
            ungrouped.append(record)
            continue
        buckets.setdefault(composite_key(record), []).append(record)

    clusters = [
        DuplicateCluster(
            cluster_id=index,
            key=key,
            members=stable_sorted(buckets[key], key=lambda record: (record.sequence, record.id)),
        )
        for index, key in enumerate(stable_sorted(buckets, key=none_safe_key), start=1)
    ]
    return GroupingResult(clusters=clusters, ungrouped=ungrouped)


__all__ = [
    "CompositeKey",
    "DuplicateCluster",
    "GroupingResult",
    "composite_key",
    "distinct_coordinates",
    "group_records",
    "is_groupable",
]
