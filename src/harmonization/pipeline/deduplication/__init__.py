"""Duplicate grouping, coordinate conflict resolution and field merging."""

from .coordinates import CoordinateDecision, CoordinateResolver
from .grouping import (
    CompositeKey,
    DuplicateCluster,
    GroupingResult,
    composite_key,
    distinct_coordinates,
    group_records,
    is_groupable,
)
from .merger import ClusterMerger, MergeOutcome, join_distinct
from .processor import DeduplicationProcessor, DeduplicationResult, DeduplicationStep

__all__ = [
    "CompositeKey",
    "DuplicateCluster",
    "GroupingResult",
    "composite_key",
    "distinct_coordinates",
    "group_records",
    "is_groupable",
    "CoordinateDecision",
    "CoordinateResolver",
    "ClusterMerger",
    "MergeOutcome",
    "join_distinct",
    "DeduplicationProcessor",
    "DeduplicationResult",
    "DeduplicationStep",
]
