"""Side lists for records diverted from automatic processing.

Rejected, undated and problem-year records never abort a run. Each stage
files them here under a reason code and the run report lists them for manual
review.
"""
from __future__ import annotations

from dataclasses import dataclass
from itertools import count
from threading import RLock
from typing import Any, Dict, Iterable, List, Mapping, Tuple

REJECTED_MISSING_COLLECTOR = "missing_collector"
REJECTED_MISSING_TAXON = "missing_taxon"
NO_DATE = "no_date"
PROBLEM_YEAR = "problem_year"


@dataclass(frozen=True)
class QuarantinedItem:
    stage: str
    reason: str
    record_id: str | None
    payload: Mapping[str, Any]
    sequence: int

    def as_dict(self) -> Dict[str, Any]:
        return {"stage": self.stage, "record_id": self.record_id, **dict(self.payload)}


@dataclass(frozen=True)
class QuarantineSnapshot:
    """Point-in-time view with reasons in sorted order."""

    total: int
    by_reason: Mapping[str, int]
    items: Tuple[QuarantinedItem, ...]

    def as_dict(self) -> Dict[str, Any]:
        grouped: Dict[str, List[Dict[str, Any]]] = {reason: [] for reason in self.by_reason}
        for item in self.items:
            grouped[item.reason].append(item.as_dict())
        return {"total": self.total, "by_reason": dict(self.by_reason), "items": grouped}


class QuarantineManager:
    """Thread-safe tracker of diverted records, bucketed by reason.

    A shared counter stamps every entry, so the global encounter order is
    recoverable even though entries are stored per reason.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._buckets: Dict[str, List[QuarantinedItem]] = {}
        self._counter = count(1)

    def quarantine(
        self,
        *,
        stage: str,
        reason: str,
        record_id: str | None = None,
        payload: Mapping[str, Any] | None = None,
    ) -> QuarantinedItem:
        if not reason:
            raise ValueError("reason must be provided for quarantine entries")
        with self._lock:
            entry = QuarantinedItem(
                stage=stage,
                reason=reason,
                record_id=record_id,
                payload=dict(payload or {}),
                sequence=next(self._counter),
            )
            self._buckets.setdefault(reason, []).append(entry)
            return entry

    def iter_items(self) -> Iterable[QuarantinedItem]:
        """All entries in encounter order."""

        with self._lock:
            entries = [item for bucket in self._buckets.values() for item in bucket]
        return tuple(sorted(entries, key=lambda item: item.sequence))

    def record_ids(self, reason: str) -> List[str]:
        with self._lock:
            bucket = list(self._buckets.get(reason, ()))
        return [item.record_id for item in bucket if item.record_id is not None]

    def counts(self) -> Dict[str, int]:
        with self._lock:
            return {reason: len(bucket) for reason, bucket in self._buckets.items()}

    def snapshot(self) -> QuarantineSnapshot:
        with self._lock:
            by_reason = {reason: len(self._buckets[reason]) for reason in sorted(self._buckets)}
            items = tuple(self.iter_items())
        return QuarantineSnapshot(total=len(items), by_reason=by_reason, items=items)

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()
            self._counter = count(1)

    def __len__(self) -> int:
        with self._lock:
            return sum(len(bucket) for bucket in self._buckets.values())


__all__ = [
    "QuarantineManager",
    "QuarantineSnapshot",
    "QuarantinedItem",
    "REJECTED_MISSING_COLLECTOR",
    "REJECTED_MISSING_TAXON",
    "NO_DATE",
    "PROBLEM_YEAR",
]
