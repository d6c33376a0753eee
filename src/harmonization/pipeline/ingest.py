"""Conversion of raw table rows into records and rejection of incomplete ones."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, Iterable, List, Mapping

from harmonization.config.policies import Policies
from harmonization.entities.core import OccurrenceRecord, StructuralError
from harmonization.observability.quarantine import (
    REJECTED_MISSING_COLLECTOR,
    REJECTED_MISSING_TAXON,
)
from harmonization.utils.logging import get_logger

from .records import record_from_row

if TYPE_CHECKING:  # pragma: no cover - imported for type checking only
    from .context import HarmonizationContext

_LOGGER = get_logger(module=__name__)


def load_records(rows: Iterable[Mapping[str, Any]], policies: Policies) -> List[OccurrenceRecord]:
    """Build records in input order, assigning each its ingestion sequence.

    Duplicate source ids are structural errors, and so are ids shaped like the
    synthetic identifiers given to merged clusters (``bi_<n>`` by default).
    """

    prefix = policies.deduplication.merged_id_prefix
    reserved = re.compile(re.escape(prefix) + r"\d+")
    records: List[OccurrenceRecord] = []
    seen: set[str] = set()
    for sequence, row in enumerate(rows):
        record = record_from_row(
            row,
            policies.columns,
            sentinels=policies.dates.sentinels,
            sequence=sequence,
        )
        if record.id in seen:
            raise StructuralError(f"Duplicate record id in input: {record.id}")
        if reserved.fullmatch(record.id):
            raise StructuralError(
                f"Record id {record.id!r} collides with merged-record ids; "
                f"ids of the form {prefix}<number> are reserved"
            )
        seen.add(record.id)
        records.append(record)
    _LOGGER.debug("Built occurrence records", count=len(records))
    return records


class RejectIncompleteStep:
    """Drop records that lack a collector or a taxon."""

    name = "reject_incomplete"

    def run(self, context: "HarmonizationContext") -> None:
        kept: List[OccurrenceRecord] = []
        rejected: List[OccurrenceRecord] = []
        for record in context.records:
            if record.collector is None:
                context.quarantine.quarantine(
                    stage=self.name, reason=REJECTED_MISSING_COLLECTOR, record_id=record.id
                )
                rejected.append(record)
            elif record.taxon is None:
                context.quarantine.quarantine(
                    stage=self.name, reason=REJECTED_MISSING_TAXON, record_id=record.id
                )
                rejected.append(record)
            else:
                kept.append(record)
        context.records = kept
        context.rejected = rejected
        context.stats[self.name] = {"kept": len(kept), "rejected": len(rejected)}
        if rejected:
            _LOGGER.warning("Rejected incomplete records", rejected=len(rejected), kept=len(kept))


__all__ = ["RejectIncompleteStep", "load_records"]
