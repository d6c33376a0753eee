"""Assemble merged cluster rows and passthrough records into one table."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Sequence

from harmonization.config.policies import ColumnPolicy
from harmonization.entities.core import MergedRecord, OccurrenceRecord, StructuralError
from harmonization.pipeline.records import record_to_row
from harmonization.utils.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for type checking only
    from harmonization.pipeline.context import HarmonizationContext


_LOGGER = get_logger(module=__name__)


@dataclass
class AssemblyResult:
    rows: List[Dict[str, Any]]
    columns: List[str]
    merged_count: int
    passthrough_count: int


def output_columns(column_order: Sequence[str], columns: ColumnPolicy) -> List[str]:
    header = list(column_order)
    for marker in (columns.cluster_id_column, columns.coordinate_count_column):
        if marker not in header:
            header.append(marker)
    return header


def assemble(
    merged: Sequence[MergedRecord],
    passthrough: Sequence[OccurrenceRecord],
    *,
    columns: ColumnPolicy,
    column_order: Sequence[str],
) -> AssemblyResult:
    """Concatenate passthrough rows (original ids) and merged rows (synthetic ids).

    Raises :class:`StructuralError` when two output rows share an id.
    """

    header = output_columns(column_order, columns)
    rows: List[Dict[str, Any]] = []
    for record in passthrough:
        row = record_to_row(record, columns, header)
        row[columns.cluster_id_column] = None
        row[columns.coordinate_count_column] = None
        rows.append(row)
    for record in merged:
        rows.append({column: record.row.get(column) for column in header})

    counts = Counter(row[columns.id] for row in rows)
    collisions = sorted(str(identifier) for identifier, count in counts.items() if count > 1)
    if collisions:
        raise StructuralError(f"Output ids are not unique: {collisions[:10]}")

    return AssemblyResult(
        rows=rows,
        columns=header,
        merged_count=len(merged),
        passthrough_count=len(passthrough),
    )


class AssemblyStep:
    name = "assemble"

    def run(self, context: "HarmonizationContext") -> None:
        if context.deduplication is None:
            raise RuntimeError("deduplicate must run before assemble")
        output_policy = context.policies.output
        passthrough = list(context.deduplication.passthrough)
        if output_policy.keep_undated_records:
            passthrough.extend(context.undated)
        if output_policy.keep_problem_year_records:
            passthrough.extend(context.problem_years)
        passthrough.sort(key=lambda record: record.sequence)

        context.assembly = assemble(
            context.deduplication.merged,
            passthrough,
            columns=context.policies.columns,
            column_order=context.column_order,
        )
        context.stats[self.name] = {
            "rows": len(context.assembly.rows),
            "merged": context.assembly.merged_count,
            "passthrough": context.assembly.passthrough_count,
        }
        _LOGGER.info(
            "Assembled harmonized records",
            rows=len(context.assembly.rows),
            merged=context.assembly.merged_count,
            passthrough=context.assembly.passthrough_count,
        )


__all__ = ["AssemblyResult", "AssemblyStep", "assemble", "output_columns"]
