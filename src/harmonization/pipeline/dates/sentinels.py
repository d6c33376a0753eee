"""Early per-field sentinel normalisation.

Placeholder values such as a ``0`` day or an ``NA`` locality are rewritten
to ``None`` exactly once, at ingestion, according to the declared
``(field, pattern)`` table in :class:`~harmonization.config.policies.DatePolicy`.
Only the columns named in the table are touched.
"""

from __future__ import annotations

from typing import Dict, Mapping, Sequence

from harmonization.config.policies import ColumnPolicy, SentinelRule


def apply_sentinels(
    row: Mapping[str, str | None],
    rules: Sequence[SentinelRule],
    columns: ColumnPolicy,
) -> Dict[str, str | None]:
    """Return a copy of *row* with sentinel values replaced by ``None``."""

    result = dict(row)
    if not rules:
        return result
    field_columns = columns.field_columns()
    for rule in rules:
        column = field_columns[rule.field]
        value = result.get(column)
        if value is not None and rule.matches(value):
            result[column] = None
    return result


__all__ = ["apply_sentinels"]
