"""Collector era roster built from the external reference table."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from harmonization.config.policies import EraPolicy, RosterSourcePolicy
from harmonization.utils.helpers import normalize_name
from harmonization.utils.logging import get_logger

_LOGGER = get_logger(module=__name__)
_YEAR_PATTERN = re.compile(r"\d{3,4}")


@dataclass(frozen=True)
class CollectorEraRoster:
    """Immutable set of collectors active at or before ``cutoff_year``.

    Matching is a case-insensitive, whitespace-normalised substring test of
    every roster entry against the collector string. Instances are read-only
    and safe to share across worker threads.
    """

    names: frozenset[str]
    cutoff_year: int
    _pattern: re.Pattern[str] | None = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        entries = sorted((name for name in self.names if name), key=lambda name: (-len(name), name))
        pattern = re.compile("|".join(re.escape(name) for name in entries)) if entries else None
        object.__setattr__(self, "_pattern", pattern)

    @classmethod
    def from_names(cls, names: Iterable[str], *, cutoff_year: int) -> "CollectorEraRoster":
        normalized = {normalize_name(name) for name in names if name and name.strip()}
        return cls(names=frozenset(normalized), cutoff_year=cutoff_year)

    def matches(self, collector: str | None) -> bool:
        if collector is None or self._pattern is None:
            return False
        return self._pattern.search(normalize_name(collector)) is not None

    def __contains__(self, collector: object) -> bool:
        return isinstance(collector, str) and self.matches(collector)

    def __len__(self) -> int:
        return len(self.names)


def _parse_start_year(value: Any) -> int | None:
    if value is None:
        return None
    match = _YEAR_PATTERN.search(str(value))
    return int(match.group(0)) if match else None


def build_roster(
    reference_rows: Iterable[Mapping[str, Any]],
    *,
    cutoff_year: int,
    source: RosterSourcePolicy,
    supplement: Iterable[str] = (),
) -> CollectorEraRoster:
    """Filter reference rows to start years at or before the cutoff and join name parts."""

    names: set[str] = set()
    considered = 0
    skipped_undated = 0
    for row in reference_rows:
        considered += 1
        start_year = _parse_start_year(row.get(source.start_year_column))
        if start_year is None:
            skipped_undated += 1
            continue
        if start_year > cutoff_year:
            continue
        parts = [str(row.get(column)).strip() for column in source.name_columns if row.get(column) is not None]
        name = " ".join(part for part in parts if part)
        if name:
            names.add(name)

    supplement_names = [name for name in supplement if name.strip()]
    roster = CollectorEraRoster.from_names([*names, *supplement_names], cutoff_year=cutoff_year)
    _LOGGER.info(
        "Built collector era roster",
        reference_rows=considered,
        skipped_undated=skipped_undated,
        from_reference=len(names),
        supplement=len(supplement_names),
        roster_size=len(roster),
        cutoff_year=cutoff_year,
    )
    return roster


def roster_from_policy(reference_rows: Iterable[Mapping[str, Any]], policy: EraPolicy) -> CollectorEraRoster:
    return build_roster(
        reference_rows,
        cutoff_year=policy.cutoff_year,
        source=policy.roster_source,
        supplement=policy.supplement,
    )


__all__ = ["CollectorEraRoster", "build_roster", "roster_from_policy"]
