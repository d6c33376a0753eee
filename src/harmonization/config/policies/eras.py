"""Collector era roster and year correction policy models."""

from __future__ import annotations

import re
from typing import Any, Dict, List

from pydantic import BaseModel, Field, field_validator, model_validator

from ._sanitize import sanitize_string_sequence


class RosterSourcePolicy(BaseModel):
    """Describes the external collector-era reference table."""

    start_year_column: str = Field(default="start_year", min_length=1)
    name_columns: List[str] = Field(
        default_factory=lambda: ["first_name", "last_name"],
        description="Name-part columns joined with a single space to form the collector name.",
    )

    @field_validator("name_columns", mode="before")
    def _strip_blanks(cls, value: Any) -> List[str]:
        return sanitize_string_sequence(value)

    @model_validator(mode="after")
    def _require_name_columns(self) -> "RosterSourcePolicy":
        if not self.name_columns:
            raise ValueError("name_columns must list at least one column")
        return self


class EraPolicy(BaseModel):
    """Settings governing collector era classification and year correction.

    ``collector_overrides`` is the allow-listed exception table: each key is a
    collector name (matched like roster entries) mapped to ``{prefix:
    replacement}`` rewrites applied after the generic rules. ``record_year_overrides``
    pins the year of individual records identified by manual research.
    """

    cutoff_year: int = Field(default=1950, ge=1)
    roster_source: RosterSourcePolicy = Field(default_factory=RosterSourcePolicy)
    supplement: List[str] = Field(
        default_factory=list,
        description="Additional historical collectors appended to the roster.",
    )
    collector_overrides: Dict[str, Dict[str, str]] = Field(default_factory=dict)
    record_year_overrides: Dict[str, int] = Field(default_factory=dict)
    unresolvable_years: List[str] = Field(
        default_factory=lambda: ["0", "0000"],
        description="Year spellings, as read from the source, that send modern records to manual review.",
    )

    @field_validator("supplement", "unresolvable_years", mode="before")
    def _strip_blanks(cls, value: Any) -> List[str]:
        return sanitize_string_sequence(value)

    @field_validator("collector_overrides")
    @classmethod
    def _validate_overrides(cls, value: Dict[str, Dict[str, str]]) -> Dict[str, Dict[str, str]]:
        for collector, rewrites in value.items():
            if not collector.strip():
                raise ValueError("collector_overrides keys must be non-empty")
            for prefix, replacement in rewrites.items():
                if not re.fullmatch(r"\d+", prefix) or not re.fullmatch(r"\d+", replacement):
                    raise ValueError(
                        f"Override for {collector!r} must map digit prefixes to digit replacements"
                    )
                if len(prefix) != len(replacement):
                    raise ValueError(
                        f"Override {prefix!r} -> {replacement!r} for {collector!r} changes the year width"
                    )
        return value


__all__ = ["EraPolicy", "RosterSourcePolicy"]
