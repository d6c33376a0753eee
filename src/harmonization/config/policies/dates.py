"""Date parsing and sentinel normalisation policy models."""

from __future__ import annotations

import re
from typing import Any, List

from pydantic import BaseModel, Field, PrivateAttr, field_validator, model_validator

from ._sanitize import sanitize_string_sequence

_NULL_TEXT_PATTERN = r"(?i)^\s*(na|n/a|nan|null|none)?\s*$"


class DateGrammar(BaseModel):
    """A named date grammar expressed as ``strptime`` formats."""

    name: str = Field(..., min_length=1)
    formats: List[str] = Field(..., min_length=1)

    @field_validator("formats", mode="before")
    def _strip_formats(cls, value: Any) -> List[str]:
        return sanitize_string_sequence(value)


class SentinelRule(BaseModel):
    """Declares that values of ``field`` matching ``pattern`` mean "missing"."""

    field: str = Field(..., min_length=1)
    pattern: str = Field(..., min_length=1)

    _compiled: re.Pattern[str] | None = PrivateAttr(default=None)

    @model_validator(mode="after")
    def _compile_pattern(self) -> "SentinelRule":
        try:
            self._compiled = re.compile(self.pattern)
        except re.error as exc:
            raise ValueError(f"Invalid sentinel pattern for {self.field!r} ({self.pattern!r}): {exc}") from exc
        return self

    def matches(self, value: str) -> bool:
        assert self._compiled is not None
        return self._compiled.search(value) is not None


def _default_grammars() -> List[DateGrammar]:
    return [
        DateGrammar(
            name="day-month-year",
            formats=["%d/%m/%Y", "%d-%m-%Y", "%d.%m.%Y", "%d %B %Y", "%d %b %Y", "%d-%b-%Y"],
        ),
        DateGrammar(name="month-year", formats=["%m/%Y", "%m-%Y", "%B %Y", "%b %Y"]),
        DateGrammar(name="year", formats=["%Y"]),
        DateGrammar(
            name="month-day-year",
            formats=["%m/%d/%Y", "%B %d %Y", "%B %d, %Y", "%b %d %Y", "%b %d, %Y"],
        ),
        DateGrammar(name="year-month", formats=["%Y-%m", "%Y/%m"]),
        DateGrammar(name="year-month-day", formats=["%Y-%m-%d", "%Y/%m/%d", "%Y%m%d"]),
    ]


def _default_sentinels() -> List[SentinelRule]:
    return [
        SentinelRule(field="day", pattern=r"^0+$"),
        SentinelRule(field="month", pattern=r"^0+$"),
        SentinelRule(field="raw_date", pattern=_NULL_TEXT_PATTERN),
        SentinelRule(field="collector", pattern=_NULL_TEXT_PATTERN),
        SentinelRule(field="taxon", pattern=_NULL_TEXT_PATTERN),
        SentinelRule(field="locality", pattern=_NULL_TEXT_PATTERN),
        SentinelRule(field="latitude", pattern=_NULL_TEXT_PATTERN),
        SentinelRule(field="longitude", pattern=_NULL_TEXT_PATTERN),
    ]


class DatePolicy(BaseModel):
    """Controls date parsing order and early sentinel normalisation."""

    grammars: List[DateGrammar] = Field(
        default_factory=_default_grammars,
        description="Date grammars tried in order; the first successful parse wins.",
    )
    sentinels: List[SentinelRule] = Field(
        default_factory=_default_sentinels,
        description="Per-field patterns rewritten to null before any stage runs.",
    )

    @model_validator(mode="after")
    def _validate_grammars(self) -> "DatePolicy":
        names = [grammar.name for grammar in self.grammars]
        if len(names) != len(set(names)):
            raise ValueError("date grammar names must be unique")
        return self


__all__ = ["DateGrammar", "DatePolicy", "SentinelRule"]
