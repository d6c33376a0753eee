"""Pluggable date-string parsing service."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, Sequence

from harmonization.config.policies import DateGrammar


@dataclass(frozen=True)
class ParsedDate:
    """Components recovered from a date string; absent components are ``None``."""

    year: int | None
    month: int | None
    day: int | None
    grammar: str


class DateParser(Protocol):
    """Interface for date parsing services consumed by the normalizer."""

    def parse(self, text: str) -> ParsedDate | None:
        ...


def _format_components(fmt: str) -> tuple[bool, bool, bool]:
    has_year = "%Y" in fmt or "%y" in fmt
    has_month = any(token in fmt for token in ("%m", "%B", "%b"))
    has_day = "%d" in fmt
    return has_year, has_month, has_day


class FormatDateParser:
    """Try ``strptime`` grammars in order; the first full match wins.

    Parsing never raises: text that no grammar accepts yields ``None``.
    ``strptime`` validates the calendar, so ``31/02/1921`` is rejected by
    every grammar rather than silently rolled over.
    """

    def __init__(self, grammars: Sequence[DateGrammar]) -> None:
        self._grammars = tuple(grammars)

    @property
    def grammar_names(self) -> list[str]:
        return [grammar.name for grammar in self._grammars]

    def parse(self, text: str) -> ParsedDate | None:
        candidate = " ".join(text.split())
        if not candidate:
            return None
        for grammar in self._grammars:
            for fmt in grammar.formats:
                try:
                    parsed = datetime.strptime(candidate, fmt)
                except ValueError:
                    continue
                has_year, has_month, has_day = _format_components(fmt)
                return ParsedDate(
                    year=parsed.year if has_year else None,
                    month=parsed.month if has_month else None,
                    day=parsed.day if has_day else None,
                    grammar=grammar.name,
                )
        return None


__all__ = ["DateParser", "FormatDateParser", "ParsedDate"]
