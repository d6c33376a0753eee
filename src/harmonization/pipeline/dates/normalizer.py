"""Date normalisation stage."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, List

from harmonization.entities.core import OccurrenceRecord
from harmonization.observability.quarantine import NO_DATE
from harmonization.utils.logging import get_logger

from .parser import DateParser

if TYPE_CHECKING:  # pragma: no cover - imported for type checking only
    from harmonization.pipeline.context import HarmonizationContext


_LOGGER = get_logger(module=__name__)


@dataclass
class DateNormalizationResult:
    """Records split into dated and undated buckets."""

    dated: List[OccurrenceRecord] = field(default_factory=list)
    undated: List[OccurrenceRecord] = field(default_factory=list)
    parsed: int = 0
    unparsed: int = 0


def normalize_date(record: OccurrenceRecord, parser: DateParser) -> OccurrenceRecord:
    """Overwrite structured date parts from the raw text when it parses.

    Only the components carried by the winning grammar are replaced; a
    month-year string keeps whatever day upstream extraction supplied. On
    parse failure the record is returned unchanged.
    """

    raw = record.date.raw
    if raw is None:
        return record
    parsed = parser.parse(raw)
    if parsed is None:
        return record
    updates = {
        name: value
        for name, value in (("year", parsed.year), ("month", parsed.month), ("day", parsed.day))
        if value is not None
    }
    return record.model_copy(update={"date": record.date.model_copy(update=updates)})


def normalize_dates(records: Iterable[OccurrenceRecord], parser: DateParser) -> DateNormalizationResult:
    """Normalise every record and split off those left without a year, month or day.

    Raw text that no grammar accepts does not date a record on its own: when
    nothing structured survives, the record is undated.
    """

    result = DateNormalizationResult()
    for record in records:
        if not record.date.has_information():
            result.undated.append(record)
            continue
        normalized = normalize_date(record, parser)
        if record.date.raw is not None:
            if normalized is record:
                result.unparsed += 1
            else:
                result.parsed += 1
        if normalized.date.has_components():
            result.dated.append(normalized)
        else:
            result.undated.append(normalized)
    return result


class DateNormalizationStep:
    """Parse raw date strings and divert records without any date information."""

    name = "normalize_dates"

    def run(self, context: "HarmonizationContext") -> None:
        result = normalize_dates(context.records, context.date_parser)
        for record in result.undated:
            context.quarantine.quarantine(
                stage=self.name,
                reason=NO_DATE,
                record_id=record.id,
                payload={"raw": record.date.raw},
            )
        context.records = result.dated
        context.undated = result.undated
        context.stats[self.name] = {
            "dated": len(result.dated),
            "undated": len(result.undated),
            "parsed": result.parsed,
            "unparsed": result.unparsed,
        }
        _LOGGER.info(
            "Normalized collection dates",
            dated=len(result.dated),
            undated=len(result.undated),
            parsed=result.parsed,
            unparsed=result.unparsed,
        )


__all__ = [
    "DateNormalizationResult",
    "DateNormalizationStep",
    "normalize_date",
    "normalize_dates",
]
