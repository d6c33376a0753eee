"""Tests for sentinel normalisation, date parsing and the date normalizer stage."""

from __future__ import annotations

import pytest

from harmonization.config.policies import ColumnPolicy, DatePolicy, Policies, SentinelRule
from harmonization.entities.core import CollectionDate, OccurrenceRecord
from harmonization.observability.quarantine import NO_DATE
from harmonization.pipeline.context import HarmonizationContext
from harmonization.pipeline.dates import (
    DateNormalizationStep,
    FormatDateParser,
    ParsedDate,
    apply_sentinels,
    normalize_date,
    normalize_dates,
)
from harmonization.pipeline.eras import CollectorEraRoster


@pytest.fixture
def parser() -> FormatDateParser:
    return FormatDateParser(DatePolicy().grammars)


def make_record(record_id: str, **date_fields) -> OccurrenceRecord:
    return OccurrenceRecord(id=record_id, collector="E. Palmer", taxon="Agave", date=CollectionDate(**date_fields))


def test_sentinels_null_declared_fields_only() -> None:
    columns = ColumnPolicy()
    rules = DatePolicy().sentinels
    row = {"day": "0", "month": "00", "location": "NA", "taxon": "Quercus", "year": "0", "other": "NA"}
    cleaned = apply_sentinels(row, rules, columns)
    assert cleaned["day"] is None
    assert cleaned["month"] is None
    assert cleaned["location"] is None
    assert cleaned["taxon"] == "Quercus"
    # year is not part of the sentinel table and unmapped columns are untouched
    assert cleaned["year"] == "0"
    assert cleaned["other"] == "NA"
    assert row["day"] == "0"


def test_sentinel_rule_matches() -> None:
    rule = SentinelRule(field="locality", pattern=r"(?i)^unknown$")
    assert rule.matches("Unknown")
    assert not rule.matches("Unknown ridge")


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("12/05/1921", ParsedDate(year=1921, month=5, day=12, grammar="day-month-year")),
        ("3 March 1899", ParsedDate(year=1899, month=3, day=3, grammar="day-month-year")),
        ("05/1921", ParsedDate(year=1921, month=5, day=None, grammar="month-year")),
        ("1921", ParsedDate(year=1921, month=None, day=None, grammar="year")),
        ("May 12, 1921", ParsedDate(year=1921, month=5, day=12, grammar="month-day-year")),
        ("1921-05", ParsedDate(year=1921, month=5, day=None, grammar="year-month")),
        ("1921-05-12", ParsedDate(year=1921, month=5, day=12, grammar="year-month-day")),
    ],
)
def test_parser_grammar_order(parser: FormatDateParser, text: str, expected: ParsedDate) -> None:
    assert parser.parse(text) == expected


def test_parser_prefers_day_month_for_ambiguous_dates(parser: FormatDateParser) -> None:
    parsed = parser.parse("05/12/1921")
    assert parsed is not None
    assert (parsed.day, parsed.month) == (5, 12)


@pytest.mark.parametrize("text", ["", "   ", "spring of 1921", "31/02/1921", "1921?"])
def test_parser_returns_none_on_failure(parser: FormatDateParser, text: str) -> None:
    assert parser.parse(text) is None


def test_normalize_date_overwrites_only_parsed_components(parser: FormatDateParser) -> None:
    record = make_record("r1", raw="05/1921", year=1912, month=1, day=9)
    normalized = normalize_date(record, parser)
    assert (normalized.date.year, normalized.date.month, normalized.date.day) == (1921, 5, 9)
    assert normalized.date.raw == "05/1921"
    assert record.date.year == 1912


def test_normalize_date_keeps_record_on_parse_failure(parser: FormatDateParser) -> None:
    record = make_record("r1", raw="spring 1921", year=1921)
    assert normalize_date(record, parser) is record


def test_normalize_dates_splits_undated(parser: FormatDateParser) -> None:
    records = [
        make_record("dated", raw="1921-05-12"),
        make_record("structured", year=1930),
        make_record("unparsed", raw="autumn"),
        make_record("undated"),
        make_record("fallback", raw="spring 1921", year=1921),
    ]
    result = normalize_dates(records, parser)
    assert [record.id for record in result.dated] == ["dated", "structured", "fallback"]
    assert [record.id for record in result.undated] == ["unparsed", "undated"]
    assert result.parsed == 1
    assert result.unparsed == 2


def test_date_normalization_step_updates_context() -> None:
    records = [make_record("a", raw="1921"), make_record("b")]
    context = HarmonizationContext(
        policies=Policies(),
        column_order=[],
        records=records,
        roster=CollectorEraRoster.from_names([], cutoff_year=1950),
    )
    DateNormalizationStep().run(context)
    assert [record.id for record in context.records] == ["a"]
    assert context.records[0].date.year == 1921
    assert [record.id for record in context.undated] == ["b"]
    assert context.quarantine.record_ids(NO_DATE) == ["b"]
    assert context.stats["normalize_dates"]["undated"] == 1


def test_date_normalization_step_quarantines_unparseable_text() -> None:
    records = [make_record("a", raw="s.d."), make_record("b", raw="1921"), make_record("c", raw="sin fecha")]
    context = HarmonizationContext(
        policies=Policies(),
        column_order=[],
        records=records,
        roster=CollectorEraRoster.from_names([], cutoff_year=1950),
    )
    DateNormalizationStep().run(context)
    assert [record.id for record in context.records] == ["b"]
    assert [record.id for record in context.undated] == ["a", "c"]
    assert context.quarantine.record_ids(NO_DATE) == ["a", "c"]
    assert [item.payload["raw"] for item in context.quarantine.iter_items()] == ["s.d.", "sin fecha"]
