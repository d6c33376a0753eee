"""Tests for the collector roster, era classification and year correction."""

from __future__ import annotations

import pytest

from harmonization.config.policies import EraPolicy, Policies, RosterSourcePolicy
from harmonization.entities.core import BasisOfRecord, CollectionDate, OccurrenceRecord
from harmonization.observability.quarantine import PROBLEM_YEAR, QuarantineManager
from harmonization.pipeline.context import HarmonizationContext
from harmonization.pipeline.eras import (
    GENERIC_RULES,
    CollectorEraRoster,
    CollectorOverrideTable,
    Era,
    EraClassificationStep,
    YearCorrectionStep,
    YearCorrector,
    apply_rules,
    build_roster,
    classify_collector,
    classify_records,
    correct_year_text,
    triggered_rules,
)


def make_record(
    record_id: str,
    collector: str | None,
    year: int | None,
    *,
    sequence: int = 0,
    basis: BasisOfRecord = BasisOfRecord.PHYSICAL_SPECIMEN,
) -> OccurrenceRecord:
    return OccurrenceRecord(
        id=record_id,
        collector=collector,
        taxon="Quercus emoryi",
        date=CollectionDate(year=year),
        basis_of_record=basis,
        sequence=sequence,
    )


@pytest.fixture
def roster() -> CollectorEraRoster:
    return CollectorEraRoster.from_names(["Edward Palmer", "J. G. Lemmon"], cutoff_year=1950)


def test_build_roster_filters_by_start_year() -> None:
    rows = [
        {"start_year": "1869", "first_name": "Edward", "last_name": "Palmer"},
        {"start_year": "ca. 1880", "first_name": "Sara", "last_name": "Plummer"},
        {"start_year": "1950", "first_name": "Forrest", "last_name": "Shreve"},
        {"start_year": "1975", "first_name": "Richard", "last_name": "Felger"},
        {"start_year": None, "first_name": "Anon", "last_name": None},
    ]
    roster = build_roster(
        rows,
        cutoff_year=1950,
        source=RosterSourcePolicy(),
        supplement=["Marcus E. Jones"],
    )
    assert roster.names == frozenset({"edward palmer", "sara plummer", "forrest shreve", "marcus e. jones"})
    assert "Richard Felger" not in roster
    assert len(roster) == 4


def test_roster_matching_is_case_insensitive_substring(roster: CollectorEraRoster) -> None:
    assert roster.matches("EDWARD  PALMER")
    assert roster.matches("Edward Palmer & J. Smith")
    assert roster.matches("J. G. Lemmon; Sara Lemmon")
    assert not roster.matches("Palmer")
    assert not roster.matches(None)


def test_empty_roster_matches_nothing() -> None:
    roster = CollectorEraRoster.from_names([], cutoff_year=1950)
    assert not roster.matches("Edward Palmer")


def test_classify_records_partitions_by_era(roster: CollectorEraRoster) -> None:
    records = [
        make_record("old", "Edward Palmer", 2019),
        make_record("new", "Richard Felger", 1975),
        make_record("obs", "Edward Palmer", 2019, basis=BasisOfRecord.HUMAN_OBSERVATION),
    ]
    partition = classify_records(records, roster)
    assert [record.id for record in partition.pre_cutoff] == ["old"]
    assert [record.id for record in partition.modern] == ["new"]
    assert [record.id for record in partition.observations] == ["obs"]
    assert len(partition) == 3
    assert classify_collector("Edward Palmer", roster) is Era.PRE_CUTOFF


@pytest.mark.parametrize(
    ("year", "expected"),
    [
        ("2019", "1919"),
        ("1899", "1899"),
        ("1995", "1895"),
        ("1985", "1885"),
        ("2099", "1899"),
        ("0000", "1900"),
        ("53", "1953"),
        ("0", "1900"),
        ("1921", "1921"),
    ],
)
def test_generic_rules(year: str, expected: str) -> None:
    assert correct_year_text(year) == expected


def test_generic_rules_are_idempotent() -> None:
    for year in ("2019", "1995", "2099", "0", "53"):
        once = apply_rules(year, GENERIC_RULES)
        assert apply_rules(once, GENERIC_RULES) == once


def test_triggered_rules_reports_composition() -> None:
    assert triggered_rules("2099", GENERIC_RULES) == ["twentieth_to_nineteenth_century", "nineties_to_1890s"]
    assert triggered_rules("1899", GENERIC_RULES) == []


def test_collector_override_applies_after_generic_rules() -> None:
    overrides = CollectorOverrideTable({"A. S. Hitchcock": {"197": "187"}, "Lemmon": {"195": "190"}})
    assert correct_year_text("1975", "A. S. Hitchcock", overrides) == "1875"
    assert correct_year_text("1975", "Someone Else", overrides) == "1975"
    # generic rule rewrites 2055 to 1955 first, then the override applies
    assert correct_year_text("2055", "J. G. Lemmon", overrides) == "1905"
    assert len(overrides) == 2


def test_corrector_rewrites_only_pre_cutoff_records(roster: CollectorEraRoster) -> None:
    records = [
        make_record("old", "Edward Palmer", 2019, sequence=0),
        make_record("modern", "Richard Felger", 2019, sequence=1),
        make_record("obs", "Edward Palmer", 2019, sequence=2, basis=BasisOfRecord.HUMAN_OBSERVATION),
    ]
    partition = classify_records(records, roster)
    outcome = YearCorrector(EraPolicy()).correct(partition)
    years = {record.id: record.date.year for record in outcome.records}
    assert years == {"old": 1919, "modern": 2019, "obs": 2019}
    assert [record.id for record in outcome.records] == ["old", "modern", "obs"]
    assert outcome.corrections == [
        {"record_id": "old", "from": 2019, "to": 1919, "rules": ["twentieth_to_nineteenth_century"]}
    ]


def test_corrector_diverts_unresolvable_modern_years(roster: CollectorEraRoster) -> None:
    records = [
        make_record("old-zero", "Edward Palmer", 0, sequence=0),
        make_record("modern-zero", "Richard Felger", 0, sequence=1),
        make_record("modern-none", "Richard Felger", None, sequence=2),
    ]
    quarantine = QuarantineManager()
    outcome = YearCorrector(EraPolicy()).correct(classify_records(records, roster), quarantine)
    assert [record.id for record in outcome.records] == ["old-zero", "modern-none"]
    assert outcome.records[0].date.year == 1900
    assert [record.id for record in outcome.problem_years] == ["modern-zero"]
    assert quarantine.record_ids(PROBLEM_YEAR) == ["modern-zero"]



def test_corrector_reads_the_source_year_spelling(roster: CollectorEraRoster) -> None:
    def spelled(record_id: str, collector: str, text: str, sequence: int) -> OccurrenceRecord:
        record = make_record(record_id, collector, int(text), sequence=sequence)
        return record.model_copy(update={"date": CollectionDate(year=int(text), year_text=text)})

    records = [
        spelled("old", "Edward Palmer", "0000", 0),
        spelled("modern-0000", "Richard Felger", "0000", 1),
        spelled("modern-0", "Richard Felger", "0", 2),
    ]
    policy = EraPolicy(unresolvable_years=["0000"])
    outcome = YearCorrector(policy).correct(classify_records(records, roster))
    assert outcome.corrections == [{"record_id": "old", "from": 0, "to": 1900, "rules": ["null_century"]}]
    assert outcome.records[0].date.year_digits() == "1900"
    assert [record.id for record in outcome.problem_years] == ["modern-0000"]
    assert [record.id for record in outcome.records] == ["old", "modern-0"]


def test_stale_year_spelling_falls_back_to_the_year() -> None:
    date = CollectionDate(year=1921, year_text="0000")
    assert date.year_digits() == "1921"
    assert CollectionDate(year_text="0000").year_digits() is None

def test_record_year_override_pins_specific_records(roster: CollectorEraRoster) -> None:
    policy = EraPolicy(record_year_overrides={"modern-zero": 1987, "old": 1907})
    records = [
        make_record("old", "Edward Palmer", 2019, sequence=0),
        make_record("modern-zero", "Richard Felger", 0, sequence=1),
    ]
    outcome = YearCorrector(policy).correct(classify_records(records, roster))
    years = {record.id: record.date.year for record in outcome.records}
    assert years == {"old": 1907, "modern-zero": 1987}
    assert outcome.problem_years == []


def test_era_steps_update_context(roster: CollectorEraRoster) -> None:
    context = HarmonizationContext(
        policies=Policies(),
        column_order=[],
        records=[make_record("old", "Edward Palmer", 1995), make_record("new", "Richard Felger", 1995, sequence=1)],
        roster=roster,
    )
    EraClassificationStep().run(context)
    assert context.partition is not None
    assert context.stats["classify_eras"]["pre_cutoff"] == 1

    YearCorrectionStep().run(context)
    assert [record.date.year for record in context.records] == [1895, 1995]
    assert context.stats["correct_years"]["corrected"] == 1


def test_year_correction_requires_classification(roster: CollectorEraRoster) -> None:
    context = HarmonizationContext(policies=Policies(), column_order=[], records=[], roster=roster)
    with pytest.raises(RuntimeError):
        YearCorrectionStep().run(context)
