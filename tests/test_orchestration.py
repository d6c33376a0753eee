"""End-to-end tests for the harmonization run."""

from __future__ import annotations

import importlib
import json
from pathlib import Path

import polars as pl
import pytest

from harmonization.config.settings import Settings
from harmonization.entities.core import StructuralError
from harmonization.orchestration import main, run_harmonization

runner = importlib.import_module("harmonization.orchestration.main")

COLUMNS = [
    "myid",
    "collection_date",
    "day",
    "month",
    "year",
    "basis_of_record",
    "clean_collector",
    "legacy_collector",
    "colnumber",
    "taxon",
    "location",
    "municipality",
    "latitude",
    "longitude",
    "coordinateuncertaintyinmeters",
    "georeference_verification_status",
    "georeference_protocol",
    "georeference_source",
    "georeference_notes",
    "minimumelevationinmeters",
    "maximumelevationinmeters",
    "institution_code",
]


def occurrence(record_id: str, **values: str) -> dict:
    row = {column: None for column in COLUMNS}
    row.update(
        {
            "myid": record_id,
            "basis_of_record": "PreservedSpecimen",
            "clean_collector": "Edward Palmer",
            "taxon": "Agave parryi",
            "location": "Sierra Madre",
            "institution_code": "ARIZ",
        }
    )
    row.update(values)
    return row


@pytest.fixture
def occurrences_csv(tmp_path: Path) -> Path:
    rows = [
        occurrence(
            "h1",
            collection_date="12/05/2021",
            day="12",
            month="5",
            year="2021",
            latitude="31.5",
            longitude="-110.2",
            georeference_verification_status="unverified",
        ),
        occurrence(
            "h2",
            collection_date="12/05/1921",
            day="12",
            month="5",
            year="1921",
            clean_collector="EDWARD PALMER",
            latitude="31.7",
            longitude="-110.4",
            georeference_verification_status="high confidence",
            institution_code="ASU",
        ),
        occurrence(
            "m1",
            collection_date="1975",
            year="1975",
            clean_collector="Richard Felger",
            taxon="Yucca elata",
            location="Tucson",
        ),
        occurrence("obs", year="2019", basis_of_record="HumanObservation"),
        occurrence("nodate", clean_collector="Richard Felger", day="0", month="0"),
        occurrence("zero", collection_date="NA", year="0", clean_collector="Richard Felger"),
        occurrence("nocoll", year="1921", clean_collector="NA"),
    ]
    path = tmp_path / "occurrences.csv"
    pl.DataFrame(rows).select(COLUMNS).write_csv(path)
    return path


@pytest.fixture
def roster_csv(tmp_path: Path) -> Path:
    path = tmp_path / "collectors.csv"
    pl.DataFrame(
        {
            "start_year": ["1869", "1975"],
            "first_name": ["Edward", "Richard"],
            "last_name": ["Palmer", "Felger"],
        }
    ).write_csv(path)
    return path


@pytest.fixture
def settings() -> Settings:
    return Settings(environment="testing")


def read_output(path: Path) -> list[dict]:
    return pl.read_csv(path, infer_schema_length=0).to_dicts()


def test_run_harmonization_end_to_end(
    tmp_path: Path, occurrences_csv: Path, roster_csv: Path, settings: Settings
) -> None:
    result = run_harmonization(
        occurrences_csv, tmp_path / "out", roster_path=roster_csv, settings=settings, run_id="test-run"
    )

    rows = read_output(result.harmonized_path)
    assert [row["myid"] for row in rows] == ["obs", "nodate", "zero", "bi_1", "bi_2"]
    assert result.row_count == 5
    by_id = {row["myid"]: row for row in rows}

    merged = by_id["bi_1"]
    assert merged["year"] == "1921"
    assert merged["clean_collector"] == "edward palmer"
    assert merged["taxon"] == "Agave parryi"
    assert merged["institution_code"] == "ariz,asu"
    assert merged["latitude"] == "31.7"
    assert merged["longitude"] == "-110.4"
    assert merged["georeference_verification_status"] == "high confidence"
    assert merged["cluster_id"] == "1"
    assert merged["distinct_coordinate_count"] == "2"

    assert by_id["bi_2"]["clean_collector"] == "Richard Felger"
    assert by_id["obs"]["year"] == "2019"
    assert by_id["obs"]["cluster_id"] is None
    assert by_id["zero"]["year"] == "0"
    assert by_id["nodate"]["day"] is None

    audit = read_output(result.audit_path)
    assert audit == [
        {"cluster_id": "1", "original_id": "h1,h2", "member_count": "2", "institution_code": "ariz,asu"},
        {"cluster_id": "2", "original_id": "m1", "member_count": "1", "institution_code": "ARIZ"},
    ]

    report = json.loads(result.report_path.read_text(encoding="utf-8"))
    assert report["run_id"] == "test-run"
    assert report["statistics"]["input_records"] == 7
    assert report["quarantine"]["by_reason"] == {"missing_collector": 1, "no_date": 1, "problem_year": 1}
    assert [item["record_id"] for item in report["quarantine"]["items"]["problem_year"]] == ["zero"]
    assert report["corrections"] == [
        {"record_id": "h1", "from": 2021, "to": 1921, "rules": ["twentieth_to_nineteenth_century"]}
    ]


def test_outputs_are_reproducible(
    tmp_path: Path, occurrences_csv: Path, roster_csv: Path, settings: Settings
) -> None:
    first = run_harmonization(occurrences_csv, tmp_path / "a", roster_path=roster_csv, settings=settings)
    second = run_harmonization(occurrences_csv, tmp_path / "b", roster_path=roster_csv, settings=settings)
    assert first.harmonized_path.read_bytes() == second.harmonized_path.read_bytes()
    assert first.audit_path.read_bytes() == second.audit_path.read_bytes()
    assert first.report["checksums"] == second.report["checksums"]


def test_thread_pool_matches_serial_run(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, occurrences_csv: Path, roster_csv: Path
) -> None:
    serial = run_harmonization(
        occurrences_csv, tmp_path / "serial", roster_path=roster_csv, settings=Settings(environment="testing")
    )
    monkeypatch.setenv("HARMONIZE_POLICY__DEDUPLICATION__MAX_WORKERS", "4")
    threaded_settings = Settings(environment="testing")
    assert threaded_settings.policies.deduplication.max_workers == 4
    threaded = run_harmonization(
        occurrences_csv, tmp_path / "threaded", roster_path=roster_csv, settings=threaded_settings
    )
    assert serial.harmonized_path.read_bytes() == threaded.harmonized_path.read_bytes()


def test_without_roster_no_year_is_corrected(
    tmp_path: Path, occurrences_csv: Path, settings: Settings
) -> None:
    result = run_harmonization(occurrences_csv, tmp_path / "out", settings=settings)
    assert result.report["corrections"] == []
    # h1 keeps 2021 so it no longer groups with h2
    ids = [row["myid"] for row in read_output(result.harmonized_path)]
    assert ids == ["obs", "nodate", "zero", "bi_1", "bi_2", "bi_3"]


def test_excluding_diverted_records_by_policy(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, occurrences_csv: Path, roster_csv: Path
) -> None:
    monkeypatch.setenv("HARMONIZE_POLICY__OUTPUT__KEEP_UNDATED_RECORDS", "false")
    monkeypatch.setenv("HARMONIZE_POLICY__OUTPUT__KEEP_PROBLEM_YEAR_RECORDS", "false")
    result = run_harmonization(
        occurrences_csv, tmp_path / "out", roster_path=roster_csv, settings=Settings(environment="testing")
    )
    assert [row["myid"] for row in read_output(result.harmonized_path)] == ["obs", "bi_1", "bi_2"]
    assert result.report["quarantine"]["by_reason"]["no_date"] == 1


def test_missing_required_column_aborts_without_output(tmp_path: Path, settings: Settings) -> None:
    path = tmp_path / "broken.csv"
    pl.DataFrame({"myid": ["a"], "taxon": ["Agave"]}).write_csv(path)
    output_dir = tmp_path / "out"
    with pytest.raises(StructuralError):
        run_harmonization(path, output_dir, settings=settings)
    assert not list(output_dir.glob("*"))


def test_argparse_entry_point(tmp_path: Path, occurrences_csv: Path, roster_csv: Path) -> None:
    output_dir = tmp_path / "cli-out"
    exit_code = main(
        [
            str(occurrences_csv),
            "--roster",
            str(roster_csv),
            "--output-dir",
            str(output_dir),
            "--environment",
            "testing",
        ]
    )
    assert exit_code == 0
    assert (output_dir / "harmonized_occurrences.csv").exists()
    assert main([str(tmp_path / "missing.csv"), "--output-dir", str(output_dir), "--environment", "testing"]) == 2


def test_configured_reference_table_is_used_without_roster_argument(
    tmp_path: Path, occurrences_csv: Path, roster_csv: Path
) -> None:
    explicit = run_harmonization(
        occurrences_csv, tmp_path / "explicit", roster_path=roster_csv, settings=Settings(environment="testing")
    )
    configured = run_harmonization(
        occurrences_csv,
        tmp_path / "configured",
        settings=Settings(environment="testing", paths={"collector_reference": roster_csv}),
    )
    assert configured.report["checksums"] == explicit.report["checksums"]
    assert configured.report["corrections"] == explicit.report["corrections"]


def test_unparseable_date_text_is_undated(tmp_path: Path, settings: Settings) -> None:
    path = tmp_path / "occurrences.csv"
    rows = [
        occurrence("u1", collection_date="s.d."),
        occurrence("u2", collection_date="sin fecha"),
        occurrence("d1", collection_date="12/05/1921"),
    ]
    pl.DataFrame(rows).select(COLUMNS).write_csv(path)

    result = run_harmonization(path, tmp_path / "out", settings=settings)

    output = read_output(result.harmonized_path)
    assert [row["myid"] for row in output] == ["u1", "u2", "bi_1"]
    assert [row["collection_date"] for row in output[:2]] == ["s.d.", "sin fecha"]
    assert all(row["cluster_id"] is None for row in output[:2])
    assert read_output(result.audit_path) == [
        {"cluster_id": "1", "original_id": "d1", "member_count": "1", "institution_code": "ARIZ"}
    ]
    undated = result.report["quarantine"]["items"]["no_date"]
    assert [(item["record_id"], item["raw"]) for item in undated] == [("u1", "s.d."), ("u2", "sin fecha")]


def test_write_failure_removes_partial_outputs(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, occurrences_csv: Path, roster_csv: Path, settings: Settings
) -> None:
    def disk_full(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(runner, "write_audit", disk_full)
    output_dir = tmp_path / "out"
    with pytest.raises(OSError, match="disk full"):
        run_harmonization(occurrences_csv, output_dir, roster_path=roster_csv, settings=settings)
    assert not list(output_dir.glob("*"))


def test_source_coordinates_keep_their_spelling(tmp_path: Path, settings: Settings) -> None:
    path = tmp_path / "occurrences.csv"
    rows = [
        occurrence("p1", collection_date="1921", location="Tucson", latitude="31.50", longitude="-110"),
        occurrence("p2", collection_date="1921", location="Tucson", latitude="31.5", longitude="-110.0"),
        occurrence("o1", collection_date="1921", basis_of_record="HumanObservation", latitude="32.10", longitude="-111"),
    ]
    pl.DataFrame(rows).select(COLUMNS).write_csv(path)

    result = run_harmonization(path, tmp_path / "out", settings=settings)

    by_id = {row["myid"]: row for row in read_output(result.harmonized_path)}
    assert (by_id["o1"]["latitude"], by_id["o1"]["longitude"]) == ("32.10", "-111")
    merged = by_id["bi_1"]
    assert merged["distinct_coordinate_count"] == "1"
    assert (merged["latitude"], merged["longitude"]) == ("31.50", "-110")
