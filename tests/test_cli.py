"""Smoke tests for the Typer-based harmonization CLI."""

from __future__ import annotations

import json
from pathlib import Path

import polars as pl
import pytest
import typer
from typer.testing import CliRunner

from harmonization.cli.common import CLIError, merge_overrides, parse_override
from harmonization.cli.main import app, handle_cli_error, handle_harmonization_error
from harmonization.entities.core import StructuralError


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def roster_csv(tmp_path: Path) -> Path:
    path = tmp_path / "collectors.csv"
    pl.DataFrame(
        {
            "start_year": ["1869", "1891", "1975"],
            "first_name": ["Edward", "J. G.", "Richard"],
            "last_name": ["Palmer", "Lemmon", "Felger"],
        }
    ).write_csv(path)
    return path


@pytest.fixture()
def occurrences_csv(tmp_path: Path) -> Path:
    base = {
        "myid": "a",
        "collection_date": "12/05/2021",
        "day": "12",
        "month": "5",
        "year": "2021",
        "basis_of_record": "PreservedSpecimen",
        "clean_collector": "Edward Palmer",
        "taxon": "Agave parryi",
        "location": "Sierra Madre",
        "latitude": "31.5",
        "longitude": "-110.2",
        "institution_code": "ARIZ",
    }
    rows = [base, {**base, "myid": "b", "year": "1921", "collection_date": "12/05/1921", "institution_code": "ASU"}]
    path = tmp_path / "occurrences.csv"
    pl.DataFrame(rows).write_csv(path)
    return path


def test_parse_override_builds_nested_mapping() -> None:
    assert parse_override("policies.eras.cutoff_year=1940") == {"policies": {"eras": {"cutoff_year": 1940}}}
    assert parse_override("policies.output.harmonized_filename=out.parquet") == {
        "policies": {"output": {"harmonized_filename": "out.parquet"}}
    }
    merged = merge_overrides(
        [parse_override("policies.eras.cutoff_year=1940"), parse_override("policies.eras.supplement=[\"Jones\"]")]
    )
    assert merged == {"policies": {"eras": {"cutoff_year": 1940, "supplement": ["Jones"]}}}


def test_parse_override_expands_policy_shorthand() -> None:
    assert parse_override("deduplication.max_workers=4") == {"policies": {"deduplication": {"max_workers": 4}}}
    assert parse_override("create_dirs=false") == {"create_dirs": False}


def test_parse_override_rejects_unknown_keys() -> None:
    with pytest.raises(typer.BadParameter):
        parse_override("nonsense.key=1")
    with pytest.raises(typer.BadParameter):
        parse_override("eras.cutoff_year")


def test_run_command_writes_outputs(
    runner: CliRunner, tmp_path: Path, occurrences_csv: Path, roster_csv: Path
) -> None:
    output_dir = tmp_path / "out"
    result = runner.invoke(
        app,
        [
            "--environment",
            "testing",
            "--run-id",
            "cli-test",
            "run",
            str(occurrences_csv),
            "--roster",
            str(roster_csv),
            "--output-dir",
            str(output_dir),
        ],
    )

    assert result.exit_code == 0, result.output
    assert "Harmonization complete" in result.output
    rows = pl.read_csv(output_dir / "harmonized_occurrences.csv", infer_schema_length=0).to_dicts()
    assert [row["myid"] for row in rows] == ["bi_1"]
    assert rows[0]["year"] == "1921"
    report = json.loads((output_dir / "harmonization_report.json").read_text(encoding="utf-8"))
    assert report["run_id"] == "cli-test"


def test_run_command_reports_structural_errors(runner: CliRunner, tmp_path: Path) -> None:
    broken = tmp_path / "broken.csv"
    pl.DataFrame({"myid": ["a"]}).write_csv(broken)
    result = runner.invoke(
        app,
        ["--environment", "testing", "run", str(broken), "--output-dir", str(tmp_path / "out")],
    )
    assert result.exit_code != 0
    assert isinstance(result.exception, CLIError)
    assert "missing required columns" in str(result.exception)


def test_run_command_rejects_missing_input(runner: CliRunner, tmp_path: Path) -> None:
    result = runner.invoke(app, ["--environment", "testing", "run", str(tmp_path / "absent.csv")])
    assert result.exit_code != 0
    assert isinstance(result.exception, CLIError)


def test_roster_command_classifies_collector(runner: CliRunner, roster_csv: Path) -> None:
    result = runner.invoke(
        app,
        ["--environment", "testing", "roster", str(roster_csv), "--collector", "J. G. Lemmon & Sara Lemmon"],
    )
    assert result.exit_code == 0, result.output
    assert "pre-cutoff" in result.output

    result = runner.invoke(app, ["--environment", "testing", "roster", str(roster_csv), "--collector", "Richard Felger"])
    assert result.exit_code == 0, result.output
    assert "modern" in result.output


def test_roster_command_exports_names(runner: CliRunner, tmp_path: Path, roster_csv: Path) -> None:
    output = tmp_path / "roster.json"
    result = runner.invoke(
        app,
        [
            "--environment",
            "testing",
            "--override",
            'policies.eras.supplement=["Marcus E. Jones"]',
            "roster",
            str(roster_csv),
            "--output",
            str(output),
        ],
    )
    assert result.exit_code == 0, result.output
    payload = json.loads(output.read_text(encoding="utf-8"))
    assert payload == {"cutoff_year": 1950, "names": ["edward palmer", "j. g. lemmon", "marcus e. jones"]}


def test_correct_year_command(runner: CliRunner) -> None:
    result = runner.invoke(app, ["--environment", "testing", "correct-year", "2019"])
    assert result.exit_code == 0, result.output
    assert "1919" in result.output

    result = runner.invoke(app, ["--environment", "testing", "correct-year", "1899"])
    assert result.exit_code == 0, result.output
    assert "unchanged" in result.output


def test_correct_year_command_uses_collector_overrides(runner: CliRunner) -> None:
    result = runner.invoke(
        app,
        [
            "--environment",
            "testing",
            "-o",
            'policies.eras.collector_overrides={"Hitchcock": {"197": "187"}}',
            "correct-year",
            "1975",
            "--collector",
            "A. S. Hitchcock",
        ],
    )
    assert result.exit_code == 0, result.output
    assert "1875" in result.output


def test_correct_year_command_rejects_non_numeric(runner: CliRunner) -> None:
    result = runner.invoke(app, ["--environment", "testing", "correct-year", "19x9"])
    assert result.exit_code != 0
    assert isinstance(result.exception, CLIError)


def test_verbose_flag_renders_context(runner: CliRunner) -> None:
    result = runner.invoke(app, ["--environment", "testing", "--verbose", "--run-id", "abc", "correct-year", "1995"])
    assert result.exit_code == 0, result.output
    assert "CLI Context" in result.output
    assert "abc" in result.output


def test_exception_handlers_follow_error_hierarchy() -> None:
    assert app.handler_for(StructuralError("boom")) is handle_harmonization_error
    assert app.handler_for(CLIError("bad input")) is handle_cli_error
    assert app.handler_for(KeyError("other")) is None
    assert handle_cli_error(CLIError("bad input")).exit_code == 2
