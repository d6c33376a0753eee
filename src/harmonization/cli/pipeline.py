"""Full-run command for the harmonization CLI."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from harmonization.entities.core import HarmonizationError
from harmonization.orchestration import run_harmonization

from .common import CLIError, console, get_state, render_panel, resolve_path


def run_command(
    ctx: typer.Context,
    occurrences: Path = typer.Argument(..., help="Occurrence table (CSV or Parquet)."),
    roster: Optional[Path] = typer.Option(
        None,
        "--roster",
        "-r",
        help="Collector-era reference table.",
        show_default=False,
    ),
    output_dir: Optional[Path] = typer.Option(
        None,
        "--output-dir",
        help="Directory for the harmonized table, audit and report; defaults to paths.output_dir.",
        show_default=False,
    ),
) -> None:
    """Run every harmonization stage and write the outputs."""

    state = get_state(ctx)
    occurrences_path = resolve_path(occurrences, label="Occurrence table")
    roster_path = resolve_path(roster, label="Collector reference table") if roster is not None else None
    target_dir = resolve_path(output_dir, must_exist=False) if output_dir is not None else None

    try:
        with console.status("Harmonizing occurrence records..."):
            result = run_harmonization(
                occurrences_path,
                target_dir,
                roster_path=roster_path,
                settings=state.settings,
                run_id=state.run_id,
            )
    except HarmonizationError as exc:
        raise CLIError(str(exc)) from exc

    statistics = result.report["statistics"]
    table = Table(title="Harmonization summary", show_header=False)
    table.add_row("Input records", str(statistics["input_records"]))
    table.add_row("Output rows", str(statistics["output_rows"]))
    table.add_row("Merged records", str(statistics["merged_records"]))
    table.add_row("Passthrough records", str(statistics["passthrough_records"]))
    for reason, count in result.context.quarantine.counts().items():
        table.add_row(f"Diverted: {reason}", str(count))
    console.print(table)
    if state.verbose:
        render_panel("Stage statistics", statistics["stages"])
    console.print(f"[green]Harmonization complete[/green] -> {result.harmonized_path}")


__all__ = ["run_command"]
