"""Inspection commands for the collector roster and the year rules."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from harmonization.entities.core import HarmonizationError
from harmonization.orchestration import load_roster
from harmonization.pipeline.eras import CollectorOverrideTable, correct_year_text, rules_for_collector, triggered_rules
from harmonization.utils.helpers import serialize_json

from .common import CLIError, console, get_state, resolve_path


def roster_command(
    ctx: typer.Context,
    reference: Optional[Path] = typer.Argument(
        None,
        help="Collector-era reference table; only configured supplement names are used when omitted.",
        show_default=False,
    ),
    collector: Optional[str] = typer.Option(
        None,
        "--collector",
        "-c",
        help="Report whether this collector string matches the roster.",
        show_default=False,
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        help="Write the roster names to this JSON file.",
        show_default=False,
    ),
) -> None:
    """Build the collector-era roster and show or export it."""

    state = get_state(ctx)
    reference_path = resolve_path(reference, label="Collector reference table") if reference is not None else None
    try:
        roster = load_roster(reference_path, state.settings)
    except HarmonizationError as exc:
        raise CLIError(str(exc)) from exc

    names = sorted(roster.names)
    if output is not None:
        destination = serialize_json(
            {"cutoff_year": roster.cutoff_year, "names": names},
            resolve_path(output, must_exist=False),
        )
        console.print(f"[green]Roster written[/green] -> {destination}")

    if collector is not None:
        matched = roster.matches(collector)
        label = "[green]pre-cutoff[/green]" if matched else "[yellow]modern[/yellow]"
        console.print(f"{collector!r}: {label} (cutoff {roster.cutoff_year})")
        return

    table = Table(title=f"Collectors active by {roster.cutoff_year} ({len(names)})")
    table.add_column("Name")
    for name in names if state.verbose else names[:50]:
        table.add_row(name)
    console.print(table)
    if not state.verbose and len(names) > 50:
        console.print(f"... {len(names) - 50} more; pass --verbose to list all")


def correct_year_command(
    ctx: typer.Context,
    year: str = typer.Argument(..., help="Year text to correct."),
    collector: Optional[str] = typer.Option(
        None,
        "--collector",
        "-c",
        help="Collector whose specific exceptions should also apply.",
        show_default=False,
    ),
) -> None:
    """Apply the pre-cutoff year rules to a single value."""

    state = get_state(ctx)
    text = year.strip()
    if not text.isdigit():
        raise CLIError(f"Year must be numeric, got {year!r}")
    overrides = CollectorOverrideTable(state.settings.policies.eras.collector_overrides)
    corrected = correct_year_text(text, collector, overrides)
    fired = triggered_rules(text, rules_for_collector(collector, overrides))
    if corrected == text:
        console.print(f"{text} -> {corrected} [dim](unchanged)[/dim]")
    else:
        console.print(f"{text} -> [green]{corrected}[/green] ({', '.join(fired)})")


__all__ = ["correct_year_command", "roster_command"]
