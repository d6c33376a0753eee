"""State, override parsing and rendering helpers shared by the CLI commands."""

from __future__ import annotations

import json
from dataclasses import dataclass
from functools import reduce
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping
from uuid import uuid4

import typer
from rich.console import Console
from rich.json import JSON as RichJSON
from rich.panel import Panel

from harmonization.config.policies import Policies
from harmonization.config.settings import Settings, merge_mappings

console = Console()


class CLIError(RuntimeError):
    """Exception raised for user-facing CLI errors."""


@dataclass(slots=True)
class CLIState:
    """Resolved settings and run identity attached to ``typer.Context.obj``."""

    settings: Settings
    overrides: Dict[str, Any]
    environment: str
    run_id: str
    verbose: bool


def _override_path(dotted: str) -> list[str]:
    segments = [segment.strip() for segment in dotted.split(".") if segment.strip()]
    if not segments:
        raise typer.BadParameter("Override keys must not be empty")
    root = segments[0]
    if root in Policies.model_fields and root not in Settings.model_fields:
        # ``eras.cutoff_year`` is shorthand for ``policies.eras.cutoff_year``.
        return ["policies", *segments]
    if root not in Settings.model_fields:
        raise typer.BadParameter(f"Unknown settings key '{root}' in override '{dotted}'")
    return segments


def parse_override(argument: str) -> Dict[str, Any]:
    """Turn ``dotted.key=value`` into a nested mapping.

    Values are decoded as JSON when possible (numbers, booleans, lists and
    objects) and kept as plain text otherwise.
    """

    dotted, separator, raw = argument.partition("=")
    if not separator:
        raise typer.BadParameter("Overrides must be expressed as dotted.key=value")
    try:
        value: Any = json.loads(raw)
    except json.JSONDecodeError:
        value = raw
    for segment in reversed(_override_path(dotted)):
        value = {segment: value}
    return value


def merge_overrides(overrides: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    """Combine overrides left to right; later values win on conflicting keys."""

    return reduce(merge_mappings, overrides, {})


def resolve_settings(environment: str | None, overrides: Mapping[str, Any]) -> Settings:
    payload = dict(overrides)
    if environment:
        payload["environment"] = environment
    return Settings(**payload)


def configure_state(
    ctx: typer.Context,
    *,
    environment: str | None,
    overrides: Iterable[Mapping[str, Any]],
    run_id: str | None,
    verbose: bool,
) -> CLIState:
    merged = merge_overrides(overrides)
    settings = resolve_settings(environment, merged)
    state = CLIState(
        settings=settings,
        overrides=merged,
        environment=settings.environment,
        run_id=run_id or f"cli-{uuid4().hex[:8]}",
        verbose=verbose,
    )
    ctx.obj = state
    return state


def get_state(ctx: typer.Context) -> CLIState:
    if not isinstance(ctx.obj, CLIState):
        raise CLIError("CLI context is not initialised; run commands through the harmonize app")
    return ctx.obj


def render_panel(title: str, content: Mapping[str, Any]) -> None:
    console.print(Panel(RichJSON.from_data(content, default=str), title=title, border_style="cyan"))


def resolve_path(path: str | Path, *, must_exist: bool = True, label: str = "Path") -> Path:
    target = Path(path).expanduser().resolve()
    if must_exist and not target.exists():
        raise CLIError(f"{label} does not exist: {target}")
    return target


__all__ = [
    "CLIError",
    "CLIState",
    "configure_state",
    "console",
    "get_state",
    "merge_overrides",
    "parse_override",
    "render_panel",
    "resolve_path",
    "resolve_settings",
]
