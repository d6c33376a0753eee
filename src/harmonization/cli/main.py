"""Typer application for the ``harmonize`` command."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import typer
from rich.table import Table

from harmonization.entities.core import HarmonizationError
from harmonization.utils.logging import configure_logging, get_logger

from . import pipeline, utilities
from .common import CLIError, configure_state, console, parse_override

_LOGGER = get_logger(module=__name__)

ExceptionHandler = Callable[[BaseException], Any]


class HarmonizationTyper(typer.Typer):
    """Typer application that turns known exceptions into clean exits.

    Handlers are looked up along the exception's MRO, so a handler for
    :class:`HarmonizationError` also covers ``StructuralError``. A handler
    returns the :class:`typer.Exit` to raise.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._handlers: Dict[type[BaseException], ExceptionHandler] = {}

    def exception_handler(self, exception_type: type[BaseException]) -> Callable[[ExceptionHandler], ExceptionHandler]:
        def register(handler: ExceptionHandler) -> ExceptionHandler:
            self._handlers[exception_type] = handler
            return handler

        return register

    def handler_for(self, exception: BaseException) -> ExceptionHandler | None:
        for klass in type(exception).__mro__:
            if klass in self._handlers:
                return self._handlers[klass]
        return None

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        try:
            return super().__call__(*args, **kwargs)
        except Exception as exc:  # pragma: no cover - exercised through the console script
            handler = self.handler_for(exc)
            if handler is None:
                raise
            outcome = handler(exc)
            if isinstance(outcome, BaseException):
                raise outcome from exc
            return outcome


app = HarmonizationTyper(
    add_completion=False,
    help=(
        "Harmonize herbarium occurrence records: correct collection years, group "
        "duplicate specimens and merge them into one de-duplicated table."
    ),
    no_args_is_help=True,
)


@app.exception_handler(CLIError)
def handle_cli_error(exception: BaseException) -> typer.Exit:
    console.print(f"[bold red]Error:[/bold red] {exception}")
    return typer.Exit(code=2)


@app.exception_handler(HarmonizationError)
def handle_harmonization_error(exception: BaseException) -> typer.Exit:
    console.print(f"[bold red]Harmonization failed:[/bold red] {exception}")
    return typer.Exit(code=2)


@app.callback()
def main(
    ctx: typer.Context,
    environment: Optional[str] = typer.Option(
        None,
        "--environment",
        "-e",
        help="Configuration environment: development, testing or production.",
        show_default=False,
    ),
    override: List[str] = typer.Option(  # noqa: B008 - Typer callback signature
        [],
        "--override",
        "-o",
        metavar="KEY=VALUE",
        help="Settings override such as eras.cutoff_year=1940 (repeatable).",
    ),
    run_id: Optional[str] = typer.Option(
        None,
        "--run-id",
        help="Run identifier recorded in logs and the run report.",
        show_default=False,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show resolved context and debug logs."),
) -> None:
    """Resolve settings once and share them with every subcommand."""

    state = configure_state(
        ctx,
        environment=environment,
        overrides=[parse_override(item) for item in override],
        run_id=run_id,
        verbose=verbose,
    )
    # Configurations that disable directory creation keep loguru's default sink.
    if state.settings.create_dirs:
        configure_logging(state.settings, level="DEBUG" if verbose else "INFO")
    _LOGGER.debug("CLI state resolved", environment=state.environment, run_id=state.run_id)

    if verbose:
        table = Table(title="CLI Context", show_header=False, box=None)
        table.add_row("Environment", state.environment)
        table.add_row("Run ID", state.run_id)
        table.add_row("Policy version", state.settings.policy_version)
        table.add_row("Cutoff year", str(state.settings.policies.eras.cutoff_year))
        if state.overrides:
            table.add_row("Overrides", ", ".join(sorted(state.overrides)))
        console.print(table)


app.command("run")(pipeline.run_command)
app.command("roster")(utilities.roster_command)
app.command("correct-year")(utilities.correct_year_command)
