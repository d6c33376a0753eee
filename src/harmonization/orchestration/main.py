"""High-level orchestration entry points for occurrence harmonization."""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from harmonization.config.settings import Settings
from harmonization.entities.core import HarmonizationError
from harmonization.observability.determinism import stable_hash
from harmonization.pipeline import Pipeline, default_steps
from harmonization.pipeline.context import HarmonizationContext
from harmonization.pipeline.eras import CollectorEraRoster, roster_from_policy
from harmonization.pipeline.ingest import load_records
from harmonization.pipeline.io import (
    read_occurrences,
    read_reference_table,
    write_audit,
    write_report,
    write_table,
)
from harmonization.utils.helpers import ensure_directory
from harmonization.utils.logging import get_logger, logging_context

_LOGGER = get_logger(module=__name__)


@dataclass(slots=True)
class HarmonizationResult:
    run_id: str
    harmonized_path: Path
    audit_path: Path
    report_path: Path
    report: Dict[str, Any]
    context: HarmonizationContext

    @property
    def row_count(self) -> int:
        return self.report["statistics"]["output_rows"]


def load_roster(roster_path: str | Path | None, settings: Settings) -> CollectorEraRoster:
    """Build the roster from the reference table and the configured supplement."""

    eras = settings.policies.eras
    rows = read_reference_table(roster_path, eras.roster_source) if roster_path is not None else []
    return roster_from_policy(rows, eras)


def build_context(
    occurrences_path: str | Path,
    *,
    roster_path: str | Path | None,
    settings: Settings,
) -> HarmonizationContext:
    policies = settings.policies
    rows, column_order = read_occurrences(occurrences_path, policies.columns)
    records = load_records(rows, policies)
    return HarmonizationContext(
        policies=policies,
        column_order=column_order,
        records=records,
        roster=load_roster(roster_path, settings),
        input_count=len(records),
    )


def build_report(context: HarmonizationContext, *, run_id: str, settings: Settings) -> Dict[str, Any]:
    assembly = context.assembly
    deduplication = context.deduplication
    if assembly is None or deduplication is None:
        raise HarmonizationError("Pipeline finished without an assembled output")
    quarantine = context.quarantine.snapshot()
    return {
        "run_id": run_id,
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "policy_version": settings.policy_version,
        "statistics": {
            "input_records": context.input_count,
            "output_rows": len(assembly.rows),
            "merged_records": assembly.merged_count,
            "passthrough_records": assembly.passthrough_count,
            "stages": context.stats,
        },
        "quarantine": quarantine.as_dict(),
        "corrections": context.corrections,
        "merge_samples": deduplication.samples,
        "checksums": {
            "harmonized": stable_hash(assembly.rows),
            "audit": stable_hash([entry.model_dump(mode="json") for entry in deduplication.audit]),
        },
    }


def _remove_partial_outputs(paths: Iterable[Path]) -> None:
    for path in paths:
        if path.exists():
            _LOGGER.warning("Removing partial output", path=str(path))
            path.unlink()


def run_harmonization(
    occurrences_path: str | Path,
    output_dir: str | Path | None = None,
    *,
    roster_path: str | Path | None = None,
    settings: Optional[Settings] = None,
    run_id: Optional[str] = None,
) -> HarmonizationResult:
    """Run every stage over one occurrence table and write the outputs.

    Without *roster_path* the configured ``paths.collector_reference`` is used;
    when that is unset too the roster holds only the configured supplement.

    Any failure aborts the run, whether structural or raised while writing;
    outputs written by this call are removed before the error propagates.
    """

    cfg = settings or Settings()
    run_id = run_id or datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    destinations = cfg.output_paths(output_dir)
    harmonized_path = destinations["harmonized"]
    audit_path = destinations["audit"]
    report_path = destinations["report"]
    target_dir = ensure_directory(harmonized_path.parent)
    if roster_path is None:
        roster_path = cfg.reference_table

    written: List[Path] = []
    with logging_context(run_id=run_id, step="orchestration"):
        _LOGGER.info(
            "Harmonization run started",
            occurrences=str(occurrences_path),
            roster=str(roster_path) if roster_path is not None else None,
            output_dir=str(target_dir),
        )
        try:
            context = build_context(occurrences_path, roster_path=roster_path, settings=cfg)
            Pipeline(steps=default_steps()).execute(context)
            report = build_report(context, run_id=run_id, settings=cfg)

            assert context.assembly is not None and context.deduplication is not None
            written.append(write_table(context.assembly.rows, context.assembly.columns, harmonized_path))
            written.append(write_audit(context.deduplication.audit, audit_path))
            written.append(write_report(report, report_path))
        except Exception:
            # Structural errors and write failures alike leave no outputs behind.
            _remove_partial_outputs(written)
            raise

        _LOGGER.info(
            "Harmonization run finished",
            input_records=context.input_count,
            output_rows=report["statistics"]["output_rows"],
            merged_records=report["statistics"]["merged_records"],
        )

    return HarmonizationResult(
        run_id=run_id,
        harmonized_path=harmonized_path,
        audit_path=audit_path,
        report_path=report_path,
        report=report,
        context=context,
    )


def _build_cli() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Harmonize herbarium occurrence records")
    parser.add_argument("occurrences", type=Path, help="Occurrence table (CSV or Parquet)")
    parser.add_argument("--roster", type=Path, default=None, help="Collector-era reference table")
    parser.add_argument("--output-dir", type=Path, default=None)
    parser.add_argument("--environment", choices=["development", "testing", "production"], default=None)
    parser.add_argument("--run-id", default=None)
    return parser


def main(argv: Iterable[str] | None = None) -> int:
    parser = _build_cli()
    args = parser.parse_args(list(argv) if argv is not None else None)

    settings_kwargs: Dict[str, Any] = {}
    if args.environment:
        settings_kwargs["environment"] = args.environment
    settings = Settings(**settings_kwargs)
    try:
        run_harmonization(
            args.occurrences,
            args.output_dir,
            roster_path=args.roster,
            settings=settings,
            run_id=args.run_id,
        )
    except HarmonizationError as exc:
        _LOGGER.error("Harmonization failed", error=str(exc))
        return 2
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
