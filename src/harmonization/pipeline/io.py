"""Input/output helpers for occurrence, reference and output tables."""

from __future__ import annotations

import json
import os
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any, Callable, Dict, Iterable, List, Mapping, Sequence, Tuple

import polars as pl

from harmonization.config.policies import ColumnPolicy, RosterSourcePolicy
from harmonization.entities.core import DuplicationAuditEntry, StructuralError
from harmonization.utils.helpers import ensure_directory
from harmonization.utils.logging import get_logger

_LOGGER = get_logger(module=__name__)

AUDIT_COLUMNS = ["cluster_id", "original_id", "member_count", "institution_code"]


def read_table(path: str | Path) -> pl.DataFrame:
    """Read a CSV or Parquet table with every column as text."""

    source = Path(path)
    if not source.exists():
        raise StructuralError(f"Input table not found: {source}")
    try:
        if source.suffix.lower() in {".parquet", ".pq"}:
            frame = pl.read_parquet(source)
            return frame.select(pl.all().cast(pl.Utf8, strict=False))
        return pl.read_csv(source, infer_schema_length=0)
    except (pl.exceptions.PolarsError, OSError) as exc:
        raise StructuralError(f"Unable to read table {source}: {exc}") from exc


def require_columns(available: Iterable[str], required: Iterable[str], *, label: str) -> None:
    missing = sorted(set(required) - set(available))
    if missing:
        raise StructuralError(f"{label} is missing required columns: {missing}")


def read_occurrences(path: str | Path, columns: ColumnPolicy) -> Tuple[List[Dict[str, Any]], List[str]]:
    """Return raw occurrence rows and the source column order."""

    frame = read_table(path)
    require_columns(frame.columns, columns.required, label=f"Occurrence table {path}")
    _LOGGER.info("Loaded occurrence table", path=str(path), rows=frame.height, columns=len(frame.columns))
    return frame.to_dicts(), list(frame.columns)


def read_reference_table(path: str | Path, source: RosterSourcePolicy) -> List[Dict[str, Any]]:
    """Return collector-era reference rows."""

    frame = read_table(path)
    require_columns(
        frame.columns,
        [source.start_year_column, *source.name_columns],
        label=f"Collector reference table {path}",
    )
    _LOGGER.info("Loaded collector reference table", path=str(path), rows=frame.height)
    return frame.to_dicts()


def _format_cell(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_frame(rows: Sequence[Mapping[str, Any]], header: Sequence[str]) -> pl.DataFrame:
    """Build a text-typed frame with exactly *header* as columns."""

    return pl.DataFrame(
        {
            column: pl.Series(column, [_format_cell(row.get(column)) for row in rows], dtype=pl.Utf8)
            for column in header
        }
    )


def _atomic_write(destination: str | Path, writer: Callable[[Path], None]) -> Path:
    """Write through a temporary sibling file before atomically replacing the destination."""

    path = Path(destination).expanduser()
    ensure_directory(path.parent)
    tmp_handle = NamedTemporaryFile(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False)
    tmp_path = Path(tmp_handle.name)
    tmp_handle.close()
    try:
        writer(tmp_path)
        os.replace(tmp_path, path)
    except Exception:
        if tmp_path.exists():
            try:
                tmp_path.unlink()
            except FileNotFoundError:  # pragma: no cover - race during cleanup
                pass
        raise
    return path


def write_table(rows: Sequence[Mapping[str, Any]], header: Sequence[str], destination: str | Path) -> Path:
    """Persist rows as CSV or Parquet depending on the destination suffix."""

    frame = build_frame(rows, header)
    is_parquet = Path(destination).suffix.lower() in {".parquet", ".pq"}

    def _writer(target: Path) -> None:
        if is_parquet:
            frame.write_parquet(target)
        else:
            frame.write_csv(target)

    return _atomic_write(destination, _writer)


def write_audit(entries: Sequence[DuplicationAuditEntry], destination: str | Path) -> Path:
    rows = [entry.model_dump(mode="json") for entry in entries]
    return write_table(rows, AUDIT_COLUMNS, destination)


def write_report(payload: Mapping[str, Any], destination: str | Path) -> Path:
    """Write the run report as deterministic JSON."""

    text = json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False, default=str) + "\n"

    def _writer(target: Path) -> None:
        target.write_text(text, encoding="utf-8")

    return _atomic_write(destination, _writer)


__all__ = [
    "AUDIT_COLUMNS",
    "build_frame",
    "read_occurrences",
    "read_reference_table",
    "read_table",
    "require_columns",
    "write_audit",
    "write_report",
    "write_table",
]
