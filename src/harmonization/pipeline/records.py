"""Conversion between flat occurrence table rows and typed records."""

from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Mapping, Sequence

from pydantic import ValidationError

from harmonization.config.policies import ColumnPolicy, SentinelRule
from harmonization.entities.core import (
    BasisOfRecord,
    CollectionDate,
    Geolocation,
    OccurrenceRecord,
    StructuralError,
)
from harmonization.pipeline.dates.sentinels import apply_sentinels

_INTEGRAL_FLOAT_PATTERN = re.compile(r"^[+-]?\d+\.0*$")
# Source spellings mirror typed fields and never count as separate gaps.
_SOURCE_SPELLINGS = {"latitude_text", "longitude_text"}


def _clean_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _coerce_int(value: str | None, *, column: str, record_id: str) -> int | None:
    if value is None:
        return None
    text = value.strip()
    if text.lstrip("+-").isdigit():
        return int(text)
    if _INTEGRAL_FLOAT_PATTERN.match(text):
        return int(float(text))
    raise StructuralError(f"Malformed integer {value!r} in column '{column}' of record {record_id}")


def _coerce_float(value: str | None, *, column: str, record_id: str) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError as exc:
        raise StructuralError(
            f"Malformed number {value!r} in column '{column}' of record {record_id}"
        ) from exc


def record_from_row(
    row: Mapping[str, Any],
    columns: ColumnPolicy,
    *,
    sentinels: Sequence[SentinelRule] = (),
    sequence: int = 0,
) -> OccurrenceRecord:
    """Build an :class:`OccurrenceRecord` from one raw table row.

    Sentinel rules run first so that placeholder values never reach typed
    fields. Malformed numeric cells abort with :class:`StructuralError`.
    """

    values: Dict[str, str | None] = {key: _clean_text(value) for key, value in row.items()}
    values = apply_sentinels(values, sentinels, columns)

    record_id = values.get(columns.id)
    if record_id is None:
        raise StructuralError(f"Row {sequence} has no value in id column '{columns.id}'")

    geo_values = {
        "latitude": _coerce_float(values.get(columns.latitude), column=columns.latitude, record_id=record_id),
        "longitude": _coerce_float(values.get(columns.longitude), column=columns.longitude, record_id=record_id),
        "latitude_text": values.get(columns.latitude),
        "longitude_text": values.get(columns.longitude),
        "uncertainty_m": values.get(columns.uncertainty),
        "verification_status": values.get(columns.verification_status),
        "protocol": values.get(columns.protocol),
        "source": values.get(columns.source),
        "notes": values.get(columns.notes),
    }
    elevation = {column: values.get(column) for column in columns.elevation}
    has_geolocation = any(value is not None for value in geo_values.values()) or any(
        value is not None for value in elevation.values()
    )

    mapped = set(columns.field_columns().values()) | set(columns.elevation)
    attributes = {key: value for key, value in values.items() if key not in mapped}

    try:
        return OccurrenceRecord(
            id=record_id,
            collector=values.get(columns.collector),
            taxon=values.get(columns.taxon),
            date=CollectionDate(
                raw=values.get(columns.raw_date),
                year=_coerce_int(values.get(columns.year), column=columns.year, record_id=record_id),
                month=_coerce_int(values.get(columns.month), column=columns.month, record_id=record_id),
                day=_coerce_int(values.get(columns.day), column=columns.day, record_id=record_id),
                year_text=values.get(columns.year),
            ),
            locality=values.get(columns.locality),
            basis_of_record=BasisOfRecord.parse(values.get(columns.basis_of_record)),
            geolocation=Geolocation(**geo_values, elevation=elevation) if has_geolocation else None,
            institution_code=values.get(columns.institution_code),
            attributes=attributes,
            sequence=sequence,
        )
    except ValidationError as exc:
        raise StructuralError(f"Malformed record {record_id}: {exc}") from exc


def geolocation_to_row(geolocation: Geolocation | None, columns: ColumnPolicy) -> Dict[str, Any]:
    """Flatten a geolocation block into its table columns."""

    geo = geolocation or Geolocation()
    latitude, longitude = geo.coordinate_cells()
    row: Dict[str, Any] = {
        columns.latitude: latitude,
        columns.longitude: longitude,
        columns.uncertainty: geo.uncertainty_m,
        columns.verification_status: geo.verification_status,
        columns.protocol: geo.protocol,
        columns.source: geo.source,
        columns.notes: geo.notes,
    }
    for column in columns.elevation:
        row[column] = geo.elevation.get(column)
    return row


def record_to_row(
    record: OccurrenceRecord,
    columns: ColumnPolicy,
    column_order: Sequence[str] | None = None,
) -> Dict[str, Any]:
    """Flatten a record back into table columns.

    When *column_order* is given the row contains exactly those columns, in
    that order; columns the record knows nothing about are ``None``.
    """

    row: Dict[str, Any] = {
        columns.id: record.id,
        columns.raw_date: record.date.raw,
        columns.day: record.date.day,
        columns.month: record.date.month,
        columns.year: record.date.year,
        columns.basis_of_record: record.basis_of_record.value,
        columns.collector: record.collector,
        columns.taxon: record.taxon,
        columns.locality: record.locality,
        columns.institution_code: record.institution_code,
    }
    row.update(geolocation_to_row(record.geolocation, columns))
    for key, value in record.attributes.items():
        row.setdefault(key, value)
    if column_order is None:
        return row
    return {column: row.get(column) for column in column_order}


def count_null_fields(record: OccurrenceRecord) -> int:
    """Count missing values across every descriptive field of *record*."""

    payload = record.model_dump(
        exclude={"id": True, "sequence": True, "date": {"year_text"}, "geolocation": _SOURCE_SPELLINGS}
    )
    geolocation = payload.pop("geolocation") or Geolocation().model_dump(exclude=_SOURCE_SPELLINGS)
    return _count_nulls(payload) + _count_nulls(geolocation)


def _count_nulls(payload: Any) -> int:
    if payload is None:
        return 1
    if isinstance(payload, Mapping):
        return sum(_count_nulls(value) for value in payload.values())
    return 0


def records_to_rows(
    records: Iterable[OccurrenceRecord],
    columns: ColumnPolicy,
    column_order: Sequence[str],
) -> List[Dict[str, Any]]:
    return [record_to_row(record, columns, column_order) for record in records]


__all__ = [
    "record_from_row",
    "record_to_row",
    "records_to_rows",
    "geolocation_to_row",
    "count_null_fields",
]
