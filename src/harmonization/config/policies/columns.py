"""Input table column mapping policy."""

from __future__ import annotations

from typing import Any, Dict, List

from pydantic import BaseModel, Field, field_validator, model_validator

from ._sanitize import sanitize_string_sequence


class ColumnPolicy(BaseModel):
    """Maps logical record fields onto the combined occurrence table columns."""

    id: str = Field(default="myid", min_length=1)
    raw_date: str = Field(default="collection_date", min_length=1)
    day: str = Field(default="day", min_length=1)
    month: str = Field(default="month", min_length=1)
    year: str = Field(default="year", min_length=1)
    basis_of_record: str = Field(default="basis_of_record", min_length=1)
    collector: str = Field(default="clean_collector", min_length=1)
    taxon: str = Field(default="taxon", min_length=1)
    locality: str = Field(default="location", min_length=1)
    institution_code: str = Field(default="institution_code", min_length=1)
    latitude: str = Field(default="latitude", min_length=1)
    longitude: str = Field(default="longitude", min_length=1)
    uncertainty: str = Field(default="coordinateuncertaintyinmeters", min_length=1)
    verification_status: str = Field(
        default="georeference_verification_status", min_length=1
    )
    protocol: str = Field(default="georeference_protocol", min_length=1)
    source: str = Field(default="georeference_source", min_length=1)
    notes: str = Field(default="georeference_notes", min_length=1)
    elevation: List[str] = Field(
        default_factory=lambda: ["minimumelevationinmeters", "maximumelevationinmeters"],
        description="Elevation columns carried inside the geolocation block.",
    )
    required: List[str] = Field(
        default_factory=lambda: [
            "myid",
            "collection_date",
            "day",
            "month",
            "year",
            "basis_of_record",
            "clean_collector",
            "taxon",
            "location",
            "latitude",
            "longitude",
            "institution_code",
        ],
        description="Columns whose absence aborts the run.",
    )
    cluster_id_column: str = Field(default="cluster_id", min_length=1)
    coordinate_count_column: str = Field(default="distinct_coordinate_count", min_length=1)

    @field_validator("elevation", "required", mode="before")
    def _strip_blanks(cls, value: Any) -> List[str]:
        return sanitize_string_sequence(value)

    @model_validator(mode="after")
    def _validate_unique_columns(self) -> "ColumnPolicy":
        mapped = list(self.field_columns().values()) + list(self.elevation)
        duplicates = sorted({column for column in mapped if mapped.count(column) > 1})
        if duplicates:
            raise ValueError(f"Columns mapped to more than one field: {duplicates}")
        return self

    def field_columns(self) -> Dict[str, str]:
        """Return the logical field name to column name mapping (scalar fields only)."""

        return {
            name: getattr(self, name)
            for name in (
                "id",
                "raw_date",
                "day",
                "month",
                "year",
                "basis_of_record",
                "collector",
                "taxon",
                "locality",
                "institution_code",
                "latitude",
                "longitude",
                "uncertainty",
                "verification_status",
                "protocol",
                "source",
                "notes",
            )
        }

    def geolocation_columns(self) -> List[str]:
        """Columns that make up the geolocation block, in output order."""

        return [
            self.latitude,
            self.longitude,
            self.uncertainty,
            self.verification_status,
            self.protocol,
            self.source,
            self.notes,
            *self.elevation,
        ]
