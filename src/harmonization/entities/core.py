"""Core domain entities used throughout the harmonization pipeline."""

from __future__ import annotations

from enum import Enum
import re
from typing import Any, Dict, List, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class HarmonizationError(Exception):
    """Base error for the harmonization engine."""


class StructuralError(HarmonizationError):
    """Raised for unrecoverable input or invariant violations; aborts the run."""


_BASIS_TOKEN_PATTERN = re.compile(r"[^a-z]+")


class BasisOfRecord(str, Enum):
    """Harmonized basis-of-record vocabulary."""

    HUMAN_OBSERVATION = "human_observation"
    LIVING_SPECIMEN = "living_specimen"
    PHYSICAL_SPECIMEN = "physical_specimen"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> "BasisOfRecord":
        """Map source vocabularies (Darwin Core terms, free text) onto the enum."""

        if value is None:
            return cls.UNKNOWN
        token = _BASIS_TOKEN_PATTERN.sub("", value.lower())
        return _BASIS_ALIASES.get(token, cls.UNKNOWN)


_BASIS_ALIASES: Dict[str, BasisOfRecord] = {
    "humanobservation": BasisOfRecord.HUMAN_OBSERVATION,
    "observation": BasisOfRecord.HUMAN_OBSERVATION,
    "livingspecimen": BasisOfRecord.LIVING_SPECIMEN,
    "physicalspecimen": BasisOfRecord.PHYSICAL_SPECIMEN,
    "preservedspecimen": BasisOfRecord.PHYSICAL_SPECIMEN,
    "fossilspecimen": BasisOfRecord.PHYSICAL_SPECIMEN,
    "materialsample": BasisOfRecord.PHYSICAL_SPECIMEN,
    "specimen": BasisOfRecord.PHYSICAL_SPECIMEN,
    "unknown": BasisOfRecord.UNKNOWN,
}


class CollectionDate(BaseModel):
    """Raw collection date text plus its structured components."""

    raw: str | None = Field(default=None, description="Free-text date as supplied by the source.")
    year: int | None = Field(default=None)
    month: int | None = Field(default=None, ge=1, le=12)
    day: int | None = Field(default=None, ge=1, le=31)
    year_text: str | None = Field(
        default=None,
        description="Year cell as supplied by the source, so that '0000' stays distinct from '0'.",
    )

    def has_information(self) -> bool:
        """Return ``True`` when any raw or structured component is present."""

        return any(value is not None for value in (self.raw, self.year, self.month, self.day))

    def has_components(self) -> bool:
        """Return ``True`` when at least one of year, month or day is known."""

        return any(value is not None for value in (self.year, self.month, self.day))

    def year_digits(self) -> str | None:
        """The year as text, preferring the source spelling while it still matches ``year``."""

        if self.year is None:
            return None
        text = self.year_text
        if text is not None and text.isdigit() and int(text) == self.year:
            return text
        return str(self.year)


class Geolocation(BaseModel):
    """Georeference block retained or discarded as a unit during merging."""

    latitude: float | None = Field(default=None, ge=-90.0, le=90.0)
    longitude: float | None = Field(default=None, ge=-180.0, le=180.0)
    uncertainty_m: str | None = Field(default=None)
    verification_status: str | None = Field(default=None)
    protocol: str | None = Field(default=None)
    source: str | None = Field(default=None)
    notes: str | None = Field(default=None)
    elevation: Dict[str, str | None] = Field(
        default_factory=dict,
        description="Elevation columns keyed by their source column name.",
    )

    latitude_text: str | None = Field(default=None, description="Latitude cell as supplied by the source.")
    longitude_text: str | None = Field(default=None, description="Longitude cell as supplied by the source.")

    def has_coordinates(self) -> bool:
        return self.latitude is not None

    def coordinate_pair(self) -> Tuple[float | None, float | None]:
        return (self.latitude, self.longitude)

    def coordinate_cells(self) -> Tuple[Any, Any]:
        """Latitude and longitude for output, in the source spelling when it still matches."""

        return (
            _source_spelling(self.latitude, self.latitude_text),
            _source_spelling(self.longitude, self.longitude_text),
        )


def _source_spelling(value: float | None, text: str | None) -> Any:
    if value is None or text is None:
        return value
    try:
        return text if float(text) == value else value
    except ValueError:
        return value


class OccurrenceRecord(BaseModel):
    """One specimen or observation entry from a contributing repository.

    ``sequence`` is the ingestion order captured at load time; it is the stable
    tie-breaker whenever several records rank equally.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(..., min_length=1, frozen=True, description="Unique source identifier")
    collector: str | None = Field(default=None, description="Canonical collector string")
    taxon: str | None = Field(default=None, description="Normalised scientific name")
    date: CollectionDate = Field(default_factory=CollectionDate)
    locality: str | None = Field(default=None)
    basis_of_record: BasisOfRecord = Field(default=BasisOfRecord.UNKNOWN)
    geolocation: Geolocation | None = Field(default=None)
    institution_code: str | None = Field(default=None)
    attributes: Dict[str, str | None] = Field(
        default_factory=dict,
        description="Opaque descriptive columns carried through merging untouched.",
    )
    sequence: int = Field(default=0, ge=0)

    @field_validator("id")
    @classmethod
    def _strip_id(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("id must contain non-whitespace characters")
        return cleaned

    @property
    def is_observation(self) -> bool:
        return self.basis_of_record is BasisOfRecord.HUMAN_OBSERVATION

    def has_coordinates(self) -> bool:
        return self.geolocation is not None and self.geolocation.has_coordinates()


class MergedRecord(BaseModel):
    """Single canonical row produced from one duplicate cluster."""

    id: str = Field(..., min_length=1, description="Synthetic cluster-scoped identifier")
    cluster_id: int = Field(..., ge=1)
    member_ids: List[str] = Field(..., min_length=1)
    distinct_coordinate_count: int = Field(..., ge=0)
    geolocation_winner: str | None = Field(
        default=None,
        description="Member id whose geolocation block was retained, when resolution ran.",
    )
    row: Dict[str, Any] = Field(default_factory=dict)

    @property
    def member_count(self) -> int:
        return len(self.member_ids)


class DuplicationAuditEntry(BaseModel):
    """Audit trail linking a merged record back to its constituent records."""

    cluster_id: int = Field(..., ge=1)
    original_id: str = Field(..., min_length=1, description="Comma-joined member ids")
    member_count: int = Field(..., ge=1)
    institution_code: str | None = Field(default=None)


__all__ = [
    "HarmonizationError",
    "StructuralError",
    "BasisOfRecord",
    "CollectionDate",
    "Geolocation",
    "OccurrenceRecord",
    "MergedRecord",
    "DuplicationAuditEntry",
]
