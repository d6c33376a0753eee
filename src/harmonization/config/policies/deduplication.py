"""Duplicate grouping and merge policy models."""

from __future__ import annotations

import re

from pydantic import BaseModel, Field, PrivateAttr, model_validator


class DeduplicationPolicy(BaseModel):
    """Policy governing cluster formation and merge behaviour."""

    high_confidence_pattern: str = Field(
        default=r"(?i)high\s*confidence",
        description="Verification status pattern preferred by the coordinate resolver.",
    )
    min_cluster_size: int = Field(
        default=1,
        ge=1,
        description="Clusters smaller than this pass their members through unmerged; 1 merges every cluster.",
    )
    max_workers: int = Field(
        default=1,
        ge=1,
        description="Worker threads used to resolve clusters; 1 resolves inline.",
    )
    case_insensitive_join: bool = Field(
        default=True,
        description="Case-fold values before the distinct-value join.",
    )
    join_separator: str = Field(default=",", min_length=1)
    merged_id_prefix: str = Field(default="bi_", min_length=1)
    sample_merge_count: int = Field(
        default=10,
        ge=0,
        description="Number of merge decisions to sample for the run report.",
    )

    _compiled_high_confidence: re.Pattern[str] | None = PrivateAttr(default=None)

    @model_validator(mode="after")
    def _compile_pattern(self) -> "DeduplicationPolicy":
        try:
            self._compiled_high_confidence = re.compile(self.high_confidence_pattern)
        except re.error as exc:
            raise ValueError(
                f"Invalid high_confidence_pattern ({self.high_confidence_pattern!r}): {exc}"
            ) from exc
        return self

    @property
    def high_confidence(self) -> re.Pattern[str]:
        assert self._compiled_high_confidence is not None
        return self._compiled_high_confidence


class OutputPolicy(BaseModel):
    """Controls which diverted records reach the harmonized table and file names."""

    keep_undated_records: bool = Field(
        default=True,
        description="Pass records without any date information through to the output.",
    )
    keep_problem_year_records: bool = Field(
        default=True,
        description="Pass records with unresolvable years through to the output.",
    )
    harmonized_filename: str = Field(default="harmonized_occurrences.csv", min_length=1)
    audit_filename: str = Field(default="duplication_audit.csv", min_length=1)
    report_filename: str = Field(default="harmonization_report.json", min_length=1)


__all__ = ["DeduplicationPolicy", "OutputPolicy"]
