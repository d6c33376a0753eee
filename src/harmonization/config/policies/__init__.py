"""Policy models for every harmonization stage and their loader.

Policies come from a mapping (usually the ``policies`` section of the merged
settings YAML) or a standalone YAML file. ``HARMONIZE_POLICY__SECTION__KEY``
environment variables are overlaid last, e.g.
``HARMONIZE_POLICY__ERAS__CUTOFF_YEAR=1960``.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml
from pydantic import BaseModel, Field, model_validator

from .columns import ColumnPolicy
from .dates import DateGrammar, DatePolicy, SentinelRule
from .deduplication import DeduplicationPolicy, OutputPolicy
from .eras import EraPolicy, RosterSourcePolicy

POLICY_ENV_PREFIX = "HARMONIZE_POLICY__"


class Policies(BaseModel):
    """Root policy container."""

    policy_version: str = Field(default="2024-03-01", min_length=1)
    columns: ColumnPolicy = Field(default_factory=ColumnPolicy)
    dates: DatePolicy = Field(default_factory=DatePolicy)
    eras: EraPolicy = Field(default_factory=EraPolicy)
    deduplication: DeduplicationPolicy = Field(default_factory=DeduplicationPolicy)
    output: OutputPolicy = Field(default_factory=OutputPolicy)

    @model_validator(mode="after")
    def _validate_sentinel_fields(self) -> "Policies":
        known = set(self.columns.field_columns())
        unknown = sorted({rule.field for rule in self.dates.sentinels} - known)
        if unknown:
            raise ValueError(f"Sentinel rules reference unknown fields: {unknown}")
        return self


def merge_mappings(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Return *base* updated with *override*, descending into nested mappings.

    Neither argument is modified.
    """

    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = merge_mappings(current, value)
        else:
            merged[key] = value
    return merged


def policy_env_overrides(environ: Mapping[str, str] | None = None) -> Dict[str, Any]:
    """Collect ``HARMONIZE_POLICY__*`` variables into a nested mapping.

    Values are JSON-decoded when possible (``true``, ``1950``, ``["a"]``) and
    kept as text otherwise.
    """

    overlay: Dict[str, Any] = {}
    for key, raw in sorted((environ if environ is not None else os.environ).items()):
        if not key.startswith(POLICY_ENV_PREFIX):
            continue
        parts = [part.lower() for part in key[len(POLICY_ENV_PREFIX) :].split("__") if part]
        if not parts:
            continue
        try:
            value: Any = json.loads(raw)
        except json.JSONDecodeError:
            value = raw
        for part in reversed(parts):
            value = {part: value}
        overlay = merge_mappings(overlay, value)
    return overlay


def _read_policy_file(path: Path) -> Mapping[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Policy file not found: {path}")
    with path.open("r", encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle) or {}
    if not isinstance(loaded, Mapping):
        raise ValueError(f"Policy file '{path}' must contain a mapping at the top level")
    return loaded


def load_policies(source: os.PathLike[str] | str | Mapping[str, Any]) -> Policies:
    """Validate policies from *source* with environment overrides applied."""

    raw = source if isinstance(source, Mapping) else _read_policy_file(Path(source))
    return Policies.model_validate(merge_mappings(raw, policy_env_overrides()))


__all__ = [
    "Policies",
    "load_policies",
    "merge_mappings",
    "policy_env_overrides",
    "ColumnPolicy",
    "DateGrammar",
    "DatePolicy",
    "SentinelRule",
    "EraPolicy",
    "RosterSourcePolicy",
    "DeduplicationPolicy",
    "OutputPolicy",
]
