"""Runtime settings for the harmonization engine.

Sources are layered, lowest precedence first: class defaults,
``config/default.yaml``, the YAML file of the active environment,
``HARMONIZE_SETTINGS__*`` variables, and explicit keyword arguments (which is
where the CLI puts ``--override`` values). Policies are validated once the
layers are merged.
"""

from __future__ import annotations

import argparse
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Literal, Mapping, Optional, Sequence

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .policies import Policies, load_policies, merge_mappings

PROJECT_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_CONFIG_DIR = PROJECT_ROOT / "config"
SETTINGS_ENV_PREFIX = "HARMONIZE_SETTINGS__"
ENVIRONMENTS = ("development", "testing", "production")


def read_config_layer(path: Path) -> Dict[str, Any]:
    if not path.is_file():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        payload = yaml.safe_load(handle) or {}
    if not isinstance(payload, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")
    return payload


def environment_layer(environ: Mapping[str, str] | None = None) -> Dict[str, Any]:
    """Nested overrides from ``HARMONIZE_SETTINGS__SECTION__KEY=value`` variables.

    Values are read as YAML scalars so ``4`` and ``false`` arrive typed.
    """

    layer: Dict[str, Any] = {}
    for key, raw in sorted((environ if environ is not None else os.environ).items()):
        if not key.startswith(SETTINGS_ENV_PREFIX):
            continue
        parts = [part.lower() for part in key[len(SETTINGS_ENV_PREFIX) :].split("__") if part]
        if not parts:
            continue
        try:
            value = yaml.safe_load(raw)
        except yaml.YAMLError:
            value = raw
        nested: Any = value
        for part in reversed(parts):
            nested = {part: nested}
        layer = merge_mappings(layer, nested)
    return layer


def layered_config(config_dir: Path, environment: str) -> Dict[str, Any]:
    merged = merge_mappings(
        read_config_layer(config_dir / "default.yaml"),
        read_config_layer(config_dir / f"{environment}.yaml"),
    )
    return merge_mappings(merged, environment_layer())


class PathsConfig(BaseModel):
    """Where outputs and logs go, plus the optional collector-era reference table.

    Relative entries resolve against the project root. :meth:`ensure_exists`
    creates the directories only; the reference table is an input and is
    never created.
    """

    data_dir: Path = Field(default=PROJECT_ROOT / "data")
    output_dir: Path = Field(default=PROJECT_ROOT / "output")
    logs_dir: Path = Field(default=PROJECT_ROOT / "logs")
    collector_reference: Optional[Path] = Field(
        default=None,
        description="Collector-era reference table used when a run names none.",
    )

    @staticmethod
    def _absolute(path: Path) -> Path:
        path = Path(path).expanduser()
        return path if path.is_absolute() else PROJECT_ROOT / path

    def ensure_exists(self) -> None:
        for field_name in ("data_dir", "output_dir", "logs_dir"):
            path = self._absolute(getattr(self, field_name))
            path.mkdir(parents=True, exist_ok=True)
            object.__setattr__(self, field_name, path)

    def reference_table(self) -> Path | None:
        if self.collector_reference is None:
            return None
        return self._absolute(self.collector_reference)


class Settings(BaseSettings):
    """Primary configuration object for the harmonization engine."""

    model_config = SettingsConfigDict(
        env_prefix="HARMONIZE_",
        validate_assignment=True,
        extra="allow",
    )

    environment: Literal["development", "testing", "production"] = Field(
        default="development",
        description="Active runtime environment",
    )
    config_dir: Path = Field(default=DEFAULT_CONFIG_DIR)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    create_dirs: bool = Field(
        default=True,
        description="Create the output, data and log directories during initialisation.",
    )
    policies: Policies

    @model_validator(mode="before")
    @classmethod
    def _layer_sources(cls, values: Dict[str, Any]) -> Dict[str, Any]:
        explicit = {key: value for key, value in values.items() if value is not None}
        environment = explicit.get("environment") or os.getenv("HARMONIZE_ENV", "development")
        layered = layered_config(Path(explicit.get("config_dir") or DEFAULT_CONFIG_DIR), environment)

        provided_policies = explicit.pop("policies", None)
        merged = merge_mappings(layered, explicit)
        merged["environment"] = environment
        policy_layer = merged.pop("policies", None) or {}
        if isinstance(provided_policies, Policies):
            merged["policies"] = provided_policies
        else:
            if provided_policies:
                policy_layer = merge_mappings(policy_layer, provided_policies)
            merged["policies"] = load_policies(policy_layer)
        return merged

    @model_validator(mode="after")
    def _ensure_paths(self) -> "Settings":
        if self.create_dirs:
            self.paths.ensure_exists()
        return self

    @property
    def policy_version(self) -> str:
        return self.policies.policy_version

    @property
    def log_file(self) -> Path:
        return self.paths.logs_dir / "harmonization.log"

    @property
    def reference_table(self) -> Path | None:
        return self.paths.reference_table()

    def output_paths(self, output_dir: str | Path | None = None) -> Dict[str, Path]:
        """Destinations of the harmonized table, duplication audit and run report."""

        target = Path(output_dir) if output_dir is not None else Path(self.paths.output_dir)
        output = self.policies.output
        return {
            "harmonized": target / output.harmonized_filename,
            "audit": target / output.audit_filename,
            "report": target / output.report_filename,
        }

    @classmethod
    def from_args(cls, argv: Sequence[str] | None = None) -> "Settings":
        """Build settings from command-line flags; flags beat every other layer."""

        parser = argparse.ArgumentParser(prog="harmonize-settings", add_help=True)
        parser.add_argument("--environment", choices=ENVIRONMENTS)
        parser.add_argument("--config-dir", type=Path)
        parser.add_argument("--output-dir", type=Path, help="Directory for harmonized outputs.")
        parser.add_argument("--collector-reference", type=Path, help="Collector-era reference table.")
        parser.add_argument("--max-workers", type=int, help="Threads used to resolve duplicate clusters.")
        parser.add_argument("--no-create-dirs", action="store_true")
        args = parser.parse_args(list(argv) if argv is not None else None)

        overrides: Dict[str, Any] = {}
        if args.environment:
            overrides["environment"] = args.environment
        if args.config_dir:
            overrides["config_dir"] = args.config_dir
        if args.no_create_dirs:
            overrides["create_dirs"] = False
        paths: Dict[str, Any] = {}
        if args.output_dir:
            paths["output_dir"] = args.output_dir
        if args.collector_reference:
            paths["collector_reference"] = args.collector_reference
        if paths:
            overrides["paths"] = paths
        if args.max_workers is not None:
            overrides["policies"] = {"deduplication": {"max_workers": args.max_workers}}
        return cls(**overrides)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a process-wide settings instance."""

    return Settings()


__all__ = ["PathsConfig", "Settings", "get_settings", "merge_mappings"]
