"""Configuration utilities for the harmonization engine."""

from .policies import (
    ColumnPolicy,
    DateGrammar,
    DatePolicy,
    DeduplicationPolicy,
    EraPolicy,
    OutputPolicy,
    Policies,
    RosterSourcePolicy,
    SentinelRule,
    load_policies,
)
from .settings import PathsConfig, Settings, get_settings, merge_mappings

__all__ = [
    "PathsConfig",
    "Settings",
    "get_settings",
    "merge_mappings",
    "Policies",
    "load_policies",
    "ColumnPolicy",
    "DateGrammar",
    "DatePolicy",
    "SentinelRule",
    "EraPolicy",
    "RosterSourcePolicy",
    "DeduplicationPolicy",
    "OutputPolicy",
]
