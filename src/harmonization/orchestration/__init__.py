"""Orchestration entry points."""

from .main import HarmonizationResult, build_report, load_roster, main, run_harmonization

__all__ = ["HarmonizationResult", "build_report", "load_roster", "main", "run_harmonization"]
