"""Pipeline orchestration primitives."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Protocol

from loguru import logger

from harmonization.utils.logging import log_timing, logging_context

if TYPE_CHECKING:  # pragma: no cover - imported for type checking only
    from harmonization.pipeline.context import HarmonizationContext


class PipelineStep(Protocol):
    """Minimal interface required for pipeline steps."""

    name: str

    def run(self, context: "HarmonizationContext") -> None:
        ...


@dataclass(slots=True)
class Pipeline:
    """Simple orchestrator for sequential harmonization stages."""

    name: str = "harmonization-pipeline"
    steps: List[PipelineStep] = field(default_factory=list)
    completed_steps: List[str] = field(default_factory=list)
    _steps_by_name: Dict[str, PipelineStep] = field(
        default_factory=dict, init=False, repr=False
    )

    def __post_init__(self) -> None:
        self._ensure_steps_index()

    def execute(self, context: "HarmonizationContext") -> "HarmonizationContext":
        self._ensure_steps_index()
        for step in self.steps:
            logger.info("Executing pipeline step", pipeline=self.name, step=step.name)
            with logging_context(step=step.name), log_timing(step.name):
                try:
                    step.run(context)
                except Exception:
                    logger.exception("Pipeline step failed", step=step.name)
                    raise
            self.completed_steps.append(step.name)
        return context

    def add_step(self, step: PipelineStep) -> None:
        self._ensure_steps_index()
        if step.name in self._steps_by_name:
            raise ValueError(f"Duplicate pipeline step name '{step.name}'")
        self.steps.append(step)
        self._steps_by_name[step.name] = step

    def status(self) -> dict:
        remaining = [step.name for step in self.steps if step.name not in self.completed_steps]
        return {
            "name": self.name,
            "completed": list(self.completed_steps),
            "pending": remaining,
        }

    def _ensure_steps_index(self) -> None:
        if len(self._steps_by_name) == len(self.steps):
            return
        self._steps_by_name.clear()
        for step in self.steps:
            if step.name in self._steps_by_name:
                raise ValueError(
                    f"Duplicate pipeline step name '{step.name}' detected while refreshing step index."
                )
            self._steps_by_name[step.name] = step


def default_steps() -> List[PipelineStep]:
    """Stages in execution order."""

    from .assembly import AssemblyStep
    from .dates import DateNormalizationStep
    from .deduplication import DeduplicationStep
    from .eras import EraClassificationStep, YearCorrectionStep
    from .ingest import RejectIncompleteStep

    return [
        RejectIncompleteStep(),
        DateNormalizationStep(),
        EraClassificationStep(),
        YearCorrectionStep(),
        DeduplicationStep(),
        AssemblyStep(),
    ]


__all__ = ["Pipeline", "PipelineStep", "default_steps"]
