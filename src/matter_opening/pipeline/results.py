"""Pipeline step results and diagnostics."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from matter_opening.core.errors import StepFailedError
from matter_opening.core.models import FailureKind, StepStatus
from matter_opening.pipeline.context import PipelineContext


@dataclass(frozen=True)
class StepResult:
    message: str
    url: Optional[str] = None


@dataclass
class StepReport:
    label: str
    phase: str = ""
    icon: Optional[str] = None
    status: StepStatus = StepStatus.PENDING
    message: Optional[str] = None
    kind: Optional[FailureKind] = None
    url: Optional[str] = None

    def copy(self) -> "StepReport":
        return replace(self)


@dataclass
class RunCheckpoint:
    """Where a failed run stopped, and the context it had built up to that point."""

    context: PipelineContext
    next_index: int


@dataclass
class RunOutcome:
    run_id: str
    status: str
    steps: List[StepReport]
    started_at: datetime
    finished_at: datetime
    identifiers: Dict[str, Any] = field(default_factory=dict)
    failing_index: Optional[int] = None
    error: Optional[str] = None
    kind: Optional[FailureKind] = None
    checkpoint: Optional[RunCheckpoint] = None
    trace_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "completed"

    @property
    def failing_label(self) -> Optional[str]:
        if self.failing_index is None:
            return None
        return self.steps[self.failing_index].label

    @property
    def failure_summary(self) -> str:
        if self.failing_index is None:
            return ""
        return f"Failed at: {self.failing_label} - {self.error}"

    def raise_for_failure(self) -> None:
        if self.failing_index is None:
            return
        raise StepFailedError(
            self.failing_label or "Unknown step",
            self.failing_index,
            self.error or "",
            self.kind or FailureKind.INTERNAL,
        )
