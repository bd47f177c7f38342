"""Per-step progress state and transition log for live progress displays."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from matter_opening.core.models import FailureKind, StepStatus
from matter_opening.pipeline.results import StepReport

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class Phase:
    label: str
    start: int
    end: int

    def indices(self) -> range:
        return range(self.start, self.end + 1)


@dataclass(frozen=True)
class LogEntry:
    timestamp: datetime
    index: int
    label: str
    status: StepStatus
    message: str

    def render(self) -> str:
        if self.status is StepStatus.ERROR:
            return f"✗ {self.label}: {self.message}"
        return f"✓ {self.message}"


class ProgressTracker:
    """Observes step transitions; holds no business logic.

    Each step moves from pending to success or error exactly once. Every
    transition appends one entry to an append-only log. Reading state never
    mutates it.
    """

    def __init__(
        self,
        steps: Sequence[StepReport],
        phases: Sequence[Phase] = (),
        *,
        listener: Optional[Callable[["ProgressTracker"], None]] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._steps: List[StepReport] = [step.copy() for step in steps]
        self._log: List[LogEntry] = []
        self.phases: Tuple[Phase, ...] = tuple(phases)
        self.current_index = -1
        self._listener = listener
        self._clock = clock

    @property
    def total(self) -> int:
        return len(self._steps)

    @property
    def steps(self) -> List[StepReport]:
        return [step.copy() for step in self._steps]

    @property
    def log(self) -> Tuple[LogEntry, ...]:
        return tuple(self._log)

    def start(self, index: int, message: Optional[str] = None) -> None:
        step = self._pending(index)
        self.current_index = index
        step.message = message
        self._notify()

    def carry_over(self, index: int, report: StepReport) -> None:
        """Seed a step that already succeeded in the run being resumed."""
        step = self._pending(index)
        step.status = StepStatus.SUCCESS
        step.message = report.message
        step.url = report.url

    def succeed(self, index: int, message: str, url: Optional[str] = None) -> None:
        step = self._pending(index)
        step.status = StepStatus.SUCCESS
        step.message = message
        step.url = url
        self._append(index, step)

    def fail(self, index: int, message: str, kind: FailureKind = FailureKind.INTERNAL) -> None:
        step = self._pending(index)
        step.status = StepStatus.ERROR
        step.message = message
        step.kind = kind
        self._append(index, step)

    def completed_count(self) -> int:
        return sum(1 for step in self._steps if step.status is StepStatus.SUCCESS)

    def completion(self) -> float:
        if not self._steps:
            return 1.0
        return self.completed_count() / self.total

    def percent(self) -> int:
        return round(self.completion() * 100)

    def first_error(self) -> Optional[Tuple[int, StepReport]]:
        for index, step in enumerate(self._steps):
            if step.status is StepStatus.ERROR:
                return index, step.copy()
        return None

    def phase_summaries(self) -> List[Dict[str, object]]:
        summaries: List[Dict[str, object]] = []
        previous_done = True
        for phase in self.phases:
            members = [self._steps[i] for i in phase.indices()]
            done = sum(1 for step in members if step.status is StepStatus.SUCCESS)
            if any(step.status is StepStatus.ERROR for step in members):
                state = "error"
            elif done == len(members):
                state = "done"
            elif previous_done:
                state = "active"
            else:
                state = "waiting"
            summaries.append(
                {
                    "label": phase.label,
                    "state": state,
                    "completed": done,
                    "total": len(members),
                    "current": self.current_index in phase.indices(),
                }
            )
            previous_done = state == "done"
        return summaries

    def _pending(self, index: int) -> StepReport:
        step = self._steps[index]
        if step.status is not StepStatus.PENDING:
            raise ValueError(f"Step {index} ({step.label}) is already {step.status.value}")
        return step

    def _append(self, index: int, step: StepReport) -> None:
        entry = LogEntry(
            timestamp=self._clock(),
            index=index,
            label=step.label,
            status=step.status,
            message=step.message or "",
        )
        self._log.append(entry)
        LOG.info("%s", entry.render())
        self._notify()

    def _notify(self) -> None:
        if self._listener is not None:
            self._listener(self)
