"""Pipeline executor for matter opening."""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence

from matter_opening.core.config import Settings, load_settings
from matter_opening.core.errors import RunCancelled, StepTimeoutError, classify
from matter_opening.core.models import FailureKind, MatterOpeningRequest, Operator
from matter_opening.pipeline.bridge import IdentifierBridge
from matter_opening.pipeline.context import PipelineContext
from matter_opening.pipeline.progress import ProgressTracker
from matter_opening.pipeline.reporting import FailureReporter
from matter_opening.pipeline.results import RunCheckpoint, RunOutcome, StepResult
from matter_opening.pipeline.steps import Step, build_phases
from matter_opening.pipeline.telemetry import (
    PROCESSING_CANCELLED,
    PROCESSING_COMPLETED,
    PROCESSING_FAILED,
    PROCESSING_STARTED,
    TelemetryEmitter,
)

LOG = logging.getLogger(__name__)

Listener = Callable[[ProgressTracker], None]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class PipelineExecutor:
    """Runs the steps strictly in order and stops at the first failure.

    Side effects already committed by earlier steps are left in place; the
    executor sequences and reports, it does not roll back. Each run gets its
    own :class:`PipelineContext`, which only survives in the outcome's
    checkpoint so a failed run can be resumed.
    """

    def __init__(
        self,
        steps: Sequence[Step],
        *,
        settings: Optional[Settings] = None,
        reporter: Optional[FailureReporter] = None,
        telemetry: Optional[TelemetryEmitter] = None,
    ) -> None:
        self.steps: List[Step] = list(steps)
        self.phases = build_phases(self.steps)
        self.settings = settings or load_settings()
        self.reporter = reporter
        self.telemetry = telemetry
        self.tracker: Optional[ProgressTracker] = None
        self.last_outcome: Optional[RunOutcome] = None

    @property
    def current_index(self) -> int:
        return self.tracker.current_index if self.tracker else -1

    def new_tracker(self, listener: Optional[Listener] = None) -> ProgressTracker:
        return ProgressTracker([step.report() for step in self.steps], self.phases, listener=listener)

    async def run(
        self,
        request: MatterOpeningRequest,
        operator: Operator,
        *,
        bridge: Optional[IdentifierBridge] = None,
        cancel_event: Optional[asyncio.Event] = None,
        listener: Optional[Listener] = None,
    ) -> RunOutcome:
        context = PipelineContext(bridge=bridge or IdentifierBridge())
        tracker = self.new_tracker(listener)
        return await self._execute(request, operator, context, tracker, 0, cancel_event)

    async def restart(
        self,
        request: MatterOpeningRequest,
        operator: Operator,
        **kwargs,
    ) -> RunOutcome:
        """Start again from the first step with an empty context."""
        return await self.run(request, operator, **kwargs)

    async def resume(
        self,
        previous: RunOutcome,
        request: MatterOpeningRequest,
        operator: Operator,
        *,
        bridge: Optional[IdentifierBridge] = None,
        cancel_event: Optional[asyncio.Event] = None,
        listener: Optional[Listener] = None,
    ) -> RunOutcome:
        """Continue a failed run from its failing step, keeping what it already produced."""
        if previous.checkpoint is None:
            raise ValueError("Only a failed run can be resumed")
        context = previous.checkpoint.context
        context.bridge = bridge or IdentifierBridge()
        start = previous.checkpoint.next_index
        tracker = self.new_tracker(listener)
        for index in range(start):
            tracker.carry_over(index, previous.steps[index])
        LOG.info("Resuming run %s at %s", context.run_id, self.steps[start].label)
        return await self._execute(request, operator, context, tracker, start, cancel_event)

    async def run_follow_on(
        self,
        step: Step,
        request: MatterOpeningRequest,
        operator: Operator,
        identifiers: Dict[str, object],
    ) -> StepResult:
        """Run a step outside the ordered pipeline, seeded with a finished run's identifiers."""
        context = PipelineContext.from_identifiers(identifiers)
        return await self._invoke(step, request, operator, context, self._deadline())

    async def _execute(
        self,
        request: MatterOpeningRequest,
        operator: Operator,
        context: PipelineContext,
        tracker: ProgressTracker,
        start: int,
        cancel_event: Optional[asyncio.Event],
    ) -> RunOutcome:
        self.tracker = tracker
        self.last_outcome = None
        trace_id = uuid.uuid4().hex
        started_at = _now()
        loop = asyncio.get_running_loop()
        began = loop.time()
        deadline = self._deadline()

        def elapsed_ms() -> int:
            return int((loop.time() - began) * 1000)

        def halted(index: int, status: str, message: str, kind: FailureKind) -> RunOutcome:
            return RunOutcome(
                run_id=context.run_id,
                status=status,
                steps=tracker.steps,
                started_at=started_at,
                finished_at=_now(),
                identifiers=context.identifiers(),
                failing_index=index,
                error=message,
                kind=kind,
                checkpoint=RunCheckpoint(context=context, next_index=index),
                trace_id=trace_id,
            )

        started: Dict[str, object] = {
            "feeEarner": request.team_assignments.fee_earner,
            "areaOfWork": request.matter_details.area_of_work,
            "practiceArea": request.matter_details.practice_area,
        }
        if start:
            started["resumedAt"] = self.steps[start].label
        await self._emit(PROCESSING_STARTED, context, trace_id, request, operator, started)
        try:
            for index in range(start, len(self.steps)):
                step = self.steps[index]
                tracker.start(index, f"{step.label}...")
                try:
                    if cancel_event is not None and cancel_event.is_set():
                        raise RunCancelled("Cancelled")
                    result = await self._invoke(step, request, operator, context, deadline)
                except asyncio.CancelledError:
                    tracker.fail(index, "Cancelled", FailureKind.CANCELLED)
                    # the task is being torn down; keep a resumable outcome for the caller
                    self.last_outcome = halted(index, "cancelled", "Cancelled", FailureKind.CANCELLED)
                    raise
                except Exception as exc:
                    kind = classify(exc)
                    message = str(exc) or exc.__class__.__name__
                    if kind is FailureKind.INTERNAL:
                        LOG.exception("Step %s raised unexpectedly", step.label)
                    else:
                        LOG.warning("Step %s failed (%s): %s", step.label, kind.value, message)
                    tracker.fail(index, message, kind)
                    cancelled = kind is FailureKind.CANCELLED
                    outcome = halted(index, "cancelled" if cancelled else "failed", message, kind)
                    self.last_outcome = outcome
                    if self.reporter is not None and not cancelled:
                        self.reporter.report_failure(outcome, request, operator)
                    await self._emit(
                        PROCESSING_CANCELLED if cancelled else PROCESSING_FAILED,
                        context,
                        trace_id,
                        request,
                        operator,
                        {"error": message, "failingStep": step.label, "kind": kind.value, "durationMs": elapsed_ms()},
                    )
                    return outcome
                tracker.succeed(index, result.message, url=result.url)
        finally:
            context.bridge.clear()

        LOG.info("Run %s completed (%d steps)", context.run_id, len(self.steps))
        outcome = RunOutcome(
            run_id=context.run_id,
            status="completed",
            steps=tracker.steps,
            started_at=started_at,
            finished_at=_now(),
            identifiers=context.identifiers(),
            trace_id=trace_id,
        )
        self.last_outcome = outcome
        await self._emit(
            PROCESSING_COMPLETED,
            context,
            trace_id,
            request,
            operator,
            {"durationMs": elapsed_ms(), "matterId": context.matter_id or "unknown"},
        )
        return outcome

    async def _emit(
        self,
        event_type: str,
        context: PipelineContext,
        trace_id: str,
        request: MatterOpeningRequest,
        operator: Operator,
        data: Dict[str, object],
    ) -> None:
        if self.telemetry is None:
            return
        await self.telemetry.emit(
            event_type, run_id=context.run_id, trace_id=trace_id, request=request, operator=operator, data=data
        )

    async def _invoke(
        self,
        step: Step,
        request: MatterOpeningRequest,
        operator: Operator,
        context: PipelineContext,
        deadline: float,
    ) -> StepResult:
        remaining = deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            raise StepTimeoutError(f"Run deadline passed before {step.label}")
        timeout = min(self.settings.step_timeout, remaining)
        LOG.debug("Running %s (timeout %.1fs)", step.label, timeout)
        try:
            result = await asyncio.wait_for(step.operation(request, operator, context), timeout)
        except asyncio.TimeoutError as exc:
            raise StepTimeoutError(f"{step.label} timed out after {timeout:.0f}s") from exc
        if isinstance(result, StepResult):
            return result
        return StepResult(message=str(result))

    def _deadline(self) -> float:
        return asyncio.get_running_loop().time() + self.settings.run_deadline
