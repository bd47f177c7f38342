"""In-memory job queue with live progress for provisioning runs."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from matter_opening.adapters.io.exports import serialize_outcome, serialize_progress
from matter_opening.core.models import IdentifierKind, MatterOpeningRequest, Operator
from matter_opening.pipeline.bridge import IdentifierBridge
from matter_opening.pipeline.orchestrator import PipelineExecutor
from matter_opening.pipeline.reporting import DispatchResult
from matter_opening.pipeline.results import RunOutcome, StepResult
from matter_opening.pipeline.steps import Step

LOG = logging.getLogger(__name__)


@dataclass
class Job:
    id: str
    kind: str
    status: str
    created_at: float
    updated_at: float
    request: MatterOpeningRequest
    operator: Operator
    executor: PipelineExecutor
    attempts: int = 0
    outcome: Optional[RunOutcome] = None
    error: Optional[str] = None
    identifiers: Dict[str, Any] = field(default_factory=dict)
    documents: Dict[str, str] = field(default_factory=dict)
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    task: Optional[asyncio.Task] = None

    def to_dict(self, *, include_result: bool = False) -> Dict[str, Any]:
        progress = serialize_progress(self.executor.tracker)
        reporter = self.executor.reporter
        payload: Dict[str, Any] = {
            "id": self.id,
            "kind": self.kind,
            "status": self.status,
            "operator": self.operator.initials,
            "attempts": self.attempts,
            "progress": round(progress["percent"] / 100, 3),
            "current_index": progress["current_index"],
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "error": self.error,
            "failure_summary": self.outcome.failure_summary if self.outcome else None,
            "identifiers": dict(self.identifiers),
            "documents": dict(self.documents),
            "report_status": reporter.status if reporter else None,
        }
        if include_result:
            payload["progress_detail"] = progress
            payload["result"] = serialize_outcome(self.outcome) if self.outcome else None
        return payload


class JobQueue:
    def __init__(self, executor_factory: Callable[[], PipelineExecutor], ccl_step: Optional[Step] = None) -> None:
        self._jobs: Dict[str, Job] = {}
        self._executor_factory = executor_factory
        self._ccl_step = ccl_step

    def submit(self, request: MatterOpeningRequest, operator: Operator) -> Job:
        now = time.time()
        job = Job(
            id=uuid.uuid4().hex,
            kind="matter-opening",
            status="queued",
            created_at=now,
            updated_at=now,
            request=request,
            operator=operator,
            executor=self._executor_factory(),
        )
        self._jobs[job.id] = job
        self._start(job, resume=False)
        return job

    def retry(self, job_id: str, mode: str = "resume") -> Optional[Job]:
        job = self.get(job_id)
        if not job:
            return None
        if job.status in {"queued", "running"}:
            raise ValueError("Job is still running")
        if job.status == "completed":
            raise ValueError("Job already completed")
        if mode not in {"resume", "restart"}:
            raise ValueError(f"Unknown retry mode: {mode}")
        resume = mode == "resume" and job.outcome is not None and job.outcome.checkpoint is not None
        self._start(job, resume=resume)
        return job

    def cancel(self, job_id: str) -> Optional[Job]:
        job = self.get(job_id)
        if not job:
            return None
        job.cancel_event.set()
        if job.task is not None and not job.task.done():
            job.task.cancel()
        return job

    def get(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)

    def list(self) -> list[Job]:
        return sorted(self._jobs.values(), key=lambda item: item.created_at, reverse=True)

    async def send_report(self, job_id: str) -> Optional[DispatchResult]:
        job = self.get(job_id)
        if not job:
            return None
        reporter = job.executor.reporter
        if reporter is None:
            return DispatchResult.SKIPPED
        return await reporter.send_manual(job.outcome, job.request, job.operator)

    async def generate_ccl(self, job_id: str) -> Optional[StepResult]:
        job = self.get(job_id)
        if not job:
            return None
        if self._ccl_step is None:
            raise ValueError("CCL generation is not configured")
        identifiers = job.outcome.identifiers if job.outcome else job.identifiers
        result = await job.executor.run_follow_on(self._ccl_step, job.request, job.operator, identifiers)
        if result.url:
            job.documents["ccl"] = result.url
        job.updated_at = time.time()
        return result

    def _start(self, job: Job, *, resume: bool) -> None:
        job.cancel_event = asyncio.Event()
        job.attempts += 1
        job.error = None
        self._update(job, status="running")
        job.task = asyncio.get_running_loop().create_task(self._run_job(job, resume))

    async def _run_job(self, job: Job, resume: bool) -> None:
        bridge = IdentifierBridge()
        bridge.register(IdentifierKind.CONTACT, lambda value: self._record_identifier(job, "contact_id", value))
        bridge.register(IdentifierKind.MATTER, lambda value: self._record_identifier(job, "matter_id", value))
        try:
            if resume and job.outcome is not None:
                outcome = await job.executor.resume(
                    job.outcome, job.request, job.operator, bridge=bridge, cancel_event=job.cancel_event
                )
            else:
                outcome = await job.executor.run(job.request, job.operator, bridge=bridge, cancel_event=job.cancel_event)
        except asyncio.CancelledError:
            if job.executor.last_outcome is not None:
                job.outcome = job.executor.last_outcome
            self._update(job, status="cancelled", error="Cancelled")
            return
        except Exception as exc:  # pragma: no cover - executor records step failures itself
            LOG.exception("Job %s crashed", job.id)
            self._update(job, status="failed", error=str(exc))
            return
        job.outcome = outcome
        self._update(job, status=outcome.status, error=outcome.error)

    def _record_identifier(self, job: Job, name: str, value: Any) -> None:
        job.identifiers[name] = value
        job.updated_at = time.time()

    def _update(self, job: Job, *, status: Optional[str] = None, error: Optional[str] = None) -> None:
        if status:
            job.status = status
        job.error = error
        job.updated_at = time.time()
