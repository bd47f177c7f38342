"""Redis-backed job registry with Celery integration."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, List, Optional

from celery.result import AsyncResult
from redis import Redis

from matter_opening.adapters.http.client import ProvisioningClient
from matter_opening.api.celery_app import celery_app
from matter_opening.api.celery_tasks import provision_task
from matter_opening.api.schemas import JobSubmission
from matter_opening.core.config import Settings
from matter_opening.core.errors import MatterOpeningError
from matter_opening.pipeline.orchestrator import PipelineExecutor
from matter_opening.pipeline.reporting import DispatchResult, report_from_snapshot
from matter_opening.pipeline.results import StepResult
from matter_opening.pipeline.steps import build_ccl_step, build_steps

LOG = logging.getLogger(__name__)

KIND = "matter-opening"

_STATES = {
    "PENDING": "queued",
    "RECEIVED": "queued",
    "STARTED": "running",
    "PROGRESS": "running",
    "RETRY": "running",
    "SUCCESS": "completed",
    "FAILURE": "failed",
    "REVOKED": "cancelled",
}


class CeleryJobQueue:
    """Runs provisioning in a Celery worker; resume is not offered because the run context lives there."""

    def __init__(self, settings: Settings, client: ProvisioningClient) -> None:
        self._settings = settings
        self._client = client
        self._redis = Redis.from_url(settings.redis_url, decode_responses=True)
        self._jobs_key = settings.jobs_key
        self._max_jobs = settings.max_jobs

    def submit(self, submission: JobSubmission, root_id: Optional[str] = None) -> Dict[str, object]:
        body = submission.model_dump(mode="json")
        task = provision_task.delay(body, root_id=root_id)
        self._register_job(task.id, body, root_id=root_id or task.id)
        return self._format_job(task.id, created_at=time.time())

    def list_jobs(self) -> List[Dict[str, object]]:
        jobs: List[Dict[str, object]] = []
        seen = set()
        for meta in self._entries():
            job_id = meta.get("id")
            if not job_id or job_id in seen:
                continue
            seen.add(job_id)
            jobs.append(self._format_job(job_id, meta.get("created_at")))
        return jobs

    def get_job(self, job_id: str) -> Optional[Dict[str, object]]:
        meta = self._find_job_meta(job_id)
        if not meta:
            return None
        return self._format_job(job_id, meta.get("created_at"), include_result=True)

    def cancel_job(self, job_id: str) -> Optional[Dict[str, object]]:
        meta = self._find_job_meta(job_id)
        if not meta:
            return None
        AsyncResult(job_id, app=celery_app).revoke(terminate=True, signal="SIGTERM")
        return self._format_job(job_id, meta.get("created_at"), include_result=True)

    def retry_job(self, job_id: str) -> Optional[Dict[str, object]]:
        meta = self._find_job_meta(job_id)
        if not meta:
            return None
        if _STATES.get(AsyncResult(job_id, app=celery_app).state, "queued") in {"queued", "running"}:
            raise ValueError("Job is still running")
        return self.submit(JobSubmission(**meta["submission"]), root_id=meta.get("root_id") or job_id)

    async def send_report(self, job_id: str) -> Optional[DispatchResult]:
        meta = self._find_job_meta(job_id)
        if not meta:
            return None
        snapshot = self._result(job_id)
        if snapshot is None:
            return DispatchResult.SKIPPED
        if snapshot.get("report_status") == "sent":
            return DispatchResult.ALREADY_SENT
        guard = f"{self._jobs_key}:report:{job_id}"
        if not self._redis.set(guard, "sending", nx=True, ex=86400):
            state = self._redis.get(guard)
            return DispatchResult.SENDING if state == "sending" else DispatchResult.ALREADY_SENT
        submission = JobSubmission(**meta["submission"])
        report = report_from_snapshot(
            snapshot,
            submission.payload.to_request(),
            submission.operator.to_operator(),
            tz_name=self._settings.report_timezone,
        )
        try:
            await self._client.send_email(
                self._settings.report_recipient,
                report.subject(),
                report.render_html(),
                from_email=self._settings.report_sender,
            )
        except MatterOpeningError as exc:
            LOG.warning("Diagnostic report for job %s could not be delivered: %s", job_id, exc)
            self._redis.delete(guard)
            return DispatchResult.FAILED
        self._redis.set(guard, "sent", ex=86400)
        return DispatchResult.SENT

    async def generate_ccl(self, job_id: str) -> Optional[StepResult]:
        meta = self._find_job_meta(job_id)
        if not meta:
            return None
        snapshot = self._result(job_id) or {}
        submission = JobSubmission(**meta["submission"])
        executor = PipelineExecutor(build_steps(self._client), settings=self._settings)
        return await executor.run_follow_on(
            build_ccl_step(self._client),
            submission.payload.to_request(),
            submission.operator.to_operator(),
            snapshot.get("identifiers") or {},
        )

    def _result(self, job_id: str) -> Optional[Dict[str, Any]]:
        result = AsyncResult(job_id, app=celery_app)
        if result.state != "SUCCESS" or not isinstance(result.result, dict):
            return None
        return result.result

    def _register_job(self, job_id: str, submission: Dict[str, Any], *, root_id: str) -> None:
        payload = json.dumps(
            {"id": job_id, "root_id": root_id, "kind": KIND, "created_at": time.time(), "submission": submission},
            ensure_ascii=True,
        )
        self._redis.lpush(self._jobs_key, payload)
        self._redis.ltrim(self._jobs_key, 0, self._max_jobs - 1)

    def _entries(self) -> List[Dict[str, Any]]:
        entries = self._redis.lrange(self._jobs_key, 0, self._max_jobs - 1)
        metas: List[Dict[str, Any]] = []
        for raw in entries:
            try:
                metas.append(json.loads(raw))
            except json.JSONDecodeError:
                continue
        return metas

    def _find_job_meta(self, job_id: str) -> Optional[Dict[str, Any]]:
        return next((meta for meta in self._entries() if meta.get("id") == job_id), None)

    def _format_job(
        self,
        job_id: str,
        created_at: Optional[float],
        *,
        include_result: bool = False,
    ) -> Dict[str, object]:
        task = AsyncResult(job_id, app=celery_app)
        info: Dict[str, Any] = task.info if isinstance(task.info, dict) else {}
        status = _STATES.get(task.state, "queued")
        progress = info.get("progress") or {}
        if status == "completed":
            # the task itself returns normally for failed runs; its payload carries the run status
            status = str(info.get("status") or status)
            error = info.get("error")
        elif status == "failed":
            error = str(task.info)
        else:
            error = None
        finished = getattr(task, "date_done", None)
        percent = progress.get("percent", _settled_percent(info) if task.state == "SUCCESS" else 0)

        job: Dict[str, object] = {
            "id": job_id,
            "kind": KIND,
            "status": status,
            "progress": round(float(percent) / 100, 3),
            "current_index": progress.get("current_index", -1),
            "created_at": created_at or time.time(),
            "updated_at": info.get("updated_at") or (finished.timestamp() if finished else time.time()),
            "error": error,
            "failure_summary": info.get("failure_summary"),
            "identifiers": info.get("identifiers") or info.get("callbacks") or {},
            "report_status": info.get("report_status"),
        }
        if include_result:
            job["progress_detail"] = progress or None
            job["result"] = task.result if task.state == "SUCCESS" else None
        return job


def _settled_percent(info: Dict[str, Any]) -> int:
    steps = info.get("steps") or []
    if not steps:
        return 100
    done = sum(1 for step in steps if step.get("status") == "success")
    return int(round(100 * done / len(steps)))
