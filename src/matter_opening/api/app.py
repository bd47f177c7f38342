"""FastAPI entrypoint for the matter-opening pipeline."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Dict, List

from fastapi import FastAPI, HTTPException

from matter_opening.adapters.http.client import ProvisioningClient
from matter_opening.api.jobs import JobQueue
from matter_opening.api.schemas import JobSubmission
from matter_opening.core.config import load_settings
from matter_opening.core.errors import MatterOpeningError, ValidationError
from matter_opening.core.models import FailureKind
from matter_opening.core.normalization import build_meta
from matter_opening.pipeline.orchestrator import PipelineExecutor
from matter_opening.pipeline.reporting import FailureReporter
from matter_opening.pipeline.steps import build_ccl_step, build_steps
from matter_opening.pipeline.telemetry import TelemetryEmitter

SETTINGS = load_settings()
CLIENT = ProvisioningClient.from_settings(SETTINGS)
USE_CELERY = SETTINGS.queue_backend == "celery"


def build_executor(client: ProvisioningClient = CLIENT) -> PipelineExecutor:
    return PipelineExecutor(
        build_steps(client),
        settings=SETTINGS,
        reporter=FailureReporter(client, SETTINGS),
        telemetry=TelemetryEmitter(client),
    )


if USE_CELERY:
    try:
        from matter_opening.api.celery_queue import CeleryJobQueue
    except Exception as exc:  # pragma: no cover - optional dependency
        raise RuntimeError(
            "Celery queue requested but optional dependencies are missing. "
            "Install extras with `pip install matter-opening[queue]`."
        ) from exc
    CELERY_QUEUE = CeleryJobQueue(SETTINGS, CLIENT)
else:
    JOB_QUEUE = JobQueue(build_executor, ccl_step=build_ccl_step(CLIENT))


@asynccontextmanager
async def lifespan(_: FastAPI):
    yield
    await CLIENT.aclose()


app = FastAPI(title="Matter Opening API", lifespan=lifespan)


@app.get("/api/health")
def health() -> Dict[str, object]:
    return {"status": "ok", "queue": SETTINGS.queue_backend, "meta": build_meta(SETTINGS.report_timezone)}


@app.post("/api/matter-opening/jobs")
async def create_job(submission: JobSubmission) -> Dict[str, object]:
    try:
        request = submission.payload.to_request()
        operator = submission.operator.to_operator()
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if USE_CELERY:
        return CELERY_QUEUE.submit(submission)
    job = JOB_QUEUE.submit(request, operator)
    return job.to_dict()


@app.get("/api/matter-opening/jobs")
def list_jobs() -> Dict[str, List[Dict[str, object]]]:
    if USE_CELERY:
        return {"items": CELERY_QUEUE.list_jobs()}
    return {"items": [job.to_dict() for job in JOB_QUEUE.list()]}


@app.get("/api/matter-opening/jobs/{job_id}")
def get_job(job_id: str) -> Dict[str, object]:
    if USE_CELERY:
        job = CELERY_QUEUE.get_job(job_id)
        if not job:
            raise HTTPException(status_code=404, detail="Job not found")
        return job
    job = JOB_QUEUE.get(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job.to_dict(include_result=True)


@app.post("/api/matter-opening/jobs/{job_id}/retry")
async def retry_job(job_id: str, mode: str = "resume") -> Dict[str, object]:
    try:
        if USE_CELERY:
            job = CELERY_QUEUE.retry_job(job_id)
        else:
            found = JOB_QUEUE.retry(job_id, mode)
            job = found.to_dict() if found else None
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


@app.post("/api/matter-opening/jobs/{job_id}/cancel")
async def cancel_job(job_id: str) -> Dict[str, object]:
    if USE_CELERY:
        job = CELERY_QUEUE.cancel_job(job_id)
        if not job:
            raise HTTPException(status_code=404, detail="Job not found")
        return job
    found = JOB_QUEUE.cancel(job_id)
    if not found:
        raise HTTPException(status_code=404, detail="Job not found")
    return found.to_dict(include_result=True)


@app.post("/api/matter-opening/jobs/{job_id}/report")
async def send_report(job_id: str) -> Dict[str, object]:
    if USE_CELERY:
        result = await CELERY_QUEUE.send_report(job_id)
    else:
        result = await JOB_QUEUE.send_report(job_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return {"id": job_id, "report": result.value}


@app.post("/api/matter-opening/jobs/{job_id}/ccl")
async def generate_ccl(job_id: str) -> Dict[str, object]:
    try:
        if USE_CELERY:
            result = await CELERY_QUEUE.generate_ccl(job_id)
        else:
            result = await JOB_QUEUE.generate_ccl(job_id)
    except MatterOpeningError as exc:
        status_code = 409 if exc.kind is FailureKind.MISSING_PRECONDITION else 502
        raise HTTPException(status_code=status_code, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if result is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return {"id": job_id, "message": result.message, "url": result.url}
