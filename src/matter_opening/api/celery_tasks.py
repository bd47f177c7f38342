"""Celery tasks for the optional Redis-backed job queue."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Dict, Optional

from redis import Redis

from matter_opening.adapters.http.client import ProvisioningClient
from matter_opening.adapters.io.exports import serialize_outcome, serialize_progress
from matter_opening.api.celery_app import celery_app
from matter_opening.api.schemas import JobSubmission
from matter_opening.core.config import Settings, load_settings
from matter_opening.core.models import IdentifierKind, MatterOpeningRequest, Operator
from matter_opening.pipeline.bridge import IdentifierBridge
from matter_opening.pipeline.orchestrator import PipelineExecutor
from matter_opening.pipeline.progress import ProgressTracker
from matter_opening.pipeline.reporting import FailureReporter
from matter_opening.pipeline.steps import build_steps
from matter_opening.pipeline.telemetry import TelemetryEmitter

AUTO_KEY_TTL = 86400


def auto_key_name(settings: Settings, root_id: str) -> str:
    return f"{settings.jobs_key}:autokey:{root_id}"


async def _provision(
    request: MatterOpeningRequest,
    operator: Operator,
    identifiers: Dict[str, Any],
    listener: Callable[[ProgressTracker], None],
    *,
    last_key: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> Dict[str, Any]:
    settings = settings or load_settings()
    async with ProvisioningClient.from_settings(settings) as client:
        # retries of the same job share the last automatic report key
        reporter = FailureReporter(client, settings, last_key=last_key)
        executor = PipelineExecutor(
            build_steps(client), settings=settings, reporter=reporter, telemetry=TelemetryEmitter(client)
        )
        bridge = IdentifierBridge()
        bridge.register(IdentifierKind.CONTACT, lambda value: identifiers.__setitem__("contact_id", value))
        bridge.register(IdentifierKind.MATTER, lambda value: identifiers.__setitem__("matter_id", value))
        outcome = await executor.run(request, operator, bridge=bridge, listener=listener)
        # the worker must not return before the automatic report has gone out
        await reporter.wait()
    result = serialize_outcome(outcome)
    result["progress"] = serialize_progress(executor.tracker)
    result["report_status"] = reporter.status
    result["auto_report_key"] = reporter.auto_key
    result["callbacks"] = dict(identifiers)
    return result


@celery_app.task(bind=True, name="matter_opening.provision")
def provision_task(self, submission: Dict[str, object], root_id: Optional[str] = None) -> Dict[str, object]:
    parsed = JobSubmission(**submission)
    settings = load_settings()
    redis = Redis.from_url(settings.redis_url, decode_responses=True)
    key_name = auto_key_name(settings, root_id or self.request.id)
    identifiers: Dict[str, Any] = {}

    def listener(tracker: ProgressTracker) -> None:
        self.update_state(
            state="PROGRESS",
            meta={
                "progress": serialize_progress(tracker),
                "identifiers": dict(identifiers),
                "updated_at": time.time(),
            },
        )

    result = asyncio.run(
        _provision(
            parsed.payload.to_request(),
            parsed.operator.to_operator(),
            identifiers,
            listener,
            last_key=redis.get(key_name),
            settings=settings,
        )
    )
    if result["auto_report_key"]:
        redis.set(key_name, result["auto_report_key"], ex=AUTO_KEY_TTL)
    return result
