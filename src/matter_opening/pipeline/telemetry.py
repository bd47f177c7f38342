"""Processing telemetry for provisioning attempts.

Events are best-effort: a telemetry call that fails is logged and never
affects the run that produced it.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from matter_opening.adapters.http.client import ProvisioningClient
from matter_opening.core.errors import MatterOpeningError
from matter_opening.core.models import MatterOpeningRequest, Operator

LOG = logging.getLogger(__name__)

TELEMETRY_SOURCE = "MatterOpeningPipeline"

PROCESSING_STARTED = "Processing.Started"
PROCESSING_COMPLETED = "Processing.Completed"
PROCESSING_FAILED = "Processing.Failed"
PROCESSING_CANCELLED = "Processing.Cancelled"


def build_event(
    event_type: str,
    *,
    run_id: str,
    trace_id: str,
    request: MatterOpeningRequest,
    operator: Operator,
    data: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    instruction_ref = request.matter_details.instruction_ref or ""
    payload = dict(data or {})
    payload.update({"runId": run_id, "instructionRef": instruction_ref, "userInitials": operator.initials})
    event: Dict[str, Any] = {
        "type": event_type,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "sessionId": trace_id,
        "enquiryId": instruction_ref,
        "feeEarner": operator.initials,
        "data": payload,
    }
    if payload.get("error"):
        event["error"] = str(payload["error"])
    return {"source": TELEMETRY_SOURCE, "event": event}


class TelemetryEmitter:
    def __init__(self, client: ProvisioningClient) -> None:
        self.client = client
        self.emitted: List[Dict[str, Any]] = []

    async def emit(
        self,
        event_type: str,
        *,
        run_id: str,
        trace_id: str,
        request: MatterOpeningRequest,
        operator: Operator,
        data: Optional[Dict[str, Any]] = None,
    ) -> bool:
        body = build_event(
            event_type, run_id=run_id, trace_id=trace_id, request=request, operator=operator, data=data
        )
        LOG.info("%s run=%s trace=%s", event_type, run_id, trace_id, extra={"telemetry": body["event"]})
        try:
            await self.client.send_telemetry(body)
        except MatterOpeningError as exc:
            LOG.debug("Telemetry %s not recorded: %s", event_type, exc)
            return False
        self.emitted.append(body)
        return True
