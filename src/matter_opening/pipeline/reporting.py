"""Diagnostic reports for failed runs.

A report is sent automatically, after a short settle delay, the first time a
given failure summary is seen. The same summary never triggers a second
automatic report; a different one does. A manual resend is also offered and
is a no-op while a send is in flight or once the current failure has been
delivered.
"""

from __future__ import annotations

import asyncio
import html
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from matter_opening.adapters.http.client import ProvisioningClient
from matter_opening.core.config import Settings
from matter_opening.core.errors import MatterOpeningError
from matter_opening.core.models import MatterOpeningRequest, Operator
from matter_opening.core.normalization import local_timestamp
from matter_opening.pipeline.results import RunOutcome, StepReport

LOG = logging.getLogger(__name__)

REPORT_SOURCE = "MatterOpeningPipeline"


class DispatchResult(Enum):
    SCHEDULED = "scheduled"
    SENT = "sent"
    ALREADY_SENT = "already_sent"
    SENDING = "sending"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class FailureReport:
    issue: str
    user: str
    instruction: str
    timestamp: str
    form_summary: Dict[str, Any]
    processing_steps: List[Dict[str, Any]]
    failing_step: Optional[str] = None
    kind: Optional[str] = None
    auto_sent: bool = False
    source: str = REPORT_SOURCE

    @property
    def is_failure(self) -> bool:
        return self.failing_step is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "issue": self.issue,
            "user": self.user,
            "instruction": self.instruction,
            "timestamp": self.timestamp,
            "failingStep": self.failing_step,
            "kind": self.kind,
            "formSummary": self.form_summary,
            "processingSteps": self.processing_steps,
            "autoSent": self.auto_sent,
            "source": self.source,
        }

    def subject(self) -> str:
        heading = "Issue" if self.is_failure else "Feedback"
        mode = "Auto" if self.auto_sent else "Manual"
        return f"Matter Opening {heading} ({mode}) - {self.user}"

    def render_html(self) -> str:
        heading = "Issue" if self.is_failure else "Feedback"
        suffix = " Auto-Report" if self.auto_sent else ""
        body = html.escape(json.dumps(self.to_dict(), indent=2, default=str))
        return f"<h2>Matter Opening {heading} ({REPORT_SOURCE}{suffix})</h2><pre>{body}</pre>"


def serialize_steps(steps: List[StepReport]) -> List[Dict[str, Any]]:
    return [{"label": step.label, "status": step.status.value, "message": step.message} for step in steps]


def build_report(
    outcome: Optional[RunOutcome],
    request: MatterOpeningRequest,
    operator: Operator,
    *,
    auto: bool,
    tz_name: Optional[str] = None,
) -> FailureReport:
    summary = outcome.failure_summary if outcome else ""
    return FailureReport(
        issue=summary or "General diagnostic report",
        user=operator.initials,
        instruction=request.matter_details.instruction_ref or "N/A",
        timestamp=local_timestamp(tz_name=tz_name),
        form_summary=request.summary(),
        processing_steps=serialize_steps(outcome.steps) if outcome else [],
        failing_step=outcome.failing_label if outcome else None,
        kind=outcome.kind.value if outcome and outcome.kind else None,
        auto_sent=auto,
    )


def report_from_snapshot(
    snapshot: Dict[str, Any],
    request: MatterOpeningRequest,
    operator: Operator,
    *,
    tz_name: Optional[str] = None,
) -> FailureReport:
    """Build a manual report from a serialized run, as stored by the Celery backend."""
    summary = snapshot.get("failure_summary") or ""
    return FailureReport(
        issue=summary or "General diagnostic report",
        user=operator.initials,
        instruction=request.matter_details.instruction_ref or "N/A",
        timestamp=local_timestamp(tz_name=tz_name),
        form_summary=request.summary(),
        processing_steps=[
            {"label": step.get("label"), "status": step.get("status"), "message": step.get("message")}
            for step in snapshot.get("steps") or []
        ],
        failing_step=snapshot.get("failing_step"),
        kind=snapshot.get("kind"),
        auto_sent=False,
    )


class FailureReporter:
    """Dispatches diagnostic reports for one executor.

    Deduplication is keyed by the report's issue line, which for a halted run
    is the failure summary. ``last_key`` seeds the automatic key when the
    previous attempt ran in another process.
    """

    def __init__(self, client: ProvisioningClient, settings: Settings, *, last_key: Optional[str] = None) -> None:
        self.client = client
        self.settings = settings
        self._auto_key: Optional[str] = last_key
        self._current_key: Optional[str] = last_key
        self._delivered_key: Optional[str] = None
        self._timer: Optional[asyncio.Task] = None
        self._sending = False
        self._idle = asyncio.Event()
        self._idle.set()
        self._last: Optional[tuple] = None
        self.sent: List[FailureReport] = []

    @property
    def auto_key(self) -> Optional[str]:
        return self._auto_key

    @property
    def delivered(self) -> bool:
        return self._delivered_key is not None and self._delivered_key == self._current_key

    @property
    def sending(self) -> bool:
        return self._sending

    @property
    def status(self) -> str:
        if self.delivered:
            return "sent"
        if self._sending:
            return "sending"
        if self._timer is not None and not self._timer.done():
            return "scheduled"
        return "idle"

    def report_failure(self, outcome: RunOutcome, request: MatterOpeningRequest, operator: Operator) -> DispatchResult:
        """Schedule the automatic report for a halted run, once per failure summary."""
        key = outcome.failure_summary
        self._last = (outcome, request, operator)
        if not key or key == self._auto_key:
            return DispatchResult.SKIPPED
        self._auto_key = key
        self._current_key = key
        self._cancel_timer()
        report = build_report(outcome, request, operator, auto=True, tz_name=self.settings.report_timezone)
        self._timer = asyncio.get_running_loop().create_task(self._send_later(report))
        LOG.info("Scheduled diagnostic report for %s", key)
        return DispatchResult.SCHEDULED

    async def send_manual(
        self,
        outcome: Optional[RunOutcome] = None,
        request: Optional[MatterOpeningRequest] = None,
        operator: Optional[Operator] = None,
    ) -> DispatchResult:
        if self.delivered:
            return DispatchResult.ALREADY_SENT
        if self._sending:
            return DispatchResult.SENDING
        if request is None or operator is None:
            if self._last is None:
                raise ValueError("No run is available to report on")
            outcome, request, operator = self._last
        self._cancel_timer()
        report = build_report(outcome, request, operator, auto=False, tz_name=self.settings.report_timezone)
        self._current_key = report.issue
        return await self._dispatch(report)

    async def wait(self) -> None:
        if self._timer is not None:
            await asyncio.gather(self._timer, return_exceptions=True)

    async def _send_later(self, report: FailureReport) -> None:
        await asyncio.sleep(self.settings.report_delay)
        # a manual send for an earlier failure may still be in flight
        await self._idle.wait()
        if report.issue != self._current_key or self.delivered:
            return
        await self._dispatch(report)

    async def _dispatch(self, report: FailureReport) -> DispatchResult:
        self._sending = True
        self._idle.clear()
        try:
            await self.client.send_email(
                self.settings.report_recipient,
                report.subject(),
                report.render_html(),
                from_email=self.settings.report_sender,
            )
        except MatterOpeningError as exc:
            LOG.warning("Diagnostic report could not be delivered: %s", exc)
            return DispatchResult.FAILED
        finally:
            self._sending = False
            self._idle.set()
        self._delivered_key = report.issue
        self.sent.append(report)
        LOG.info("Diagnostic report delivered: %s", report.issue)
        return DispatchResult.SENT

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None
