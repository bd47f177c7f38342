"""Export helpers for pipeline runs."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from matter_opening.pipeline.progress import LogEntry, ProgressTracker
from matter_opening.pipeline.results import RunOutcome, StepReport


def serialize_step(step: StepReport) -> Dict[str, Any]:
    return {
        "label": step.label,
        "phase": step.phase,
        "icon": step.icon,
        "status": step.status.value,
        "message": step.message,
        "kind": step.kind.value if step.kind else None,
        "url": step.url,
    }


def serialize_log_entry(entry: LogEntry) -> Dict[str, Any]:
    return {
        "timestamp": entry.timestamp.isoformat(),
        "index": entry.index,
        "label": entry.label,
        "status": entry.status.value,
        "message": entry.message,
        "text": entry.render(),
    }


def serialize_progress(tracker: Optional[ProgressTracker]) -> Dict[str, Any]:
    if tracker is None:
        return {"current_index": -1, "percent": 0, "steps": [], "phases": [], "log": []}
    return {
        "current_index": tracker.current_index,
        "percent": tracker.percent(),
        "completed": tracker.completed_count(),
        "total": tracker.total,
        "steps": [serialize_step(step) for step in tracker.steps],
        "phases": tracker.phase_summaries(),
        "log": [serialize_log_entry(entry) for entry in tracker.log],
    }


def serialize_outcome(outcome: RunOutcome) -> Dict[str, Any]:
    steps: List[Dict[str, Any]] = [serialize_step(step) for step in outcome.steps]
    return {
        "run_id": outcome.run_id,
        "trace_id": outcome.trace_id,
        "status": outcome.status,
        "started_at": outcome.started_at.isoformat(),
        "finished_at": outcome.finished_at.isoformat(),
        "identifiers": outcome.identifiers,
        "failing_index": outcome.failing_index,
        "failing_step": outcome.failing_label,
        "error": outcome.error,
        "kind": outcome.kind.value if outcome.kind else None,
        "failure_summary": outcome.failure_summary or None,
        "resumable": outcome.checkpoint is not None,
        "steps": steps,
    }
