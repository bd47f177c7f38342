"""CLI entry point for the matter-opening pipeline."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from matter_opening.adapters.http.client import ProvisioningClient
from matter_opening.adapters.io.exports import serialize_outcome
from matter_opening.adapters.storage.repositories import RunArchive, read_json
from matter_opening.api.schemas import MatterOpeningPayload, OperatorPayload
from matter_opening.core.config import Settings, load_paths, load_settings
from matter_opening.core.errors import MatterOpeningError
from matter_opening.core.models import MatterOpeningRequest, Operator
from matter_opening.pipeline.orchestrator import PipelineExecutor
from matter_opening.pipeline.progress import ProgressTracker
from matter_opening.pipeline.reporting import FailureReporter
from matter_opening.pipeline.steps import build_ccl_step, build_steps
from matter_opening.pipeline.telemetry import TelemetryEmitter


LOG = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Open a matter by running the provisioning pipeline")
    parser.add_argument("--payload", type=str, required=True, help="Path to the matter-opening payload JSON")
    parser.add_argument("--initials", type=str, required=True, help="Operator initials")
    parser.add_argument("--profile", type=str, default=None, help="Path to the operator profile JSON")
    parser.add_argument("--output", type=str, default=None, help="Output JSON path")
    parser.add_argument("--ccl", action="store_true", help="Generate the draft CCL once the matter is open")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


class _LogPrinter:
    def __init__(self) -> None:
        self._printed = 0

    def __call__(self, tracker: ProgressTracker) -> None:
        entries = tracker.log
        for entry in entries[self._printed:]:
            print(f"[{tracker.percent():3d}%] {entry.render()}")
        self._printed = len(entries)


async def provision(
    request: MatterOpeningRequest,
    operator: Operator,
    settings: Settings,
    *,
    with_ccl: bool = False,
    client: Optional[ProvisioningClient] = None,
) -> Dict[str, Any]:
    client = client or ProvisioningClient.from_settings(settings)
    async with client:
        reporter = FailureReporter(client, settings)
        executor = PipelineExecutor(
            build_steps(client), settings=settings, reporter=reporter, telemetry=TelemetryEmitter(client)
        )
        outcome = await executor.run(request, operator, listener=_LogPrinter())
        payload = serialize_outcome(outcome)
        if outcome.ok and with_ccl:
            try:
                result = await executor.run_follow_on(build_ccl_step(client), request, operator, outcome.identifiers)
            except MatterOpeningError as exc:
                LOG.warning("Draft CCL generation failed for run %s: %s", outcome.run_id, exc)
                print(f"Draft CCL failed: {exc}")
                payload["ccl_error"] = str(exc)
            else:
                print(f"{result.message}: {result.url}")
                payload["ccl_url"] = result.url
        await reporter.wait()
        payload["report_status"] = reporter.status
    return payload


def main(argv: Optional[list] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    request = MatterOpeningPayload(**read_json(Path(args.payload))).to_request()
    profile = read_json(Path(args.profile)) if args.profile else {}
    operator = OperatorPayload(initials=args.initials, profile=profile).to_operator()

    payload = asyncio.run(provision(request, operator, load_settings(), with_ccl=args.ccl))

    RunArchive(load_paths().outputs_dir).save(payload, Path(args.output) if args.output else None)
    if payload["status"] != "completed":
        print(payload["failure_summary"])
        return 1
    return 1 if payload.get("ccl_error") else 0


if __name__ == "__main__":
    raise SystemExit(main())
