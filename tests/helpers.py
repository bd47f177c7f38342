"""Shared builders for the test-suite."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict

import httpx
import respx

from matter_opening.core.models import FailureKind, StepStatus
from matter_opening.pipeline.results import RunOutcome, StepReport

BASE_URL = "http://provisioning.test"

ASANA_PROFILE = {
    "ASANAClientID": "asana-client",
    "ASANA_Secret": "asana-secret",
    "ASANARefreshToken": "asana-refresh",
}

CONTACT_INDEX = 14
MATTER_INDEX = 17


def sample_payload(*, with_opponent: bool = True) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "team_assignments": {
            "fee_earner": "Alex Brown",
            "supervising_partner": "Chris Dean",
            "originating_solicitor": "Alex Brown",
            "fee_earner_initials": "AB",
            "fee_earner_email": "ab@example.com",
        },
        "matter_details": {
            "instruction_ref": "HLX-28851-10001",
            "client_type": "Individual",
            "area_of_work": "Commercial",
            "practice_area": "Contract Dispute",
            "description": "Unpaid invoices under supply agreement",
            "dispute_value": "£10k - £50k",
        },
        "client_information": [
            {
                "poid_id": "28851",
                "first_name": "Jane",
                "last_name": "Doe",
                "email": "jane@example.com",
                "best_number": "07700 900000",
                "address": {"street": "1 High Street", "city": "Brighton", "post_code": "BN1 1AA"},
                "verification": {"check_result": "Passed"},
            }
        ],
        "source_details": {"source": "referral", "referrer_name": "Sam Lee"},
        "compliance": {"conflict_check_completed": True},
    }
    if with_opponent:
        payload["opponent_details"] = {
            "opponent": {"is_company": True, "company_name": "Acme Supplies Ltd"},
            "solicitor": {"first_name": "Pat", "last_name": "Quinn", "company_name": "Quinn & Co"},
        }
    return payload


def install_routes(router: respx.MockRouter) -> respx.MockRouter:
    router.get(f"{BASE_URL}/secrets/ac-automations-apitoken", name="ac_token").mock(
        return_value=httpx.Response(200, json={"value": "ac-token"})
    )
    for secret in ("clientid", "clientsecret", "refreshtoken"):
        router.get(f"{BASE_URL}/secrets/ab-clio-v1-{secret}", name=f"clio_{secret}").mock(
            return_value=httpx.Response(200, json={"value": f"clio-{secret}"})
        )
    router.post(f"{BASE_URL}/refresh/activecampaign", name="refresh_ac").mock(return_value=httpx.Response(200, json={}))
    router.post(f"{BASE_URL}/refresh/clio/ab", name="refresh_clio").mock(return_value=httpx.Response(200, json={}))
    router.post(f"{BASE_URL}/refresh/asana", name="refresh_asana").mock(return_value=httpx.Response(200, json={}))
    router.post(f"{BASE_URL}/opponents", name="opponents").mock(
        return_value=httpx.Response(200, json={"opponentId": 11, "solicitorId": 12})
    )
    router.post(f"{BASE_URL}/matter-requests", name="matter_requests").mock(
        return_value=httpx.Response(200, json={"message": "Matter request recorded"})
    )
    router.post(f"{BASE_URL}/contacts", name="contacts").mock(
        return_value=httpx.Response(
            200,
            json={
                "ok": True,
                "results": [
                    {
                        "data": {"id": 501, "type": "Person", "attributes": {"first_name": "Jane", "last_name": "Doe"}},
                        "emptyFieldCount": 0,
                    }
                ],
            },
        )
    )
    router.post(f"{BASE_URL}/matters", name="matters").mock(
        return_value=httpx.Response(200, json={"ok": True, "matterId": "9001"})
    )
    router.post(f"{BASE_URL}/documents", name="documents").mock(
        return_value=httpx.Response(200, json={"url": "https://docs.example.com/ccl/9001.docx"})
    )
    router.post(f"{BASE_URL}/notify", name="notify").mock(return_value=httpx.Response(202, json={}))
    router.post(f"{BASE_URL}/telemetry", name="telemetry").mock(return_value=httpx.Response(202, json={}))
    return router


def failed_outcome(label: str = "Clio Contact Created/Updated", message: str = "Clio contact sync failed") -> RunOutcome:
    now = datetime.now(timezone.utc)
    return RunOutcome(
        run_id="run-1",
        status="failed",
        steps=[
            StepReport(label="Retrieve ActiveCampaign Token", status=StepStatus.SUCCESS, message="Token retrieved"),
            StepReport(label=label, status=StepStatus.ERROR, message=message, kind=FailureKind.EXTERNAL_REJECTION),
            StepReport(label="Clio Matter Opened"),
        ],
        started_at=now,
        finished_at=now,
        failing_index=1,
        error=message,
        kind=FailureKind.EXTERNAL_REJECTION,
    )
