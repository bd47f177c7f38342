"""Counterparty and matter-request records in the instructions database."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

from matter_opening.adapters.http.client import ProvisioningClient
from matter_opening.core.errors import MissingPreconditionError
from matter_opening.core.models import MatterOpeningRequest, Operator
from matter_opening.pipeline.context import PipelineContext


async def record_opponents(
    client: ProvisioningClient,
    request: MatterOpeningRequest,
    operator: Operator,
    context: PipelineContext,
) -> str:
    details = request.opponent_details
    if details is None:
        return "No opponent details supplied"
    opponent_id, solicitor_id = await client.create_opponents(
        asdict(details.opponent),
        asdict(details.solicitor) if details.solicitor else None,
        operator.initials,
    )
    context.opponent_id = opponent_id
    context.solicitor_id = solicitor_id
    return f"Opponent recorded ({details.opponent.display_name or opponent_id})"


def build_matter_request(request: MatterOpeningRequest, operator: Operator, context: PipelineContext) -> Dict[str, Any]:
    matter = request.matter_details
    team = request.team_assignments
    return {
        "instructionRef": matter.instruction_ref,
        "clientType": matter.client_type,
        "description": matter.description,
        "areaOfWork": matter.area_of_work,
        "practiceArea": matter.practice_area,
        "value": matter.dispute_value,
        "responsibleSolicitor": team.fee_earner,
        "originatingSolicitor": team.originating_solicitor,
        "supervisingPartner": team.supervising_partner,
        "source": request.source_details.source,
        "referrer": request.source_details.referrer_name,
        "opponentId": context.opponent_id,
        "solicitorId": context.solicitor_id,
        "createdBy": operator.initials,
    }


async def record_matter_request(
    client: ProvisioningClient,
    request: MatterOpeningRequest,
    operator: Operator,
    context: PipelineContext,
) -> str:
    if request.opponent_details is not None and context.opponent_id is None:
        raise MissingPreconditionError("Opponent record is missing; cannot link the matter request")
    return await client.create_matter_request(build_matter_request(request, operator, context))
