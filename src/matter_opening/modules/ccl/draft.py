"""Draft client-care letter generation, offered once a matter exists."""

from __future__ import annotations

from typing import Any, Dict

from matter_opening.adapters.http.client import ProvisioningClient
from matter_opening.core.errors import MissingPreconditionError
from matter_opening.core.models import MatterOpeningRequest, Operator
from matter_opening.pipeline.context import PipelineContext
from matter_opening.pipeline.results import StepResult


def build_draft(request: MatterOpeningRequest, operator: Operator, context: PipelineContext) -> Dict[str, Any]:
    matter = request.matter_details
    team = request.team_assignments
    lead = request.client_information[0] if request.client_information else None
    return {
        "matter_id": context.matter_id,
        "instruction_ref": matter.instruction_ref,
        "client_name": request.client_display_name,
        "client_email": lead.email if lead else "",
        "area_of_work": matter.area_of_work,
        "practice_area": matter.practice_area,
        "description": matter.description,
        "dispute_value": matter.dispute_value,
        "fee_earner": team.fee_earner,
        "fee_earner_email": team.fee_earner_email,
        "supervising_partner": team.supervising_partner,
        "opponent": request.opponent_details.opponent.display_name if request.opponent_details else None,
        "prepared_by": operator.initials,
    }


async def generate_draft_ccl(
    client: ProvisioningClient,
    request: MatterOpeningRequest,
    operator: Operator,
    context: PipelineContext,
) -> StepResult:
    if not context.matter_id:
        raise MissingPreconditionError("A matter must be opened before a CCL can be drafted")
    url = await client.generate_document(context.matter_id, build_draft(request, operator, context))
    return StepResult(message="Draft CCL generated", url=url)
