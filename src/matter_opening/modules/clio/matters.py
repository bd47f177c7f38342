"""Clio matter creation."""

from __future__ import annotations

from matter_opening.adapters.http.client import ProvisioningClient
from matter_opening.core.errors import MissingPreconditionError
from matter_opening.core.models import IdentifierKind, MatterOpeningRequest, Operator
from matter_opening.pipeline.context import PipelineContext


async def open_matter(
    client: ProvisioningClient,
    request: MatterOpeningRequest,
    operator: Operator,
    context: PipelineContext,
) -> str:
    if not context.contact_ids:
        raise MissingPreconditionError("No Clio contact is available to open the matter against")
    matter_id = await client.create_matter(
        request.to_form_data(operator.initials),
        operator.initials,
        list(context.contact_ids),
        context.company_id,
    )
    context.matter_id = matter_id
    context.publish(IdentifierKind.MATTER, matter_id)
    return f"Matter opened ({matter_id})"
