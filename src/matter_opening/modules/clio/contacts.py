"""Clio contact synchronisation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from matter_opening.adapters.http.client import ProvisioningClient
from matter_opening.core.errors import ProviderError
from matter_opening.core.models import IdentifierKind, MatterOpeningRequest, Operator
from matter_opening.pipeline.context import PipelineContext

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContactRecord:
    id: str
    type: str
    name: str
    empty_field_count: int = 0


def _contact_name(attributes: Dict[str, Any]) -> str:
    if attributes.get("name"):
        return str(attributes["name"])
    parts = [attributes.get("first_name"), attributes.get("last_name")]
    return " ".join(str(part) for part in parts if part)


def parse_contact_results(results: List[Dict[str, Any]]) -> List[ContactRecord]:
    records: List[ContactRecord] = []
    for item in results:
        data = item.get("data") or {}
        contact_id = data.get("id")
        if contact_id is None:
            continue
        records.append(
            ContactRecord(
                id=str(contact_id),
                type=str(data.get("type") or "Person"),
                name=_contact_name(data.get("attributes") or {}),
                empty_field_count=int(item.get("emptyFieldCount") or 0),
            )
        )
    return records


def primary_contact_id(records: List[ContactRecord], client_type: str) -> Optional[str]:
    if client_type.lower() == "company":
        company = next((record for record in records if record.type == "Company"), None)
        if company:
            return company.id
    return records[0].id if records else None


async def sync_contacts(
    client: ProvisioningClient,
    request: MatterOpeningRequest,
    operator: Operator,
    context: PipelineContext,
) -> str:
    results = await client.sync_contacts(request.to_form_data(operator.initials), operator.initials)
    records = parse_contact_results(results)
    if not records:
        raise ProviderError("Clio contact sync", detail="no contacts were returned")
    for record in records:
        if record.empty_field_count:
            LOG.warning("Clio contact %s synced with %d empty fields", record.id, record.empty_field_count)

    context.contact_ids = [record.id for record in records]
    company = next((record for record in records if record.type == "Company"), None)
    context.company_id = company.id if company else None
    context.client_names = [record.name for record in records if record.name]

    context.publish(IdentifierKind.CONTACT, primary_contact_id(records, request.matter_details.client_type))
    names = ", ".join(context.client_names) or ", ".join(context.contact_ids)
    return f"Clio contacts synced: {names}"
