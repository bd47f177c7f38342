"""Retrieve-then-refresh credential chain for each external provider.

Each provider needs one or more retrieval steps that put secrets into the run
context, followed by exactly one refresh step that consumes them. A refresh
step checks its secrets before touching the network, so "we never had your
credentials" and "the provider rejected the refresh" are different failures.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Dict, Optional, Sequence

from matter_opening.adapters.http.client import ProvisioningClient
from matter_opening.core.errors import MissingPreconditionError
from matter_opening.core.models import MatterOpeningRequest, Operator, Provider
from matter_opening.pipeline.context import PipelineContext

LOG = logging.getLogger(__name__)

Operation = Callable[[MatterOpeningRequest, Operator, PipelineContext], Awaitable[str]]

_SECRET_LABELS = {
    "token": "Token",
    "client_id": "Client ID",
    "client_secret": "Client Secret",
    "refresh_token": "Refresh Token",
}


def fetch_secret(client: ProvisioningClient, provider: Provider, name: str, key_template: str) -> Operation:
    """Fetch one secret from the secrets endpoint; ``{initials}`` in the key is operator-scoped."""

    async def operation(request: MatterOpeningRequest, operator: Operator, context: PipelineContext) -> str:
        key = key_template.format(initials=operator.initials.lower())
        value = await client.get_secret(key)
        context.store_secret(provider, name, value)
        return f"{_SECRET_LABELS[name]} retrieved"

    return operation


def read_profile_secret(provider: Provider, name: str, aliases: Sequence[str]) -> Operation:
    """Copy a secret from the operator's profile record; no network call is made."""

    async def operation(request: MatterOpeningRequest, operator: Operator, context: PipelineContext) -> str:
        value = operator.profile_value(*aliases)
        if not value:
            raise MissingPreconditionError(
                f"{provider.display_name} {_SECRET_LABELS[name]} missing from your profile"
            )
        context.store_secret(provider, name, value)
        return f"{_SECRET_LABELS[name]} retrieved"

    return operation


def refresh_access_token(
    client: ProvisioningClient,
    provider: Provider,
    *,
    per_operator: bool = False,
    send_credentials: bool = False,
    message: str = "Access token refreshed",
) -> Operation:
    async def operation(request: MatterOpeningRequest, operator: Operator, context: PipelineContext) -> str:
        credentials = context.require_credentials(provider)
        body: Optional[Dict[str, str]] = None
        if send_credentials:
            body = {
                "clientId": credentials.client_id or "",
                "clientSecret": credentials.client_secret or "",
                "refreshToken": credentials.refresh_token or "",
            }
        await client.refresh_token(
            provider.value,
            operator=operator.initials.lower() if per_operator else None,
            credentials=body,
            operation=f"{provider.display_name} token refresh",
        )
        LOG.debug("Refreshed %s token for %s", provider.value, operator.initials)
        return message

    return operation
