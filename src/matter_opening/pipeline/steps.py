"""Pipeline step wiring."""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial
from typing import Awaitable, Callable, List, Optional, Sequence, Union

from matter_opening.adapters.http.client import ProvisioningClient
from matter_opening.core.models import MatterOpeningRequest, Operator, Provider
from matter_opening.modules.ccl.draft import generate_draft_ccl
from matter_opening.modules.clio import open_matter, sync_contacts
from matter_opening.modules.credentials import fetch_secret, read_profile_secret, refresh_access_token
from matter_opening.modules.instructions import record_matter_request, record_opponents
from matter_opening.pipeline.context import PipelineContext
from matter_opening.pipeline.progress import Phase
from matter_opening.pipeline.results import StepReport, StepResult

Operation = Callable[[MatterOpeningRequest, Operator, PipelineContext], Awaitable[Union[str, StepResult]]]

ACTIVECAMPAIGN_ICON = "activecampaign"
CLIO_ICON = "clio"
ASANA_ICON = "asana"


@dataclass(frozen=True)
class Step:
    label: str
    operation: Operation
    phase: str = ""
    icon: Optional[str] = None

    def report(self) -> StepReport:
        return StepReport(label=self.label, phase=self.phase, icon=self.icon)


def _placeholder(label: str, phase: str) -> Step:
    async def operation(request: MatterOpeningRequest, operator: Operator, context: PipelineContext) -> str:
        return "Done"

    return Step(label=label, operation=operation, phase=phase)


def build_steps(client: ProvisioningClient) -> List[Step]:
    clio_phase = "Clio Credentials"
    asana_phase = "Asana Credentials"
    return [
        Step(
            "Retrieve ActiveCampaign Token",
            fetch_secret(client, Provider.ACTIVECAMPAIGN, "token", "ac-automations-apitoken"),
            "ActiveCampaign",
            ACTIVECAMPAIGN_ICON,
        ),
        Step(
            "Refresh ActiveCampaign Token",
            refresh_access_token(client, Provider.ACTIVECAMPAIGN, message="Token refreshed"),
            "ActiveCampaign",
            ACTIVECAMPAIGN_ICON,
        ),
        Step(
            "Retrieve Clio Client ID",
            fetch_secret(client, Provider.CLIO, "client_id", "{initials}-clio-v1-clientid"),
            clio_phase,
            CLIO_ICON,
        ),
        Step(
            "Retrieve Clio Client Secret",
            fetch_secret(client, Provider.CLIO, "client_secret", "{initials}-clio-v1-clientsecret"),
            clio_phase,
            CLIO_ICON,
        ),
        Step(
            "Retrieve Clio Refresh Token",
            fetch_secret(client, Provider.CLIO, "refresh_token", "{initials}-clio-v1-refreshtoken"),
            clio_phase,
            CLIO_ICON,
        ),
        Step(
            "Refresh Clio Access Token",
            refresh_access_token(client, Provider.CLIO, per_operator=True),
            clio_phase,
            CLIO_ICON,
        ),
        Step(
            "Retrieve Asana Client ID",
            read_profile_secret(Provider.ASANA, "client_id", ("ASANAClientID", "ASANAClient_ID")),
            asana_phase,
            ASANA_ICON,
        ),
        Step(
            "Retrieve Asana Secret",
            read_profile_secret(Provider.ASANA, "client_secret", ("ASANASecret", "ASANA_Secret")),
            asana_phase,
            ASANA_ICON,
        ),
        Step(
            "Retrieve Asana Refresh Token",
            read_profile_secret(Provider.ASANA, "refresh_token", ("ASANARefreshToken", "ASANARefresh_Token")),
            asana_phase,
            ASANA_ICON,
        ),
        Step(
            "Refresh Asana Access Token",
            refresh_access_token(client, Provider.ASANA, send_credentials=True),
            asana_phase,
            ASANA_ICON,
        ),
        Step("Opponent Details Updated", partial(record_opponents, client), "Opponent"),
        Step("Matter Request Created", partial(record_matter_request, client), "Matter Request"),
        _placeholder("Contact Created/Updated", "Notifications"),
        _placeholder("Databases Updated", "Notifications"),
        Step("Clio Contact Created/Updated", partial(sync_contacts, client), "Clio Contact", CLIO_ICON),
        _placeholder("NetDocument Workspace Triggered", "Sync"),
        _placeholder("Databases Updated", "Sync"),
        Step("Clio Matter Opened", partial(open_matter, client), "Clio Matter", CLIO_ICON),
    ]


def build_ccl_step(client: ProvisioningClient) -> Step:
    return Step("Draft CCL Generated", partial(generate_draft_ccl, client), "CCL", CLIO_ICON)


def build_phases(steps: Sequence[Step]) -> List[Phase]:
    phases: List[Phase] = []
    for index, step in enumerate(steps):
        if phases and phases[-1].label == step.phase:
            last = phases[-1]
            phases[-1] = Phase(label=last.label, start=last.start, end=index)
        else:
            phases.append(Phase(label=step.phase, start=index, end=index))
    return phases
