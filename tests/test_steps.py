import asyncio
import json

import pytest

from matter_opening.adapters.http.client import ProvisioningClient
from matter_opening.api.schemas import MatterOpeningPayload
from matter_opening.core.errors import MissingPreconditionError
from matter_opening.core.models import Operator, Provider
from matter_opening.modules.clio.contacts import parse_contact_results, primary_contact_id
from matter_opening.modules.instructions.records import build_matter_request
from matter_opening.pipeline.context import PipelineContext
from matter_opening.pipeline.steps import build_ccl_step, build_phases, build_steps
from tests.helpers import BASE_URL, sample_payload

EXPECTED_LABELS = [
    "Retrieve ActiveCampaign Token",
    "Refresh ActiveCampaign Token",
    "Retrieve Clio Client ID",
    "Retrieve Clio Client Secret",
    "Retrieve Clio Refresh Token",
    "Refresh Clio Access Token",
    "Retrieve Asana Client ID",
    "Retrieve Asana Secret",
    "Retrieve Asana Refresh Token",
    "Refresh Asana Access Token",
    "Opponent Details Updated",
    "Matter Request Created",
    "Contact Created/Updated",
    "Databases Updated",
    "Clio Contact Created/Updated",
    "NetDocument Workspace Triggered",
    "Databases Updated",
    "Clio Matter Opened",
]


def _steps():
    return build_steps(ProvisioningClient(BASE_URL))


def _step(label):
    return next(step for step in _steps() if step.label == label)


def test_registry_order_and_phases():
    steps = _steps()
    assert [step.label for step in steps] == EXPECTED_LABELS
    phases = build_phases(steps)
    assert [phase.label for phase in phases] == [
        "ActiveCampaign",
        "Clio Credentials",
        "Asana Credentials",
        "Opponent",
        "Matter Request",
        "Notifications",
        "Clio Contact",
        "Sync",
        "Clio Matter",
    ]
    assert phases[1].start == 2 and phases[1].end == 5
    assert phases[-1].start == phases[-1].end == 17


def test_ccl_step_is_not_part_of_the_pipeline():
    ccl = build_ccl_step(ProvisioningClient(BASE_URL))
    assert ccl.label == "Draft CCL Generated"
    assert ccl.label not in EXPECTED_LABELS


def test_clio_secrets_are_fetched_with_lowercase_initials(provider_api, matter_request, operator):
    async def _run():
        context = PipelineContext()
        message = await _step("Retrieve Clio Client Secret").operation(matter_request, operator, context)
        assert message == "Client Secret retrieved"
        assert context.credentials[Provider.CLIO].client_secret == "clio-clientsecret"

    asyncio.run(_run())
    assert provider_api.routes["clio_clientsecret"].call_count == 1


def test_profile_secrets_accept_either_alias(matter_request):
    operator = Operator(initials="AB", profile={"ASANAClient_ID": "alt-id", "ASANASecret": "alt-secret"})

    async def _run():
        context = PipelineContext()
        await _step("Retrieve Asana Client ID").operation(matter_request, operator, context)
        await _step("Retrieve Asana Secret").operation(matter_request, operator, context)
        return context.credentials[Provider.ASANA]

    credentials = asyncio.run(_run())
    assert credentials.client_id == "alt-id"
    assert credentials.client_secret == "alt-secret"


def test_missing_profile_secret_is_a_precondition_failure(provider_api, matter_request):
    operator = Operator(initials="AB", profile={})

    async def _run():
        await _step("Retrieve Asana Refresh Token").operation(matter_request, operator, PipelineContext())

    with pytest.raises(MissingPreconditionError, match="Asana Refresh Token missing"):
        asyncio.run(_run())
    assert not any(route.called for route in provider_api.routes)


@pytest.mark.parametrize("absent", ["client_id", "client_secret", "refresh_token"])
def test_refresh_requires_every_secret(provider_api, matter_request, operator, absent):
    async def _run():
        context = PipelineContext()
        for name in ("client_id", "client_secret", "refresh_token"):
            if name != absent:
                context.store_secret(Provider.CLIO, name, f"value-{name}")
        await _step("Refresh Clio Access Token").operation(matter_request, operator, context)

    with pytest.raises(MissingPreconditionError, match=absent):
        asyncio.run(_run())
    assert not provider_api.routes["refresh_clio"].called


def test_refresh_with_all_secrets_calls_provider(provider_api, matter_request, operator):
    async def _run():
        context = PipelineContext()
        for name in ("client_id", "client_secret", "refresh_token"):
            context.store_secret(Provider.ASANA, name, f"value-{name}")
        return await _step("Refresh Asana Access Token").operation(matter_request, operator, context)

    assert asyncio.run(_run()) == "Access token refreshed"
    body = json.loads(provider_api.routes["refresh_asana"].calls.last.request.content)
    assert body == {
        "clientId": "value-client_id",
        "clientSecret": "value-client_secret",
        "refreshToken": "value-refresh_token",
    }


def test_opponent_step_without_details_skips_network(provider_api, operator):
    request = MatterOpeningPayload(**sample_payload(with_opponent=False)).to_request()

    async def _run():
        context = PipelineContext()
        opponent = await _step("Opponent Details Updated").operation(request, operator, context)
        matter = await _step("Matter Request Created").operation(request, operator, context)
        return opponent, matter

    opponent, matter = asyncio.run(_run())
    assert opponent == "No opponent details supplied"
    assert matter == "Matter request recorded"
    assert not provider_api.routes["opponents"].called


def test_matter_request_needs_recorded_opponent(provider_api, matter_request, operator):
    async def _run():
        await _step("Matter Request Created").operation(matter_request, operator, PipelineContext())

    with pytest.raises(MissingPreconditionError):
        asyncio.run(_run())
    assert not provider_api.routes["matter_requests"].called


def test_matter_request_links_opponent_ids(matter_request, operator):
    context = PipelineContext(opponent_id=11, solicitor_id=12)
    body = build_matter_request(matter_request, operator, context)
    assert body["opponentId"] == 11
    assert body["solicitorId"] == 12
    assert body["instructionRef"] == "HLX-28851-10001"
    assert body["createdBy"] == "AB"


def test_company_clients_publish_the_company_contact():
    records = parse_contact_results(
        [
            {"data": {"id": 1, "type": "Person", "attributes": {"first_name": "Jane", "last_name": "Doe"}}},
            {"data": {"id": 2, "type": "Company", "attributes": {"name": "Doe Ltd"}}},
            {"data": {}},
        ]
    )
    assert [record.name for record in records] == ["Jane Doe", "Doe Ltd"]
    assert primary_contact_id(records, "Company") == "2"
    assert primary_contact_id(records, "Individual") == "1"


def test_matter_step_requires_synced_contacts(provider_api, matter_request, operator):
    async def _run():
        await _step("Clio Matter Opened").operation(matter_request, operator, PipelineContext())

    with pytest.raises(MissingPreconditionError):
        asyncio.run(_run())
    assert not provider_api.routes["matters"].called


def test_placeholder_steps_succeed_without_side_effects(provider_api, matter_request, operator):
    async def _run():
        return await _step("NetDocument Workspace Triggered").operation(matter_request, operator, PipelineContext())

    assert asyncio.run(_run()) == "Done"
    assert not any(route.called for route in provider_api.routes)
