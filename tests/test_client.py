import asyncio

import httpx
import pytest
import respx

from matter_opening.adapters.http.client import ProvisioningClient
from matter_opening.core.errors import ProviderError, TransportError
from matter_opening.core.models import FailureKind
from tests.helpers import BASE_URL


def _call(operation):
    async def _run():
        async with ProvisioningClient(BASE_URL, timeout=1.0) as client:
            return await operation(client)

    return asyncio.run(_run())


@respx.mock
def test_error_status_becomes_provider_error():
    respx.get(f"{BASE_URL}/secrets/ac-automations-apitoken").mock(
        return_value=httpx.Response(403, json={"error": "Key Vault access denied"})
    )
    with pytest.raises(ProviderError) as excinfo:
        _call(lambda client: client.get_secret("ac-automations-apitoken"))
    assert excinfo.value.status_code == 403
    assert excinfo.value.kind is FailureKind.EXTERNAL_REJECTION
    assert str(excinfo.value) == "Fetch secret ac-automations-apitoken failed (HTTP 403): Key Vault access denied"


@respx.mock
def test_plain_text_errors_are_kept():
    respx.post(f"{BASE_URL}/matter-requests").mock(return_value=httpx.Response(500, text="Internal Server Error"))
    with pytest.raises(ProviderError, match="Internal Server Error"):
        _call(lambda client: client.create_matter_request({}))


@respx.mock
def test_connection_failure_becomes_transport_error():
    respx.post(f"{BASE_URL}/refresh/clio/ab").mock(side_effect=httpx.ConnectError("connection refused"))
    with pytest.raises(TransportError) as excinfo:
        _call(lambda client: client.refresh_token("clio", operator="ab", operation="Clio token refresh"))
    assert excinfo.value.kind is FailureKind.TRANSPORT
    assert "Clio token refresh could not reach the server" in str(excinfo.value)


@respx.mock
def test_timeout_becomes_transport_error():
    respx.post(f"{BASE_URL}/contacts").mock(side_effect=httpx.ReadTimeout("slow"))
    with pytest.raises(TransportError, match="timed out"):
        _call(lambda client: client.sync_contacts({}, "AB"))


@respx.mock
def test_empty_secret_is_rejected():
    respx.get(f"{BASE_URL}/secrets/ab-clio-v1-clientid").mock(return_value=httpx.Response(200, json={"value": ""}))
    with pytest.raises(ProviderError, match="secret has no value"):
        _call(lambda client: client.get_secret("ab-clio-v1-clientid"))


@respx.mock
def test_contact_sync_reporting_failure_is_rejected():
    respx.post(f"{BASE_URL}/contacts").mock(
        return_value=httpx.Response(200, json={"ok": False, "error": "Duplicate contact"})
    )
    with pytest.raises(ProviderError, match="Duplicate contact"):
        _call(lambda client: client.sync_contacts({}, "AB"))


@respx.mock
def test_matter_creation_needs_matter_id():
    respx.post(f"{BASE_URL}/matters").mock(return_value=httpx.Response(200, json={"ok": True}))
    with pytest.raises(ProviderError, match="no matter id returned"):
        _call(lambda client: client.create_matter({}, "AB", ["501"], None))


@respx.mock
def test_opponent_ids_are_returned():
    route = respx.post(f"{BASE_URL}/opponents").mock(
        return_value=httpx.Response(200, json={"opponentId": 11, "solicitorId": None})
    )
    assert _call(lambda client: client.create_opponents({"company_name": "Acme"}, None, "AB")) == (11, None)
    assert route.called
