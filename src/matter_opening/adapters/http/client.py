"""Async HTTP client for the provisioning backend.

Every external call the pipeline makes goes through :class:`ProvisioningClient`.
Transport problems surface as :class:`TransportError`, non-2xx answers as
:class:`ProviderError`; nothing is retried here.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

from matter_opening.core.config import Settings
from matter_opening.core.errors import ProviderError, TransportError

LOG = logging.getLogger(__name__)


def _error_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text.strip()[:500]
    if isinstance(data, dict):
        for key in ("error", "message", "detail"):
            if data.get(key):
                return str(data[key])
    return str(data)[:500]


class ProvisioningClient:
    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProvisioningClient":
        return cls(settings.api_base_url, timeout=settings.http_timeout)

    async def __aenter__(self) -> "ProvisioningClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        json: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        LOG.debug("%s %s (%s)", method, path, operation)
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.TimeoutException as exc:
            raise TransportError(f"{operation} timed out") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"{operation} could not reach the server: {exc}") from exc
        if response.is_error:
            raise ProviderError(operation, response.status_code, _error_detail(response))
        return response

    async def _json(self, method: str, path: str, *, operation: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        response = await self._request(method, path, operation=operation, json=json)
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError(operation, response.status_code, "response was not valid JSON") from exc
        if not isinstance(data, dict):
            raise ProviderError(operation, response.status_code, "unexpected response shape")
        return data

    async def get_secret(self, key: str) -> str:
        data = await self._json("GET", f"/secrets/{key}", operation=f"Fetch secret {key}")
        value = data.get("value")
        if not value:
            raise ProviderError(f"Fetch secret {key}", detail="secret has no value")
        return str(value)

    async def refresh_token(
        self,
        provider: str,
        *,
        operator: Optional[str] = None,
        credentials: Optional[Dict[str, str]] = None,
        operation: str = "Token refresh",
    ) -> None:
        path = f"/refresh/{provider}"
        if operator:
            path += f"/{operator}"
        await self._request("POST", path, operation=operation, json=credentials)

    async def create_opponents(
        self,
        opponent: Optional[Dict[str, Any]],
        solicitor: Optional[Dict[str, Any]],
        created_by: str,
    ) -> Tuple[Optional[Any], Optional[Any]]:
        data = await self._json(
            "POST",
            "/opponents",
            operation="Opponent record",
            json={"opponent": opponent, "solicitor": solicitor, "createdBy": created_by},
        )
        return data.get("opponentId"), data.get("solicitorId")

    async def create_matter_request(self, body: Dict[str, Any]) -> str:
        data = await self._json("POST", "/matter-requests", operation="Matter request", json=body)
        return str(data.get("message") or "Matter request recorded")

    async def sync_contacts(self, form_data: Dict[str, Any], operator_id: str) -> List[Dict[str, Any]]:
        data = await self._json(
            "POST",
            "/contacts",
            operation="Clio contact sync",
            json={"formData": form_data, "operatorId": operator_id},
        )
        if not data.get("ok"):
            raise ProviderError("Clio contact sync", detail=str(data.get("error") or "sync reported failure"))
        results = data.get("results") or []
        if not isinstance(results, list):
            raise ProviderError("Clio contact sync", detail="results were not a list")
        return results

    async def create_matter(
        self,
        form_data: Dict[str, Any],
        operator_id: str,
        contact_ids: List[str],
        company_id: Optional[str],
    ) -> str:
        data = await self._json(
            "POST",
            "/matters",
            operation="Clio matter creation",
            json={
                "formData": form_data,
                "operatorId": operator_id,
                "contactIds": contact_ids,
                "companyId": company_id,
            },
        )
        matter_id = data.get("matterId")
        if not data.get("ok") or not matter_id:
            raise ProviderError("Clio matter creation", detail=str(data.get("error") or "no matter id returned"))
        return str(matter_id)

    async def generate_document(self, matter_id: str, draft: Dict[str, Any]) -> str:
        data = await self._json(
            "POST",
            "/documents",
            operation="CCL generation",
            json={"matterId": matter_id, "draftJson": draft},
        )
        url = data.get("url")
        if not url:
            raise ProviderError("CCL generation", detail="no document url returned")
        return str(url)

    async def send_email(self, to: str, subject: str, html: str, from_email: Optional[str] = None) -> None:
        body: Dict[str, Any] = {"to": to, "subject": subject, "html": html}
        if from_email:
            body["from_email"] = from_email
        await self._request("POST", "/notify", operation="Diagnostic email", json=body)

    async def send_telemetry(self, body: Dict[str, Any]) -> None:
        await self._request("POST", "/telemetry", operation="Telemetry", json=body)
