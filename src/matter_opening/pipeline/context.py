"""Mutable state shared by the steps of a single pipeline run."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from matter_opening.core.errors import MissingPreconditionError
from matter_opening.core.models import IdentifierKind, Provider
from matter_opening.pipeline.bridge import IdentifierBridge

REQUIRED_SECRETS: Dict[Provider, Tuple[str, ...]] = {
    Provider.ACTIVECAMPAIGN: ("token",),
    Provider.CLIO: ("client_id", "client_secret", "refresh_token"),
    Provider.ASANA: ("client_id", "client_secret", "refresh_token"),
}


@dataclass
class ProviderCredentials:
    token: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    refresh_token: Optional[str] = None

    def missing(self, required: Tuple[str, ...]) -> List[str]:
        return [name for name in required if not getattr(self, name)]


def _empty_credentials() -> Dict[Provider, ProviderCredentials]:
    return {provider: ProviderCredentials() for provider in Provider}


@dataclass
class PipelineContext:
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    bridge: IdentifierBridge = field(default_factory=IdentifierBridge)
    credentials: Dict[Provider, ProviderCredentials] = field(default_factory=_empty_credentials)
    opponent_id: Optional[Any] = None
    solicitor_id: Optional[Any] = None
    contact_ids: List[str] = field(default_factory=list)
    company_id: Optional[str] = None
    client_names: List[str] = field(default_factory=list)
    matter_id: Optional[str] = None

    @classmethod
    def from_identifiers(cls, identifiers: Dict[str, Any]) -> "PipelineContext":
        return cls(
            opponent_id=identifiers.get("opponent_id"),
            solicitor_id=identifiers.get("solicitor_id"),
            contact_ids=list(identifiers.get("contact_ids") or []),
            company_id=identifiers.get("company_id"),
            client_names=list(identifiers.get("client_names") or []),
            matter_id=identifiers.get("matter_id"),
        )

    def store_secret(self, provider: Provider, name: str, value: str) -> None:
        if name not in REQUIRED_SECRETS[provider]:
            raise KeyError(f"{provider.value} has no secret named {name}")
        setattr(self.credentials[provider], name, value)

    def require_credentials(self, provider: Provider) -> ProviderCredentials:
        credentials = self.credentials[provider]
        missing = credentials.missing(REQUIRED_SECRETS[provider])
        if missing:
            raise MissingPreconditionError(
                f"Could not obtain your {provider.display_name} credentials (missing {', '.join(missing)})"
            )
        return credentials

    def publish(self, kind: IdentifierKind, value: Any) -> None:
        self.bridge.notify(kind, value)

    def identifiers(self) -> Dict[str, Any]:
        return {
            "opponent_id": self.opponent_id,
            "solicitor_id": self.solicitor_id,
            "contact_ids": list(self.contact_ids),
            "company_id": self.company_id,
            "client_names": list(self.client_names),
            "matter_id": self.matter_id,
        }

    def reset(self) -> None:
        self.credentials = _empty_credentials()
        self.opponent_id = None
        self.solicitor_id = None
        self.contact_ids = []
        self.company_id = None
        self.client_names = []
        self.matter_id = None
