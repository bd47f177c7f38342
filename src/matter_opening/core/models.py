"""Shared domain models for the matter-opening pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

FORM_VERSION = "3.0"


class StepStatus(Enum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class FailureKind(Enum):
    MISSING_PRECONDITION = "missing_precondition"
    EXTERNAL_REJECTION = "external_rejection"
    TRANSPORT = "transport"
    INTERNAL = "internal"
    CANCELLED = "cancelled"


class IdentifierKind(Enum):
    CONTACT = "contact"
    MATTER = "matter"


class Provider(Enum):
    ACTIVECAMPAIGN = "activecampaign"
    CLIO = "clio"
    ASANA = "asana"

    @property
    def display_name(self) -> str:
        return {
            Provider.ACTIVECAMPAIGN: "ActiveCampaign",
            Provider.CLIO: "Clio",
            Provider.ASANA: "Asana",
        }[self]


@dataclass(frozen=True)
class Address:
    house_number: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    county: Optional[str] = None
    post_code: Optional[str] = None
    country: Optional[str] = None


@dataclass(frozen=True)
class Party:
    """An opponent or their solicitor, recorded for conflict checks."""

    title: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_company: bool = False
    company_name: Optional[str] = None
    company_number: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Address = field(default_factory=Address)

    @property
    def display_name(self) -> str:
        if self.is_company and self.company_name:
            return self.company_name
        name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return name or (self.company_name or "")


@dataclass(frozen=True)
class CompanyDetails:
    name: Optional[str] = None
    number: Optional[str] = None
    address: Address = field(default_factory=Address)


@dataclass(frozen=True)
class Verification:
    stage: Optional[str] = None
    check_result: Optional[str] = None
    pep_sanctions_result: Optional[str] = None
    address_verification_result: Optional[str] = None
    check_expiry: Optional[str] = None
    check_id: Optional[str] = None


@dataclass(frozen=True)
class ClientInfo:
    poid_id: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    best_number: str = ""
    type: str = "individual"
    nationality: Optional[str] = None
    date_of_birth: Optional[str] = None
    address: Address = field(default_factory=Address)
    company_details: Optional[CompanyDetails] = None
    verification: Verification = field(default_factory=Verification)

    @property
    def display_name(self) -> str:
        if self.company_details and self.company_details.name:
            return self.company_details.name
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class TeamAssignment:
    fee_earner: str
    supervising_partner: str
    originating_solicitor: str
    requesting_user: Optional[str] = None
    fee_earner_initials: Optional[str] = None
    fee_earner_email: Optional[str] = None
    originating_solicitor_initials: Optional[str] = None


@dataclass(frozen=True)
class MatterDetails:
    instruction_ref: Optional[str]
    client_type: str
    area_of_work: str
    practice_area: str
    description: str = ""
    client_as_on_file: Optional[str] = None
    dispute_value: Optional[str] = None
    stage: str = "New Matter"
    folder_structure: Optional[str] = None


@dataclass(frozen=True)
class OpponentDetails:
    opponent: Party
    solicitor: Optional[Party] = None


@dataclass(frozen=True)
class SourceDetails:
    source: str = "uncertain"
    referrer_name: Optional[str] = None


@dataclass(frozen=True)
class ComplianceFlags:
    conflict_check_completed: bool = False
    id_verification_required: bool = True
    pep_sanctions_check_required: bool = True


@dataclass(frozen=True)
class MatterOpeningRequest:
    """Everything the wizard collected for one matter, split by the step that reads it."""

    team_assignments: TeamAssignment
    matter_details: MatterDetails
    client_information: List[ClientInfo]
    opponent_details: Optional[OpponentDetails] = None
    source_details: SourceDetails = field(default_factory=SourceDetails)
    compliance: ComplianceFlags = field(default_factory=ComplianceFlags)
    form_version: str = FORM_VERSION

    @property
    def client_display_name(self) -> str:
        if self.matter_details.client_as_on_file:
            return self.matter_details.client_as_on_file
        return ", ".join(client.display_name for client in self.client_information if client.display_name)

    def to_form_data(self, created_by: str) -> Dict[str, Any]:
        details = asdict(self.matter_details)
        details["folder_structure"] = details["folder_structure"] or f"Default / {self.matter_details.area_of_work}"
        details["date_created"] = date.today().isoformat()
        return {
            "matter_details": details,
            "team_assignments": asdict(self.team_assignments),
            "client_information": [asdict(client) for client in self.client_information],
            "source_details": asdict(self.source_details),
            "opponent_details": asdict(self.opponent_details) if self.opponent_details else None,
            "compliance": asdict(self.compliance),
            "metadata": {
                "created_by": created_by,
                "created_at": datetime.now(timezone.utc).isoformat(),
                "form_version": self.form_version,
                "processing_status": "pending_review",
            },
        }

    def summary(self) -> Dict[str, Optional[str]]:
        return {
            "feeEarner": self.team_assignments.fee_earner,
            "partner": self.team_assignments.supervising_partner,
            "originating": self.team_assignments.originating_solicitor,
            "areaOfWork": self.matter_details.area_of_work,
            "practiceArea": self.matter_details.practice_area,
            "clientType": self.matter_details.client_type,
            "clientName": self.client_display_name,
        }


@dataclass(frozen=True)
class Operator:
    """The fee earner running the pipeline, with their profile record."""

    initials: str
    profile: Dict[str, Any] = field(default_factory=dict)
    full_name: Optional[str] = None

    def profile_value(self, *keys: str) -> Optional[str]:
        for key in keys:
            value = self.profile.get(key)
            if value:
                return str(value)
        return None
