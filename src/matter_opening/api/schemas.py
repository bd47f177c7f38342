"""Request schemas for the matter-opening API."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from matter_opening.core.models import (
    FORM_VERSION,
    Address,
    ClientInfo,
    CompanyDetails,
    ComplianceFlags,
    MatterDetails,
    MatterOpeningRequest,
    OpponentDetails,
    Operator,
    Party,
    SourceDetails,
    TeamAssignment,
    Verification,
)
from matter_opening.core.normalization import normalize_initials


class AddressPayload(BaseModel):
    house_number: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    county: Optional[str] = None
    post_code: Optional[str] = None
    country: Optional[str] = None

    def to_model(self) -> Address:
        return Address(**self.model_dump())


class PartyPayload(BaseModel):
    title: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_company: bool = False
    company_name: Optional[str] = None
    company_number: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: AddressPayload = Field(default_factory=AddressPayload)

    def to_model(self) -> Party:
        data = self.model_dump(exclude={"address"})
        return Party(address=self.address.to_model(), **data)


class CompanyPayload(BaseModel):
    name: Optional[str] = None
    number: Optional[str] = None
    address: AddressPayload = Field(default_factory=AddressPayload)


class VerificationPayload(BaseModel):
    stage: Optional[str] = None
    check_result: Optional[str] = None
    pep_sanctions_result: Optional[str] = None
    address_verification_result: Optional[str] = None
    check_expiry: Optional[str] = None
    check_id: Optional[str] = None


class ClientPayload(BaseModel):
    poid_id: str = Field(..., min_length=1)
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    best_number: str = ""
    type: str = "individual"
    nationality: Optional[str] = None
    date_of_birth: Optional[str] = None
    address: AddressPayload = Field(default_factory=AddressPayload)
    company_details: Optional[CompanyPayload] = None
    verification: VerificationPayload = Field(default_factory=VerificationPayload)

    def to_model(self) -> ClientInfo:
        company = None
        if self.company_details is not None:
            company = CompanyDetails(
                name=self.company_details.name,
                number=self.company_details.number,
                address=self.company_details.address.to_model(),
            )
        data = self.model_dump(exclude={"address", "company_details", "verification"})
        return ClientInfo(
            address=self.address.to_model(),
            company_details=company,
            verification=Verification(**self.verification.model_dump()),
            **data,
        )


class TeamPayload(BaseModel):
    fee_earner: str = Field(..., min_length=1)
    supervising_partner: str = Field(..., min_length=1)
    originating_solicitor: str = Field(..., min_length=1)
    requesting_user: Optional[str] = None
    fee_earner_initials: Optional[str] = None
    fee_earner_email: Optional[str] = None
    originating_solicitor_initials: Optional[str] = None


class MatterDetailsPayload(BaseModel):
    instruction_ref: Optional[str] = None
    client_type: str = Field(..., min_length=1)
    area_of_work: str = Field(..., min_length=1)
    practice_area: str = Field(..., min_length=1)
    description: str = ""
    client_as_on_file: Optional[str] = None
    dispute_value: Optional[str] = None
    stage: str = "New Matter"
    folder_structure: Optional[str] = None


class OpponentPayload(BaseModel):
    opponent: PartyPayload
    solicitor: Optional[PartyPayload] = None


class SourcePayload(BaseModel):
    source: str = "uncertain"
    referrer_name: Optional[str] = None


class CompliancePayload(BaseModel):
    conflict_check_completed: bool = False
    id_verification_required: bool = True
    pep_sanctions_check_required: bool = True


class MatterOpeningPayload(BaseModel):
    team_assignments: TeamPayload
    matter_details: MatterDetailsPayload
    client_information: List[ClientPayload] = Field(..., min_length=1)
    opponent_details: Optional[OpponentPayload] = None
    source_details: SourcePayload = Field(default_factory=SourcePayload)
    compliance: CompliancePayload = Field(default_factory=CompliancePayload)
    form_version: str = FORM_VERSION

    def to_request(self) -> MatterOpeningRequest:
        opponent = None
        if self.opponent_details is not None:
            opponent = OpponentDetails(
                opponent=self.opponent_details.opponent.to_model(),
                solicitor=self.opponent_details.solicitor.to_model() if self.opponent_details.solicitor else None,
            )
        return MatterOpeningRequest(
            team_assignments=TeamAssignment(**self.team_assignments.model_dump()),
            matter_details=MatterDetails(**self.matter_details.model_dump()),
            client_information=[client.to_model() for client in self.client_information],
            opponent_details=opponent,
            source_details=SourceDetails(**self.source_details.model_dump()),
            compliance=ComplianceFlags(**self.compliance.model_dump()),
            form_version=self.form_version,
        )


class OperatorPayload(BaseModel):
    initials: str = Field(..., min_length=1, max_length=5)
    full_name: Optional[str] = None
    profile: Dict[str, Any] = Field(default_factory=dict)

    def to_operator(self) -> Operator:
        return Operator(
            initials=normalize_initials(self.initials),
            profile=dict(self.profile),
            full_name=self.full_name,
        )


class JobSubmission(BaseModel):
    payload: MatterOpeningPayload
    operator: OperatorPayload
