# tenancy_engine/schemas.py
from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# -------------------- Applications --------------------

class ApplicationCreate(BaseModel):
    property_id: int
    message: Optional[str] = None
    move_in_date: Optional[date] = None
    lease_length_months: int = Field(default=12, ge=1, le=120)

    share_id_document: bool = False
    share_income_document: bool = False
    share_employment_document: bool = False
    share_references: bool = False

    number_of_occupants: int = Field(default=1, ge=1)
    has_pets: bool = False
    pet_type: Optional[str] = None
    pet_count: Optional[int] = Field(default=None, ge=0)


class AcceptApplication(BaseModel):
    decision: Literal["accept"] = "accept"
    note: Optional[str] = None


class RejectApplication(BaseModel):
    decision: Literal["reject"] = "reject"
    note: Optional[str] = None


ApplicationDecision = Annotated[
    Union[AcceptApplication, RejectApplication],
    Field(discriminator="decision"),
]


class ApplicationDecisionIn(BaseModel):
    decision: ApplicationDecision


class ApplicationOut(BaseModel):
    id: int
    property_id: int
    tenant_id: int
    landlord_id: int
    status: str
    message: Optional[str] = None
    move_in_date: Optional[date] = None
    lease_length_months: int

    share_id_document: bool
    share_income_document: bool
    share_employment_document: bool
    share_references: bool

    number_of_occupants: int
    has_pets: bool
    pet_type: Optional[str] = None
    pet_count: Optional[int] = None

    decision_note: Optional[str] = None
    decided_at: Optional[datetime] = None
    decided_by_user_id: Optional[int] = None
    created_at: datetime

    tenant_score: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


# -------------------- Viewings --------------------

class ViewingCreate(BaseModel):
    property_id: int
    requested_date: date
    requested_time_slot: str = Field(min_length=1, max_length=50)
    message: Optional[str] = None


class ApproveViewing(BaseModel):
    decision: Literal["approve"] = "approve"
    meeting_location: str
    meeting_instructions: Optional[str] = None

    @field_validator("meeting_location")
    @classmethod
    def _location_not_blank(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("meeting_location is required to approve a viewing")
        return v


class RejectViewing(BaseModel):
    decision: Literal["reject"] = "reject"
    reason: Optional[str] = None


ViewingDecision = Annotated[
    Union[ApproveViewing, RejectViewing],
    Field(discriminator="decision"),
]


class ViewingDecisionIn(BaseModel):
    decision: ViewingDecision


class ViewingOutcomeIn(BaseModel):
    outcome: Literal["completed", "no_show"]


class ViewingCancelIn(BaseModel):
    reason: Optional[str] = None


class ViewingOut(BaseModel):
    id: int
    property_id: int
    tenant_id: int
    landlord_id: int
    status: str
    requested_date: date
    requested_time_slot: str
    tenant_message: Optional[str] = None
    meeting_location: Optional[str] = None
    meeting_instructions: Optional[str] = None
    landlord_notes: Optional[str] = None
    approved_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TenantFeedbackIn(BaseModel):
    role: Literal["tenant"] = "tenant"
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = None
    liked: List[str] = Field(default_factory=list)
    disliked: List[str] = Field(default_factory=list)
    would_apply: Optional[bool] = None


class LandlordFeedbackIn(BaseModel):
    role: Literal["landlord"] = "landlord"
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = None
    impression: Optional[str] = Field(default=None, max_length=50)
    would_accept: Optional[bool] = None


ViewingFeedbackPayload = Annotated[
    Union[TenantFeedbackIn, LandlordFeedbackIn],
    Field(discriminator="role"),
]


class ViewingFeedbackIn(BaseModel):
    feedback: ViewingFeedbackPayload


class TenantFeedbackOut(BaseModel):
    rating: int
    comment: Optional[str] = None
    liked: List[str] = Field(default_factory=list)
    disliked: List[str] = Field(default_factory=list)
    would_apply: Optional[bool] = None
    submitted_at: Optional[datetime] = None


class LandlordFeedbackOut(BaseModel):
    rating: int
    comment: Optional[str] = None
    impression: Optional[str] = None
    would_accept: Optional[bool] = None
    submitted_at: Optional[datetime] = None


class ViewingFeedbackOut(BaseModel):
    viewing_id: int
    tenant: Optional[TenantFeedbackOut] = None
    landlord: Optional[LandlordFeedbackOut] = None


class LandlordViewingStatsOut(BaseModel):
    total_viewings: int
    pending_viewings: int
    approved_viewings: int
    response_rate: int


class PropertyViewingStatsOut(BaseModel):
    property_id: int
    total_feedback: int
    average_rating: float


def _clean_slots(v: List[str]) -> List[str]:
    out: List[str] = []
    for s in v or []:
        s = (s or "").strip()
        if s and s not in out:
            out.append(s)
    if not out:
        raise ValueError("at least one time slot is required")
    return out


class AvailabilityCreate(BaseModel):
    property_id: int
    available_date: date
    time_slots: List[str]
    max_viewings_per_day: int = Field(default=5, ge=1, le=50)
    notes: Optional[str] = None

    @field_validator("time_slots")
    @classmethod
    def _slots_not_empty(cls, v: List[str]) -> List[str]:
        return _clean_slots(v)


class AvailabilityUpdate(BaseModel):
    time_slots: List[str]
    max_viewings_per_day: Optional[int] = Field(default=None, ge=1, le=50)

    @field_validator("time_slots")
    @classmethod
    def _slots_not_empty(cls, v: List[str]) -> List[str]:
        return _clean_slots(v)


class AvailabilityOut(BaseModel):
    id: int
    property_id: int
    landlord_id: int
    available_date: date
    time_slots: List[str]
    max_viewings_per_day: int
    is_open: bool
    notes: Optional[str] = None
    booked_slots: List[str] = Field(default_factory=list)
    open_slots: List[str] = Field(default_factory=list)
    remaining_viewings: int
    created_at: datetime


# -------------------- Contracts --------------------

class ContractCreate(BaseModel):
    application_id: int
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    monthly_rent_minor: Optional[int] = Field(default=None, ge=0)
    security_deposit_minor: Optional[int] = Field(default=None, ge=0)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    terms: Optional[str] = None
    special_conditions: Optional[str] = None
    document_url: Optional[str] = None
    checklist_template_id: Optional[int] = None

    @model_validator(mode="after")
    def _dates_ordered(self) -> "ContractCreate":
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class ContractSignIn(BaseModel):
    role: Literal["landlord", "tenant"]
    signature: str = Field(min_length=1)


class ContractTerminateIn(BaseModel):
    reason: Optional[str] = None


class ContractOut(BaseModel):
    id: int
    application_id: int
    property_id: int
    landlord_id: int
    tenant_id: int
    status: str

    start_date: date
    end_date: date
    monthly_rent_minor: int
    security_deposit_minor: int
    currency: str

    terms: Optional[str] = None
    special_conditions: Optional[str] = None
    document_url: Optional[str] = None
    checklist_template_id: Optional[int] = None

    landlord_signed_at: Optional[datetime] = None
    tenant_signed_at: Optional[datetime] = None

    deposit_paid: bool
    deposit_paid_at: Optional[datetime] = None
    first_month_rent_paid: bool
    first_month_rent_paid_at: Optional[datetime] = None

    keys_collected: bool
    keys_collected_at: Optional[datetime] = None
    activated_at: Optional[datetime] = None
    terminated_at: Optional[datetime] = None
    termination_reason: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# -------------------- Payments --------------------

class PaymentEventIn(BaseModel):
    contract_id: int
    payment_type: Literal["deposit", "rent"]
    amount_minor: int = Field(ge=0)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    status: Literal["pending", "processing", "completed", "failed", "refunded"]
    external_reference: str = Field(min_length=1, max_length=255)
    payment_method: Optional[str] = None
    due_date: Optional[date] = None
    paid_at: Optional[datetime] = None


class PaymentOut(BaseModel):
    id: int
    contract_id: int
    payment_type: str
    amount_minor: int
    currency: str
    status: str
    payment_method: Optional[str] = None
    external_reference: str
    due_date: Optional[date] = None
    paid_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PaymentGateOut(BaseModel):
    contract_id: Optional[int] = None
    deposit_paid: bool
    deposit_paid_at: Optional[datetime] = None
    first_month_rent_paid: bool
    first_month_rent_paid_at: Optional[datetime] = None
    satisfied: bool
    missing: List[str] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


# -------------------- Key collection --------------------

class KeyCollectionCreate(BaseModel):
    contract_id: int
    collection_date: datetime
    location: str = Field(min_length=1)
    notes: Optional[str] = None


class KeyCollectionConfirmIn(BaseModel):
    role: Literal["landlord", "tenant"]


class KeyCollectionRescheduleIn(BaseModel):
    collection_date: Optional[datetime] = None
    location: Optional[str] = None

    @model_validator(mode="after")
    def _something_changes(self) -> "KeyCollectionRescheduleIn":
        if self.collection_date is None and not (self.location or "").strip():
            raise ValueError("collection_date or location required")
        return self


class KeyCollectionNotesIn(BaseModel):
    notes: str


class KeyCollectionOut(BaseModel):
    id: int
    contract_id: int
    status: str
    collection_date: datetime
    location: str
    landlord_confirmed: bool
    tenant_confirmed: bool
    landlord_notes: Optional[str] = None
    tenant_notes: Optional[str] = None
    completed_at: Optional[datetime] = None
    version: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PaymentIngestOut(BaseModel):
    payment: PaymentOut
    gate: PaymentGateOut
    gate_newly_satisfied: bool
    key_collection: Optional[KeyCollectionOut] = None


# -------------------- Tenant score --------------------

class ScoreComponentOut(BaseModel):
    score: float
    weight: float
    max_score: float


class TenantScoreOut(BaseModel):
    tenant_id: int
    total: int
    tier: str
    label: str
    recommendation: str
    verification_bonus: float
    breakdown: dict[str, ScoreComponentOut]
    factors: dict[str, Any]


class RecalcOut(BaseModel):
    recalculated: int
    engine_version: str


# -------------------- Audit / workflow --------------------

class AuditEventOut(BaseModel):
    id: int
    actor_user_id: Optional[int] = None
    action: str
    entity_type: str
    entity_id: str
    before: Optional[dict[str, Any]] = None
    after: Optional[dict[str, Any]] = None
    created_at: datetime


class WorkflowEventOut(BaseModel):
    id: int
    property_id: Optional[int] = None
    actor_user_id: Optional[int] = None
    event_type: str
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
