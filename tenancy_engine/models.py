# tenancy_engine/models.py
from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


# -----------------------------
# Identity (supplied by the auth collaborator)
# -----------------------------
class AppUser(Base):
    __tablename__ = "app_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(200), nullable=False, unique=True, index=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="tenant")  # tenant|landlord|admin
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    profile: Mapped[Optional["TenantProfile"]] = relationship(back_populates="user", uselist=False)


class TenantProfile(Base):
    __tablename__ = "tenant_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=False, unique=True, index=True)

    rental_history_months: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    employment_status: Mapped[str] = mapped_column(String(20), nullable=False, default="unemployed")
    annual_salary_minor: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # cents
    evictions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    negative_references: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    verification_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # last persisted total; the breakdown is always recomputed from source facts
    tenant_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    user: Mapped["AppUser"] = relationship(back_populates="profile")


class Document(Base):
    """Opaque pointer to a file held by the storage collaborator."""

    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=False, index=True)
    document_type: Mapped[str] = mapped_column(String(20), nullable=False)  # id|income|employment|reference
    url: Mapped[str] = mapped_column(String(500), nullable=False)
    verification_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


# -----------------------------
# Listing
# -----------------------------
class Property(Base):
    __tablename__ = "properties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    landlord_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=False, index=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str] = mapped_column(String(120), nullable=False)

    # pending_verification|active|inactive|rented
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="pending_verification")
    rent_amount_minor: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="EUR")

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    applications: Mapped[List["Application"]] = relationship(back_populates="property")


# -----------------------------
# Lifecycle records
# -----------------------------
class Application(Base):
    __tablename__ = "applications"
    __table_args__ = (Index("ix_applications_property_status", "property_id", "status"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    property_id: Mapped[int] = mapped_column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=False, index=True)
    landlord_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=False, index=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    move_in_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    lease_length_months: Mapped[int] = mapped_column(Integer, nullable=False, default=12)

    share_id_document: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    share_income_document: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    share_employment_document: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    share_references: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    number_of_occupants: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    has_pets: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    pet_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    pet_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    decision_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    decided_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    decided_by_user_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    property: Mapped["Property"] = relationship(back_populates="applications")


class Viewing(Base):
    __tablename__ = "viewings"
    __table_args__ = (
        Index("ix_viewings_slot", "property_id", "requested_date", "requested_time_slot"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    property_id: Mapped[int] = mapped_column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=False, index=True)
    landlord_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=False, index=True)

    # pending|approved|rejected|cancelled|completed|no_show
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)
    requested_date: Mapped[date] = mapped_column(Date, nullable=False)
    requested_time_slot: Mapped[str] = mapped_column(String(50), nullable=False)
    tenant_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    meeting_location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    meeting_instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    landlord_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    feedback: Mapped[Optional["ViewingFeedback"]] = relationship(back_populates="viewing", uselist=False)


class ViewingFeedback(Base):
    __tablename__ = "viewing_feedback"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    viewing_id: Mapped[int] = mapped_column(Integer, ForeignKey("viewings.id"), nullable=False, unique=True, index=True)
    property_id: Mapped[int] = mapped_column(Integer, ForeignKey("properties.id"), nullable=False, index=True)

    tenant_rating: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    tenant_comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tenant_liked_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tenant_disliked_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    would_tenant_apply: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    tenant_submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    landlord_rating: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    landlord_comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    landlord_impression: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    would_landlord_accept: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    landlord_submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    viewing: Mapped["Viewing"] = relationship(back_populates="feedback")


class ViewingAvailability(Base):
    """A day the landlord offers viewings for a property, as a list of slots."""

    __tablename__ = "viewing_availability"
    __table_args__ = (
        Index("ix_viewing_availability_day", "property_id", "available_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    property_id: Mapped[int] = mapped_column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    landlord_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=False, index=True)

    available_date: Mapped[date] = mapped_column(Date, nullable=False)
    time_slots_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")  # ["09:00-10:00", ...]
    max_viewings_per_day: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    is_open: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class Contract(Base):
    __tablename__ = "contracts"
    __table_args__ = (UniqueConstraint("application_id", name="uq_contracts_application"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    application_id: Mapped[int] = mapped_column(Integer, ForeignKey("applications.id"), nullable=False, index=True)
    property_id: Mapped[int] = mapped_column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    landlord_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=False, index=True)
    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=False, index=True)

    # draft|sent_to_tenant|fully_signed|active|terminated
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft", index=True)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    monthly_rent_minor: Mapped[int] = mapped_column(Integer, nullable=False)
    security_deposit_minor: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="EUR")

    terms: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    special_conditions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    document_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    checklist_template_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    landlord_signature: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    landlord_signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    tenant_signature: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tenant_signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # written only by the payment collaborator
    deposit_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deposit_paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    deposit_payment_method: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    deposit_payment_reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    first_month_rent_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    first_month_rent_paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    first_month_rent_payment_method: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    first_month_rent_payment_reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    keys_collected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    keys_collected_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    activated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    terminated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    termination_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    payments: Mapped[List["Payment"]] = relationship(back_populates="contract")


class Payment(Base):
    """Written by the payment collaborator; the engine only reads it."""

    __tablename__ = "payments"
    __table_args__ = (UniqueConstraint("external_reference", name="uq_payments_external_reference"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    contract_id: Mapped[int] = mapped_column(Integer, ForeignKey("contracts.id"), nullable=False, index=True)
    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=False, index=True)
    landlord_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=False, index=True)
    property_id: Mapped[int] = mapped_column(Integer, ForeignKey("properties.id"), nullable=False, index=True)

    payment_type: Mapped[str] = mapped_column(String(20), nullable=False)  # deposit|rent
    amount_minor: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="EUR")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    payment_method: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    external_reference: Mapped[str] = mapped_column(String(255), nullable=False)

    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    contract: Mapped["Contract"] = relationship(back_populates="payments")


class KeyCollection(Base):
    __tablename__ = "key_collections"
    __table_args__ = (UniqueConstraint("contract_id", name="uq_key_collections_contract"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    contract_id: Mapped[int] = mapped_column(Integer, ForeignKey("contracts.id"), nullable=False, index=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="scheduled")  # scheduled|confirmed|completed
    collection_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    location: Mapped[str] = mapped_column(Text, nullable=False)

    landlord_confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    tenant_confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    landlord_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tenant_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


# -----------------------------
# Audit / workflow / outbox
# -----------------------------
class AuditEvent(Base):
    __tablename__ = "audit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    actor_user_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=True)

    action: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(80), nullable=False)

    before_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    after_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class WorkflowEvent(Base):
    __tablename__ = "workflow_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    property_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("properties.id"), nullable=True, index=True)
    actor_user_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=True)

    event_type: Mapped[str] = mapped_column(String(80), nullable=False, index=True)
    payload_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    recipient_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=False, index=True)
    event_type: Mapped[str] = mapped_column(String(80), nullable=False)
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    payload_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    dispatched_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
