# tenancy_engine/services/contracts.py
from __future__ import annotations

import calendar
import logging
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth import Principal
from ..domain.audit import audit_write, snapshot
from ..domain.errors import DuplicateResource, PreconditionNotMet, Unauthorized
from ..domain.transitions import CONTRACT, OPEN_CONTRACT_STATES
from ..models import Contract
from ..schemas import ContractCreate
from .events_facade import wf
from .notifications import notify, notify_many
from .ownership import (
    must_get_application,
    must_get_contract,
    must_get_property,
    require_landlord,
    require_participant,
)

log = logging.getLogger("tenancy_engine.contracts")

_AUDIT_FIELDS = (
    "status",
    "landlord_signed_at",
    "tenant_signed_at",
    "activated_at",
    "terminated_at",
    "termination_reason",
)


def add_months(d: date, months: int) -> date:
    """Calendar month arithmetic, clamping to the last day of the target month."""
    m = d.month - 1 + int(months)
    year = d.year + m // 12
    month = m % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def _audit_transition(db: Session, p: Principal, row: Contract, event: str, before: dict[str, Any]) -> None:
    audit_write(
        db,
        actor_user_id=p.user_id,
        action=f"contract.{event}",
        entity_type="Contract",
        entity_id=row.id,
        before=before,
        after=snapshot(row, *_AUDIT_FIELDS),
    )
    wf.emit(
        db,
        property_id=row.property_id,
        actor_user_id=p.user_id,
        event_type=f"contract.{row.status}",
        payload={"contract_id": row.id, "event": event},
    )
    log.info("contract transition", extra={"contract_id": row.id, "to_state": row.status, "user_id": p.user_id})


def create_contract(db: Session, p: Principal, payload: ContractCreate) -> Contract:
    """
    Draft a contract for an accepted application.

    The acceptance check, the one-contract-per-application check and the
    insert share one transaction with the application row locked; the unique
    index on contracts.application_id catches anything that slips past.
    """
    app = must_get_application(db, application_id=payload.application_id, lock=True)
    require_landlord(p, app)

    if app.status != "accepted":
        raise PreconditionNotMet(
            "application must be accepted before a contract is drafted",
            entity_type="Application",
            entity_id=app.id,
            current_state=app.status,
        )

    existing = db.scalar(select(Contract.id).where(Contract.application_id == app.id))
    if existing is not None:
        raise DuplicateResource(
            "a contract already exists for this application",
            entity_type="Contract",
            entity_id=existing,
        )

    prop = must_get_property(db, property_id=app.property_id, lock=True)
    open_id = db.scalar(
        select(Contract.id).where(
            Contract.property_id == prop.id,
            Contract.status.in_(OPEN_CONTRACT_STATES),
        )
    )
    if open_id is not None:
        raise PreconditionNotMet(
            "property already has an open contract",
            entity_type="Contract",
            entity_id=open_id,
        )

    start = payload.start_date or app.move_in_date
    if start is None:
        raise PreconditionNotMet(
            "start_date required: application has no move-in date",
            entity_type="Application",
            entity_id=app.id,
            current_state=app.status,
        )
    end = payload.end_date or add_months(start, int(app.lease_length_months or 12))
    if end <= start:
        raise ValueError("end_date must be after start_date")

    rent = payload.monthly_rent_minor if payload.monthly_rent_minor is not None else int(prop.rent_amount_minor)
    deposit = payload.security_deposit_minor if payload.security_deposit_minor is not None else rent

    row = Contract(
        application_id=app.id,
        property_id=prop.id,
        landlord_id=int(app.landlord_id),
        tenant_id=int(app.tenant_id),
        status=CONTRACT.initial,
        start_date=start,
        end_date=end,
        monthly_rent_minor=int(rent),
        security_deposit_minor=int(deposit),
        currency=payload.currency or prop.currency,
        terms=payload.terms,
        special_conditions=payload.special_conditions,
        document_url=payload.document_url,
        checklist_template_id=payload.checklist_template_id,
        created_at=datetime.utcnow(),
    )
    try:
        with db.begin_nested():
            db.add(row)
            db.flush()
    except IntegrityError:
        raise DuplicateResource(
            "a contract already exists for this application",
            entity_type="Application",
            entity_id=app.id,
        )

    audit_write(
        db,
        actor_user_id=p.user_id,
        action="contract.create",
        entity_type="Contract",
        entity_id=row.id,
        after=snapshot(row, "application_id", "status", "start_date", "end_date", "monthly_rent_minor"),
    )
    wf.emit(
        db,
        property_id=prop.id,
        actor_user_id=p.user_id,
        event_type="contract.draft",
        payload={"contract_id": row.id, "application_id": app.id},
    )
    notify(
        db,
        recipient_id=row.tenant_id,
        event_type="contract.created",
        subject="Your contract is being prepared",
        message=f"A draft contract for {prop.title} was created.",
        payload={"contract_id": row.id},
    )
    log.info("contract created", extra={"contract_id": row.id, "application_id": app.id, "user_id": p.user_id})
    return row


def sign_contract(db: Session, p: Principal, contract_id: int, *, role: str, signature: str) -> Contract:
    row = must_get_contract(db, contract_id=contract_id, lock=True)

    party_id = row.landlord_id if role == "landlord" else row.tenant_id
    if int(party_id) != p.user_id:
        raise Unauthorized(f"only the contract's {role} may sign as {role}", entity_type="Contract", entity_id=row.id)

    event = "landlord_sign" if role == "landlord" else "tenant_sign"
    new_status = CONTRACT.next_state(row.status, event, entity_id=row.id)
    before = snapshot(row, *_AUDIT_FIELDS)

    now = datetime.utcnow()
    row.status = new_status
    if role == "landlord":
        row.landlord_signature = signature
        row.landlord_signed_at = now
    else:
        row.tenant_signature = signature
        row.tenant_signed_at = now
    db.add(row)
    db.flush()

    _audit_transition(db, p, row, event, before)
    if role == "landlord":
        notify(
            db,
            recipient_id=row.tenant_id,
            event_type="contract.sent_to_tenant",
            subject="Contract ready to sign",
            message=f"Contract #{row.id} was signed by the landlord and awaits your signature.",
            payload={"contract_id": row.id},
        )
    else:
        notify_many(
            db,
            recipient_ids=[row.landlord_id, row.tenant_id],
            event_type="contract.fully_signed",
            subject="Contract fully signed",
            message=f"Contract #{row.id} is signed by both parties. Next: deposit and first month's rent.",
            payload={"contract_id": row.id},
        )
    return row


def activate_contract(db: Session, p: Principal, contract_id: int) -> Contract:
    row = must_get_contract(db, contract_id=contract_id, lock=True)
    require_landlord(p, row)

    new_status = CONTRACT.next_state(row.status, "activate", entity_id=row.id)
    before = snapshot(row, *_AUDIT_FIELDS)
    row.status = new_status
    row.activated_at = datetime.utcnow()
    db.add(row)

    prop = must_get_property(db, property_id=row.property_id, lock=True)
    prop.status = "rented"
    db.add(prop)
    db.flush()

    _audit_transition(db, p, row, "activate", before)
    notify(
        db,
        recipient_id=row.tenant_id,
        event_type="contract.active",
        subject="Your tenancy is active",
        message=f"Contract #{row.id} is now active.",
        payload={"contract_id": row.id},
    )
    return row


def terminate_contract(db: Session, p: Principal, contract_id: int, reason: Optional[str] = None) -> Contract:
    row = must_get_contract(db, contract_id=contract_id, lock=True)
    require_landlord(p, row)

    new_status = CONTRACT.next_state(row.status, "terminate", entity_id=row.id)
    before = snapshot(row, *_AUDIT_FIELDS)
    row.status = new_status
    row.terminated_at = datetime.utcnow()
    row.termination_reason = reason
    db.add(row)

    prop = must_get_property(db, property_id=row.property_id, lock=True)
    if prop.status == "rented":
        prop.status = "active"
        db.add(prop)
    db.flush()

    _audit_transition(db, p, row, "terminate", before)
    notify_many(
        db,
        recipient_ids=[row.landlord_id, row.tenant_id],
        event_type="contract.terminated",
        subject="Contract terminated",
        message=reason or f"Contract #{row.id} was terminated.",
        payload={"contract_id": row.id},
    )
    return row


def get_contract(db: Session, p: Principal, contract_id: int) -> Contract:
    row = must_get_contract(db, contract_id=contract_id)
    require_participant(p, row)
    return row


def list_my_contracts(db: Session, p: Principal) -> list[Contract]:
    q = select(Contract)
    if not p.is_admin:
        q = q.where((Contract.tenant_id == p.user_id) | (Contract.landlord_id == p.user_id))
    return list(db.scalars(q.order_by(Contract.id.desc())).all())
