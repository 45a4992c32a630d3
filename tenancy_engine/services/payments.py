# tenancy_engine/services/payments.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..auth import Principal
from ..config import settings
from ..domain.audit import audit_write, snapshot
from ..domain.errors import DuplicateResource
from ..domain.payment_gate import PaymentGateStatus, gate_satisfied, payment_gate_status
from ..models import KeyCollection, Payment
from ..schemas import PaymentEventIn
from .events_facade import wf
from .key_collections import auto_schedule_key_collection
from .notifications import notify_many
from .ownership import must_get_contract, require_participant

log = logging.getLogger("tenancy_engine.payments")

_GATE_FIELDS = (
    "deposit_paid",
    "deposit_paid_at",
    "first_month_rent_paid",
    "first_month_rent_paid_at",
)


@dataclass(frozen=True)
class PaymentIngestResult:
    payment: Payment
    gate: PaymentGateStatus
    gate_newly_satisfied: bool
    key_collection: Optional[KeyCollection]


def record_payment_event(db: Session, event: PaymentEventIn) -> PaymentIngestResult:
    """
    Settlement signal from the payment collaborator.

    Upserts by external_reference so redelivery is harmless. Gate flags only
    ever move from False to True.
    """
    contract = must_get_contract(db, contract_id=event.contract_id, lock=True)
    gate_before = gate_satisfied(contract)

    pay = db.scalar(select(Payment).where(Payment.external_reference == event.external_reference))
    if pay is not None and int(pay.contract_id) != int(contract.id):
        raise DuplicateResource(
            "external_reference already used for another contract",
            entity_type="Payment",
            entity_id=pay.id,
        )

    now = datetime.utcnow()
    if pay is None:
        pay = Payment(
            contract_id=contract.id,
            tenant_id=contract.tenant_id,
            landlord_id=contract.landlord_id,
            property_id=contract.property_id,
            payment_type=event.payment_type,
            external_reference=event.external_reference,
            created_at=now,
        )
        action = "payment.create"
    else:
        action = "payment.update"

    pay.amount_minor = int(event.amount_minor)
    pay.currency = event.currency or contract.currency or settings.default_currency
    pay.status = event.status
    if event.payment_method is not None:
        pay.payment_method = event.payment_method
    if event.due_date is not None:
        pay.due_date = event.due_date
    if event.status == "completed":
        pay.paid_at = event.paid_at or pay.paid_at or now
    db.add(pay)
    db.flush()

    before = snapshot(contract, *_GATE_FIELDS)
    if pay.status == "completed":
        paid_at = pay.paid_at or now
        if pay.payment_type == "deposit" and not contract.deposit_paid:
            contract.deposit_paid = True
            contract.deposit_paid_at = paid_at
            contract.deposit_payment_method = pay.payment_method
            contract.deposit_payment_reference = pay.external_reference
        elif pay.payment_type == "rent" and not contract.first_month_rent_paid:
            contract.first_month_rent_paid = True
            contract.first_month_rent_paid_at = paid_at
            contract.first_month_rent_payment_method = pay.payment_method
            contract.first_month_rent_payment_reference = pay.external_reference
        db.add(contract)
        db.flush()

    audit_write(
        db,
        actor_user_id=None,
        action=action,
        entity_type="Payment",
        entity_id=pay.id,
        before=before,
        after={**snapshot(contract, *_GATE_FIELDS), "payment_status": pay.status},
    )
    log.info(
        "payment event recorded",
        extra={"contract_id": contract.id, "payment_id": pay.id, "payment_status": pay.status},
    )

    newly = (not gate_before) and gate_satisfied(contract)
    kc: Optional[KeyCollection] = None
    if newly:
        wf.emit(
            db,
            property_id=contract.property_id,
            actor_user_id=None,
            event_type="payment_gate.satisfied",
            payload={"contract_id": contract.id},
        )
        notify_many(
            db,
            recipient_ids=[contract.landlord_id, contract.tenant_id],
            event_type="payment_gate.satisfied",
            subject="Payments received",
            message="Deposit and first month's rent are settled. Key collection can now be scheduled.",
            payload={"contract_id": contract.id},
        )
        log.info("payment gate satisfied", extra={"contract_id": contract.id})

        if settings.key_collection_auto_schedule:
            kc = auto_schedule_key_collection(db, contract)

    return PaymentIngestResult(
        payment=pay,
        gate=payment_gate_status(contract),
        gate_newly_satisfied=newly,
        key_collection=kc,
    )


def get_payment_gate(db: Session, p: Principal, contract_id: int) -> PaymentGateStatus:
    contract = must_get_contract(db, contract_id=contract_id)
    require_participant(p, contract)
    return payment_gate_status(contract)


def list_contract_payments(db: Session, p: Principal, contract_id: int) -> list[Payment]:
    contract = must_get_contract(db, contract_id=contract_id)
    require_participant(p, contract)
    q = select(Payment).where(Payment.contract_id == contract.id).order_by(Payment.id.asc())
    return list(db.scalars(q).all())
