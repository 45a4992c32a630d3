# tenancy_engine/routers/payments.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import require_payment_collaborator
from ..db import get_db
from ..schemas import KeyCollectionOut, PaymentEventIn, PaymentGateOut, PaymentIngestOut, PaymentOut
from ..services.payments import record_payment_event
from ..workers.notification_tasks import enqueue_notification_dispatch

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/events", response_model=PaymentIngestOut, dependencies=[Depends(require_payment_collaborator)])
def payment_event(payload: PaymentEventIn, db: Session = Depends(get_db)):
    """Settlement webhook for the payment collaborator. Redelivery is idempotent."""
    res = record_payment_event(db, payload)
    db.commit()
    enqueue_notification_dispatch()
    return PaymentIngestOut(
        payment=PaymentOut.model_validate(res.payment),
        gate=PaymentGateOut.model_validate(res.gate),
        gate_newly_satisfied=res.gate_newly_satisfied,
        key_collection=KeyCollectionOut.model_validate(res.key_collection) if res.key_collection else None,
    )
