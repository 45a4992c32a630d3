# tenancy_engine/routers/applications.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..db import get_db
from ..schemas import ApplicationCreate, ApplicationDecisionIn, ApplicationOut
from ..services import applications as svc
from ..workers.notification_tasks import enqueue_notification_dispatch

router = APIRouter(prefix="/applications", tags=["applications"])


@router.post("", response_model=ApplicationOut)
def create_application(payload: ApplicationCreate, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    row = svc.create_application(db, p, payload)
    db.commit()
    enqueue_notification_dispatch()
    return row


@router.get("", response_model=list[ApplicationOut])
def list_my_applications(db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return svc.list_my_applications(db, p)


@router.get("/by-property/{property_id}", response_model=list[ApplicationOut])
def list_property_applications(
    property_id: int,
    ranked: bool = Query(default=False),
    status: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    rows = svc.list_property_applications(db, p, property_id, ranked=ranked, status=status)
    return [
        ApplicationOut.model_validate(r.application).model_copy(update={"tenant_score": r.tenant_score})
        for r in rows
    ]


@router.get("/{application_id}", response_model=ApplicationOut)
def get_application(application_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return svc.get_application(db, p, application_id)


@router.post("/{application_id}/decision", response_model=ApplicationOut)
def decide_application(
    application_id: int,
    payload: ApplicationDecisionIn,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    row = svc.decide_application(db, p, application_id, payload.decision)
    db.commit()
    enqueue_notification_dispatch()
    return row


@router.post("/{application_id}/withdraw", response_model=ApplicationOut)
def withdraw_application(application_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    row = svc.withdraw_application(db, p, application_id)
    db.commit()
    enqueue_notification_dispatch()
    return row
