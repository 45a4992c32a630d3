# tenancy_engine/routers/key_collections.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..db import get_db
from ..schemas import (
    KeyCollectionConfirmIn,
    KeyCollectionCreate,
    KeyCollectionNotesIn,
    KeyCollectionOut,
    KeyCollectionRescheduleIn,
)
from ..services import key_collections as svc
from ..workers.notification_tasks import enqueue_notification_dispatch

router = APIRouter(prefix="/key-collections", tags=["key-collections"])


@router.post("", response_model=KeyCollectionOut)
def create_key_collection(
    payload: KeyCollectionCreate,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    row = svc.create_key_collection(db, p, payload)
    db.commit()
    enqueue_notification_dispatch()
    return row


@router.get("/{key_collection_id}", response_model=KeyCollectionOut)
def get_key_collection(key_collection_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return svc.get_key_collection(db, p, key_collection_id)


@router.post("/{key_collection_id}/confirm", response_model=KeyCollectionOut)
def confirm_attendance(
    key_collection_id: int,
    payload: KeyCollectionConfirmIn,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    row = svc.confirm_attendance(db, p, key_collection_id, role=payload.role)
    db.commit()
    enqueue_notification_dispatch()
    return row


@router.post("/{key_collection_id}/complete", response_model=KeyCollectionOut)
def complete_key_collection(
    key_collection_id: int,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    row = svc.complete_key_collection(db, p, key_collection_id)
    db.commit()
    enqueue_notification_dispatch()
    return row


@router.post("/{key_collection_id}/reschedule", response_model=KeyCollectionOut)
def reschedule_key_collection(
    key_collection_id: int,
    payload: KeyCollectionRescheduleIn,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    row = svc.reschedule_key_collection(
        db,
        p,
        key_collection_id,
        collection_date=payload.collection_date,
        location=payload.location,
    )
    db.commit()
    enqueue_notification_dispatch()
    return row


@router.post("/{key_collection_id}/notes", response_model=KeyCollectionOut)
def add_notes(
    key_collection_id: int,
    payload: KeyCollectionNotesIn,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    row = svc.add_key_collection_notes(db, p, key_collection_id, payload.notes)
    db.commit()
    return row
