# tenancy_engine/routers/viewings.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..db import get_db
from ..schemas import (
    AvailabilityCreate,
    AvailabilityOut,
    AvailabilityUpdate,
    LandlordViewingStatsOut,
    PropertyViewingStatsOut,
    ViewingCancelIn,
    ViewingCreate,
    ViewingDecisionIn,
    ViewingFeedbackIn,
    ViewingFeedbackOut,
    ViewingOut,
    ViewingOutcomeIn,
)
from ..services import viewings as svc
from ..workers.notification_tasks import enqueue_notification_dispatch

router = APIRouter(prefix="/viewings", tags=["viewings"])


def _feedback_out(sides: svc.FeedbackSides) -> ViewingFeedbackOut:
    return ViewingFeedbackOut(viewing_id=sides.viewing_id, tenant=sides.tenant, landlord=sides.landlord)


@router.post("", response_model=ViewingOut)
def create_viewing(payload: ViewingCreate, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    row = svc.create_viewing(db, p, payload)
    db.commit()
    enqueue_notification_dispatch()
    return row


@router.get("", response_model=list[ViewingOut])
def list_my_viewings(db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return svc.list_my_viewings(db, p)


@router.get("/stats/landlord", response_model=LandlordViewingStatsOut)
def landlord_stats(db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return svc.landlord_viewing_stats(db, p)


@router.get("/stats/property/{property_id}", response_model=PropertyViewingStatsOut)
def property_stats(property_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return svc.property_viewing_stats(db, property_id)


def _availability_out(w: svc.AvailabilityWindow) -> AvailabilityOut:
    a = w.availability
    return AvailabilityOut(
        id=a.id,
        property_id=a.property_id,
        landlord_id=a.landlord_id,
        available_date=a.available_date,
        time_slots=w.time_slots,
        max_viewings_per_day=a.max_viewings_per_day,
        is_open=a.is_open,
        notes=a.notes,
        booked_slots=w.booked_slots,
        open_slots=w.open_slots,
        remaining_viewings=w.remaining_viewings,
        created_at=a.created_at,
    )


@router.post("/availability", response_model=AvailabilityOut)
def create_availability(payload: AvailabilityCreate, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    w = svc.create_availability(db, p, payload)
    db.commit()
    return _availability_out(w)


@router.get("/availability/mine", response_model=list[AvailabilityOut])
def my_availability(db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return [_availability_out(w) for w in svc.landlord_availability(db, p)]


@router.get("/availability/property/{property_id}", response_model=list[AvailabilityOut])
def property_availability(property_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return [_availability_out(w) for w in svc.property_availability(db, property_id)]


@router.put("/availability/{availability_id}", response_model=AvailabilityOut)
def update_availability(
    availability_id: int,
    payload: AvailabilityUpdate,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    w = svc.update_availability(db, p, availability_id, payload)
    db.commit()
    return _availability_out(w)


@router.post("/availability/{availability_id}/close", response_model=AvailabilityOut)
def close_availability(availability_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    w = svc.close_availability(db, p, availability_id)
    db.commit()
    return _availability_out(w)


@router.delete("/availability/{availability_id}", status_code=204)
def delete_availability(availability_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    svc.delete_availability(db, p, availability_id)
    db.commit()
    return Response(status_code=204)


@router.get("/{viewing_id}", response_model=ViewingOut)
def get_viewing(viewing_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return svc.get_viewing(db, p, viewing_id)


@router.post("/{viewing_id}/decision", response_model=ViewingOut)
def decide_viewing(
    viewing_id: int,
    payload: ViewingDecisionIn,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    row = svc.decide_viewing(db, p, viewing_id, payload.decision)
    db.commit()
    enqueue_notification_dispatch()
    return row


@router.post("/{viewing_id}/outcome", response_model=ViewingOut)
def mark_outcome(
    viewing_id: int,
    payload: ViewingOutcomeIn,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    row = svc.mark_viewing_outcome(db, p, viewing_id, payload.outcome)
    db.commit()
    enqueue_notification_dispatch()
    return row


@router.post("/{viewing_id}/cancel", response_model=ViewingOut)
def cancel_viewing(
    viewing_id: int,
    payload: ViewingCancelIn,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    row = svc.cancel_viewing(db, p, viewing_id, payload.reason)
    db.commit()
    enqueue_notification_dispatch()
    return row


@router.post("/{viewing_id}/feedback", response_model=ViewingFeedbackOut)
def submit_feedback(
    viewing_id: int,
    payload: ViewingFeedbackIn,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    fb = svc.submit_viewing_feedback(db, p, viewing_id, payload.feedback)
    db.commit()
    enqueue_notification_dispatch()
    return _feedback_out(svc.feedback_sides(viewing_id, fb))


@router.get("/{viewing_id}/feedback", response_model=ViewingFeedbackOut)
def get_feedback(viewing_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return _feedback_out(svc.get_viewing_feedback(db, p, viewing_id))
