# tenancy_engine/services/viewings.py
from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional, Union

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth import Principal
from ..config import settings
from ..db import begin_write
from ..domain.audit import audit_write, snapshot
from ..domain.errors import DuplicateResource, PreconditionNotMet, Unauthorized
from ..domain.transitions import VIEWING
from ..models import Viewing, ViewingAvailability, ViewingFeedback
from ..schemas import (
    ApproveViewing,
    AvailabilityCreate,
    AvailabilityUpdate,
    LandlordFeedbackIn,
    RejectViewing,
    TenantFeedbackIn,
    ViewingCreate,
)
from .events_facade import wf
from .notifications import notify
from .ownership import (
    must_get_availability,
    must_get_property,
    must_get_viewing,
    participant_role,
    require_landlord,
    require_participant,
    require_role,
    require_tenant_of,
)
from .tenant_scores import tenant_is_verified

log = logging.getLogger("tenancy_engine.viewings")

SLOT_TAKEN_NOTE = "Another request was approved for this time slot."

_AUDIT_FIELDS = ("status", "meeting_location", "landlord_notes", "approved_at")


@dataclass(frozen=True)
class FeedbackSides:
    viewing_id: int
    tenant: Optional[dict[str, Any]]
    landlord: Optional[dict[str, Any]]


def _slot_taken(db: Session, v: Any, *, exclude_id: Optional[int] = None) -> bool:
    q = select(Viewing.id).where(
        Viewing.property_id == v.property_id,
        Viewing.requested_date == v.requested_date,
        Viewing.requested_time_slot == v.requested_time_slot,
        Viewing.status == "approved",
    )
    if exclude_id is not None:
        q = q.where(Viewing.id != int(exclude_id))
    return db.scalar(q.limit(1)) is not None


def _approved_slots(db: Session, property_id: int, day: date) -> list[str]:
    rows = db.scalars(
        select(Viewing.requested_time_slot)
        .where(
            Viewing.property_id == int(property_id),
            Viewing.requested_date == day,
            Viewing.status == "approved",
        )
        .order_by(Viewing.id.asc())
    ).all()
    return [str(s) for s in rows]


def _open_windows(db: Session, property_id: int, day: date) -> list[ViewingAvailability]:
    q = select(ViewingAvailability).where(
        ViewingAvailability.property_id == int(property_id),
        ViewingAvailability.available_date == day,
        ViewingAvailability.is_open.is_(True),
    )
    return list(db.scalars(q.order_by(ViewingAvailability.id.asc())).all())


def _offered_slots(db: Session, property_id: int, day: date) -> list[str]:
    """Slots offered by the day's open windows; empty when the landlord published none."""
    out: list[str] = []
    for w in _open_windows(db, property_id, day):
        for s in _loads_list(w.time_slots_json):
            if s not in out:
                out.append(s)
    return out


def _daily_cap(db: Session, property_id: int, day: date) -> Optional[int]:
    caps = [int(w.max_viewings_per_day) for w in _open_windows(db, property_id, day)]
    return max(caps) if caps else None


def _transition(db: Session, p: Principal, row: Viewing, event: str, **changes: Any) -> Viewing:
    new_status = VIEWING.next_state(row.status, event, entity_id=row.id)
    before = snapshot(row, *_AUDIT_FIELDS)

    row.status = new_status
    for k, v in changes.items():
        setattr(row, k, v)
    db.add(row)
    db.flush()

    audit_write(
        db,
        actor_user_id=p.user_id,
        action=f"viewing.{event}",
        entity_type="Viewing",
        entity_id=row.id,
        before=before,
        after=snapshot(row, *_AUDIT_FIELDS),
    )
    wf.emit(
        db,
        property_id=row.property_id,
        actor_user_id=p.user_id,
        event_type=f"viewing.{new_status}",
        payload={"viewing_id": row.id},
    )
    log.info("viewing transition", extra={"viewing_id": row.id, "to_state": new_status, "user_id": p.user_id})
    return row


def create_viewing(db: Session, p: Principal, payload: ViewingCreate) -> Viewing:
    require_role(p, "tenant")
    prop = must_get_property(db, property_id=payload.property_id, lock=True)
    if settings.require_verified_tenants and not tenant_is_verified(db, p.user_id):
        raise PreconditionNotMet("tenant must be verified to request a viewing", entity_type="AppUser", entity_id=p.user_id)

    if _slot_taken(db, payload):
        raise PreconditionNotMet(
            "time slot already booked",
            entity_type="Property",
            entity_id=prop.id,
        )
    offered = _offered_slots(db, prop.id, payload.requested_date)
    if offered and payload.requested_time_slot not in offered:
        raise PreconditionNotMet(
            f"time slot not offered on {payload.requested_date}; open slots: {', '.join(offered)}",
            entity_type="Property",
            entity_id=prop.id,
        )

    row = Viewing(
        property_id=prop.id,
        tenant_id=p.user_id,
        landlord_id=int(prop.landlord_id),
        status=VIEWING.initial,
        requested_date=payload.requested_date,
        requested_time_slot=payload.requested_time_slot,
        tenant_message=payload.message,
        created_at=datetime.utcnow(),
    )
    db.add(row)
    db.flush()

    audit_write(
        db,
        actor_user_id=p.user_id,
        action="viewing.create",
        entity_type="Viewing",
        entity_id=row.id,
        after=snapshot(row, "property_id", "requested_date", "requested_time_slot", "status"),
    )
    wf.emit(
        db,
        property_id=prop.id,
        actor_user_id=p.user_id,
        event_type="viewing.requested",
        payload={"viewing_id": row.id},
    )
    notify(
        db,
        recipient_id=row.landlord_id,
        event_type="viewing.requested",
        subject="New viewing request",
        message=f"Viewing requested for {prop.title} on {row.requested_date} ({row.requested_time_slot}).",
        payload={"viewing_id": row.id, "property_id": prop.id},
    )
    log.info("viewing requested", extra={"viewing_id": row.id, "property_id": prop.id, "user_id": p.user_id})
    return row


def decide_viewing(
    db: Session,
    p: Principal,
    viewing_id: int,
    decision: Union[ApproveViewing, RejectViewing],
) -> Viewing:
    # Property row first: every decision on the listing's slots queues behind it.
    begin_write(db)
    row = must_get_viewing(db, viewing_id=viewing_id)
    require_landlord(p, row)
    must_get_property(db, property_id=row.property_id, lock=True)
    db.refresh(row, with_for_update=True)

    if isinstance(decision, RejectViewing):
        _transition(db, p, row, "reject", landlord_notes=decision.reason)
        notify(
            db,
            recipient_id=row.tenant_id,
            event_type="viewing.rejected",
            subject="Viewing request declined",
            message=decision.reason or "Your viewing request was declined.",
            payload={"viewing_id": row.id},
        )
        return row

    # guard first so an illegal approve reports the state, not the slot
    VIEWING.next_state(row.status, "approve", entity_id=row.id)
    if _slot_taken(db, row, exclude_id=row.id):
        raise PreconditionNotMet(
            "time slot already booked",
            entity_type="Viewing",
            entity_id=row.id,
            current_state=row.status,
        )
    cap = _daily_cap(db, row.property_id, row.requested_date)
    if cap is not None and len(_approved_slots(db, row.property_id, row.requested_date)) >= cap:
        raise PreconditionNotMet(
            f"daily viewing limit of {cap} reached for {row.requested_date}",
            entity_type="Viewing",
            entity_id=row.id,
            current_state=row.status,
        )

    _transition(
        db,
        p,
        row,
        "approve",
        meeting_location=decision.meeting_location,
        meeting_instructions=decision.meeting_instructions,
        approved_at=datetime.utcnow(),
    )
    notify(
        db,
        recipient_id=row.tenant_id,
        event_type="viewing.approved",
        subject="Viewing approved",
        message=f"Meet at {decision.meeting_location} on {row.requested_date} ({row.requested_time_slot}).",
        payload={"viewing_id": row.id},
    )

    competing = db.scalars(
        select(Viewing).where(
            Viewing.property_id == row.property_id,
            Viewing.requested_date == row.requested_date,
            Viewing.requested_time_slot == row.requested_time_slot,
            Viewing.status == "pending",
            Viewing.id != row.id,
        )
    ).all()
    for other in competing:
        _transition(db, p, other, "reject", landlord_notes=SLOT_TAKEN_NOTE)
        notify(
            db,
            recipient_id=other.tenant_id,
            event_type="viewing.rejected",
            subject="Viewing request declined",
            message=SLOT_TAKEN_NOTE,
            payload={"viewing_id": other.id},
        )
    return row


def mark_viewing_outcome(db: Session, p: Principal, viewing_id: int, outcome: str) -> Viewing:
    row = must_get_viewing(db, viewing_id=viewing_id, lock=True)
    require_landlord(p, row, allow_admin=False)

    event = "complete" if outcome == "completed" else "no_show"
    _transition(db, p, row, event)

    if row.status == "completed":
        notify(
            db,
            recipient_id=row.tenant_id,
            event_type="viewing.feedback_requested",
            subject="How was your viewing?",
            message="Tell us what you thought of the property.",
            payload={"viewing_id": row.id, "property_id": row.property_id},
        )
    return row


def cancel_viewing(db: Session, p: Principal, viewing_id: int, reason: Optional[str] = None) -> Viewing:
    row = must_get_viewing(db, viewing_id=viewing_id, lock=True)
    require_tenant_of(p, row)

    _transition(db, p, row, "cancel")
    notify(
        db,
        recipient_id=row.landlord_id,
        event_type="viewing.cancelled",
        subject="Viewing cancelled",
        message=reason or f"Viewing #{row.id} was cancelled by the tenant.",
        payload={"viewing_id": row.id, "reason": reason},
    )
    return row


def get_viewing(db: Session, p: Principal, viewing_id: int) -> Viewing:
    row = must_get_viewing(db, viewing_id=viewing_id)
    require_participant(p, row)
    return row


def list_my_viewings(db: Session, p: Principal) -> list[Viewing]:
    q = select(Viewing)
    if p.role == "tenant":
        q = q.where(Viewing.tenant_id == p.user_id)
    elif not p.is_admin:
        q = q.where(Viewing.landlord_id == p.user_id)
    return list(db.scalars(q.order_by(Viewing.requested_date.desc(), Viewing.id.desc())).all())


# -------------------- feedback --------------------

def _get_or_create_feedback(db: Session, v: Viewing) -> ViewingFeedback:
    fb = db.scalar(select(ViewingFeedback).where(ViewingFeedback.viewing_id == v.id).with_for_update())
    if fb is not None:
        return fb

    fb = ViewingFeedback(viewing_id=v.id, property_id=v.property_id, created_at=datetime.utcnow())
    try:
        with db.begin_nested():
            db.add(fb)
            db.flush()
    except IntegrityError:
        # the other side created it first
        fb = db.scalar(select(ViewingFeedback).where(ViewingFeedback.viewing_id == v.id))
    return fb


def submit_viewing_feedback(
    db: Session,
    p: Principal,
    viewing_id: int,
    feedback: Union[TenantFeedbackIn, LandlordFeedbackIn],
) -> ViewingFeedback:
    v = must_get_viewing(db, viewing_id=viewing_id, lock=True)
    role = participant_role(p, v)
    if role is None or role != feedback.role:
        raise Unauthorized(
            f"{feedback.role} feedback must come from the viewing's {feedback.role}",
            entity_type="Viewing",
            entity_id=v.id,
        )

    fb = _get_or_create_feedback(db, v)
    now = datetime.utcnow()

    if isinstance(feedback, TenantFeedbackIn):
        if fb.tenant_submitted_at is not None:
            raise DuplicateResource("tenant feedback already submitted", entity_type="ViewingFeedback", entity_id=fb.id)
        fb.tenant_rating = feedback.rating
        fb.tenant_comment = feedback.comment
        fb.tenant_liked_json = json.dumps(list(feedback.liked), ensure_ascii=False)
        fb.tenant_disliked_json = json.dumps(list(feedback.disliked), ensure_ascii=False)
        fb.would_tenant_apply = feedback.would_apply
        fb.tenant_submitted_at = now
        recipient = v.landlord_id
    else:
        if fb.landlord_submitted_at is not None:
            raise DuplicateResource("landlord feedback already submitted", entity_type="ViewingFeedback", entity_id=fb.id)
        fb.landlord_rating = feedback.rating
        fb.landlord_comment = feedback.comment
        fb.landlord_impression = feedback.impression
        fb.would_landlord_accept = feedback.would_accept
        fb.landlord_submitted_at = now
        recipient = v.tenant_id

    db.add(fb)
    db.flush()

    audit_write(
        db,
        actor_user_id=p.user_id,
        action=f"viewing_feedback.{role}",
        entity_type="ViewingFeedback",
        entity_id=fb.id,
        after={"viewing_id": v.id, "role": role, "rating": feedback.rating},
    )
    wf.emit(
        db,
        property_id=v.property_id,
        actor_user_id=p.user_id,
        event_type="viewing.feedback_submitted",
        payload={"viewing_id": v.id, "role": role},
    )
    notify(
        db,
        recipient_id=recipient,
        event_type="viewing.feedback_submitted",
        subject="New viewing feedback",
        message=f"The {role} left feedback on viewing #{v.id}.",
        payload={"viewing_id": v.id},
    )
    log.info("viewing feedback submitted", extra={"viewing_id": v.id, "user_id": p.user_id})
    return fb


def _loads_list(s: Optional[str]) -> list[str]:
    if not s:
        return []
    try:
        v = json.loads(s)
    except ValueError:
        return []
    return [str(x) for x in v] if isinstance(v, list) else []


def feedback_sides(viewing_id: int, fb: Optional[ViewingFeedback]) -> FeedbackSides:
    if fb is None:
        return FeedbackSides(viewing_id=viewing_id, tenant=None, landlord=None)

    tenant = None
    if fb.tenant_submitted_at is not None:
        tenant = {
            "rating": fb.tenant_rating,
            "comment": fb.tenant_comment,
            "liked": _loads_list(fb.tenant_liked_json),
            "disliked": _loads_list(fb.tenant_disliked_json),
            "would_apply": fb.would_tenant_apply,
            "submitted_at": fb.tenant_submitted_at,
        }

    landlord = None
    if fb.landlord_submitted_at is not None:
        landlord = {
            "rating": fb.landlord_rating,
            "comment": fb.landlord_comment,
            "impression": fb.landlord_impression,
            "would_accept": fb.would_landlord_accept,
            "submitted_at": fb.landlord_submitted_at,
        }

    return FeedbackSides(viewing_id=viewing_id, tenant=tenant, landlord=landlord)


def get_viewing_feedback(db: Session, p: Principal, viewing_id: int) -> FeedbackSides:
    v = must_get_viewing(db, viewing_id=viewing_id)
    require_participant(p, v, allow_admin=False)
    fb = db.scalar(select(ViewingFeedback).where(ViewingFeedback.viewing_id == v.id))
    return feedback_sides(v.id, fb)


# -------------------- availability --------------------

@dataclass(frozen=True)
class AvailabilityWindow:
    availability: ViewingAvailability
    time_slots: list[str]
    booked_slots: list[str]

    @property
    def open_slots(self) -> list[str]:
        return [s for s in self.time_slots if s not in self.booked_slots]

    @property
    def remaining_viewings(self) -> int:
        return max(0, int(self.availability.max_viewings_per_day) - len(self.booked_slots))


def _window(db: Session, row: ViewingAvailability) -> AvailabilityWindow:
    return AvailabilityWindow(
        availability=row,
        time_slots=_loads_list(row.time_slots_json),
        booked_slots=_approved_slots(db, row.property_id, row.available_date),
    )


def _audit_availability(db: Session, p: Principal, row: ViewingAvailability, action: str, before=None) -> None:
    audit_write(
        db,
        actor_user_id=p.user_id,
        action=f"viewing_availability.{action}",
        entity_type="ViewingAvailability",
        entity_id=row.id,
        before=before,
        after=snapshot(row, "available_date", "time_slots_json", "max_viewings_per_day", "is_open"),
    )


def create_availability(db: Session, p: Principal, payload: AvailabilityCreate) -> AvailabilityWindow:
    prop = must_get_property(db, property_id=payload.property_id, lock=True)
    require_landlord(p, prop)

    row = ViewingAvailability(
        property_id=prop.id,
        landlord_id=int(prop.landlord_id),
        available_date=payload.available_date,
        time_slots_json=json.dumps(list(payload.time_slots), ensure_ascii=False),
        max_viewings_per_day=payload.max_viewings_per_day,
        is_open=True,
        notes=payload.notes,
        created_at=datetime.utcnow(),
    )
    db.add(row)
    db.flush()

    _audit_availability(db, p, row, "create")
    wf.emit(
        db,
        property_id=prop.id,
        actor_user_id=p.user_id,
        event_type="viewing.availability_published",
        payload={"availability_id": row.id, "available_date": str(row.available_date)},
    )
    log.info("viewing availability published", extra={"property_id": prop.id, "user_id": p.user_id})
    return _window(db, row)


def property_availability(db: Session, property_id: int) -> list[AvailabilityWindow]:
    """Open windows for a listing, soonest first, each with the slots already approved."""
    prop = must_get_property(db, property_id=property_id)
    rows = db.scalars(
        select(ViewingAvailability)
        .where(ViewingAvailability.property_id == prop.id, ViewingAvailability.is_open.is_(True))
        .order_by(ViewingAvailability.available_date.asc(), ViewingAvailability.id.asc())
    ).all()
    return [_window(db, r) for r in rows]


def landlord_availability(db: Session, p: Principal) -> list[AvailabilityWindow]:
    require_role(p, "landlord", "admin")
    rows = db.scalars(
        select(ViewingAvailability)
        .where(ViewingAvailability.landlord_id == p.user_id)
        .order_by(ViewingAvailability.available_date.asc(), ViewingAvailability.id.asc())
    ).all()
    return [_window(db, r) for r in rows]


def update_availability(
    db: Session,
    p: Principal,
    availability_id: int,
    payload: AvailabilityUpdate,
) -> AvailabilityWindow:
    row = must_get_availability(db, availability_id=availability_id, lock=True)
    require_landlord(p, row)
    if not row.is_open:
        raise PreconditionNotMet(
            "availability window is closed",
            entity_type="ViewingAvailability",
            entity_id=row.id,
            current_state="closed",
        )

    before = snapshot(row, "available_date", "time_slots_json", "max_viewings_per_day", "is_open")
    row.time_slots_json = json.dumps(list(payload.time_slots), ensure_ascii=False)
    if payload.max_viewings_per_day is not None:
        row.max_viewings_per_day = payload.max_viewings_per_day
    db.add(row)
    db.flush()

    _audit_availability(db, p, row, "update", before)
    return _window(db, row)


def close_availability(db: Session, p: Principal, availability_id: int) -> AvailabilityWindow:
    row = must_get_availability(db, availability_id=availability_id, lock=True)
    require_landlord(p, row)
    if row.is_open:
        row.is_open = False
        db.add(row)
        db.flush()
        _audit_availability(db, p, row, "close")
    return _window(db, row)


def delete_availability(db: Session, p: Principal, availability_id: int) -> None:
    row = must_get_availability(db, availability_id=availability_id, lock=True)
    require_landlord(p, row)
    before = snapshot(row, "property_id", "available_date", "time_slots_json", "is_open")
    audit_write(
        db,
        actor_user_id=p.user_id,
        action="viewing_availability.delete",
        entity_type="ViewingAvailability",
        entity_id=row.id,
        before=before,
    )
    db.delete(row)
    db.flush()


# -------------------- stats --------------------

def _round_half_up(x: float, ndigits: int = 0) -> float:
    m = 10 ** ndigits
    return math.floor(x * m + 0.5) / m


def landlord_viewing_stats(db: Session, p: Principal) -> dict[str, int]:
    require_role(p, "landlord", "admin")
    statuses = db.scalars(
        select(Viewing.status).where(Viewing.landlord_id == p.user_id, Viewing.status != "cancelled")
    ).all()

    total = len(statuses)
    pending = sum(1 for s in statuses if s == "pending")
    approved = sum(1 for s in statuses if s == "approved")
    rate = int(_round_half_up((total - pending) / total * 100)) if total > 0 else 100

    return {
        "total_viewings": total,
        "pending_viewings": pending,
        "approved_viewings": approved,
        "response_rate": rate,
    }


def property_viewing_stats(db: Session, property_id: int) -> dict[str, Any]:
    prop = must_get_property(db, property_id=property_id)
    rows = db.scalars(select(ViewingFeedback).where(ViewingFeedback.property_id == prop.id)).all()

    ratings = [int(r.tenant_rating) for r in rows if r.tenant_rating is not None]
    avg = sum(ratings) / len(ratings) if ratings else 0.0
    return {
        "property_id": prop.id,
        "total_feedback": len(rows),
        "average_rating": _round_half_up(avg, 1),
    }
