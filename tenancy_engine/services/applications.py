# tenancy_engine/services/applications.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..auth import Principal
from ..config import settings
from ..domain.audit import audit_write, snapshot
from ..domain.errors import PreconditionNotMet
from ..domain.transitions import APPLICATION
from ..models import Application
from ..schemas import AcceptApplication, ApplicationCreate, RejectApplication
from .events_facade import wf
from .notifications import notify
from .ownership import (
    must_get_application,
    must_get_property,
    require_landlord,
    require_participant,
    require_role,
    require_tenant_of,
)
from .tenant_scores import compute_tenant_score, tenant_is_verified

log = logging.getLogger("tenancy_engine.applications")

_AUDIT_FIELDS = ("status", "decision_note", "decided_at", "decided_by_user_id")


@dataclass(frozen=True)
class RankedApplication:
    application: Application
    tenant_score: Optional[int]


def create_application(db: Session, p: Principal, payload: ApplicationCreate) -> Application:
    require_role(p, "tenant")

    prop = must_get_property(db, property_id=payload.property_id, lock=True)
    if prop.status != "active":
        raise PreconditionNotMet(
            "property is not accepting applications",
            entity_type="Property",
            entity_id=prop.id,
            current_state=prop.status,
        )
    if settings.require_verified_tenants and not tenant_is_verified(db, p.user_id):
        raise PreconditionNotMet("tenant must be verified to apply", entity_type="AppUser", entity_id=p.user_id)

    row = Application(
        **payload.model_dump(),
        tenant_id=p.user_id,
        landlord_id=int(prop.landlord_id),
        status=APPLICATION.initial,
        created_at=datetime.utcnow(),
    )
    db.add(row)
    db.flush()

    audit_write(
        db,
        actor_user_id=p.user_id,
        action="application.create",
        entity_type="Application",
        entity_id=row.id,
        after=snapshot(row, "property_id", "tenant_id", "landlord_id", "status"),
    )
    wf.emit(
        db,
        property_id=prop.id,
        actor_user_id=p.user_id,
        event_type="application.submitted",
        payload={"application_id": row.id, "tenant_id": p.user_id},
    )
    notify(
        db,
        recipient_id=row.landlord_id,
        event_type="application.submitted",
        subject="New rental application",
        message=f"A tenant applied for {prop.title}.",
        payload={"application_id": row.id, "property_id": prop.id},
    )
    log.info("application created", extra={"application_id": row.id, "property_id": prop.id, "user_id": p.user_id})
    return row


def decide_application(
    db: Session,
    p: Principal,
    application_id: int,
    decision: Union[AcceptApplication, RejectApplication],
) -> Application:
    row = must_get_application(db, application_id=application_id, lock=True)
    require_landlord(p, row)

    event = "accept" if decision.decision == "accept" else "reject"
    new_status = APPLICATION.next_state(row.status, event, entity_id=row.id)

    before = snapshot(row, *_AUDIT_FIELDS)
    row.status = new_status
    row.decision_note = decision.note
    row.decided_at = datetime.utcnow()
    row.decided_by_user_id = p.user_id
    db.add(row)
    db.flush()

    audit_write(
        db,
        actor_user_id=p.user_id,
        action=f"application.{event}",
        entity_type="Application",
        entity_id=row.id,
        before=before,
        after=snapshot(row, *_AUDIT_FIELDS),
    )
    wf.emit(
        db,
        property_id=row.property_id,
        actor_user_id=p.user_id,
        event_type=f"application.{new_status}",
        payload={"application_id": row.id},
    )
    notify(
        db,
        recipient_id=row.tenant_id,
        event_type=f"application.{new_status}",
        subject=f"Your application was {new_status}",
        message=decision.note or f"Your application #{row.id} was {new_status}.",
        payload={"application_id": row.id, "property_id": row.property_id},
    )
    log.info(
        "application decided",
        extra={"application_id": row.id, "to_state": new_status, "user_id": p.user_id},
    )
    return row


def withdraw_application(db: Session, p: Principal, application_id: int) -> Application:
    row = must_get_application(db, application_id=application_id, lock=True)
    require_tenant_of(p, row)

    new_status = APPLICATION.next_state(row.status, "withdraw", entity_id=row.id)
    before = snapshot(row, "status")
    row.status = new_status
    db.add(row)
    db.flush()

    audit_write(
        db,
        actor_user_id=p.user_id,
        action="application.withdraw",
        entity_type="Application",
        entity_id=row.id,
        before=before,
        after=snapshot(row, "status"),
    )
    wf.emit(
        db,
        property_id=row.property_id,
        actor_user_id=p.user_id,
        event_type="application.withdrawn",
        payload={"application_id": row.id},
    )
    notify(
        db,
        recipient_id=row.landlord_id,
        event_type="application.withdrawn",
        subject="Application withdrawn",
        message=f"Application #{row.id} was withdrawn by the tenant.",
        payload={"application_id": row.id},
    )
    log.info("application withdrawn", extra={"application_id": row.id, "user_id": p.user_id})
    return row


def get_application(db: Session, p: Principal, application_id: int) -> Application:
    row = must_get_application(db, application_id=application_id)
    require_participant(p, row)
    return row


def list_property_applications(
    db: Session,
    p: Principal,
    property_id: int,
    *,
    ranked: bool = False,
    status: Optional[str] = None,
) -> list[RankedApplication]:
    """
    Landlord view of a listing's applications.

    ranked=True orders by tenant score (desc), oldest first on ties.
    """
    prop = must_get_property(db, property_id=property_id)
    require_landlord(p, prop)

    q = select(Application).where(Application.property_id == prop.id)
    if status:
        q = q.where(Application.status == status)
    rows = list(db.scalars(q.order_by(Application.created_at.asc(), Application.id.asc())).all())

    if not ranked:
        return [RankedApplication(application=r, tenant_score=None) for r in rows]

    cache: dict[int, int] = {}
    out: list[RankedApplication] = []
    for r in rows:
        tid = int(r.tenant_id)
        if tid not in cache:
            cache[tid] = compute_tenant_score(db, tid).score.total
        out.append(RankedApplication(application=r, tenant_score=cache[tid]))

    out.sort(key=lambda x: (-(x.tenant_score or 0), x.application.created_at, x.application.id))
    return out


def list_my_applications(db: Session, p: Principal) -> list[Application]:
    q = select(Application)
    if p.role == "tenant":
        q = q.where(Application.tenant_id == p.user_id)
    elif not p.is_admin:
        q = q.where(Application.landlord_id == p.user_id)
    return list(db.scalars(q.order_by(Application.id.desc())).all())
