# tenancy_engine/routers/audit.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..db import get_db
from ..domain.audit import audit_trail
from ..domain.errors import Unauthorized
from ..schemas import AuditEventOut, WorkflowEventOut
from ..services.events_facade import wf
from ..services.ownership import must_get_property, require_landlord

router = APIRouter(tags=["audit"])


@router.get("/audit", response_model=list[AuditEventOut])
def list_audit(
    entity_type: Optional[str] = Query(default=None),
    entity_id: Optional[str] = Query(default=None),
    limit: int = Query(default=200, ge=1, le=500),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    if not p.is_admin:
        raise Unauthorized("admin only", entity_type="Principal", entity_id=p.user_id)
    return audit_trail(db, entity_type=entity_type, entity_id=entity_id, limit=limit)


@router.get("/workflow/events", response_model=list[WorkflowEventOut])
def list_workflow_events(
    property_id: int = Query(...),
    event_type: Optional[str] = Query(default=None),
    limit: int = Query(default=200, ge=1, le=500),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    """Lifecycle timeline of one listing, for its landlord or an admin."""
    prop = must_get_property(db, property_id=property_id)
    require_landlord(p, prop)
    return wf.list(db, property_id=prop.id, event_type=event_type, limit=limit)
