# tenancy_engine/domain/audit.py
from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import AuditEvent


@dataclass(frozen=True)
class AuditEntry:
    id: int
    actor_user_id: Optional[int]
    action: str
    entity_type: str
    entity_id: str
    before: Optional[dict[str, Any]]
    after: Optional[dict[str, Any]]
    created_at: datetime


def _dumps(v: Optional[dict[str, Any]]) -> Optional[str]:
    if v is None:
        return None
    return json.dumps(v, sort_keys=True, default=str)


def _loads(s: Optional[str]) -> Optional[dict[str, Any]]:
    if not s:
        return None
    try:
        v = json.loads(s)
    except ValueError:
        return None
    return v if isinstance(v, dict) else None


def snapshot(row: Any, *fields: str) -> dict[str, Any]:
    return {f: getattr(row, f, None) for f in fields}


def audit_write(
    db: Session,
    *,
    actor_user_id: Optional[int],
    action: str,
    entity_type: str,
    entity_id: Any,
    before: Optional[dict[str, Any]] = None,
    after: Optional[dict[str, Any]] = None,
) -> AuditEvent:
    """
    Records one lifecycle change in the caller's transaction (flush, never
    commit). actor_user_id is None for system actors such as the payment
    collaborator or auto-scheduling.
    """
    row = AuditEvent(
        actor_user_id=actor_user_id,
        action=str(action),
        entity_type=str(entity_type),
        entity_id=str(entity_id),
        before_json=_dumps(before),
        after_json=_dumps(after),
        created_at=datetime.utcnow(),
    )
    db.add(row)
    db.flush()
    return row


def audit_trail(
    db: Session,
    *,
    entity_type: Optional[str] = None,
    entity_id: Any = None,
    limit: int = 200,
) -> list[AuditEntry]:
    """Newest first."""
    q = select(AuditEvent).order_by(AuditEvent.id.desc())
    if entity_type:
        q = q.where(AuditEvent.entity_type == str(entity_type))
    if entity_id is not None:
        q = q.where(AuditEvent.entity_id == str(entity_id))

    return [
        AuditEntry(
            id=int(r.id),
            actor_user_id=r.actor_user_id,
            action=r.action,
            entity_type=r.entity_type,
            entity_id=r.entity_id,
            before=_loads(r.before_json),
            after=_loads(r.after_json),
            created_at=r.created_at,
        )
        for r in db.scalars(q.limit(int(limit))).all()
    ]
