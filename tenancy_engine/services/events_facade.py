# tenancy_engine/services/events_facade.py
from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import WorkflowEvent


def _dumps(v: Any) -> str:
    return json.dumps(v, ensure_ascii=False, default=str)


def _loads(s: Optional[str], default: Any) -> Any:
    if not s:
        return default
    try:
        return json.loads(s)
    except ValueError:
        return default


@dataclass(frozen=True)
class WorkflowEventView:
    id: int
    property_id: Optional[int]
    actor_user_id: Optional[int]
    event_type: str
    payload: dict[str, Any]
    created_at: Optional[datetime]


class WorkflowFacade:
    """
    Small facade used by services that want to emit/query lifecycle events
    without duplicating JSON plumbing.

    Services import:
        from .events_facade import wf

    NOTE: flush-only. The caller's transaction decides whether the event sticks.
    """

    def emit(
        self,
        db: Session,
        *,
        property_id: Optional[int],
        actor_user_id: Optional[int],
        event_type: str,
        payload: dict[str, Any] | None = None,
    ) -> WorkflowEvent:
        if not event_type:
            raise ValueError("event_type required")

        row = WorkflowEvent(
            property_id=int(property_id) if property_id is not None else None,
            actor_user_id=actor_user_id,
            event_type=str(event_type),
            payload_json=_dumps(payload or {}),
            created_at=datetime.utcnow(),
        )
        db.add(row)
        db.flush()
        return row

    def list(
        self,
        db: Session,
        *,
        property_id: Optional[int] = None,
        event_type: Optional[str] = None,
        limit: int = 200,
    ) -> list[WorkflowEventView]:
        q = select(WorkflowEvent).order_by(WorkflowEvent.id.desc())
        if property_id is not None:
            q = q.where(WorkflowEvent.property_id == int(property_id))
        if event_type:
            q = q.where(WorkflowEvent.event_type == str(event_type))

        rows = db.scalars(q.limit(int(limit))).all()
        return [
            WorkflowEventView(
                id=int(r.id),
                property_id=r.property_id,
                actor_user_id=r.actor_user_id,
                event_type=str(r.event_type),
                payload=_loads(r.payload_json, {}),
                created_at=r.created_at,
            )
            for r in rows
        ]


wf = WorkflowFacade()
