# tenancy_engine/services/notifications.py
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import Notification

log = logging.getLogger("tenancy_engine.notifications")


def notify(
    db: Session,
    *,
    recipient_id: int,
    event_type: str,
    subject: str,
    message: str,
    payload: Optional[dict[str, Any]] = None,
) -> Notification:
    """
    Outbox write. The row commits (or rolls back) with the transition that
    produced it; delivery happens later in the worker.
    """
    row = Notification(
        recipient_id=int(recipient_id),
        event_type=str(event_type),
        subject=subject,
        message=message,
        payload_json=json.dumps(payload or {}, ensure_ascii=False, default=str),
        created_at=datetime.utcnow(),
    )
    db.add(row)
    db.flush()
    return row


def notify_many(
    db: Session,
    *,
    recipient_ids: Sequence[int],
    event_type: str,
    subject: str,
    message: str,
    payload: Optional[dict[str, Any]] = None,
) -> list[Notification]:
    seen: set[int] = set()
    out: list[Notification] = []
    for rid in recipient_ids:
        if rid in seen:
            continue
        seen.add(rid)
        out.append(
            notify(db, recipient_id=rid, event_type=event_type, subject=subject, message=message, payload=payload)
        )
    return out


def pending_notifications(db: Session, *, limit: int = 200) -> list[Notification]:
    q = (
        select(Notification)
        .where(Notification.dispatched_at.is_(None))
        .order_by(Notification.id.asc())
        .limit(int(limit))
    )
    return list(db.scalars(q).all())


def deliver(row: Notification) -> None:
    """
    Hand-off point to the messaging transport (email, push, in-app).

    The transport is an external collaborator; here delivery is a log line.
    """
    log.info(
        "notification delivered",
        extra={"user_id": row.recipient_id, "event_type": row.event_type, "notification_id": row.id},
    )


def dispatch_pending(db: Session, *, limit: int = 200) -> dict[str, int]:
    sent = 0
    failed = 0
    for row in pending_notifications(db, limit=limit):
        try:
            deliver(row)
        except Exception:
            # left undelivered for the next sweep
            failed += 1
            log.exception("notification delivery failed", extra={"notification_id": row.id})
            continue
        row.dispatched_at = datetime.utcnow()
        db.add(row)
        sent += 1
    db.commit()
    return {"sent": sent, "failed": failed}
