# tenancy_engine/workers/notification_tasks.py
from __future__ import annotations

import logging

from ..config import settings
from ..db import SessionLocal
from ..services.notifications import dispatch_pending
from .celery_app import celery_app

log = logging.getLogger("tenancy_engine.workers")


@celery_app.task(name="tenancy_engine.workers.notification_tasks.dispatch_pending_notifications")
def dispatch_pending_notifications(limit: int | None = None) -> dict:
    """Delivers undispatched outbox rows; failed rows stay pending for the next sweep."""
    db = SessionLocal()
    try:
        out = dispatch_pending(db, limit=int(limit or settings.notifications_batch_size))
        log.info("notification sweep", extra={"total": out["sent"]})
        return {"ok": True, **out}
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def enqueue_notification_dispatch() -> bool:
    """
    Called by routers after commit. Without a configured broker the beat
    sweep (or the CLI) picks the rows up later.
    """
    if not settings.celery_broker_url:
        return False
    try:
        dispatch_pending_notifications.delay()
    except Exception:
        log.exception("failed to enqueue notification dispatch")
        return False
    return True
