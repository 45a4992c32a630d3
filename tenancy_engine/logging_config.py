# tenancy_engine/logging_config.py
from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

from .middleware.request_id import get_request_id

# Lifecycle services log with extra={...}; these keys are copied onto the JSON line.
_EXTRA_KEYS = (
    "user_id",
    "property_id",
    "application_id",
    "viewing_id",
    "contract_id",
    "payment_id",
    "payment_status",
    "key_collection_id",
    "notification_id",
    "event_type",
    "to_state",
    "total",
    # request log line
    "method",
    "path",
    "status_code",
    "latency_ms",
    "user_email",
    "error_code",
    "current_state",
)


class JsonFormatter(logging.Formatter):
    """One JSON object per record, tagged with the current request id."""

    def format(self, record: logging.LogRecord) -> str:
        out: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        rid = getattr(record, "request_id", None) or get_request_id()
        if rid:
            out["request_id"] = rid

        for k in _EXTRA_KEYS:
            v = getattr(record, k, None)
            if v is not None:
                out[k] = v

        if record.exc_info:
            out["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(out, ensure_ascii=False, default=str)


def configure_logging(level: str | None = None) -> None:
    lvl = (level or os.getenv("LOG_LEVEL") or "INFO").upper()

    root = logging.getLogger()
    root.setLevel(lvl)

    # uvicorn --reload calls this again
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(lvl)
    logging.getLogger("sqlalchemy.engine").setLevel((os.getenv("SQL_LOG_LEVEL") or "WARNING").upper())
    # the per-request line already covers access logging
    logging.getLogger("uvicorn.access").propagate = False
