# tenancy_engine/domain/errors.py
from __future__ import annotations

from typing import Any, Optional


class LifecycleError(Exception):
    """
    Base for every rejected lifecycle operation.

    Each subclass is a distinct kind so callers can decide whether to retry,
    prompt the user, or treat it as fatal. The engine never retries on its own.
    """

    code = "lifecycle_error"
    status_code = 400

    def __init__(
        self,
        detail: str,
        *,
        entity_type: Optional[str] = None,
        entity_id: Optional[Any] = None,
        current_state: Optional[str] = None,
    ) -> None:
        super().__init__(detail)
        self.detail = detail
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.current_state = current_state

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "detail": self.detail,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id is not None else None,
            "current_state": self.current_state,
        }


class InvalidStateTransition(LifecycleError):
    code = "invalid_state_transition"
    status_code = 409


class PreconditionNotMet(LifecycleError):
    code = "precondition_not_met"
    status_code = 412


class DuplicateResource(LifecycleError):
    code = "duplicate_resource"
    status_code = 409


class Unauthorized(LifecycleError):
    code = "unauthorized"
    status_code = 403


class NotFound(LifecycleError):
    code = "not_found"
    status_code = 404
