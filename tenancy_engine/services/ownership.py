# tenancy_engine/services/ownership.py
from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..auth import Principal
from ..db import begin_write
from ..domain.errors import NotFound, Unauthorized
from ..models import Application, Contract, KeyCollection, Property, Viewing, ViewingAvailability


def _must_get(db: Session, model: Any, row_id: int, *, lock: bool = False) -> Any:
    q = select(model).where(model.id == int(row_id))
    if lock:
        # SQLite compiles FOR UPDATE away; begin_write takes the database lock there.
        begin_write(db)
        q = q.with_for_update()
    row = db.scalar(q)
    if row is None:
        raise NotFound(f"{model.__name__.lower()} not found", entity_type=model.__name__, entity_id=row_id)
    return row


def must_get_property(db: Session, *, property_id: int, lock: bool = False) -> Property:
    return _must_get(db, Property, property_id, lock=lock)


def must_get_application(db: Session, *, application_id: int, lock: bool = False) -> Application:
    return _must_get(db, Application, application_id, lock=lock)


def must_get_viewing(db: Session, *, viewing_id: int, lock: bool = False) -> Viewing:
    return _must_get(db, Viewing, viewing_id, lock=lock)


def must_get_availability(db: Session, *, availability_id: int, lock: bool = False) -> ViewingAvailability:
    return _must_get(db, ViewingAvailability, availability_id, lock=lock)


def must_get_contract(db: Session, *, contract_id: int, lock: bool = False) -> Contract:
    return _must_get(db, Contract, contract_id, lock=lock)


def must_get_key_collection(db: Session, *, key_collection_id: int, lock: bool = False) -> KeyCollection:
    return _must_get(db, KeyCollection, key_collection_id, lock=lock)


def participant_role(p: Principal, row: Any) -> Optional[str]:
    """'landlord' / 'tenant' when the principal is named on the row, else None."""
    if int(getattr(row, "landlord_id", -1)) == p.user_id:
        return "landlord"
    if int(getattr(row, "tenant_id", -1)) == p.user_id:
        return "tenant"
    return None


def require_participant(p: Principal, row: Any, *, allow_admin: bool = True) -> Optional[str]:
    role = participant_role(p, row)
    if role is None and not (allow_admin and p.is_admin):
        raise Unauthorized(
            "not a participant",
            entity_type=type(row).__name__,
            entity_id=getattr(row, "id", None),
        )
    return role


def require_landlord(p: Principal, row: Any, *, allow_admin: bool = True) -> None:
    if int(getattr(row, "landlord_id", -1)) == p.user_id:
        return
    if allow_admin and p.is_admin:
        return
    raise Unauthorized(
        "only the landlord may do this",
        entity_type=type(row).__name__,
        entity_id=getattr(row, "id", None),
    )


def require_tenant_of(p: Principal, row: Any) -> None:
    if int(getattr(row, "tenant_id", -1)) != p.user_id:
        raise Unauthorized(
            "only the tenant may do this",
            entity_type=type(row).__name__,
            entity_id=getattr(row, "id", None),
        )


def require_role(p: Principal, *roles: str) -> None:
    if p.role not in roles:
        raise Unauthorized(f"requires role in {sorted(roles)}", entity_type="Principal", entity_id=p.user_id)
