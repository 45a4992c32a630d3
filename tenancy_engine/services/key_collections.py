# tenancy_engine/services/key_collections.py
from __future__ import annotations

import logging
from datetime import datetime, time, timedelta
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth import Principal
from ..config import settings
from ..domain.audit import audit_write, snapshot
from ..domain.errors import DuplicateResource, InvalidStateTransition, PreconditionNotMet, Unauthorized
from ..domain.payment_gate import gate_satisfied, payment_gate_status
from ..domain.transitions import KEY_COLLECTION
from ..models import Contract, KeyCollection
from ..schemas import KeyCollectionCreate
from .events_facade import wf
from .notifications import notify, notify_many
from .ownership import (
    must_get_contract,
    must_get_key_collection,
    must_get_property,
    participant_role,
    require_participant,
)

log = logging.getLogger("tenancy_engine.key_collections")

_AUDIT_FIELDS = (
    "status",
    "collection_date",
    "location",
    "landlord_confirmed",
    "tenant_confirmed",
    "completed_at",
    "version",
)


def _contract_party(p: Principal, contract: Contract) -> str:
    role = participant_role(p, contract)
    if role is None:
        raise Unauthorized("not a party to this contract", entity_type="Contract", entity_id=contract.id)
    return role


def _require_live_contract(contract: Contract) -> None:
    if contract.status == "terminated":
        raise PreconditionNotMet(
            "contract is terminated",
            entity_type="Contract",
            entity_id=contract.id,
            current_state=contract.status,
        )


def _insert_guarded(
    db: Session,
    contract: Contract,
    *,
    collection_date: datetime,
    location: str,
    actor_user_id: Optional[int],
    notes_role: Optional[str] = None,
    notes: Optional[str] = None,
) -> KeyCollection:
    """
    Caller holds the contract row lock. Checks gate, termination and
    uniqueness, then inserts inside a savepoint.
    """
    if not gate_satisfied(contract):
        status = payment_gate_status(contract)
        raise PreconditionNotMet(
            f"payment gate not satisfied: missing {', '.join(status.missing)}",
            entity_type="Contract",
            entity_id=contract.id,
            current_state=contract.status,
        )
    _require_live_contract(contract)

    existing = db.scalar(select(KeyCollection.id).where(KeyCollection.contract_id == contract.id))
    if existing is not None:
        raise DuplicateResource(
            "key collection already scheduled for this contract",
            entity_type="KeyCollection",
            entity_id=existing,
        )

    row = KeyCollection(
        contract_id=contract.id,
        status=KEY_COLLECTION.initial,
        collection_date=collection_date,
        location=location,
        landlord_notes=notes if notes_role == "landlord" else None,
        tenant_notes=notes if notes_role == "tenant" else None,
        version=1,
        created_at=datetime.utcnow(),
    )
    try:
        with db.begin_nested():
            db.add(row)
            db.flush()
    except IntegrityError:
        raise DuplicateResource(
            "key collection already scheduled for this contract",
            entity_type="Contract",
            entity_id=contract.id,
        )

    audit_write(
        db,
        actor_user_id=actor_user_id,
        action="key_collection.create",
        entity_type="KeyCollection",
        entity_id=row.id,
        after=snapshot(row, *_AUDIT_FIELDS),
    )
    wf.emit(
        db,
        property_id=contract.property_id,
        actor_user_id=actor_user_id,
        event_type="key_collection.scheduled",
        payload={"key_collection_id": row.id, "contract_id": contract.id},
    )
    notify_many(
        db,
        recipient_ids=[contract.landlord_id, contract.tenant_id],
        event_type="key_collection.scheduled",
        subject="Key collection scheduled",
        message=f"Key collection on {collection_date:%Y-%m-%d %H:%M} at {location}. Please confirm attendance.",
        payload={"key_collection_id": row.id, "contract_id": contract.id},
    )
    log.info("key collection scheduled", extra={"key_collection_id": row.id, "contract_id": contract.id})
    return row


def create_key_collection(db: Session, p: Principal, payload: KeyCollectionCreate) -> KeyCollection:
    contract = must_get_contract(db, contract_id=payload.contract_id, lock=True)
    role = _contract_party(p, contract)
    return _insert_guarded(
        db,
        contract,
        collection_date=payload.collection_date,
        location=payload.location,
        actor_user_id=p.user_id,
        notes_role=role,
        notes=payload.notes,
    )


def auto_schedule_key_collection(db: Session, contract: Contract) -> Optional[KeyCollection]:
    """
    System-initiated scheduling once the gate opens. An existing collection
    is returned untouched.
    """
    existing = db.scalar(select(KeyCollection).where(KeyCollection.contract_id == contract.id))
    if existing is not None:
        return existing
    if contract.status == "terminated" or not gate_satisfied(contract):
        return None

    prop = must_get_property(db, property_id=contract.property_id)
    when = datetime.combine(
        contract.start_date - timedelta(days=1),
        time(hour=int(settings.key_collection_default_hour)),
    )
    return _insert_guarded(db, contract, collection_date=when, location=prop.address, actor_user_id=None)


def confirm_attendance(db: Session, p: Principal, key_collection_id: int, *, role: str) -> KeyCollection:
    """
    Each side writes only its own flag. The move to 'confirmed' is a separate
    conditional UPDATE evaluated against the row as it stands after the flag
    write, so two parties confirming at once always end in 'confirmed'.
    """
    kc = must_get_key_collection(db, key_collection_id=key_collection_id, lock=True)
    contract = must_get_contract(db, contract_id=kc.contract_id)

    party_id = contract.landlord_id if role == "landlord" else contract.tenant_id
    if int(party_id) != p.user_id:
        raise Unauthorized(f"only the contract's {role} may confirm as {role}", entity_type="KeyCollection", entity_id=kc.id)
    _require_live_contract(contract)

    if kc.status == "completed":
        raise InvalidStateTransition(
            "key collection already completed",
            entity_type="KeyCollection",
            entity_id=kc.id,
            current_state=kc.status,
        )

    flag = KeyCollection.landlord_confirmed if role == "landlord" else KeyCollection.tenant_confirmed
    if kc.status == "confirmed" or bool(getattr(kc, flag.key)):
        return kc

    res = db.execute(
        update(KeyCollection)
        .where(KeyCollection.id == kc.id, KeyCollection.status != "completed")
        .values({flag: True, KeyCollection.version: KeyCollection.version + 1, KeyCollection.updated_at: datetime.utcnow()})
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 0:
        db.refresh(kc)
        raise InvalidStateTransition(
            "key collection already completed",
            entity_type="KeyCollection",
            entity_id=kc.id,
            current_state=kc.status,
        )

    confirmed_state = KEY_COLLECTION.next_state("scheduled", "confirm")
    flipped = db.execute(
        update(KeyCollection)
        .where(
            KeyCollection.id == kc.id,
            KeyCollection.status == "scheduled",
            KeyCollection.landlord_confirmed.is_(True),
            KeyCollection.tenant_confirmed.is_(True),
        )
        .values(
            {
                KeyCollection.status: confirmed_state,
                KeyCollection.version: KeyCollection.version + 1,
                KeyCollection.updated_at: datetime.utcnow(),
            }
        )
        .execution_options(synchronize_session=False)
    ).rowcount
    db.refresh(kc)

    audit_write(
        db,
        actor_user_id=p.user_id,
        action=f"key_collection.confirm_{role}",
        entity_type="KeyCollection",
        entity_id=kc.id,
        after=snapshot(kc, *_AUDIT_FIELDS),
    )
    log.info("key collection attendance confirmed", extra={"key_collection_id": kc.id, "user_id": p.user_id})

    if flipped:
        wf.emit(
            db,
            property_id=contract.property_id,
            actor_user_id=p.user_id,
            event_type="key_collection.confirmed",
            payload={"key_collection_id": kc.id, "contract_id": contract.id},
        )
        notify_many(
            db,
            recipient_ids=[contract.landlord_id, contract.tenant_id],
            event_type="key_collection.confirmed",
            subject="Key collection confirmed",
            message=f"Both parties confirmed the key collection on {kc.collection_date:%Y-%m-%d %H:%M}.",
            payload={"key_collection_id": kc.id},
        )
        log.info("key collection confirmed", extra={"key_collection_id": kc.id, "to_state": kc.status})
    else:
        other = contract.tenant_id if role == "landlord" else contract.landlord_id
        notify(
            db,
            recipient_id=other,
            event_type="key_collection.attendance_confirmed",
            subject="Attendance confirmed",
            message=f"The {role} confirmed attendance for the key collection.",
            payload={"key_collection_id": kc.id},
        )
    return kc


def complete_key_collection(db: Session, p: Principal, key_collection_id: int) -> KeyCollection:
    kc = must_get_key_collection(db, key_collection_id=key_collection_id, lock=True)
    contract = must_get_contract(db, contract_id=kc.contract_id, lock=True)
    if int(contract.landlord_id) != p.user_id:
        raise Unauthorized("only the landlord may complete key collection", entity_type="KeyCollection", entity_id=kc.id)
    _require_live_contract(contract)

    new_status = KEY_COLLECTION.next_state(kc.status, "complete", entity_id=kc.id)
    before = snapshot(kc, *_AUDIT_FIELDS)
    now = datetime.utcnow()

    kc.status = new_status
    kc.completed_at = now
    kc.version = int(kc.version or 1) + 1
    contract.keys_collected = True
    contract.keys_collected_at = now
    db.add_all([kc, contract])
    db.flush()

    audit_write(
        db,
        actor_user_id=p.user_id,
        action="key_collection.complete",
        entity_type="KeyCollection",
        entity_id=kc.id,
        before=before,
        after=snapshot(kc, *_AUDIT_FIELDS),
    )
    wf.emit(
        db,
        property_id=contract.property_id,
        actor_user_id=p.user_id,
        event_type="key_collection.completed",
        payload={"key_collection_id": kc.id, "contract_id": contract.id},
    )
    notify(
        db,
        recipient_id=contract.tenant_id,
        event_type="key_collection.completed",
        subject="Welcome home",
        message="Keys handed over. Welcome to your new home.",
        payload={"key_collection_id": kc.id, "contract_id": contract.id},
    )
    log.info("key collection completed", extra={"key_collection_id": kc.id, "contract_id": contract.id})
    return kc


def reschedule_key_collection(
    db: Session,
    p: Principal,
    key_collection_id: int,
    *,
    collection_date: Optional[datetime] = None,
    location: Optional[str] = None,
) -> KeyCollection:
    kc = must_get_key_collection(db, key_collection_id=key_collection_id, lock=True)
    contract = must_get_contract(db, contract_id=kc.contract_id)
    role = _contract_party(p, contract)
    _require_live_contract(contract)

    KEY_COLLECTION.next_state(kc.status, "reschedule", entity_id=kc.id)
    before = snapshot(kc, *_AUDIT_FIELDS)

    if collection_date is not None:
        kc.collection_date = collection_date
    if location and location.strip():
        kc.location = location.strip()
    kc.landlord_confirmed = False
    kc.tenant_confirmed = False
    kc.version = int(kc.version or 1) + 1
    db.add(kc)
    db.flush()

    audit_write(
        db,
        actor_user_id=p.user_id,
        action="key_collection.reschedule",
        entity_type="KeyCollection",
        entity_id=kc.id,
        before=before,
        after=snapshot(kc, *_AUDIT_FIELDS),
    )
    wf.emit(
        db,
        property_id=contract.property_id,
        actor_user_id=p.user_id,
        event_type="key_collection.rescheduled",
        payload={"key_collection_id": kc.id},
    )
    other = contract.tenant_id if role == "landlord" else contract.landlord_id
    notify(
        db,
        recipient_id=other,
        event_type="key_collection.rescheduled",
        subject="Key collection rescheduled",
        message=f"New time: {kc.collection_date:%Y-%m-%d %H:%M} at {kc.location}. Please confirm again.",
        payload={"key_collection_id": kc.id},
    )
    log.info("key collection rescheduled", extra={"key_collection_id": kc.id, "user_id": p.user_id})
    return kc


def add_key_collection_notes(db: Session, p: Principal, key_collection_id: int, notes: str) -> KeyCollection:
    kc = must_get_key_collection(db, key_collection_id=key_collection_id, lock=True)
    contract = must_get_contract(db, contract_id=kc.contract_id)
    role = _contract_party(p, contract)
    _require_live_contract(contract)

    KEY_COLLECTION.next_state(kc.status, "add_notes", entity_id=kc.id)
    if role == "landlord":
        kc.landlord_notes = notes
    else:
        kc.tenant_notes = notes
    db.add(kc)
    db.flush()

    audit_write(
        db,
        actor_user_id=p.user_id,
        action=f"key_collection.notes_{role}",
        entity_type="KeyCollection",
        entity_id=kc.id,
    )
    return kc


def get_key_collection(db: Session, p: Principal, key_collection_id: int) -> KeyCollection:
    kc = must_get_key_collection(db, key_collection_id=key_collection_id)
    contract = must_get_contract(db, contract_id=kc.contract_id)
    require_participant(p, contract)
    return kc


def get_key_collection_for_contract(db: Session, p: Principal, contract_id: int) -> Optional[KeyCollection]:
    contract = must_get_contract(db, contract_id=contract_id)
    require_participant(p, contract)
    return db.scalar(select(KeyCollection).where(KeyCollection.contract_id == contract.id))
