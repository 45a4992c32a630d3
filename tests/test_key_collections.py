# tests/test_key_collections.py
from __future__ import annotations

import threading
from datetime import datetime

import pytest

from tenancy_engine.db import SessionLocal
from tenancy_engine.domain.errors import DuplicateResource, InvalidStateTransition, PreconditionNotMet, Unauthorized
from tenancy_engine.models import Contract, KeyCollection
from tenancy_engine.schemas import KeyCollectionCreate
from tenancy_engine.services.contracts import terminate_contract
from tenancy_engine.services.key_collections import (
    add_key_collection_notes,
    complete_key_collection,
    confirm_attendance,
    create_key_collection,
    get_key_collection_for_contract,
    reschedule_key_collection,
)

WHEN = datetime(2026, 10, 31, 15, 0)


def _schedule(db, p, contract_id, **kw):
    kc = create_key_collection(
        db,
        p,
        KeyCollectionCreate(contract_id=contract_id, collection_date=WHEN, location=kw.pop("location", "Front desk"), **kw),
    )
    db.commit()
    return kc


def test_gate_blocks_scheduling(db, world, signed_contract, pay_event):
    c = signed_contract()
    with pytest.raises(PreconditionNotMet) as ei:
        _schedule(db, world.landlord, c.id)
    assert "deposit" in ei.value.detail
    assert "first_month_rent" in ei.value.detail
    db.rollback()

    pay_event(c.id, "deposit")
    with pytest.raises(PreconditionNotMet) as ei:
        _schedule(db, world.landlord, c.id)
    assert "deposit" not in ei.value.detail


def test_schedule_once_per_contract(db, world, paid_contract):
    c = paid_contract()
    kc = _schedule(db, world.tenant, c.id, notes="I'll bring ID")
    assert kc.status == "scheduled"
    assert kc.tenant_notes == "I'll bring ID"
    assert kc.landlord_notes is None
    assert kc.version == 1

    with pytest.raises(DuplicateResource):
        _schedule(db, world.landlord, c.id)
    db.rollback()

    assert get_key_collection_for_contract(db, world.landlord, c.id).id == kc.id


def test_outsider_cannot_schedule(db, world, paid_contract):
    c = paid_contract()
    with pytest.raises(Unauthorized):
        _schedule(db, world.other_tenant, c.id)


def test_terminated_contract_blocks_scheduling(db, world, paid_contract):
    c = paid_contract()
    terminate_contract(db, world.landlord, c.id, "tenant withdrew")
    db.commit()
    with pytest.raises(PreconditionNotMet) as ei:
        _schedule(db, world.landlord, c.id)
    assert ei.value.current_state == "terminated"


def test_termination_after_scheduling_blocks_handover(db, world, paid_contract):
    c = paid_contract()
    kc = _schedule(db, world.landlord, c.id)
    confirm_attendance(db, world.tenant, kc.id, role="tenant")
    db.commit()

    terminate_contract(db, world.landlord, c.id, "deal fell through")
    db.commit()

    with pytest.raises(PreconditionNotMet) as ei:
        confirm_attendance(db, world.landlord, kc.id, role="landlord")
    assert ei.value.current_state == "terminated"
    db.rollback()
    with pytest.raises(PreconditionNotMet):
        complete_key_collection(db, world.landlord, kc.id)
    db.rollback()
    with pytest.raises(PreconditionNotMet):
        reschedule_key_collection(db, world.tenant, kc.id, location="Back door")
    db.rollback()
    with pytest.raises(PreconditionNotMet):
        add_key_collection_notes(db, world.tenant, kc.id, "still coming?")
    db.rollback()

    row = db.get(KeyCollection, kc.id)
    assert row.status == "scheduled"
    assert row.landlord_confirmed is False
    assert db.get(Contract, c.id).keys_collected is False


def test_dual_confirmation(db, world, paid_contract):
    c = paid_contract()
    kc = _schedule(db, world.landlord, c.id)

    kc = confirm_attendance(db, world.tenant, kc.id, role="tenant")
    db.commit()
    assert kc.status == "scheduled"
    assert kc.tenant_confirmed is True
    assert kc.landlord_confirmed is False
    v = kc.version

    kc = confirm_attendance(db, world.tenant, kc.id, role="tenant")
    db.commit()
    assert kc.version == v

    kc = confirm_attendance(db, world.landlord, kc.id, role="landlord")
    db.commit()
    assert kc.status == "confirmed"
    assert kc.landlord_confirmed and kc.tenant_confirmed


def test_confirm_checks_party(db, world, paid_contract):
    c = paid_contract()
    kc = _schedule(db, world.landlord, c.id)
    with pytest.raises(Unauthorized):
        confirm_attendance(db, world.tenant, kc.id, role="landlord")
    with pytest.raises(Unauthorized):
        confirm_attendance(db, world.admin, kc.id, role="landlord")


def test_complete_requires_confirmation_and_landlord(db, world, paid_contract):
    c = paid_contract()
    kc = _schedule(db, world.landlord, c.id)

    with pytest.raises(InvalidStateTransition):
        complete_key_collection(db, world.landlord, kc.id)
    db.rollback()

    confirm_attendance(db, world.tenant, kc.id, role="tenant")
    confirm_attendance(db, world.landlord, kc.id, role="landlord")
    db.commit()

    with pytest.raises(Unauthorized):
        complete_key_collection(db, world.tenant, kc.id)
    db.rollback()

    kc = complete_key_collection(db, world.landlord, kc.id)
    db.commit()
    assert kc.status == "completed"
    assert kc.completed_at is not None
    contract = db.get(Contract, c.id)
    assert contract.keys_collected is True
    assert contract.keys_collected_at is not None

    with pytest.raises(InvalidStateTransition):
        confirm_attendance(db, world.tenant, kc.id, role="tenant")
    with pytest.raises(InvalidStateTransition):
        add_key_collection_notes(db, world.tenant, kc.id, "thanks")
    with pytest.raises(InvalidStateTransition):
        complete_key_collection(db, world.landlord, kc.id)


def test_reschedule_clears_confirmations(db, world, paid_contract):
    c = paid_contract()
    kc = _schedule(db, world.landlord, c.id)
    confirm_attendance(db, world.tenant, kc.id, role="tenant")
    db.commit()

    later = datetime(2026, 10, 31, 18, 0)
    kc = reschedule_key_collection(db, world.landlord, kc.id, collection_date=later, location="  Side entrance ")
    db.commit()
    assert kc.collection_date == later
    assert kc.location == "Side entrance"
    assert kc.tenant_confirmed is False
    assert kc.status == "scheduled"

    confirm_attendance(db, world.tenant, kc.id, role="tenant")
    confirm_attendance(db, world.landlord, kc.id, role="landlord")
    db.commit()
    with pytest.raises(InvalidStateTransition):
        reschedule_key_collection(db, world.landlord, kc.id, location="elsewhere")


def test_notes_are_per_side(db, world, paid_contract):
    c = paid_contract()
    kc = _schedule(db, world.landlord, c.id)
    add_key_collection_notes(db, world.landlord, kc.id, "ring twice")
    kc = add_key_collection_notes(db, world.tenant, kc.id, "running late")
    db.commit()
    assert kc.landlord_notes == "ring twice"
    assert kc.tenant_notes == "running late"


def test_simultaneous_confirmations_end_confirmed(db, world, paid_contract):
    c = paid_contract()
    kc = _schedule(db, world.landlord, c.id)
    kc_id = kc.id
    db.close()

    barrier = threading.Barrier(2)
    errors: list[BaseException] = []

    def _confirm(p, role):
        s = SessionLocal()
        try:
            barrier.wait(timeout=10)
            confirm_attendance(s, p, kc_id, role=role)
            s.commit()
        except BaseException as e:  # surfaced below
            s.rollback()
            errors.append(e)
        finally:
            s.close()

    threads = [
        threading.Thread(target=_confirm, args=(world.landlord, "landlord")),
        threading.Thread(target=_confirm, args=(world.tenant, "tenant")),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert errors == []
    with SessionLocal() as s:
        row = s.get(KeyCollection, kc_id)
        assert row.landlord_confirmed is True
        assert row.tenant_confirmed is True
        assert row.status == "confirmed"
