# tests/test_end_to_end.py
from __future__ import annotations

from datetime import date, datetime

import pytest
from sqlalchemy import select

from tenancy_engine.domain.audit import audit_trail
from tenancy_engine.domain.errors import PreconditionNotMet
from tenancy_engine.models import AuditEvent, Contract, Property, WorkflowEvent
from tenancy_engine.schemas import (
    AcceptApplication,
    ApplicationCreate,
    ApproveViewing,
    ContractCreate,
    KeyCollectionCreate,
    TenantFeedbackIn,
    ViewingCreate,
)
from tenancy_engine.services.applications import create_application, decide_application
from tenancy_engine.services.contracts import activate_contract, create_contract, sign_contract
from tenancy_engine.services.key_collections import complete_key_collection, confirm_attendance, create_key_collection
from tenancy_engine.services.viewings import (
    create_viewing,
    decide_viewing,
    mark_viewing_outcome,
    submit_viewing_feedback,
)


def test_viewing_to_keys(db, world, pay_event):
    v = create_viewing(
        db, world.tenant, ViewingCreate(property_id=world.property_id, requested_date=date(2026, 10, 20), requested_time_slot="18:00")
    )
    decide_viewing(db, world.landlord, v.id, ApproveViewing(meeting_location="Front door"))
    mark_viewing_outcome(db, world.landlord, v.id, "completed")
    submit_viewing_feedback(db, world.tenant, v.id, TenantFeedbackIn(rating=5, would_apply=True))
    db.commit()

    app = create_application(
        db, world.tenant, ApplicationCreate(property_id=world.property_id, move_in_date=date(2026, 11, 1))
    )
    decide_application(db, world.landlord, app.id, AcceptApplication())
    c = create_contract(db, world.landlord, ContractCreate(application_id=app.id))
    sign_contract(db, world.landlord, c.id, role="landlord", signature="L")
    sign_contract(db, world.tenant, c.id, role="tenant", signature="T")
    db.commit()

    pay_event(c.id, "deposit")
    pay_event(c.id, "rent")

    kc = create_key_collection(
        db,
        world.tenant,
        KeyCollectionCreate(contract_id=c.id, collection_date=datetime(2026, 10, 31, 10, 0), location="Front door"),
    )
    confirm_attendance(db, world.landlord, kc.id, role="landlord")
    confirm_attendance(db, world.tenant, kc.id, role="tenant")
    complete_key_collection(db, world.landlord, kc.id)
    activate_contract(db, world.landlord, c.id)
    db.commit()

    contract = db.get(Contract, c.id)
    assert contract.status == "active"
    assert contract.keys_collected is True
    assert db.get(Property, world.property_id).status == "rented"

    events = set(db.scalars(select(WorkflowEvent.event_type)).all())
    assert {
        "viewing.approved",
        "application.accepted",
        "contract.fully_signed",
        "payment_gate.satisfied",
        "key_collection.confirmed",
        "key_collection.completed",
        "contract.active",
    } <= events

    actions = set(db.scalars(select(AuditEvent.action)).all())
    assert {"application.accept", "contract.landlord_sign", "key_collection.complete"} <= actions


def test_skipping_payments_stops_at_key_collection(db, world, signed_contract):
    c = signed_contract()
    with pytest.raises(PreconditionNotMet) as ei:
        create_key_collection(
            db,
            world.landlord,
            KeyCollectionCreate(contract_id=c.id, collection_date=datetime(2026, 10, 31, 10, 0), location="Desk"),
        )
    assert ei.value.entity_type == "Contract"


def test_audit_trail_records_each_signature(db, world, signed_contract):
    c = signed_contract()
    trail = audit_trail(db, entity_type="Contract", entity_id=c.id)
    assert [e.action for e in trail] == ["contract.tenant_sign", "contract.landlord_sign", "contract.create"]
    assert trail[0].before["status"] == "sent_to_tenant"
    assert trail[0].after["status"] == "fully_signed"
    assert trail[0].actor_user_id == world.tenant.user_id
