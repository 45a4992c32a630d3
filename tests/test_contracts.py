# tests/test_contracts.py
from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy import func, select

from tenancy_engine.domain.errors import DuplicateResource, InvalidStateTransition, PreconditionNotMet, Unauthorized
from tenancy_engine.models import Contract, Property
from tenancy_engine.schemas import ApplicationCreate, ContractCreate
from tenancy_engine.services.applications import create_application
from tenancy_engine.services.contracts import (
    activate_contract,
    add_months,
    create_contract,
    get_contract,
    sign_contract,
    terminate_contract,
)


def test_add_months_clamps_to_month_end():
    assert add_months(date(2026, 1, 31), 1) == date(2026, 2, 28)
    assert add_months(date(2026, 11, 1), 12) == date(2027, 11, 1)
    assert add_months(date(2027, 12, 15), 2) == date(2028, 2, 15)


def test_contract_requires_accepted_application(db, world):
    app = create_application(db, world.tenant, ApplicationCreate(property_id=world.property_id, move_in_date=date(2026, 11, 1)))
    db.commit()
    with pytest.raises(PreconditionNotMet) as ei:
        create_contract(db, world.landlord, ContractCreate(application_id=app.id))
    assert ei.value.current_state == "pending"


def test_create_contract_defaults(db, world, accepted_application):
    app = accepted_application()
    c = create_contract(db, world.landlord, ContractCreate(application_id=app.id, checklist_template_id=3, document_url="s3://c.pdf"))
    db.commit()

    assert c.status == "draft"
    assert c.monthly_rent_minor == 150_000
    assert c.security_deposit_minor == 150_000
    assert c.currency == "EUR"
    assert c.start_date == date(2026, 11, 1)
    assert c.end_date == date(2027, 11, 1)
    assert c.checklist_template_id == 3
    assert c.tenant_id == world.tenant.user_id


def test_contract_created_once_per_application(db, world, accepted_application):
    app = accepted_application()
    create_contract(db, world.landlord, ContractCreate(application_id=app.id))
    db.commit()

    with pytest.raises(DuplicateResource):
        create_contract(db, world.landlord, ContractCreate(application_id=app.id))
    db.rollback()

    n = db.scalar(select(func.count(Contract.id)).where(Contract.application_id == app.id))
    assert n == 1


def test_one_open_contract_per_property(db, world, accepted_application):
    a1 = accepted_application()
    a2 = accepted_application(tenant=world.other_tenant)
    create_contract(db, world.landlord, ContractCreate(application_id=a1.id))
    db.commit()

    with pytest.raises(PreconditionNotMet):
        create_contract(db, world.landlord, ContractCreate(application_id=a2.id))


def test_only_landlord_drafts(db, world, accepted_application):
    app = accepted_application()
    with pytest.raises(Unauthorized):
        create_contract(db, world.tenant, ContractCreate(application_id=app.id))
    with pytest.raises(Unauthorized):
        create_contract(db, world.other_landlord, ContractCreate(application_id=app.id))


def test_signing_order(db, world, accepted_application):
    app = accepted_application()
    c = create_contract(db, world.landlord, ContractCreate(application_id=app.id))
    db.commit()

    with pytest.raises(InvalidStateTransition):
        sign_contract(db, world.tenant, c.id, role="tenant", signature="T")
    with pytest.raises(Unauthorized):
        sign_contract(db, world.tenant, c.id, role="landlord", signature="T")
    with pytest.raises(Unauthorized):
        sign_contract(db, world.admin, c.id, role="landlord", signature="A")
    db.rollback()

    c = sign_contract(db, world.landlord, c.id, role="landlord", signature="L")
    db.commit()
    assert c.status == "sent_to_tenant"
    assert c.landlord_signed_at is not None

    c = sign_contract(db, world.tenant, c.id, role="tenant", signature="T")
    db.commit()
    assert c.status == "fully_signed"
    assert c.tenant_signature == "T"

    with pytest.raises(InvalidStateTransition):
        sign_contract(db, world.tenant, c.id, role="tenant", signature="again")


def test_activate_and_terminate_move_property(db, world, signed_contract):
    c = signed_contract()

    with pytest.raises(Unauthorized):
        activate_contract(db, world.tenant, c.id)
    db.rollback()

    c = activate_contract(db, world.landlord, c.id)
    db.commit()
    assert c.status == "active"
    assert db.get(Property, world.property_id).status == "rented"

    c = terminate_contract(db, world.admin, c.id, "lease broken")
    db.commit()
    assert c.status == "terminated"
    assert c.termination_reason == "lease broken"
    assert db.get(Property, world.property_id).status == "active"

    with pytest.raises(InvalidStateTransition):
        terminate_contract(db, world.landlord, c.id)


def test_activation_needs_both_signatures(db, world, accepted_application):
    app = accepted_application()
    c = create_contract(db, world.landlord, ContractCreate(application_id=app.id))
    db.commit()
    with pytest.raises(InvalidStateTransition):
        activate_contract(db, world.landlord, c.id)


def test_terminated_contract_frees_property(db, world, accepted_application):
    a1 = accepted_application()
    a2 = accepted_application(tenant=world.other_tenant)
    c1 = create_contract(db, world.landlord, ContractCreate(application_id=a1.id))
    db.commit()
    terminate_contract(db, world.landlord, c1.id)
    db.commit()

    c2 = create_contract(db, world.landlord, ContractCreate(application_id=a2.id))
    db.commit()
    assert c2.status == "draft"


def test_get_contract_scoped_to_parties(db, world, signed_contract):
    c = signed_contract()
    assert get_contract(db, world.tenant, c.id).id == c.id
    with pytest.raises(Unauthorized):
        get_contract(db, world.other_tenant, c.id)
