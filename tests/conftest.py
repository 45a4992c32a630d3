# tests/conftest.py
from __future__ import annotations

import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="tenancy-engine-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["APP_ENV"] = "test"
os.environ["AUTH_MODE"] = "dev"

from dataclasses import dataclass  # noqa: E402
from datetime import date, datetime  # noqa: E402
from typing import Callable  # noqa: E402

import pytest  # noqa: E402

from tenancy_engine.auth import Principal  # noqa: E402
from tenancy_engine.db import Base, SessionLocal, engine  # noqa: E402
from tenancy_engine import models  # noqa: E402,F401
from tenancy_engine.models import AppUser, Property  # noqa: E402
from tenancy_engine.schemas import (  # noqa: E402
    AcceptApplication,
    ApplicationCreate,
    ContractCreate,
    PaymentEventIn,
)
from tenancy_engine.services.applications import create_application, decide_application  # noqa: E402
from tenancy_engine.services.contracts import create_contract, sign_contract  # noqa: E402
from tenancy_engine.services.payments import record_payment_event  # noqa: E402

MOVE_IN = date(2026, 11, 1)


@dataclass(frozen=True)
class World:
    landlord: Principal
    tenant: Principal
    other_tenant: Principal
    other_landlord: Principal
    admin: Principal
    property_id: int


@pytest.fixture(autouse=True)
def _fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture()
def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.rollback()
        s.close()


def mk_user(db, email: str, role: str) -> Principal:
    u = AppUser(email=email, display_name=email.split("@")[0], role=role, created_at=datetime.utcnow())
    db.add(u)
    db.commit()
    return Principal(user_id=int(u.id), email=u.email, role=u.role)


def mk_property(db, landlord_id: int, *, status: str = "active", rent_minor: int = 150_000) -> int:
    p = Property(
        landlord_id=landlord_id,
        title="Canal flat",
        address="Prinsengracht 263",
        city="Amsterdam",
        status=status,
        rent_amount_minor=rent_minor,
        currency="EUR",
    )
    db.add(p)
    db.commit()
    return int(p.id)


@pytest.fixture()
def world(db) -> World:
    landlord = mk_user(db, "landlord@t.local", "landlord")
    tenant = mk_user(db, "tenant@t.local", "tenant")
    other_tenant = mk_user(db, "tenant2@t.local", "tenant")
    other_landlord = mk_user(db, "landlord2@t.local", "landlord")
    admin = mk_user(db, "admin@t.local", "admin")
    pid = mk_property(db, landlord.user_id)
    return World(
        landlord=landlord,
        tenant=tenant,
        other_tenant=other_tenant,
        other_landlord=other_landlord,
        admin=admin,
        property_id=pid,
    )


@pytest.fixture()
def accepted_application(db, world) -> Callable:
    def _make(tenant: Principal | None = None, property_id: int | None = None):
        app = create_application(
            db,
            tenant or world.tenant,
            ApplicationCreate(property_id=property_id or world.property_id, move_in_date=MOVE_IN, lease_length_months=12),
        )
        decide_application(db, world.landlord, app.id, AcceptApplication())
        db.commit()
        return app

    return _make


@pytest.fixture()
def signed_contract(db, world, accepted_application) -> Callable:
    def _make():
        app = accepted_application()
        c = create_contract(db, world.landlord, ContractCreate(application_id=app.id))
        sign_contract(db, world.landlord, c.id, role="landlord", signature="L")
        sign_contract(db, world.tenant, c.id, role="tenant", signature="T")
        db.commit()
        return c

    return _make


def _pay(db, contract_id: int, payment_type: str, *, ref: str | None = None, status: str = "completed", **kw):
    res = record_payment_event(
        db,
        PaymentEventIn(
            contract_id=contract_id,
            payment_type=payment_type,
            amount_minor=kw.pop("amount_minor", 150_000),
            status=status,
            external_reference=ref or f"{payment_type}-{contract_id}",
            **kw,
        ),
    )
    db.commit()
    return res


@pytest.fixture()
def paid_contract(db, signed_contract) -> Callable:
    def _make():
        c = signed_contract()
        _pay(db, c.id, "deposit")
        _pay(db, c.id, "rent")
        return c

    return _make


@pytest.fixture()
def pay_event(db) -> Callable:
    def _make(contract_id: int, payment_type: str, **kw):
        return _pay(db, contract_id, payment_type, **kw)

    return _make


@pytest.fixture()
def make_user(db) -> Callable:
    return lambda email, role: mk_user(db, email, role)


@pytest.fixture()
def make_property(db) -> Callable:
    return lambda landlord_id, **kw: mk_property(db, landlord_id, **kw)
