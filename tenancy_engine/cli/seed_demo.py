# tenancy_engine/cli/seed_demo.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from ..db import SessionLocal
from ..models import AppUser, Property, TenantProfile


@dataclass(frozen=True)
class SeedResult:
    landlord_email: str
    tenant_email: str
    property_id: Optional[int]


def _get_or_create_user(db: Session, email: str, display_name: str, role: str) -> AppUser:
    row = db.query(AppUser).filter(AppUser.email == email).one_or_none()
    if row:
        return row
    row = AppUser(email=email, display_name=display_name, role=role)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _ensure_profile(db: Session, user_id: int) -> TenantProfile:
    row = db.query(TenantProfile).filter(TenantProfile.user_id == int(user_id)).one_or_none()
    if row:
        return row
    row = TenantProfile(
        user_id=int(user_id),
        rental_history_months=36,
        employment_status="employed",
        annual_salary_minor=4_200_000,
        verification_score=100,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def seed_demo(
    *,
    landlord_email: str,
    tenant_email: str,
    create_sample_property: bool = True,
) -> SeedResult:
    db = SessionLocal()
    try:
        landlord = _get_or_create_user(db, landlord_email, landlord_email.split("@")[0], "landlord")
        tenant = _get_or_create_user(db, tenant_email, tenant_email.split("@")[0], "tenant")
        _ensure_profile(db, tenant.id)

        property_id: Optional[int] = None
        if create_sample_property:
            prop = (
                db.query(Property)
                .filter(Property.landlord_id == landlord.id, Property.title == "Demo flat")
                .one_or_none()
            )
            if prop is None:
                prop = Property(
                    landlord_id=landlord.id,
                    title="Demo flat",
                    address="Keizersgracht 1",
                    city="Amsterdam",
                    status="active",
                    rent_amount_minor=150_000,
                    currency="EUR",
                )
                db.add(prop)
                db.commit()
                db.refresh(prop)
            property_id = int(prop.id)

        return SeedResult(landlord_email=landlord.email, tenant_email=tenant.email, property_id=property_id)
    finally:
        db.close()
