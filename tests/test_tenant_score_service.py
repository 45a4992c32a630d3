# tests/test_tenant_score_service.py
from __future__ import annotations

from datetime import date, datetime

import pytest

from tenancy_engine.domain.errors import NotFound
from tenancy_engine.models import Document, TenantProfile
from tenancy_engine.services.tenant_scores import (
    compute_tenant_score,
    gather_tenant_score_factors,
    recalculate_all_scores,
    tenant_is_verified,
)


def test_no_profile_scores_zero(db, world):
    res = compute_tenant_score(db, world.tenant.user_id)
    assert res.score.total == 0
    assert res.score.tier == "poor"
    assert res.factors.employment_status == "unemployed"


def test_unknown_tenant(db):
    with pytest.raises(NotFound):
        gather_tenant_score_factors(db, 4040)


def test_factors_come_from_stored_facts(db, world):
    uid = world.tenant.user_id
    db.add(
        TenantProfile(
            user_id=uid,
            rental_history_months=36,
            employment_status="Employed",
            annual_salary_minor=4_200_000,
            negative_references=1,
        )
    )
    db.add_all(
        [
            Document(user_id=uid, document_type="reference", url="s3://r1", verification_status="verified"),
            Document(user_id=uid, document_type="reference", url="s3://r2", verification_status="verified"),
            Document(user_id=uid, document_type="reference", url="s3://r3", verification_status="pending"),
        ]
    )
    db.commit()

    f = gather_tenant_score_factors(db, uid)
    assert f.annual_salary == 42_000.0
    assert f.positive_references == 2
    assert f.negative_references == 1
    assert f.is_verified is True

    res = compute_tenant_score(db, uid)
    # 18 + 20 + 20 + 0 + 10 + 5
    assert res.score.total == 73
    assert res.score.tier == "good"
    assert compute_tenant_score(db, uid).score == res.score


def test_payments_feed_the_score(db, world, signed_contract, pay_event):
    c = signed_contract()
    pay_event(c.id, "deposit", due_date=date(2026, 10, 1), paid_at=datetime(2026, 9, 30, 9, 0))
    pay_event(c.id, "rent", due_date=date(2026, 11, 1), paid_at=datetime(2026, 11, 3, 9, 0))

    f = gather_tenant_score_factors(db, world.tenant.user_id)
    assert (f.on_time_payments, f.late_payments) == (1, 1)
    assert compute_tenant_score(db, world.tenant.user_id).score.payment_history.score == 10.0


def test_persist_and_recalculate(db, world):
    db.add(TenantProfile(user_id=world.tenant.user_id, rental_history_months=10, employment_status="student"))
    db.commit()

    compute_tenant_score(db, world.tenant.user_id, persist=True)
    db.commit()
    assert db.get(TenantProfile, 1).tenant_score == 15

    n = recalculate_all_scores(db)
    assert n == 2
    assert tenant_is_verified(db, world.tenant.user_id) is False
