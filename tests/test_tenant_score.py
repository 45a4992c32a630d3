# tests/test_tenant_score.py
from __future__ import annotations

import pytest

from tenancy_engine.domain.tenant_score import (
    TenantScoreFactors,
    calculate_tenant_score,
    payment_history_score,
    references_score,
    rental_history_score,
    salary_score,
    tier_for,
)


def test_rental_history_rules():
    assert rental_history_score(36, 0) == 18.0
    assert rental_history_score(60, 0) == 25.0
    assert rental_history_score(60, 1) == 10.0
    assert rental_history_score(10, 1) == 0.0


def test_salary_is_thousands_clamped():
    assert salary_score(12_500) == 12.5
    assert salary_score(42_000) == 20.0
    assert salary_score(0) == 0.0


def test_no_history_scores_zero_not_full():
    assert payment_history_score(0, 0) == 0.0
    assert references_score(0, 0) == 0.0
    assert payment_history_score(3, 1) == 15.0
    assert references_score(2, 1) == 10.0


def test_total_rounds_half_up():
    s = calculate_tenant_score(TenantScoreFactors(rental_history_months=1, employment_status="employed"))
    # 0.5 + 20 = 20.5
    assert s.total == 21


def test_total_capped_at_100():
    s = calculate_tenant_score(
        TenantScoreFactors(
            rental_history_months=120,
            employment_status="employed",
            annual_salary=90_000,
            on_time_payments=12,
            positive_references=3,
            is_verified=True,
        )
    )
    assert s.total == 100
    assert s.tier == "excellent"
    assert s.verification_bonus == 5.0


def test_typical_profile_breakdown():
    s = calculate_tenant_score(
        TenantScoreFactors(
            rental_history_months=36,
            employment_status="self-employed",
            annual_salary=30_000,
            on_time_payments=3,
            late_payments=1,
            positive_references=2,
            negative_references=1,
            is_verified=False,
        )
    )
    # 18 + 15 + 20 + 15 + 10
    assert s.total == 78
    assert s.tier == "good"
    b = s.breakdown()
    assert b["rental_history"] == {"score": 18.0, "weight": 0.25, "max_score": 25.0}
    assert b["references"]["max_score"] == 15.0


def test_unknown_employment_is_zero():
    s = calculate_tenant_score(TenantScoreFactors(employment_status="retired"))
    assert s.employment.score == 0.0
    assert s.total == 0
    assert s.label == "Building Trust"


@pytest.mark.parametrize(
    "total,tier",
    [(100, "excellent"), (85, "excellent"), (84, "good"), (70, "good"), (69, "fair"), (50, "fair"), (49, "poor"), (0, "poor")],
)
def test_tier_boundaries(total, tier):
    assert tier_for(total).tier == tier


def test_tier_texts():
    assert tier_for(90).label == "Excellent Tenant"
    assert tier_for(75).recommendation.startswith("Reliable.")
    assert tier_for(55).label == "Fair Tenant"


def test_calculation_is_deterministic():
    f = TenantScoreFactors(rental_history_months=7, employment_status="student", annual_salary=8_400, on_time_payments=5, late_payments=2)
    assert calculate_tenant_score(f) == calculate_tenant_score(f)
