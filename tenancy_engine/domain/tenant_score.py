# tenancy_engine/domain/tenant_score.py
from __future__ import annotations

import math
from dataclasses import dataclass, asdict
from typing import Any

# Component caps. Weights in the breakdown are informational only.
RENTAL_HISTORY_MAX = 25.0
EMPLOYMENT_MAX = 20.0
SALARY_MAX = 20.0
PAYMENT_HISTORY_MAX = 20.0
REFERENCES_MAX = 15.0

VERIFICATION_BONUS = 5.0

EMPLOYMENT_POINTS = {
    "employed": 20.0,
    "self-employed": 15.0,
    "student": 10.0,
    "unemployed": 0.0,
}

TIER_EXCELLENT = 85
TIER_GOOD = 70
TIER_FAIR = 50


@dataclass(frozen=True)
class TenantScoreFactors:
    rental_history_months: int = 0
    employment_status: str = "unemployed"
    annual_salary: float = 0.0  # major units (EUR), not cents
    on_time_payments: int = 0
    late_payments: int = 0
    evictions: int = 0
    positive_references: int = 0
    negative_references: int = 0
    is_verified: bool = False


@dataclass(frozen=True)
class ScoreComponent:
    score: float
    weight: float
    max_score: float


@dataclass(frozen=True)
class TenantTier:
    tier: str
    label: str
    recommendation: str


@dataclass(frozen=True)
class TenantScore:
    total: int
    tier: str
    label: str
    recommendation: str
    rental_history: ScoreComponent
    employment: ScoreComponent
    salary: ScoreComponent
    payment_history: ScoreComponent
    references: ScoreComponent
    verification_bonus: float

    def breakdown(self) -> dict[str, Any]:
        return {
            "rental_history": asdict(self.rental_history),
            "employment": asdict(self.employment),
            "salary": asdict(self.salary),
            "payment_history": asdict(self.payment_history),
            "references": asdict(self.references),
        }


def _clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def rental_history_score(months: int, evictions: int) -> float:
    """0.5 points per month rented, minus 20 per eviction."""
    raw = float(months) * 0.5 - float(evictions) * 20.0
    return _clamp(raw, 0.0, RENTAL_HISTORY_MAX)


def employment_score(status: str) -> float:
    return EMPLOYMENT_POINTS.get((status or "").strip().lower(), 0.0)


def salary_score(annual_salary: float) -> float:
    return _clamp(float(annual_salary) / 1000.0, 0.0, SALARY_MAX)


def payment_history_score(on_time: int, late: int) -> float:
    total = on_time + late
    if total <= 0:
        return 0.0
    return _clamp(on_time * PAYMENT_HISTORY_MAX / total, 0.0, PAYMENT_HISTORY_MAX)


def references_score(positive: int, negative: int) -> float:
    total = positive + negative
    if total <= 0:
        return 0.0
    return _clamp(positive * REFERENCES_MAX / total, 0.0, REFERENCES_MAX)


def tier_for(total: int) -> TenantTier:
    if total >= TIER_EXCELLENT:
        return TenantTier(
            "excellent",
            "Excellent Tenant",
            "Highly trusted. Landlords prioritize applications from tenants with this score.",
        )
    if total >= TIER_GOOD:
        return TenantTier(
            "good",
            "Good Tenant",
            "Reliable. Most landlords will consider your application positively.",
        )
    if total >= TIER_FAIR:
        return TenantTier(
            "fair",
            "Fair Tenant",
            "Building history. Focus on maintaining consistent payments and employment.",
        )
    return TenantTier(
        "poor",
        "Building Trust",
        "New to the platform. Build your rental history and payment record to improve.",
    )


def calculate_tenant_score(f: TenantScoreFactors) -> TenantScore:
    """
    Deterministic, side-effect free.

    Each component is computed and clamped on its own, then summed with the
    verification bonus; the total is rounded half-up and capped at 100.
    """
    rental = rental_history_score(f.rental_history_months, f.evictions)
    employment = employment_score(f.employment_status)
    salary = salary_score(f.annual_salary)
    payments = payment_history_score(f.on_time_payments, f.late_payments)
    refs = references_score(f.positive_references, f.negative_references)
    bonus = VERIFICATION_BONUS if f.is_verified else 0.0

    total = min(100, _round_half_up(rental + employment + salary + payments + refs + bonus))
    total = max(0, total)
    t = tier_for(total)

    return TenantScore(
        total=total,
        tier=t.tier,
        label=t.label,
        recommendation=t.recommendation,
        rental_history=ScoreComponent(rental, 0.25, RENTAL_HISTORY_MAX),
        employment=ScoreComponent(employment, 0.20, EMPLOYMENT_MAX),
        salary=ScoreComponent(salary, 0.20, SALARY_MAX),
        payment_history=ScoreComponent(payments, 0.20, PAYMENT_HISTORY_MAX),
        references=ScoreComponent(refs, 0.15, REFERENCES_MAX),
        verification_bonus=bonus,
    )
