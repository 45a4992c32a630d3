# tenancy_engine/services/tenant_scores.py
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..auth import Principal
from ..domain.errors import NotFound, Unauthorized
from ..domain.tenant_score import TenantScore, TenantScoreFactors, calculate_tenant_score
from ..models import AppUser, Application, Contract, Document, Payment, TenantProfile

log = logging.getLogger("tenancy_engine.tenant_scores")

FULLY_VERIFIED = 100


@dataclass(frozen=True)
class TenantScoreResult:
    tenant_id: int
    score: TenantScore
    factors: TenantScoreFactors

    def factors_dict(self) -> dict[str, Any]:
        return asdict(self.factors)


def _get_profile(db: Session, tenant_id: int) -> Optional[TenantProfile]:
    return db.scalar(select(TenantProfile).where(TenantProfile.user_id == int(tenant_id)))


def tenant_is_verified(db: Session, tenant_id: int) -> bool:
    profile = _get_profile(db, tenant_id)
    if profile is not None and int(profile.verification_score or 0) >= FULLY_VERIFIED:
        return True
    n = db.scalar(
        select(func.count(Document.id)).where(
            Document.user_id == int(tenant_id),
            Document.verification_status == "verified",
        )
    )
    return int(n or 0) > 0


def _on_time(paid_at: Optional[datetime], due: Any) -> bool:
    if due is None or paid_at is None:
        return True
    return paid_at.date() <= due


def _payment_counts(db: Session, tenant_id: int) -> tuple[int, int]:
    on_time = 0
    late = 0

    payments = db.scalars(
        select(Payment).where(Payment.tenant_id == int(tenant_id), Payment.status == "completed")
    ).all()
    recorded: set[tuple[int, str]] = set()
    for pay in payments:
        recorded.add((int(pay.contract_id), str(pay.payment_type)))
        if _on_time(pay.paid_at, pay.due_date):
            on_time += 1
        else:
            late += 1

    # Contract flags settled before a Payment row existed still count once.
    contracts = db.scalars(select(Contract).where(Contract.tenant_id == int(tenant_id))).all()
    for c in contracts:
        if c.deposit_paid and (int(c.id), "deposit") not in recorded:
            on_time += 1
        if c.first_month_rent_paid and (int(c.id), "rent") not in recorded:
            if _on_time(c.first_month_rent_paid_at, c.start_date):
                on_time += 1
            else:
                late += 1

    return on_time, late


def gather_tenant_score_factors(db: Session, tenant_id: int) -> TenantScoreFactors:
    user = db.get(AppUser, int(tenant_id))
    if user is None:
        raise NotFound("tenant not found", entity_type="AppUser", entity_id=tenant_id)

    profile = _get_profile(db, tenant_id)

    positive_refs = db.scalar(
        select(func.count(Document.id)).where(
            Document.user_id == int(tenant_id),
            Document.document_type == "reference",
            Document.verification_status == "verified",
        )
    )
    on_time, late = _payment_counts(db, tenant_id)

    if profile is None:
        return TenantScoreFactors(
            on_time_payments=on_time,
            late_payments=late,
            positive_references=int(positive_refs or 0),
            is_verified=tenant_is_verified(db, tenant_id),
        )

    return TenantScoreFactors(
        rental_history_months=int(profile.rental_history_months or 0),
        employment_status=str(profile.employment_status or "unemployed"),
        annual_salary=int(profile.annual_salary_minor or 0) / 100.0,
        on_time_payments=on_time,
        late_payments=late,
        evictions=int(profile.evictions or 0),
        positive_references=int(positive_refs or 0),
        negative_references=int(profile.negative_references or 0),
        is_verified=tenant_is_verified(db, tenant_id),
    )


def compute_tenant_score(db: Session, tenant_id: int, *, persist: bool = False) -> TenantScoreResult:
    """
    Recomputes from source facts every call; the stored total is a cache.

    persist=True writes the total onto the profile (flush only, caller commits).
    """
    factors = gather_tenant_score_factors(db, tenant_id)
    score = calculate_tenant_score(factors)

    if persist:
        profile = _get_profile(db, tenant_id)
        if profile is None:
            profile = TenantProfile(user_id=int(tenant_id), created_at=datetime.utcnow())
        profile.tenant_score = score.total
        db.add(profile)
        db.flush()

    return TenantScoreResult(tenant_id=int(tenant_id), score=score, factors=factors)


def recalculate_all_scores(db: Session) -> int:
    tenant_ids = set(db.scalars(select(AppUser.id).where(AppUser.role == "tenant")).all())
    tenant_ids.update(db.scalars(select(TenantProfile.user_id)).all())

    n = 0
    for tid in sorted(tenant_ids):
        res = compute_tenant_score(db, int(tid), persist=True)
        log.info("tenant score recalculated", extra={"user_id": int(tid), "total": res.score.total})
        n += 1
    db.commit()
    return n


def require_score_access(db: Session, p: Principal, tenant_id: int) -> None:
    """Tenants read their own score; landlords only those of their applicants."""
    if p.is_admin or p.user_id == int(tenant_id):
        return
    applied = db.scalar(
        select(Application.id)
        .where(Application.tenant_id == int(tenant_id), Application.landlord_id == p.user_id)
        .limit(1)
    )
    if applied is None:
        raise Unauthorized(
            "score is visible only to landlords the tenant applied to",
            entity_type="AppUser",
            entity_id=tenant_id,
        )
