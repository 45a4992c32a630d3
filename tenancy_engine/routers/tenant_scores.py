# tenancy_engine/routers/tenant_scores.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..config import settings
from ..db import get_db
from ..domain.errors import Unauthorized
from ..schemas import RecalcOut, TenantScoreOut
from ..services.tenant_scores import (
    TenantScoreResult,
    compute_tenant_score,
    recalculate_all_scores,
    require_score_access,
)

router = APIRouter(prefix="/tenant-scores", tags=["tenant-scores"])


def _out(res: TenantScoreResult) -> TenantScoreOut:
    s = res.score
    return TenantScoreOut(
        tenant_id=res.tenant_id,
        total=s.total,
        tier=s.tier,
        label=s.label,
        recommendation=s.recommendation,
        verification_bonus=s.verification_bonus,
        breakdown=s.breakdown(),
        factors=res.factors_dict(),
    )


@router.get("/me", response_model=TenantScoreOut)
def my_score(db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    res = compute_tenant_score(db, p.user_id, persist=True)
    db.commit()
    return _out(res)


@router.get("/{tenant_id}", response_model=TenantScoreOut)
def tenant_score(tenant_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    require_score_access(db, p, tenant_id)
    return _out(compute_tenant_score(db, tenant_id))


@router.post("/recalculate", response_model=RecalcOut)
def recalculate(db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    if not p.is_admin:
        raise Unauthorized("admin only", entity_type="Principal", entity_id=p.user_id)
    n = recalculate_all_scores(db)
    return RecalcOut(recalculated=n, engine_version=settings.engine_version)
