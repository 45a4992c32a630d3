# tenancy_engine/domain/payment_gate.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional


@dataclass(frozen=True)
class PaymentGateStatus:
    contract_id: Optional[int]
    deposit_paid: bool
    deposit_paid_at: Optional[datetime]
    first_month_rent_paid: bool
    first_month_rent_paid_at: Optional[datetime]
    satisfied: bool
    missing: List[str] = field(default_factory=list)


def gate_satisfied(contract: Any) -> bool:
    """
    Deposit and first month's rent both settled.

    Always read straight off the contract row: the two flags are written by
    independent payment events that can land in either order.
    """
    return bool(getattr(contract, "deposit_paid", False)) and bool(
        getattr(contract, "first_month_rent_paid", False)
    )


def payment_gate_status(contract: Any) -> PaymentGateStatus:
    deposit = bool(getattr(contract, "deposit_paid", False))
    rent = bool(getattr(contract, "first_month_rent_paid", False))

    missing: list[str] = []
    if not deposit:
        missing.append("deposit")
    if not rent:
        missing.append("first_month_rent")

    return PaymentGateStatus(
        contract_id=getattr(contract, "id", None),
        deposit_paid=deposit,
        deposit_paid_at=getattr(contract, "deposit_paid_at", None),
        first_month_rent_paid=rent,
        first_month_rent_paid_at=getattr(contract, "first_month_rent_paid_at", None),
        satisfied=deposit and rent,
        missing=missing,
    )
