# tenancy_engine/routers/contracts.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..db import get_db
from ..schemas import (
    ContractCreate,
    ContractOut,
    ContractSignIn,
    ContractTerminateIn,
    KeyCollectionOut,
    PaymentGateOut,
    PaymentOut,
)
from ..services import contracts as svc
from ..services.key_collections import get_key_collection_for_contract
from ..services.payments import get_payment_gate, list_contract_payments
from ..workers.notification_tasks import enqueue_notification_dispatch

router = APIRouter(prefix="/contracts", tags=["contracts"])


@router.post("", response_model=ContractOut)
def create_contract(payload: ContractCreate, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    row = svc.create_contract(db, p, payload)
    db.commit()
    enqueue_notification_dispatch()
    return row


@router.get("", response_model=list[ContractOut])
def list_my_contracts(db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return svc.list_my_contracts(db, p)


@router.get("/{contract_id}", response_model=ContractOut)
def get_contract(contract_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return svc.get_contract(db, p, contract_id)


@router.post("/{contract_id}/sign", response_model=ContractOut)
def sign_contract(
    contract_id: int,
    payload: ContractSignIn,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    row = svc.sign_contract(db, p, contract_id, role=payload.role, signature=payload.signature)
    db.commit()
    enqueue_notification_dispatch()
    return row


@router.post("/{contract_id}/activate", response_model=ContractOut)
def activate_contract(contract_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    row = svc.activate_contract(db, p, contract_id)
    db.commit()
    enqueue_notification_dispatch()
    return row


@router.post("/{contract_id}/terminate", response_model=ContractOut)
def terminate_contract(
    contract_id: int,
    payload: ContractTerminateIn,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    row = svc.terminate_contract(db, p, contract_id, payload.reason)
    db.commit()
    enqueue_notification_dispatch()
    return row


@router.get("/{contract_id}/payment-gate", response_model=PaymentGateOut)
def payment_gate(contract_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return get_payment_gate(db, p, contract_id)


@router.get("/{contract_id}/payments", response_model=list[PaymentOut])
def contract_payments(contract_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return list_contract_payments(db, p, contract_id)


@router.get("/{contract_id}/key-collection", response_model=Optional[KeyCollectionOut])
def contract_key_collection(contract_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return get_key_collection_for_contract(db, p, contract_id)
