"""Suppliers - administration, balance reconciliation and credit scores"""

import uuid
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from copra_ledger.api.dependencies import require_role
from copra_ledger.api.errors import from_domain
from copra_ledger.api.v1.schemas import (
    BalanceResponse,
    CreditScoreHistoryResponse,
    CreditScoreResponse,
    LoanResponse,
    SupplierCreate,
    SupplierResponse,
    TransactionResponse,
)
from copra_ledger.domain.exceptions import DomainException
from copra_ledger.infrastructure.database.repositories import LoanRepository, TransactionRepository
from copra_ledger.infrastructure.database.session import get_db
from copra_ledger.services.credit import CreditScoreService
from copra_ledger.services.suppliers import SupplierService

router = APIRouter()


@router.post("/suppliers", response_model=SupplierResponse, status_code=201)
def create_supplier(
    body: SupplierCreate,
    db: Session = Depends(get_db),
    _role: str = Depends(require_role),
):
    try:
        return SupplierService(db).create_supplier(body.name, body.contact, body.address)
    except DomainException as e:
        db.rollback()
        raise from_domain(e)


@router.get("/suppliers/{supplier_id}", response_model=SupplierResponse)
def get_supplier(supplier_id: uuid.UUID, db: Session = Depends(get_db)):
    try:
        return SupplierService(db).get_supplier(supplier_id)
    except DomainException as e:
        raise from_domain(e)


@router.post("/suppliers/{supplier_id}/deactivate", response_model=SupplierResponse)
def deactivate_supplier(
    supplier_id: uuid.UUID,
    db: Session = Depends(get_db),
    _role: str = Depends(require_role),
):
    try:
        return SupplierService(db).deactivate_supplier(supplier_id)
    except DomainException as e:
        db.rollback()
        raise from_domain(e)


@router.post("/suppliers/{supplier_id}/balance/sync", response_model=BalanceResponse)
def sync_balance(
    supplier_id: uuid.UUID,
    db: Session = Depends(get_db),
    _role: str = Depends(require_role),
):
    """Recompute the cached balance from the supplier's approved loans"""
    try:
        balance = SupplierService(db).sync_balance(supplier_id)
    except DomainException as e:
        db.rollback()
        raise from_domain(e)
    return BalanceResponse(supplier_id=supplier_id, current_balance=balance)


@router.get("/suppliers/{supplier_id}/transactions", response_model=List[TransactionResponse])
def list_transactions(
    supplier_id: uuid.UUID,
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    try:
        SupplierService(db).get_supplier(supplier_id)
    except DomainException as e:
        raise from_domain(e)
    return TransactionRepository(db).get_for_supplier(supplier_id, limit=limit)


@router.get("/suppliers/{supplier_id}/loans", response_model=List[LoanResponse])
def list_loans(supplier_id: uuid.UUID, db: Session = Depends(get_db)):
    try:
        SupplierService(db).get_supplier(supplier_id)
    except DomainException as e:
        raise from_domain(e)
    return LoanRepository(db).get_for_supplier(supplier_id)


@router.get("/suppliers/{supplier_id}/credit-score", response_model=CreditScoreResponse)
def get_credit_score(supplier_id: uuid.UUID, db: Session = Depends(get_db)):
    """
    Current credit score.

    Falls back to an on-the-fly assessment (not persisted) when the
    supplier has never been scored.
    """
    try:
        return CreditScoreService(db).get_current(supplier_id)
    except DomainException as e:
        raise from_domain(e)


@router.get("/suppliers/{supplier_id}/credit-score/history", response_model=CreditScoreHistoryResponse)
def get_credit_score_history(
    supplier_id: uuid.UUID,
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    try:
        scores = CreditScoreService(db).get_history(supplier_id, limit=limit)
    except DomainException as e:
        raise from_domain(e)
    return CreditScoreHistoryResponse(
        supplier_id=supplier_id,
        scores=[CreditScoreResponse.model_validate(s) for s in scores],
    )


@router.post("/suppliers/{supplier_id}/credit-score/recalculate", response_model=CreditScoreResponse)
def recalculate_credit_score(
    supplier_id: uuid.UUID,
    db: Session = Depends(get_db),
    _role: str = Depends(require_role),
):
    try:
        return CreditScoreService(db).recalculate(supplier_id)
    except DomainException as e:
        db.rollback()
        raise from_domain(e)
