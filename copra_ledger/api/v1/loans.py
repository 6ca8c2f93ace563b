"""Supplier loans - request, approval lifecycle and manual repayments"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session

from copra_ledger.api.dependencies import (
    get_actor,
    get_reconciliation_client,
    get_request_id,
    require_role,
)
from copra_ledger.api.errors import from_domain
from copra_ledger.api.v1.events import schedule_stale_score_event
from copra_ledger.api.v1.schemas import (
    LoanApprove,
    LoanCreate,
    LoanResponse,
    LoanVoid,
    PaymentCreate,
    PaymentRecordedResponse,
    PaymentResponse,
)
from copra_ledger.domain.exceptions import DomainException
from copra_ledger.infrastructure.clients.reconciliation import ReconciliationClient
from copra_ledger.infrastructure.database.session import get_db
from copra_ledger.services.loans import LoanService

router = APIRouter()


@router.post("/loans", response_model=LoanResponse, status_code=201)
def create_loan(
    body: LoanCreate,
    db: Session = Depends(get_db),
    actor: Optional[str] = Depends(get_actor),
    _role: str = Depends(require_role),
):
    """
    Request a loan for a supplier.

    The supplier's credit assessment is recomputed first; requests from
    suppliers with no completed purchases, or above the eligible amount,
    are rejected with 400 not_eligible.
    """
    try:
        return LoanService(db).create_loan(
            supplier_id=body.supplier_id,
            amount=body.amount,
            interest_rate=body.interest_rate,
            due_date=body.due_date,
            purpose=body.purpose,
            created_by=actor,
        )
    except DomainException as e:
        db.rollback()
        raise from_domain(e)


@router.get("/loans/{loan_id}", response_model=LoanResponse)
def get_loan(loan_id: uuid.UUID, db: Session = Depends(get_db)):
    try:
        return LoanService(db).get_loan(loan_id)
    except DomainException as e:
        raise from_domain(e)


@router.post("/loans/{loan_id}/approve", response_model=LoanResponse)
def approve_loan(
    loan_id: uuid.UUID,
    body: Optional[LoanApprove] = None,
    db: Session = Depends(get_db),
    actor: Optional[str] = Depends(get_actor),
    _role: str = Depends(require_role),
):
    approved_amount = body.approved_amount if body is not None else None
    try:
        return LoanService(db).approve_loan(loan_id, approved_amount=approved_amount, approved_by=actor)
    except DomainException as e:
        db.rollback()
        raise from_domain(e)


@router.post("/loans/{loan_id}/reject", response_model=LoanResponse)
def reject_loan(
    loan_id: uuid.UUID,
    db: Session = Depends(get_db),
    _role: str = Depends(require_role),
):
    try:
        return LoanService(db).reject_loan(loan_id)
    except DomainException as e:
        db.rollback()
        raise from_domain(e)


@router.post("/loans/{loan_id}/cancel", response_model=LoanResponse)
def cancel_loan(
    loan_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Optional[str] = Depends(get_actor),
    _role: str = Depends(require_role),
):
    try:
        return LoanService(db).cancel_loan(loan_id, cancelled_by=actor)
    except DomainException as e:
        db.rollback()
        raise from_domain(e)


@router.post("/loans/{loan_id}/void", response_model=LoanResponse)
def void_loan(
    loan_id: uuid.UUID,
    body: Optional[LoanVoid] = None,
    db: Session = Depends(get_db),
    actor: Optional[str] = Depends(get_actor),
    _role: str = Depends(require_role),
):
    reason = body.reason if body is not None else None
    try:
        return LoanService(db).void_loan(loan_id, reason=reason, voided_by=actor)
    except DomainException as e:
        db.rollback()
        raise from_domain(e)


@router.post("/loans/{loan_id}/payments", response_model=PaymentRecordedResponse, status_code=201)
def record_payment(
    loan_id: uuid.UUID,
    body: PaymentCreate,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    client: ReconciliationClient = Depends(get_reconciliation_client),
    _role: str = Depends(require_role),
):
    """Record a repayment made outside a purchase (interest is settled first)"""
    try:
        result = LoanService(db).record_payment(
            loan_id,
            amount=body.amount,
            payment_method=body.payment_method,
            payment_date=body.payment_date,
            reference_number=body.reference_number,
            notes=body.notes,
        )
    except DomainException as e:
        db.rollback()
        raise from_domain(e)

    if result.score_stale:
        schedule_stale_score_event(
            background_tasks, client, result.loan.supplier_id, "loan_payment", get_request_id(request),
        )

    return PaymentRecordedResponse(
        payment=PaymentResponse.model_validate(result.payment),
        loan=LoanResponse.model_validate(result.loan),
        score_stale=result.score_stale,
    )


@router.get("/loans/{loan_id}/payments", response_model=List[PaymentResponse])
def list_payments(loan_id: uuid.UUID, db: Session = Depends(get_db)):
    try:
        return LoanService(db).get_payments(loan_id)
    except DomainException as e:
        raise from_domain(e)
