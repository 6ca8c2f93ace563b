"""Copra purchase transactions - create, complete, reverse and soft delete"""

import uuid
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session

from copra_ledger.api.dependencies import (
    get_actor,
    get_reconciliation_client,
    get_request_id,
    require_role,
)
from copra_ledger.api.errors import http_error
from copra_ledger.api.v1.events import schedule_stale_score_event
from copra_ledger.api.v1.schemas import LedgerResponse, TransactionCreate, TransactionResponse
from copra_ledger.infrastructure.clients.reconciliation import ReconciliationClient
from copra_ledger.infrastructure.database.repositories import TransactionRepository
from copra_ledger.infrastructure.database.session import get_db
from copra_ledger.services.ledger import LedgerOrchestrator, LedgerResult

router = APIRouter()


def _respond(
    result: LedgerResult,
    operation: str,
    background_tasks: BackgroundTasks,
    client: ReconciliationClient,
    request_id: str,
) -> LedgerResponse:
    if not result.ok:
        raise http_error(result.error, result.reason)

    if result.score_stale:
        schedule_stale_score_event(background_tasks, client, result.supplier_id, operation, request_id)

    return LedgerResponse(
        transaction=TransactionResponse.model_validate(result.transaction),
        score_stale=result.score_stale,
        partial=result.partial,
        orphaned_loan_ids=result.orphaned_loan_ids,
        reason=result.reason,
    )


@router.post("/transactions", response_model=LedgerResponse, status_code=201)
def create_transaction(
    body: TransactionCreate,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    client: ReconciliationClient = Depends(get_reconciliation_client),
    actor: Optional[str] = Depends(get_actor),
    _role: str = Depends(require_role),
):
    """
    Record a copra purchase.

    A completed purchase auto-debits the supplier's outstanding loans (oldest
    first, capped at a share of the purchase total) and refreshes the
    supplier balance and credit score in the same request.
    """
    request_id = get_request_id(request)
    result = LedgerOrchestrator(db, request_id).create_transaction(
        supplier_id=body.supplier_id,
        quantity=body.quantity,
        less_kilo=body.less_kilo,
        unit_price=body.unit_price,
        transaction_date=body.transaction_date,
        status=body.status,
        created_by=actor,
    )
    return _respond(result, "create", background_tasks, client, request_id)


@router.get("/transactions/{transaction_id}", response_model=TransactionResponse)
def get_transaction(transaction_id: uuid.UUID, db: Session = Depends(get_db)):
    transaction = TransactionRepository(db).get_transaction(transaction_id, include_deleted=True)
    if transaction is None:
        raise http_error("not_found", f"Transaction {transaction_id} not found")
    return transaction


@router.post("/transactions/{transaction_id}/complete", response_model=LedgerResponse)
def complete_transaction(
    transaction_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    client: ReconciliationClient = Depends(get_reconciliation_client),
    _role: str = Depends(require_role),
):
    request_id = get_request_id(request)
    result = LedgerOrchestrator(db, request_id).complete_transaction(transaction_id)
    return _respond(result, "complete", background_tasks, client, request_id)


@router.post("/transactions/{transaction_id}/cancel", response_model=LedgerResponse)
def cancel_transaction(
    transaction_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    client: ReconciliationClient = Depends(get_reconciliation_client),
    _role: str = Depends(require_role),
):
    """Reverse a completed purchase's auto-debits and mark it cancelled"""
    request_id = get_request_id(request)
    result = LedgerOrchestrator(db, request_id).cancel_transaction(transaction_id)
    return _respond(result, "cancel", background_tasks, client, request_id)


@router.post("/transactions/{transaction_id}/void", response_model=LedgerResponse)
def void_transaction(
    transaction_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    client: ReconciliationClient = Depends(get_reconciliation_client),
    _role: str = Depends(require_role),
):
    request_id = get_request_id(request)
    result = LedgerOrchestrator(db, request_id).void_transaction(transaction_id)
    return _respond(result, "void", background_tasks, client, request_id)


@router.delete("/transactions/{transaction_id}", response_model=LedgerResponse)
def delete_transaction(
    transaction_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    client: ReconciliationClient = Depends(get_reconciliation_client),
    _role: str = Depends(require_role),
):
    request_id = get_request_id(request)
    result = LedgerOrchestrator(db, request_id).delete_transaction(transaction_id)
    return _respond(result, "delete", background_tasks, client, request_id)
