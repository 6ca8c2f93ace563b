"""
Ledger orchestrator - the atomic entry point for purchase transactions.

Create:  persist purchase -> auto-debit outstanding loans -> recompute supplier
         balance, all in one supplier-locked commit; then refresh the credit score.
Reverse: unwind recorded auto-debits -> zero deduction fields -> recompute
         balance, in one supplier-locked commit; then refresh the credit score.

The credit score refresh runs after the primary commit and is best-effort: a
failure leaves the ledger write in place and flags the score as stale.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from copra_ledger.config import settings
from copra_ledger.domain.allocation import allocate
from copra_ledger.domain.exceptions import DomainException, InvalidTransition, NotFoundError, ValidationError
from copra_ledger.domain.models import AutoDebitResult, PaymentMethod, TransactionStatus
from copra_ledger.domain.reversal import ensure_reversible, reverse_deductions
from copra_ledger.infrastructure.database.models import (
    LoanPayment,
    Transaction,
    TransactionLoanDeduction,
    utcnow,
)
from copra_ledger.infrastructure.database.repositories import (
    LoanPaymentRepository,
    LoanRepository,
    TransactionRepository,
)
from copra_ledger.infrastructure.observability.logging import log_ledger_operation
from copra_ledger.infrastructure.observability.metrics import (
    orphaned_reference_counter,
    record_auto_debit,
    record_operation,
    reversal_counter,
)
from copra_ledger.services.balance import BalanceAggregator
from copra_ledger.services.credit import CreditScoreService
from copra_ledger.services.unit_of_work import supplier_transaction
from copra_ledger.utils.money import ZERO, to_money
from copra_ledger.utils.references import auto_debit_reference, generate_transaction_number

logger = logging.getLogger(__name__)

CREATABLE_STATUSES = (TransactionStatus.PENDING, TransactionStatus.COMPLETED)


@dataclass
class LedgerResult:
    """Structured outcome of an orchestrated operation"""

    ok: bool
    transaction: Optional[Transaction] = None
    error: Optional[str] = None
    reason: Optional[str] = None
    score_stale: bool = False
    auto_debit: Optional[AutoDebitResult] = None
    orphaned_loan_ids: List[uuid.UUID] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.orphaned_loan_ids)

    @property
    def supplier_id(self) -> Optional[uuid.UUID]:
        return self.transaction.supplier_id if self.transaction is not None else None


class LedgerOrchestrator:
    """Composes allocation, reversal, balance and scoring under one unit of work"""

    def __init__(self, db: Session, request_id: Optional[str] = None):
        self.db = db
        self.request_id = request_id
        self.transactions = TransactionRepository(db)
        self.loans = LoanRepository(db)
        self.payments = LoanPaymentRepository(db)
        self.balances = BalanceAggregator(db)
        self.credit = CreditScoreService(db)

    # Public operations

    def create_transaction(
        self,
        supplier_id: uuid.UUID,
        quantity: Decimal,
        unit_price: Decimal,
        transaction_date: datetime,
        less_kilo: Decimal = ZERO,
        status: str = TransactionStatus.COMPLETED.value,
        created_by: Optional[str] = None,
    ) -> LedgerResult:
        """Record a purchase; completed purchases auto-debit outstanding loans"""
        return self._run("create", lambda: self._create(
            supplier_id, quantity, less_kilo, unit_price, transaction_date, status, created_by,
        ))

    def complete_transaction(self, transaction_id: uuid.UUID) -> LedgerResult:
        """Complete a pending purchase; completing an already-completed one is a no-op"""
        return self._run("complete", lambda: self._complete_pending(transaction_id))

    def cancel_transaction(self, transaction_id: uuid.UUID) -> LedgerResult:
        return self._run("cancel", lambda: self._reverse(transaction_id, TransactionStatus.CANCELLED.value))

    def void_transaction(self, transaction_id: uuid.UUID) -> LedgerResult:
        return self._run("void", lambda: self._reverse(transaction_id, TransactionStatus.VOIDED.value))

    def delete_transaction(self, transaction_id: uuid.UUID) -> LedgerResult:
        """Soft delete; the purchase drops out of scoring but loan effects stand"""
        return self._run("delete", lambda: self._soft_delete(transaction_id))

    # Operation bodies

    def _create(
        self,
        supplier_id: uuid.UUID,
        quantity: Decimal,
        less_kilo: Decimal,
        unit_price: Decimal,
        transaction_date: datetime,
        status: str,
        created_by: Optional[str],
    ) -> LedgerResult:
        if status not in CREATABLE_STATUSES:
            raise ValidationError(f"New transactions must be pending or completed, got {status}")

        quantity, less_kilo, unit_price = self._validate_purchase(quantity, less_kilo, unit_price)
        total_kilo = quantity - less_kilo
        total_amount = to_money(total_kilo * unit_price)

        debit = None
        with supplier_transaction(self.db, supplier_id) as supplier:
            if not supplier.is_active:
                raise ValidationError(f"Supplier {supplier_id} is inactive")

            transaction = self.transactions.add(Transaction(
                supplier_id=supplier_id,
                transaction_number=generate_transaction_number(),
                status=TransactionStatus.PENDING.value,
                quantity=quantity,
                less_kilo=less_kilo,
                total_kilo=total_kilo,
                unit_price=unit_price,
                total_amount=total_amount,
                loan_deduction=ZERO,
                amount_after_deduction=total_amount,
                paid_amount=ZERO,
                transaction_date=transaction_date,
                is_deleted=False,
                created_by=created_by,
            ))

            if status == TransactionStatus.COMPLETED:
                debit = self._apply_auto_debit(transaction)
                self.balances.recalculate(supplier_id)

        stale = False
        if transaction.status == TransactionStatus.COMPLETED:
            stale = self.credit.refresh_best_effort(
                supplier_id, "create",
                remarks=f"Credit score updated after transaction {transaction.transaction_number}.",
            )

        return LedgerResult(ok=True, transaction=transaction, auto_debit=debit, score_stale=stale)

    def _complete_pending(self, transaction_id: uuid.UUID) -> LedgerResult:
        transaction = self._get_transaction(transaction_id)

        with supplier_transaction(self.db, transaction.supplier_id):
            self.db.refresh(transaction)
            if transaction.status == TransactionStatus.COMPLETED:
                return LedgerResult(ok=True, transaction=transaction)
            if transaction.status != TransactionStatus.PENDING:
                raise InvalidTransition(f"Cannot complete transaction with status: {transaction.status}")

            debit = self._apply_auto_debit(transaction)
            self.balances.recalculate(transaction.supplier_id)

        stale = self.credit.refresh_best_effort(
            transaction.supplier_id, "complete",
            remarks=f"Credit score updated after transaction {transaction.transaction_number}.",
        )
        return LedgerResult(ok=True, transaction=transaction, auto_debit=debit, score_stale=stale)

    def _reverse(self, transaction_id: uuid.UUID, target_status: str) -> LedgerResult:
        # A soft-deleted purchase still carries its auto-debits and must stay reversible
        transaction = self._get_transaction(transaction_id, include_deleted=True)
        supplier_id = transaction.supplier_id

        with supplier_transaction(self.db, supplier_id):
            # Re-read under the lock so two reversals cannot both see "completed"
            self.db.refresh(transaction)
            ensure_reversible(transaction.status, target_status)

            recorded = [(entry.loan_id, entry.amount) for entry in transaction.loan_payments]
            loans = self.loans.get_loans_by_ids(loan_id for loan_id, _ in recorded)
            payments = self.payments.get_auto_debits_for_transaction(transaction.id)

            result = reverse_deductions(recorded, loans, payments)

            for reversed_entry in result.reversed:
                payment = payments[reversed_entry.loan_id]
                loan = loans[reversed_entry.loan_id]
                loan.last_payment_date = self.payments.latest_payment_date(loan.id, excluding=[payment.id])
                self.payments.delete(payment)

            for loan_id in result.orphaned_loan_ids:
                orphaned_reference_counter.inc()
                logger.error(
                    "Orphaned payment reference during reversal",
                    extra={
                        "transaction_id": str(transaction.id),
                        "loan_id": str(loan_id),
                        "request_id": self.request_id,
                    },
                )

            transaction.loan_payments.clear()
            transaction.loan_deduction = ZERO
            transaction.paid_amount = ZERO
            transaction.amount_after_deduction = transaction.total_amount
            transaction.status = target_status

            self.balances.recalculate(supplier_id)

        reversal_counter.labels(target_status=target_status).inc()

        # The scored population just lost a purchase
        stale = self.credit.refresh_best_effort(
            supplier_id, target_status,
            remarks=f"Credit score updated after transaction {transaction.transaction_number} was {target_status}.",
        )

        outcome = LedgerResult(
            ok=True,
            transaction=transaction,
            score_stale=stale,
            orphaned_loan_ids=list(result.orphaned_loan_ids),
        )
        if outcome.partial:
            outcome.error = "orphaned_payment_reference"
            outcome.reason = (
                f"{len(result.orphaned_loan_ids)} recorded loan deduction(s) could not be resolved "
                "and were not reversed"
            )
        return outcome

    def _soft_delete(self, transaction_id: uuid.UUID) -> LedgerResult:
        transaction = self._get_transaction(transaction_id)

        with supplier_transaction(self.db, transaction.supplier_id):
            transaction.is_deleted = True

        stale = self.credit.refresh_best_effort(transaction.supplier_id, "delete")
        return LedgerResult(ok=True, transaction=transaction, score_stale=stale)

    # Helpers

    def _apply_auto_debit(self, transaction: Transaction) -> Optional[AutoDebitResult]:
        """
        Run the allocator once for a purchase being completed.

        Guarded for retries: a transaction that already carries deductions is
        never allocated again.
        """
        if transaction.loan_payments:
            logger.warning(
                "Auto-debit already applied; skipping",
                extra={"transaction_id": str(transaction.id), "request_id": self.request_id},
            )
            transaction.status = TransactionStatus.COMPLETED.value
            return None

        now = utcnow()
        outstanding = self.loans.get_outstanding_for_supplier(transaction.supplier_id)
        debit = allocate(transaction.total_amount, outstanding, now, ceiling=settings.auto_debit_ceiling)

        for position, deduction in enumerate(debit.deductions):
            transaction.loan_payments.append(TransactionLoanDeduction(
                loan_id=deduction.loan_id,
                amount=deduction.amount,
                position=position,
            ))
            self.payments.add(LoanPayment(
                loan_id=deduction.loan_id,
                transaction_id=transaction.id,
                amount=deduction.amount,
                interest_portion=deduction.split.interest_portion,
                principal_portion=deduction.split.principal_portion,
                payment_method=PaymentMethod.AUTO_DEBIT.value,
                payment_date=now,
                reference_number=auto_debit_reference(transaction.id, deduction.loan_id),
                notes=f"Auto-debit from transaction #{transaction.transaction_number}",
            ))

        transaction.loan_deduction = debit.total_deduction
        transaction.amount_after_deduction = debit.amount_after_deduction
        transaction.paid_amount = debit.amount_after_deduction
        transaction.status = TransactionStatus.COMPLETED.value

        record_auto_debit(debit.total_deduction)
        logger.info(
            "Auto-debit applied",
            extra={
                "transaction_id": str(transaction.id),
                "budget": str(debit.budget),
                "total_deduction": str(debit.total_deduction),
                "loans_debited": len(debit.deductions),
                "request_id": self.request_id,
            },
        )
        return debit

    def _get_transaction(self, transaction_id: uuid.UUID, include_deleted: bool = False) -> Transaction:
        transaction = self.transactions.get_transaction(transaction_id, include_deleted=include_deleted)
        if transaction is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        return transaction

    @staticmethod
    def _validate_purchase(quantity, less_kilo, unit_price):
        try:
            quantity = Decimal(str(quantity))
            less_kilo = Decimal(str(less_kilo if less_kilo is not None else 0))
            unit_price = Decimal(str(unit_price))
        except ArithmeticError as e:
            raise ValidationError(f"Invalid numeric input: {e}") from e

        if quantity <= 0:
            raise ValidationError("Quantity must be positive")
        if unit_price <= 0:
            raise ValidationError("Unit price must be positive")
        if less_kilo < 0:
            raise ValidationError("Less kilo cannot be negative")
        if less_kilo > quantity:
            raise ValidationError("Less kilo cannot exceed quantity")
        return quantity, less_kilo, unit_price

    def _run(self, operation: str, body: Callable[[], LedgerResult]) -> LedgerResult:
        """
        Execute an operation body and translate domain errors to a failed result.

        Nothing partial reaches storage: the unit of work has already rolled
        back by the time a domain error gets here. Unexpected errors propagate.
        """
        start_time = time.time()
        try:
            result = body()
        except DomainException as e:
            self.db.rollback()
            duration_ms = (time.time() - start_time) * 1000
            record_operation(operation, e.code)
            logger.warning(f"{operation} rejected: {e}", extra={"request_id": self.request_id, "error": e.code})
            log_ledger_operation(
                operation, e.code, request_id=self.request_id, reason=str(e), duration_ms=duration_ms,
            )
            return LedgerResult(ok=False, error=e.code, reason=str(e))

        duration_ms = (time.time() - start_time) * 1000
        outcome = "partial" if result.partial else "ok"
        record_operation(operation, outcome)
        transaction = result.transaction
        log_ledger_operation(
            operation,
            outcome,
            supplier_id=str(transaction.supplier_id) if transaction else None,
            transaction_id=str(transaction.id) if transaction else None,
            amount=str(transaction.total_amount) if transaction else None,
            duration_ms=duration_ms,
            request_id=self.request_id,
            reason=result.reason,
        )
        return result
