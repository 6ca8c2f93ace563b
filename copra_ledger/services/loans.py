"""Loan service - request, approval lifecycle and manual repayments"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from copra_ledger.domain.amortization import apply_payment, total_with_interest
from copra_ledger.domain.exceptions import (
    InvalidStateTransition,
    NotFoundError,
    ValidationError,
)
from copra_ledger.domain.models import LoanStatus, PaymentMethod
from copra_ledger.infrastructure.database.models import Loan, LoanPayment, utcnow
from copra_ledger.infrastructure.database.repositories import (
    LoanPaymentRepository,
    LoanRepository,
    SupplierRepository,
)
from copra_ledger.infrastructure.observability.metrics import record_operation
from copra_ledger.services.balance import BalanceAggregator
from copra_ledger.services.credit import CreditScoreService
from copra_ledger.services.unit_of_work import supplier_transaction
from copra_ledger.utils.money import ZERO, to_money
from copra_ledger.utils.references import manual_payment_reference

logger = logging.getLogger(__name__)

MANUAL_METHODS = (PaymentMethod.MANUAL, PaymentMethod.BANK_TRANSFER, PaymentMethod.CASH)
CLOSABLE_STATUSES = (LoanStatus.PENDING, LoanStatus.APPROVED)


@dataclass
class PaymentResult:
    payment: LoanPayment
    loan: Loan
    score_stale: bool = False


class LoanService:
    def __init__(self, db: Session):
        self.db = db
        self.loans = LoanRepository(db)
        self.payments = LoanPaymentRepository(db)
        self.suppliers = SupplierRepository(db)
        self.balances = BalanceAggregator(db)
        self.credit = CreditScoreService(db)

    def create_loan(
        self,
        supplier_id: uuid.UUID,
        amount: Decimal,
        interest_rate: Decimal,
        due_date: datetime,
        purpose: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> Loan:
        """
        Request a loan. The supplier's fresh credit assessment must cover it.

        Raises:
            ValidationError: non-positive amount, negative rate, inactive supplier
            NotFoundError: unknown supplier
            NotEligible: no purchase history, or amount above the eligible limit
        """
        amount = to_money(amount)
        interest_rate = Decimal(str(interest_rate))
        if amount <= 0:
            raise ValidationError("Loan amount must be positive")
        if interest_rate < 0:
            raise ValidationError("Interest rate cannot be negative")
        if due_date is None:
            raise ValidationError("Due date is required")

        supplier = self.suppliers.get_supplier(supplier_id)
        if supplier is None:
            raise NotFoundError(f"Supplier {supplier_id} not found")
        if not supplier.is_active:
            raise ValidationError(f"Supplier {supplier_id} is inactive")

        self.credit.check_eligibility(supplier_id, amount)

        loan = self.loans.add(Loan(
            supplier_id=supplier_id,
            amount=amount,
            interest_rate=interest_rate,
            total_amount_with_interest=total_with_interest(amount, interest_rate),
            total_paid=ZERO,
            principal_paid=ZERO,
            interest_paid=ZERO,
            purpose=purpose,
            status=LoanStatus.PENDING.value,
            due_date=due_date,
            request_date=utcnow(),
            created_by=created_by,
        ))
        self.db.commit()

        record_operation("loan_create", "ok")
        logger.info("Loan requested", extra={"loan_id": str(loan.id), "supplier_id": str(supplier_id), "amount": str(amount)})
        return loan

    def approve_loan(
        self,
        loan_id: uuid.UUID,
        approved_amount: Optional[Decimal] = None,
        approved_by: Optional[str] = None,
    ) -> Loan:
        """Approve a pending loan, optionally at an adjusted principal"""
        loan = self.get_loan(loan_id)

        with supplier_transaction(self.db, loan.supplier_id):
            self.db.refresh(loan)
            if loan.status != LoanStatus.PENDING:
                raise InvalidStateTransition(f"Cannot approve loan that is already {loan.status}")

            if approved_amount is not None:
                approved_amount = to_money(approved_amount)
                if approved_amount <= 0:
                    raise ValidationError("Approved amount must be positive")
                loan.amount = approved_amount
                loan.total_amount_with_interest = total_with_interest(approved_amount, loan.interest_rate)

            loan.status = LoanStatus.APPROVED.value
            loan.approval_date = utcnow()
            loan.approved_by = approved_by
            self.balances.recalculate(loan.supplier_id)

        record_operation("loan_approve", "ok")
        logger.info("Loan approved", extra={"loan_id": str(loan.id), "amount": str(loan.amount)})
        return loan

    def reject_loan(self, loan_id: uuid.UUID) -> Loan:
        loan = self.get_loan(loan_id)

        with supplier_transaction(self.db, loan.supplier_id):
            self.db.refresh(loan)
            if loan.status != LoanStatus.PENDING:
                raise InvalidStateTransition(f"Cannot reject loan that is already {loan.status}")
            loan.status = LoanStatus.REJECTED.value

        record_operation("loan_reject", "ok")
        return loan

    def cancel_loan(self, loan_id: uuid.UUID, cancelled_by: Optional[str] = None) -> Loan:
        loan = self.get_loan(loan_id)

        with supplier_transaction(self.db, loan.supplier_id):
            self.db.refresh(loan)
            self._ensure_closable(loan, "cancel")
            loan.status = LoanStatus.CANCELLED.value
            loan.cancelled_date = utcnow()
            loan.cancelled_by = cancelled_by
            self.balances.recalculate(loan.supplier_id)

        record_operation("loan_cancel", "ok")
        return loan

    def void_loan(self, loan_id: uuid.UUID, reason: Optional[str] = None, voided_by: Optional[str] = None) -> Loan:
        loan = self.get_loan(loan_id)

        with supplier_transaction(self.db, loan.supplier_id):
            self.db.refresh(loan)
            self._ensure_closable(loan, "void")
            loan.status = LoanStatus.VOIDED.value
            loan.voided_date = utcnow()
            loan.voided_by = voided_by
            loan.void_reason = reason
            self.balances.recalculate(loan.supplier_id)

        record_operation("loan_void", "ok")
        return loan

    def record_payment(
        self,
        loan_id: uuid.UUID,
        amount: Decimal,
        payment_method: str = PaymentMethod.MANUAL.value,
        payment_date: Optional[datetime] = None,
        reference_number: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> PaymentResult:
        """
        Record a repayment made outside a purchase.

        The loan update, payment row and balance recompute commit together;
        the credit score refresh follows on its own.
        """
        if payment_method not in MANUAL_METHODS:
            raise ValidationError(
                f"Payment method must be one of {', '.join(m.value for m in MANUAL_METHODS)}"
            )
        loan = self.get_loan(loan_id)
        payment_date = payment_date or utcnow()

        with supplier_transaction(self.db, loan.supplier_id):
            self.db.refresh(loan)

            reference_number = reference_number or manual_payment_reference()
            if self.payments.reference_exists(reference_number):
                raise ValidationError(f"Reference number {reference_number} already exists")

            split = apply_payment(loan, amount, payment_date)
            payment = self.payments.add(LoanPayment(
                loan_id=loan.id,
                transaction_id=None,
                amount=split.amount,
                interest_portion=split.interest_portion,
                principal_portion=split.principal_portion,
                payment_method=payment_method,
                payment_date=payment_date,
                reference_number=reference_number,
                notes=notes,
            ))
            self.balances.recalculate(loan.supplier_id)

        stale = self.credit.refresh_best_effort(loan.supplier_id, "loan_payment")

        record_operation("loan_payment", "ok")
        logger.info(
            "Loan payment recorded",
            extra={
                "loan_id": str(loan.id),
                "amount": str(split.amount),
                "interest_portion": str(split.interest_portion),
                "principal_portion": str(split.principal_portion),
                "loan_paid": split.loan_now_paid,
            },
        )
        return PaymentResult(payment=payment, loan=loan, score_stale=stale)

    def get_loan(self, loan_id: uuid.UUID) -> Loan:
        loan = self.loans.get_loan(loan_id)
        if loan is None:
            raise NotFoundError(f"Loan {loan_id} not found")
        return loan

    def get_payments(self, loan_id: uuid.UUID) -> List[LoanPayment]:
        self.get_loan(loan_id)
        return self.payments.get_for_loan(loan_id)

    @staticmethod
    def _ensure_closable(loan: Loan, verb: str) -> None:
        if loan.status not in CLOSABLE_STATUSES:
            raise InvalidStateTransition(f"Cannot {verb} loan that is {loan.status}")
