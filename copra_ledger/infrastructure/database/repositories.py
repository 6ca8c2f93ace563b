"""Data access layer for ledger entities"""

import uuid
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from copra_ledger.domain.exceptions import ConcurrencyConflict
from copra_ledger.domain.models import CreditAssessment, LoanStatus, PaymentMethod, TransactionStatus
from copra_ledger.infrastructure.database.models import (
    CreditScore,
    Loan,
    LoanPayment,
    Supplier,
    Transaction,
)


class SupplierRepository:
    """Repository for suppliers"""

    def __init__(self, db: Session):
        self.db = db

    def create_supplier(self, name: str, contact: Optional[dict] = None, address: Optional[dict] = None) -> Supplier:
        supplier = Supplier(name=name, contact=contact, address=address, current_balance=0, is_active=True)
        self.db.add(supplier)
        self.db.flush()
        return supplier

    def get_supplier(self, supplier_id: uuid.UUID) -> Optional[Supplier]:
        return self.db.get(Supplier, supplier_id)

    def lock_supplier(self, supplier_id: uuid.UUID) -> Optional[Supplier]:
        """
        SELECT ... FOR UPDATE on the supplier row.

        Every mutation of a supplier's loans, payments or balance takes this
        lock first, so two purchases for the same supplier cannot both read
        the same remaining loan balance.
        """
        try:
            return (
                self.db.query(Supplier)
                .filter(Supplier.id == supplier_id)
                .with_for_update()
                .populate_existing()
                .one_or_none()
            )
        except OperationalError as e:
            raise ConcurrencyConflict(f"Could not lock supplier {supplier_id}: {e.orig}") from e


class TransactionRepository:
    """Repository for purchase transactions"""

    def __init__(self, db: Session):
        self.db = db

    def add(self, transaction: Transaction) -> Transaction:
        self.db.add(transaction)
        self.db.flush()  # Get ID without committing
        return transaction

    def get_transaction(self, transaction_id: uuid.UUID, include_deleted: bool = False) -> Optional[Transaction]:
        query = self.db.query(Transaction).filter(Transaction.id == transaction_id)
        if not include_deleted:
            query = query.filter(Transaction.is_deleted.is_(False))
        return query.one_or_none()

    def get_completed_for_supplier(self, supplier_id: uuid.UUID) -> List[Transaction]:
        """Completed, non-deleted purchases - the scoring population"""
        return (
            self.db.query(Transaction)
            .filter(
                Transaction.supplier_id == supplier_id,
                Transaction.status == TransactionStatus.COMPLETED.value,
                Transaction.is_deleted.is_(False),
            )
            .order_by(Transaction.transaction_date)
            .all()
        )

    def get_for_supplier(self, supplier_id: uuid.UUID, limit: int = 50) -> List[Transaction]:
        return (
            self.db.query(Transaction)
            .filter(Transaction.supplier_id == supplier_id, Transaction.is_deleted.is_(False))
            .order_by(Transaction.created_at.desc())
            .limit(limit)
            .all()
        )


class LoanRepository:
    """Repository for loans"""

    def __init__(self, db: Session):
        self.db = db

    def add(self, loan: Loan) -> Loan:
        self.db.add(loan)
        self.db.flush()
        return loan

    def get_loan(self, loan_id: uuid.UUID) -> Optional[Loan]:
        return self.db.get(Loan, loan_id)

    def get_loans_by_ids(self, loan_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, Loan]:
        ids = list(loan_ids)
        if not ids:
            return {}
        loans = self.db.query(Loan).filter(Loan.id.in_(ids)).all()
        return {loan.id: loan for loan in loans}

    def get_outstanding_for_supplier(self, supplier_id: uuid.UUID) -> List[Loan]:
        """Approved loans with something left to pay, oldest first"""
        return (
            self.db.query(Loan)
            .filter(
                Loan.supplier_id == supplier_id,
                Loan.status == LoanStatus.APPROVED.value,
                Loan.total_paid < Loan.total_amount_with_interest,
            )
            .order_by(Loan.created_at, Loan.request_date)
            .all()
        )

    def get_approved_for_supplier(self, supplier_id: uuid.UUID) -> List[Loan]:
        return (
            self.db.query(Loan)
            .filter(Loan.supplier_id == supplier_id, Loan.status == LoanStatus.APPROVED.value)
            .all()
        )

    def get_for_supplier(self, supplier_id: uuid.UUID) -> List[Loan]:
        return (
            self.db.query(Loan)
            .filter(Loan.supplier_id == supplier_id)
            .order_by(Loan.created_at.desc())
            .all()
        )


class LoanPaymentRepository:
    """Repository for loan payments"""

    def __init__(self, db: Session):
        self.db = db

    def add(self, payment: LoanPayment) -> LoanPayment:
        self.db.add(payment)
        self.db.flush()
        return payment

    def reference_exists(self, reference_number: str) -> bool:
        return (
            self.db.query(LoanPayment.id)
            .filter(LoanPayment.reference_number == reference_number)
            .first()
            is not None
        )

    def get_auto_debits_for_transaction(self, transaction_id: uuid.UUID) -> Dict[uuid.UUID, LoanPayment]:
        """Auto-debit rows written for a transaction, keyed by loan"""
        payments = (
            self.db.query(LoanPayment)
            .filter(
                LoanPayment.transaction_id == transaction_id,
                LoanPayment.payment_method == PaymentMethod.AUTO_DEBIT.value,
            )
            .all()
        )
        return {p.loan_id: p for p in payments}

    def get_for_loan(self, loan_id: uuid.UUID) -> List[LoanPayment]:
        return (
            self.db.query(LoanPayment)
            .filter(LoanPayment.loan_id == loan_id)
            .order_by(LoanPayment.payment_date.desc())
            .all()
        )

    def latest_payment_date(self, loan_id: uuid.UUID, excluding: Iterable[uuid.UUID] = ()) -> Optional[datetime]:
        query = self.db.query(LoanPayment.payment_date).filter(LoanPayment.loan_id == loan_id)
        excluded = list(excluding)
        if excluded:
            query = query.filter(LoanPayment.id.notin_(excluded))
        row = query.order_by(LoanPayment.payment_date.desc()).first()
        return row[0] if row else None

    def delete(self, payment: LoanPayment) -> None:
        self.db.delete(payment)


class CreditScoreRepository:
    """Repository for the append-only credit score log"""

    def __init__(self, db: Session):
        self.db = db

    def append(self, supplier_id: uuid.UUID, assessment: CreditAssessment, remarks: Optional[str] = None) -> CreditScore:
        """Persist a new assessment row; earlier rows are kept as history"""
        record = CreditScore(
            supplier_id=supplier_id,
            score=assessment.score,
            transaction_consistency=assessment.transaction_consistency,
            total_supply_score=assessment.total_supply_score,
            transaction_count_score=assessment.transaction_count_score,
            eligible_amount=assessment.eligible_amount,
            transaction_count=assessment.transaction_count,
            credit_percentage=assessment.credit_percentage,
            average_transaction=assessment.average_transaction,
            remarks=remarks or assessment.remarks,
        )
        self.db.add(record)
        self.db.flush()
        return record

    def get_latest(self, supplier_id: uuid.UUID) -> Optional[CreditScore]:
        return (
            self.db.query(CreditScore)
            .filter(CreditScore.supplier_id == supplier_id)
            .order_by(CreditScore.assessment_date.desc())
            .first()
        )

    def get_history(self, supplier_id: uuid.UUID, limit: int = 20) -> List[CreditScore]:
        """Fetch recent assessments for a supplier"""
        return (
            self.db.query(CreditScore)
            .filter(CreditScore.supplier_id == supplier_id)
            .order_by(CreditScore.assessment_date.desc())
            .limit(limit)
            .all()
        )
