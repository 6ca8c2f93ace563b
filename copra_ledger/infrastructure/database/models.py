"""SQLAlchemy ORM models for the copra ledger"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import declarative_base, relationship

from copra_ledger.domain.amortization import remaining_balance
from copra_ledger.domain.models import LoanStatus, TransactionStatus
from copra_ledger.domain.scoring import score_category

Base = declarative_base()

Money = Numeric(14, 2)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Supplier(Base):
    """Copra supplier; current_balance is written only by the balance aggregator"""

    __tablename__ = "suppliers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    contact = Column(JSON, nullable=True)
    address = Column(JSON, nullable=True)
    current_balance = Column(Money, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    transactions = relationship("Transaction", back_populates="supplier")
    loans = relationship("Loan", back_populates="supplier")


class Transaction(Base):
    """Copra purchase; soft-deleted only"""

    __tablename__ = "transactions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    supplier_id = Column(Uuid, ForeignKey("suppliers.id"), nullable=False, index=True)
    transaction_number = Column(Text, nullable=False, unique=True)
    status = Column(Text, nullable=False, default=TransactionStatus.PENDING.value)
    quantity = Column(Numeric(12, 2), nullable=False)
    less_kilo = Column(Numeric(12, 2), nullable=False, default=0)
    total_kilo = Column(Numeric(12, 2), nullable=False)
    unit_price = Column(Money, nullable=False)
    total_amount = Column(Money, nullable=False)
    loan_deduction = Column(Money, nullable=False, default=0)
    amount_after_deduction = Column(Money, nullable=False)
    paid_amount = Column(Money, nullable=False, default=0)
    transaction_date = Column(DateTime(timezone=True), nullable=False)
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_by = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    supplier = relationship("Supplier", back_populates="transactions")
    loan_payments = relationship(
        "TransactionLoanDeduction",
        back_populates="transaction",
        order_by="TransactionLoanDeduction.position",
        cascade="all, delete-orphan",
    )


class TransactionLoanDeduction(Base):
    """
    One (loan, amount) pair debited from a transaction, in allocation order.

    loan_id is a plain reference rather than a foreign key: a reversal must
    survive a link that no longer resolves and report it instead of failing.
    """

    __tablename__ = "transaction_loan_deductions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    transaction_id = Column(Uuid, ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False, index=True)
    loan_id = Column(Uuid, nullable=False, index=True)
    amount = Column(Money, nullable=False)
    position = Column(Integer, nullable=False)

    transaction = relationship("Transaction", back_populates="loan_payments")


class Loan(Base):
    """Short-term loan against future purchases"""

    __tablename__ = "loans"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    supplier_id = Column(Uuid, ForeignKey("suppliers.id"), nullable=False, index=True)
    amount = Column(Money, nullable=False)
    interest_rate = Column(Numeric(6, 2), nullable=False, default=0)
    total_amount_with_interest = Column(Money, nullable=False)
    total_paid = Column(Money, nullable=False, default=0)
    principal_paid = Column(Money, nullable=False, default=0)
    interest_paid = Column(Money, nullable=False, default=0)
    purpose = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default=LoanStatus.PENDING.value)
    due_date = Column(DateTime(timezone=True), nullable=False)
    request_date = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    approval_date = Column(DateTime(timezone=True), nullable=True)
    last_payment_date = Column(DateTime(timezone=True), nullable=True)
    completion_date = Column(DateTime(timezone=True), nullable=True)
    cancelled_date = Column(DateTime(timezone=True), nullable=True)
    voided_date = Column(DateTime(timezone=True), nullable=True)
    void_reason = Column(Text, nullable=True)
    created_by = Column(Text, nullable=True)
    approved_by = Column(Text, nullable=True)
    cancelled_by = Column(Text, nullable=True)
    voided_by = Column(Text, nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    # Optimistic concurrency: UPDATE ... WHERE version = :seen
    __mapper_args__ = {"version_id_col": version}

    supplier = relationship("Supplier", back_populates="loans")
    payments = relationship("LoanPayment", back_populates="loan", order_by="LoanPayment.payment_date")

    @property
    def remaining_balance(self):
        return remaining_balance(self)


class LoanPayment(Base):
    """Payment against a loan, auto-debited from a transaction or recorded manually"""

    __tablename__ = "loan_payments"
    __table_args__ = (
        # At most one auto-debit per (transaction, loan)
        UniqueConstraint("transaction_id", "loan_id", name="uq_loan_payment_transaction_loan"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    loan_id = Column(Uuid, ForeignKey("loans.id"), nullable=False, index=True)
    transaction_id = Column(Uuid, ForeignKey("transactions.id"), nullable=True, index=True)
    amount = Column(Money, nullable=False)
    interest_portion = Column(Money, nullable=False, default=0)
    principal_portion = Column(Money, nullable=False, default=0)
    payment_method = Column(Text, nullable=False)
    payment_date = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    reference_number = Column(Text, nullable=False, unique=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    loan = relationship("Loan", back_populates="payments")


class CreditScore(Base):
    """Append-only credit assessment log; the latest row by assessment_date is current"""

    __tablename__ = "credit_scores"
    __table_args__ = (
        Index("ix_credit_scores_supplier_assessed", "supplier_id", "assessment_date"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    supplier_id = Column(Uuid, ForeignKey("suppliers.id"), nullable=False)
    score = Column(Integer, nullable=False)
    transaction_consistency = Column(Integer, nullable=False, default=0)
    total_supply_score = Column(Integer, nullable=False, default=0)
    transaction_count_score = Column(Integer, nullable=False, default=0)
    eligible_amount = Column(Money, nullable=False, default=0)
    transaction_count = Column(Integer, nullable=False, default=0)
    credit_percentage = Column(Numeric(4, 2), nullable=False, default=0)
    average_transaction = Column(Money, nullable=False, default=0)
    assessment_date = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    remarks = Column(Text, nullable=True)

    @property
    def category(self) -> str:
        return score_category(self.score)

    @property
    def is_eligible(self) -> bool:
        return (self.transaction_count or 0) > 0
