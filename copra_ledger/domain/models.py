"""Domain models - pure Python dataclasses and status vocabularies"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Protocol


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    VOIDED = "voided"


class LoanStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"
    CANCELLED = "cancelled"
    VOIDED = "voided"


class PaymentMethod(str, Enum):
    AUTO_DEBIT = "auto-debit"
    MANUAL = "manual"
    BANK_TRANSFER = "bank-transfer"
    CASH = "cash"


class LoanLike(Protocol):
    """Attributes the amortization rules read and write on a loan"""

    id: uuid.UUID
    amount: Decimal
    total_amount_with_interest: Decimal
    total_paid: Decimal
    principal_paid: Decimal
    interest_paid: Decimal
    status: str
    completion_date: Optional[datetime]
    last_payment_date: Optional[datetime]
    created_at: datetime


class PaymentLike(Protocol):
    """A persisted payment row carrying the split it applied"""

    amount: Decimal
    interest_portion: Decimal
    principal_portion: Decimal


@dataclass
class CreditAssessment:
    """Output of the credit scoring engine for one supplier"""

    score: int
    transaction_consistency: int
    total_supply_score: int
    transaction_count_score: int
    eligible_amount: int
    transaction_count: int
    average_transaction: Decimal
    credit_percentage: Decimal
    remarks: str = ""

    @property
    def is_eligible(self) -> bool:
        return self.transaction_count > 0


@dataclass
class PaymentSplit:
    """How one payment was divided between interest and principal"""

    amount: Decimal
    interest_portion: Decimal
    principal_portion: Decimal
    loan_now_paid: bool


@dataclass
class LoanDeduction:
    """A single auto-debit applied to one loan"""

    loan_id: uuid.UUID
    amount: Decimal
    split: PaymentSplit


@dataclass
class AutoDebitResult:
    """Outcome of allocating a purchase's proceeds across outstanding loans"""

    budget: Decimal
    total_deduction: Decimal
    amount_after_deduction: Decimal
    deductions: List[LoanDeduction] = field(default_factory=list)


@dataclass
class ReversedDeduction:
    loan_id: uuid.UUID
    amount: Decimal
    loan_reopened: bool


@dataclass
class ReversalResult:
    """What a reversal undid, and which recorded links could not be resolved"""

    reversed: List[ReversedDeduction] = field(default_factory=list)
    orphaned_loan_ids: List[uuid.UUID] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.orphaned_loan_ids)

    @property
    def total_reversed(self) -> Decimal:
        return sum((r.amount for r in self.reversed), Decimal("0.00"))
