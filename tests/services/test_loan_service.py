"""Service tests for loan lifecycle and manual repayments"""

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest

from copra_ledger.domain.exceptions import (
    InvalidAmount,
    InvalidLoanState,
    InvalidStateTransition,
    NotEligible,
    NotFoundError,
    ValidationError,
)
from copra_ledger.domain.models import LoanStatus
from copra_ledger.infrastructure.database.models import utcnow
from copra_ledger.services.loans import LoanService
from copra_ledger.services.suppliers import SupplierService

DUE = utcnow() + timedelta(days=60)


def request_loan(db, supplier, amount, interest_rate="10"):
    return LoanService(db).create_loan(
        supplier_id=supplier.id,
        amount=Decimal(amount),
        interest_rate=Decimal(interest_rate),
        due_date=DUE,
        purpose="Fertilizer",
        created_by="clerk-01",
    )


def test_supplier_without_history_is_not_eligible(db, supplier):
    with pytest.raises(NotEligible) as exc_info:
        request_loan(db, supplier, "100")
    assert "at least one transaction" in str(exc_info.value)


def test_loan_above_eligible_amount_is_rejected(db, supplier, purchase):
    purchase(supplier, "500")  # eligible for 200

    with pytest.raises(NotEligible):
        request_loan(db, supplier, "200.01")


def test_loan_request_within_limit_is_pending_and_not_in_balance(db, supplier, purchase):
    purchase(supplier, "500")

    loan = request_loan(db, supplier, "200")

    assert loan.status == LoanStatus.PENDING
    assert loan.total_amount_with_interest == Decimal("220.00")
    assert loan.created_by == "clerk-01"
    db.refresh(supplier)
    assert supplier.current_balance == Decimal("0")


def test_loan_for_unknown_supplier(db):
    with pytest.raises(NotFoundError):
        LoanService(db).create_loan(uuid.uuid4(), Decimal("10"), Decimal("0"), DUE)


def test_loan_for_inactive_supplier(db, supplier, purchase):
    purchase(supplier, "500")
    SupplierService(db).deactivate_supplier(supplier.id)

    with pytest.raises(ValidationError):
        request_loan(db, supplier, "100")


def test_approval_adds_loan_to_balance(db, supplier, purchase):
    purchase(supplier, "500")
    loan = request_loan(db, supplier, "200")

    approved = LoanService(db).approve_loan(loan.id, approved_by="manager-02")

    assert approved.status == LoanStatus.APPROVED
    assert approved.approved_by == "manager-02"
    assert approved.approval_date is not None
    db.refresh(supplier)
    assert supplier.current_balance == Decimal("200")


def test_approval_with_adjusted_amount_rederives_interest(db, supplier, purchase):
    purchase(supplier, "500")
    loan = request_loan(db, supplier, "200")

    approved = LoanService(db).approve_loan(loan.id, approved_amount=Decimal("150"))

    assert approved.amount == Decimal("150")
    assert approved.total_amount_with_interest == Decimal("165.00")


def test_approve_twice_is_an_invalid_transition(db, supplier, make_loan):
    loan = make_loan(supplier, status=LoanStatus.PENDING.value)
    service = LoanService(db)
    service.approve_loan(loan.id)

    with pytest.raises(InvalidStateTransition):
        service.approve_loan(loan.id)


def test_reject_pending_loan(db, supplier, make_loan):
    loan = make_loan(supplier, status=LoanStatus.PENDING.value)

    rejected = LoanService(db).reject_loan(loan.id)

    assert rejected.status == LoanStatus.REJECTED
    with pytest.raises(InvalidStateTransition):
        LoanService(db).approve_loan(loan.id)


def test_cancel_approved_loan_drops_it_from_balance(db, supplier, make_loan):
    loan = make_loan(supplier, amount="600")

    cancelled = LoanService(db).cancel_loan(loan.id, cancelled_by="clerk-01")

    assert cancelled.status == LoanStatus.CANCELLED
    assert cancelled.cancelled_by == "clerk-01"
    assert cancelled.cancelled_date is not None
    db.refresh(supplier)
    assert supplier.current_balance == Decimal("0")


def test_void_records_reason(db, supplier, make_loan):
    loan = make_loan(supplier)

    voided = LoanService(db).void_loan(loan.id, reason="Duplicate entry", voided_by="manager-02")

    assert voided.status == LoanStatus.VOIDED
    assert voided.void_reason == "Duplicate entry"
    assert voided.voided_by == "manager-02"


def test_paid_loan_cannot_be_cancelled(db, supplier, make_loan):
    loan = make_loan(supplier, amount="100", interest_rate="0")
    LoanService(db).record_payment(loan.id, Decimal("100"))

    with pytest.raises(InvalidStateTransition):
        LoanService(db).cancel_loan(loan.id)


def test_manual_payment_settles_interest_first(db, supplier, make_loan):
    loan = make_loan(supplier, amount="1000", interest_rate="10")

    result = LoanService(db).record_payment(
        loan.id, Decimal("300"), payment_method="cash", notes="Paid at the buying station",
    )

    assert result.score_stale is False
    assert result.payment.interest_portion == Decimal("100.00")
    assert result.payment.principal_portion == Decimal("200.00")
    assert result.payment.payment_method == "cash"
    assert result.payment.reference_number.startswith("PAY-")
    assert result.loan.total_paid == Decimal("300.00")
    assert result.loan.last_payment_date is not None
    db.refresh(supplier)
    assert supplier.current_balance == Decimal("700")


def test_full_manual_payment_closes_loan(db, supplier, make_loan):
    loan = make_loan(supplier, amount="1000", interest_rate="10")

    result = LoanService(db).record_payment(loan.id, Decimal("1100"))

    assert result.loan.status == LoanStatus.PAID
    assert result.loan.remaining_balance == Decimal("0")
    db.refresh(supplier)
    assert supplier.current_balance == Decimal("0")


def test_overpayment_is_rejected_and_rolled_back(db, supplier, make_loan):
    loan = make_loan(supplier, amount="1000", interest_rate="10")

    with pytest.raises(InvalidAmount):
        LoanService(db).record_payment(loan.id, Decimal("1100.01"))

    db.refresh(loan)
    assert loan.total_paid == Decimal("0")


def test_payment_on_pending_loan_is_rejected(db, supplier, make_loan):
    loan = make_loan(supplier, status=LoanStatus.PENDING.value)

    with pytest.raises(InvalidLoanState):
        LoanService(db).record_payment(loan.id, Decimal("10"))


def test_auto_debit_method_is_reserved_for_purchases(db, supplier, make_loan):
    loan = make_loan(supplier)

    with pytest.raises(ValidationError):
        LoanService(db).record_payment(loan.id, Decimal("10"), payment_method="auto-debit")


def test_duplicate_reference_number_is_rejected(db, supplier, make_loan):
    loan = make_loan(supplier)
    service = LoanService(db)
    service.record_payment(loan.id, Decimal("10"), reference_number="OR-0001")

    with pytest.raises(ValidationError):
        service.record_payment(loan.id, Decimal("10"), reference_number="OR-0001")

    db.refresh(loan)
    assert loan.total_paid == Decimal("10")


def test_payment_history_lists_every_payment(db, supplier, make_loan, purchase):
    loan = make_loan(supplier, amount="1000", interest_rate="10")
    purchase(supplier, "500")
    LoanService(db).record_payment(loan.id, Decimal("50"), payment_method="bank-transfer")

    payments = LoanService(db).get_payments(loan.id)

    assert sorted(p.payment_method for p in payments) == ["auto-debit", "bank-transfer"]
    assert sum((p.amount for p in payments), Decimal("0")) == Decimal("250")
