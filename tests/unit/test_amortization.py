"""Unit tests for interest-first loan amortization"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from copra_ledger.domain.amortization import (
    apply_payment,
    interest_remaining,
    remaining_balance,
    reverse_payment,
    total_with_interest,
)
from copra_ledger.domain.exceptions import InvalidAmount, InvalidLoanState

NOW = datetime(2024, 3, 1, tzinfo=timezone.utc)


def make_loan(amount="1000", rate="10", status="approved"):
    principal = Decimal(amount)
    return SimpleNamespace(
        id=uuid.uuid4(),
        amount=principal,
        total_amount_with_interest=total_with_interest(principal, Decimal(rate)),
        total_paid=Decimal("0"),
        principal_paid=Decimal("0"),
        interest_paid=Decimal("0"),
        status=status,
        completion_date=None,
        last_payment_date=None,
        created_at=NOW,
    )


def test_total_with_interest_is_flat():
    assert total_with_interest(Decimal("1000"), Decimal("10")) == Decimal("1100.00")
    assert total_with_interest(Decimal("250"), Decimal("0")) == Decimal("250.00")
    assert total_with_interest(Decimal("333.33"), Decimal("5")) == Decimal("350.00")


def test_payment_settles_interest_before_principal():
    loan = make_loan()

    split = apply_payment(loan, Decimal("800"), NOW)

    assert split.interest_portion == Decimal("100.00")
    assert split.principal_portion == Decimal("700.00")
    assert split.loan_now_paid is False
    assert loan.total_paid == Decimal("800.00")
    assert loan.interest_paid == Decimal("100.00")
    assert loan.principal_paid == Decimal("700.00")
    assert loan.last_payment_date == NOW
    assert loan.status == "approved"


def test_payment_smaller_than_interest_is_all_interest():
    loan = make_loan()

    split = apply_payment(loan, Decimal("40"), NOW)

    assert split.interest_portion == Decimal("40.00")
    assert split.principal_portion == Decimal("0.00")
    assert interest_remaining(loan) == Decimal("60.00")


def test_later_payments_go_to_principal_once_interest_is_settled():
    loan = make_loan()
    apply_payment(loan, Decimal("150"), NOW)

    split = apply_payment(loan, Decimal("100"), NOW)

    assert split.interest_portion == Decimal("0.00")
    assert split.principal_portion == Decimal("100.00")
    assert loan.principal_paid + loan.interest_paid == loan.total_paid


def test_final_payment_marks_loan_paid():
    loan = make_loan()
    apply_payment(loan, Decimal("600"), NOW)

    split = apply_payment(loan, Decimal("500"), NOW)

    assert split.loan_now_paid is True
    assert loan.status == "paid"
    assert loan.completion_date == NOW
    assert remaining_balance(loan) == Decimal("0.00")


def test_overpayment_is_rejected_without_mutation():
    loan = make_loan()

    with pytest.raises(InvalidAmount):
        apply_payment(loan, Decimal("1100.01"), NOW)

    assert loan.total_paid == Decimal("0")


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
def test_non_positive_payment_is_rejected(amount):
    with pytest.raises(InvalidAmount):
        apply_payment(make_loan(), amount, NOW)


@pytest.mark.parametrize("status", ["pending", "paid", "rejected", "cancelled", "voided"])
def test_payment_requires_approved_loan(status):
    with pytest.raises(InvalidLoanState):
        apply_payment(make_loan(status=status), Decimal("10"), NOW)


def test_reverse_payment_restores_totals_and_reopens_loan():
    loan = make_loan()
    first = apply_payment(loan, Decimal("300"), NOW)
    second = apply_payment(loan, Decimal("800"), NOW)
    assert loan.status == "paid"

    reopened = reverse_payment(loan, second)

    assert reopened is True
    assert loan.status == "approved"
    assert loan.completion_date is None
    assert loan.total_paid == first.amount
    assert loan.interest_paid == first.interest_portion
    assert loan.principal_paid == first.principal_portion


def test_reverse_payment_on_open_loan_keeps_status():
    loan = make_loan()
    split = apply_payment(loan, Decimal("200"), NOW)

    assert reverse_payment(loan, split) is False
    assert loan.status == "approved"
    assert loan.total_paid == Decimal("0.00")
