"""Loan amortization - interest-first allocation of payments and its exact inverse"""

from datetime import datetime
from decimal import Decimal

from copra_ledger.domain.exceptions import InvalidAmount, InvalidLoanState
from copra_ledger.domain.models import LoanLike, LoanStatus, PaymentLike, PaymentSplit
from copra_ledger.utils.money import ZERO, to_money


def total_with_interest(amount: Decimal, interest_rate: Decimal) -> Decimal:
    """Flat, single-period interest: principal * (1 + rate/100)"""
    return to_money(to_money(amount) * (1 + Decimal(str(interest_rate)) / 100))


def remaining_balance(loan: LoanLike) -> Decimal:
    """What is still owed, interest included"""
    return loan.total_amount_with_interest - loan.total_paid


def interest_remaining(loan: LoanLike) -> Decimal:
    return max(loan.total_amount_with_interest - loan.amount - loan.interest_paid, ZERO)


def is_outstanding(loan: LoanLike) -> bool:
    return loan.status == LoanStatus.APPROVED and loan.total_paid < loan.total_amount_with_interest


def apply_payment(loan: LoanLike, amount: Decimal, payment_date: datetime) -> PaymentSplit:
    """
    Apply a payment to an approved loan, settling interest before principal.

    Mutates the loan's running totals in place; the caller persists the loan
    together with the payment row in the same unit of work. total_paid never
    exceeds total_amount_with_interest: an overpayment is rejected, not clamped.

    Raises:
        InvalidAmount: amount is not positive or exceeds the remaining balance
        InvalidLoanState: loan is not approved
    """
    amount = to_money(amount)
    if amount <= 0:
        raise InvalidAmount(f"Payment amount must be positive, got {amount}")
    if loan.status != LoanStatus.APPROVED:
        raise InvalidLoanState(f"Cannot make payment on {loan.status} loan")

    remaining = remaining_balance(loan)
    if amount > remaining:
        raise InvalidAmount(f"Payment of {amount} exceeds remaining balance of {remaining}")

    interest_portion = min(amount, interest_remaining(loan))
    principal_portion = amount - interest_portion

    loan.total_paid += amount
    loan.interest_paid += interest_portion
    loan.principal_paid += principal_portion
    loan.last_payment_date = payment_date

    now_paid = loan.total_paid >= loan.total_amount_with_interest
    if now_paid:
        loan.status = LoanStatus.PAID.value
        loan.completion_date = payment_date

    return PaymentSplit(
        amount=amount,
        interest_portion=interest_portion,
        principal_portion=principal_portion,
        loan_now_paid=now_paid,
    )


def reverse_payment(loan: LoanLike, payment: PaymentLike) -> bool:
    """
    Undo a previously applied payment using the split recorded on its row.

    Subtracting the stored portions (rather than re-deriving a split from the
    loan's current totals) restores the loan exactly. A loan that the payment
    had settled goes back to approved.

    Returns True when the loan was reopened.
    """
    loan.total_paid -= payment.amount
    loan.interest_paid -= payment.interest_portion
    loan.principal_paid -= payment.principal_portion

    if loan.status == LoanStatus.PAID and loan.total_paid < loan.total_amount_with_interest:
        loan.status = LoanStatus.APPROVED.value
        loan.completion_date = None
        return True
    return False
