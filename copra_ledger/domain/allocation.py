"""Auto-debit allocator - retires outstanding loans from a completed purchase"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, List

from copra_ledger.domain.amortization import apply_payment, is_outstanding, remaining_balance
from copra_ledger.domain.models import AutoDebitResult, LoanDeduction, LoanLike
from copra_ledger.utils.money import ZERO, floor_money, to_money

AUTO_DEBIT_CEILING = Decimal("0.40")


def deduction_budget(total_amount: Decimal, ceiling: Decimal = AUTO_DEBIT_CEILING) -> Decimal:
    """Most that may be taken from one purchase; rounded down so the cap always holds"""
    return max(floor_money(to_money(total_amount) * ceiling), ZERO)


def _created_key(loan: LoanLike) -> datetime:
    # Stores without timezone support hand back naive UTC timestamps
    created = loan.created_at
    return created if created.tzinfo else created.replace(tzinfo=timezone.utc)


def order_outstanding(loans: Iterable[LoanLike]) -> List[LoanLike]:
    """Approved, not fully paid loans, oldest first (FIFO debt retirement)"""
    return sorted(
        (loan for loan in loans if is_outstanding(loan)),
        key=_created_key,
    )


def allocate(
    total_amount: Decimal,
    loans: Iterable[LoanLike],
    payment_date: datetime,
    ceiling: Decimal = AUTO_DEBIT_CEILING,
) -> AutoDebitResult:
    """
    Deduct from a purchase's proceeds toward the supplier's outstanding loans.

    Policy:
    - Budget is capped at `ceiling` of the purchase total (protects supplier cash flow)
    - Loans are walked oldest-first; each takes min(budget left, loan remaining)
    - Each deduction is applied through the amortization rules (interest first)

    Mutates the loans in place. The caller records the deductions on the
    transaction and writes one auto-debit payment row per deduction.
    """
    total_amount = to_money(total_amount)
    budget = deduction_budget(total_amount, ceiling)
    left = budget
    deductions: List[LoanDeduction] = []

    for loan in order_outstanding(loans):
        if left <= 0:
            break

        amount = min(left, remaining_balance(loan))
        if amount <= 0:
            continue

        split = apply_payment(loan, amount, payment_date)
        deductions.append(LoanDeduction(loan_id=loan.id, amount=split.amount, split=split))
        left -= split.amount

    total_deduction = sum((d.amount for d in deductions), ZERO)

    return AutoDebitResult(
        budget=budget,
        total_deduction=total_deduction,
        amount_after_deduction=total_amount - total_deduction,
        deductions=deductions,
    )
