"""Supplier balance - outstanding principal across approved loans"""

from decimal import Decimal
from typing import Iterable

from copra_ledger.domain.models import LoanLike, LoanStatus
from copra_ledger.utils.money import ZERO


def outstanding_balance(loans: Iterable[LoanLike]) -> Decimal:
    """sum(amount - total_paid) over approved loans; paid, pending and closed loans are excluded"""
    return sum(
        (loan.amount - loan.total_paid for loan in loans if loan.status == LoanStatus.APPROVED),
        ZERO,
    )
