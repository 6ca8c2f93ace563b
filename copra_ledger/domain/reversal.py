"""Reversal engine - undoes a purchase's auto-debits when it is cancelled or voided"""

import uuid
from decimal import Decimal
from typing import Iterable, Mapping, Tuple

from copra_ledger.domain.amortization import reverse_payment
from copra_ledger.domain.exceptions import InvalidTransition, ValidationError
from copra_ledger.domain.models import (
    LoanLike,
    PaymentLike,
    ReversalResult,
    ReversedDeduction,
    TransactionStatus,
)

REVERSAL_TARGETS = (TransactionStatus.CANCELLED, TransactionStatus.VOIDED)


def ensure_reversible(current_status: str, target_status: str) -> None:
    """Only completed purchases can be cancelled or voided"""
    if target_status not in REVERSAL_TARGETS:
        raise ValidationError(f"Unsupported reversal target: {target_status}")
    if current_status != TransactionStatus.COMPLETED:
        verb = "cancel" if target_status == TransactionStatus.CANCELLED else "void"
        raise InvalidTransition(
            f"Cannot {verb} transaction with status: {current_status}. "
            f"Only completed transactions can be {target_status}."
        )


def reverse_deductions(
    recorded: Iterable[Tuple[uuid.UUID, Decimal]],
    loans: Mapping[uuid.UUID, LoanLike],
    payments: Mapping[uuid.UUID, PaymentLike],
) -> ReversalResult:
    """
    Walk the (loan, amount) pairs recorded on a transaction and unwind each one.

    Each pair is resolved to its loan and to the auto-debit payment row that
    applied it; the payment's stored interest/principal split is what gets
    subtracted. Pairs whose loan or payment cannot be found are collected as
    orphans and skipped so the remaining entries are still reversed.
    """
    result = ReversalResult()

    for loan_id, _amount in recorded:
        loan = loans.get(loan_id)
        payment = payments.get(loan_id)
        if loan is None or payment is None:
            result.orphaned_loan_ids.append(loan_id)
            continue

        reopened = reverse_payment(loan, payment)
        result.reversed.append(
            ReversedDeduction(loan_id=loan_id, amount=payment.amount, loan_reopened=reopened)
        )

    return result
