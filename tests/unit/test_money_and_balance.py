"""Unit tests for money rounding, reference numbers and the balance formula"""

import re
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

from copra_ledger.domain.balance import outstanding_balance
from copra_ledger.utils.money import floor_money, round_half_away, to_money
from copra_ledger.utils.references import (
    auto_debit_reference,
    generate_transaction_number,
    manual_payment_reference,
)


def test_to_money_rounds_half_up_to_cents():
    assert to_money("2.345") == Decimal("2.35")
    assert to_money(10) == Decimal("10.00")
    assert to_money(0.1 + 0.2) == Decimal("0.30")


def test_floor_money_truncates():
    assert floor_money("4.399") == Decimal("4.39")


def test_round_half_away():
    assert round_half_away(2.5) == 3
    assert round_half_away(Decimal("48.33")) == 48
    assert round_half_away("200.5") == 201


def test_transaction_number_format():
    number = generate_transaction_number(datetime(2024, 7, 9, tzinfo=timezone.utc))
    assert re.fullmatch(r"TRX-20240709-[0-9A-F]{8}", number)


def test_auto_debit_reference_is_deterministic_per_pair():
    transaction_id, loan_id = uuid.uuid4(), uuid.uuid4()
    assert auto_debit_reference(transaction_id, loan_id) == auto_debit_reference(transaction_id, loan_id)
    assert auto_debit_reference(transaction_id, loan_id) != auto_debit_reference(transaction_id, uuid.uuid4())


def test_manual_payment_reference_format():
    assert re.fullmatch(r"PAY-\d+-[0-9A-F]{6}", manual_payment_reference())


def test_balance_counts_only_approved_loans():
    loans = [
        SimpleNamespace(amount=Decimal("1000"), total_paid=Decimal("800"), status="approved"),
        SimpleNamespace(amount=Decimal("500"), total_paid=Decimal("0"), status="approved"),
        SimpleNamespace(amount=Decimal("700"), total_paid=Decimal("0"), status="pending"),
        SimpleNamespace(amount=Decimal("300"), total_paid=Decimal("330"), status="paid"),
        SimpleNamespace(amount=Decimal("900"), total_paid=Decimal("0"), status="voided"),
    ]

    assert outstanding_balance(loans) == Decimal("700")


def test_balance_tracks_principal_less_total_paid():
    # Interest payments reduce the figure too; it is not clamped
    loans = [SimpleNamespace(amount=Decimal("1000"), total_paid=Decimal("1050"), status="approved")]
    assert outstanding_balance(loans) == Decimal("-50")


def test_empty_balance_is_zero():
    assert outstanding_balance([]) == Decimal("0.00")
