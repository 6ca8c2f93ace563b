"""Service tests for credit score persistence and reads"""

import uuid
from decimal import Decimal

import pytest

from copra_ledger.domain.exceptions import NotFoundError
from copra_ledger.infrastructure.database.models import CreditScore
from copra_ledger.services.credit import CreditScoreService
from copra_ledger.services.suppliers import SupplierService


def test_score_is_computed_on_read_without_persisting(db, supplier):
    score = CreditScoreService(db).get_current(supplier.id)

    assert score.score == 0
    assert score.category == "No Score"
    assert score.is_eligible is False
    assert db.query(CreditScore).count() == 0


def test_each_purchase_appends_to_history(db, supplier, purchase):
    purchase(supplier, "1000")
    purchase(supplier, "500")

    history = CreditScoreService(db).get_history(supplier.id)

    assert len(history) == 2
    assert history[0].score == 48
    assert history[0].eligible_amount == Decimal("300")
    assert history[1].score == 20


def test_recalculate_appends_a_row(db, supplier, purchase):
    purchase(supplier, "500")

    record = CreditScoreService(db).recalculate(supplier.id)

    assert record.score == 20
    assert record.category == "Poor"
    assert db.query(CreditScore).count() == 2


def test_history_for_unknown_supplier(db):
    with pytest.raises(NotFoundError):
        CreditScoreService(db).get_history(uuid.uuid4())


def test_sync_balance_repairs_drifted_cache(db, supplier, make_loan):
    make_loan(supplier, amount="1000")
    supplier.current_balance = Decimal("12345")
    db.commit()

    balance = SupplierService(db).sync_balance(supplier.id)

    assert balance == Decimal("1000")
    db.refresh(supplier)
    assert supplier.current_balance == Decimal("1000")
