"""Pytest fixtures for testing"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from copra_ledger.api.main import create_app
from copra_ledger.api.dependencies import get_reconciliation_client
from copra_ledger.domain.amortization import total_with_interest
from copra_ledger.domain.models import LoanStatus
from copra_ledger.infrastructure.database.models import Base, Loan, Supplier, utcnow
from copra_ledger.infrastructure.database.session import get_db, init_db
from copra_ledger.services.balance import BalanceAggregator
from copra_ledger.services.ledger import LedgerOrchestrator
from copra_ledger.utils.money import ZERO


# Test database
TEST_DATABASE_URL = "sqlite:///./test_copra_ledger.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

ADMIN_HEADERS = {"X-User-Role": "admin", "X-User-Id": "clerk-01"}


class FakeReconciliationClient:
    """Collects stale-score events instead of posting them"""

    def __init__(self):
        self.events = []

    async def send_stale_score_event(self, payload):
        self.events.append(payload)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    init_db(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def other_session(db: Session) -> Generator[Session, None, None]:
    """A second, independent connection to the test database that gives up on locks quickly"""
    other_engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False, "timeout": 0.2})
    other = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=other_engine)()
    try:
        yield other
    finally:
        other.close()
        other_engine.dispose()


@pytest.fixture
def reconciliation_client() -> FakeReconciliationClient:
    return FakeReconciliationClient()


@pytest.fixture
def client(db: Session, reconciliation_client: FakeReconciliationClient) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_reconciliation_client] = lambda: reconciliation_client
    return TestClient(app)


@pytest.fixture
def admin_headers() -> dict:
    return dict(ADMIN_HEADERS)


@pytest.fixture
def supplier(db: Session) -> Supplier:
    """An active supplier with no history"""
    supplier = Supplier(name="Mang Tonyo Copra", current_balance=ZERO, is_active=True)
    db.add(supplier)
    db.commit()
    return supplier


@pytest.fixture
def make_loan(db: Session):
    """
    Factory for loans written straight to the store, bypassing eligibility.

    Balance is recomputed so the supplier starts consistent with its loans.
    """

    def _make(
        supplier: Supplier,
        amount: str = "1000",
        interest_rate: str = "10",
        status: str = LoanStatus.APPROVED.value,
        created_at: datetime = None,
    ) -> Loan:
        principal = Decimal(amount)
        loan = Loan(
            supplier_id=supplier.id,
            amount=principal,
            interest_rate=Decimal(interest_rate),
            total_amount_with_interest=total_with_interest(principal, Decimal(interest_rate)),
            total_paid=ZERO,
            principal_paid=ZERO,
            interest_paid=ZERO,
            status=status,
            due_date=utcnow() + timedelta(days=30),
            created_at=created_at or utcnow(),
        )
        db.add(loan)
        db.flush()
        BalanceAggregator(db).recalculate(supplier.id)
        db.commit()
        return loan

    return _make


@pytest.fixture
def purchase(db: Session):
    """Factory for purchases of a given total through the orchestrator (1 kilo at `total`)"""

    def _purchase(supplier: Supplier, total: str, status: str = "completed"):
        result = LedgerOrchestrator(db).create_transaction(
            supplier_id=supplier.id,
            quantity=Decimal("1"),
            unit_price=Decimal(total),
            transaction_date=utcnow(),
            status=status,
        )
        assert result.ok, result.reason
        return result

    return _purchase
