"""Supplier balance aggregator - the single writer of Supplier.current_balance"""

import logging
import uuid
from decimal import Decimal

from sqlalchemy.orm import Session

from copra_ledger.domain.balance import outstanding_balance
from copra_ledger.domain.exceptions import NotFoundError
from copra_ledger.infrastructure.database.repositories import LoanRepository, SupplierRepository

logger = logging.getLogger(__name__)


class BalanceAggregator:
    """Recomputes a supplier's outstanding balance from its approved loans"""

    def __init__(self, db: Session):
        self.db = db
        self.loans = LoanRepository(db)
        self.suppliers = SupplierRepository(db)

    def recalculate(self, supplier_id: uuid.UUID) -> Decimal:
        """
        Write sum(amount - total_paid) over approved loans to the supplier.

        Idempotent; runs inside the caller's unit of work and does not commit.
        """
        self.db.flush()
        supplier = self.suppliers.get_supplier(supplier_id)
        if supplier is None:
            raise NotFoundError(f"Supplier {supplier_id} not found")

        balance = outstanding_balance(self.loans.get_approved_for_supplier(supplier_id))
        supplier.current_balance = balance
        self.db.flush()

        logger.debug("Supplier balance recalculated", extra={"supplier_id": str(supplier_id), "balance": str(balance)})
        return balance
