"""Supplier administration and balance reconciliation"""

import logging
import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from copra_ledger.domain.exceptions import NotFoundError, ValidationError
from copra_ledger.infrastructure.database.models import Supplier
from copra_ledger.infrastructure.database.repositories import SupplierRepository
from copra_ledger.services.balance import BalanceAggregator
from copra_ledger.services.unit_of_work import supplier_transaction

logger = logging.getLogger(__name__)


class SupplierService:
    def __init__(self, db: Session):
        self.db = db
        self.suppliers = SupplierRepository(db)
        self.balances = BalanceAggregator(db)

    def create_supplier(self, name: str, contact: Optional[dict] = None, address: Optional[dict] = None) -> Supplier:
        if not name or not name.strip():
            raise ValidationError("Supplier name is required")
        supplier = self.suppliers.create_supplier(name.strip(), contact, address)
        self.db.commit()
        logger.info("Supplier created", extra={"supplier_id": str(supplier.id)})
        return supplier

    def get_supplier(self, supplier_id: uuid.UUID) -> Supplier:
        supplier = self.suppliers.get_supplier(supplier_id)
        if supplier is None:
            raise NotFoundError(f"Supplier {supplier_id} not found")
        return supplier

    def deactivate_supplier(self, supplier_id: uuid.UUID) -> Supplier:
        """Soft-deactivate; history and loans stay in place"""
        with supplier_transaction(self.db, supplier_id) as supplier:
            supplier.is_active = False
        return supplier

    def sync_balance(self, supplier_id: uuid.UUID) -> Decimal:
        """Manual reconciliation of the cached balance against the loan book"""
        with supplier_transaction(self.db, supplier_id):
            balance = self.balances.recalculate(supplier_id)
        logger.info("Supplier balance synced", extra={"supplier_id": str(supplier_id), "balance": str(balance)})
        return balance
