"""Supplier-scoped atomic unit of work"""

import uuid
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from copra_ledger.domain.exceptions import ConcurrencyConflict, NotFoundError
from copra_ledger.infrastructure.database.models import Supplier
from copra_ledger.infrastructure.database.repositories import SupplierRepository


@contextmanager
def supplier_transaction(db: Session, supplier_id: uuid.UUID) -> Iterator[Supplier]:
    """
    Run a block of ledger mutations for one supplier as a single commit.

    The supplier row is locked for the duration, which serialises every
    purchase, reversal and payment touching that supplier's loans. Anything
    raised inside the block rolls the whole block back; a loan whose version
    moved underneath us surfaces as ConcurrencyConflict.
    """
    try:
        supplier = SupplierRepository(db).lock_supplier(supplier_id)
        if supplier is None:
            raise NotFoundError(f"Supplier {supplier_id} not found")
        yield supplier
        db.commit()
    except StaleDataError as e:
        db.rollback()
        raise ConcurrencyConflict("Loan was modified by a concurrent operation; retry") from e
    except OperationalError as e:
        # Lock waits can time out at any flush, not only on the initial SELECT
        db.rollback()
        raise ConcurrencyConflict(f"Supplier {supplier_id} is busy with another operation; retry") from e
    except Exception:
        db.rollback()
        raise
