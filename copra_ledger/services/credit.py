"""Credit score service - recompute, persist and read supplier credit assessments"""

import logging
import uuid
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from copra_ledger.config import settings
from copra_ledger.domain.exceptions import NotEligible, NotFoundError
from copra_ledger.domain.models import CreditAssessment
from copra_ledger.domain.scoring import assess_credit, completed_amounts
from copra_ledger.infrastructure.database.models import CreditScore, utcnow
from copra_ledger.infrastructure.database.repositories import (
    CreditScoreRepository,
    SupplierRepository,
    TransactionRepository,
)
from copra_ledger.infrastructure.observability.metrics import (
    loan_eligibility_counter,
    score_refresh_failure_counter,
)

logger = logging.getLogger(__name__)


class CreditScoreService:
    """Single writer of the credit score log"""

    def __init__(self, db: Session):
        self.db = db
        self.scores = CreditScoreRepository(db)
        self.suppliers = SupplierRepository(db)
        self.transactions = TransactionRepository(db)

    def assess(self, supplier_id: uuid.UUID) -> CreditAssessment:
        """Score the supplier's current completed, non-deleted purchases"""
        history = self.transactions.get_completed_for_supplier(supplier_id)
        return assess_credit(
            completed_amounts(history),
            credit_percentage=settings.credit_percentage,
            ideal_cycle=settings.ideal_transaction_cycle,
        )

    def refresh(self, supplier_id: uuid.UUID, remarks: Optional[str] = None) -> CreditScore:
        """Append a fresh assessment row (caller commits)"""
        assessment = self.assess(supplier_id)
        record = self.scores.append(supplier_id, assessment, remarks)
        logger.info(
            "Credit score updated",
            extra={"supplier_id": str(supplier_id), "score": assessment.score, "eligible_amount": assessment.eligible_amount},
        )
        return record

    def refresh_best_effort(self, supplier_id: uuid.UUID, operation: str, remarks: Optional[str] = None) -> bool:
        """
        Refresh and commit the score after a primary write has already committed.

        A failure here must not undo or fail the primary operation; it is
        logged and counted, and the caller flags the score as stale.

        Returns True when the score is stale.
        """
        try:
            self.refresh(supplier_id, remarks)
            self.db.commit()
            return False
        except Exception:
            self.db.rollback()
            score_refresh_failure_counter.inc()
            logger.exception(
                "Credit score refresh failed; derived score is stale",
                extra={"supplier_id": str(supplier_id), "operation": operation},
            )
            return True

    def get_current(self, supplier_id: uuid.UUID) -> CreditScore:
        """
        Latest persisted score, or one computed on read when none exists yet.

        The computed record is transient: reads never write to the log.
        """
        if self.suppliers.get_supplier(supplier_id) is None:
            raise NotFoundError(f"Supplier {supplier_id} not found")

        latest = self.scores.get_latest(supplier_id)
        if latest is not None:
            return latest

        assessment = self.assess(supplier_id)
        return CreditScore(
            supplier_id=supplier_id,
            score=assessment.score,
            transaction_consistency=assessment.transaction_consistency,
            total_supply_score=assessment.total_supply_score,
            transaction_count_score=assessment.transaction_count_score,
            eligible_amount=Decimal(assessment.eligible_amount),
            transaction_count=assessment.transaction_count,
            credit_percentage=assessment.credit_percentage,
            average_transaction=assessment.average_transaction,
            assessment_date=utcnow(),
            remarks=assessment.remarks,
        )

    def recalculate(self, supplier_id: uuid.UUID) -> CreditScore:
        """Explicit recompute on request; appends and commits a fresh row"""
        if self.suppliers.get_supplier(supplier_id) is None:
            raise NotFoundError(f"Supplier {supplier_id} not found")
        record = self.refresh(supplier_id, remarks="Credit score recalculated on request.")
        self.db.commit()
        return record

    def get_history(self, supplier_id: uuid.UUID, limit: int = 20) -> List[CreditScore]:
        if self.suppliers.get_supplier(supplier_id) is None:
            raise NotFoundError(f"Supplier {supplier_id} not found")
        return self.scores.get_history(supplier_id, limit)

    def check_eligibility(self, supplier_id: uuid.UUID, requested_amount: Decimal) -> CreditAssessment:
        """
        Gate a loan request on a fresh assessment.

        Eligibility rests on transaction history alone; the loan may not
        exceed the eligible amount.
        """
        assessment = self.assess(supplier_id)

        if not assessment.is_eligible or assessment.eligible_amount <= 0:
            loan_eligibility_counter.labels(outcome="not_eligible").inc()
            raise NotEligible(
                "Supplier must complete at least one transaction before being eligible for loans."
            )

        if requested_amount > assessment.eligible_amount:
            loan_eligibility_counter.labels(outcome="not_eligible").inc()
            raise NotEligible(
                f"Loan amount {requested_amount} exceeds limit of {assessment.eligible_amount} "
                f"for credit score {assessment.score}"
            )

        loan_eligibility_counter.labels(outcome="eligible").inc()
        return assessment
