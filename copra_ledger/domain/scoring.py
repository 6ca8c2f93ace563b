"""Credit scoring engine - derives a supplier's score and loan limit from purchases"""

from decimal import Decimal
from typing import List, Sequence

from copra_ledger.domain.models import CreditAssessment, TransactionStatus
from copra_ledger.utils.money import round_half_away, to_money

CREDIT_PERCENTAGE = Decimal("0.40")
IDEAL_TRANSACTION_CYCLE = 10

# First-purchase policy: a supplier with a single completed transaction gets a
# fixed starter profile instead of ratios computed over one data point.
STARTER_SCORE = 20
STARTER_COUNT_SCORE = 10


def calculate_components(amounts: Sequence[Decimal], ideal_cycle: int = IDEAL_TRANSACTION_CYCLE) -> dict:
    """
    Compute the three weighted sub-scores for two or more transactions.

    - Transaction consistency: smallest / largest purchase
    - Total supply: total supplied vs. every purchase matching the largest
    - Transaction count: progress toward the ideal cycle, capped at 100

    Returns unrounded floats; callers round the persisted fields.
    """
    values = [float(a) for a in amounts]
    count = len(values)
    largest = max(values)
    smallest = min(values)

    if largest > 0:
        consistency = smallest / largest * 100
        supply = sum(values) / (largest * count) * 100
    else:
        # Every purchase totalled zero: no supply to measure against
        consistency = 0.0
        supply = 0.0

    count_score = min(100.0, count / ideal_cycle * 100)

    return {
        "transaction_consistency": consistency,
        "total_supply_score": supply,
        "transaction_count_score": count_score,
    }


def assess_credit(
    amounts: Sequence[Decimal],
    credit_percentage: Decimal = CREDIT_PERCENTAGE,
    ideal_cycle: int = IDEAL_TRANSACTION_CYCLE,
) -> CreditAssessment:
    """
    Main entry point: score a supplier from the totals of its completed purchases.

    The credit percentage is a flat policy rate applied to the average purchase,
    independent of score. The result depends only on the multiset of amounts,
    so repeated calls over the same history are identical.
    """
    count = len(amounts)

    if count == 0:
        return CreditAssessment(
            score=0,
            transaction_consistency=0,
            total_supply_score=0,
            transaction_count_score=0,
            eligible_amount=0,
            transaction_count=0,
            average_transaction=Decimal("0.00"),
            credit_percentage=Decimal("0"),
            remarks="New supplier - no transaction history. Transactions required for loan eligibility.",
        )

    if count == 1:
        only = to_money(amounts[0])
        return CreditAssessment(
            score=STARTER_SCORE,
            transaction_consistency=100,
            total_supply_score=100,
            transaction_count_score=STARTER_COUNT_SCORE,
            eligible_amount=round_half_away(only * credit_percentage),
            transaction_count=1,
            average_transaction=only,
            credit_percentage=credit_percentage,
            remarks="Initial score based on first transaction",
        )

    components = calculate_components(amounts, ideal_cycle)
    final_score = sum(components.values()) / 3

    total = sum((to_money(a) for a in amounts), Decimal("0"))
    average = total / count

    return CreditAssessment(
        score=max(0, min(100, round_half_away(final_score))),
        transaction_consistency=round_half_away(components["transaction_consistency"]),
        total_supply_score=round_half_away(components["total_supply_score"]),
        transaction_count_score=round_half_away(components["transaction_count_score"]),
        eligible_amount=round_half_away(average * credit_percentage),
        transaction_count=count,
        average_transaction=to_money(average),
        credit_percentage=credit_percentage,
        remarks=f"Credit score calculated based on {count} transactions.",
    )


def score_category(score: int) -> str:
    """Map a 0-100 score to the label shown alongside it"""
    if score <= 0:
        return "No Score"
    elif score <= 30:
        return "Poor"
    elif score <= 40:
        return "Fair"
    elif score <= 60:
        return "Good"
    elif score <= 75:
        return "Very Good"
    return "Excellent"


def completed_amounts(transactions: List) -> List[Decimal]:
    """Totals of completed, non-deleted purchases - the only ones that count toward a score"""
    return [
        t.total_amount
        for t in transactions
        if t.status == TransactionStatus.COMPLETED and not t.is_deleted
    ]
