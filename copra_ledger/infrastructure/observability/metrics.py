"""Prometheus metrics for ledger operations, auto-debits, reversals and webhook performance"""

from decimal import Decimal

from prometheus_client import Counter, Histogram

# Ledger operations
ledger_operation_counter = Counter(
    "copra_ledger_operations_total",
    "Ledger operations by outcome",
    ["operation", "outcome"],  # create|complete|cancel|void|... x ok|<error code>
)

auto_debit_histogram = Histogram(
    "copra_auto_debit_amount",
    "Amount auto-debited from a completed transaction",
    buckets=[0, 100, 500, 1_000, 5_000, 10_000, 50_000, 100_000],
)

reversal_counter = Counter(
    "copra_reversals_total",
    "Transactions reversed",
    ["target_status"],  # cancelled | voided
)

orphaned_reference_counter = Counter(
    "copra_orphaned_payment_references_total",
    "Recorded auto-debit links that could not be resolved during reversal",
)

score_refresh_failure_counter = Counter(
    "copra_credit_score_refresh_failures_total",
    "Credit score recomputations that failed after the primary write committed",
)

loan_eligibility_counter = Counter(
    "copra_loan_eligibility_total",
    "Loan requests by eligibility outcome",
    ["outcome"],  # eligible | not_eligible
)

# Webhook metrics
webhook_latency_histogram = Histogram(
    "webhook_latency_seconds",
    "Reconciliation webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

webhook_failure_counter = Counter(
    "webhook_failures_total",
    "Failed webhook deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_operation(operation: str, outcome: str) -> None:
    ledger_operation_counter.labels(operation=operation, outcome=outcome).inc()


def record_auto_debit(total_deduction: Decimal) -> None:
    """Only purchases that actually retired debt are observed"""
    if total_deduction > 0:
        auto_debit_histogram.observe(float(total_deduction))
