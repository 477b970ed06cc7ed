"""Prometheus metrics for monitoring payments, credit movements, and notifications"""

from decimal import Decimal

from prometheus_client import Counter, Histogram

# Payment metrics
payment_counter = Counter(
    "ledger_payments_total",
    "Payments recorded",
    ["method"],  # CASH | MOBILE_MONEY | BANK_TRANSFER | OTHER
)

amount_applied_counter = Counter(
    "ledger_amount_applied_to_debt",
    "Money applied to debts",
    ["source"],  # payment | credit_application | debt_issuance
)

# Credit ledger metrics
credit_movement_counter = Counter(
    "ledger_credit_movements_total",
    "Credit transactions written",
    ["type"],  # OVERPAYMENT_ADDED | APPLIED_TO_DEBT | MANUAL_ADJUSTMENT
)

debt_issued_counter = Counter(
    "ledger_debts_issued_total",
    "Debts created",
    ["settled_by_credit"],  # full | partial | none
)

invariant_violation_counter = Counter(
    "ledger_invariant_violations_total",
    "Allocations aborted by bookkeeping checks",
)

# Notification metrics
notification_latency_histogram = Histogram(
    "notification_latency_seconds",
    "SMS gateway response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

notification_failure_counter = Counter(
    "notification_failures_total",
    "Failed notification attempts",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_payment(method: str, applied_to_debt: Decimal, source: str = "payment") -> None:
    """Record payment metrics for monitoring collection volume"""
    payment_counter.labels(method=method).inc()
    if applied_to_debt > 0:
        amount_applied_counter.labels(source=source).inc(float(applied_to_debt))


def record_debt_issued(amount: Decimal, credit_applied: Decimal) -> None:
    """Record debt issuance, bucketed by how much auto-credit covered"""
    if credit_applied <= 0:
        settled = "none"
    elif credit_applied >= amount:
        settled = "full"
    else:
        settled = "partial"
    debt_issued_counter.labels(settled_by_credit=settled).inc()

    if credit_applied > 0:
        amount_applied_counter.labels(source="debt_issuance").inc(float(credit_applied))
