"""Prometheus metrics for loan transitions, degraded totals and remote procedures"""

from prometheus_client import Counter, Histogram

# Loan lifecycle metrics
transition_counter = Counter(
    "village_bank_loan_transitions_total",
    "Loan transitions attempted",
    ["transition", "outcome"],  # ok | invalid | unauthorized | not_found | conflict | failed
)

authorization_failure_counter = Counter(
    "village_bank_authorization_failures_total",
    "Transitions refused by a role guard",
    ["transition"],
)

loan_closed_counter = Counter(
    "village_bank_loans_closed_total",
    "Loans closed",
    ["reason"],  # REJECTED | REPAID
)

degraded_totals_counter = Counter(
    "village_bank_loan_totals_degraded_total",
    "Loan totals computed with an invalid disbursement date",
)

# Remote procedure metrics
rpc_latency_histogram = Histogram(
    "rpc_latency_seconds",
    "Remote procedure response time",
    ["procedure"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

rpc_failure_counter = Counter(
    "rpc_failures_total",
    "Failed remote procedure calls",
    ["procedure"],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_transition(transition: str, outcome: str) -> None:
    """Record a transition outcome; role-guard refusals are also counted separately"""
    transition_counter.labels(transition=transition, outcome=outcome).inc()
    if outcome == "unauthorized":
        authorization_failure_counter.labels(transition=transition).inc()
