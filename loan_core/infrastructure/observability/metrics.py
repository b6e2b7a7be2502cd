"""Prometheus metrics for ledger activity, treasury balances and webhook delivery"""

from prometheus_client import Counter, Histogram, Gauge

# Ledger metrics
ledger_write_counter = Counter(
    "loan_ledger_writes_total",
    "Ledger entries committed",
    ["type"],  # TransactionType value
)

rejected_operation_counter = Counter(
    "loan_rejected_operations_total",
    "Writes refused by domain validation",
    ["error"],  # OverpaymentRejected | InsufficientTreasuryFunds | ...
)

chain_recompute_counter = Counter(
    "loan_chain_recomputes_total",
    "Client chains re-walked after an edit or delete",
)

redirection_counter = Counter(
    "loan_redirections_total",
    "Redirection steps by kind",
    ["kind"],  # open | fund | direct | treasury
)

# Treasury
treasury_balance_gauge = Gauge(
    "treasury_account_balance",
    "Current balance of a treasury account",
    ["account_id"],
)

# Webhook metrics
webhook_latency_histogram = Histogram(
    "audit_webhook_latency_seconds",
    "Audit webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

webhook_failure_counter = Counter(
    "audit_webhook_failures_total",
    "Failed audit webhook deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_ledger_write(transaction_type: str) -> None:
    ledger_write_counter.labels(type=transaction_type).inc()


def record_rejection(error: Exception) -> None:
    rejected_operation_counter.labels(error=type(error).__name__).inc()


def record_treasury_balance(account_id: str, balance: int) -> None:
    treasury_balance_gauge.labels(account_id=account_id).set(balance)
