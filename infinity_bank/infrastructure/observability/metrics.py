"""Prometheus metrics for ledger volume, loan and card applications"""

from prometheus_client import Counter, Histogram

# Ledger metrics
transaction_counter = Counter(
    "infinity_bank_transactions_total",
    "Transactions posted to the ledger",
    ["type", "status"],  # transfer | deposit | withdrawal | payment
)

transaction_amount_histogram = Histogram(
    "infinity_bank_transaction_amount",
    "Posted transaction amounts in INR",
    ["type"],
    buckets=[100, 500, 1_000, 5_000, 10_000, 50_000, 100_000, 500_000],
)

insufficient_balance_counter = Counter(
    "infinity_bank_insufficient_balance_total",
    "Debits rejected for insufficient balance",
    ["type"],
)

# Lending and cards
loan_application_counter = Counter(
    "infinity_bank_loan_applications_total",
    "Loan applications submitted",
    ["loan_type"],
)

card_application_counter = Counter(
    "infinity_bank_card_applications_total",
    "Card applications submitted",
    ["card_type", "card_network"],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_transaction(transaction_type: str, status: str, amount: float) -> None:
    """Record ledger volume by type and outcome"""
    transaction_counter.labels(type=transaction_type, status=status).inc()
    transaction_amount_histogram.labels(type=transaction_type).observe(amount)
