"""Prometheus metrics for collection, reconciliation and payout outcomes"""

from prometheus_client import Counter, Histogram

# Collection metrics
stk_push_counter = Counter(
    "chama_stk_push_total",
    "STK push initiations by outcome",
    ["outcome"],  # accepted | rejected | unavailable | error
)

# Callback metrics
callback_counter = Counter(
    "chama_callback_total",
    "Gateway callbacks by outcome",
    ["outcome"],  # completed | failed | unmatched | duplicate | malformed | error
)

# Payout metrics
disbursement_counter = Counter(
    "chama_disbursement_total",
    "Loan disbursements by outcome",
    ["outcome"],  # disbursed | rejected | error
)

# Gateway metrics
gateway_latency_histogram = Histogram(
    "mpesa_gateway_latency_seconds",
    "Daraja API response time",
    ["operation"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_stk_push(outcome: str) -> None:
    stk_push_counter.labels(outcome=outcome).inc()


def record_callback(outcome: str) -> None:
    callback_counter.labels(outcome=outcome).inc()


def record_disbursement(outcome: str) -> None:
    disbursement_counter.labels(outcome=outcome).inc()
