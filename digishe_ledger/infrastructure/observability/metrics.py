"""Prometheus metrics for monitoring sign-ins, ledger activity, and storage sync health"""

from prometheus_client import Counter, Histogram

# Verification metrics
otp_request_counter = Counter(
    "digishe_otp_requests_total",
    "One-time code requests",
    ["outcome"],  # sent | account_not_found | account_already_exists | gateway_error | unreachable
)

otp_verify_counter = Counter(
    "digishe_otp_verifications_total",
    "One-time code verifications",
    ["outcome"],  # verified | invalid_code | code_expired | gateway_error | unreachable
)

gateway_latency_histogram = Histogram(
    "sms_gateway_latency_seconds",
    "SMS gateway response time",
    ["operation"],  # generate | verify
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# Ledger metrics
entries_recorded_counter = Counter(
    "digishe_entries_recorded_total",
    "Ledger entries recorded",
    ["kind"],  # sale | expense | saving
)

sync_failure_counter = Counter(
    "digishe_sync_failures_total",
    "Entries that could not be written to storage after all retries",
)

sync_latency_histogram = Histogram(
    "digishe_sync_latency_seconds",
    "Time from optimistic append to confirmed storage write",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_otp_request(outcome: str) -> None:
    otp_request_counter.labels(outcome=outcome).inc()


def record_otp_verification(outcome: str) -> None:
    otp_verify_counter.labels(outcome=outcome).inc()
