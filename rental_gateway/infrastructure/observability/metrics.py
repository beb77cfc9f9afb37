"""Prometheus metrics for booking transitions, wallet movements, gateway orders and notifications"""

from prometheus_client import Counter, Histogram

# Booking metrics
booking_transition_counter = Counter(
    "rental_booking_transitions_total",
    "Booking lifecycle transitions",
    ["status"],  # PENDING_APPROVAL | ACTIVE | REJECTED | CANCELLED | TERMINATED
)

booking_conflict_counter = Counter(
    "rental_booking_conflicts_total",
    "Booking requests refused for overlapping dates",
)

compensation_counter = Counter(
    "rental_compensations_total",
    "Compensating wallet credits after a failed booking write",
    ["outcome"],  # succeeded | failed
)

# Wallet metrics
wallet_operation_counter = Counter(
    "rental_wallet_operations_total",
    "Wallet ledger operations",
    ["operation", "outcome"],  # debit|credit x applied|replayed|rejected
)

# Obligation metrics
obligation_paid_counter = Counter(
    "rental_obligations_paid_total",
    "Monthly obligations settled",
    ["channel"],  # wallet | gateway
)

# Gateway metrics
gateway_order_counter = Counter(
    "rental_gateway_orders_total",
    "Payment processor orders",
    ["outcome"],  # created | failed | over_limit
)

signature_failure_counter = Counter(
    "rental_signature_failures_total",
    "Payment callbacks rejected by signature verification",
)

# Notification metrics
notification_latency_histogram = Histogram(
    "notification_latency_seconds",
    "Notification webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

notification_failure_counter = Counter(
    "notification_failures_total",
    "Failed notification deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_transition(status: str) -> None:
    booking_transition_counter.labels(status=status).inc()


def record_wallet_operation(operation: str, outcome: str) -> None:
    """Record wallet outcome for monitoring replay and rejection rates"""
    wallet_operation_counter.labels(operation=operation, outcome=outcome).inc()
