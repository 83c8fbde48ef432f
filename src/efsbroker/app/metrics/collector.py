"""Prometheus metrics definitions for broker operations."""

from prometheus_client import Counter, Histogram

# =============================================================================
# Histogram Buckets (optimized by latency category)
# =============================================================================

# FAST: HTTP handlers, state persistence (0.5ms ~ 5s)
_BUCKETS_FAST = (
    0.0005, 0.001, 0.002, 0.005, 0.01,
    0.02, 0.05, 0.1, 0.2, 0.5,
    1, 2, 5,
)  # 13 buckets

# SLOW: EFS create/delete workflows (1s ~ 30min)
_BUCKETS_SLOW = (
    1, 2, 5, 10, 20,
    40, 80, 160, 320, 640,
    1280, 1800,
)  # 12 buckets

# =============================================================================
# Lifecycle Operations
# =============================================================================

OPERATION_TOTAL = Counter(
    "efsbroker_operation_total",
    "Background lifecycle operations by outcome",
    ["operation", "status"],  # provision|deprovision, success|failed|timeout
)

OPERATION_DURATION = Histogram(
    "efsbroker_operation_duration_seconds",
    "Time from accepted to terminal state for background operations",
    ["operation"],
    buckets=_BUCKETS_SLOW,
)

REMOTE_CALL_FAILURES_TOTAL = Counter(
    "efsbroker_remote_call_failures_total",
    "Failed EFS API calls",
    ["call", "error_class"],  # retryable|permanent|unknown
)

# =============================================================================
# State Store
# =============================================================================

PERSIST_FAILURES_TOTAL = Counter(
    "efsbroker_persist_failures_total",
    "State store writes that failed (logged, not escalated)",
)

# =============================================================================
# HTTP API
# =============================================================================

HTTP_REQUESTS_TOTAL = Counter(
    "efsbroker_http_requests_total",
    "HTTP requests by route and status",
    ["method", "route", "status"],
)

HTTP_REQUEST_DURATION = Histogram(
    "efsbroker_http_request_duration_seconds",
    "HTTP request latency",
    ["method", "route"],
    buckets=_BUCKETS_FAST,
)
