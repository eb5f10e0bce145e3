"""
Prometheus metrics for the messaging API.

This module provides:
- HTTP request counter (method, path, status)
- Request latency histogram (method, path)
- Authorization decision counter (predicate, result)
- Message sent / read counters

Metrics are stored in-memory using prometheus-client.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST


# =============================================================================
# Metric Definitions
# =============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=["method", "path", "status"]
)

request_latency_seconds = Histogram(
    "request_latency_seconds",
    "Request latency in seconds",
    labelnames=["method", "path"]
)

# predicate: name of the predicate that decided (last one run when allowed)
# result: allowed, denied
auth_decisions_total = Counter(
    "auth_decisions_total",
    "Authorization gate decisions",
    labelnames=["predicate", "result"]
)

messages_sent_total = Counter(
    "messages_sent_total",
    "Messages created"
)

messages_read_total = Counter(
    "messages_read_total",
    "Messages marked read by their recipient"
)


# =============================================================================
# Helper Functions
# =============================================================================

def record_http_request(method: str, path: str, status: int, latency_seconds: float) -> None:
    """
    Record an HTTP request in metrics.

    Args:
        method: HTTP method (GET, POST, etc.)
        path: Route template (e.g. /users/{username}), not the raw URL
        status: HTTP status code
        latency_seconds: Request processing time in seconds
    """
    http_requests_total.labels(
        method=method,
        path=path,
        status=str(status)
    ).inc()

    request_latency_seconds.labels(
        method=method,
        path=path
    ).observe(latency_seconds)


def record_auth_decision(predicate: str, allowed: bool) -> None:
    auth_decisions_total.labels(
        predicate=predicate,
        result="allowed" if allowed else "denied"
    ).inc()


def get_metrics() -> bytes:
    """Generate Prometheus exposition format metrics."""
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
