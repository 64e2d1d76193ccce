"""Prometheus metric definitions shared across services."""

from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response


payment_requests_total = Counter("payment_requests_total", "Total payment creation requests", ["service"])
payment_created_total = Counter("payment_created_total", "Total payments persisted", ["service", "currency"])
review_actions_total = Counter(
    "review_actions_total",
    "Employee review actions applied to payments",
    ["service", "action"],
)
bulk_action_items_total = Counter(
    "bulk_action_items_total",
    "Per-item outcomes of bulk review actions",
    ["service", "action", "outcome"],
)
rate_limited_total = Counter(
    "rate_limited_total",
    "Requests refused by the sliding-window rate limiter",
    ["service", "category"],
)
payment_review_seconds = Histogram(
    "payment_review_seconds",
    "Seconds from payment creation to terminal status",
    ["service", "terminal_status"],
    buckets=(60, 600, 3600, 4 * 3600, 12 * 3600, 24 * 3600, 48 * 3600, 7 * 24 * 3600),
)
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "route", "method", "status_code"],
)
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration seconds",
    ["service", "route", "method"],
)


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
