"""Prometheus metric definitions shared across services."""

from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response


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
webhook_deliveries_total = Counter(
    "webhook_deliveries_total",
    "Webhook deliveries acknowledged, by event kind and handler outcome",
    ["service", "event", "outcome"],
)
webhook_signature_rejections_total = Counter(
    "webhook_signature_rejections_total",
    "Webhook deliveries rejected before parsing because of a bad signature",
    ["service"],
)
duplicate_webhooks_skipped_total = Counter(
    "duplicate_webhooks_skipped_total",
    "Webhook deliveries skipped because the event id was already recorded",
    ["service", "event"],
)
payment_transitions_total = Counter(
    "payment_transitions_total",
    "Payment state transitions applied",
    ["service", "to_state"],
)
store_failures_total = Counter(
    "store_failures_total",
    "Row store errors surfaced to handlers",
    ["service", "operation"],
)
parent_call_requests_total = Counter(
    "parent_call_requests_total",
    "Parent call creation attempts by outcome",
    ["service", "outcome"],
)
parent_call_transitions_total = Counter(
    "parent_call_transitions_total",
    "Parent call terminal transitions applied",
    ["service", "to_state"],
)


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
