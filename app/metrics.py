"""
Prometheus metrics for the inbox API.

- http_requests_total{method, path, status}
- request_latency_seconds{method, path}
- message_operations_total{operation, result}

path is the route template (e.g. /api/mensajes/{message_id}), so ids never
become label values. Metrics live in the default prometheus-client registry.
"""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# submit -> created | validation_error
# mark_read -> updated | not_found
# delete -> deleted | not_found
MESSAGE_OPERATIONS = ("submit", "mark_read", "delete")

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=["method", "path", "status"],
)

request_latency_seconds = Histogram(
    "request_latency_seconds",
    "Request latency in seconds",
    labelnames=["method", "path"],
)

message_operations_total = Counter(
    "message_operations_total",
    "Message state changes by operation and outcome",
    labelnames=["operation", "result"],
)


def record_http_request(method: str, path: str, status: int, latency_seconds: float) -> None:
    path = path.split("?", 1)[0]
    http_requests_total.labels(method=method, path=path, status=str(status)).inc()
    request_latency_seconds.labels(method=method, path=path).observe(latency_seconds)


def record_message_operation(operation: str, result: str) -> None:
    if operation not in MESSAGE_OPERATIONS:
        raise ValueError(f"Unknown message operation: {operation}")
    message_operations_total.labels(operation=operation, result=result).inc()


def get_metrics() -> bytes:
    """Current metrics in the Prometheus text exposition format."""
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
