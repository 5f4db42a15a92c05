import logging

from prometheus_client import Counter, Histogram, start_http_server

_logger = logging.getLogger(__name__)

REQUEST_COUNT = Counter("http_requests_total", "Total HTTP requests", ["method", "endpoint", "status"])
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.075, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0, float("inf"))
)
SALE_OUTCOMES = Counter("sales_outcomes_total", "Create-sale requests by terminal outcome", ["outcome"])


def start_metrics_server(port: int) -> None:
    # Separate listener so the HTTP surface keeps only its own routes
    if port <= 0:
        return
    start_http_server(port)
    _logger.info("Prometheus exporter listening | port=%s", port)
