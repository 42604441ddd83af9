"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
deposits_created_total = Counter(
    "deposits_created_total",
    "Total number of QRIS deposits created",
)

deposits_rejected_total = Counter(
    "deposits_rejected_total",
    "Total number of rejected deposit requests",
    ["reason"],
)

deposits_settled_total = Counter(
    "deposits_settled_total",
    "Total number of deposits settled (balance credited)",
    ["source"],  # pull, webhook
)

webhooks_received_total = Counter(
    "webhooks_received_total",
    "Total inbound processor webhooks",
    ["status"],
)

withdrawals_created_total = Counter(
    "withdrawals_created_total",
    "Total withdrawal requests created",
)

upstream_requests_total = Counter(
    "upstream_requests_total",
    "Total requests to the upstream payment processor",
    ["method", "status"],
)

circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open)",
    ["name"],
)

# Histograms
upstream_request_duration_seconds = Histogram(
    "upstream_request_duration_seconds",
    "Upstream payment processor request duration",
    ["method"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration",
    ["method", "status_code"],
)


router = APIRouter()


@router.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
