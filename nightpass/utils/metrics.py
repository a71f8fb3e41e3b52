"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
tokens_minted_total = Counter(
    "tokens_minted_total",
    "Total number of access tokens minted and recorded",
)

access_requests_total = Counter(
    "access_requests_total",
    "Access requests by resulting state",
    ["state"],
)

token_activations_total = Counter(
    "token_activations_total",
    "Token activation attempts by outcome",
    ["outcome"],  # granted, malformed, expired, forged, replayed, ...
)

media_deliveries_total = Counter(
    "media_deliveries_total",
    "Delivered media items",
    ["status"],  # sent, failed
)

retractions_total = Counter(
    "retractions_total",
    "Scheduled retractions processed",
    ["status"],  # done, not_found, failed
)

telegram_requests_total = Counter(
    "telegram_requests_total",
    "Total Telegram API requests",
    ["method", "status"],
)

ad_gate_requests_total = Counter(
    "ad_gate_requests_total",
    "Ad gate shortener requests",
    ["status"],
)

circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open)",
    ["name"],
)

# Histograms
telegram_request_duration_seconds = Histogram(
    "telegram_request_duration_seconds",
    "Telegram API request duration",
    ["method"],
    buckets=[0.1, 0.5, 1, 2, 5, 10],
)

ad_gate_request_duration_seconds = Histogram(
    "ad_gate_request_duration_seconds",
    "Ad gate request duration",
    buckets=[0.1, 0.5, 1, 2, 5, 10],
)


# Metrics endpoint router
router = APIRouter()


@router.get("/metrics")
def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint for scraping."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
