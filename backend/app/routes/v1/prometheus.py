"""
Prometheus scrape endpoint.

Serves the booking core's own registry: service operation timings plus the
reservation, ledger and series counters. Unauthenticated, like any scrape target.
"""

from fastapi import APIRouter, Response
from prometheus_client import Counter

from app.monitoring.prometheus_metrics import REGISTRY, prometheus_metrics

router = APIRouter()

NO_CACHE_HEADERS = {"Cache-Control": "no-cache, no-store, must-revalidate", "Pragma": "no-cache"}

scrapes_total = Counter(
    "practice_space_prometheus_scrapes_total",
    "Scrapes served by /metrics/prometheus",
    registry=REGISTRY,
)


@router.get("/prometheus", include_in_schema=False, response_class=Response, response_model=None)
async def get_prometheus_metrics() -> Response:
    # Count first so the payload includes this scrape.
    scrapes_total.inc()
    return Response(
        content=prometheus_metrics.get_metrics(),
        media_type=prometheus_metrics.get_content_type(),
        headers=NO_CACHE_HEADERS,
    )
