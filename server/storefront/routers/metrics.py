"""Prometheus scrape endpoint."""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST

from ..core.observability import metrics_collector

router = APIRouter(tags=["observability"])


@router.get("/metrics", response_class=Response)
async def metrics() -> Response:
    """Booking, ledger, order and HTTP metrics in Prometheus text format."""
    return Response(content=metrics_collector.render(), media_type=CONTENT_TYPE_LATEST)
