"""Liveness, readiness and service info endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import get_db
from ..core.observability import SERVICE_NAME, SERVICE_VERSION
from ..schemas.health import HealthResponse, HealthStatus, ReadinessResponse
from ..workers.manager import worker_manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/health", tags=["health"])

# Unprefixed probes for load balancers and orchestrators
probe_router = APIRouter(tags=["health"])

DB_DEPENDENCY = Depends(get_db)


def _health_response() -> HealthResponse:
    return HealthResponse(
        status=HealthStatus.HEALTHY,
        service=SERVICE_NAME,
        timestamp=datetime.now(timezone.utc),
        version=SERVICE_VERSION,
        environment=settings.environment
    )


@router.post("/ping", response_model=HealthResponse)
async def health_ping() -> JSONResponse:
    """RPC-style liveness check for API clients."""
    response_data = _health_response()

    logger.debug("Health ping", extra={"timestamp": response_data.timestamp.isoformat()})

    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@probe_router.get("/health", response_model=HealthResponse)
async def health_check() -> JSONResponse:
    """Liveness probe; never touches the database."""
    return JSONResponse(status_code=200, content=_health_response().model_dump(mode="json"))


@probe_router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    """Readiness probe; 503 while the database cannot be reached."""
    checks = {"database": "ok"}
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning("Readiness database check failed", extra={"error": str(e)})
        checks["database"] = "unavailable"

    ready = checks["database"] == "ok"
    response_data = ReadinessResponse(
        status=HealthStatus.HEALTHY if ready else HealthStatus.DEGRADED,
        checks=checks,
        workers=worker_manager.get_worker_status()
    )
    return JSONResponse(
        status_code=200 if ready else 503,
        content=response_data.model_dump(mode="json")
    )


@probe_router.get("/info")
async def service_info() -> dict:
    """Service capabilities and booking tunables."""
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "environment": settings.environment,
        "features": {
            "optimistic_capacity_allocation": True,
            "reconciliation_queue": True,
            "realtime_change_feed": True,
            "cash_on_delivery_orders": True
        },
        "booking": {
            "max_attempts": settings.booking_max_attempts,
            "timeout_seconds": settings.booking_timeout_seconds
        },
        "shop": {
            "delivery_fee": str(settings.delivery_fee)
        }
    }
