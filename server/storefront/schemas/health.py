"""Health-related Pydantic schemas."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class HealthStatus(str, Enum):
    """Health status enumeration."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"


class HealthResponse(BaseModel):
    """Liveness response."""

    status: HealthStatus
    service: str
    timestamp: datetime = Field(..., description="Server time (UTC)")
    version: str
    environment: str


class ReadinessResponse(BaseModel):
    """Readiness response: database reachability and background worker states."""

    status: HealthStatus
    checks: dict[str, str] = Field(..., description="Dependency name to 'ok' or 'unavailable'")
    workers: dict[str, bool] = Field(default_factory=dict, description="Worker name to running flag")
