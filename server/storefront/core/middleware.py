"""Request correlation, access logging and HTTP metrics."""

import logging
import time
import uuid
from typing import Callable

import structlog
from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .observability import metrics_collector

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Probes and scrapes are neither logged nor counted
QUIET_PATHS = frozenset({"/health", "/ready", "/metrics", "/favicon.ico"})


def client_ip(request: Request) -> str:
    """First X-Forwarded-For hop, else the socket peer."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with an ID and logs it once it completes.

    The ID comes from ``X-Request-ID`` when the client sends one. It is bound
    into the structlog context so service logs carry it, and echoed back on
    the response.
    """

    def __init__(self, app: ASGIApp, quiet_paths: frozenset[str] = QUIET_PATHS):
        super().__init__(app)
        self.quiet_paths = quiet_paths

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        started = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")
        duration = time.perf_counter() - started

        response.headers[REQUEST_ID_HEADER] = request_id

        if request.url.path not in self.quiet_paths:
            self._record(request, response, request_id, duration)

        return response

    def _record(self, request: Request, response: Response, request_id: str, duration: float) -> None:
        # Label by route template so IDs in paths do not explode cardinality
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)
        metrics_collector.record_http_request(request.method, endpoint, response.status_code, duration)

        extra = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "client_ip": client_ip(request),
            "status_code": response.status_code,
            "duration_ms": round(duration * 1000, 2),
        }
        if response.status_code >= 500:
            logger.error("HTTP request failed", extra=extra)
        elif response.status_code >= 400:
            logger.warning("HTTP request rejected", extra=extra)
        else:
            logger.info("HTTP request completed", extra=extra)


def setup_middleware(app: FastAPI) -> None:
    """Install the request context middleware on ``app``."""
    app.add_middleware(RequestContextMiddleware)
