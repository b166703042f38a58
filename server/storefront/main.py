"""Storefront API application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from .core.config import settings
from .core.database import close_db, engine, init_db
from .core.exceptions import (
    ProblemDetailsException,
    generic_exception_handler,
    problem_details_handler,
    request_validation_handler,
)
from .core.middleware import REQUEST_ID_HEADER, setup_middleware
from .core.observability import (
    SERVICE_VERSION,
    configure_logging,
    instrument_app,
    instrument_engine,
    setup_tracing,
)
from .routers import (
    admin_booking_router,
    admin_order_router,
    booking_router,
    health_router,
    metrics_router,
    order_router,
    probe_router,
    product_router,
    realtime_router,
    tour_date_router,
    tour_router,
)
from .workers.manager import worker_manager

configure_logging()

logger = logging.getLogger(__name__)

ROUTERS = (
    probe_router,
    health_router,
    metrics_router,
    tour_router,
    tour_date_router,
    booking_router,
    admin_booking_router,
    product_router,
    order_router,
    admin_order_router,
    realtime_router,
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create tables, start tracing and background workers; undo on shutdown."""
    logger.info("Starting storefront API", extra={"environment": settings.environment})

    setup_tracing()
    instrument_engine(engine)
    await init_db()
    await worker_manager.start_all()

    logger.info("Storefront API ready")

    try:
        yield
    finally:
        await worker_manager.stop_all()
        await close_db()
        logger.info("Storefront API stopped")


def create_app(use_lifespan: bool = True) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        use_lifespan: Run startup/shutdown hooks; tests manage the database
            and workers themselves

    Returns:
        FastAPI: Application with middleware, error handlers and routers
    """
    app = FastAPI(
        title="Storefront API",
        description=(
            "Eco-tour storefront backend: tour catalogue and capacity-limited "
            "tour bookings, shop products and cash-on-delivery orders"
        ),
        version=SERVICE_VERSION,
        debug=settings.debug,
        lifespan=lifespan if use_lifespan else None,
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER, "traceparent"],
    )
    setup_middleware(app)

    if use_lifespan:
        instrument_app(app)

    app.add_exception_handler(ProblemDetailsException, problem_details_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    for router in ROUTERS:
        app.include_router(router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "storefront.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
