"""Logging, tracing and Prometheus metrics for the storefront service."""

import logging

import structlog
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

from .config import settings

SERVICE_NAME = "storefront-api"
SERVICE_VERSION = "1.0.0"


def _trace_ids(logger, method_name, event_dict):
    span = trace.get_current_span()
    if span and span.is_recording():
        ctx = span.get_span_context()
        event_dict["trace_id"] = format(ctx.trace_id, "032x")
        event_dict["span_id"] = format(ctx.span_id, "016x")
    return event_dict


def configure_logging() -> None:
    """
    Configure structlog and the stdlib root logger.

    Services log through stdlib ``logging`` with ``extra=`` context; state
    transitions and other event-style records go through structlog, rendered
    for humans in development and as JSON elsewhere.
    """
    level = getattr(logging, settings.log_level)

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    renderer = structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _trace_ids,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str):
    """Structlog logger bound to a component name."""
    return structlog.get_logger(component=name)


def setup_tracing() -> None:
    """Install the tracer provider; spans are exported only when an OTLP endpoint is set."""
    provider = TracerProvider(resource=Resource.create({
        "service.name": SERVICE_NAME,
        "service.version": SERVICE_VERSION,
        "deployment.environment": settings.environment,
    }))
    if settings.otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otlp_endpoint)))
    trace.set_tracer_provider(provider)


def instrument_app(app) -> None:
    """Trace HTTP handling; must run before the application starts."""
    FastAPIInstrumentor.instrument_app(app)


def instrument_engine(engine) -> None:
    """Trace the SQL issued by the async engine."""
    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


class StorefrontMetrics:
    """Prometheus metrics for HTTP traffic, bookings, capacity and orders."""

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry or CollectorRegistry()

        self.http_requests = Counter(
            "http_requests_total", "HTTP requests",
            ["method", "endpoint", "status_code"], registry=self.registry
        )
        self.http_duration = Histogram(
            "http_request_duration_seconds", "HTTP request duration in seconds",
            ["method", "endpoint"], registry=self.registry
        )
        self.booking_outcomes = Counter(
            "tour_booking_outcomes_total", "Tour booking requests by outcome",
            ["kind", "reason"], registry=self.registry
        )
        self.ledger_conflicts = Counter(
            "tour_date_ledger_conflicts_total",
            "Conditional capacity updates that found the counter changed", registry=self.registry
        )
        self.ledger_inconsistencies = Counter(
            "tour_booking_ledger_inconsistencies_total",
            "Bookings recorded without a matching capacity increment", registry=self.registry
        )
        self.pending_reconciliations = Gauge(
            "tour_bookings_pending_reconciliation",
            "Bookings flagged for manual reconciliation", registry=self.registry
        )
        self.date_utilization = Gauge(
            "tour_date_capacity_utilization", "Booked share of a tour date's capacity (0-100)",
            ["tour_date_id"], registry=self.registry
        )
        self.orders_placed = Counter(
            "shop_orders_placed_total", "Cash-on-delivery orders placed",
            ["delivery_method"], registry=self.registry
        )

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration_seconds: float):
        self.http_requests.labels(method=method, endpoint=endpoint, status_code=str(status_code)).inc()
        self.http_duration.labels(method=method, endpoint=endpoint).observe(duration_seconds)

    def record_booking_outcome(self, kind: str, reason: str | None):
        self.booking_outcomes.labels(kind=kind, reason=reason or "none").inc()

    def record_ledger_conflict(self):
        self.ledger_conflicts.inc()

    def record_ledger_inconsistency(self):
        self.ledger_inconsistencies.inc()

    def set_pending_reconciliations(self, count: int):
        self.pending_reconciliations.set(count)

    def set_date_utilization(self, tour_date_id: str, current_bookings: int, max_bookings: int):
        utilization = (current_bookings / max_bookings * 100) if max_bookings else 0.0
        self.date_utilization.labels(tour_date_id=tour_date_id).set(utilization)

    def record_order_placed(self, delivery_method: str):
        self.orders_placed.labels(delivery_method=delivery_method).inc()

    def render(self) -> bytes:
        """Prometheus text exposition of every metric in the registry."""
        return generate_latest(self.registry)


metrics_collector = StorefrontMetrics()
