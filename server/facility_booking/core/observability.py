"""Observability setup for OpenTelemetry, metrics, and structured logging."""

import logging

import structlog
from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

from .config import settings

SERVICE_NAME = "facility-booking-api"
SERVICE_VERSION = "1.0.0"

# Prometheus metrics
REGISTRY = CollectorRegistry()

# Request metrics
REQUEST_COUNT = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status_code'],
    registry=REGISTRY
)

REQUEST_DURATION = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    registry=REGISTRY
)

# Business metrics
AVAILABILITY_CHECKS = Counter(
    'availability_checks_total',
    'Availability checks by outcome',
    ['package_type', 'outcome'],
    registry=REGISTRY
)

HOLDS_PLACED = Counter(
    'facility_holds_placed_total',
    'Temporary holds placed',
    registry=REGISTRY
)

HOLDS_RELEASED = Counter(
    'facility_holds_released_total',
    'Temporary holds released explicitly',
    registry=REGISTRY
)

HOLDS_EXPIRED = Counter(
    'facility_holds_expired_total',
    'Temporary holds removed by the expiry sweep',
    registry=REGISTRY
)

ACTIVE_HOLDS = Gauge(
    'facility_holds_active',
    'Number of temporary holds currently stored',
    registry=REGISTRY
)

BOOKINGS_CREATED = Counter(
    'bookings_created_total',
    'Bookings persisted to the content store',
    ['package_type'],
    registry=REGISTRY
)

BOOKING_STATUS_CHANGES = Counter(
    'booking_status_changes_total',
    'Administrative booking status transitions',
    ['status'],
    registry=REGISTRY
)

EMAILS_SENT = Counter(
    'emails_sent_total',
    'Transactional e-mails by template and outcome',
    ['template', 'outcome'],
    registry=REGISTRY
)

CMS_REQUEST_DURATION = Histogram(
    'cms_request_duration_seconds',
    'Content store request duration in seconds',
    ['method', 'resource', 'outcome'],
    registry=REGISTRY
)


def setup_structured_logging():
    """Configure structured logging with structlog."""

    def add_trace_context(logger, method_name, event_dict):
        """Add trace context to log events."""
        span = trace.get_current_span()
        if span and span.is_recording():
            ctx = span.get_span_context()
            event_dict['trace_id'] = format(ctx.trace_id, '032x')
            event_dict['span_id'] = format(ctx.span_id, '016x')
        return event_dict

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_trace_context,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _resource() -> Resource:
    return Resource.create({
        "service.name": SERVICE_NAME,
        "service.version": SERVICE_VERSION,
        "environment": settings.environment,
    })


def setup_tracing():
    """Setup OpenTelemetry tracing."""
    provider = TracerProvider(resource=_resource())
    trace.set_tracer_provider(provider)

    if settings.otlp_endpoint:
        provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otlp_endpoint))
        )

    return trace.get_tracer(__name__)


def setup_metrics():
    """Setup OpenTelemetry metrics."""
    if settings.otlp_endpoint:
        reader = PeriodicExportingMetricReader(
            exporter=OTLPMetricExporter(endpoint=settings.otlp_endpoint),
            export_interval_millis=60000,
        )
        metrics.set_meter_provider(MeterProvider(resource=_resource(), metric_readers=[reader]))

    return metrics.get_meter(__name__)


def instrument_fastapi(app):
    """Instrument FastAPI with OpenTelemetry."""
    FastAPIInstrumentor.instrument_app(app)


def instrument_httpx():
    """Instrument outbound httpx calls made to the content store."""
    HTTPXClientInstrumentor().instrument()


class MetricsCollector:
    """Collector for business metrics."""

    @staticmethod
    def record_availability_check(package_type: str, available: bool):
        AVAILABILITY_CHECKS.labels(
            package_type=package_type,
            outcome="available" if available else "unavailable",
        ).inc()

    @staticmethod
    def record_hold_placed():
        HOLDS_PLACED.inc()

    @staticmethod
    def record_hold_released():
        HOLDS_RELEASED.inc()

    @staticmethod
    def record_holds_expired(count: int):
        if count:
            HOLDS_EXPIRED.inc(count)

    @staticmethod
    def set_active_holds(count: int):
        ACTIVE_HOLDS.set(count)

    @staticmethod
    def record_booking_created(package_type: str):
        BOOKINGS_CREATED.labels(package_type=package_type).inc()

    @staticmethod
    def record_status_change(status: str):
        BOOKING_STATUS_CHANGES.labels(status=status).inc()

    @staticmethod
    def record_email(template: str, sent: bool):
        EMAILS_SENT.labels(template=template, outcome="sent" if sent else "failed").inc()

    @staticmethod
    def observe_cms_request(method: str, resource: str, outcome: str, seconds: float):
        CMS_REQUEST_DURATION.labels(method=method, resource=resource, outcome=outcome).observe(seconds)

    @staticmethod
    def record_request(method: str, endpoint: str, status_code: int, seconds: float):
        REQUEST_COUNT.labels(method=method, endpoint=endpoint, status_code=str(status_code)).inc()
        REQUEST_DURATION.labels(method=method, endpoint=endpoint).observe(seconds)


def get_prometheus_metrics():
    """Get Prometheus metrics for the /metrics endpoint."""
    return generate_latest(REGISTRY)


# Global metrics collector instance
metrics_collector = MetricsCollector()


def get_logger(name: str):
    """Get a structlog logger bound to ``name``."""
    return structlog.get_logger(name)
