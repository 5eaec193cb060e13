"""Facility booking API application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .core.clock import Clock
from .core.config import settings
from .core.exceptions import (
    ProblemDetailsException,
    generic_exception_handler,
    problem_details_handler,
    request_validation_handler,
)
from .core.middleware import setup_middleware
from .core.observability import (
    instrument_fastapi,
    instrument_httpx,
    setup_metrics,
    setup_structured_logging,
    setup_tracing,
)
from .routers import admin, availability, booking, health, metrics, notifications, pricing
from .services.cms_client import CMSClient
from .services.email_service import EmailService
from .services.hold_store import HoldStore
from .services.notification_service import NotificationService

setup_structured_logging()

# Stdlib loggers used by services and routers
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)

SERVICE_ID = "facility-booking-api"


def init_state(app: FastAPI) -> None:
    """Attach the clock, CMS client, hold store and notifier that request dependencies read."""
    clock = Clock()
    app.state.clock = clock
    app.state.cms = CMSClient()
    app.state.holds = HoldStore(ttl=timedelta(seconds=settings.hold_ttl_seconds), clock=clock)
    app.state.notifications = NotificationService(EmailService())


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Start telemetry and shared collaborators; close the CMS connection pool on exit.

    Holds are process-local, so anything held at shutdown is lost.
    """
    logger.info(
        "Starting facility booking API",
        extra={"environment": settings.environment, "timezone": settings.timezone}
    )

    try:
        setup_tracing()
        setup_metrics()
        instrument_httpx()
        init_state(app)
    except Exception as e:
        logger.error(f"Startup failed: {e}")
        raise

    logger.info(f"Using content store at {settings.cms_api_url}")

    yield

    logger.info(
        "Stopping facility booking API",
        extra={"holds_dropped": app.state.holds.count()}
    )
    try:
        await app.state.cms.aclose()
    except Exception as e:
        logger.error(f"Failed to close content store client: {e}")


def create_app() -> FastAPI:
    """
    Build the facility booking application.

    Returns:
        FastAPI: Application with middleware, problem handlers and all routers
    """
    app = FastAPI(
        title="Facility Booking API",
        description="Availability checks, temporary holds, pricing and approval workflow for facility reservations",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "traceparent", "tracestate"],
    )

    setup_middleware(app, enable_logging=True)
    instrument_fastapi(app)

    app.add_exception_handler(ProblemDetailsException, problem_details_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    @app.get(
        "/health",
        status_code=status.HTTP_200_OK,
        tags=["Health"],
        summary="Liveness",
        description="Answers as long as the process is serving requests; never contacts upstreams",
        response_model=dict,
    )
    async def health_check():
        return {
            "status": "healthy",
            "service": SERVICE_ID,
            "version": __version__,
            "environment": settings.environment,
        }

    @app.get(
        "/ready",
        tags=["Health"],
        summary="Readiness",
        description="Ready once the content store answers",
        response_model=dict,
    )
    async def readiness_check(request: Request):
        """503 while the content store is unreachable."""
        cms_ok = await request.app.state.cms.ping()
        return JSONResponse(
            status_code=status.HTTP_200_OK if cms_ok else status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "ready" if cms_ok else "not_ready",
                "service": SERVICE_ID,
                "checks": {
                    "cms": "ok" if cms_ok else "unreachable",
                    "holds": request.app.state.holds.count(),
                },
            },
        )

    @app.get(
        "/info",
        status_code=status.HTTP_200_OK,
        tags=["Info"],
        summary="Service Information",
        description="Version, booking settings and the main endpoints",
        response_model=dict,
    )
    async def service_info():
        return {
            "service": SERVICE_ID,
            "version": __version__,
            "description": "Facility reservation API backed by a headless CMS",
            "environment": settings.environment,
            "timezone": settings.timezone,
            "features": {
                "temporary_holds": True,
                "hold_ttl_seconds": settings.hold_ttl_seconds,
                "booking_number_prefix": settings.booking_number_prefix,
                "email_notifications": True,
                "problem_details": True,
            },
            "endpoints": {
                "availability": "/availability-check",
                "calendar": "/facilities/availability",
                "quote": "/pricing/quote",
                "bookings": "/bookings/create",
                "admin": "/admin/bookings/update",
                "metrics": "/metrics",
                "docs": "/docs" if settings.debug else None,
            },
        }

    app.include_router(health.router)
    app.include_router(availability.router)
    app.include_router(pricing.router)
    app.include_router(booking.router)
    app.include_router(admin.router)
    app.include_router(notifications.router)
    app.include_router(metrics.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "facility_booking.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        access_log=True,
    )
