"""FastAPI routers package."""

from .admin import router as admin_router
from .availability import router as availability_router
from .booking import router as booking_router
from .health import router as health_router
from .metrics import router as metrics_router
from .notifications import router as notifications_router
from .pricing import router as pricing_router

__all__ = [
    "admin_router",
    "availability_router",
    "booking_router",
    "health_router",
    "metrics_router",
    "notifications_router",
    "pricing_router",
]
