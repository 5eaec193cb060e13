"""FastAPI dependencies resolving the per-app collaborators held on ``app.state``."""

from fastapi import Depends, Request

from ..services.availability_service import AvailabilityService
from ..services.booking_service import BookingService
from ..services.cms_client import CMSClient
from ..services.hold_store import HoldStore
from ..services.notification_service import NotificationService
from ..services.pricing_service import PricingService
from .clock import Clock


def get_clock(request: Request) -> Clock:
    return request.app.state.clock


def get_cms_client(request: Request) -> CMSClient:
    """
    Content store client created in the app lifespan.

    Returns:
        CMSClient: Shared client for this app instance
    """
    return request.app.state.cms


def get_hold_store(request: Request) -> HoldStore:
    """
    Hold store for this app instance.

    Holds are process-local; every worker process has its own store.
    """
    return request.app.state.holds


def get_notification_service(request: Request) -> NotificationService:
    return request.app.state.notifications


def get_pricing_service() -> PricingService:
    return PricingService()


def get_availability_service(
    cms: CMSClient = Depends(get_cms_client),
    holds: HoldStore = Depends(get_hold_store),
) -> AvailabilityService:
    return AvailabilityService(cms, holds)


def get_booking_service(
    cms: CMSClient = Depends(get_cms_client),
    holds: HoldStore = Depends(get_hold_store),
    notifications: NotificationService = Depends(get_notification_service),
    clock: Clock = Depends(get_clock),
) -> BookingService:
    return BookingService(cms, holds, notifications, clock)


CurrentClock = Depends(get_clock)
CMS = Depends(get_cms_client)
Holds = Depends(get_hold_store)
Notifications = Depends(get_notification_service)
Availability = Depends(get_availability_service)
Bookings = Depends(get_booking_service)
Pricing = Depends(get_pricing_service)
