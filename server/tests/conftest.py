"""Test configuration and fixtures."""

import smtplib
from datetime import datetime, timedelta
from typing import Any, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient

from facility_booking.core.clock import FixedClock
from facility_booking.core.exceptions import NotFoundError, UpstreamServiceError
from facility_booking.models.booking import BookingStatus
from facility_booking.services.cms_client import normalize_booking, normalize_facility
from facility_booking.services.email_service import EmailService
from facility_booking.services.hold_store import HoldStore
from facility_booking.services.notification_service import NotificationService

# 2030-06-10 09:00 in the service timezone
NOW = datetime(2030, 6, 10, 9, 0)
TOMORROW = "2030-06-11"


class FakeCMS:
    """In-memory stand-in for the CMS client with the same async surface."""

    def __init__(self):
        self.facilities: dict[str, dict[str, Any]] = {}
        self.bookings: list[dict[str, Any]] = []
        self.uploads: list[dict[str, Any]] = []
        self.fail_number_lookup = False
        self.healthy = True
        self._next_id = 1

    def add_facility(self, record: dict[str, Any]) -> dict[str, Any]:
        self.facilities[record["documentId"]] = record
        return record

    def add_booking(self, **fields: Any) -> dict[str, Any]:
        record = {
            "id": self._next_id,
            "documentId": f"doc-{self._next_id}",
            "bookingStatus": BookingStatus.PENDING.value,
            "paymentStatus": "UNPAID",
            "totalPrice": 0,
            **fields,
        }
        self._next_id += 1
        self.bookings.append(record)
        return record

    def _find(self, document_id: str) -> Optional[dict[str, Any]]:
        return next((b for b in self.bookings if b["documentId"] == document_id), None)

    async def get_facility(self, document_id: str):
        if document_id not in self.facilities:
            raise NotFoundError(resource_type="facility", resource_id=document_id)
        return normalize_facility(self.facilities[document_id])

    async def list_active_bookings(self, facility_id: int):
        bookings = [normalize_booking(record) for record in self.bookings]
        return [
            booking for booking in bookings
            if booking.facility_id == facility_id
            and booking.booking_status not in (BookingStatus.REJECTED, BookingStatus.CANCELLED)
        ]

    async def find_bookings(self, **filters: Any):
        return [
            normalize_booking(record)
            for record in self.bookings
            if all(record.get(name) == value for name, value in filters.items())
        ]

    async def latest_booking_number(self, prefix: str) -> Optional[str]:
        if self.fail_number_lookup:
            raise UpstreamServiceError(service="cms", detail="CMS unavailable")
        numbers = sorted(
            b["bookingNumber"] for b in self.bookings
            if (b.get("bookingNumber") or "").startswith(prefix)
        )
        return numbers[-1] if numbers else None

    async def booking_number_exists(self, booking_number: str) -> bool:
        return any(b.get("bookingNumber") == booking_number for b in self.bookings)

    async def get_booking(self, document_id: str):
        record = self._find(document_id)
        if record is None:
            raise NotFoundError(resource_type="booking", resource_id=document_id)
        return normalize_booking(record)

    async def create_booking(self, payload: dict[str, Any]):
        record = self.add_booking(**payload)
        return normalize_booking(record), record

    async def update_booking(self, document_id: str, payload: dict[str, Any]):
        record = self._find(document_id)
        if record is None:
            raise NotFoundError(resource_type="booking", resource_id=document_id)
        record.update(payload)
        return normalize_booking(record), record

    async def upload_files(self, files):
        uploaded = []
        for upload in files:
            media = {"id": 100 + len(self.uploads), "url": f"/uploads/{upload.filename}", "name": upload.filename}
            self.uploads.append(media)
            uploaded.append(media)
        return uploaded

    async def ping(self) -> bool:
        return self.healthy

    async def aclose(self) -> None:
        pass


class RecordingEmailService(EmailService):
    """Renders real templates but records messages instead of talking SMTP."""

    def __init__(self):
        super().__init__()
        self.sent = []
        self.fail = False

    def _deliver(self, message) -> None:
        if self.fail:
            raise smtplib.SMTPException("relay refused")
        self.sent.append(message)


HALL = {
    "id": 1,
    "documentId": "hall-1",
    "name": "Dewan Utama",
    "capacity": 200,
    "rates": {"hourlyRate": 50, "halfDayRate": 250, "fullDayRate": 400},
    "equipmentRates": {"PA System": 100, "Projector": 80},
}

COURT = {
    "id": 2,
    "documentId": "court-1",
    "name": "Gelanggang Badminton",
    "capacity": 20,
    "category": "Sukan",
    "rates": {"dayRate": 20, "nightRate": 30},
}


@pytest.fixture
def clock():
    """Clock pinned to NOW in the service timezone."""
    return FixedClock(NOW)


@pytest.fixture
def cms():
    """Fake CMS seeded with a hall and a sport court."""
    fake = FakeCMS()
    fake.add_facility(dict(HALL))
    fake.add_facility(dict(COURT))
    return fake


@pytest.fixture
def holds(clock):
    return HoldStore(ttl=timedelta(minutes=15), clock=clock)


@pytest.fixture
def mailer():
    return RecordingEmailService()


@pytest.fixture
def notifications(mailer):
    return NotificationService(mailer)


@pytest_asyncio.fixture(scope="function")
async def test_app(cms, holds, clock, notifications):
    """Create a test FastAPI application."""
    from fastapi import FastAPI
    from fastapi.exceptions import RequestValidationError

    from facility_booking.core.exceptions import (
        ProblemDetailsException,
        generic_exception_handler,
        problem_details_handler,
        request_validation_handler,
    )
    from facility_booking.routers import admin, availability, booking, health, metrics, notifications as notify, pricing

    # Create a simplified test app without lifespan
    app = FastAPI(
        title="Facility Booking API (Test)",
        description="Test version of the API",
        version="1.0.0-test",
    )

    # Register exception handlers
    app.add_exception_handler(ProblemDetailsException, problem_details_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # Register API routers
    app.include_router(health.router)
    app.include_router(availability.router)
    app.include_router(pricing.router)
    app.include_router(booking.router)
    app.include_router(admin.router)
    app.include_router(notify.router)
    app.include_router(metrics.router)

    app.state.clock = clock
    app.state.cms = cms
    app.state.holds = holds
    app.state.notifications = notifications

    yield app


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    from httpx import ASGITransport
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def sample_booking_data():
    """Valid booking request for the hall, tomorrow 10:00-14:00."""
    return {
        "applicantName": "Siti Aminah",
        "department": "Jabatan Kejuruteraan",
        "address": "No. 1, Jalan Kangar, 01000 Kangar, Perlis",
        "email": "siti@example.com",
        "phoneNumber": "012-3456789",
        "purpose": "Majlis penyampaian anugerah",
        "eventName": "Anugerah Cemerlang",
        "startDate": TOMORROW,
        "endDate": TOMORROW,
        "startTime": "10:00",
        "endTime": "14:00",
        "attendance": 150,
        "facilityId": "hall-1",
        "packageType": "HOURLY",
        "rental": {"duration": "PER_JAM", "additionalEquipment": {"PA System": True, "Projector": False}},
        "food": {"mineralWater": 10},
        "sessionId": "session-a",
    }
