"""Unit tests for the booking service."""

from datetime import date
from decimal import Decimal

import pytest

from facility_booking.core.exceptions import (
    BookingRuleViolation,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from facility_booking.models.booking import BookingStatus, Package, PackageType, PaymentStatus
from facility_booking.models.time_window import TimeWindow
from facility_booking.schemas.booking import CreateBookingRequest, UpdateBookingStatusRequest
from facility_booking.services.booking_service import BookingService
from facility_booking.services.cms_client import FileUpload

DAY = date(2030, 6, 11)


@pytest.fixture
def service(cms, holds, notifications, clock):
    return BookingService(cms, holds, notifications, clock)


def make_request(data, **overrides) -> CreateBookingRequest:
    return CreateBookingRequest.model_validate({**data, **overrides})


def seed_booking(cms, **fields):
    defaults = {
        "facility": 1,
        "bookingNumber": "UTC-2030-0010",
        "email": "siti@example.com",
        "name": "Siti Aminah",
        "eventName": "Anugerah Cemerlang",
        "startDate": "2030-06-20",
        "startTime": "10:00:00.000",
        "endTime": "12:00:00.000",
        "totalPrice": 200,
    }
    return cms.add_booking(**{**defaults, **fields})


@pytest.mark.asyncio
async def test_create_booking(service, cms, holds, mailer, sample_booking_data):
    """Backend price: 4h hourly (200) + PA System (100) + 10 bottles of water (10)."""
    request = make_request(sample_booking_data)
    holds.hold("session-a", "hall-1", Package(PackageType.HOURLY, TimeWindow(DAY, DAY, 600, 840)))

    created = await service.create_booking(request)

    assert created.booking_number == "UTC-2030-0001"
    assert created.total_price == Decimal("310.00")
    assert created.record["bookingStatus"] == "PENDING"
    assert created.record["paymentStatus"] == "UNPAID"
    assert created.record["startTime"] == "10:00:00.000"
    assert created.record["facility"] == 1
    assert len(cms.bookings) == 1
    assert len(mailer.sent) == 1
    assert "UTC-2030-0001" in mailer.sent[0]["Subject"]
    assert holds.count() == 0


@pytest.mark.asyncio
async def test_client_price_is_accepted_when_positive(service, sample_booking_data):
    created = await service.create_booking(make_request(sample_booking_data, frontendCalculatedPrice=299.5))
    assert created.total_price == Decimal("299.50")
    assert created.quote.total_price == Decimal("310.00")


@pytest.mark.asyncio
async def test_zero_client_price_uses_backend_quote(service, sample_booking_data):
    created = await service.create_booking(make_request(sample_booking_data, frontendCalculatedPrice=0))
    assert created.total_price == Decimal("310.00")


@pytest.mark.asyncio
async def test_time_conflict(service, cms, sample_booking_data):
    seed_booking(cms, startDate="2030-06-11", startTime="13:00:00.000", endTime="15:00:00.000")

    with pytest.raises(ConflictError) as exc_info:
        await service.create_booking(make_request(sample_booking_data))
    assert exc_info.value.code == "TIME_CONFLICT"
    assert len(cms.bookings) == 1


@pytest.mark.asyncio
async def test_rejected_booking_does_not_conflict(service, cms, sample_booking_data):
    seed_booking(cms, startDate="2030-06-11", bookingStatus="REJECTED")
    created = await service.create_booking(make_request(sample_booking_data))
    assert created.booking_number == "UTC-2030-0011"


@pytest.mark.asyncio
async def test_slot_held_by_another_session(service, holds, sample_booking_data):
    holds.hold("session-b", "hall-1", Package(PackageType.HOURLY, TimeWindow(DAY, DAY, 780, 900)))

    with pytest.raises(ConflictError) as exc_info:
        await service.create_booking(make_request(sample_booking_data))
    assert exc_info.value.code == "SLOT_HELD"


@pytest.mark.asyncio
async def test_capacity_exceeded(service, sample_booking_data):
    with pytest.raises(BookingRuleViolation) as exc_info:
        await service.create_booking(make_request(sample_booking_data, attendance=250))
    assert exc_info.value.code == "CAPACITY_EXCEEDED"


@pytest.mark.asyncio
async def test_past_date_rejected_before_facility_lookup(service, sample_booking_data):
    with pytest.raises(BookingRuleViolation) as exc_info:
        await service.create_booking(
            make_request(sample_booking_data, facilityId="missing", startDate="2030-06-01", endDate="2030-06-01")
        )
    assert exc_info.value.code == "INVALID_DATE"


@pytest.mark.asyncio
async def test_unknown_facility(service, sample_booking_data):
    with pytest.raises(NotFoundError):
        await service.create_booking(make_request(sample_booking_data, facilityId="missing"))


@pytest.mark.asyncio
async def test_sport_facility_uses_sport_rules(service, sample_booking_data):
    with pytest.raises(BookingRuleViolation) as exc_info:
        await service.create_booking(
            make_request(sample_booking_data, facilityId="court-1", startTime="18:00", endTime="21:00", attendance=10)
        )
    assert exc_info.value.code == "SPORT_GAP_HOURS"


@pytest.mark.asyncio
async def test_email_failure_does_not_fail_booking(service, cms, mailer, sample_booking_data):
    mailer.fail = True
    created = await service.create_booking(make_request(sample_booking_data))
    assert created.booking_number == "UTC-2030-0001"
    assert len(cms.bookings) == 1


@pytest.mark.asyncio
async def test_documents_are_attached(service, cms, sample_booking_data):
    files = [FileUpload("surat.pdf", b"%PDF-1.4", "application/pdf")]
    created = await service.create_booking(make_request(sample_booking_data), files)

    assert created.files_uploaded == 1
    assert created.record["dokumen_berkaitan"] == [cms.uploads[0]["id"]]


@pytest.mark.asyncio
async def test_search_by_number_then_id(service, cms):
    record = seed_booking(cms)

    by_number = await service.search_booking("siti@example.com", "UTC-2030-0010")
    by_id = await service.search_booking("siti@example.com", str(record["id"]))
    assert by_number.document_id == by_id.document_id == record["documentId"]

    with pytest.raises(NotFoundError):
        await service.search_booking("someone@example.com", "UTC-2030-0010")


@pytest.mark.asyncio
async def test_update_status_to_awaiting_payment_sends_payment_request(service, cms, mailer):
    record = seed_booking(cms)

    updated, raw, email_sent = await service.update_status(UpdateBookingStatusRequest(
        document_id=record["documentId"],
        booking_status="AWAITING_PAYMENT",
        notify_applicant=True,
    ))

    assert updated.booking_status is BookingStatus.AWAITING_PAYMENT
    assert updated.payment_status is PaymentStatus.UNPAID
    assert raw["processedAt"].startswith("2030-06-10T09:00")
    assert email_sent is True
    assert mailer.sent[0]["Subject"].startswith("Tempahan Diluluskan")


@pytest.mark.asyncio
async def test_update_status_reject_fails_payment(service, cms, mailer):
    record = seed_booking(cms, bookingStatus="REVIEW_PAYMENT", paymentStatus="PAID")

    updated, _, email_sent = await service.update_status(UpdateBookingStatusRequest(
        document_id=record["documentId"],
        booking_status="REJECTED",
        status_reason="Bukti pembayaran tidak sah",
    ))

    assert updated.payment_status is PaymentStatus.FAILED
    assert updated.status_reason == "Bukti pembayaran tidak sah"
    assert email_sent is None
    assert mailer.sent == []


@pytest.mark.asyncio
async def test_update_status_illegal_transition(service, cms):
    record = seed_booking(cms, bookingStatus="CANCELLED")

    with pytest.raises(ConflictError) as exc_info:
        await service.update_status(UpdateBookingStatusRequest(
            document_id=record["documentId"], booking_status="APPROVED"
        ))
    assert exc_info.value.code == "INVALID_STATUS_TRANSITION"


@pytest.mark.asyncio
async def test_update_status_adjusts_price(service, cms):
    record = seed_booking(cms)

    await service.update_status(UpdateBookingStatusRequest(
        document_id=record["documentId"], booking_status="PENDING", total_price=Decimal("180.456")
    ))
    assert record["totalPrice"] == 180.46


@pytest.mark.asyncio
async def test_submit_payment_proof(service, cms):
    record = seed_booking(cms, bookingStatus="AWAITING_PAYMENT")

    updated = await service.submit_payment_proof(
        "UTC-2030-0010", "siti@example.com", files=[FileUpload("resit.jpg", b"\xff\xd8", "image/jpeg")]
    )

    assert updated.booking_status is BookingStatus.REVIEW_PAYMENT
    assert updated.payment_status is PaymentStatus.PAID
    assert record["paymentProof"] == "/uploads/resit.jpg"
    assert record["bukti_pembayaran"] == [cms.uploads[0]["id"]]


@pytest.mark.asyncio
async def test_submit_payment_proof_requires_awaiting_payment(service, cms):
    seed_booking(cms)

    with pytest.raises(ValidationError) as exc_info:
        await service.submit_payment_proof("UTC-2030-0010", "siti@example.com", proof_reference="ref-1")
    assert exc_info.value.code == "NOT_AWAITING_PAYMENT"


@pytest.mark.asyncio
async def test_submit_payment_proof_wrong_email(service, cms):
    seed_booking(cms, bookingStatus="AWAITING_PAYMENT")

    with pytest.raises(NotFoundError):
        await service.submit_payment_proof("UTC-2030-0010", "other@example.com", proof_reference="ref-1")
