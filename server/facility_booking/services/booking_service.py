"""Booking service for business logic operations."""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from ..core.clock import Clock
from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..core.observability import metrics_collector
from ..models.booking import Booking, BookingStatus, PaymentStatus, cms_time
from ..models.facility import Facility
from ..models.time_window import TimeWindow
from ..schemas.booking import CreateBookingRequest, UpdateBookingStatusRequest
from .availability_service import booking_blocks_availability, windows_conflict
from .booking_number import BookingNumberGenerator
from .cms_client import CMSClient, FileUpload
from .hold_store import HoldStore
from .lifecycle import BookingValidator, ensure_transition, payment_status_after, profile_for
from .notification_service import NotificationService
from .pricing_service import PricingService, Quote, money

logger = logging.getLogger(__name__)


class TimeConflictError(ConflictError):
    """Exception when the requested window overlaps a persisted booking."""

    def __init__(self, booking: Booking):
        super().__init__(
            detail="The requested time slot is already booked",
            code="TIME_CONFLICT",
            conflicting_resource={
                "bookingNumber": booking.booking_number,
                "startDate": booking.start_date.isoformat() if booking.start_date else None,
                "endDate": booking.end_date.isoformat() if booking.end_date else None,
                "startTime": booking.start_time,
                "endTime": booking.end_time,
            }
        )


class SlotHeldError(ConflictError):
    """Exception when another session holds the requested window."""

    def __init__(self, expires_at):
        super().__init__(
            detail="The requested time slot is temporarily held by another user",
            code="SLOT_HELD",
            conflicting_resource={"holdExpiry": expires_at.isoformat()}
        )


@dataclass
class CreatedBooking:
    """Result of a successful booking submission."""

    booking: Booking
    record: dict[str, Any]
    booking_number: str
    total_price: Decimal
    files_uploaded: int
    quote: Quote


class BookingService:
    """Service for booking-related operations."""

    def __init__(
        self,
        cms: CMSClient,
        holds: HoldStore,
        notifications: NotificationService,
        clock: Optional[Clock] = None,
    ):
        self.cms = cms
        self.holds = holds
        self.notifications = notifications
        self.clock = clock or Clock()
        self.validator = BookingValidator(self.clock)
        self.pricing = PricingService()
        self.numbers = BookingNumberGenerator(cms, self.clock)

    def _ensure_free(self, facility_id: str, session_id: str, window: TimeWindow, bookings: list[Booking]) -> None:
        for booking in bookings:
            if booking_blocks_availability(booking) and windows_conflict(window, booking.window):
                logger.warning(
                    "Booking rejected - time conflict",
                    extra={"facility_id": facility_id, "conflicting_booking": booking.booking_number}
                )
                raise TimeConflictError(booking)

        for hold in self.holds.active_holds_for(facility_id, excluding_session_id=session_id):
            if windows_conflict(window, hold.package.window):
                logger.warning(
                    "Booking rejected - slot held by another session",
                    extra={"facility_id": facility_id, "session_id": session_id}
                )
                raise SlotHeldError(hold.expires_at)

    def price(self, request: CreateBookingRequest, facility: Facility, window: TimeWindow) -> Quote:
        """Backend quote for the request, consumables included."""
        quote = self.pricing.quote(facility, window, request.rental.selected_equipment)
        mineral_water = request.food.mineral_water if request.food else 0
        quote.breakdown.extend(self.pricing.consumable_items(mineral_water))
        return quote

    def _booking_payload(
        self,
        request: CreateBookingRequest,
        facility: Facility,
        booking_number: str,
        total_price: Decimal,
        file_ids: list[int],
    ) -> dict[str, Any]:
        return {
            "name": request.applicant_name,
            "jabatan": request.department,
            "address": request.address,
            "email": request.email,
            "phoneNo": request.phone_number,
            "purpose": request.purpose,
            "eventName": request.event_name,
            "startDate": request.start_date,
            "endDate": request.end_date,
            "startTime": cms_time(request.start_time),
            "endTime": cms_time(request.end_time),
            "attendance": request.attendance,
            "totalPrice": float(total_price),
            "packageType": request.package_type.value,
            "facility": facility.id,
            "rentDetails": {
                "duration": request.rental.duration.value,
                "additionalEquipment": request.rental.additional_equipment,
            },
            "meal": request.food.model_dump(by_alias=True, exclude_none=True) if request.food else {},
            "bookingStatus": BookingStatus.PENDING.value,
            "paymentStatus": PaymentStatus.UNPAID.value,
            "sessionId": request.session_id,
            "dokumen_berkaitan": file_ids,
            "bookingNumber": booking_number,
        }

    async def create_booking(
        self,
        request: CreateBookingRequest,
        files: Optional[list[FileUpload]] = None,
    ) -> CreatedBooking:
        """
        Validate, price and persist a booking request.

        Args:
            request: Booking request from the applicant
            files: Supporting documents to attach

        Returns:
            The stored booking with its number and price

        Raises:
            BookingRuleViolation: If a business rule fails
            NotFoundError: If the facility does not exist
            ConflictError: If the window is booked (TIME_CONFLICT) or held (SLOT_HELD)
            UpstreamServiceError: If the content store fails
        """
        files = files or []

        self.validator.parse_window(request.start_date, request.end_date, request.start_time, request.end_time)
        facility = await self.cms.get_facility(request.facility_id)
        window = self.validator.validate(
            request.start_date,
            request.end_date,
            request.start_time,
            request.end_time,
            attendance=request.attendance,
            capacity=facility.capacity,
            profile=profile_for(facility.is_sport, request.booking_flow),
        )

        self.holds.sweep_expired()
        bookings = await self.cms.list_active_bookings(facility.id)
        self._ensure_free(request.facility_id, request.session_id, window, bookings)

        quote = self.price(request, facility, window)
        client_price = request.frontend_calculated_price
        total_price = money(client_price) if client_price and client_price > 0 else quote.total_price
        if client_price and client_price > 0 and money(client_price) != quote.total_price:
            logger.info(
                "Client price differs from backend quote",
                extra={"client_price": str(client_price), "backend_price": str(quote.total_price)}
            )

        uploaded = await self.cms.upload_files(files) if files else []
        booking_number = str(await self.numbers.generate())

        payload = self._booking_payload(
            request, facility, booking_number, total_price, [item["id"] for item in uploaded]
        )
        booking, record = await self.cms.create_booking(payload)
        metrics_collector.record_booking_created(request.package_type.value)

        logger.info(
            "Booking created",
            extra={
                "booking_number": booking_number,
                "facility_id": request.facility_id,
                "package_type": request.package_type.value,
                "total_price": str(total_price),
                "files_uploaded": len(uploaded),
            }
        )

        if not booking.booking_number:
            booking = booking.model_copy(update={"booking_number": booking_number})
        if booking.email is None:
            booking = booking.model_copy(update={
                "email": request.email,
                "applicant_name": request.applicant_name,
                "department": request.department,
                "purpose": request.purpose,
                "event_name": request.event_name,
                "attendance": request.attendance,
                "total_price": total_price,
                "start_date": window.start_date,
                "end_date": window.end_date,
            })

        await self.notifications.send_booking_confirmation(
            booking, facility.name, request.start_time, request.end_time
        )
        self.holds.release(request.session_id, request.facility_id)

        return CreatedBooking(
            booking=booking,
            record=record,
            booking_number=booking_number,
            total_price=total_price,
            files_uploaded=len(uploaded),
            quote=quote,
        )

    async def search_booking(self, email: str, identifier: str) -> Booking:
        """
        Find an applicant's booking by booking number, falling back to numeric id.

        Raises:
            NotFoundError: If nothing matches the identifier and e-mail
        """
        matches = await self.cms.find_bookings(email=email, bookingNumber=identifier)
        if not matches and identifier.isdigit():
            matches = await self.cms.find_bookings(email=email, id=int(identifier))
        if not matches:
            raise NotFoundError(
                resource_type="booking",
                resource_id=identifier,
                detail="Booking not found or email does not match",
            )
        return matches[0]

    async def update_status(
        self,
        request: UpdateBookingStatusRequest,
    ) -> tuple[Booking, dict[str, Any], Optional[bool]]:
        """
        Apply an administrative status change.

        Args:
            request: Target status with optional reason, price and payment status

        Returns:
            Updated booking, raw record, and whether a notification was sent
            (None when none was requested)

        Raises:
            NotFoundError: If the booking does not exist
            ConflictError: If the transition is not allowed
        """
        current = await self.cms.get_booking(request.document_id)
        target = request.booking_status
        ensure_transition(current.booking_status, target)

        payment_status = payment_status_after(target, current.payment_status, request.payment_status)
        processed_at = request.processed_at or self.clock.now()

        payload: dict[str, Any] = {
            "bookingStatus": target.value,
            "statusReason": request.status_reason or None,
            "processedAt": processed_at.isoformat(),
            "paymentStatus": payment_status.value,
        }
        if request.total_price is not None:
            payload["totalPrice"] = float(money(request.total_price))

        updated, record = await self.cms.update_booking(request.document_id, payload)
        metrics_collector.record_status_change(target.value)

        logger.info(
            "Booking status updated",
            extra={
                "document_id": request.document_id,
                "from_status": current.booking_status.value,
                "to_status": target.value,
                "payment_status": payment_status.value,
            }
        )

        email_sent = None
        if request.notify_applicant and target is not current.booking_status:
            email_sent = await self.notifications.notify_status(updated)

        return updated, record, email_sent

    async def submit_payment_proof(
        self,
        identifier: str,
        email: str,
        files: Optional[list[FileUpload]] = None,
        proof_reference: Optional[str] = None,
    ) -> Booking:
        """
        Record proof of payment and move the booking to payment review.

        Raises:
            NotFoundError: If the booking does not belong to ``email``
            ValidationError: If the booking is not awaiting payment
        """
        candidates = await self.cms.find_bookings(email=email)
        booking = next(
            (
                candidate
                for candidate in candidates
                if identifier in (candidate.booking_number, str(candidate.id), candidate.document_id)
            ),
            None,
        )
        if booking is None:
            raise NotFoundError(
                resource_type="booking",
                resource_id=identifier,
                detail="Booking not found or email does not match",
            )

        if booking.booking_status is not BookingStatus.AWAITING_PAYMENT:
            raise ValidationError(
                detail="Booking is not in awaiting payment status",
                code="NOT_AWAITING_PAYMENT",
                details={"bookingStatus": booking.booking_status.value},
            )

        uploaded = await self.cms.upload_files(files) if files else []
        if uploaded:
            proof_reference = uploaded[0].get("url") or "File uploaded"

        payload: dict[str, Any] = {
            "bookingStatus": BookingStatus.REVIEW_PAYMENT.value,
            "paymentStatus": PaymentStatus.PAID.value,
            "paymentProof": proof_reference or "Uploaded",
            "processedAt": self.clock.now().isoformat(),
        }
        if uploaded:
            payload["bukti_pembayaran"] = [item["id"] for item in uploaded]

        updated, _ = await self.cms.update_booking(booking.document_id, payload)
        metrics_collector.record_status_change(BookingStatus.REVIEW_PAYMENT.value)

        logger.info(
            "Payment proof submitted",
            extra={"booking_id": booking.public_id, "files_uploaded": len(uploaded)}
        )
        if not updated.booking_number:
            updated = updated.model_copy(update={"booking_number": booking.booking_number, "id": booking.id})
        return updated
