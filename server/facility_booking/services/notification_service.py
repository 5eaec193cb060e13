"""Booking notifications sent to applicants."""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional
from urllib.parse import quote

from ..models.booking import Booking, BookingStatus
from .email_service import EmailService

logger = logging.getLogger(__name__)

STATUS_TEXT = {
    BookingStatus.APPROVED: "DILULUSKAN",
    BookingStatus.REJECTED: "DITOLAK",
    BookingStatus.CANCELLED: "DIBATALKAN",
    BookingStatus.AWAITING_PAYMENT: "MENUNGGU PEMBAYARAN",
    BookingStatus.REVIEW_PAYMENT: "SEMAKAN PEMBAYARAN",
    BookingStatus.PENDING: "DALAM PROSES",
}

_MONTHS = [
    "Januari", "Februari", "Mac", "April", "Mei", "Jun",
    "Julai", "Ogos", "September", "Oktober", "November", "Disember",
]


def format_display_date(value) -> str:
    """``2024-03-01`` -> ``1 Mac 2024``; unparseable values are returned as is."""
    if isinstance(value, str):
        try:
            value = date.fromisoformat(value)
        except ValueError:
            return value
    if not isinstance(value, date):
        return ""
    return f"{value.day} {_MONTHS[value.month - 1]} {value.year}"


class NotificationService:
    """Service choosing the template and content of applicant e-mails."""

    def __init__(self, email: EmailService):
        self.email = email

    def payment_upload_link(self, booking_id: str, email: str) -> str:
        base = self.email.config.site_url.rstrip("/")
        return f"{base}/tempahan/status?booking={quote(booking_id)}&email={quote(email)}"

    async def send_booking_confirmation(
        self,
        booking: Booking,
        facility_name: str,
        start_time: str,
        end_time: str,
    ) -> bool:
        """Tell the applicant their request was received."""
        return await self.email.send(
            to=booking.email,
            subject=f"Pengesahan Tempahan - {booking.public_id} - UTC Perlis",
            template_name="booking_confirmation",
            context={
                "booking_number": booking.public_id,
                "applicant_name": booking.applicant_name,
                "department": booking.department,
                "facility_name": facility_name,
                "purpose": booking.purpose,
                "event_name": booking.event_name,
                "start_date": format_display_date(booking.start_date),
                "end_date": format_display_date(booking.end_date),
                "start_time": start_time,
                "end_time": end_time,
                "attendance": booking.attendance,
                "total_price": f"{booking.total_price:.2f}",
            },
        )

    async def send_status_change(
        self,
        email: str,
        name: str,
        booking_id: str,
        status: BookingStatus,
        event_name: str,
        start_date,
        reason: Optional[str] = None,
    ) -> bool:
        """Tell the applicant their booking was approved, rejected or cancelled."""
        return await self.email.send(
            to=email,
            subject=f"Kemaskini Status Tempahan #{booking_id}",
            template_name="status_change",
            context={
                "name": name,
                "booking_id": booking_id,
                "status": status.value,
                "status_text": STATUS_TEXT.get(status, status.value),
                "event_name": event_name,
                "start_date": format_display_date(start_date),
                "reason": reason,
            },
        )

    async def send_payment_request(
        self,
        email: str,
        name: str,
        booking_id: str,
        event_name: str,
        start_date,
        total_price: Decimal,
        facility: str,
    ) -> bool:
        """Ask the applicant to pay and upload proof of payment."""
        return await self.email.send(
            to=email,
            subject=f"Tempahan Diluluskan - Sila Buat Pembayaran #{booking_id}",
            template_name="payment_request",
            context={
                "name": name,
                "booking_id": booking_id,
                "event_name": event_name,
                "start_date": format_display_date(start_date),
                "total_price": f"{Decimal(total_price):.2f}",
                "facility": facility,
                "payment_upload_link": self.payment_upload_link(booking_id, email),
            },
        )

    async def notify_status(self, booking: Booking) -> bool:
        """Send whichever e-mail matches the booking's new status."""
        if not booking.email:
            logger.warning("Booking has no e-mail address", extra={"booking_id": booking.public_id})
            return False

        if booking.booking_status is BookingStatus.AWAITING_PAYMENT:
            return await self.send_payment_request(
                email=booking.email,
                name=booking.applicant_name or "",
                booking_id=booking.public_id,
                event_name=booking.event_name or "",
                start_date=booking.start_date,
                total_price=booking.total_price,
                facility=booking.facility_name or "",
            )

        return await self.send_status_change(
            email=booking.email,
            name=booking.applicant_name or "",
            booking_id=booking.public_id,
            status=booking.booking_status,
            event_name=booking.event_name or "",
            start_date=booking.start_date,
            reason=booking.status_reason,
        )
