"""Canonical booking shapes shared by every service."""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from .time_window import LAST_MINUTE, TimeWindow, format_time_of_day, parse_time_of_day


class PackageType(str, Enum):
    """Booking granularity."""
    HOURLY = "HOURLY"
    HALF_DAY = "HALF_DAY"
    FULL_DAY = "FULL_DAY"
    MULTI_DAY = "MULTI_DAY"


class BookingFlow(str, Enum):
    """Form the applicant booked through; picks the rule set for non-sport facilities."""
    STANDARD = "standard"
    SIMPLE = "simple"


class HalfDayPeriod(str, Enum):
    """Which half of the operating day a HALF_DAY package covers."""
    MORNING = "morning"
    AFTERNOON = "afternoon"


class RentalDuration(str, Enum):
    """Rental duration selected on the booking form."""
    PER_JAM = "PER_JAM"
    HALF_DAY = "1/2_HARI"
    FULL_DAY = "1_HARI"
    MULTI_HARI = "MULTI_HARI"


class BookingStatus(str, Enum):
    """Booking status enumeration."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    AWAITING_PAYMENT = "AWAITING_PAYMENT"
    REVIEW_PAYMENT = "REVIEW_PAYMENT"

    @classmethod
    def parse(cls, value: Any) -> "BookingStatus":
        """
        Accept the legacy spellings stored by older clients.

        ``CANCELED``, ``AWAITING PAYMENT`` and ``REVIEW PAYMENT`` map to their
        canonical members; matching is case-insensitive.

        Raises:
            ValueError: If the value is not a known status
        """
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().upper().replace(" ", "_")
        if text == "CANCELED":
            text = "CANCELLED"
        return cls(text)

    @property
    def blocks_availability(self) -> bool:
        return self not in (BookingStatus.REJECTED, BookingStatus.CANCELLED)


class PaymentStatus(str, Enum):
    """Payment status enumeration."""
    UNPAID = "UNPAID"
    PAID = "PAID"
    VERIFIED = "VERIFIED"
    FAILED = "FAILED"

    @classmethod
    def parse(cls, value: Any) -> "PaymentStatus":
        if isinstance(value, cls):
            return value
        if not value:
            return cls.UNPAID
        return cls(str(value).strip().upper())


@dataclass(frozen=True)
class Package:
    """A package type together with its resolved reservation window."""

    type: PackageType
    window: TimeWindow

    def to_payload(self) -> dict[str, str]:
        return {"type": self.type.value, **self.window.to_payload()}


class Booking(BaseModel):
    """A persisted booking as read from the content store."""

    id: Optional[int] = None
    document_id: Optional[str] = None
    booking_number: Optional[str] = None
    applicant_name: Optional[str] = None
    department: Optional[str] = None
    address: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    purpose: Optional[str] = None
    event_name: Optional[str] = None
    facility_id: Optional[int] = None
    facility_name: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    attendance: Optional[int] = None
    package_type: Optional[PackageType] = None
    booking_status: BookingStatus = BookingStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    total_price: Decimal = Field(default=Decimal("0"))
    session_id: Optional[str] = None
    status_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None

    @property
    def public_id(self) -> str:
        """Identifier shown to applicants: booking number or numeric id."""
        return self.booking_number or str(self.id or self.document_id or "")

    @property
    def window(self) -> Optional[TimeWindow]:
        """
        Reservation window of the booking.

        Missing times are treated as a whole-day marker; a booking without a
        start date has no window.
        """
        if self.start_date is None:
            return None
        start = parse_time_of_day(self.start_time) if self.start_time else 0
        end = parse_time_of_day(self.end_time, end_of_range=True) if self.end_time else LAST_MINUTE
        return TimeWindow(self.start_date, self.end_date or self.start_date, start, end)

    def to_summary(self) -> dict[str, Any]:
        """camelCase representation returned by the search endpoint."""
        return {
            "id": self.id,
            "documentId": self.document_id,
            "bookingNumber": self.booking_number,
            "name": self.applicant_name,
            "email": self.email,
            "purpose": self.purpose,
            "eventName": self.event_name,
            "startDate": self.start_date.isoformat() if self.start_date else None,
            "endDate": self.end_date.isoformat() if self.end_date else None,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "attendance": self.attendance,
            "totalPrice": float(self.total_price),
            "bookingStatus": self.booking_status.value,
            "statusReason": self.status_reason,
            "paymentStatus": self.payment_status.value,
            "facility": {"name": self.facility_name or "N/A"},
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "processedAt": self.processed_at.isoformat() if self.processed_at else None,
        }


def cms_time(value: str) -> str:
    """Normalise an ``HH:MM`` form value to the content store time format."""
    return format_time_of_day(parse_time_of_day(value, end_of_range=False))
