"""Booking-related Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from ..models.booking import BookingFlow, BookingStatus, PackageType, PaymentStatus, RentalDuration
from .common import DATE_PATTERN, EMAIL_PATTERN, TIME_PATTERN, CamelModel


class RentalSelection(CamelModel):
    """Rental duration and equipment chosen on the form."""

    duration: RentalDuration = Field(..., description="PER_JAM, 1/2_HARI, 1_HARI or MULTI_HARI")
    additional_equipment: Dict[str, bool] = Field(default_factory=dict, description="Equipment name to selected flag")

    @property
    def selected_equipment(self) -> List[str]:
        return [name for name, selected in self.additional_equipment.items() if selected]


class FoodSelection(CamelModel):
    """Meals and consumables requested with the booking."""

    breakfast: Optional[bool] = None
    lunch: Optional[bool] = None
    dinner: Optional[bool] = None
    supper: Optional[bool] = None
    mineral_water: int = Field(0, ge=0, description="Bottles of mineral water")


class CreateBookingRequest(CamelModel):
    """Request schema for creating a booking."""

    applicant_name: str = Field(..., min_length=2, max_length=100, description="Applicant name")
    department: str = Field(..., min_length=2, max_length=200, description="Applicant department")
    address: str = Field(..., min_length=10, max_length=500, description="Postal address")
    email: str = Field(..., pattern=EMAIL_PATTERN, description="Contact e-mail")
    phone_number: str = Field(..., pattern=r"^[0-9+\-() ]{8,15}$", description="Contact phone number")
    purpose: str = Field(..., min_length=5, max_length=500, description="Purpose of the booking")
    event_name: str = Field(..., min_length=2, max_length=200, description="Event name")
    start_date: str = Field(..., pattern=DATE_PATTERN, description="First day (YYYY-MM-DD)")
    end_date: str = Field(..., pattern=DATE_PATTERN, description="Last day (YYYY-MM-DD)")
    start_time: str = Field(..., pattern=TIME_PATTERN, description="Start time (HH:MM)")
    end_time: str = Field(..., pattern=TIME_PATTERN, description="End time (HH:MM)")
    attendance: int = Field(..., le=1000, description="Expected attendance")
    facility_id: str = Field(..., min_length=1, description="Public facility identifier")
    package_type: PackageType = Field(..., description="Booking package")
    booking_flow: BookingFlow = Field(BookingFlow.STANDARD, description="standard, or simple for the general booking form")
    rental: RentalSelection = Field(..., description="Rental selection")
    food: Optional[FoodSelection] = Field(None, description="Meals and consumables")
    session_id: str = Field(..., min_length=1, description="Browser session identifier")
    frontend_calculated_price: Optional[Decimal] = Field(None, ge=0, description="Price shown to the applicant")


class CreateBookingResponse(CamelModel):
    """Response schema for a created booking."""

    success: bool = Field(True, description="Always true")
    data: Dict[str, Any] = Field(..., description="Stored booking record")
    message: str = Field("Booking created successfully", description="Outcome message")
    booking_number: str = Field(..., description="Booking number, e.g. UTC-2024-0001")
    files_uploaded: int = Field(0, ge=0, description="Number of attached documents")
    total_price: float = Field(..., ge=0, description="Price stored on the booking")


class BookingSearchResponse(CamelModel):
    """Response schema for a booking lookup."""

    booking: Dict[str, Any] = Field(..., description="Booking summary")


class UpdateBookingStatusRequest(CamelModel):
    """Request schema for an administrative status change."""

    document_id: str = Field(..., min_length=1, description="CMS document id of the booking")
    booking_status: BookingStatus = Field(..., description="Target status")
    status_reason: Optional[str] = Field(None, max_length=1000, description="Reason shown to the applicant")
    processed_at: Optional[datetime] = Field(None, description="Processing time, defaults to now")
    total_price: Optional[Decimal] = Field(None, ge=0, description="Adjusted price")
    payment_status: Optional[PaymentStatus] = Field(None, description="Explicit payment status")
    notify_applicant: bool = Field(False, description="Send the matching status e-mail")

    @field_validator("booking_status", mode="before")
    @classmethod
    def parse_status(cls, v):
        return BookingStatus.parse(v)


class UpdateBookingStatusResponse(CamelModel):
    """Response schema for an administrative status change."""

    success: bool = Field(True, description="Always true")
    data: Dict[str, Any] = Field(..., description="Updated booking record")
    message: str = Field("Booking updated successfully", description="Outcome message")
    email_sent: Optional[bool] = Field(None, description="Set when a notification was requested")


class PaymentUploadRequest(CamelModel):
    """JSON request schema for submitting proof of payment."""

    booking_id: str = Field(..., min_length=1, description="Booking number, numeric id or document id")
    email: str = Field(..., pattern=EMAIL_PATTERN, description="Applicant e-mail")
    payment_proof: Optional[str] = Field(None, description="Reference to an already uploaded proof")


class PaymentUploadResponse(CamelModel):
    """Response schema for a proof of payment submission."""

    success: bool = Field(True, description="Always true")
    message: str = Field(
        "Payment proof uploaded successfully. Your booking is now under review.",
        description="Outcome message",
    )
    data: Dict[str, Any] = Field(..., description="bookingId and new status")
