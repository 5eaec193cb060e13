"""Notification-related Pydantic schemas."""

from typing import Optional

from pydantic import Field, field_validator

from ..models.booking import BookingStatus
from .common import EMAIL_PATTERN, CamelModel


class BookingStatusNotificationRequest(CamelModel):
    """Request schema for a status change e-mail."""

    email: str = Field(..., pattern=EMAIL_PATTERN, description="Applicant e-mail")
    name: str = Field(..., min_length=1, description="Applicant name")
    booking_id: str = Field(..., min_length=1, description="Booking number or numeric id")
    status: BookingStatus = Field(..., description="New booking status")
    reason: Optional[str] = Field(None, description="Reason for rejection or cancellation")
    event_name: str = Field(..., min_length=1, description="Event name")
    start_date: str = Field(..., min_length=1, description="Booking start date")

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, v):
        return BookingStatus.parse(v)


class PaymentApprovalNotificationRequest(CamelModel):
    """Request schema for the approved-awaiting-payment e-mail."""

    email: str = Field(..., pattern=EMAIL_PATTERN, description="Applicant e-mail")
    name: str = Field(..., min_length=1, description="Applicant name")
    booking_id: str = Field(..., min_length=1, description="Booking number or numeric id")
    event_name: str = Field(..., min_length=1, description="Event name")
    start_date: str = Field(..., min_length=1, description="Booking start date")
    total_price: float = Field(..., gt=0, description="Amount to pay")
    facility: str = Field(..., min_length=1, description="Facility name")


class NotificationResponse(CamelModel):
    """Response schema for notification endpoints."""

    success: bool = Field(True, description="Always true once the request is valid")
    message: str = Field(..., description="Outcome message")
    email_sent: bool = Field(..., description="Whether the relay accepted the e-mail")
    sms_sent: bool = Field(False, description="SMS is not supported")
