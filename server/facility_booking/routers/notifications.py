"""Notification router for applicant e-mails triggered by the admin UI."""

import logging
from decimal import Decimal

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ..core.dependencies import Notifications
from ..schemas.notification import (
    BookingStatusNotificationRequest,
    NotificationResponse,
    PaymentApprovalNotificationRequest,
)
from ..services.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _response(email_sent: bool) -> JSONResponse:
    message = "Notification sent successfully" if email_sent else "Notification could not be delivered"
    response_data = NotificationResponse(message=message, email_sent=email_sent)
    return JSONResponse(
        status_code=200,
        content=response_data.model_dump(by_alias=True)
    )


@router.post("/booking-status", response_model=NotificationResponse)
async def booking_status_notification(
    request: BookingStatusNotificationRequest,
    notifications: NotificationService = Notifications,
) -> JSONResponse:
    """E-mail the applicant about a status change; delivery failures only show in ``emailSent``."""
    email_sent = await notifications.send_status_change(
        email=request.email,
        name=request.name,
        booking_id=request.booking_id,
        status=request.status,
        event_name=request.event_name,
        start_date=request.start_date,
        reason=request.reason,
    )

    logger.info(
        "Status notification processed",
        extra={"booking_id": request.booking_id, "status": request.status.value, "email_sent": email_sent}
    )
    return _response(email_sent)


@router.post("/payment-approval", response_model=NotificationResponse)
async def payment_approval_notification(
    request: PaymentApprovalNotificationRequest,
    notifications: NotificationService = Notifications,
) -> JSONResponse:
    """E-mail the applicant the amount due and the proof-of-payment upload link."""
    email_sent = await notifications.send_payment_request(
        email=request.email,
        name=request.name,
        booking_id=request.booking_id,
        event_name=request.event_name,
        start_date=request.start_date,
        total_price=Decimal(str(request.total_price)),
        facility=request.facility,
    )

    logger.info(
        "Payment request notification processed",
        extra={"booking_id": request.booking_id, "email_sent": email_sent}
    )
    return _response(email_sent)
