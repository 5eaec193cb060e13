"""Administrative booking router."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ..core.dependencies import Bookings
from ..schemas.booking import UpdateBookingStatusRequest, UpdateBookingStatusResponse
from ..services.booking_service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.put("/bookings/update", response_model=UpdateBookingStatusResponse)
async def update_booking_status(
    request: UpdateBookingStatusRequest,
    service: BookingService = Bookings,
) -> JSONResponse:
    """
    Move a booking to a new status.

    Illegal transitions are rejected with 409. When ``notifyApplicant`` is
    set and the status changed, the matching e-mail is sent and
    ``emailSent`` reports the outcome.
    """
    _, record, email_sent = await service.update_status(request)

    response_data = UpdateBookingStatusResponse(data=record, email_sent=email_sent)
    return JSONResponse(
        status_code=200,
        content=response_data.model_dump(mode="json", by_alias=True)
    )
