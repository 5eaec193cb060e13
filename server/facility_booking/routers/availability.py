"""Availability router for checks, holds and the monthly calendar."""

import logging

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from ..core.dependencies import Availability
from ..core.exceptions import ProblemDetailsException
from ..schemas.availability import (
    AlternativeSlot,
    AvailabilityAction,
    AvailabilityCheckRequest,
    AvailabilityCheckResponse,
    HoldReleaseResponse,
    MonthAvailabilityResponse,
    PackageOut,
)
from ..services.availability_service import AvailabilityService, resolve_package

logger = logging.getLogger(__name__)

router = APIRouter(tags=["availability"])


@router.post("/availability-check", response_model=AvailabilityCheckResponse)
async def availability_check(
    request: AvailabilityCheckRequest,
    service: AvailabilityService = Availability,
) -> JSONResponse:
    """
    Check whether a package is free for a facility.

    ``action=hold`` also places a temporary hold for the session when the
    package is free; ``action=release`` drops the session's hold without
    looking anything up.
    """
    if request.action is AvailabilityAction.RELEASE:
        service.release(request.session_id, request.facility_id)
        return JSONResponse(
            status_code=200,
            content=HoldReleaseResponse().model_dump(by_alias=True)
        )

    package = resolve_package(
        request.package_type,
        request.start_date,
        request.end_date,
        request.start_time,
        request.end_time,
        request.half_day_period,
    )

    try:
        result = await service.check_availability(
            request.facility_id,
            package,
            request.session_id,
            place_hold=request.action is AvailabilityAction.HOLD,
        )
    except ProblemDetailsException:
        raise
    except Exception as e:
        logger.error(
            "Unexpected error in availability check",
            extra={
                "facility_id": request.facility_id,
                "session_id": request.session_id,
                "error": str(e)
            },
            exc_info=True
        )
        raise

    response_data = AvailabilityCheckResponse(
        available=result.available,
        package=PackageOut.model_validate(result.package.to_payload()),
        conflict_reason=result.conflict_reason,
        alternatives=[AlternativeSlot.model_validate(slot.to_payload()) for slot in result.alternatives],
        hold_expiry=result.hold_expiry,
    )
    return JSONResponse(
        status_code=200,
        content=response_data.model_dump(mode="json", by_alias=True)
    )


@router.get("/facilities/availability", response_model=MonthAvailabilityResponse)
async def facility_month_availability(
    facility_id: str = Query(..., alias="facilityId", min_length=1),
    year: int = Query(..., ge=1970, le=9999),
    month: int = Query(..., ge=1, le=12),
    service: AvailabilityService = Availability,
) -> JSONResponse:
    """Per-date availability of a facility for one calendar month."""
    dates = await service.get_month_availability(facility_id, year, month)
    response_data = MonthAvailabilityResponse.model_validate({"dates": dates})
    return JSONResponse(
        status_code=200,
        content=response_data.model_dump(by_alias=True)
    )
