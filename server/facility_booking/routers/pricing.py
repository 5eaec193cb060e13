"""Pricing router."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ..core.clock import Clock
from ..core.dependencies import CMS, CurrentClock, Pricing
from ..schemas.pricing import PricingQuoteRequest, PricingQuoteResponse
from ..services.cms_client import CMSClient
from ..services.lifecycle import BookingValidator
from ..services.pricing_service import PricingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pricing", tags=["pricing"])


@router.post("/quote", response_model=PricingQuoteResponse)
async def pricing_quote(
    request: PricingQuoteRequest,
    cms: CMSClient = CMS,
    pricing: PricingService = Pricing,
    clock: Clock = CurrentClock,
) -> JSONResponse:
    """Itemised price of a window for a facility, equipment and consumables included."""
    window = BookingValidator(clock).parse_window(
        request.start_date, request.end_date, request.start_time, request.end_time
    )
    facility = await cms.get_facility(request.facility_id)

    quote = pricing.quote(facility, window, request.equipment)
    quote.breakdown.extend(pricing.consumable_items(request.mineral_water))

    logger.info(
        "Quote requested",
        extra={
            "facility_id": request.facility_id,
            "rate_card": facility.rate_card.kind,
            "total_price": str(quote.total_price),
        }
    )

    response_data = PricingQuoteResponse.model_validate({
        "facilityId": request.facility_id,
        "rateCard": facility.rate_card.kind,
        **quote.to_payload(),
    })
    return JSONResponse(
        status_code=200,
        content=response_data.model_dump(by_alias=True, exclude_none=True)
    )
