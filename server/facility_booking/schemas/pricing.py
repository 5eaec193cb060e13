"""Pricing-related Pydantic schemas."""

from typing import List, Optional

from pydantic import Field

from .common import DATE_PATTERN, TIME_PATTERN, CamelModel


class PricingQuoteRequest(CamelModel):
    """Request schema for a price quote."""

    facility_id: str = Field(..., min_length=1, description="Public facility identifier")
    start_date: str = Field(..., pattern=DATE_PATTERN, description="First day (YYYY-MM-DD)")
    end_date: Optional[str] = Field(None, pattern=DATE_PATTERN, description="Last day (YYYY-MM-DD)")
    start_time: str = Field(..., pattern=TIME_PATTERN, description="Start time (HH:MM)")
    end_time: str = Field(..., pattern=TIME_PATTERN, description="End time (HH:MM)")
    equipment: List[str] = Field(default_factory=list, description="Selected equipment item names")
    mineral_water: int = Field(0, ge=0, description="Bottles of mineral water")


class PricingLineItem(CamelModel):
    """One priced row of a quote."""

    description: str = Field(..., description="What is charged")
    quantity: int = Field(..., ge=0, description="Hours, days or units")
    unit_price: float = Field(..., ge=0, description="Price per unit")
    total_price: float = Field(..., ge=0, description="quantity x unit price")
    type: str = Field(..., description="FACILITY, EQUIPMENT or CONSUMABLE")


class PricingQuoteResponse(CamelModel):
    """Response schema for a price quote."""

    facility_id: str = Field(..., description="Public facility identifier")
    rate_card: str = Field(..., description="flat or day_night")
    total_price: float = Field(..., ge=0, description="Sum of all line items")
    breakdown: List[PricingLineItem] = Field(..., description="Itemised charges")
    savings: Optional[float] = Field(None, description="Saved compared to pure hourly pricing")
    duration_hours: int = Field(0, ge=0, description="Billable hours of a single-day booking")
    days: int = Field(1, ge=1, description="Days spanned")
