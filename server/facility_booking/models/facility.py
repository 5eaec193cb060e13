"""Facility and rate card shapes."""

from decimal import Decimal
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


class FlatRates(BaseModel):
    """Hourly / half-day / full-day rate card used by halls and rooms."""

    kind: Literal["flat"] = "flat"
    hourly: Decimal = Field(..., ge=0)
    half_day: Decimal = Field(..., ge=0)
    full_day: Decimal = Field(..., ge=0)


class DayNightRates(BaseModel):
    """Two-tier hourly rate card used by sport facilities."""

    kind: Literal["day_night"] = "day_night"
    day: Decimal = Field(..., ge=0)
    night: Decimal = Field(..., ge=0)


RateCard = Annotated[Union[FlatRates, DayNightRates], Field(discriminator="kind")]


class Facility(BaseModel):
    """A bookable facility as read from the content store."""

    id: int
    document_id: str
    name: str = ""
    capacity: Optional[int] = None
    category: Optional[str] = None
    rate_card: RateCard
    equipment_rates: dict[str, Decimal] = Field(default_factory=dict)

    @property
    def is_sport(self) -> bool:
        return isinstance(self.rate_card, DayNightRates)
