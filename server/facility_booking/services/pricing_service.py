"""Least-cost pricing over hourly, half-day, full-day and day/night rate cards."""

import logging
import math
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Iterable, Optional

from ..core.config import settings
from ..core.exceptions import ValidationError
from ..models.facility import DayNightRates, Facility, FlatRates
from ..models.time_window import TimeWindow

logger = logging.getLogger(__name__)

HALF_DAY_HOURS = 5
FULL_DAY_HOURS = 8

DAY_RATE_HOURS = range(8, 19)
NIGHT_RATE_HOURS = range(20, 24)

_CENT = Decimal("0.01")


def money(value) -> Decimal:
    """Quantise an amount to two decimal places."""
    return Decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


class LineItemType(str, Enum):
    """Kind of charge on a quote."""
    FACILITY = "FACILITY"
    EQUIPMENT = "EQUIPMENT"
    CONSUMABLE = "CONSUMABLE"


@dataclass(frozen=True)
class LineItem:
    """One priced row of a quote."""

    description: str
    quantity: int
    unit_price: Decimal
    type: LineItemType

    @property
    def total_price(self) -> Decimal:
        return money(self.unit_price * self.quantity)

    def to_payload(self) -> dict:
        return {
            "description": self.description,
            "quantity": self.quantity,
            "unitPrice": float(money(self.unit_price)),
            "totalPrice": float(self.total_price),
            "type": self.type.value,
        }


@dataclass
class Quote:
    """Total price with its itemised breakdown."""

    breakdown: list[LineItem] = field(default_factory=list)
    savings: Optional[Decimal] = None
    duration_hours: int = 0
    days: int = 1

    @property
    def total_price(self) -> Decimal:
        return money(sum((item.total_price for item in self.breakdown), Decimal("0")))

    def total_of(self, item_type: LineItemType) -> Decimal:
        return money(sum(
            (item.total_price for item in self.breakdown if item.type is item_type),
            Decimal("0"),
        ))

    def to_payload(self) -> dict:
        payload = {
            "totalPrice": float(self.total_price),
            "breakdown": [item.to_payload() for item in self.breakdown],
            "durationHours": self.duration_hours,
            "days": self.days,
        }
        if self.savings is not None:
            payload["savings"] = float(self.savings)
        return payload


def duration_hours(window: TimeWindow) -> int:
    """Whole hours of a single-day window, rounding partial hours up."""
    return max(0, math.ceil(window.duration_minutes / 60))


def _hourly_items(hours: int, rates: FlatRates) -> list[LineItem]:
    return [LineItem("Kadar per jam", hours, rates.hourly, LineItemType.FACILITY)]


def _package_items(
    description: str,
    package_rate: Decimal,
    covered_hours: int,
    hours: int,
    rates: FlatRates,
) -> list[LineItem]:
    items = [LineItem(description, 1, package_rate, LineItemType.FACILITY)]
    extra = hours - covered_hours
    if extra > 0:
        items.append(LineItem("Jam tambahan", extra, rates.hourly, LineItemType.FACILITY))
    return items


def best_flat_breakdown(hours: int, rates: FlatRates) -> list[LineItem]:
    """
    Cheapest facility line items for a single-day booking of ``hours``.

    Candidate strategies are pure hourly, a half-day package plus extra
    hours and a full-day package plus extra hours. Each duration band has a
    preferred order (half-day first up to 5h, hourly first for 6-8h, full-day
    first beyond 8h) and a later candidate only wins when strictly cheaper.
    """
    hourly = _hourly_items(hours, rates)
    half = _package_items("Pakej separuh hari (5 jam)", rates.half_day, HALF_DAY_HOURS, hours, rates)
    full = _package_items("Pakej satu hari (8 jam)", rates.full_day, FULL_DAY_HOURS, hours, rates)

    if hours <= HALF_DAY_HOURS:
        candidates = [half, hourly, full]
    elif hours <= FULL_DAY_HOURS:
        candidates = [hourly, half, full]
    else:
        candidates = [full, hourly, half]

    best = candidates[0]
    best_total = _sum(best)
    for candidate in candidates[1:]:
        total = _sum(candidate)
        if total < best_total:
            best, best_total = candidate, total
    return best


def _sum(items: Iterable[LineItem]) -> Decimal:
    return sum((item.total_price for item in items), Decimal("0"))


def day_night_hours(window: TimeWindow) -> tuple[int, int]:
    """
    Count day-rate and night-rate hours, hour by hour from the start time.

    Hours starting in the 19:00-20:00 gap or outside both bands are not
    counted.
    """
    day_hours = night_hours = 0
    for minute in range(window.start_minute, window.end_minute, 60):
        hour = minute // 60
        if hour in DAY_RATE_HOURS:
            day_hours += 1
        elif hour in NIGHT_RATE_HOURS:
            night_hours += 1
    return day_hours, night_hours


class PricingService:
    """Service computing quotes from a facility's rate card."""

    def equipment_items(
        self,
        facility: Facility,
        equipment: Iterable[str],
        days: int = 1,
    ) -> list[LineItem]:
        """Each selected item charged at its daily rate for every day; unknown items cost 0."""
        items = []
        for name in equipment:
            rate = facility.equipment_rates.get(name, Decimal("0"))
            description = f"{name} ({days} hari)" if days > 1 else name
            items.append(LineItem(description, days, rate, LineItemType.EQUIPMENT))
        return items

    def consumable_items(self, mineral_water: int) -> list[LineItem]:
        if not mineral_water or mineral_water <= 0:
            return []
        return [LineItem(
            "Air mineral",
            mineral_water,
            settings.mineral_water_unit_price,
            LineItemType.CONSUMABLE,
        )]

    def quote(
        self,
        facility: Facility,
        window: TimeWindow,
        equipment: Iterable[str] = (),
    ) -> Quote:
        """
        Price a window for a facility.

        Args:
            facility: Facility whose rate card applies
            window: Requested reservation window
            equipment: Names of selected equipment items

        Returns:
            Quote with facility and equipment line items

        Raises:
            ValidationError: If a day/night facility is booked over several days
        """
        equipment = list(equipment)
        if isinstance(facility.rate_card, DayNightRates):
            quote = self._quote_day_night(facility, window, facility.rate_card, equipment)
        elif window.is_multi_day:
            quote = self._quote_multi_day(facility, window, facility.rate_card, equipment)
        else:
            quote = self._quote_single_day(facility, window, facility.rate_card, equipment)

        logger.debug(
            "Quote calculated",
            extra={
                "facility_id": facility.document_id,
                "total_price": str(quote.total_price),
                "line_items": len(quote.breakdown),
            }
        )
        return quote

    def _quote_single_day(
        self,
        facility: Facility,
        window: TimeWindow,
        rates: FlatRates,
        equipment: list[str],
    ) -> Quote:
        hours = duration_hours(window)
        facility_items = best_flat_breakdown(hours, rates)
        equipment_items = self.equipment_items(facility, equipment)

        quote = Quote(breakdown=facility_items + equipment_items, duration_hours=hours)
        pure_hourly = money(rates.hourly * hours) + quote.total_of(LineItemType.EQUIPMENT)
        if pure_hourly > quote.total_price:
            quote.savings = money(pure_hourly - quote.total_price)
        return quote

    def _quote_multi_day(
        self,
        facility: Facility,
        window: TimeWindow,
        rates: FlatRates,
        equipment: list[str],
    ) -> Quote:
        days = window.days_spanned
        facility_items = [LineItem(
            f"Pakej satu hari ({days} hari)", days, rates.full_day, LineItemType.FACILITY
        )]
        return Quote(
            breakdown=facility_items + self.equipment_items(facility, equipment, days),
            days=days,
        )

    def _quote_day_night(
        self,
        facility: Facility,
        window: TimeWindow,
        rates: DayNightRates,
        equipment: list[str],
    ) -> Quote:
        if window.is_multi_day:
            raise ValidationError(
                detail="Multi-day bookings are not supported for sport facilities",
                code="MULTI_DAY_NOT_SUPPORTED",
            )

        day_hours, night_hours = day_night_hours(window)
        items = []
        if day_hours:
            items.append(LineItem("Kadar siang (8am-7pm)", day_hours, rates.day, LineItemType.FACILITY))
        if night_hours:
            items.append(LineItem("Kadar malam (8pm-12am)", night_hours, rates.night, LineItemType.FACILITY))

        return Quote(
            breakdown=items + self.equipment_items(facility, equipment),
            duration_hours=day_hours + night_hours,
        )
