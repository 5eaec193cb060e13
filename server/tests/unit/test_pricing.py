"""Unit tests for the pricing engine."""

from datetime import date
from decimal import Decimal

import pytest

from facility_booking.core.exceptions import ValidationError
from facility_booking.models.facility import DayNightRates, Facility, FlatRates
from facility_booking.models.time_window import TimeWindow
from facility_booking.services.pricing_service import (
    LineItemType,
    PricingService,
    best_flat_breakdown,
    day_night_hours,
    duration_hours,
)

RATES = FlatRates(hourly=Decimal("50"), half_day=Decimal("250"), full_day=Decimal("400"))
DAY = date(2030, 6, 11)


def hall(**overrides) -> Facility:
    fields = {
        "id": 1,
        "document_id": "hall-1",
        "name": "Dewan Utama",
        "rate_card": RATES,
        "equipment_rates": {"PA System": Decimal("100")},
    }
    fields.update(overrides)
    return Facility(**fields)


def court() -> Facility:
    return Facility(
        id=2,
        document_id="court-1",
        name="Gelanggang",
        rate_card=DayNightRates(day=Decimal("20"), night=Decimal("30")),
    )


def window(start: int, end: int, first: date = DAY, last: date = DAY) -> TimeWindow:
    return TimeWindow(first, last, start * 60, end * 60)


def total(items) -> Decimal:
    return sum((item.total_price for item in items), Decimal("0"))


def test_five_hours_prefers_half_day_on_tie():
    """5h at 50/h equals the half-day rate; the package wins the tie."""
    items = best_flat_breakdown(5, RATES)
    assert total(items) == Decimal("250.00")
    assert [item.description for item in items] == ["Pakej separuh hari (5 jam)"]


def test_seven_hours_prefers_hourly_on_tie():
    items = best_flat_breakdown(7, RATES)
    assert total(items) == Decimal("350.00")
    assert items[0].description == "Kadar per jam"
    assert items[0].quantity == 7


def test_short_booking_uses_hourly_when_cheaper():
    items = best_flat_breakdown(2, RATES)
    assert total(items) == Decimal("100.00")
    assert items[0].description == "Kadar per jam"


def test_long_booking_uses_full_day_plus_extra_hours():
    items = best_flat_breakdown(10, RATES)
    assert total(items) == Decimal("500.00")
    assert [item.description for item in items] == ["Pakej satu hari (8 jam)", "Jam tambahan"]
    assert items[1].quantity == 2


def test_eight_hours_picks_full_day_when_cheaper():
    items = best_flat_breakdown(8, RATES)
    assert total(items) == Decimal("400.00")


def test_expensive_packages_fall_back_to_hourly():
    rates = FlatRates(hourly=Decimal("10"), half_day=Decimal("500"), full_day=Decimal("900"))
    assert total(best_flat_breakdown(12, rates)) == Decimal("120.00")


def test_duration_rounds_partial_hours_up():
    assert duration_hours(TimeWindow(DAY, DAY, 600, 690)) == 2
    assert duration_hours(TimeWindow(DAY, DAY, 600, 660)) == 1


def test_multi_day_charges_full_day_per_day():
    """2024-01-10 to 2024-01-12 is three days at the full-day rate."""
    quote = PricingService().quote(
        hall(), TimeWindow(date(2024, 1, 10), date(2024, 1, 12), 480, 1320)
    )
    assert quote.total_price == Decimal("1200.00")
    assert quote.days == 3
    assert quote.breakdown[0].description == "Pakej satu hari (3 hari)"


def test_multi_day_equipment_charged_per_day():
    quote = PricingService().quote(
        hall(), TimeWindow(date(2024, 1, 10), date(2024, 1, 11), 480, 1320), ["PA System"]
    )
    equipment = [item for item in quote.breakdown if item.type is LineItemType.EQUIPMENT]
    assert equipment[0].quantity == 2
    assert quote.total_price == Decimal("1000.00")


def test_unknown_equipment_is_free():
    quote = PricingService().quote(hall(), window(10, 12), ["Smoke machine"])
    assert quote.total_of(LineItemType.EQUIPMENT) == Decimal("0.00")
    assert len(quote.breakdown) == 2


def test_no_savings_when_hourly_costs_the_same():
    # 10h hourly = 500, full day + 2h = 500
    quote = PricingService().quote(hall(), window(8, 18), ["PA System"])
    assert quote.total_price == Decimal("600.00")
    assert quote.savings is None


def test_savings_present_when_package_is_cheaper():
    rates = FlatRates(hourly=Decimal("60"), half_day=Decimal("250"), full_day=Decimal("400"))
    quote = PricingService().quote(hall(rate_card=rates), window(9, 14))
    assert quote.total_price == Decimal("250.00")
    assert quote.savings == Decimal("50.00")


def test_consumables_priced_at_unit_rate():
    items = PricingService().consumable_items(10)
    assert len(items) == 1
    assert items[0].type is LineItemType.CONSUMABLE
    assert items[0].total_price == Decimal("10.00")
    assert PricingService().consumable_items(0) == []


def test_day_night_hours_split():
    assert day_night_hours(window(17, 22)) == (2, 2)
    assert day_night_hours(window(8, 10)) == (2, 0)


def test_day_night_quote():
    quote = PricingService().quote(court(), window(20, 22))
    assert quote.total_price == Decimal("60.00")
    assert quote.breakdown[0].description == "Kadar malam (8pm-12am)"


def test_day_night_rejects_multi_day():
    with pytest.raises(ValidationError) as exc_info:
        PricingService().quote(court(), window(8, 10, DAY, date(2030, 6, 12)))
    assert exc_info.value.code == "MULTI_DAY_NOT_SUPPORTED"
