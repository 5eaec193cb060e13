"""Models module exporting the canonical domain shapes."""

from .booking import (
    Booking,
    BookingStatus,
    HalfDayPeriod,
    Package,
    PackageType,
    PaymentStatus,
    RentalDuration,
)
from .facility import DayNightRates, Facility, FlatRates, RateCard
from .hold import TemporaryHold
from .time_window import TimeWindow

__all__ = [
    # Reservation windows
    "TimeWindow",
    "Package",
    "PackageType",
    "HalfDayPeriod",

    # Booking entities
    "Booking",
    "BookingStatus",
    "PaymentStatus",
    "RentalDuration",

    # Facility entities
    "Facility",
    "FlatRates",
    "DayNightRates",
    "RateCard",

    # Hold entity
    "TemporaryHold",
]
