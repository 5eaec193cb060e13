"""Availability resolution: conflict detection, alternatives and calendars."""

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from ..core.exceptions import ValidationError
from ..core.observability import metrics_collector
from ..models.booking import Booking, HalfDayPeriod, Package, PackageType
from ..models.hold import TemporaryHold
from ..models.time_window import (
    LAST_MINUTE,
    MINUTES_PER_DAY,
    TimeWindow,
    format_time_of_day,
    parse_time_of_day,
)
from .cms_client import CMSClient
from .hold_store import HoldStore

logger = logging.getLogger(__name__)

OPENING_HOUR = 8
CLOSING_HOUR = 22

_HOUR = 60
_DEFAULT_HOURLY = (OPENING_HOUR * _HOUR, (OPENING_HOUR + 1) * _HOUR)
_HALF_DAY_WINDOWS = {
    HalfDayPeriod.MORNING: (8 * _HOUR, 14 * _HOUR),
    HalfDayPeriod.AFTERNOON: (14 * _HOUR, 22 * _HOUR),
}
_FULL_DAY = (OPENING_HOUR * _HOUR, CLOSING_HOUR * _HOUR)

CONFLICT_EXISTING_BOOKING = "existing_booking"
CONFLICT_TEMPORARY_HOLD = "temporary_hold"


@dataclass
class HourlySlot:
    """A free one-hour slot suggested when the requested package is taken."""

    start_minute: int
    end_minute: int

    @property
    def display_time(self) -> str:
        return f"{self.start_minute // _HOUR}:00 - {self.end_minute // _HOUR}:00"

    def to_payload(self) -> dict:
        return {
            "type": PackageType.HOURLY.value,
            "startTime": format_time_of_day(self.start_minute),
            "endTime": format_time_of_day(self.end_minute),
            "available": True,
            "displayTime": self.display_time,
        }


@dataclass
class AvailabilityResult:
    """Outcome of checking one package against bookings and holds."""

    available: bool
    package: Package
    conflict_reason: Optional[str] = None
    alternatives: list[HourlySlot] = field(default_factory=list)
    hold_expiry: Optional[datetime] = None


def _parse_date(value: str, field_name: str) -> date:
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(
            detail=f"{field_name} must be a YYYY-MM-DD date",
            code="INVALID_DATE_FORMAT",
            violations=[{"path": field_name, "message": "Invalid date format"}],
        )


def _parse_time(value: str, field_name: str, *, end_of_range: bool = False) -> int:
    try:
        return parse_time_of_day(value, end_of_range=end_of_range)
    except ValueError:
        raise ValidationError(
            detail=f"{field_name} must be a HH:MM time",
            code="INVALID_TIME_FORMAT",
            violations=[{"path": field_name, "message": "Invalid time format"}],
        )


def resolve_package(
    package_type: str,
    start_date: str,
    end_date: Optional[str] = None,
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
    half_day_period: Optional[str] = None,
) -> Package:
    """
    Turn a package request into a concrete window.

    HOURLY uses the supplied times (08:00-09:00 when omitted); HALF_DAY picks
    the morning (08:00-14:00) or afternoon (14:00-22:00) block; FULL_DAY and
    MULTI_DAY cover 08:00-22:00 on every day of the range.

    Raises:
        ValidationError: On an unknown package type, a malformed date/time or
            HOURLY times that are reversed or outside operating hours
    """
    try:
        kind = PackageType(package_type)
    except ValueError:
        raise ValidationError(
            detail=f"Invalid package type: {package_type}",
            code="INVALID_PACKAGE_TYPE",
            violations=[{"path": "packageType", "message": "Invalid package type"}],
        )

    first = _parse_date(start_date, "startDate")
    last = _parse_date(end_date, "endDate") if end_date else first

    if kind is PackageType.HOURLY:
        start = _parse_time(start_time, "startTime") if start_time else _DEFAULT_HOURLY[0]
        end = _parse_time(end_time, "endTime", end_of_range=True) if end_time else _DEFAULT_HOURLY[1]
        if start >= end:
            raise ValidationError(
                detail="End time must be after start time",
                code="INVALID_TIME_RANGE",
                violations=[{"path": "endTime", "message": "Must be after startTime"}],
            )
        if start < _FULL_DAY[0] or end > _FULL_DAY[1]:
            path = "startTime" if start < _FULL_DAY[0] else "endTime"
            raise ValidationError(
                detail=f"Booking must be within operating hours ({OPENING_HOUR}:00 - {CLOSING_HOUR}:00)",
                code="OUTSIDE_OPERATING_HOURS",
                violations=[{"path": path, "message": "Outside operating hours"}],
            )
    elif kind is PackageType.HALF_DAY:
        try:
            period = HalfDayPeriod(half_day_period or HalfDayPeriod.MORNING.value)
        except ValueError:
            raise ValidationError(
                detail=f"Invalid half day period: {half_day_period}",
                code="INVALID_HALF_DAY_PERIOD",
                violations=[{"path": "halfDayPeriod", "message": "Must be morning or afternoon"}],
            )
        start, end = _HALF_DAY_WINDOWS[period]
    else:
        start, end = _FULL_DAY

    return Package(type=kind, window=TimeWindow(first, last, start, end))


def _occupied(window: TimeWindow) -> TimeWindow:
    """Stretch whole-day markers so they cover the entire day."""
    if window.covers_whole_day:
        return TimeWindow(window.start_date, window.end_date, 0, MINUTES_PER_DAY)
    return window


def windows_conflict(requested: TimeWindow, other: TimeWindow) -> bool:
    """
    True when two windows cannot both be reserved.

    Date ranges are compared inclusively. Only when both windows are
    single-day on the same date are the times compared, using half-open
    overlap on minutes since midnight; any other date overlap conflicts.
    """
    if not requested.dates_overlap(other):
        return False

    if requested.is_multi_day or other.is_multi_day:
        return True

    a, b = _occupied(requested), _occupied(other)
    return a.start_minute < b.end_minute and a.end_minute > b.start_minute


def booking_blocks_availability(booking: Booking) -> bool:
    return booking.booking_status.blocks_availability and booking.window is not None


def _booking_conflicts(window: TimeWindow, bookings: Iterable[Booking]) -> bool:
    return any(
        booking_blocks_availability(booking) and windows_conflict(window, booking.window)
        for booking in bookings
    )


def _hold_conflicts(window: TimeWindow, holds: Iterable[TemporaryHold]) -> bool:
    return any(windows_conflict(window, hold.package.window) for hold in holds)


def find_alternatives(
    day: date,
    bookings: list[Booking],
    holds: list[TemporaryHold],
) -> list[HourlySlot]:
    """Free one-hour slots between opening and closing on ``day``."""
    slots = []
    for hour in range(OPENING_HOUR, CLOSING_HOUR):
        window = TimeWindow(day, day, hour * _HOUR, (hour + 1) * _HOUR)
        if _booking_conflicts(window, bookings) or _hold_conflicts(window, holds):
            continue
        slots.append(HourlySlot(window.start_minute, window.end_minute))
    return slots


def check(
    package: Package,
    bookings: list[Booking],
    holds: list[TemporaryHold],
) -> AvailabilityResult:
    """
    Decide whether ``package`` is free.

    ``bookings`` are the facility's persisted bookings and ``holds`` the
    active holds of other sessions. A booking conflict is reported ahead of a
    hold conflict. Alternatives are only offered for non-hourly packages.
    """
    booking_conflict = _booking_conflicts(package.window, bookings)
    hold_conflict = _hold_conflicts(package.window, holds)
    available = not booking_conflict and not hold_conflict

    if booking_conflict:
        reason = CONFLICT_EXISTING_BOOKING
    elif hold_conflict:
        reason = CONFLICT_TEMPORARY_HOLD
    else:
        reason = None

    alternatives = []
    if not available and package.type is not PackageType.HOURLY:
        alternatives = find_alternatives(package.window.start_date, bookings, holds)

    return AvailabilityResult(
        available=available,
        package=package,
        conflict_reason=reason,
        alternatives=alternatives,
    )


def month_availability(bookings: Iterable[Booking], year: int, month: int) -> dict[str, dict]:
    """
    Per-date availability for a calendar month.

    Whole-day markers and the middle days of multi-day bookings block the
    date. The first day of a multi-day booking is booked from its start time
    to 23:59 and the last day from 00:00 to its end time; single-day bookings
    contribute their own time slot.
    """
    if not 1 <= month <= 12:
        raise ValidationError(
            detail="month must be between 1 and 12",
            code="INVALID_MONTH",
            violations=[{"path": "month", "message": "Invalid month"}],
        )

    days_in_month = calendar.monthrange(year, month)[1]
    first_of_month = date(year, month, 1)
    last_of_month = date(year, month, days_in_month)

    blocked: dict[date, bool] = {}
    slots: dict[date, list[dict[str, str]]] = {}
    for offset in range(days_in_month):
        day = first_of_month + timedelta(days=offset)
        blocked[day] = False
        slots[day] = []

    def add_slot(day: date, start: int, end: int) -> None:
        slots[day].append({
            "startTime": format_time_of_day(start),
            "endTime": format_time_of_day(end),
        })

    for booking in bookings:
        if not booking_blocks_availability(booking):
            continue
        window = booking.window
        if window.end_date < first_of_month or window.start_date > last_of_month:
            continue

        if not window.is_multi_day:
            day = window.start_date
            if window.covers_whole_day:
                blocked[day] = True
            else:
                add_slot(day, window.start_minute, window.end_minute)
            continue

        day = max(window.start_date, first_of_month)
        while day <= min(window.end_date, last_of_month):
            if day == window.start_date:
                if window.start_minute == 0:
                    blocked[day] = True
                else:
                    add_slot(day, window.start_minute, LAST_MINUTE)
            elif day == window.end_date:
                if window.end_minute >= LAST_MINUTE:
                    blocked[day] = True
                else:
                    add_slot(day, 0, window.end_minute)
            else:
                blocked[day] = True
                add_slot(day, 0, LAST_MINUTE)
            day += timedelta(days=1)

    return {
        day.isoformat(): {
            "available": not blocked[day],
            "partiallyAvailable": not blocked[day] and bool(slots[day]),
            "bookedTimeSlots": slots[day],
        }
        for day in sorted(blocked)
    }


class AvailabilityService:
    """Service for availability checks, holds and calendars."""

    def __init__(self, cms: CMSClient, holds: HoldStore):
        self.cms = cms
        self.holds = holds

    async def check_availability(
        self,
        facility_id: str,
        package: Package,
        session_id: str,
        place_hold: bool = False,
    ) -> AvailabilityResult:
        """
        Check a package for a facility and optionally hold it.

        Args:
            facility_id: Public facility identifier
            package: Resolved package to check
            session_id: Caller's browser session; its own hold never blocks it
            place_hold: Place a hold when the package is available

        Returns:
            Availability result, with ``hold_expiry`` set when a hold was placed

        Raises:
            NotFoundError: If the facility does not exist
            UpstreamServiceError: If the content store fails
        """
        self.holds.sweep_expired()

        facility = await self.cms.get_facility(facility_id)
        bookings = await self.cms.list_active_bookings(facility.id)
        holds = self.holds.active_holds_for(facility_id, excluding_session_id=session_id)

        result = check(package, bookings, holds)
        metrics_collector.record_availability_check(package.type.value, result.available)

        if place_hold and result.available:
            hold = self.holds.hold(session_id, facility_id, package)
            result.hold_expiry = hold.expires_at

        logger.info(
            "Availability checked",
            extra={
                "facility_id": facility_id,
                "package_type": package.type.value,
                "available": result.available,
                "conflict_reason": result.conflict_reason,
                "held": result.hold_expiry is not None,
            }
        )
        return result

    def release(self, session_id: str, facility_id: str) -> None:
        self.holds.sweep_expired()
        self.holds.release(session_id, facility_id)

    async def get_month_availability(self, facility_id: str, year: int, month: int) -> dict[str, dict]:
        """Calendar view of a facility's bookings for one month."""
        facility = await self.cms.get_facility(facility_id)
        bookings = await self.cms.list_active_bookings(facility.id)
        return month_availability(bookings, year, month)
