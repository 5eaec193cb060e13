"""Booking business rules and the booking status state machine."""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from ..core.clock import Clock
from ..core.exceptions import BookingRuleViolation, ConflictError
from ..models.booking import BookingFlow, BookingStatus, PaymentStatus
from ..models.time_window import MINUTES_PER_DAY, TimeWindow, parse_time_of_day

logger = logging.getLogger(__name__)

_HOUR = 60

SPORT_GAP = (19 * _HOUR, 20 * _HOUR)


@dataclass(frozen=True)
class BookingProfile:
    """Rule set applied by one booking flow."""

    name: str
    minimum_minutes: int
    operating_windows: tuple[tuple[int, int], ...]
    lead_buffer_minutes: Optional[int] = None
    advance_notice_days: Optional[int] = None
    has_sport_gap: bool = False


STANDARD = BookingProfile(
    name="standard",
    minimum_minutes=1 * _HOUR,
    operating_windows=((8 * _HOUR, 22 * _HOUR),),
    lead_buffer_minutes=30,
)

SIMPLE = BookingProfile(
    name="simple",
    minimum_minutes=2 * _HOUR,
    operating_windows=((8 * _HOUR, 22 * _HOUR),),
    advance_notice_days=1,
)

SPORT = BookingProfile(
    name="sport",
    minimum_minutes=2 * _HOUR,
    operating_windows=((8 * _HOUR, 19 * _HOUR), (20 * _HOUR, MINUTES_PER_DAY)),
    lead_buffer_minutes=30,
    has_sport_gap=True,
)


def profile_for(is_sport: bool, flow: BookingFlow = BookingFlow.STANDARD) -> BookingProfile:
    """Sport facilities always use the sport rules; other facilities follow the booking form."""
    if is_sport:
        return SPORT
    return SIMPLE if flow == BookingFlow.SIMPLE else STANDARD


class BookingValidator:
    """
    Gate booking creation with rules that do not depend on other bookings.

    Rules run in a fixed order and the first failure raises a
    ``BookingRuleViolation`` with its own code:

    1. dates well formed, start date not in the past
    2. end date not before start date
    3. start time before end time
    4. within operating hours (day and night bands for sport facilities)
    5. minimum duration
    6. lead time (same-day buffer or advance notice)
    7. attendance between 1 and capacity

    Time-of-day rules apply to the daily slot, so a multi-day window is
    held to them on each of its days.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or Clock()

    def parse_window(
        self,
        start_date: str,
        end_date: Optional[str],
        start_time: str,
        end_time: str,
    ) -> TimeWindow:
        """Apply rules 1-3 and return the parsed window."""
        try:
            first = date.fromisoformat(start_date)
            last = date.fromisoformat(end_date) if end_date else first
        except (TypeError, ValueError):
            raise BookingRuleViolation("INVALID_DATE_FORMAT", "Dates must be in YYYY-MM-DD format")

        if first < self.clock.today():
            raise BookingRuleViolation("INVALID_DATE", "Cannot book for past dates")

        if last < first:
            raise BookingRuleViolation("INVALID_DATE_RANGE", "End date must be on or after start date")

        try:
            start = parse_time_of_day(start_time)
            end = parse_time_of_day(end_time, end_of_range=True)
        except (TypeError, ValueError):
            raise BookingRuleViolation("INVALID_TIME_FORMAT", "Times must be in HH:MM format")

        window = TimeWindow(first, last, start, end)
        if start >= end:
            raise BookingRuleViolation("INVALID_TIME_RANGE", "End time must be after start time")
        return window

    def validate(
        self,
        start_date: str,
        end_date: Optional[str],
        start_time: str,
        end_time: str,
        attendance: Optional[int] = None,
        capacity: Optional[int] = None,
        profile: BookingProfile = STANDARD,
    ) -> TimeWindow:
        """
        Run every rule for ``profile``.

        Args:
            start_date: ``YYYY-MM-DD``
            end_date: ``YYYY-MM-DD``; defaults to ``start_date``
            start_time: ``HH:MM``
            end_time: ``HH:MM``
            attendance: Expected attendance; skipped when None
            capacity: Facility capacity; capacity check skipped when None
            profile: Rule set of the booking flow

        Returns:
            The validated window

        Raises:
            BookingRuleViolation: On the first rule that fails
        """
        window = self.parse_window(start_date, end_date, start_time, end_time)

        self._check_operating_hours(window, profile)
        self._check_minimum_duration(window, profile)
        self._check_lead_time(window, profile)

        if attendance is not None:
            self.check_attendance(attendance, capacity)

        return window

    def _check_operating_hours(self, window: TimeWindow, profile: BookingProfile) -> None:
        earliest = min(start for start, _ in profile.operating_windows)
        latest = max(end for _, end in profile.operating_windows)
        if window.start_minute < earliest or window.end_minute > latest:
            raise BookingRuleViolation(
                "OUTSIDE_OPERATING_HOURS",
                f"Booking must be within operating hours ({earliest // _HOUR}:00 - {latest // _HOUR}:00)",
            )

        if profile.has_sport_gap:
            gap_start, gap_end = SPORT_GAP
            if window.start_minute < gap_end and window.end_minute > gap_start:
                raise BookingRuleViolation(
                    "SPORT_GAP_HOURS",
                    "Sport facilities cannot be booked between 7:00 PM and 8:00 PM",
                )

    def _check_minimum_duration(self, window: TimeWindow, profile: BookingProfile) -> None:
        if window.duration_minutes < profile.minimum_minutes:
            raise BookingRuleViolation(
                "BELOW_MINIMUM_DURATION",
                f"Minimum booking duration is {profile.minimum_minutes // _HOUR} hour(s)",
            )

    def _check_lead_time(self, window: TimeWindow, profile: BookingProfile) -> None:
        now = self.clock.now()
        today = now.date()

        if profile.advance_notice_days is not None:
            earliest = today + timedelta(days=profile.advance_notice_days)
            if window.start_date < earliest:
                raise BookingRuleViolation(
                    "ADVANCE_NOTICE_REQUIRED",
                    f"Bookings must be made at least {profile.advance_notice_days} day(s) in advance",
                )
            return

        if profile.lead_buffer_minutes is None or window.is_multi_day:
            return

        if window.start_date == today:
            now_minutes = now.hour * _HOUR + now.minute
            if window.start_minute <= now_minutes + profile.lead_buffer_minutes:
                raise BookingRuleViolation(
                    "TOO_CLOSE_TO_NOW",
                    f"Start time must be more than {profile.lead_buffer_minutes} minutes from now",
                    details={"earliestStartMinute": now_minutes + profile.lead_buffer_minutes + 1},
                )

    @staticmethod
    def check_attendance(attendance: int, capacity: Optional[int] = None) -> None:
        if attendance < 1:
            raise BookingRuleViolation("INVALID_ATTENDANCE", "Attendance must be at least 1")
        if capacity is not None and attendance > capacity:
            raise BookingRuleViolation(
                "CAPACITY_EXCEEDED",
                f"Attendance ({attendance}) exceeds facility capacity ({capacity})",
                details={"attendance": attendance, "capacity": capacity},
            )


ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({
        BookingStatus.APPROVED,
        BookingStatus.REJECTED,
        BookingStatus.AWAITING_PAYMENT,
    }),
    BookingStatus.AWAITING_PAYMENT: frozenset({
        BookingStatus.REVIEW_PAYMENT,
        BookingStatus.REJECTED,
        BookingStatus.CANCELLED,
    }),
    BookingStatus.REVIEW_PAYMENT: frozenset({
        BookingStatus.APPROVED,
        BookingStatus.REJECTED,
    }),
    BookingStatus.APPROVED: frozenset({BookingStatus.CANCELLED}),
    BookingStatus.REJECTED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    """Staying in the same status is allowed so other fields can be edited."""
    return current == target or target in ALLOWED_TRANSITIONS[current]


def ensure_transition(current: BookingStatus, target: BookingStatus) -> None:
    """
    Raises:
        ConflictError: If ``target`` is not reachable from ``current``
    """
    if not can_transition(current, target):
        logger.warning(
            "Rejected booking status transition",
            extra={"from_status": current.value, "to_status": target.value}
        )
        raise ConflictError(
            detail=f"Cannot change booking status from {current.value} to {target.value}",
            code="INVALID_STATUS_TRANSITION",
            conflicting_resource={
                "currentStatus": current.value,
                "requestedStatus": target.value,
                "allowed": sorted(status.value for status in ALLOWED_TRANSITIONS[current]),
            },
        )


def payment_status_after(
    target: BookingStatus,
    current: PaymentStatus,
    requested: Optional[PaymentStatus] = None,
) -> PaymentStatus:
    """
    Payment status implied by moving a booking to ``target``.

    Rejection fails the payment and approval verifies it; a proof upload
    (REVIEW_PAYMENT) marks it paid. Otherwise an explicit admin choice wins
    over the current value.
    """
    if target is BookingStatus.REJECTED:
        return PaymentStatus.FAILED
    if target is BookingStatus.APPROVED:
        return PaymentStatus.VERIFIED
    if target is BookingStatus.REVIEW_PAYMENT:
        return PaymentStatus.PAID
    return requested or current
