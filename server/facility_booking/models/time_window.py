"""Reservation windows expressed as calendar dates plus minutes since midnight."""

import re
from dataclasses import dataclass
from datetime import date

MINUTES_PER_DAY = 24 * 60
LAST_MINUTE = MINUTES_PER_DAY - 1

# 08:00 to 23:59 marks a whole-day sport booking in the content store.
SPORT_WHOLE_DAY_START = 8 * 60

_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2})(?:\.(\d{1,3}))?)?$")


def parse_time_of_day(value: str, *, end_of_range: bool = False) -> int:
    """
    Parse ``HH:MM``, ``HH:MM:SS`` or ``HH:MM:SS.mmm`` into minutes since midnight.

    Seconds and milliseconds are dropped. ``24:00`` is accepted as midnight at
    the end of the day; with ``end_of_range`` a bare ``00:00`` means the same.

    Raises:
        ValueError: If the value is not a well-formed time of day
    """
    match = _TIME_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValueError(f"Invalid time of day: {value!r}")

    hours, minutes = int(match.group(1)), int(match.group(2))
    if minutes > 59 or hours > 24 or (hours == 24 and minutes != 0):
        raise ValueError(f"Invalid time of day: {value!r}")

    total = hours * 60 + minutes
    if end_of_range and total == 0:
        return MINUTES_PER_DAY
    return total


def format_time_of_day(minutes: int) -> str:
    """Render minutes in the content store's ``HH:MM:SS.mmm`` format."""
    minutes = min(minutes, LAST_MINUTE)
    return f"{minutes // 60:02d}:{minutes % 60:02d}:00.000"


@dataclass(frozen=True)
class TimeWindow:
    """
    A requested or booked reservation window.

    ``start_date == end_date`` is a single-day window bounded by the two
    times; otherwise the window spans every day in the inclusive date range.
    """

    start_date: date
    end_date: date
    start_minute: int
    end_minute: int

    @classmethod
    def from_strings(
        cls,
        start_date: str,
        end_date: str | None,
        start_time: str,
        end_time: str,
    ) -> "TimeWindow":
        return cls(
            start_date=date.fromisoformat(start_date),
            end_date=date.fromisoformat(end_date or start_date),
            start_minute=parse_time_of_day(start_time),
            end_minute=parse_time_of_day(end_time, end_of_range=True),
        )

    @property
    def is_multi_day(self) -> bool:
        return self.start_date != self.end_date

    @property
    def days_spanned(self) -> int:
        return (self.end_date - self.start_date).days + 1

    @property
    def duration_minutes(self) -> int:
        """Elapsed minutes of a single-day window."""
        return self.end_minute - self.start_minute

    @property
    def covers_whole_day(self) -> bool:
        """True for the all-day markers ``00:00-23:59`` and ``08:00-23:59``."""
        return self.end_minute >= LAST_MINUTE and self.start_minute in (0, SPORT_WHOLE_DAY_START)

    def dates_overlap(self, other: "TimeWindow") -> bool:
        return self.start_date <= other.end_date and self.end_date >= other.start_date

    def to_payload(self) -> dict[str, str]:
        return {
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "startTime": format_time_of_day(self.start_minute),
            "endTime": format_time_of_day(self.end_minute),
        }
