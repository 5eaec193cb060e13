"""Injectable source of the current time."""

from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from .config import settings


class Clock:
    """
    Wall clock in the service timezone.

    Services ask the clock for "now" and "today" rather than calling
    ``datetime.now`` so tests can pin time by passing a fixed source.
    """

    def __init__(
        self,
        tz: Optional[ZoneInfo] = None,
        source: Optional[Callable[[], datetime]] = None,
    ):
        self.tz = tz or settings.tzinfo
        self._source = source or (lambda: datetime.now(timezone.utc))

    def now(self) -> datetime:
        return self._source().astimezone(self.tz)

    def today(self) -> date:
        return self.now().date()


class FixedClock(Clock):
    """Clock frozen at a given instant; ``advance`` moves it forward."""

    def __init__(self, instant: datetime, tz: Optional[ZoneInfo] = None):
        tz = tz or settings.tzinfo
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=tz)
        self.instant = instant
        super().__init__(tz=tz, source=lambda: self.instant)

    def advance(self, **delta) -> None:
        self.instant = self.instant + timedelta(**delta)
