"""Temporary hold record."""

from dataclasses import dataclass
from datetime import datetime

from .booking import Package

HoldKey = tuple[str, str]


@dataclass(frozen=True)
class TemporaryHold:
    """A soft reservation of a facility window tied to a browser session."""

    session_id: str
    facility_id: str
    package: Package
    created_at: datetime
    expires_at: datetime

    @property
    def key(self) -> HoldKey:
        return (self.session_id, self.facility_id)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at < now
