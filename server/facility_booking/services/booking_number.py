"""Human friendly booking numbers in the form ``UTC-YYYY-NNNN``."""

import logging
import re
import secrets
from dataclasses import dataclass
from typing import Optional

from ..core.clock import Clock
from ..core.config import settings
from ..core.exceptions import UpstreamServiceError
from .cms_client import CMSClient

logger = logging.getLogger(__name__)

MAX_SEQUENCE = 9999


@dataclass(frozen=True)
class BookingNumber:
    """Parsed booking number."""

    prefix: str
    year: int
    sequence: int

    def __str__(self) -> str:
        return f"{self.prefix}-{self.year}-{self.sequence:04d}"


def _pattern(prefix: str) -> re.Pattern:
    return re.compile(rf"^{re.escape(prefix)}-(\d{{4}})-(\d{{4}})$")


def validate_booking_number(value: str, prefix: Optional[str] = None) -> bool:
    return bool(_pattern(prefix or settings.booking_number_prefix).match(value or ""))


def parse_booking_number(value: str, prefix: Optional[str] = None) -> Optional[BookingNumber]:
    prefix = prefix or settings.booking_number_prefix
    match = _pattern(prefix).match(value or "")
    if not match:
        return None
    return BookingNumber(prefix=prefix, year=int(match.group(1)), sequence=int(match.group(2)))


def _random_sequence() -> int:
    return secrets.randbelow(MAX_SEQUENCE) + 1


class BookingNumberGenerator:
    """
    Allocate the next booking number for the current year.

    The next sequence follows the highest number already stored for the
    year. When that lookup fails a time based (``HHMMSS``, last four digits)
    or random sequence is used instead, and a sequence past 9999 is replaced
    by a random one. Each candidate is checked for uniqueness and bumped on
    collision, for a bounded number of attempts.
    """

    def __init__(
        self,
        cms: CMSClient,
        clock: Optional[Clock] = None,
        prefix: Optional[str] = None,
        max_attempts: Optional[int] = None,
    ):
        self.cms = cms
        self.clock = clock or Clock()
        self.prefix = prefix or settings.booking_number_prefix
        self.max_attempts = max_attempts or settings.booking_number_max_attempts

    def _fallback_sequence(self) -> int:
        now = self.clock.now()
        return int(now.strftime("%H%M%S")[-4:]) or _random_sequence()

    async def next_sequence(self, year: int) -> int:
        """Sequence following the highest stored number for ``year``."""
        try:
            latest = await self.cms.latest_booking_number(f"{self.prefix}-{year}-")
        except UpstreamServiceError:
            logger.warning(
                "Booking number lookup failed, using time based sequence",
                extra={"year": year}
            )
            return self._fallback_sequence()

        parsed = parse_booking_number(latest, self.prefix) if latest else None
        return parsed.sequence + 1 if parsed else 1

    async def generate(self) -> BookingNumber:
        """
        Returns:
            A booking number not yet present in the content store

        Raises:
            UpstreamServiceError: If no unused number was found
        """
        year = self.clock.now().year
        sequence = await self.next_sequence(year)

        for attempt in range(1, self.max_attempts + 1):
            if sequence > MAX_SEQUENCE:
                sequence = _random_sequence()

            candidate = BookingNumber(prefix=self.prefix, year=year, sequence=sequence)
            if not await self.cms.booking_number_exists(str(candidate)):
                return candidate

            logger.warning(
                "Booking number collision",
                extra={"booking_number": str(candidate), "attempt": attempt}
            )
            sequence += 1

        raise UpstreamServiceError(
            service="cms",
            detail=f"Failed to generate a unique booking number after {self.max_attempts} attempts",
            code="BOOKING_NUMBER_UNAVAILABLE",
        )
