"""Process-local registry of temporary holds."""

import logging
from datetime import datetime, timedelta
from typing import Iterator, Optional, Protocol

from ..core.clock import Clock
from ..core.observability import metrics_collector
from ..models.booking import Package
from ..models.hold import HoldKey, TemporaryHold

logger = logging.getLogger(__name__)

DEFAULT_HOLD_TTL = timedelta(minutes=15)


class HoldBackend(Protocol):
    """Key/value storage for holds; can be replaced by a TTL cache."""

    def get(self, key: HoldKey) -> Optional[TemporaryHold]: ...

    def put(self, hold: TemporaryHold) -> None: ...

    def delete(self, key: HoldKey) -> bool: ...

    def items(self) -> Iterator[TemporaryHold]: ...

    def sweep(self, now: datetime) -> int: ...


class InMemoryHoldBackend:
    """Dictionary backed storage, lost on restart and not shared between processes."""

    def __init__(self):
        self._holds: dict[HoldKey, TemporaryHold] = {}

    def get(self, key: HoldKey) -> Optional[TemporaryHold]:
        return self._holds.get(key)

    def put(self, hold: TemporaryHold) -> None:
        self._holds[hold.key] = hold

    def delete(self, key: HoldKey) -> bool:
        return self._holds.pop(key, None) is not None

    def items(self) -> Iterator[TemporaryHold]:
        return iter(list(self._holds.values()))

    def sweep(self, now: datetime) -> int:
        expired = [key for key, hold in list(self._holds.items()) if hold.is_expired(now)]
        for key in expired:
            self._holds.pop(key, None)
        return len(expired)

    def __len__(self) -> int:
        return len(self._holds)


class HoldStore:
    """
    Advisory soft locks over facility windows, keyed by (session, facility).

    Holds are placed after a positive availability check and released on
    booking submission. There is no atomic check-and-hold: two sessions can
    both pass a check before either holds, which is accepted since holds are
    advisory rather than authoritative.
    """

    def __init__(
        self,
        backend: Optional[HoldBackend] = None,
        ttl: timedelta = DEFAULT_HOLD_TTL,
        clock: Optional[Clock] = None,
    ):
        self.backend = backend if backend is not None else InMemoryHoldBackend()
        self.ttl = ttl
        self.clock = clock or Clock()

    def hold(self, session_id: str, facility_id: str, package: Package) -> TemporaryHold:
        """
        Store or overwrite the hold for ``(session_id, facility_id)``.

        Args:
            session_id: Browser session placing the hold
            facility_id: Public facility identifier
            package: Requested package and window

        Returns:
            The stored hold, expiring ``ttl`` from now
        """
        now = self.clock.now()
        hold = TemporaryHold(
            session_id=session_id,
            facility_id=facility_id,
            package=package,
            created_at=now,
            expires_at=now + self.ttl,
        )
        self.backend.put(hold)
        metrics_collector.record_hold_placed()
        self._update_gauge()

        logger.info(
            "Hold placed",
            extra={
                "session_id": session_id,
                "facility_id": facility_id,
                "package_type": package.type.value,
                "expires_at": hold.expires_at.isoformat(),
            }
        )
        return hold

    def release(self, session_id: str, facility_id: str) -> bool:
        """Remove the hold; returns False when there was nothing to remove."""
        removed = self.backend.delete((session_id, facility_id))
        if removed:
            metrics_collector.record_hold_released()
            self._update_gauge()
            logger.info(
                "Hold released",
                extra={"session_id": session_id, "facility_id": facility_id}
            )
        return removed

    def get(self, session_id: str, facility_id: str) -> Optional[TemporaryHold]:
        hold = self.backend.get((session_id, facility_id))
        if hold is None or hold.is_expired(self.clock.now()):
            return None
        return hold

    def active_holds_for(
        self,
        facility_id: str,
        excluding_session_id: Optional[str] = None,
    ) -> list[TemporaryHold]:
        """Non-expired holds on ``facility_id`` placed by other sessions."""
        now = self.clock.now()
        return [
            hold
            for hold in self.backend.items()
            if hold.facility_id == facility_id
            and hold.session_id != excluding_session_id
            and not hold.is_expired(now)
        ]

    def sweep_expired(self) -> int:
        """Purge holds whose expiry has passed; returns how many were removed."""
        removed = self.backend.sweep(self.clock.now())
        if removed:
            metrics_collector.record_holds_expired(removed)
            logger.info("Expired holds swept", extra={"expired_count": removed})
        self._update_gauge()
        return removed

    def count(self) -> int:
        return sum(1 for _ in self.backend.items())

    def _update_gauge(self) -> None:
        metrics_collector.set_active_holds(self.count())
