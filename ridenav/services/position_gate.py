"""Position update gate.

Throttles the raw position stream to at most one fix per interval. Fixes that
arrive inside the window are dropped, never queued.
"""

import logging
from datetime import datetime
from typing import AsyncIterable, AsyncIterator, Optional

from ridenav.config import get_settings
from ridenav.schemas.navigation import PositionFix

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("ridenav.fix_audit")


class PositionGate:
    """Forwards at most one fix per interval, measured on fix timestamps."""

    def __init__(self, interval_s: Optional[float] = None):
        if interval_s is None:
            interval_s = get_settings().POSITION_UPDATE_INTERVAL_S
        self.interval_s = interval_s
        self._last_accepted: Optional[datetime] = None
        self.dropped = 0

    def accept(self, fix: PositionFix) -> bool:
        """Whether the fix should be forwarded to the navigation engine."""
        audit_logger.debug(
            "Position fix received",
            extra={
                "extra_fields": {
                    "lat": fix.lat,
                    "lng": fix.lng,
                    "speed_mps": fix.speed_mps,
                    "heading_deg": fix.heading_deg,
                    "accuracy_m": fix.accuracy_m,
                    "timestamp": fix.timestamp.isoformat(),
                }
            },
        )

        if self._last_accepted is not None:
            elapsed = (fix.timestamp - self._last_accepted).total_seconds()
            # Out-of-order fixes (negative elapsed) are dropped as well
            if elapsed < self.interval_s:
                self.dropped += 1
                return False

        self._last_accepted = fix.timestamp
        return True

    def reset(self) -> None:
        self._last_accepted = None
        self.dropped = 0

    async def throttle(self, source: AsyncIterable[PositionFix]) -> AsyncIterator[PositionFix]:
        """Yield only the fixes that pass the gate."""
        async for fix in source:
            if self.accept(fix):
                yield fix
        logger.debug(f"Position source ended ({self.dropped} fixes dropped)")
