from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    """Monotonic clock abstraction.

    Core logic depends on this interface rather than calling real time directly.
    Reaction times are always measured on this clock.
    """

    def now(self) -> float:
        """Return monotonic seconds."""


class WallClock(Protocol):
    """Wall-clock source used only for reporting timestamps."""

    def wall_now(self) -> datetime:
        """Return the current time as a timezone-aware datetime."""


class RealClock:
    """Production clock backed by time.monotonic() and the UTC wall clock."""

    def now(self) -> float:
        return time.monotonic()

    def wall_now(self) -> datetime:
        return datetime.now(timezone.utc)
