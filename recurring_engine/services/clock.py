"""Injectable current-date providers."""
from datetime import date, datetime, timedelta
from typing import Optional

import pytz

from recurring_engine.config import ENGINE_TIMEZONE


class Clock:
    """Wall clock resolving civil dates in a configured timezone."""

    def __init__(self, timezone: str = ENGINE_TIMEZONE):
        self.timezone = pytz.timezone(timezone)

    def now(self) -> datetime:
        """Current naive UTC timestamp, the form stored on task rows."""
        return datetime.now(pytz.utc).replace(tzinfo=None)

    def today(self) -> date:
        """Current civil date in the engine timezone."""
        return datetime.now(self.timezone).date()


class FixedClock(Clock):
    """Clock pinned to a given instant; used by tests and replays."""

    def __init__(self, current: datetime, timezone: str = "UTC"):
        super().__init__(timezone)
        self.current = current

    def now(self) -> datetime:
        return self.current

    def today(self) -> date:
        return self.current.date()

    def advance(self, **delta) -> None:
        self.current = self.current + timedelta(**delta)


_default_clock: Clock = Clock()


def get_clock() -> Clock:
    return _default_clock


def set_clock(clock: Optional[Clock]) -> None:
    """Install a process-wide default clock (None restores the wall clock)."""
    global _default_clock
    _default_clock = clock or Clock()
