"""Clock capability injected into services that need "today"."""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Protocol


class Clock(Protocol):
    """Supplies the current date and timestamp."""

    def today(self) -> date:  # pragma: no cover - interface
        ...

    def now(self) -> datetime:  # pragma: no cover - interface
        ...


def _as_utc(current: date | datetime) -> datetime:
    if isinstance(current, datetime):
        return current if current.tzinfo else current.replace(tzinfo=timezone.utc)
    return datetime.combine(current, time(12, 0), tzinfo=timezone.utc)


class SystemClock:
    """Wall clock in UTC."""

    def today(self) -> date:
        return self.now().date()

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Clock frozen at a given instant; used by tests and replays."""

    def __init__(self, current: date | datetime) -> None:
        self._now = _as_utc(current)

    def today(self) -> date:
        return self._now.date()

    def now(self) -> datetime:
        return self._now

    def set(self, current: date | datetime) -> None:
        """Move the clock to *current*."""
        self._now = _as_utc(current)
