# -*- coding: utf-8 -*-
"""
AgriChain Clock - injectable time source for ledger timestamps.

Engines never read wall-clock time themselves. Every ``createdAt``,
``updatedAt`` and step ``timestamp`` comes from the Clock handed to the
engine, so tests can pin time with :class:`FixedClock`.

Example:
    >>> from datetime import datetime, timezone
    >>> clock = FixedClock(datetime(2025, 3, 1, tzinfo=timezone.utc))
    >>> clock.now_utc().year
    2025
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    """Injectable time source."""

    def now_utc(self) -> datetime:
        """Return the current timezone-aware UTC time."""
        ...  # pragma: no cover


class SystemClock:
    """Production clock backed by the system time."""

    def now_utc(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Test clock that returns a fixed, manually advanced timestamp.

    Usage:
        clock = FixedClock(datetime(2025, 1, 1, tzinfo=timezone.utc))
        clock.advance(60)
    """

    def __init__(self, fixed_dt: datetime) -> None:
        if fixed_dt.tzinfo is None:
            raise ValueError("FixedClock requires timezone-aware datetime.")
        self._fixed_dt = fixed_dt.astimezone(timezone.utc)

    def now_utc(self) -> datetime:
        return self._fixed_dt

    def advance(self, seconds: float) -> None:
        """Move the clock forward (negative values move it back)."""
        self._fixed_dt = self._fixed_dt + timedelta(seconds=seconds)

    def set(self, fixed_dt: datetime) -> None:
        """Jump to an explicit timestamp."""
        if fixed_dt.tzinfo is None:
            raise ValueError("FixedClock requires timezone-aware datetime.")
        self._fixed_dt = fixed_dt.astimezone(timezone.utc)


__all__ = [
    "Clock",
    "SystemClock",
    "FixedClock",
]
