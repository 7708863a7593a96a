"""Clock abstraction for testable timestamps.

Provenance tokens stamp every write with wall-clock time. Production code
uses SystemClock (the default); tests inject MockClock to control time.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    """Abstract wall clock."""

    def now(self) -> datetime:
        """Return the current time as a timezone-aware UTC datetime."""
        ...


class SystemClock:
    """Production clock using datetime.now(UTC)."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class MockClock:
    """Controllable clock for deterministic testing.

    Example:
        clock = MockClock(start=datetime(2024, 1, 1, tzinfo=UTC))
        token = ProvenanceToken(clock=clock)
        token.set_current_writer("parse")
        token.put("id", "1")
        clock.advance(1.5)
    """

    def __init__(self, start: datetime | None = None) -> None:
        """Initialize mock clock at a given time.

        Args:
            start: Initial time (default 2000-01-01T00:00:00Z).
        """
        self._current = start if start is not None else datetime(2000, 1, 1, tzinfo=UTC)

    def now(self) -> datetime:
        return self._current

    def advance(self, seconds: float) -> None:
        """Advance mock time by specified seconds.

        Raises:
            ValueError: If seconds is negative.
        """
        if seconds < 0:
            raise ValueError(f"Cannot advance time by negative amount: {seconds}")
        self._current += timedelta(seconds=seconds)


# Default clock for production use
DEFAULT_CLOCK: Clock = SystemClock()
