"""
Core Module - System Clock.

============================================================
RESPONSIBILITY
============================================================
Provides a unified, testable clock abstraction for the alert engine.

- Wall-clock UTC time for message timestamps and audit records
- Monotonic time for cooldown windows
- Mockable for deterministic tests

============================================================
DESIGN PRINCIPLES
============================================================
- UTC only - no timezone conversions in business logic
- Cooldown arithmetic never uses wall-clock time
- Thread-safe

============================================================
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional
import threading
import time


# ============================================================
# CLOCK PROTOCOL
# ============================================================

class ClockProtocol(ABC):
    """Abstract interface for system clock."""

    @abstractmethod
    def now(self) -> datetime:
        """Get current UTC datetime."""
        pass

    @abstractmethod
    def monotonic(self) -> float:
        """Get a monotonic reading in seconds."""
        pass


# ============================================================
# SYSTEM CLOCK (PRODUCTION)
# ============================================================

class SystemClock(ClockProtocol):
    """
    Production clock using actual system time.

    All times are in UTC.
    """

    def now(self) -> datetime:
        """Get current UTC datetime."""
        return datetime.now(timezone.utc)

    def monotonic(self) -> float:
        """Get current monotonic reading."""
        return time.monotonic()


# ============================================================
# MOCK CLOCK (TESTING)
# ============================================================

class MockClock(ClockProtocol):
    """
    Mock clock for testing.

    Wall-clock and monotonic readings move together and only
    when the test advances them.
    """

    def __init__(self, initial_time: Optional[datetime] = None):
        """
        Initialize mock clock.

        Args:
            initial_time: Starting time (defaults to current UTC)
        """
        initial_time = initial_time or datetime.now(timezone.utc)
        if initial_time.tzinfo is None:
            initial_time = initial_time.replace(tzinfo=timezone.utc)
        self._time = initial_time
        self._monotonic = 0.0
        self._lock = threading.Lock()

    def now(self) -> datetime:
        """Get current (mocked) datetime."""
        with self._lock:
            return self._time

    def monotonic(self) -> float:
        """Get current (mocked) monotonic reading."""
        with self._lock:
            return self._monotonic

    def advance(self, seconds: float = 0, **kwargs) -> None:
        """
        Advance time by the specified amount.

        Args:
            seconds: Number of seconds to advance
            **kwargs: Passed to timedelta (hours, minutes, days, etc.)
        """
        delta = timedelta(seconds=seconds, **kwargs)
        if delta < timedelta(0):
            raise ValueError("MockClock cannot move backwards")
        with self._lock:
            self._time = self._time + delta
            self._monotonic += delta.total_seconds()


# ============================================================
# EXPORTS
# ============================================================

__all__ = [
    "ClockProtocol",
    "SystemClock",
    "MockClock",
]
