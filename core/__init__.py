"""
Core Module Package.

This package contains the core infrastructure components
that the alert engine depends on.

Components:
- clock: Unified time abstraction
- exceptions: Custom exception hierarchy
"""

from .clock import ClockProtocol, SystemClock, MockClock
from .exceptions import (
    AlertSystemError,
    ConfigurationError,
    InvalidConfigError,
    MetricDataError,
    PersistenceError,
    TransportError,
)
