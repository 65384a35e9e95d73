"""
Shared fixtures for alert engine tests.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from core.clock import MockClock
from alert_engine.types import AlertCandidate, AlertSeverity, AlertType, MetricId


FIXED_TIME = datetime(2026, 3, 2, 14, 30, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    """Deterministic clock starting at FIXED_TIME."""
    return MockClock(FIXED_TIME)


@pytest.fixture
def transport():
    """Chat transport that accepts every message."""
    mock = AsyncMock()
    mock.send = AsyncMock(return_value=True)
    mock.close = AsyncMock()
    return mock


@pytest.fixture
def make_candidate():
    """Factory for AlertCandidate."""
    def _make(
        metric_id: MetricId = MetricId.VIX,
        alert_type: AlertType = AlertType.CRASH_MODE,
        severity: AlertSeverity = AlertSeverity.HIGH,
        value: float = 35.0,
        message: str = "RED ALERT: VIX at 35.0",
        recommendation: str = "Deploy cash",
    ) -> AlertCandidate:
        return AlertCandidate(
            metric_id=metric_id,
            alert_type=alert_type,
            severity=severity,
            message=message,
            recommendation=recommendation,
            observed_value=value,
            generated_at=FIXED_TIME,
        )
    return _make


@pytest.fixture
def crash_snapshot():
    """Provider mapping with two HIGH signals and one errored metric."""
    return {
        "vix": {
            "value": 42.0,
            "thresholds": {"warning": 20, "danger": 30, "panic": 40},
        },
        "put_call_ratio": {
            "value": 2.3,
            "thresholds": {"fear": 1.0, "panic": 1.5, "extreme": 2.0},
        },
        "cape": {
            "value": None,
            "error": "upstream timeout",
            "thresholds": {"overvalued": 25, "bubble": 35},
        },
    }
