"""
Alert Engine - Type Definitions.

============================================================
PURPOSE
============================================================
Enums and immutable data types flowing through one
evaluation cycle:

    MetricSnapshot -> AlertCandidate -> Notification -> DispatchReport

All cycle data is created fresh each cycle and never mutated.

============================================================
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from core.exceptions import MetricDataError


logger = logging.getLogger(__name__)


# ============================================================
# ENUMS
# ============================================================

class MetricId(Enum):
    """Supported market indicators."""

    # Early warning
    VIX = "vix"
    VIX_TERM_STRUCTURE = "vix_term_structure"
    CAPE = "cape"
    MARGIN_DEBT = "margin_debt"

    # Technical
    MCCLELLAN_OSCILLATOR = "mcclellan_oscillator"
    PUT_CALL_RATIO = "put_call_ratio"
    SPY_RSI = "spy_rsi"
    HIGH_LOW_INDEX = "high_low_index"

    # Sentiment
    FEAR_GREED_INDEX = "fear_greed_index"
    AAII_BULLS = "aaii_bulls"
    AAII_BEARS = "aaii_bears"
    INSIDER_RATIO = "insider_ratio"

    # Economic
    YIELD_SPREAD = "yield_spread"
    CREDIT_SPREADS = "credit_spreads"
    DOLLAR_INDEX = "dollar_index"

    # AI sector
    NVDA_PE = "nvda_pe"
    SEMI_ETF = "semi_etf"


class AlertSeverity(Enum):
    """Coarse urgency of an alert. Drives cooldown and escalation."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class ThresholdDirection(Enum):
    """Comparator used by a tier rule."""

    ABOVE = "ABOVE"
    """value >= boundary."""

    BELOW = "BELOW"
    """value <= boundary."""

    def crosses(self, value: float, boundary: float) -> bool:
        """Check whether value has reached the boundary."""
        if self is ThresholdDirection.ABOVE:
            return value >= boundary
        return value <= boundary


class AlertType(Enum):
    """Alert types, grouped by metric family."""

    # VIX
    PANIC_BUYING_OPPORTUNITY = "PANIC_BUYING_OPPORTUNITY"
    CRASH_MODE = "CRASH_MODE"
    EARLY_CRASH = "EARLY_CRASH"
    ELEVATED_VOLATILITY = "ELEVATED_VOLATILITY"
    VIX_BACKWARDATION = "VIX_BACKWARDATION"

    # Valuation
    EXTREME_BUBBLE = "EXTREME_BUBBLE"
    BUBBLE_TERRITORY = "BUBBLE_TERRITORY"

    # Breadth
    CAPITULATION = "CAPITULATION"
    OVERSOLD_BREADTH = "OVERSOLD_BREADTH"
    HIGH_LOW_CAPITULATION = "HIGH_LOW_CAPITULATION"
    BROAD_WEAKNESS = "BROAD_WEAKNESS"

    # Options / momentum
    MAXIMUM_PESSIMISM = "MAXIMUM_PESSIMISM"
    PANIC_SELLING = "PANIC_SELLING"
    FEAR_BUILDING = "FEAR_BUILDING"
    EXTREME_OVERSOLD_RSI = "EXTREME_OVERSOLD_RSI"
    OVERSOLD_RSI = "OVERSOLD_RSI"

    # Sentiment
    EXTREME_FEAR = "EXTREME_FEAR"
    EXTREME_GREED = "EXTREME_GREED"
    EXCESSIVE_BULLISHNESS = "EXCESSIVE_BULLISHNESS"
    MAJOR_BUYING_OPPORTUNITY = "MAJOR_BUYING_OPPORTUNITY"
    BUYING_OPPORTUNITY = "BUYING_OPPORTUNITY"
    STRONG_INSIDER_BUYING = "STRONG_INSIDER_BUYING"
    INSIDER_BUYING = "INSIDER_BUYING"

    # Economic
    DEEP_INVERSION = "DEEP_INVERSION"
    YIELD_INVERSION = "YIELD_INVERSION"
    CREDIT_CRISIS = "CREDIT_CRISIS"
    CREDIT_STRESS = "CREDIT_STRESS"
    EXTREME_DOLLAR_STRENGTH = "EXTREME_DOLLAR_STRENGTH"
    DOLLAR_WEAKNESS = "DOLLAR_WEAKNESS"

    # AI sector
    AI_BUBBLE_OPPORTUNITY = "AI_BUBBLE_OPPORTUNITY"
    AI_CORRECTION = "AI_CORRECTION"


class NotificationKind(Enum):
    """Shape of an outgoing notification."""

    INDIVIDUAL = "INDIVIDUAL"
    ESCALATION = "ESCALATION"


# ============================================================
# THRESHOLDS AND READINGS
# ============================================================

def _as_float(value: Any) -> Optional[float]:
    """Coerce to a finite float, or None."""
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


@dataclass(frozen=True)
class ThresholdSet:
    """
    Named numeric boundaries for one metric.

    Entries that are not finite numbers are dropped on
    construction, so a rule referencing them is simply
    not applicable.
    """

    boundaries: Mapping[str, float] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, raw: Optional[Mapping[str, Any]]) -> "ThresholdSet":
        """Build from a provider mapping, dropping unusable entries."""
        if not raw:
            return cls()

        boundaries: Dict[str, float] = {}
        for name, value in raw.items():
            number = _as_float(value)
            if number is None:
                logger.debug(f"Ignoring non-numeric threshold {name}={value!r}")
                continue
            boundaries[str(name)] = number

        return cls(boundaries=boundaries)

    def get(self, name: str) -> Optional[float]:
        """Get a boundary by name."""
        return self.boundaries.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self.boundaries

    def __bool__(self) -> bool:
        return bool(self.boundaries)


@dataclass(frozen=True)
class MetricReading:
    """One metric's value for the current cycle."""

    metric_id: MetricId
    value: Optional[float]
    thresholds: ThresholdSet = field(default_factory=ThresholdSet)
    error: Optional[str] = None

    @property
    def is_available(self) -> bool:
        """Whether this reading can be classified."""
        return self.error is None and self.value is not None


@dataclass(frozen=True)
class MetricSnapshot:
    """
    Per-cycle mapping of metric -> reading.

    Iteration order is the order the provider returned metrics in.
    """

    readings: Tuple[MetricReading, ...] = ()
    captured_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_provider(
        cls,
        metrics: Mapping[str, Any],
        default_thresholds: Optional[Mapping[MetricId, Mapping[str, float]]] = None,
        captured_at: Optional[datetime] = None,
    ) -> "MetricSnapshot":
        """
        Build a snapshot from a provider's get_all_metrics() result.

        Each entry looks like::

            {"value": 42.0, "error": None, "thresholds": {...}}

        Thresholds may also sit under ``config.thresholds``. When
        neither is present the default catalogue is used.
        Unknown metric ids are skipped.
        """
        if not isinstance(metrics, Mapping):
            raise MetricDataError(
                f"Expected a mapping of metrics, got {type(metrics).__name__}"
            )

        default_thresholds = default_thresholds or {}
        readings: List[MetricReading] = []

        for key, data in metrics.items():
            try:
                metric_id = MetricId(key)
            except ValueError:
                logger.debug(f"Skipping unknown metric: {key}")
                continue

            readings.append(
                _reading_from_entry(metric_id, data, default_thresholds.get(metric_id))
            )

        return cls(
            readings=tuple(readings),
            captured_at=captured_at or datetime.now(timezone.utc),
        )

    def get(self, metric_id: MetricId) -> Optional[MetricReading]:
        """Get a reading by metric id."""
        for reading in self.readings:
            if reading.metric_id == metric_id:
                return reading
        return None

    def __iter__(self):
        return iter(self.readings)

    def __len__(self) -> int:
        return len(self.readings)


def _reading_from_entry(
    metric_id: MetricId,
    data: Any,
    default_thresholds: Optional[Mapping[str, float]],
) -> MetricReading:
    """Convert one provider entry; malformed entries become error readings."""
    if not isinstance(data, Mapping):
        return MetricReading(metric_id=metric_id, value=None, error="malformed entry")

    raw_thresholds = data.get("thresholds")
    if raw_thresholds is None and isinstance(data.get("config"), Mapping):
        raw_thresholds = data["config"].get("thresholds")
    if raw_thresholds is None:
        raw_thresholds = default_thresholds

    thresholds = ThresholdSet.from_mapping(raw_thresholds)

    error = data.get("error")
    if error:
        return MetricReading(metric_id, None, thresholds, error=str(error))

    value = _as_float(data.get("value"))
    if value is None:
        return MetricReading(metric_id, None, thresholds, error="value unavailable")

    return MetricReading(metric_id, value, thresholds)


# ============================================================
# ALERTS
# ============================================================

@dataclass(frozen=True)
class CooldownKey:
    """Dedup key: one timer per (metric, alert type)."""

    metric_id: MetricId
    alert_type: AlertType

    def __str__(self) -> str:
        return f"{self.metric_id.value}_{self.alert_type.value}"


@dataclass(frozen=True)
class AlertCandidate:
    """A classified alert for one metric in one cycle."""

    metric_id: MetricId
    alert_type: AlertType
    severity: AlertSeverity
    message: str
    recommendation: str
    observed_value: float
    generated_at: datetime
    emoji: str = ""
    threshold_name: str = ""
    threshold_value: Optional[float] = None

    @property
    def cooldown_key(self) -> CooldownKey:
        """Key used by the cooldown store."""
        return CooldownKey(self.metric_id, self.alert_type)

    @property
    def is_high(self) -> bool:
        return self.severity == AlertSeverity.HIGH

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for logging and CLI output."""
        return {
            "metric": self.metric_id.value,
            "alert_type": self.alert_type.value,
            "severity": self.severity.value,
            "message": self.message,
            "recommendation": self.recommendation,
            "value": self.observed_value,
            "threshold": self.threshold_name,
            "threshold_value": self.threshold_value,
            "generated_at": self.generated_at.isoformat(),
        }


@dataclass(frozen=True)
class EscalationBatch:
    """HIGH-severity candidates from one cycle, in classifier order."""

    candidates: Tuple[AlertCandidate, ...]

    @property
    def metric_ids(self) -> List[MetricId]:
        return [c.metric_id for c in self.candidates]

    def __len__(self) -> int:
        return len(self.candidates)


@dataclass(frozen=True)
class Notification:
    """
    One outgoing message.

    INDIVIDUAL wraps exactly one candidate; ESCALATION wraps a batch.
    """

    kind: NotificationKind
    candidates: Tuple[AlertCandidate, ...]

    @classmethod
    def individual(cls, candidate: AlertCandidate) -> "Notification":
        return cls(NotificationKind.INDIVIDUAL, (candidate,))

    @classmethod
    def escalation(cls, batch: EscalationBatch) -> "Notification":
        return cls(NotificationKind.ESCALATION, tuple(batch.candidates))

    @property
    def is_escalation(self) -> bool:
        return self.kind == NotificationKind.ESCALATION


# ============================================================
# DISPATCH RESULTS
# ============================================================

@dataclass(frozen=True)
class SentRecord:
    """Entry in the engine's recent-dispatch history."""

    cooldown_key: CooldownKey
    severity: AlertSeverity
    observed_value: float
    sent_at: datetime
    escalated: bool = False


@dataclass
class DispatchReport:
    """Outcome of one dispatch_all() call."""

    delivered: List[AlertCandidate] = field(default_factory=list)
    failed: List[AlertCandidate] = field(default_factory=list)
    suppressed: List[AlertCandidate] = field(default_factory=list)
    notifications: List[Notification] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """True when nothing failed."""
        return not self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "delivered": [str(c.cooldown_key) for c in self.delivered],
            "failed": [str(c.cooldown_key) for c in self.failed],
            "suppressed": [str(c.cooldown_key) for c in self.suppressed],
            "notifications": len(self.notifications),
        }
