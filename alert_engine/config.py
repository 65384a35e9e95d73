"""
Alert Engine - Configuration.

============================================================
PURPOSE
============================================================
All configuration for the Alert Engine.

- Cooldown policy (base window, severity multipliers, capacity)
- Escalation policy
- Telegram transport settings
- Optional alert history store
- Default metric catalogue (names and ThresholdSets)

Values come from dataclass defaults, overridden by
environment variables in AlertEngineConfig.from_env().

============================================================
"""

import math
import os
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from dotenv import load_dotenv

from core.exceptions import InvalidConfigError
from .types import AlertSeverity, MetricId


# ============================================================
# METRIC CATALOGUE
# ============================================================

@dataclass(frozen=True)
class MetricDefinition:
    """Display name, description and default thresholds for a metric."""

    name: str
    description: str
    thresholds: Mapping[str, float] = field(default_factory=dict)


DEFAULT_METRICS: Dict[MetricId, MetricDefinition] = {
    # Early warning
    MetricId.VIX: MetricDefinition(
        "VIX", "CBOE Volatility Index - fear gauge",
        {"elevated": 15, "warning": 20, "danger": 30, "panic": 40},
    ),
    MetricId.VIX_TERM_STRUCTURE: MetricDefinition(
        "VIX Term Structure", "Front month VIX minus 3-month VIX",
        {"backwardation": 0},
    ),
    MetricId.CAPE: MetricDefinition(
        "Shiller CAPE", "10-year cyclically adjusted P/E ratio",
        {"overvalued": 25, "bubble": 35},
    ),
    MetricId.MARGIN_DEBT: MetricDefinition(
        "Margin Debt", "Investor leverage levels",
        {"decline": -0.15},
    ),

    # Technical
    MetricId.MCCLELLAN_OSCILLATOR: MetricDefinition(
        "McClellan Oscillator", "Market breadth indicator",
        {"oversold": -100, "capitulation": -150},
    ),
    MetricId.PUT_CALL_RATIO: MetricDefinition(
        "Put/Call Ratio", "Options sentiment indicator",
        {"fear": 1.0, "panic": 1.5, "extreme": 2.0},
    ),
    MetricId.SPY_RSI: MetricDefinition(
        "S&P 500 RSI", "Relative Strength Index for SPY",
        {"oversold": 30, "extreme": 20},
    ),
    MetricId.HIGH_LOW_INDEX: MetricDefinition(
        "High-Low Index", "52-week highs vs lows",
        {"weakness": -0.5, "capitulation": -0.8},
    ),

    # Sentiment
    MetricId.FEAR_GREED_INDEX: MetricDefinition(
        "CNN Fear & Greed", "Combined sentiment index",
        {"fear": 20, "greed": 80},
    ),
    MetricId.AAII_BULLS: MetricDefinition(
        "AAII Bulls %", "Individual investor bullishness",
        {"danger": 55},
    ),
    MetricId.AAII_BEARS: MetricDefinition(
        "AAII Bears %", "Individual investor bearishness",
        {"opportunity": 50, "major": 60},
    ),
    MetricId.INSIDER_RATIO: MetricDefinition(
        "Insider Buy/Sell Ratio", "Corporate insider trading",
        {"bullish": 2.0, "strong": 3.0},
    ),

    # Economic
    MetricId.YIELD_SPREAD: MetricDefinition(
        "10Y-2Y Spread", "Treasury yield curve",
        {"inversion": 0, "recession": -0.5},
    ),
    MetricId.CREDIT_SPREADS: MetricDefinition(
        "Credit Spreads", "Corporate bond stress",
        {"stress": 200, "crisis": 300},
    ),
    MetricId.DOLLAR_INDEX: MetricDefinition(
        "DXY", "US Dollar strength",
        {"strong": 110, "weak": 95},
    ),

    # AI sector
    MetricId.NVDA_PE: MetricDefinition(
        "NVIDIA P/E", "AI bubble leader valuation",
        {"decline": -0.5},
    ),
    MetricId.SEMI_ETF: MetricDefinition(
        "Semiconductor ETF", "AI sector performance",
        {"correction": -0.2, "opportunity": -0.4},
    ),
}


def metric_display_name(metric_id: MetricId) -> str:
    """Human-readable metric name."""
    definition = DEFAULT_METRICS.get(metric_id)
    return definition.name if definition else metric_id.value.upper()


# ============================================================
# COOLDOWN CONFIGURATION
# ============================================================

@dataclass
class CooldownConfig:
    """
    Cooldown policy.

    The window for a severity is base_cooldown_seconds multiplied
    by that severity's multiplier.
    """

    base_cooldown_seconds: float = 30 * 60
    """Base cooldown period C."""

    capacity: int = 100
    """Maximum tracked (metric, alert type) keys."""

    severity_multipliers: Dict[AlertSeverity, float] = field(default_factory=lambda: {
        AlertSeverity.HIGH: 0.5,
        AlertSeverity.MEDIUM: 1.0,
        AlertSeverity.LOW: 2.0,
    })
    """HIGH re-notifies after C/2, MEDIUM after C, LOW after 2C."""


# ============================================================
# ESCALATION CONFIGURATION
# ============================================================

@dataclass
class EscalationConfig:
    """Escalation bundling policy."""

    enabled: bool = True
    """Bundle co-occurring HIGH alerts into one message."""

    min_distinct_metrics: int = 2
    """HIGH alerts from at least this many metrics trigger a bundle."""


# ============================================================
# TELEGRAM CONFIGURATION
# ============================================================

@dataclass
class TelegramConfig:
    """Telegram transport configuration."""

    bot_token_env: str = "TELEGRAM_BOT_TOKEN"
    """Environment variable for bot token."""

    chat_id_env: str = "TELEGRAM_CHAT_ID"
    """Environment variable for chat id (comma-separated allowed)."""

    parse_mode: str = "HTML"
    disable_web_page_preview: bool = True

    request_timeout_seconds: float = 10.0
    """Total timeout per sendMessage call."""

    max_per_minute: int = 20
    max_per_hour: int = 100

    def bot_token(self) -> str:
        return os.getenv(self.bot_token_env, "")

    def chat_ids(self) -> List[str]:
        raw = os.getenv(self.chat_id_env, "")
        return [c.strip() for c in raw.split(",") if c.strip()]


# ============================================================
# HISTORY CONFIGURATION
# ============================================================

@dataclass
class HistoryConfig:
    """Alert history configuration."""

    enabled: bool = False
    """Write dispatched alerts to the durable store."""

    database_url: Optional[str] = None
    """SQLAlchemy URL; falls back to DATABASE_URL / sqlite file."""

    recent_dispatch_limit: int = 50
    """Size of the engine's in-memory recent-dispatch history."""


# ============================================================
# ENGINE CONFIGURATION
# ============================================================

@dataclass
class AlertEngineConfig:
    """Top-level alert engine configuration."""

    cooldown: CooldownConfig = field(default_factory=CooldownConfig)
    escalation: EscalationConfig = field(default_factory=EscalationConfig)
    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)

    check_interval_minutes: int = 30
    """Interval the external scheduler is expected to use."""

    metrics: Dict[MetricId, MetricDefinition] = field(
        default_factory=lambda: dict(DEFAULT_METRICS)
    )

    def default_thresholds(self) -> Dict[MetricId, Mapping[str, float]]:
        """Default ThresholdSets keyed by metric."""
        return {metric_id: d.thresholds for metric_id, d in self.metrics.items()}

    def validate(self) -> None:
        """Raise InvalidConfigError on unusable values."""
        base = self.cooldown.base_cooldown_seconds
        if not math.isfinite(base) or base <= 0:
            raise InvalidConfigError(
                "cooldown.base_cooldown_seconds", base, "must be a positive finite number",
            )
        if self.cooldown.capacity < 1:
            raise InvalidConfigError(
                "cooldown.capacity", self.cooldown.capacity, "must be at least 1",
            )
        missing = [s for s in AlertSeverity if s not in self.cooldown.severity_multipliers]
        if missing:
            raise InvalidConfigError(
                "cooldown.severity_multipliers",
                [s.value for s in missing],
                "every severity needs a multiplier",
            )
        for severity, multiplier in self.cooldown.severity_multipliers.items():
            if not math.isfinite(multiplier) or multiplier <= 0:
                raise InvalidConfigError(
                    f"cooldown.severity_multipliers.{severity.value}",
                    multiplier,
                    "must be a positive finite number",
                )
        if self.escalation.min_distinct_metrics < 2:
            raise InvalidConfigError(
                "escalation.min_distinct_metrics",
                self.escalation.min_distinct_metrics,
                "must be at least 2",
            )
        if self.check_interval_minutes < 1:
            raise InvalidConfigError(
                "check_interval_minutes", self.check_interval_minutes, "must be at least 1",
            )

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "AlertEngineConfig":
        """
        Build configuration from environment variables.

        Reads a .env file first when present.
        """
        load_dotenv(dotenv_path)

        config = cls(
            cooldown=CooldownConfig(
                base_cooldown_seconds=_env_float("ALERT_COOLDOWN_MINUTES", 30) * 60,
                capacity=_env_int("ALERT_COOLDOWN_CAPACITY", 100),
            ),
            escalation=EscalationConfig(
                enabled=_env_bool("ALERT_ESCALATION_ENABLED", True),
            ),
            history=HistoryConfig(
                enabled=_env_bool("ALERT_HISTORY_ENABLED", False),
                database_url=os.getenv("DATABASE_URL") or None,
            ),
            check_interval_minutes=_env_int("CHECK_INTERVAL_MINUTES", 30),
        )
        config.validate()
        return config


# ============================================================
# ENVIRONMENT HELPERS
# ============================================================

def _env_float(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return float(default)
    try:
        value = float(raw)
    except ValueError:
        raise InvalidConfigError(key, raw, "expected a number")
    if not math.isfinite(value):
        raise InvalidConfigError(key, raw, "expected a finite number")
    return value


def _env_int(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise InvalidConfigError(key, raw, "expected an integer")


def _env_bool(key: str, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise InvalidConfigError(key, raw, "expected a boolean")
