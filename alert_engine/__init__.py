"""
Market Indicator Alert Engine Package.

============================================================
PURPOSE
============================================================
Watches market indicators, classifies them against tiered
thresholds and notifies a chat recipient when a tier is
crossed.

PRINCIPLES:
1. AT MOST ONE - One candidate per metric per cycle
2. NO SPAM - Severity-scaled cooldown per (metric, alert type)
3. ONE URGENT MESSAGE - Co-occurring HIGH alerts are bundled
4. ISOLATED FAILURES - Bad data or a failed send never blocks others

============================================================
PIPELINE
============================================================
provider -> ThresholdClassifier -> CooldownStore
         -> EscalationAggregator -> NotificationDispatcher
         -> ChatTransport

============================================================
"""

from .types import (
    # Enums
    MetricId,
    AlertSeverity,
    AlertType,
    ThresholdDirection,
    NotificationKind,

    # Data
    ThresholdSet,
    MetricReading,
    MetricSnapshot,
    AlertCandidate,
    CooldownKey,
    EscalationBatch,
    Notification,
    SentRecord,
    DispatchReport,
)

from .config import (
    MetricDefinition,
    DEFAULT_METRICS,
    CooldownConfig,
    EscalationConfig,
    TelegramConfig,
    HistoryConfig,
    AlertEngineConfig,
)

from .families import (
    TierRule,
    MetricFamily,
    FamilyRegistry,
    get_default_registry,
)

from .classifier import ThresholdClassifier
from .cooldown import CooldownStore
from .escalation import EscalationAggregator
from .formatter import AlertFormatter
from .transport import ChatTransport, TelegramTransport, TelegramRateLimiter
from .dispatcher import NotificationDispatcher
from .providers import (
    MarketDataProvider,
    StaticMarketDataProvider,
    JsonFileMarketDataProvider,
)
from .repository import AlertHistoryRepository
from .engine import AlertEngine, create_alert_engine


__all__ = [
    # Enums
    "MetricId",
    "AlertSeverity",
    "AlertType",
    "ThresholdDirection",
    "NotificationKind",

    # Data
    "ThresholdSet",
    "MetricReading",
    "MetricSnapshot",
    "AlertCandidate",
    "CooldownKey",
    "EscalationBatch",
    "Notification",
    "SentRecord",
    "DispatchReport",

    # Config
    "MetricDefinition",
    "DEFAULT_METRICS",
    "CooldownConfig",
    "EscalationConfig",
    "TelegramConfig",
    "HistoryConfig",
    "AlertEngineConfig",

    # Families
    "TierRule",
    "MetricFamily",
    "FamilyRegistry",
    "get_default_registry",

    # Components
    "ThresholdClassifier",
    "CooldownStore",
    "EscalationAggregator",
    "AlertFormatter",
    "ChatTransport",
    "TelegramTransport",
    "TelegramRateLimiter",
    "NotificationDispatcher",
    "MarketDataProvider",
    "StaticMarketDataProvider",
    "JsonFileMarketDataProvider",
    "AlertHistoryRepository",
    "AlertEngine",
    "create_alert_engine",
]
