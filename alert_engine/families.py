"""
Alert Engine - Metric Family Registry.

============================================================
PURPOSE
============================================================
Tier tables for every supported metric family.

Each family is an ordered list of TierRule entries, most
severe first. The classifier walks the list and stops at the
first rule whose boundary the value has reached, so a metric
produces at most one candidate per cycle.

Adding a metric family is a data change: register a new
MetricFamily here.

============================================================
"""

from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Tuple

from .types import AlertSeverity, AlertType, MetricId, ThresholdDirection


ABOVE = ThresholdDirection.ABOVE
BELOW = ThresholdDirection.BELOW

HIGH = AlertSeverity.HIGH
MEDIUM = AlertSeverity.MEDIUM
LOW = AlertSeverity.LOW


# ============================================================
# RULE TYPES
# ============================================================

@dataclass(frozen=True)
class TierRule:
    """
    One tier of a metric family.

    message is a str.format template. Available fields:
    value, abs_value, abs_pct (abs(value) * 100), threshold.
    """

    threshold: str
    direction: ThresholdDirection
    alert_type: AlertType
    severity: AlertSeverity
    message: str
    recommendation: str
    emoji: str = ""

    def matches(self, value: float, boundary: float) -> bool:
        return self.direction.crosses(value, boundary)

    def render(self, value: float, boundary: float) -> str:
        return self.message.format(
            value=value,
            abs_value=abs(value),
            abs_pct=abs(value) * 100,
            threshold=boundary,
        )


@dataclass(frozen=True)
class MetricFamily:
    """Ordered tier rules for one metric."""

    metric_id: MetricId
    rules: Tuple[TierRule, ...] = ()

    def __iter__(self) -> Iterator[TierRule]:
        return iter(self.rules)


class FamilyRegistry:
    """Lookup of metric id -> family."""

    def __init__(self, families: Tuple[MetricFamily, ...] = ()):
        self._families: Dict[MetricId, MetricFamily] = {}
        for family in families:
            self.register(family)

    def register(self, family: MetricFamily) -> None:
        """Register or replace a family."""
        self._families[family.metric_id] = family

    def get(self, metric_id: MetricId) -> Optional[MetricFamily]:
        return self._families.get(metric_id)

    def __contains__(self, metric_id: object) -> bool:
        return metric_id in self._families

    def __len__(self) -> int:
        return len(self._families)


# ============================================================
# FAMILY TABLES
# ============================================================

VIX_FAMILY = MetricFamily(MetricId.VIX, (
    TierRule(
        "panic", ABOVE, AlertType.PANIC_BUYING_OPPORTUNITY, HIGH,
        "MAXIMUM CRASH BUYING OPPORTUNITY! VIX at {value:.1f} - Deploy ALL remaining cash!",
        "Deploy remaining 50% cash immediately into quality assets",
        "🔴⚫",
    ),
    TierRule(
        "danger", ABOVE, AlertType.CRASH_MODE, HIGH,
        "RED ALERT: VIX at {value:.1f} - Full crash mode activated!",
        "Deploy remaining cash aggressively: 25% per week over 4 weeks",
        "🔴",
    ),
    TierRule(
        "warning", ABOVE, AlertType.EARLY_CRASH, MEDIUM,
        "ORANGE ALERT: VIX at {value:.1f} - Early crash phase detected",
        "Deploy first 25% of cash into quality ETFs",
        "🟠",
    ),
    TierRule(
        "elevated", ABOVE, AlertType.ELEVATED_VOLATILITY, LOW,
        "YELLOW ALERT: VIX at {value:.1f} - Volatility rising",
        "Prepare for potential opportunities, increase monitoring frequency",
        "🟡",
    ),
))

VIX_TERM_STRUCTURE_FAMILY = MetricFamily(MetricId.VIX_TERM_STRUCTURE, (
    TierRule(
        "backwardation", ABOVE, AlertType.VIX_BACKWARDATION, HIGH,
        "VIX BACKWARDATION DETECTED! Front month {abs_value:.1f} points above 3-month VIX",
        "Prepare for crash within 1-4 weeks",
        "⚠️",
    ),
))

CAPE_FAMILY = MetricFamily(MetricId.CAPE, (
    TierRule(
        "bubble", ABOVE, AlertType.EXTREME_BUBBLE, MEDIUM,
        "EXTREME BUBBLE: CAPE at {value:.1f} - Only occurred 6 times in 150 years!",
        "Maintain maximum cash position, prepare for generational buying opportunity",
        "💰",
    ),
    TierRule(
        "overvalued", ABOVE, AlertType.BUBBLE_TERRITORY, LOW,
        "BUBBLE TERRITORY: CAPE at {value:.1f} - Market extremely overvalued",
        "Reduce risk positions, maintain high cash levels",
        "📈",
    ),
))

MCCLELLAN_FAMILY = MetricFamily(MetricId.MCCLELLAN_OSCILLATOR, (
    TierRule(
        "capitulation", BELOW, AlertType.CAPITULATION, HIGH,
        "CAPITULATION SIGNAL: McClellan at {value:.0f} - Maximum buying opportunity!",
        "Deploy all remaining cash immediately",
        "🔥",
    ),
    TierRule(
        "oversold", BELOW, AlertType.OVERSOLD_BREADTH, MEDIUM,
        "SEVERE OVERSOLD: McClellan at {value:.0f} - Start deploying cash",
        "Deploy first 25% of cash reserves",
        "📉",
    ),
))

PUT_CALL_FAMILY = MetricFamily(MetricId.PUT_CALL_RATIO, (
    TierRule(
        "extreme", ABOVE, AlertType.MAXIMUM_PESSIMISM, HIGH,
        "MAXIMUM PESSIMISM: Put/Call at {value:.2f} - Deploy all cash!",
        "Maximum buying opportunity - deploy all remaining reserves",
        "🎯",
    ),
    TierRule(
        "panic", ABOVE, AlertType.PANIC_SELLING, HIGH,
        "PANIC SELLING: Put/Call at {value:.2f} - Major buying opportunity",
        "Deploy 50% of remaining cash reserves",
        "💥",
    ),
    TierRule(
        "fear", ABOVE, AlertType.FEAR_BUILDING, MEDIUM,
        "FEAR BUILDING: Put/Call at {value:.2f} - Prepare for opportunities",
        "Ready cash for deployment, increase monitoring",
        "😰",
    ),
))

SPY_RSI_FAMILY = MetricFamily(MetricId.SPY_RSI, (
    TierRule(
        "extreme", BELOW, AlertType.EXTREME_OVERSOLD_RSI, HIGH,
        "EXTREME OVERSOLD: S&P RSI at {value:.1f} - Strong buy signal!",
        "Deploy 50% of cash reserves immediately",
        "⚡",
    ),
    TierRule(
        "oversold", BELOW, AlertType.OVERSOLD_RSI, MEDIUM,
        "OVERSOLD: S&P RSI at {value:.1f} - Buying opportunity emerging",
        "Deploy 25% of cash reserves",
        "📊",
    ),
))

HIGH_LOW_FAMILY = MetricFamily(MetricId.HIGH_LOW_INDEX, (
    TierRule(
        "capitulation", BELOW, AlertType.HIGH_LOW_CAPITULATION, HIGH,
        "CAPITULATION: High-Low Index at {value:.2f} - Maximum buying opportunity",
        "Deploy all remaining cash immediately",
        "🏁",
    ),
    TierRule(
        "weakness", BELOW, AlertType.BROAD_WEAKNESS, MEDIUM,
        "BROAD WEAKNESS: High-Low Index at {value:.2f} - Prepare for opportunities",
        "Ready cash for deployment, severe weakness detected",
        "📉",
    ),
))

# Two independent directions: fear is checked first.
FEAR_GREED_FAMILY = MetricFamily(MetricId.FEAR_GREED_INDEX, (
    TierRule(
        "fear", BELOW, AlertType.EXTREME_FEAR, HIGH,
        "EXTREME FEAR: Fear & Greed at {value:g} - Maximum buying opportunity!",
        "Deploy maximum cash - everyone else is selling in panic",
        "😱",
    ),
    TierRule(
        "greed", ABOVE, AlertType.EXTREME_GREED, MEDIUM,
        "EXTREME GREED: Fear & Greed at {value:g} - Danger zone!",
        "Maintain maximum cash position, avoid buying",
        "🤑",
    ),
))

AAII_BULLS_FAMILY = MetricFamily(MetricId.AAII_BULLS, (
    TierRule(
        "danger", ABOVE, AlertType.EXCESSIVE_BULLISHNESS, MEDIUM,
        "EXCESSIVE BULLISHNESS: AAII Bulls at {value:.1f}% - Danger zone",
        "Too much optimism - maintain defensive positioning",
        "🐂",
    ),
))

AAII_BEARS_FAMILY = MetricFamily(MetricId.AAII_BEARS, (
    TierRule(
        "major", ABOVE, AlertType.MAJOR_BUYING_OPPORTUNITY, HIGH,
        "MAJOR OPPORTUNITY: AAII Bears at {value:.1f}% - Excessive pessimism!",
        "Major buying opportunity - deploy significant cash",
        "🐻",
    ),
    TierRule(
        "opportunity", ABOVE, AlertType.BUYING_OPPORTUNITY, MEDIUM,
        "BUYING OPPORTUNITY: AAII Bears at {value:.1f}% - Excessive pessimism",
        "Good buying opportunity emerging",
        "🎪",
    ),
))

INSIDER_FAMILY = MetricFamily(MetricId.INSIDER_RATIO, (
    TierRule(
        "strong", ABOVE, AlertType.STRONG_INSIDER_BUYING, HIGH,
        "STRONG INSIDER CONFIDENCE: Buy/Sell ratio at {value:.1f} - Major buying opportunity!",
        "Insiders buying heavily - follow their lead",
        "👔",
    ),
    TierRule(
        "bullish", ABOVE, AlertType.INSIDER_BUYING, MEDIUM,
        "INSIDER BUYING: Buy/Sell ratio at {value:.1f} - Bullish signal",
        "Corporate insiders are buying - positive signal",
        "💼",
    ),
))

YIELD_SPREAD_FAMILY = MetricFamily(MetricId.YIELD_SPREAD, (
    TierRule(
        "recession", BELOW, AlertType.DEEP_INVERSION, HIGH,
        "DEEP YIELD CURVE INVERSION: Spread at {value:.2f}% - Recession signal",
        "Prepare for recession and buying opportunities",
        "📉",
    ),
    TierRule(
        "inversion", BELOW, AlertType.YIELD_INVERSION, MEDIUM,
        "YIELD CURVE INVERSION: Spread at {value:.2f}% - Warning signal",
        "Monitor closely - recession typically follows 6-18 months",
        "⚠️",
    ),
))

CREDIT_SPREADS_FAMILY = MetricFamily(MetricId.CREDIT_SPREADS, (
    TierRule(
        "crisis", ABOVE, AlertType.CREDIT_CRISIS, HIGH,
        "CREDIT CRISIS: Spreads at {value:g}bp - Financial stress detected!",
        "Major buying opportunity - credit crisis creates bargains",
        "🏦",
    ),
    TierRule(
        "stress", ABOVE, AlertType.CREDIT_STRESS, MEDIUM,
        "CREDIT STRESS: Spreads at {value:g}bp - Stress building",
        "Monitor credit markets closely",
        "💳",
    ),
))

# Two independent directions: strength is checked first.
DOLLAR_FAMILY = MetricFamily(MetricId.DOLLAR_INDEX, (
    TierRule(
        "strong", ABOVE, AlertType.EXTREME_DOLLAR_STRENGTH, MEDIUM,
        "EXTREME DOLLAR STRENGTH: DXY at {value:.1f} - Emerging market stress",
        "Avoid emerging markets, focus on US assets",
        "💵",
    ),
    TierRule(
        "weak", BELOW, AlertType.DOLLAR_WEAKNESS, LOW,
        "DOLLAR WEAKNESS: DXY at {value:.1f} - Emerging markets attractive",
        "Consider emerging market opportunities",
        "🌍",
    ),
))

SEMI_ETF_FAMILY = MetricFamily(MetricId.SEMI_ETF, (
    TierRule(
        "opportunity", BELOW, AlertType.AI_BUBBLE_OPPORTUNITY, HIGH,
        "AI CRASH OPPORTUNITY: Semi ETF down {abs_pct:.1f}% - Buying opportunity!",
        "AI bubble deflating - buy quality tech at discount",
        "🤖",
    ),
    TierRule(
        "correction", BELOW, AlertType.AI_CORRECTION, MEDIUM,
        "AI CORRECTION: Semi ETF down {abs_pct:.1f}% - Correction beginning",
        "AI sector correcting - prepare for opportunities",
        "🔧",
    ),
))

# Tracked for reporting only.
MARGIN_DEBT_FAMILY = MetricFamily(MetricId.MARGIN_DEBT)
NVDA_PE_FAMILY = MetricFamily(MetricId.NVDA_PE)


DEFAULT_FAMILIES: Tuple[MetricFamily, ...] = (
    VIX_FAMILY,
    VIX_TERM_STRUCTURE_FAMILY,
    CAPE_FAMILY,
    MARGIN_DEBT_FAMILY,
    MCCLELLAN_FAMILY,
    PUT_CALL_FAMILY,
    SPY_RSI_FAMILY,
    HIGH_LOW_FAMILY,
    FEAR_GREED_FAMILY,
    AAII_BULLS_FAMILY,
    AAII_BEARS_FAMILY,
    INSIDER_FAMILY,
    YIELD_SPREAD_FAMILY,
    CREDIT_SPREADS_FAMILY,
    DOLLAR_FAMILY,
    NVDA_PE_FAMILY,
    SEMI_ETF_FAMILY,
)


def get_default_registry() -> FamilyRegistry:
    """Registry with every built-in family."""
    return FamilyRegistry(DEFAULT_FAMILIES)
