"""
Alert Engine - Engine.

============================================================
PURPOSE
============================================================
Ties classifier, cooldown store, escalation aggregator and
dispatcher together.

FLOW (one cycle):
    provider -> MetricSnapshot -> evaluate() -> candidates
    candidates -> dispatch_all():
        try_acquire() each candidate (dedup gate)
        aggregate survivors into notifications
        send every notification concurrently
        -> DispatchReport

PRINCIPLES:
- evaluate() has no side effects on dedup state
- One failed metric or send never blocks the others
- The cooldown store is owned by the engine, not global

============================================================
"""

import asyncio
import logging
from collections import deque
from typing import Any, Deque, Dict, List, Mapping, Optional, Sequence, Union

from core.clock import ClockProtocol, SystemClock
from core.exceptions import AlertSystemError
from .classifier import ThresholdClassifier
from .config import AlertEngineConfig
from .cooldown import CooldownStore
from .dispatcher import NotificationDispatcher
from .escalation import EscalationAggregator
from .providers import MarketDataProvider
from .repository import AlertHistoryRepository
from .transport import ChatTransport, TelegramTransport
from .types import (
    AlertCandidate,
    DispatchReport,
    MetricSnapshot,
    SentRecord,
)


logger = logging.getLogger(__name__)


class AlertEngine:
    """
    Market indicator alert engine.

    evaluate() is the pure half of a cycle; dispatch_all() is
    the side-effecting half. run_check() does both.
    """

    def __init__(
        self,
        config: Optional[AlertEngineConfig] = None,
        transport: Optional[ChatTransport] = None,
        classifier: Optional[ThresholdClassifier] = None,
        cooldown_store: Optional[CooldownStore] = None,
        repository: Optional[AlertHistoryRepository] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        """
        Initialize engine.

        Args:
            config: Engine configuration
            transport: Chat transport (Telegram when omitted)
            classifier: Threshold classifier
            cooldown_store: Dedup state
            repository: Optional alert history repository
            clock: Clock shared by all components
        """
        self._config = config or AlertEngineConfig()
        self._clock = clock or SystemClock()

        self._transport = transport or TelegramTransport(self._config.telegram, clock=self._clock)
        self._classifier = classifier or ThresholdClassifier(clock=self._clock)
        self._cooldown = cooldown_store if cooldown_store is not None else CooldownStore(
            self._config.cooldown, clock=self._clock,
        )
        self._aggregator = EscalationAggregator(self._config.escalation)
        self._dispatcher = NotificationDispatcher(
            transport=self._transport,
            cooldown_store=self._cooldown,
            repository=repository,
            parse_mode=self._config.telegram.parse_mode,
            disable_web_page_preview=self._config.telegram.disable_web_page_preview,
        )

        self._recent: Deque[SentRecord] = deque(
            maxlen=self._config.history.recent_dispatch_limit,
        )
        self._counters = {
            "cycles": 0,
            "candidates": 0,
            "dispatched": 0,
            "suppressed": 0,
            "failed": 0,
            "notifications": 0,
            "escalations": 0,
        }

    @property
    def config(self) -> AlertEngineConfig:
        return self._config

    @property
    def cooldown_store(self) -> CooldownStore:
        return self._cooldown

    @property
    def classifier(self) -> ThresholdClassifier:
        return self._classifier

    # --------------------------------------------------------
    # EVALUATION
    # --------------------------------------------------------

    def evaluate(
        self,
        snapshot: Union[MetricSnapshot, Mapping[str, Any]],
    ) -> List[AlertCandidate]:
        """
        Classify a snapshot.

        Accepts a MetricSnapshot or a raw provider mapping.
        Does not touch dedup state.
        """
        if not isinstance(snapshot, MetricSnapshot):
            snapshot = MetricSnapshot.from_provider(
                snapshot,
                default_thresholds=self._config.default_thresholds(),
                captured_at=self._clock.now(),
            )

        candidates = self._classifier.classify_snapshot(snapshot)

        self._counters["cycles"] += 1
        self._counters["candidates"] += len(candidates)

        logger.info(
            f"Evaluated {len(snapshot)} metrics: {len(candidates)} alert(s)"
        )
        return candidates

    # --------------------------------------------------------
    # DISPATCH
    # --------------------------------------------------------

    async def dispatch_all(
        self,
        alerts: Sequence[AlertCandidate],
    ) -> DispatchReport:
        """
        Dedup, aggregate and deliver a cycle's candidates.

        Returns:
            DispatchReport with delivered, failed and suppressed candidates
        """
        report = DispatchReport()
        admitted: List[AlertCandidate] = []

        for candidate in alerts:
            if self._cooldown.try_acquire(candidate):
                admitted.append(candidate)
            else:
                report.suppressed.append(candidate)
                logger.debug(f"Suppressed by cooldown: {candidate.cooldown_key}")

        try:
            notifications = self._aggregator.aggregate(admitted)
        except Exception:
            for candidate in admitted:
                self._cooldown.release(candidate)
            raise

        try:
            results = await asyncio.gather(
                *(self._dispatcher.dispatch(n) for n in notifications),
                return_exceptions=True,
            )
        except BaseException:
            # Cancelled cycle; sends that never started hold reservations.
            logger.warning(f"Dispatch cancelled with {len(admitted)} candidate(s) admitted")
            for candidate in admitted:
                self._cooldown.release(candidate)
            raise

        for notification, result in zip(notifications, results):
            if isinstance(result, BaseException):
                logger.error(f"Unexpected dispatch error: {result}")
                for candidate in notification.candidates:
                    self._cooldown.release(candidate)
                result = False

            if result:
                report.delivered.extend(notification.candidates)
                report.notifications.append(notification)
                self._remember(notification.candidates, notification.is_escalation)
                if notification.is_escalation:
                    self._counters["escalations"] += 1
            else:
                report.failed.extend(notification.candidates)

        self._counters["dispatched"] += len(report.delivered)
        self._counters["failed"] += len(report.failed)
        self._counters["suppressed"] += len(report.suppressed)
        self._counters["notifications"] += len(report.notifications)

        logger.info(
            f"Dispatch complete: delivered={len(report.delivered)} "
            f"failed={len(report.failed)} suppressed={len(report.suppressed)} "
            f"notifications={len(report.notifications)}"
        )
        return report

    async def run_check(self, provider: MarketDataProvider) -> DispatchReport:
        """
        Full cycle: fetch, evaluate, dispatch.

        Provider errors propagate to the caller.
        """
        metrics = await provider.get_all_metrics()
        alerts = self.evaluate(metrics)
        return await self.dispatch_all(alerts)

    def _remember(self, candidates: Sequence[AlertCandidate], escalated: bool) -> None:
        sent_at = self._clock.now()
        for candidate in candidates:
            self._recent.append(SentRecord(
                cooldown_key=candidate.cooldown_key,
                severity=candidate.severity,
                observed_value=candidate.observed_value,
                sent_at=sent_at,
                escalated=escalated,
            ))

    # --------------------------------------------------------
    # INSPECTION
    # --------------------------------------------------------

    def recent_dispatches(self, limit: Optional[int] = None) -> List[SentRecord]:
        """Recently delivered alerts, newest first."""
        records = list(reversed(self._recent))
        if limit is not None:
            records = records[:limit]
        return records

    def stats(self) -> Dict[str, Any]:
        """Get engine statistics."""
        return {
            **self._counters,
            "cooldown_entries": len(self._cooldown),
            "cooldown_capacity": self._cooldown.capacity,
            "recent_dispatches": len(self._recent),
        }

    async def close(self) -> None:
        """Release transport resources."""
        await self._transport.close()


# ============================================================
# FACTORY
# ============================================================

def create_alert_engine(
    config: Optional[AlertEngineConfig] = None,
    transport: Optional[ChatTransport] = None,
    clock: Optional[ClockProtocol] = None,
) -> AlertEngine:
    """
    Build an engine from configuration.

    Opens the alert history store when history is enabled; a store
    that cannot be opened is logged and left out.
    """
    config = config or AlertEngineConfig.from_env()

    repository = None
    if config.history.enabled:
        try:
            repository = AlertHistoryRepository.from_url(config.history.database_url)
        except AlertSystemError as e:
            logger.warning(f"Alert history disabled: {e.message}")

    return AlertEngine(
        config=config,
        transport=transport,
        repository=repository,
        clock=clock,
    )
