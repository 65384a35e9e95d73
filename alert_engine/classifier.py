"""
Alert Engine - Threshold Classifier.

============================================================
PURPOSE
============================================================
Maps (metric, value, ThresholdSet) to at most one
AlertCandidate per metric.

PRINCIPLES:
- Pure function of its inputs (clock only stamps generated_at)
- Most-severe tier first, first match wins
- Missing data / missing thresholds yield no candidates
- One metric's bad data never affects another metric

============================================================
"""

import logging
from datetime import datetime
from typing import List, Optional

from core.clock import ClockProtocol, SystemClock
from .families import FamilyRegistry, get_default_registry
from .types import AlertCandidate, MetricReading, MetricSnapshot


logger = logging.getLogger(__name__)


class ThresholdClassifier:
    """
    Classifies metric readings against tiered thresholds.

    The registry supplies the ordered tier table for each
    metric; this class only walks it.
    """

    def __init__(
        self,
        registry: Optional[FamilyRegistry] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        """
        Initialize classifier.

        Args:
            registry: Metric family registry (defaults to built-ins)
            clock: Clock used to stamp candidates
        """
        self._registry = registry if registry is not None else get_default_registry()
        self._clock = clock or SystemClock()

    @property
    def registry(self) -> FamilyRegistry:
        return self._registry

    def classify(
        self,
        reading: MetricReading,
        generated_at: Optional[datetime] = None,
    ) -> List[AlertCandidate]:
        """
        Classify one reading.

        Returns an empty list when the reading is unavailable,
        has no thresholds, belongs to an unregistered family,
        or crosses no tier.
        """
        if not reading.is_available:
            logger.debug(
                f"Skipping {reading.metric_id.value}: {reading.error or 'no value'}"
            )
            return []

        if not reading.thresholds:
            logger.debug(f"Skipping {reading.metric_id.value}: no thresholds")
            return []

        family = self._registry.get(reading.metric_id)
        if family is None:
            logger.debug(f"Skipping {reading.metric_id.value}: no registered family")
            return []

        value = reading.value
        for rule in family:
            boundary = reading.thresholds.get(rule.threshold)
            if boundary is None:
                continue

            if rule.matches(value, boundary):
                return [AlertCandidate(
                    metric_id=reading.metric_id,
                    alert_type=rule.alert_type,
                    severity=rule.severity,
                    message=rule.render(value, boundary),
                    recommendation=rule.recommendation,
                    observed_value=value,
                    generated_at=generated_at or self._clock.now(),
                    emoji=rule.emoji,
                    threshold_name=rule.threshold,
                    threshold_value=boundary,
                )]

        return []

    def classify_snapshot(
        self,
        snapshot: MetricSnapshot,
    ) -> List[AlertCandidate]:
        """
        Classify every reading in a snapshot.

        Candidates are returned in snapshot order and stamped with
        the snapshot time, so identical snapshots classify identically.
        A failure on one metric is logged and does not stop the others.
        """
        generated_at = snapshot.captured_at
        candidates: List[AlertCandidate] = []

        for reading in snapshot:
            try:
                candidates.extend(self.classify(reading, generated_at=generated_at))
            except Exception as e:
                logger.error(f"Error classifying {reading.metric_id.value}: {e}")

        return candidates
