"""
Alert Engine - Escalation Aggregator.

============================================================
PURPOSE
============================================================
Turns the candidates that passed dedup into notifications.

RULES:
- HIGH candidates from >= 2 distinct metrics -> one ESCALATION
  notification holding all of them, in classifier order
- A lone HIGH candidate -> INDIVIDUAL notification
- MEDIUM / LOW candidates -> one INDIVIDUAL notification each
- Every candidate appears in exactly one notification

============================================================
"""

import logging
from typing import List, Optional, Sequence

from .config import EscalationConfig
from .types import AlertCandidate, EscalationBatch, Notification


logger = logging.getLogger(__name__)


class EscalationAggregator:
    """Partitions a cycle's candidates into notifications."""

    def __init__(self, config: Optional[EscalationConfig] = None):
        self._config = config or EscalationConfig()

    def build_batch(
        self,
        candidates: Sequence[AlertCandidate],
    ) -> Optional[EscalationBatch]:
        """
        Collect HIGH candidates into a batch when they qualify.

        Returns None when escalation is disabled or fewer than
        min_distinct_metrics metrics are involved.
        """
        if not self._config.enabled:
            return None

        high = [c for c in candidates if c.is_high]
        distinct_metrics = {c.metric_id for c in high}

        if len(distinct_metrics) < self._config.min_distinct_metrics:
            return None

        return EscalationBatch(candidates=tuple(high))

    def aggregate(
        self,
        candidates: Sequence[AlertCandidate],
    ) -> List[Notification]:
        """
        Build the notifications for one cycle.

        The escalation (if any) comes first, followed by the
        individual notifications in classifier order.
        """
        batch = self.build_batch(candidates)
        notifications: List[Notification] = []

        if batch is not None:
            logger.info(
                f"Escalating {len(batch)} HIGH alerts: "
                f"{', '.join(m.value for m in batch.metric_ids)}"
            )
            notifications.append(Notification.escalation(batch))
            rest = [c for c in candidates if not c.is_high]
        else:
            rest = list(candidates)

        notifications.extend(Notification.individual(c) for c in rest)
        return notifications
