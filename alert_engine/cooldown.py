"""
Alert Engine - Deduplication & Cooldown Store.

============================================================
PURPOSE
============================================================
Tracks when each (metric, alert type) pair was last
dispatched and decides whether a fresh candidate may go out.

COOLDOWN POLICY (base period C):
- HIGH:   allowed once elapsed > C / 2
- MEDIUM: allowed once elapsed > C
- LOW:    allowed once elapsed > 2 * C

STORAGE:
- Bounded, insertion-ordered map of key -> monotonic timestamp
- Oldest-inserted key evicted once capacity is exceeded
- Updating an existing key keeps its insertion position

CONCURRENCY:
- Every read-check-write runs under one lock
- try_acquire() reserves a key while its dispatch is in flight,
  so overlapping cycles cannot both pass the gate

============================================================
"""

import logging
import threading
from collections import OrderedDict
from typing import Dict, Optional, Set

from core.clock import ClockProtocol, SystemClock
from .config import CooldownConfig
from .types import AlertCandidate, AlertSeverity, CooldownKey


logger = logging.getLogger(__name__)


class CooldownStore:
    """
    In-memory dedup state owned by one engine.

    Operations never raise and never block beyond the
    internal lock.
    """

    def __init__(
        self,
        config: Optional[CooldownConfig] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        """
        Initialize cooldown store.

        Args:
            config: Cooldown policy
            clock: Clock providing monotonic readings
        """
        self._config = config or CooldownConfig()
        self._clock = clock or SystemClock()
        self._entries: "OrderedDict[CooldownKey, float]" = OrderedDict()
        self._in_flight: Set[CooldownKey] = set()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._config.capacity

    # --------------------------------------------------------
    # POLICY
    # --------------------------------------------------------

    def cooldown_window(self, severity: AlertSeverity) -> float:
        """Cooldown window in seconds for a severity."""
        multiplier = self._config.severity_multipliers.get(severity, 1.0)
        return self._config.base_cooldown_seconds * multiplier

    def _allowed(self, candidate: AlertCandidate, now: float) -> bool:
        """Policy check; caller holds the lock."""
        last = self._entries.get(candidate.cooldown_key)
        if not isinstance(last, (int, float)):
            return True

        elapsed = now - last
        return elapsed > self.cooldown_window(candidate.severity)

    # --------------------------------------------------------
    # GATE
    # --------------------------------------------------------

    def should_dispatch(self, candidate: AlertCandidate) -> bool:
        """Whether the candidate is outside its cooldown window."""
        with self._lock:
            return self._allowed(candidate, self._clock.monotonic())

    def try_acquire(self, candidate: AlertCandidate) -> bool:
        """
        Atomically check the cooldown and reserve the key.

        Returns False when the key is cooling down or another
        dispatch for the same key is already in flight. A
        successful acquire must be followed by record_dispatch()
        or release().
        """
        key = candidate.cooldown_key
        with self._lock:
            if key in self._in_flight:
                return False
            if not self._allowed(candidate, self._clock.monotonic()):
                return False
            self._in_flight.add(key)
            return True

    def release(self, candidate: AlertCandidate) -> None:
        """Drop a reservation without recording a dispatch."""
        with self._lock:
            self._in_flight.discard(candidate.cooldown_key)

    def record_dispatch(self, candidate: AlertCandidate) -> None:
        """Record a successful delivery at the current time."""
        key = candidate.cooldown_key
        with self._lock:
            self._in_flight.discard(key)
            self._entries[key] = self._clock.monotonic()

            while len(self._entries) > self._config.capacity:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Cooldown store full, evicted {evicted}")

    # --------------------------------------------------------
    # INSPECTION
    # --------------------------------------------------------

    def last_dispatched_at(self, key: CooldownKey) -> Optional[float]:
        """Monotonic timestamp of the last dispatch for a key."""
        with self._lock:
            return self._entries.get(key)

    def snapshot(self) -> Dict[str, float]:
        """Copy of the store, oldest first."""
        with self._lock:
            return {str(k): v for k, v in self._entries.items()}

    def clear(self) -> None:
        """Forget all dispatch history."""
        with self._lock:
            self._entries.clear()
            self._in_flight.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries
