"""
Alert Engine - Market Data Providers.

============================================================
PURPOSE
============================================================
Sources of metric snapshots.

A provider returns a mapping::

    {
        "vix": {"value": 42.0, "thresholds": {"warning": 20, ...}},
        "cape": {"value": None, "error": "upstream timeout"},
    }

Partial results are fine; per-metric errors are skipped by
the classifier.

============================================================
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Mapping, Union

from core.exceptions import MetricDataError


logger = logging.getLogger(__name__)


class MarketDataProvider(ABC):
    """Interface the engine pulls metrics from."""

    @abstractmethod
    async def get_all_metrics(self) -> Dict[str, Dict[str, Any]]:
        """Return metric id -> {value, error?, thresholds}."""
        pass


class StaticMarketDataProvider(MarketDataProvider):
    """Serves a fixed mapping. Useful for tests and replays."""

    def __init__(self, metrics: Mapping[str, Any]):
        self._metrics = dict(metrics)

    async def get_all_metrics(self) -> Dict[str, Dict[str, Any]]:
        return dict(self._metrics)


class JsonFileMarketDataProvider(MarketDataProvider):
    """
    Reads a metrics mapping from a JSON file.

    The file may hold the mapping directly or under a
    top-level "metrics" key.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    async def get_all_metrics(self) -> Dict[str, Dict[str, Any]]:
        try:
            with self._path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise MetricDataError(f"Snapshot file not found: {self._path}", cause=e) from e
        except (OSError, json.JSONDecodeError) as e:
            raise MetricDataError(f"Cannot read snapshot {self._path}: {e}", cause=e) from e

        if isinstance(data, dict) and isinstance(data.get("metrics"), dict):
            data = data["metrics"]

        if not isinstance(data, dict):
            raise MetricDataError(
                f"Snapshot {self._path} must contain a JSON object, got {type(data).__name__}"
            )

        logger.debug(f"Loaded {len(data)} metrics from {self._path}")
        return data
