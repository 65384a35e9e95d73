"""
Tests for alert engine configuration and snapshot parsing.
"""

import json

import pytest

from core.exceptions import InvalidConfigError, MetricDataError
from alert_engine.config import AlertEngineConfig, CooldownConfig, DEFAULT_METRICS
from alert_engine.families import get_default_registry
from alert_engine.providers import JsonFileMarketDataProvider
from alert_engine.types import AlertSeverity, MetricId, MetricSnapshot


ENV_KEYS = (
    "ALERT_COOLDOWN_MINUTES",
    "ALERT_COOLDOWN_CAPACITY",
    "CHECK_INTERVAL_MINUTES",
    "ALERT_ESCALATION_ENABLED",
    "ALERT_HISTORY_ENABLED",
    "DATABASE_URL",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


class TestAlertEngineConfig:
    """Tests for AlertEngineConfig."""

    def test_defaults(self):
        config = AlertEngineConfig()
        config.validate()

        assert config.cooldown.base_cooldown_seconds == 1800
        assert config.cooldown.capacity == 100
        assert config.cooldown.severity_multipliers[AlertSeverity.HIGH] == 0.5
        assert config.escalation.enabled
        assert config.check_interval_minutes == 30

    def test_catalogue_covers_every_metric(self):
        registry = get_default_registry()
        for metric_id in MetricId:
            assert metric_id in DEFAULT_METRICS
            assert metric_id in registry

    def test_from_env(self, clean_env):
        clean_env.setenv("ALERT_COOLDOWN_MINUTES", "10")
        clean_env.setenv("ALERT_COOLDOWN_CAPACITY", "5")
        clean_env.setenv("ALERT_ESCALATION_ENABLED", "false")
        clean_env.setenv("ALERT_HISTORY_ENABLED", "yes")
        clean_env.setenv("DATABASE_URL", "sqlite:///:memory:")

        config = AlertEngineConfig.from_env()

        assert config.cooldown.base_cooldown_seconds == 600
        assert config.cooldown.capacity == 5
        assert not config.escalation.enabled
        assert config.history.enabled
        assert config.history.database_url == "sqlite:///:memory:"

    def test_from_env_defaults(self, clean_env):
        config = AlertEngineConfig.from_env()
        assert config.cooldown.base_cooldown_seconds == 1800
        assert not config.history.enabled

    def test_from_env_invalid_number(self, clean_env):
        clean_env.setenv("ALERT_COOLDOWN_MINUTES", "soon")
        with pytest.raises(InvalidConfigError):
            AlertEngineConfig.from_env()

    def test_from_env_invalid_bool(self, clean_env):
        clean_env.setenv("ALERT_ESCALATION_ENABLED", "maybe")
        with pytest.raises(InvalidConfigError):
            AlertEngineConfig.from_env()

    @pytest.mark.parametrize("raw", ["nan", "inf", "-inf"])
    def test_from_env_rejects_non_finite_cooldown(self, clean_env, raw):
        clean_env.setenv("ALERT_COOLDOWN_MINUTES", raw)
        with pytest.raises(InvalidConfigError):
            AlertEngineConfig.from_env()

    def test_validate_rejects_nan_cooldown(self):
        config = AlertEngineConfig(cooldown=CooldownConfig(base_cooldown_seconds=float("nan")))
        with pytest.raises(InvalidConfigError):
            config.validate()

    def test_validate_rejects_non_finite_multiplier(self):
        cooldown = CooldownConfig()
        cooldown.severity_multipliers[AlertSeverity.LOW] = float("inf")
        with pytest.raises(InvalidConfigError):
            AlertEngineConfig(cooldown=cooldown).validate()

    def test_validate_rejects_zero_capacity(self):
        config = AlertEngineConfig(cooldown=CooldownConfig(capacity=0))
        with pytest.raises(InvalidConfigError):
            config.validate()


class TestMetricSnapshot:
    """Tests for MetricSnapshot.from_provider."""

    def test_thresholds_from_config_block(self):
        snapshot = MetricSnapshot.from_provider({
            "vix": {"value": 25, "config": {"thresholds": {"warning": 20}}},
        })
        assert snapshot.get(MetricId.VIX).thresholds.get("warning") == 20

    def test_unknown_metrics_skipped(self):
        snapshot = MetricSnapshot.from_provider({"bitcoin": {"value": 1}, "vix": {"value": 12}})
        assert [r.metric_id for r in snapshot] == [MetricId.VIX]

    def test_bad_entries_become_unavailable(self):
        snapshot = MetricSnapshot.from_provider({
            "vix": "oops",
            "cape": {"value": "n/a"},
            "spy_rsi": {"value": 0, "error": "stale"},
            "put_call_ratio": {"value": True},
        })

        assert len(snapshot) == 4
        assert not any(r.is_available for r in snapshot)

    def test_non_mapping_rejected(self):
        with pytest.raises(MetricDataError):
            MetricSnapshot.from_provider(["vix", 42])


class TestJsonFileProvider:
    """Tests for JsonFileMarketDataProvider."""

    @pytest.mark.asyncio
    async def test_reads_mapping(self, tmp_path):
        path = tmp_path / "metrics.json"
        path.write_text(json.dumps({"metrics": {"vix": {"value": 42.0}}}))

        metrics = await JsonFileMarketDataProvider(path).get_all_metrics()

        assert metrics == {"vix": {"value": 42.0}}

    @pytest.mark.asyncio
    async def test_invalid_json(self, tmp_path):
        path = tmp_path / "metrics.json"
        path.write_text("{not json")

        with pytest.raises(MetricDataError):
            await JsonFileMarketDataProvider(path).get_all_metrics()

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        with pytest.raises(MetricDataError):
            await JsonFileMarketDataProvider(tmp_path / "absent.json").get_all_metrics()
