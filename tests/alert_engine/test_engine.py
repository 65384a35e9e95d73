"""
Tests for the Alert Engine.

============================================================
PURPOSE
============================================================
End-to-end cycles through evaluate() and dispatch_all()
with a mocked chat transport and a mock clock.

============================================================
"""

import asyncio

import pytest

from alert_engine.config import AlertEngineConfig, HistoryConfig
from alert_engine.engine import AlertEngine
from alert_engine.providers import StaticMarketDataProvider
from alert_engine.types import AlertSeverity, AlertType, MetricId, MetricSnapshot


@pytest.fixture
def engine(transport, clock):
    return AlertEngine(transport=transport, clock=clock)


class TestEvaluate:
    """Tests for AlertEngine.evaluate."""

    def test_vix_scenario(self, engine):
        alerts = engine.evaluate({
            "vix": {"value": 42.0, "thresholds": {"warning": 20, "danger": 30, "panic": 40}},
        })

        assert len(alerts) == 1
        assert alerts[0].alert_type == AlertType.PANIC_BUYING_OPPORTUNITY
        assert alerts[0].severity == AlertSeverity.HIGH

    def test_skips_errored_metrics(self, engine, crash_snapshot):
        alerts = engine.evaluate(crash_snapshot)
        assert MetricId.CAPE not in {a.metric_id for a in alerts}

    def test_default_thresholds_applied(self, engine):
        """Entries without thresholds use the catalogue defaults."""
        alerts = engine.evaluate({"spy_rsi": {"value": 18}})
        assert alerts[0].alert_type == AlertType.EXTREME_OVERSOLD_RSI

    def test_idempotent(self, engine, crash_snapshot):
        snapshot = MetricSnapshot.from_provider(crash_snapshot)
        assert engine.evaluate(snapshot) == engine.evaluate(snapshot)

    def test_idempotent_for_raw_mapping(self, engine, crash_snapshot):
        assert engine.evaluate(crash_snapshot) == engine.evaluate(crash_snapshot)

    def test_evaluate_does_not_touch_cooldown(self, engine, crash_snapshot):
        engine.evaluate(crash_snapshot)
        assert len(engine.cooldown_store) == 0


class TestDispatchAll:
    """Tests for AlertEngine.dispatch_all."""

    @pytest.mark.asyncio
    async def test_two_high_alerts_one_composite(self, engine, transport, crash_snapshot):
        alerts = engine.evaluate(crash_snapshot)

        report = await engine.dispatch_all(alerts)

        transport.send.assert_awaited_once()
        assert "URGENT MARKET ALERT" in transport.send.call_args.args[0]
        assert len(report.notifications) == 1
        assert report.notifications[0].is_escalation
        assert report.delivered == alerts
        assert report.success

    @pytest.mark.asyncio
    async def test_repeat_within_window_suppressed(self, engine, transport, clock, crash_snapshot):
        await engine.dispatch_all(engine.evaluate(crash_snapshot))

        clock.advance(minutes=10)
        report = await engine.dispatch_all(engine.evaluate(crash_snapshot))

        assert transport.send.await_count == 1
        assert len(report.suppressed) == 2
        assert report.delivered == []

    @pytest.mark.asyncio
    async def test_repeat_after_high_window_allowed(self, engine, transport, clock, crash_snapshot):
        await engine.dispatch_all(engine.evaluate(crash_snapshot))

        clock.advance(minutes=20)
        report = await engine.dispatch_all(engine.evaluate(crash_snapshot))

        assert transport.send.await_count == 2
        assert len(report.delivered) == 2

    @pytest.mark.asyncio
    async def test_failed_dispatch_stays_eligible(self, engine, transport, crash_snapshot):
        transport.send.return_value = False
        alerts = engine.evaluate(crash_snapshot)

        report = await engine.dispatch_all(alerts)

        assert not report.success
        assert report.failed == alerts
        assert len(engine.cooldown_store) == 0

        transport.send.return_value = True
        retry = await engine.dispatch_all(alerts)
        assert retry.delivered == alerts

    @pytest.mark.asyncio
    async def test_cancelled_cycle_stays_eligible(self, engine, transport, crash_snapshot):
        """A cycle cancelled mid-send leaves nothing reserved or recorded."""
        async def slow_send(*args, **kwargs):
            await asyncio.sleep(10)
            return True

        transport.send.side_effect = slow_send
        alerts = engine.evaluate(crash_snapshot)

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(engine.dispatch_all(alerts), timeout=0.05)

        assert len(engine.cooldown_store) == 0

        transport.send.side_effect = None
        retry = await engine.dispatch_all(alerts)
        assert retry.delivered == alerts
        assert retry.suppressed == []

    @pytest.mark.asyncio
    async def test_one_failure_does_not_block_others(self, engine, transport):
        async def send(text, **kwargs):
            return "CAPE" not in text

        transport.send.side_effect = send
        alerts = engine.evaluate({
            "cape": {"value": 40, "thresholds": {"overvalued": 25, "bubble": 35}},
            "aaii_bulls": {"value": 60, "thresholds": {"danger": 55}},
        })

        report = await engine.dispatch_all(alerts)

        assert [c.metric_id for c in report.failed] == [MetricId.CAPE]
        assert [c.metric_id for c in report.delivered] == [MetricId.AAII_BULLS]

    @pytest.mark.asyncio
    async def test_duplicate_candidates_in_one_call(self, engine, transport, crash_snapshot):
        alerts = engine.evaluate(crash_snapshot)

        report = await engine.dispatch_all(alerts + alerts)

        assert len(report.delivered) == 2
        assert len(report.suppressed) == 2
        transport.send.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_single_high_is_individual(self, engine, transport):
        alerts = engine.evaluate({
            "vix": {"value": 42.0, "thresholds": {"warning": 20, "danger": 30, "panic": 40}},
        })

        report = await engine.dispatch_all(alerts)

        assert not report.notifications[0].is_escalation
        assert "URGENT" not in transport.send.call_args.args[0]


class TestRunCheckAndStats:
    """run_check, recent dispatches and statistics."""

    @pytest.mark.asyncio
    async def test_run_check(self, engine, transport, crash_snapshot):
        report = await engine.run_check(StaticMarketDataProvider(crash_snapshot))

        assert len(report.delivered) == 2
        transport.send.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_recent_dispatches_bounded_newest_first(self, transport, clock):
        config = AlertEngineConfig(history=HistoryConfig(recent_dispatch_limit=2))
        engine = AlertEngine(config=config, transport=transport, clock=clock)

        for metric, value in (("aaii_bulls", 60), ("cape", 40), ("dollar_index", 115)):
            await engine.dispatch_all(engine.evaluate({metric: {"value": value}}))
            clock.advance(seconds=1)

        recent = engine.recent_dispatches()
        assert [r.cooldown_key.metric_id for r in recent] == [MetricId.DOLLAR_INDEX, MetricId.CAPE]
        assert len(engine.recent_dispatches(limit=1)) == 1

    @pytest.mark.asyncio
    async def test_stats(self, engine, clock, crash_snapshot):
        await engine.dispatch_all(engine.evaluate(crash_snapshot))
        clock.advance(minutes=1)
        await engine.dispatch_all(engine.evaluate(crash_snapshot))

        stats = engine.stats()
        assert stats["cycles"] == 2
        assert stats["candidates"] == 4
        assert stats["dispatched"] == 2
        assert stats["suppressed"] == 2
        assert stats["failed"] == 0
        assert stats["escalations"] == 1
        assert stats["cooldown_entries"] == 2
