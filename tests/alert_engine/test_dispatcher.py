"""
Tests for the Notification Dispatcher.

============================================================
PURPOSE
============================================================
- Successful send records every constituent candidate
- Failed or raising send records nothing
- History writes never change the outcome

============================================================
"""

import asyncio
import threading
from unittest.mock import MagicMock

import pytest

from core.exceptions import PersistenceError
from alert_engine.cooldown import CooldownStore
from alert_engine.dispatcher import NotificationDispatcher
from alert_engine.types import AlertType, EscalationBatch, MetricId, Notification


@pytest.fixture
def store(clock):
    return CooldownStore(clock=clock)


@pytest.fixture
def dispatcher(transport, store):
    return NotificationDispatcher(transport=transport, cooldown_store=store)


class TestDispatch:
    """Tests for NotificationDispatcher.dispatch."""

    @pytest.mark.asyncio
    async def test_success_records_dispatch(self, dispatcher, transport, store, make_candidate):
        candidate = make_candidate()

        assert await dispatcher.dispatch(candidate)

        transport.send.assert_awaited_once()
        kwargs = transport.send.call_args.kwargs
        assert kwargs["parse_mode"] == "HTML"
        assert kwargs["disable_web_page_preview"] is True
        assert candidate.cooldown_key in store
        assert not store.should_dispatch(candidate)

    @pytest.mark.asyncio
    async def test_failure_does_not_record(self, dispatcher, transport, store, make_candidate):
        transport.send.return_value = False
        candidate = make_candidate()

        assert not await dispatcher.dispatch(candidate)

        assert candidate.cooldown_key not in store
        assert store.should_dispatch(candidate)

    @pytest.mark.asyncio
    async def test_exception_is_failure(self, dispatcher, transport, store, make_candidate):
        transport.send.side_effect = RuntimeError("socket closed")
        candidate = make_candidate()

        assert not await dispatcher.dispatch(candidate)
        assert candidate.cooldown_key not in store

    @pytest.mark.asyncio
    async def test_failure_releases_reservation(self, dispatcher, transport, store, make_candidate):
        transport.send.return_value = False
        candidate = make_candidate()

        assert store.try_acquire(candidate)
        await dispatcher.dispatch(candidate)

        assert store.try_acquire(candidate)

    @pytest.mark.asyncio
    async def test_failure_keeps_prior_cooldown(self, dispatcher, transport, store, clock, make_candidate):
        """A failed retry leaves the earlier successful dispatch in force."""
        candidate = make_candidate()
        await dispatcher.dispatch(candidate)
        recorded_at = store.last_dispatched_at(candidate.cooldown_key)

        clock.advance(minutes=20)
        transport.send.return_value = False
        await dispatcher.dispatch(candidate)

        assert store.last_dispatched_at(candidate.cooldown_key) == recorded_at

    @pytest.mark.asyncio
    async def test_escalation_sends_once_records_each(self, dispatcher, transport, store, make_candidate):
        vix = make_candidate()
        put_call = make_candidate(
            metric_id=MetricId.PUT_CALL_RATIO, alert_type=AlertType.MAXIMUM_PESSIMISM,
        )
        notification = Notification.escalation(EscalationBatch((vix, put_call)))

        assert await dispatcher.dispatch(notification)

        transport.send.assert_awaited_once()
        assert "URGENT MARKET ALERT" in transport.send.call_args.args[0]
        assert vix.cooldown_key in store
        assert put_call.cooldown_key in store

    @pytest.mark.asyncio
    async def test_cancelled_send_releases_reservation(self, dispatcher, transport, store, make_candidate):
        async def slow_send(*args, **kwargs):
            await asyncio.sleep(10)
            return True

        transport.send.side_effect = slow_send
        candidate = make_candidate()
        assert store.try_acquire(candidate)

        task = asyncio.create_task(dispatcher.dispatch(candidate))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert candidate.cooldown_key not in store
        assert store.try_acquire(candidate)


class TestHistory:
    """Opportunistic writes to the alert history repository."""

    @pytest.mark.asyncio
    async def test_records_sent_flag(self, transport, store, make_candidate):
        repository = MagicMock()
        dispatcher = NotificationDispatcher(transport, store, repository=repository)
        candidate = make_candidate()

        await dispatcher.dispatch(candidate)
        repository.record_alert.assert_called_once_with(candidate, sent=True, escalated=False)

        transport.send.return_value = False
        repository.reset_mock()
        await dispatcher.dispatch(make_candidate(alert_type=AlertType.EARLY_CRASH))
        assert repository.record_alert.call_args.kwargs["sent"] is False

    @pytest.mark.asyncio
    async def test_repository_failure_is_ignored(self, transport, store, make_candidate):
        repository = MagicMock()
        repository.record_alert.side_effect = PersistenceError("disk full", operation="insert")
        dispatcher = NotificationDispatcher(transport, store, repository=repository)
        candidate = make_candidate()

        assert await dispatcher.dispatch(candidate)
        assert candidate.cooldown_key in store

    @pytest.mark.asyncio
    async def test_history_written_off_event_loop_thread(self, transport, store, make_candidate):
        threads = []
        repository = MagicMock()
        repository.record_alert.side_effect = lambda *a, **k: threads.append(threading.get_ident())
        dispatcher = NotificationDispatcher(transport, store, repository=repository)

        assert await dispatcher.dispatch(make_candidate())

        assert len(threads) == 1
        assert threads[0] != threading.get_ident()
