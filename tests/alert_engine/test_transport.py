"""
Tests for the Telegram transport and rate limiter.

The aiohttp session is replaced with a stub so no network
traffic is generated.
"""

import asyncio
from unittest.mock import MagicMock

import aiohttp
import pytest

from alert_engine.config import TelegramConfig
from alert_engine.transport import TelegramRateLimiter, TelegramTransport


class FakeResponse:
    """Minimal async-context-manager response."""

    def __init__(self, status: int = 200, body: str = '{"ok": true}'):
        self.status = status
        self._body = body

    async def text(self) -> str:
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


def make_session(response=None, side_effect=None):
    session = MagicMock()
    session.closed = False
    session.post = MagicMock(return_value=response or FakeResponse(), side_effect=side_effect)
    return session


@pytest.fixture(autouse=True)
def no_telegram_env(monkeypatch):
    monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)
    monkeypatch.delenv("TELEGRAM_CHAT_ID", raising=False)


class TestTelegramRateLimiter:
    """Tests for TelegramRateLimiter."""

    @pytest.mark.asyncio
    async def test_allows_within_limit(self):
        limiter = TelegramRateLimiter(max_per_minute=5)
        for _ in range(5):
            assert await limiter.acquire()

    @pytest.mark.asyncio
    async def test_blocks_over_limit(self):
        limiter = TelegramRateLimiter(max_per_minute=2)
        assert await limiter.acquire()
        assert await limiter.acquire()
        assert not await limiter.acquire()
        assert limiter.remaining_minute == 0

    @pytest.mark.asyncio
    async def test_minute_window_slides_with_clock(self, clock):
        limiter = TelegramRateLimiter(max_per_minute=1, clock=clock)
        assert await limiter.acquire()
        assert not await limiter.acquire()

        clock.advance(seconds=61)

        assert limiter.remaining_minute == 1
        assert await limiter.acquire()

    @pytest.mark.asyncio
    async def test_hour_budget(self, clock):
        limiter = TelegramRateLimiter(max_per_minute=10, max_per_hour=2, clock=clock)
        assert await limiter.acquire()
        clock.advance(minutes=5)
        assert await limiter.acquire()
        clock.advance(minutes=5)
        assert not await limiter.acquire()

        clock.advance(minutes=51)
        assert await limiter.acquire()


class TestTelegramTransport:
    """Tests for TelegramTransport."""

    @pytest.mark.asyncio
    async def test_send_posts_html_without_preview(self):
        session = make_session()
        transport = TelegramTransport(bot_token="123:abc", chat_ids=["42"], session=session)

        assert await transport.send("<b>hi</b>")

        url = session.post.call_args.args[0]
        payload = session.post.call_args.kwargs["json"]
        assert url == "https://api.telegram.org/bot123:abc/sendMessage"
        assert payload == {
            "chat_id": "42",
            "text": "<b>hi</b>",
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }

    @pytest.mark.asyncio
    async def test_sends_to_every_chat(self):
        session = make_session()
        transport = TelegramTransport(bot_token="t", chat_ids=["1", "2"], session=session)

        assert await transport.send("x")
        assert session.post.call_count == 2

    @pytest.mark.asyncio
    async def test_http_error_is_failure(self):
        session = make_session(FakeResponse(400, '{"ok": false}'))
        transport = TelegramTransport(bot_token="t", chat_ids=["1"], session=session)

        assert not await transport.send("x")

    @pytest.mark.asyncio
    async def test_timeout_is_failure(self):
        session = make_session(side_effect=asyncio.TimeoutError())
        transport = TelegramTransport(bot_token="t", chat_ids=["1"], session=session)

        assert not await transport.send("x")

    @pytest.mark.asyncio
    async def test_client_error_is_failure(self):
        session = make_session(side_effect=aiohttp.ClientConnectionError("down"))
        transport = TelegramTransport(bot_token="t", chat_ids=["1"], session=session)

        assert not await transport.send("x")

    @pytest.mark.asyncio
    async def test_not_configured(self):
        session = make_session()
        transport = TelegramTransport(session=session)

        assert not transport.is_configured
        assert not await transport.send("x")
        session.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_rate_limited_is_failure(self):
        session = make_session()
        transport = TelegramTransport(
            bot_token="t",
            chat_ids=["1"],
            rate_limiter=TelegramRateLimiter(max_per_minute=1),
            session=session,
        )

        assert await transport.send("first")
        assert not await transport.send("second")
        assert session.post.call_count == 1

    def test_credentials_from_environment(self, monkeypatch):
        monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "env-token")
        monkeypatch.setenv("TELEGRAM_CHAT_ID", "100, 200")

        transport = TelegramTransport(TelegramConfig())

        assert transport.is_configured
        assert transport._chat_ids == ["100", "200"]
