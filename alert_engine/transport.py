"""
Alert Engine - Chat Transport.

============================================================
PURPOSE
============================================================
Delivers rendered messages to the recipient.

- ChatTransport: the interface the dispatcher depends on
- TelegramTransport: Telegram Bot API sendMessage over aiohttp
- TelegramRateLimiter: minute/hour send budget

PRINCIPLES:
- send() returns True/False, never raises
- Timeouts, HTTP errors and rate limiting are failures
- Failures are logged here; the dispatcher decides what to record

============================================================
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import Deque, List, Optional

import aiohttp

from core.clock import ClockProtocol, SystemClock
from core.exceptions import TransportError, TransportNotConfiguredError
from .config import TelegramConfig


logger = logging.getLogger(__name__)


# ============================================================
# TRANSPORT INTERFACE
# ============================================================

class ChatTransport(ABC):
    """Outbound chat channel."""

    @abstractmethod
    async def send(
        self,
        text: str,
        parse_mode: str = "HTML",
        disable_web_page_preview: bool = True,
    ) -> bool:
        """
        Send a message.

        Returns True only when the message was accepted.
        """
        pass

    async def close(self) -> None:
        """Release any held resources."""
        return None


# ============================================================
# RATE LIMITER
# ============================================================

class TelegramRateLimiter:
    """
    Sliding-window send budget per minute and per hour.

    Windows are measured on the clock's monotonic reading.
    """

    def __init__(
        self,
        max_per_minute: int = 20,
        max_per_hour: int = 100,
        clock: Optional[ClockProtocol] = None,
    ):
        self._max_per_minute = max_per_minute
        self._max_per_hour = max_per_hour
        self._clock = clock or SystemClock()
        self._sent: Deque[float] = deque()
        self._lock = asyncio.Lock()

    def _count_since(self, cutoff: float) -> int:
        return sum(1 for t in self._sent if t > cutoff)

    async def acquire(self) -> bool:
        """Take a send slot; False when either window is full."""
        async with self._lock:
            now = self._clock.monotonic()

            # Only the last hour matters for either window
            while self._sent and self._sent[0] <= now - 3600:
                self._sent.popleft()

            if self._count_since(now - 60) >= self._max_per_minute:
                return False
            if len(self._sent) >= self._max_per_hour:
                return False

            self._sent.append(now)
            return True

    @property
    def remaining_minute(self) -> int:
        """Sends left in the current minute."""
        used = self._count_since(self._clock.monotonic() - 60)
        return max(0, self._max_per_minute - used)


# ============================================================
# TELEGRAM TRANSPORT
# ============================================================

class TelegramTransport(ChatTransport):
    """
    Sends messages through the Telegram Bot API.

    Credentials come from arguments or the environment
    variables named in TelegramConfig.
    """

    BASE_URL = "https://api.telegram.org/bot"

    def __init__(
        self,
        config: Optional[TelegramConfig] = None,
        bot_token: Optional[str] = None,
        chat_ids: Optional[List[str]] = None,
        rate_limiter: Optional[TelegramRateLimiter] = None,
        session: Optional[aiohttp.ClientSession] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        """
        Initialize Telegram transport.

        Args:
            config: Telegram configuration
            bot_token: Bot token (overrides environment)
            chat_ids: Chat ids to deliver to (overrides environment)
            rate_limiter: Optional rate limiter
            session: Optional pre-built HTTP session
            clock: Clock for the default rate limiter
        """
        self._config = config or TelegramConfig()
        self._bot_token = bot_token or self._config.bot_token()
        self._chat_ids = list(chat_ids) if chat_ids else self._config.chat_ids()
        self._rate_limiter = rate_limiter or TelegramRateLimiter(
            max_per_minute=self._config.max_per_minute,
            max_per_hour=self._config.max_per_hour,
            clock=clock,
        )
        self._session = session

        if self.is_configured:
            logger.info(f"TelegramTransport enabled with {len(self._chat_ids)} chat(s)")
        else:
            logger.warning(
                f"TelegramTransport NOT configured - check "
                f"{self._config.bot_token_env} and {self._config.chat_id_env}"
            )

    @property
    def is_configured(self) -> bool:
        return bool(self._bot_token and self._chat_ids)

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._config.request_timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def send(
        self,
        text: str,
        parse_mode: str = "HTML",
        disable_web_page_preview: bool = True,
    ) -> bool:
        """Send to every configured chat; True only if all accepted it."""
        try:
            if not self.is_configured:
                raise TransportNotConfiguredError("Telegram bot token or chat id missing")

            if not await self._rate_limiter.acquire():
                logger.warning("Telegram rate limit reached, message not sent")
                return False

            for chat_id in self._chat_ids:
                await self._send_message(chat_id, text, parse_mode, disable_web_page_preview)
            return True

        except TransportNotConfiguredError as e:
            logger.warning(f"Telegram send skipped: {e.message}")
            return False
        except TransportError as e:
            logger.error(f"Telegram send failed: {e.message} {e.context}")
            return False

    async def _send_message(
        self,
        chat_id: str,
        text: str,
        parse_mode: str,
        disable_web_page_preview: bool,
    ) -> None:
        """Send message to a specific chat. Raises TransportError."""
        url = f"{self.BASE_URL}{self._bot_token}/sendMessage"
        payload = {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": parse_mode,
            "disable_web_page_preview": disable_web_page_preview,
        }

        try:
            session = await self._get_session()
            async with session.post(url, json=payload) as response:
                if response.status != 200:
                    body = await response.text()
                    raise TransportError(
                        f"Telegram API error: {body[:200]}",
                        status_code=response.status,
                        chat_id=chat_id,
                    )
        except asyncio.TimeoutError as e:
            raise TransportError("Telegram request timed out", chat_id=chat_id, cause=e)
        except aiohttp.ClientError as e:
            raise TransportError("Telegram request failed", chat_id=chat_id, cause=e)
