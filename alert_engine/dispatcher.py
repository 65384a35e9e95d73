"""
Alert Engine - Notification Dispatcher.

============================================================
PURPOSE
============================================================
Renders one notification and sends it through the chat
transport, then updates dedup state.

RULES:
- Exactly one transport send per notification
- Success: record_dispatch() for every constituent candidate
- Failure: release() the reservation, nothing recorded,
  so the condition stays eligible next cycle
- Transport exceptions count as failures, never propagate
- History writes are best-effort and never change the result

============================================================
"""

import asyncio
import logging
from typing import Optional, Type, Union

from core.exceptions import PersistenceError
from .cooldown import CooldownStore
from .formatter import AlertFormatter
from .repository import AlertHistoryRepository
from .transport import ChatTransport
from .types import AlertCandidate, Notification


logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """
    Sends notifications and records successful deliveries.
    """

    def __init__(
        self,
        transport: ChatTransport,
        cooldown_store: CooldownStore,
        formatter: Type[AlertFormatter] = AlertFormatter,
        repository: Optional[AlertHistoryRepository] = None,
        parse_mode: str = "HTML",
        disable_web_page_preview: bool = True,
    ):
        """
        Initialize dispatcher.

        Args:
            transport: Chat transport
            cooldown_store: Dedup state updated after delivery
            formatter: Message formatter
            repository: Optional alert history repository
            parse_mode: Rich-text mode passed to the transport
            disable_web_page_preview: Suppress link previews
        """
        self._transport = transport
        self._cooldown = cooldown_store
        self._formatter = formatter
        self._repository = repository
        self._parse_mode = parse_mode
        self._disable_preview = disable_web_page_preview

    async def dispatch(
        self,
        item: Union[AlertCandidate, Notification],
    ) -> bool:
        """
        Deliver a candidate or a notification.

        Returns:
            True if the transport accepted the message
        """
        notification = item
        if isinstance(item, AlertCandidate):
            notification = Notification.individual(item)

        success = False
        try:
            text = self._formatter.format_notification(notification)
            success = bool(await self._transport.send(
                text,
                parse_mode=self._parse_mode,
                disable_web_page_preview=self._disable_preview,
            ))
        except Exception as e:
            logger.error(
                f"Dispatch error for {self._describe(notification)}: {e}",
                exc_info=True,
            )
        finally:
            # Runs on cancellation too; unrecorded keys must not stay reserved.
            for candidate in notification.candidates:
                if success:
                    self._cooldown.record_dispatch(candidate)
                else:
                    self._cooldown.release(candidate)

        if success:
            logger.info(f"Dispatched {self._describe(notification)}")
        else:
            logger.error(f"Failed to dispatch {self._describe(notification)}")

        await self._record_history(notification, success)
        return success

    async def _record_history(self, notification: Notification, sent: bool) -> None:
        """Write to the audit trail off the event loop; failures are logged only."""
        if self._repository is None:
            return

        for candidate in notification.candidates:
            try:
                await asyncio.to_thread(
                    self._repository.record_alert,
                    candidate,
                    sent=sent,
                    escalated=notification.is_escalation,
                )
            except PersistenceError as e:
                logger.warning(f"Alert history write failed for {candidate.cooldown_key}: {e.message}")
            except Exception as e:
                logger.warning(f"Alert history write failed for {candidate.cooldown_key}: {e}")

    @staticmethod
    def _describe(notification: Notification) -> str:
        keys = ", ".join(str(c.cooldown_key) for c in notification.candidates)
        return f"{notification.kind.value} [{keys}]"
