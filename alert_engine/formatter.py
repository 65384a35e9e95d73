"""
Alert Engine - Message Formatter.

============================================================
PURPOSE
============================================================
Renders notifications as Telegram HTML.

- Individual alert: headline, metric, value, recommendation
- Escalation: numbered list of every bundled alert
- All dynamic text is HTML-escaped

============================================================
"""

import html
from datetime import datetime
from typing import Optional

from .config import metric_display_name
from .types import AlertCandidate, AlertSeverity, EscalationBatch, Notification


class AlertFormatter:
    """
    Formats alerts for Telegram.

    Uses HTML formatting for clarity.
    """

    SEVERITY_ICONS = {
        AlertSeverity.LOW: "🟡",
        AlertSeverity.MEDIUM: "🟠",
        AlertSeverity.HIGH: "🔴",
    }

    TIME_FORMAT = "%Y-%m-%d %H:%M:%S UTC"

    @classmethod
    def format_value(cls, value: float) -> str:
        """Compact numeric rendering."""
        return f"{value:,.4f}".rstrip("0").rstrip(".")

    @classmethod
    def format_time(cls, at: datetime) -> str:
        return at.strftime(cls.TIME_FORMAT)

    @classmethod
    def format_candidate(cls, candidate: AlertCandidate) -> str:
        """Format a single alert."""
        icon = candidate.emoji or cls.SEVERITY_ICONS.get(candidate.severity, "📌")
        metric = metric_display_name(candidate.metric_id)

        lines = [
            f"{icon} <b>{html.escape(candidate.message)}</b>",
            "",
            f"📊 <b>Metric:</b> {html.escape(metric)}",
            f"💰 <b>Current Value:</b> {cls.format_value(candidate.observed_value)}",
            f"📈 <b>Recommendation:</b> {html.escape(candidate.recommendation)}",
            f"🏷 <code>[{candidate.severity.value}]</code>",
            "",
            f"<i>⏰ {cls.format_time(candidate.generated_at)}</i>",
        ]
        return "\n".join(lines)

    @classmethod
    def format_escalation(
        cls,
        batch: EscalationBatch,
        at: Optional[datetime] = None,
    ) -> str:
        """Format a composite notification for co-occurring HIGH alerts."""
        if at is None and batch.candidates:
            at = batch.candidates[0].generated_at

        lines = [
            "🚨 <b>URGENT MARKET ALERT</b> 🚨",
            "",
            f"<b>{len(batch)} high-urgency signals detected:</b>",
            "",
        ]

        for index, candidate in enumerate(batch.candidates, 1):
            icon = candidate.emoji or cls.SEVERITY_ICONS[AlertSeverity.HIGH]
            lines.append(f"{index}. {icon} {html.escape(candidate.message)}")
            lines.append(f"   ↳ {html.escape(candidate.recommendation)}")

        lines.append("")
        lines.append("⚠️ <b>IMMEDIATE ACTION REQUIRED</b> ⚠️")
        if at is not None:
            lines.append(f"<i>⏰ {cls.format_time(at)}</i>")

        return "\n".join(lines)

    @classmethod
    def format_notification(cls, notification: Notification) -> str:
        """Format any notification."""
        if notification.is_escalation:
            return cls.format_escalation(EscalationBatch(notification.candidates))
        return cls.format_candidate(notification.candidates[0])
