"""
Alert Engine - History ORM Models.

============================================================
ALERT HISTORY SCHEMA
============================================================

One row per alert the dispatcher attempted:
- metric, alert type, severity
- threshold crossed and observed value
- rendered message
- sent flag (False until delivery succeeds)

============================================================
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, Text, Float, Boolean, DateTime, Index,
)

from database.engine import Base


def utc_now():
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class AlertRecordModel(Base):
    """
    Alert history record.

    Audit trail only; dedup state lives in memory.
    """

    __tablename__ = "alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)

    metric_name = Column(String(64), nullable=False, index=True)
    alert_type = Column(String(64), nullable=False)
    severity = Column(String(16), nullable=False)

    threshold_name = Column(String(64), nullable=True)
    threshold_value = Column(Float, nullable=True)
    current_value = Column(Float, nullable=False)
    message = Column(Text, nullable=False)

    escalated = Column(Boolean, nullable=False, default=False)
    sent = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utc_now, index=True)

    __table_args__ = (
        Index("idx_alerts_metric_type", "metric_name", "alert_type"),
        Index("idx_alerts_pending", "sent", "created_at"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "metric_name": self.metric_name,
            "alert_type": self.alert_type,
            "severity": self.severity,
            "threshold_name": self.threshold_name,
            "threshold_value": self.threshold_value,
            "current_value": self.current_value,
            "message": self.message,
            "escalated": self.escalated,
            "sent": self.sent,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
