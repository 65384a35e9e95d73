"""
Alert Engine - History Repository.

============================================================
PURPOSE
============================================================
Database operations for the alert audit trail.

RESPONSIBILITIES:
- Record attempted alerts with their sent flag
- List alerts still pending delivery
- Mark alerts as sent
- Query recent history

Every method runs in its own transaction and raises
PersistenceError on failure.

============================================================
"""

import logging
from datetime import timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update, desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from core.exceptions import PersistenceError
from database.engine import (
    create_database_engine,
    create_session_factory,
    initialize_database,
    transaction_scope,
)
from .models import AlertRecordModel
from .types import AlertCandidate


logger = logging.getLogger(__name__)


class AlertHistoryRepository:
    """
    Repository for alert history persistence.

    Handles all database operations for the alerts table.
    """

    def __init__(self, session_factory: sessionmaker):
        """
        Initialize repository.

        Args:
            session_factory: SQLAlchemy session factory
        """
        self._session_factory = session_factory

    @classmethod
    def from_url(cls, url: Optional[str] = None, echo: bool = False) -> "AlertHistoryRepository":
        """Create the engine, ensure tables exist and return a repository."""
        engine = create_database_engine(url, echo=echo)
        initialize_database(engine)
        return cls(create_session_factory(engine))

    # --------------------------------------------------------
    # WRITES
    # --------------------------------------------------------

    def record_alert(
        self,
        candidate: AlertCandidate,
        sent: bool = False,
        escalated: bool = False,
    ) -> int:
        """
        Save an alert.

        Returns:
            New record id
        """
        with transaction_scope(self._session_factory) as session:
            model = AlertRecordModel(
                metric_name=candidate.metric_id.value,
                alert_type=candidate.alert_type.value,
                severity=candidate.severity.value,
                threshold_name=candidate.threshold_name or None,
                threshold_value=candidate.threshold_value,
                current_value=candidate.observed_value,
                message=candidate.message,
                escalated=escalated,
                sent=sent,
                created_at=candidate.generated_at.astimezone(timezone.utc).replace(tzinfo=None),
            )
            session.add(model)
            session.flush()
            record_id = model.id

        logger.debug(
            f"Persist alerts: id={record_id} | key={candidate.cooldown_key} | sent={sent}"
        )
        return record_id

    def mark_alert_sent(self, alert_id: int) -> bool:
        """
        Flag an alert as delivered.

        Returns:
            False when no such alert exists
        """
        with transaction_scope(self._session_factory) as session:
            result = session.execute(
                update(AlertRecordModel)
                .where(AlertRecordModel.id == alert_id)
                .values(sent=True)
            )
            updated = result.rowcount

        if not updated:
            logger.warning(f"mark_alert_sent: alert {alert_id} not found")
        return bool(updated)

    # --------------------------------------------------------
    # QUERIES
    # --------------------------------------------------------

    def get_pending_alerts(self) -> List[Dict[str, Any]]:
        """Alerts not yet delivered, oldest first."""
        return self._query(
            select(AlertRecordModel)
            .where(AlertRecordModel.sent.is_(False))
            .order_by(AlertRecordModel.created_at, AlertRecordModel.id),
            "get_pending_alerts",
        )

    def get_recent_alerts(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Most recent alerts, newest first."""
        return self._query(
            select(AlertRecordModel)
            .order_by(desc(AlertRecordModel.created_at), desc(AlertRecordModel.id))
            .limit(limit),
            "get_recent_alerts",
        )

    def _query(self, statement, operation: str) -> List[Dict[str, Any]]:
        session = self._session_factory()
        try:
            rows = session.execute(statement).scalars().all()
            return [row.to_dict() for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"{operation} failed: {e}")
            raise PersistenceError(f"{operation} failed: {e}", operation=operation, cause=e) from e
        finally:
            session.close()
