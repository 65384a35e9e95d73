"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines all custom exceptions for the alert system.

- Provides clear exception hierarchy
- Enables specific error handling at the engine's edges
- Includes context for debugging

============================================================
EXCEPTION HIERARCHY
============================================================
AlertSystemError (base)
├── ConfigurationError
│   └── InvalidConfigError
├── MetricDataError
├── TransportError
│   └── TransportNotConfiguredError
└── PersistenceError

Missing metric data and missing thresholds are NOT errors:
the classifier treats them as "nothing to alert".

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================
# ERROR CLASSIFICATION
# ============================================================

class ErrorClassification(Enum):
    """Classification of error recoverability."""

    RECOVERABLE = "recoverable"
    """Error can be recovered from automatically."""

    TRANSIENT = "transient"
    """Temporary error, retry may succeed."""

    NON_RECOVERABLE = "non_recoverable"
    """Permanent error, requires intervention."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class AlertSystemError(Exception):
    """
    Base exception for all alert system errors.

    All exceptions carry:
    - context: for debugging
    - classification: for retry decisions
    - timestamp: when the error occurred
    """

    default_classification: ErrorClassification = ErrorClassification.RECOVERABLE

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        classification: Optional[ErrorClassification] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.context = context or {}
        self.classification = classification or self.default_classification
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    @property
    def is_recoverable(self) -> bool:
        """Check if error is recoverable."""
        return self.classification in (
            ErrorClassification.RECOVERABLE,
            ErrorClassification.TRANSIENT,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging/storage."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "classification": self.classification.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(AlertSystemError):
    """Error in configuration."""

    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        actual_value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if config_key:
            context["config_key"] = config_key
        if actual_value is not None:
            context["actual_value"] = str(actual_value)[:100]

        super().__init__(message, context=context, **kwargs)


class InvalidConfigError(ConfigurationError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid configuration for {key}: {reason}",
            config_key=key,
            actual_value=value,
            context={"reason": reason},
        )


# ============================================================
# DATA ERRORS
# ============================================================

class MetricDataError(AlertSystemError):
    """Metric input could not be interpreted."""

    def __init__(
        self,
        message: str,
        metric_id: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if metric_id:
            context["metric_id"] = metric_id

        super().__init__(message, context=context, **kwargs)


# ============================================================
# TRANSPORT ERRORS
# ============================================================

class TransportError(AlertSystemError):
    """Chat transport could not deliver a message."""

    default_classification = ErrorClassification.TRANSIENT

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        chat_id: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if status_code is not None:
            context["status_code"] = status_code
        if chat_id:
            context["chat_id"] = chat_id

        super().__init__(message, context=context, **kwargs)


class TransportNotConfiguredError(TransportError):
    """Transport credentials are missing."""

    default_classification = ErrorClassification.NON_RECOVERABLE


# ============================================================
# PERSISTENCE ERRORS
# ============================================================

class PersistenceError(AlertSystemError):
    """Alert history store operation failed."""

    default_classification = ErrorClassification.TRANSIENT

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if operation:
            context["operation"] = operation

        super().__init__(message, context=context, **kwargs)


__all__ = [
    "ErrorClassification",
    "AlertSystemError",
    "ConfigurationError",
    "InvalidConfigError",
    "MetricDataError",
    "TransportError",
    "TransportNotConfiguredError",
    "PersistenceError",
]
