"""
Standardized exception hierarchy for the scoring engine
Provides rich context, consistent logging, and caller-friendly messages
"""

from datetime import datetime
from typing import Optional, Dict, Any
from uuid import uuid4
import logging

from dojo_scoring.utils.datetime_helpers import now_utc

logger = logging.getLogger(__name__)


class ScoringEngineError(Exception):
    """
    Base exception for all scoring engine errors

    Provides:
    - Automatic timestamping
    - Request ID for tracing
    - Caller-friendly messages
    - Structured context
    - Automatic logging

    Example:
        raise ScoringEngineError(
            message="Failed to append event",
            user_id="123456",
            operation="create_event",
            context={"event_type": "quiz_completed"}
        )
    """

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        request_id: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.request_id = request_id or str(uuid4())
        self.operation = operation
        self.context = context or {}
        self.cause = cause
        self.user_message = user_message or "An error occurred. Please try again."
        self.timestamp: datetime = now_utc()

        # Auto-log on creation
        self._log_error()

    def _log_error(self) -> None:
        """Log error with full context"""
        log_data = {
            "error_type": self.__class__.__name__,
            "error_message": self.message,  # Avoid conflict with logging's 'message' field
            "request_id": self.request_id,
            "user_id": self.user_id,
            "operation": self.operation,
            "error_context": self.context,
            "timestamp": self.timestamp.isoformat()
        }

        if self.cause:
            log_data["cause"] = str(self.cause)
            logger.error(f"{self.__class__.__name__}: {self.message}", extra=log_data, exc_info=self.cause)
        else:
            logger.error(f"{self.__class__.__name__}: {self.message}", extra=log_data)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for API responses"""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "user_message": self.user_message,
            "request_id": self.request_id,
            "timestamp": self.timestamp.isoformat()
        }


# ==========================================
# Validation Errors (Caller Input)
# ==========================================

class ValidationError(ScoringEngineError):
    """
    Raised when an ingestion request is malformed beyond recovery

    Examples:
    - Empty user id
    - Empty event type
    - Negative custom points

    Malformed metadata fields never raise; they are dropped individually.

    Example:
        raise ValidationError(
            message="user_id must not be empty",
            field="user_id",
            value=""
        )
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        self.field = field
        self.value = value
        super().__init__(
            message=message,
            user_message=f"Invalid {field}: {message}" if field else message,
            context={"field": field, "value": value, **(context or {})},
            **kwargs
        )


# ==========================================
# Storage Errors
# ==========================================

class StoreError(ScoringEngineError):
    """Event log, metrics store or snapshot store operation failed"""

    def __init__(
        self,
        message: str,
        store: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        self.store = store
        super().__init__(
            message=message,
            user_message="We're having trouble saving your progress. Please try again in a moment.",
            context={"store": store, **(context or {})},
            **kwargs
        )


# ==========================================
# Leaderboard Errors
# ==========================================

class LeaderboardRebuildError(ScoringEngineError):
    """A leaderboard refresh cycle failed; previous snapshots stay visible"""

    def __init__(
        self,
        message: str,
        leaderboard_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        self.leaderboard_id = leaderboard_id
        super().__init__(
            message=message,
            user_message="Leaderboards are temporarily out of date.",
            context={"leaderboard_id": leaderboard_id, **(context or {})},
            **kwargs
        )


# ==========================================
# Configuration Errors
# ==========================================

class ConfigurationError(ScoringEngineError):
    """Engine configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        self.config_key = config_key
        super().__init__(
            message=message,
            user_message="The scoring engine is not properly configured. Please contact support.",
            context={"config_key": config_key, **(context or {})},
            **kwargs
        )


def wrap_store_exception(
    error: Exception,
    operation: str,
    store: str,
    user_id: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None
) -> ScoringEngineError:
    """
    Wrap a backend exception raised by a store adapter

    Engine errors pass through untouched; everything else becomes a
    StoreError carrying the original as its cause.

    Args:
        error: Original exception
        operation: Operation being performed
        store: Which store failed (events, metrics, leaderboards)
        user_id: User ID if applicable
        context: Additional context

    Returns:
        ScoringEngineError subclass instance

    Example:
        try:
            await backend.append_many([event])
        except Exception as e:
            raise wrap_store_exception(e, operation="append", store="events")
    """
    if isinstance(error, ScoringEngineError):
        return error

    return StoreError(
        message=f"{operation} failed: {str(error)}",
        store=store,
        user_id=user_id,
        operation=operation,
        context=context,
        cause=error
    )
