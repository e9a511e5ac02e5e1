"""
Standardized exception hierarchy for the ReviewQuest progression engine
Provides rich context, consistent logging, and user-friendly error messages
"""

from datetime import datetime
from typing import Optional, Dict, Any
from uuid import uuid4
import logging

logger = logging.getLogger(__name__)


class ReviewQuestError(Exception):
    """
    Base exception for all progression engine errors

    Provides:
    - Automatic timestamping
    - Request ID for tracing
    - User-friendly messages
    - Structured context
    - Automatic logging

    Example:
        raise ReviewQuestError(
            message="Failed to award XP",
            user_id="uid-123",
            operation="award",
            context={"action_kind": "QUEST_COMPLETED"}
        )
    """

    log_level = logging.ERROR

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
        self.timestamp = datetime.utcnow()

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
            "error_context": self.context,  # Avoid conflict with logging's 'context'
            "timestamp": self.timestamp.isoformat()
        }

        if self.cause:
            log_data["cause"] = str(self.cause)
            logger.log(
                self.log_level,
                f"{self.__class__.__name__}: {self.message}",
                extra=log_data,
                exc_info=self.cause
            )
        else:
            logger.log(self.log_level, f"{self.__class__.__name__}: {self.message}", extra=log_data)

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

class ValidationError(ReviewQuestError):
    """
    Raised when caller input fails validation

    Examples:
    - Unknown action kind
    - Negative award amount

    Example:
        raise ValidationError(
            message="Unknown action kind",
            field="action_kind",
            value="QUEST_DELETED",
            user_id="uid-123"
        )
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs
    ):
        self.field = field
        self.value = value
        super().__init__(
            message=message,
            user_message=f"Invalid {field}: {message}" if field else message,
            context={"field": field, "value": value, **(kwargs.pop("context", None) or {})},
            **kwargs
        )


# ==========================================
# Database Errors
# ==========================================

class DatabaseError(ReviewQuestError):
    """
    Base class for database-related errors
    """
    pass


class ConnectionError(DatabaseError):
    """Database connection failed"""

    def __init__(self, message: str = "Database connection failed", **kwargs):
        super().__init__(
            message=message,
            user_message="We're having trouble connecting to the database. Please try again in a moment.",
            **kwargs
        )


class QueryError(DatabaseError):
    """Database query execution failed"""

    def __init__(
        self,
        message: str,
        query: Optional[str] = None,
        **kwargs
    ):
        self.query = query
        super().__init__(
            message=message,
            user_message="We encountered an issue saving your progress. Please try again.",
            context={"query": query, **(kwargs.pop("context", None) or {})},
            **kwargs
        )


class RecordNotFoundError(DatabaseError):
    """Requested record (e.g. the user context) does not exist"""

    def __init__(
        self,
        message: str,
        record_type: Optional[str] = None,
        record_id: Optional[str] = None,
        **kwargs
    ):
        self.record_type = record_type
        self.record_id = record_id
        super().__init__(
            message=message,
            user_message=f"{record_type or 'Record'} not found.",
            context={"record_type": record_type, "record_id": record_id, **(kwargs.pop("context", None) or {})},
            **kwargs
        )


# ==========================================
# Configuration Errors
# ==========================================

class ConfigurationError(ReviewQuestError):
    """System configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs
    ):
        self.config_key = config_key
        super().__init__(
            message=message,
            user_message="The system is not properly configured. Please contact support.",
            context={"config_key": config_key, **(kwargs.pop("context", None) or {})},
            **kwargs
        )


# ==========================================
# Progression Errors
# ==========================================

class ProgressionError(ReviewQuestError):
    """Base class for progression engine failures"""
    pass


class SnapshotValidationError(ProgressionError):
    """
    A persisted progression snapshot violates a structural invariant

    Raised by validate_snapshot(); the award path repairs the snapshot
    instead of surfacing this to the caller.
    """

    log_level = logging.WARNING

    def __init__(
        self,
        message: str,
        invariant: Optional[str] = None,
        **kwargs
    ):
        self.invariant = invariant
        super().__init__(
            message=message,
            user_message="Your progress data needed a repair. Please try again.",
            context={"invariant": invariant, **(kwargs.pop("context", None) or {})},
            **kwargs
        )


class ConcurrencyError(ProgressionError):
    """A conditional write lost the race against another writer"""

    log_level = logging.INFO

    def __init__(
        self,
        message: str = "Concurrent modification detected",
        expected_version: Optional[int] = None,
        **kwargs
    ):
        self.expected_version = expected_version
        super().__init__(
            message=message,
            user_message="Your progress was updated elsewhere. Please try again.",
            context={"expected_version": expected_version, **(kwargs.pop("context", None) or {})},
            **kwargs
        )


class ConflictExhaustedError(ProgressionError):
    """Award could not be committed within the retry bound"""

    def __init__(
        self,
        message: str,
        attempts: Optional[int] = None,
        action_kind: Optional[str] = None,
        **kwargs
    ):
        self.attempts = attempts
        self.action_kind = action_kind
        super().__init__(
            message=message,
            user_message="We couldn't save your XP right now. Please try again in a moment.",
            context={"attempts": attempts, "action_kind": action_kind, **(kwargs.pop("context", None) or {})},
            **kwargs
        )


# ==========================================
# Helper Functions
# ==========================================

def wrap_external_exception(
    error: Exception,
    operation: str,
    user_id: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None
) -> ReviewQuestError:
    """
    Wrap external exceptions (psycopg, etc.) into our exception hierarchy

    Args:
        error: Original exception
        operation: What operation was being performed
        user_id: User ID if applicable
        context: Additional context

    Returns:
        Appropriate ReviewQuestError subclass

    Example:
        try:
            await cur.execute(query)
        except psycopg.Error as e:
            raise wrap_external_exception(
                e,
                operation="conditional_write",
                user_id="uid-123",
                context={"expected_version": 4}
            )
    """
    # Import here to avoid circular dependencies
    import psycopg

    if isinstance(error, psycopg.OperationalError):
        return ConnectionError(
            message=f"Database connection failed: {str(error)}",
            user_id=user_id,
            operation=operation,
            context=context,
            cause=error
        )
    elif isinstance(error, psycopg.Error):
        return QueryError(
            message=f"Database query failed: {str(error)}",
            user_id=user_id,
            operation=operation,
            context=context,
            cause=error
        )

    # Generic fallback
    else:
        return ReviewQuestError(
            message=f"{operation} failed: {str(error)}",
            user_id=user_id,
            operation=operation,
            context=context,
            cause=error
        )
