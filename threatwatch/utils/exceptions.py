"""
ThreatWatch Custom Exceptions
=============================

Exception hierarchy for ThreatWatch with error codes, context information,
and user-facing messages.
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for categorizing exceptions."""

    # Configuration errors (C001-C099)
    CONFIG_INVALID = "C001"
    CONFIG_MISSING = "C002"

    # Database errors (D001-D099)
    DATABASE_CONNECTION = "D001"
    DATABASE_SCHEMA = "D002"
    DATABASE_TRANSACTION = "D004"
    DATABASE_ERROR = "D006"

    # Feed ingestion errors (F001-F099)
    FEED_INVALID_URL = "F001"
    FEED_FETCH_TIMEOUT = "F002"
    FEED_PARSE_ERROR = "F003"
    FEED_NETWORK_ERROR = "F004"

    # Threat level errors (T001-T099)
    THREAT_FETCH_FAILED = "T001"
    THREAT_EXTRACTION_FAILED = "T002"
    THREAT_SCHEMA_INVALID = "T003"
    THREAT_UNAVAILABLE = "T004"

    # Validation errors (V001-V099)
    VALIDATION_REQUIRED_FIELD = "V001"
    VALIDATION_INVALID_FORMAT = "V002"
    VALIDATION_OUT_OF_RANGE = "V003"


class ThreatWatchError(Exception):
    """Base exception for all ThreatWatch errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        recoverable: bool = False,
    ):
        """Initialize ThreatWatch error.

        Args:
            message: Technical error message for logging
            error_code: Categorized error code
            context: Additional context information
            user_message: User-friendly error message
            recoverable: Whether the error is recoverable
        """
        super().__init__(message)
        self.error_code = error_code
        self.context = context or {}
        self.user_message = user_message or message
        self.recoverable = recoverable

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code.value if self.error_code else None,
            "error_message": str(self),
            "user_message": self.user_message,
            "context": self.context,
            "recoverable": self.recoverable,
        }

    def __str__(self) -> str:
        """String representation with error code."""
        if self.error_code:
            return f"[{self.error_code.value}] {super().__str__()}"
        return super().__str__()


def _passthrough(kwargs: Dict[str, Any], *consumed: str) -> Dict[str, Any]:
    return {k: v for k, v in kwargs.items() if k not in consumed}


class ConfigurationError(ThreatWatchError):
    """Configuration-related errors."""

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        context = kwargs.get("context", {})
        if config_key:
            context["config_key"] = config_key

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.CONFIG_INVALID),
            context=context,
            user_message=kwargs.get("user_message", f"Configuration error: {message}"),
            **_passthrough(kwargs, "context", "error_code", "user_message"),
        )


class DatabaseError(ThreatWatchError):
    """Database-related errors."""

    def __init__(self, message: str, query: Optional[str] = None, **kwargs):
        """Initialize database error.

        Args:
            message: Error message
            query: SQL query that caused the error
            **kwargs: Additional arguments for ThreatWatchError
        """
        context = kwargs.get("context", {})
        if query:
            context["query"] = query

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.DATABASE_CONNECTION),
            context=context,
            user_message=kwargs.get("user_message", "Database operation failed"),
            recoverable=kwargs.get("recoverable", True),
            **_passthrough(kwargs, "context", "error_code", "user_message", "recoverable"),
        )


class FeedError(ThreatWatchError):
    """Feed ingestion and parsing errors."""

    def __init__(self, message: str, feed_url: Optional[str] = None, **kwargs):
        context = kwargs.get("context", {})
        if feed_url:
            context["feed_url"] = feed_url

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.FEED_FETCH_TIMEOUT),
            context=context,
            user_message=kwargs.get(
                "user_message", f"Feed processing failed: {message}"
            ),
            recoverable=kwargs.get("recoverable", True),
            **_passthrough(kwargs, "context", "error_code", "user_message", "recoverable"),
        )


class FeedFetchError(FeedError):
    """Network-level failure while fetching a feed."""

    def __init__(self, message: str, feed_url: Optional[str] = None, **kwargs):
        kwargs.setdefault("error_code", ErrorCode.FEED_NETWORK_ERROR)
        super().__init__(message, feed_url=feed_url, **kwargs)


class ValidationError(ThreatWatchError):
    """Input validation errors."""

    def __init__(self, message: str, field_name: Optional[str] = None, **kwargs):
        context = kwargs.get("context", {})
        if field_name:
            context["field_name"] = field_name

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.VALIDATION_INVALID_FORMAT),
            context=context,
            user_message=kwargs.get("user_message", f"Invalid input: {message}"),
            **_passthrough(kwargs, "context", "error_code", "user_message"),
        )


class ThreatLevelError(ThreatWatchError):
    """Base class for threat level retrieval errors."""

    def __init__(self, message: str, source_url: Optional[str] = None, **kwargs):
        context = kwargs.get("context", {})
        if source_url:
            context["source_url"] = source_url

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.THREAT_FETCH_FAILED),
            context=context,
            user_message=kwargs.get(
                "user_message", "Unable to retrieve threat level at this time"
            ),
            recoverable=kwargs.get("recoverable", True),
            **_passthrough(kwargs, "context", "error_code", "user_message", "recoverable"),
        )


class ThreatLevelFetchError(ThreatLevelError):
    """The threat page could not be downloaded (after retries)."""

    def __init__(self, message: str, status: Optional[int] = None, **kwargs):
        context = kwargs.get("context", {})
        if status is not None:
            context["status"] = status
        kwargs["context"] = context
        super().__init__(message, **kwargs)
        self.status = status


class ThreatLevelParseError(ThreatLevelError):
    """The threat page was downloaded but its payload could not be understood.

    Structural mismatches are not retried.
    """

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("error_code", ErrorCode.THREAT_SCHEMA_INVALID)
        kwargs.setdefault("recoverable", False)
        super().__init__(message, **kwargs)


class ThreatLevelUnavailableError(ThreatLevelError):
    """No live, cached or persisted threat level could be produced."""

    def __init__(self, message: str = "Threat level unavailable", **kwargs):
        kwargs.setdefault("error_code", ErrorCode.THREAT_UNAVAILABLE)
        kwargs.setdefault("recoverable", False)
        super().__init__(message, **kwargs)


# Exception handling utilities


def is_retryable_error(exception: ThreatWatchError) -> bool:
    """Check if an error is worth retrying.

    Args:
        exception: ThreatWatch exception to check

    Returns:
        True if the error is potentially retryable
    """
    if not exception.recoverable:
        return False

    retryable_codes = {
        ErrorCode.FEED_NETWORK_ERROR,
        ErrorCode.FEED_FETCH_TIMEOUT,
        ErrorCode.THREAT_FETCH_FAILED,
        ErrorCode.DATABASE_CONNECTION,
    }

    return exception.error_code in retryable_codes


def get_user_friendly_message(exception: Exception) -> str:
    """Get user-friendly error message for any exception."""
    if isinstance(exception, ThreatWatchError):
        return exception.user_message

    return "An unexpected error occurred. Please try again later."
