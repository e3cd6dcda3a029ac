"""Error Hierarchy: typed, categorized exceptions for every bot failure mode.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Input from the network (updates, callback tokens, stored records) maps to an
      error value or a log line, never to an unhandled exception
    - to_response() produces the REST envelope; to_user_message() produces chat text
    - No internal details leaked in user-facing messages

Design Decisions:
    - Single hierarchy rooted at BacklogBotError: FastAPI handler and dispatcher
      catch one base class
    - ErrorContext as dataclass: observability fields travel with the error
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    DATABASE = "database"
    EXTERNAL_API = "external_api"
    AUTHENTICATION = "authentication"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Observability context attached to an error."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    user_id: int | None = None
    chat_id: int | None = None
    command: str | None = None
    user_message: str | None = None
    debug_info: dict[str, Any] | None = None
    retry_after_ms: int | None = None


class BacklogBotError(Exception):
    """Base exception for all bot errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "user_id": self.context.user_id,
                    "chat_id": self.context.chat_id,
                    "command": self.context.command,
                    "retry_after_ms": self.context.retry_after_ms,
                },
            }
        }

    def to_user_message(self) -> str:
        """Text shown to the chat user."""
        return f"Error occurred: {self.context.user_message or self.message}"


# ─── Inbound Errors ─────────────────────────────────────────────

class UnsupportedEventError(BacklogBotError):
    """Update kind the bot does not handle (stickers, edits, joins)."""
    def __init__(self, kind: str, context: ErrorContext | None = None):
        super().__init__(
            f"Unsupported update kind: {kind}",
            "UNSUPPORTED_EVENT", ErrorCategory.VALIDATION,
            ErrorSeverity.INFO, context, 400,
        )
        self.kind = kind


class InvalidTokenError(BacklogBotError):
    """Callback token could not be decoded (malformed, evicted or consumed)."""
    def __init__(self, reason: str, context: ErrorContext | None = None):
        super().__init__(
            f"Invalid callback token: {reason}",
            "INVALID_CALLBACK_TOKEN", ErrorCategory.VALIDATION,
            ErrorSeverity.INFO, context, 400,
        )
        self.reason = reason


class InvalidTransitionError(BacklogBotError):
    """No rule for (state, command). Prior state is kept."""
    def __init__(
        self, state: str, command: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"No transition for {command} in state {state}",
            "INVALID_TRANSITION", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, context, 409,
        )
        self.state = state
        self.command = command


class CorruptSessionRecordError(BacklogBotError):
    """Persisted session record is unreadable."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            f"Corrupt session record: {message}",
            "CORRUPT_SESSION_RECORD", ErrorCategory.DATABASE,
            ErrorSeverity.WARNING, context, 500,
        )


# ─── Collaborator Errors ────────────────────────────────────────

class CollaboratorError(BacklogBotError):
    """External collaborator failed (network, HTTP status, unparsable body)."""
    def __init__(
        self,
        message: str,
        code: str = "COLLABORATOR_ERROR",
        category: ErrorCategory = ErrorCategory.EXTERNAL_API,
        context: ErrorContext | None = None,
        http_status: int = 502,
    ):
        super().__init__(
            message, code, category, ErrorSeverity.ERROR, context, http_status,
        )


class TrackerAPIError(CollaboratorError):
    """YouTrack REST call failed."""
    def __init__(
        self,
        message: str,
        api_error_type: str,
        status_code: int | None = None,
        retry_after_ms: int | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.retry_after_ms = retry_after_ms
        super().__init__(
            message, "TRACKER_API_ERROR", context=ctx,
        )
        self.api_error_type = api_error_type
        self.status_code = status_code


class MessagingAPIError(CollaboratorError):
    """Telegram Bot API call failed."""
    def __init__(
        self,
        message: str,
        api_error_type: str,
        retry_after_ms: int | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.retry_after_ms = retry_after_ms
        super().__init__(
            message, "MESSAGING_API_ERROR", context=ctx,
        )
        self.api_error_type = api_error_type


class MissingCredentialsError(CollaboratorError):
    """No live tracker access token for the user."""
    def __init__(self, user_id: int, context: ErrorContext | None = None):
        ctx = context or ErrorContext(user_id=user_id)
        ctx.user_message = ctx.user_message or (
            "No valid access token found, use /login to sign in to YouTrack"
        )
        super().__init__(
            f"No access token for user {user_id}",
            "MISSING_CREDENTIALS", ErrorCategory.AUTHENTICATION,
            ctx, 401,
        )
        self.user_id = user_id

    def to_user_message(self) -> str:
        return self.context.user_message or self.message


# ─── Infrastructure Errors ──────────────────────────────────────

class DatabaseError(BacklogBotError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


# ─── Authentication Errors ──────────────────────────────────────

class UnknownLoginStateError(BacklogBotError):
    """OAuth redirect carries a state value no pending login issued (or already used)."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "Unknown or already used login state",
            "UNKNOWN_LOGIN_STATE", ErrorCategory.AUTHENTICATION,
            ErrorSeverity.WARNING, context, 400,
        )
