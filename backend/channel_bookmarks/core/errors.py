"""Error Hierarchy — typed, categorized exceptions for all bookmark failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (400/404/409) are recoverable; infrastructure errors (503) are critical
    - to_response() produces the REST envelope
    - No internal details leaked in user-facing messages

Design Decisions:
    - Single hierarchy with BookmarkError base: FastAPI global handler catches all
    - ErrorContext as dataclass: rich observability without coupling to logging framework
    - SortOrderOutOfRangeError subclasses BookmarkValidationError: out-of-range is an
      invalid argument with a more specific code
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
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    INTERNAL = "internal"
    CONFLICT = "conflict"
    TIMEOUT = "timeout"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    channel_id: str | None = None
    bookmark_id: str | None = None
    user_message: str | None = None
    debug_info: dict[str, Any] | None = None
    retry_after_ms: int | None = None


class BookmarkError(Exception):
    """Base exception for all channel bookmark errors."""

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
                "message": self.context.user_message or self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "channel_id": self.context.channel_id,
                    "bookmark_id": self.context.bookmark_id,
                    "retry_after_ms": self.context.retry_after_ms,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class BookmarkValidationError(BookmarkError):
    """Bookmark input violates a field or Type/payload rule."""
    def __init__(
        self,
        message: str,
        field: str | None = None,
        context: ErrorContext | None = None,
        code: str = "VALIDATION_ERROR",
    ):
        super().__init__(
            message, code, ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field


class SortOrderOutOfRangeError(BookmarkValidationError):
    """Requested position lies outside [0, active_count - 1]."""
    def __init__(
        self, new_index: int, active_count: int, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Sort order {new_index} is out of range "
            f"(channel has {active_count} active bookmarks)",
            "sort_order", context, "SORT_ORDER_OUT_OF_RANGE",
        )
        self.new_index = new_index
        self.active_count = active_count


class BookmarkLimitError(BookmarkValidationError):
    """Channel already holds the maximum number of active bookmarks."""
    def __init__(self, limit: int, context: ErrorContext | None = None):
        super().__init__(
            f"Channel already has the maximum of {limit} bookmarks",
            None, context, "BOOKMARK_LIMIT_REACHED",
        )
        self.limit = limit


class ResourceNotFoundError(BookmarkError):
    """Requested resource does not exist (or is not in the stated channel)."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )


class AlreadyDeletedError(BookmarkError):
    """Mutation attempted on a tombstoned bookmark."""
    def __init__(self, bookmark_id: str, context: ErrorContext | None = None):
        super().__init__(
            f"Bookmark '{bookmark_id}' has already been deleted",
            "BOOKMARK_ALREADY_DELETED", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context, 409,
        )


class LockTimeoutError(BookmarkError):
    """Channel write section could not be acquired within the bound. Retryable."""
    def __init__(
        self, channel_id: str, timeout_seconds: float, context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.channel_id = channel_id
        ctx.retry_after_ms = int(timeout_seconds * 1000)
        super().__init__(
            f"Timed out after {timeout_seconds}s waiting for channel '{channel_id}'",
            "CHANNEL_LOCK_TIMEOUT", ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, ctx, 409,
        )


# ─── Infrastructure Errors (500-level) ──────────────────────────

class PositionInvariantError(BookmarkError):
    """A mutation would leave the channel's active positions non-dense."""
    def __init__(self, channel_id: str, positions: list[int]):
        super().__init__(
            f"Channel '{channel_id}' positions {positions} are not 0..{len(positions) - 1}",
            "POSITION_INVARIANT_VIOLATED", ErrorCategory.INTERNAL,
            ErrorSeverity.CRITICAL,
            ErrorContext(channel_id=channel_id, debug_info={"positions": positions}),
            500,
        )


class DatabaseError(BookmarkError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation
