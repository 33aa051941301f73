"""Error Hierarchy - the store's four failure kinds plus their REST envelope.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Store failures are classified into exactly four kinds:
      AlreadyExists, NotFound, WrongParams, StoreError (timeouts are a StoreError)
    - to_response() produces the REST envelope
    - No internal details (SQL, driver messages) leaked in user-facing messages

Design Decisions:
    - Single hierarchy with SubsError base: FastAPI global handler catches all
    - Errors carry their own http_status so the API layer maps without a lookup table
    - ErrorContext as dataclass: rich observability without coupling to logging
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
    RESOURCE_NOT_FOUND = "resource_not_found"
    CONFLICT = "conflict"
    DATABASE = "database"
    TIMEOUT = "timeout"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    subscription_id: int | None = None
    operation: str | None = None
    debug_info: dict[str, Any] | None = None


class SubsError(Exception):
    """Base exception for all subscription service errors."""

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
                    "subscription_id": self.context.subscription_id,
                    "operation": self.context.operation,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class AlreadyExistsError(SubsError):
    """Natural key (service, user_id, start_date) already taken."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "Subscription already exists",
            "ALREADY_EXISTS", ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, context, 409,
        )


class NotFoundError(SubsError):
    """No row matched the lookup, or a write touched zero rows."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "Subscription not found",
            "NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.WARNING, context, 404,
        )


class WrongParamsError(SubsError):
    """A filter dimension the operation requires was omitted."""
    def __init__(self, missing: list[str], context: ErrorContext | None = None):
        super().__init__(
            f"Wrong params: missing {', '.join(missing)}",
            "WRONG_PARAMS", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.missing = missing


# ─── Infrastructure Errors (500-level) ──────────────────────────

class StoreError(SubsError):
    """Persistence operation failed."""
    def __init__(
        self,
        message: str,
        operation: str,
        context: ErrorContext | None = None,
        code: str = "STORE_ERROR",
        category: ErrorCategory = ErrorCategory.DATABASE,
        http_status: int = 503,
    ):
        super().__init__(
            f"Store {operation} failed: {message}",
            code, category, ErrorSeverity.CRITICAL, context, http_status,
        )
        self.operation = operation


class StoreTimeoutError(StoreError):
    """Operation exceeded its deadline and was aborted."""
    def __init__(
        self, operation: str, timeout_seconds: float,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            f"deadline of {timeout_seconds:g}s exceeded", operation, context,
            code="STORE_TIMEOUT", category=ErrorCategory.TIMEOUT,
            http_status=504,
        )
        self.timeout_seconds = timeout_seconds
