"""Error Hierarchy — typed, categorized exceptions for every coupon service failure mode.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (400-level) are raised before storage is touched
    - Infrastructure errors (500-level) leave the dataset file in its last valid state
    - to_response() produces the REST envelope; raw tokens never appear in it

Design Decisions:
    - Single hierarchy with CouponError base: the FastAPI global handler catches all
    - ErrorContext as dataclass: observability fields without coupling to logging
"""

from dataclasses import dataclass, field
from enum import Enum
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
    STORAGE = "storage"
    CACHE = "cache"
    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    CONFIGURATION = "configuration"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Context carried by an error for logs and response envelopes."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    token_hash: str | None = None
    offer_id: str | None = None
    cache_key: str | None = None
    user_message: str | None = None


class CouponError(Exception):
    """Base exception for all coupon service errors."""

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
                    "token_hash": self.context.token_hash,
                    "offer_id": self.context.offer_id,
                    "cache_key": self.context.cache_key,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class ValidationError(CouponError):
    """Malformed input, rejected before touching storage."""
    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field


class NotFoundError(CouponError):
    """Requested resource does not exist."""
    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        code: str = "RESOURCE_NOT_FOUND",
        context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            code, ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )
        self.resource_type = resource_type


class TokenNotFoundError(NotFoundError):
    """Redemption or lookup of a token that was never issued."""
    def __init__(self, token_hash: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.token_hash = token_hash
        ctx.user_message = "Invalid coupon"
        super().__init__("Token", token_hash, "TOKEN_NOT_FOUND", ctx)


class AuthenticationError(CouponError):
    """Missing or wrong credential for a gated operation."""
    def __init__(self, message: str = "Unauthorized", context: ErrorContext | None = None):
        super().__init__(
            message, "UNAUTHORIZED", ErrorCategory.AUTHENTICATION,
            ErrorSeverity.WARNING, context, 401,
        )


class RateLimitError(CouponError):
    """Too many requests from one client inside the current window."""
    def __init__(self, retry_after: int, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.user_message = "Too many admin requests. Try again later."
        super().__init__(
            f"Rate limit exceeded, retry after {retry_after}s",
            "RATE_LIMITED", ErrorCategory.RATE_LIMIT,
            ErrorSeverity.WARNING, ctx, 429,
        )
        self.retry_after = retry_after


# ─── Infrastructure Errors (500-level) ──────────────────────────

class StorageError(CouponError):
    """Reading or writing the dataset file failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Storage {operation} failed: {message}",
            "STORAGE_ERROR", ErrorCategory.STORAGE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class CacheLoadError(CouponError):
    """A read-through loader failed; shared by every caller of that load."""
    def __init__(self, key: str, message: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.cache_key = key
        super().__init__(
            f"Cache load for '{key}' failed: {message}",
            "CACHE_LOAD_ERROR", ErrorCategory.CACHE,
            ErrorSeverity.ERROR, ctx, 503,
        )
        self.key = key


class ConfigurationError(CouponError):
    """A required setting is missing for the requested operation."""
    def __init__(self, setting: str, context: ErrorContext | None = None):
        super().__init__(
            f"{setting} not configured",
            "NOT_CONFIGURED", ErrorCategory.CONFIGURATION,
            ErrorSeverity.CRITICAL, context, 500,
        )
        self.setting = setting
