"""Error Handlers — map coupon errors and request validation failures to JSON envelopes.

Invariants:
    - Every error body has the same {"error": {code, message, category, severity}} shape
    - 503 responses (storage, cache loads) and 429 rate limits carry Retry-After
    - Log level follows severity: client mistakes are warnings, infrastructure is error
    - Unhandled exceptions never leak internal details
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from coupon_server.core.errors import (
    CouponError, ErrorCategory, ErrorSeverity, RateLimitError, ValidationError,
)

logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = "5"

_LOG_LEVELS = {
    ErrorSeverity.INFO: logging.INFO,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.ERROR: logging.WARNING,
    ErrorSeverity.CRITICAL: logging.ERROR,
}


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CouponError, coupon_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)


async def coupon_error_handler(request: Request, exc: CouponError) -> JSONResponse:
    level = logging.ERROR if exc.http_status >= 500 else _LOG_LEVELS[exc.severity]
    logger.log(
        level,
        f"{exc.code} on {request.method} {request.url.path}: {exc.message}",
        extra={
            "error_code": exc.code,
            "path": request.url.path,
            "token_hash": exc.context.token_hash,
            "cache_key": exc.context.cache_key,
        },
    )
    headers = None
    if isinstance(exc, RateLimitError):
        headers = {"Retry-After": str(exc.retry_after)}
    elif exc.http_status == status.HTTP_503_SERVICE_UNAVAILABLE:
        headers = {"Retry-After": RETRY_AFTER_SECONDS}
    return JSONResponse(
        status_code=exc.http_status, content=exc.to_response(), headers=headers,
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError,
) -> JSONResponse:
    """Malformed bodies/queries render like a domain ValidationError, plus details."""
    details = [
        {
            "field": ".".join(str(loc) for loc in e["loc"]),
            "message": e["msg"],
            "type": e["type"],
        }
        for e in exc.errors()
    ]
    field = details[0]["field"] if details else "request"
    logger.warning(
        f"Invalid request on {request.url.path}: {field}",
        extra={"error_code": "VALIDATION_ERROR", "path": request.url.path},
    )
    body = ValidationError("Invalid request data", field).to_response()
    body["error"]["details"] = details
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}: {exc}",
        exc_info=True,
        extra={"error_code": "INTERNAL_ERROR", "path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "category": ErrorCategory.INTERNAL.value,
                "severity": ErrorSeverity.CRITICAL.value,
            },
        },
    )
