"""Global exception handlers for consistent error responses.

These handlers serve the dependency form of the limiter, where denials and
failures surface as exceptions instead of middleware branches. When a
Limiter is given, its own denied/error handlers and header emitter build
the responses, so both forms answer identically.

Design:
- QuotaExceeded → denied handler (429) with rate-limit headers
- IdentityResolutionError / StoreUnavailableError → error handler (500)
- Other AppError → 400 JSON
- Unexpected Exception → generic 500 JSON (safety net)
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from limiter.core.errors import (
    AppError,
    ConfigurationError,
    IdentityResolutionError,
    QuotaExceeded,
    StoreUnavailableError,
)
from limiter.core.logging import get_request_id
from limiter.services.engine import Limiter
from limiter.services.handlers import (
    DeniedHandler,
    ErrorHandler,
    HeaderEmitter,
    LoggingErrorHandler,
    RateLimitHeaderEmitter,
    TooManyRequestsHandler,
)

logger = logging.getLogger(__name__)


def build_quota_exceeded_handler(denied_handler: DeniedHandler, header_emitter: HeaderEmitter):
    """Return an exception handler answering ``QuotaExceeded`` like the middleware."""

    async def quota_exceeded_handler(request: Request, exc: QuotaExceeded) -> Response:
        if exc.result is None:
            # Raised without a decision attached; nothing to publish.
            return await app_error_handler(request, exc)
        quota_headers: dict[str, str] = {}
        header_emitter.emit(quota_headers, exc.result)
        response = await denied_handler.handle(request, exc.result)
        for name, value in quota_headers.items():
            response.headers.setdefault(name, value)
        return response

    return quota_exceeded_handler


def build_limiter_error_handler(error_handler: ErrorHandler):
    """Return an exception handler routing limiter faults to ``error_handler``."""

    async def limiter_error_handler(request: Request, exc: AppError) -> Response:
        return await error_handler.handle(request, exc)

    return limiter_error_handler


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle remaining domain errors with a consistent JSON format.

    - ConfigurationError → 500 (server misconfiguration)
    - Any other AppError → 400

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with error code, message, request id and details.
    """
    status_code = 500 if isinstance(exc, ConfigurationError) else 400

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_id": get_request_id(),
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }
    if exc.details:
        error_content["details"] = exc.details

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors.

    Logs the failure and returns a generic message; no stack traces or
    exception text reach the client.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app: FastAPI, limiter: Limiter | None = None) -> None:
    """Register all exception handlers with the FastAPI app.

    Args:
        app: FastAPI application instance.
        limiter: Limiter whose outcome handlers should answer denials and
            limiter faults; defaults are used when omitted.

    Example:
        >>> app = FastAPI()
        >>> setup_exception_handlers(app, limiter)
    """
    if limiter is not None:
        denied_handler, error_handler = limiter.denied_handler, limiter.error_handler
        header_emitter = limiter.header_emitter
    else:
        denied_handler, error_handler = TooManyRequestsHandler(), LoggingErrorHandler()
        header_emitter = RateLimitHeaderEmitter()

    limiter_error_handler = build_limiter_error_handler(error_handler)

    app.exception_handler(QuotaExceeded)(
        build_quota_exceeded_handler(denied_handler, header_emitter)
    )
    app.exception_handler(IdentityResolutionError)(limiter_error_handler)
    app.exception_handler(StoreUnavailableError)(limiter_error_handler)
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
