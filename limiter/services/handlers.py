"""Outcome handlers invoked by the limiter.

Denial and failure go to separate handlers: a denied request is a policy
outcome, an error is an operational fault.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import MutableMapping
from typing import Callable

from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from limiter.core.logging import get_request_id
from limiter.services.quota import RateLimitResult

logger = logging.getLogger(__name__)

LIMIT_HEADER = "X-Rate-Limit-Limit"
RESET_HEADER = "X-Rate-Limit-Reset"
REMAINING_HEADER = "X-Rate-Limit-Remaining"

TOO_MANY_REQUESTS_BODY = "Too Many Requests"
INTERNAL_SERVER_ERROR_BODY = "Internal Server Error"


class HeaderEmitter(ABC):
    """Publishes quota metadata onto a response."""

    @abstractmethod
    def emit(self, headers: MutableMapping[str, str], result: RateLimitResult) -> None:
        raise NotImplementedError


class RateLimitHeaderEmitter(HeaderEmitter):
    """Writes ``X-Rate-Limit-Limit``, ``-Reset`` and ``-Remaining``."""

    def emit(self, headers: MutableMapping[str, str], result: RateLimitResult) -> None:
        headers[LIMIT_HEADER] = str(result.limit)
        headers[RESET_HEADER] = str(result.reset_at)
        headers[REMAINING_HEADER] = str(result.remaining)


class ErrorHandler(ABC):
    """Builds the response for identity-resolution and store failures."""

    @abstractmethod
    async def handle(self, request: Request, exc: Exception) -> Response:
        raise NotImplementedError


class LoggingErrorHandler(ErrorHandler):
    """Logs the failure and answers 500 without leaking details."""

    async def handle(self, request: Request, exc: Exception) -> Response:
        logger.error(
            "rate_limit.error",
            extra={
                "error_type": type(exc).__name__,
                "error_code": getattr(exc, "code", None),
                "error_msg": str(exc),
                "request_path": request.url.path,
                "request_method": request.method,
                "request_id": get_request_id(),
            },
        )
        return PlainTextResponse(INTERNAL_SERVER_ERROR_BODY, status_code=500)


class DeniedHandler(ABC):
    """Builds the response for a request that exceeded its quota."""

    @abstractmethod
    async def handle(self, request: Request, result: RateLimitResult) -> Response:
        raise NotImplementedError


class TooManyRequestsHandler(DeniedHandler):
    """Answers 429 with a fixed body and a ``Retry-After`` hint."""

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock

    async def handle(self, request: Request, result: RateLimitResult) -> Response:
        retry_after = result.retry_after_seconds(self._clock())
        return PlainTextResponse(
            TOO_MANY_REQUESTS_BODY,
            status_code=429,
            headers={"Retry-After": str(retry_after)},
        )
