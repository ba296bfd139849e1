"""HTTP middleware for request ID propagation and correlation.

Every request/response pair carries a correlation id so that admission
decisions logged by the limiter can be tied back to the request that
triggered them.

Usage:
    app.middleware("http")(build_request_id_middleware(cfg.log.request_id_header))
"""

from __future__ import annotations

import time
import uuid
from typing import Awaitable, Callable

from fastapi import Request, Response

from limiter.core.config import DEFAULT_REQUEST_ID_HEADER
from limiter.core.logging import clear_request_id, set_request_id

CallNext = Callable[[Request], Awaitable[Response]]
Middleware = Callable[[Request, CallNext], Awaitable[Response]]


def build_request_id_middleware(header_name: str = DEFAULT_REQUEST_ID_HEADER) -> Middleware:
    """Return a middleware that assigns, propagates and echoes request ids.

    The incoming ``header_name`` header is reused when present, otherwise a
    UUID4 is generated. The id lives in a context variable for the duration
    of the request and is echoed back on the response along with
    ``X-Request-Duration-ms``.

    Must be registered outermost so that limiter responses (429/500) carry
    the id as well.
    """

    async def request_id_middleware(request: Request, call_next: CallNext) -> Response:
        request_id = request.headers.get(header_name) or str(uuid.uuid4())
        set_request_id(request_id)
        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            clear_request_id()

        response.headers[header_name] = request_id
        response.headers.setdefault(
            "X-Request-Duration-ms", f"{(time.perf_counter() - start) * 1000:.2f}"
        )
        return response

    return request_id_middleware
