"""FastAPI dependencies shared by the API routers."""

from __future__ import annotations

from fastapi import Request, Response

from limiter.services.engine import Limiter
from limiter.services.quota import RateLimitResult


def get_limiter(request: Request) -> Limiter:
    return request.app.state.limiter


async def rate_limit(request: Request, response: Response) -> RateLimitResult | None:
    """Count the request against the app's limiter and return the decision.

    Routes that declare this dependency receive the decision as a plain
    argument; denials raise ``QuotaExceeded`` before the route body runs.
    """
    return await get_limiter(request).enforce(request, response)
