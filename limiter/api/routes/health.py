from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Liveness probe.

    Exempt from rate limiting by default (see ``LIMITER_EXEMPT_PATHS``), so
    load balancers polling it never consume quota or receive 429s.

    Returns:
        dict: ``status`` plus whether a limiter is attached to the app.
    """

    return {
        "status": "ok",
        "rate_limited": getattr(request.app.state, "limiter", None) is not None,
    }
