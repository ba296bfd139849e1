"""Application factory for the rate-limited FastAPI app.

Centralizes app construction (limiter, middleware, handlers, routers) to
improve testability; tests build isolated apps with their own limiter and
settings instead of sharing module globals.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI

from limiter.api.deps import rate_limit
from limiter.api.routes import health_router, ping_router
from limiter.core.config import Settings, settings
from limiter.core.exception_handlers import setup_exception_handlers
from limiter.core.factory import build_limiter
from limiter.core.logging import configure_logging
from limiter.core.middleware import build_request_id_middleware
from limiter.services.engine import Limiter


def create_app(
    app_settings: Settings | None = None,
    *,
    limiter: Limiter | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings container; defaults to the global settings.
        limiter: Pre-built limiter; built from settings when omitted.

    Returns:
        Configured FastAPI app with the limiter attached as ``app.state.limiter``.
    """
    cfg = app_settings or settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    enabled = cfg.limiter.enabled
    if enabled and limiter is None:
        limiter = build_limiter(cfg)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        if limiter is not None:
            await limiter.close()

    app = FastAPI(
        title="Fixed Window Limiter",
        description=(
            "Request admission layer enforcing a fixed-window quota per caller "
            "identity. Responses carry X-Rate-Limit-Limit, X-Rate-Limit-Reset "
            "and X-Rate-Limit-Remaining headers."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.limiter = limiter

    # Middleware: registered last runs first, so request ids wrap the limiter.
    v1_dependencies = []
    if limiter is not None:
        if cfg.limiter.mode == "middleware":
            app.middleware("http")(limiter.handle)
        else:
            v1_dependencies.append(Depends(rate_limit))
    app.middleware("http")(build_request_id_middleware(cfg.log.request_id_header))

    setup_exception_handlers(app, limiter)

    app.include_router(ping_router, prefix="/v1", dependencies=v1_dependencies)
    app.include_router(health_router)

    return app
