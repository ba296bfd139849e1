"""Fixed-window decision engine.

Per request the limiter walks one path of this state machine:

    resolve identity --error--> error handler
        |-- "" --> forward (no store call, no headers)
        `-- derive key --> store increment --error--> error handler
                               |-- counter <= limit --> headers, forward
                               `-- counter >  limit --> headers, denied handler

Exactly one of {forward, denied handler, error handler} runs per request.
The engine keeps no per-request state beyond locals and holds no lock
across the store call; ordering of increments for the same key is left to
the store.
"""

from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable

from fastapi import Request, Response

from limiter.adapters.store.base import CounterStore
from limiter.core.errors import IdentityResolutionError, QuotaExceeded, StoreUnavailableError
from limiter.core.logging import hash_identity
from limiter.services.handlers import (
    DeniedHandler,
    ErrorHandler,
    HeaderEmitter,
    LoggingErrorHandler,
    RateLimitHeaderEmitter,
    TooManyRequestsHandler,
)
from limiter.services.identity import IdentityResolver, IPIdentityResolver
from limiter.services.keys import DelimitedKeyDeriver, KeyDeriver
from limiter.services.quota import Quota, RateLimitResult

logger = logging.getLogger(__name__)

CallNext = Callable[[Request], Awaitable[Response]]


class Limiter:
    """Admits or rejects requests against a fixed-window quota.

    One instance is shared by all concurrent requests of an application.
    Every collaborator is fixed at construction time.

    Usage:
        limiter = Limiter(Quota.per_seconds(100, 60), RedisCounterStore(client))
        app.middleware("http")(limiter.handle)

    or per route, receiving the decision explicitly:

        @router.get("/items")
        async def items(result: RateLimitResult | None = Depends(limiter.enforce)):
            ...
    """

    def __init__(
        self,
        quota: Quota,
        store: CounterStore,
        *,
        key_deriver: KeyDeriver | None = None,
        identity_resolver: IdentityResolver | None = None,
        header_emitter: HeaderEmitter | None = None,
        error_handler: ErrorHandler | None = None,
        denied_handler: DeniedHandler | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._quota = quota
        self._store = store
        self._clock = clock
        self._key_deriver = key_deriver if key_deriver is not None else DelimitedKeyDeriver()
        self._identity_resolver = (
            identity_resolver if identity_resolver is not None else IPIdentityResolver()
        )
        self._header_emitter = (
            header_emitter if header_emitter is not None else RateLimitHeaderEmitter()
        )
        self._error_handler = error_handler if error_handler is not None else LoggingErrorHandler()
        self._denied_handler = (
            denied_handler if denied_handler is not None else TooManyRequestsHandler(clock=clock)
        )

    @property
    def quota(self) -> Quota:
        return self._quota

    @property
    def store(self) -> CounterStore:
        return self._store

    @property
    def key_deriver(self) -> KeyDeriver:
        return self._key_deriver

    @property
    def identity_resolver(self) -> IdentityResolver:
        return self._identity_resolver

    @property
    def header_emitter(self) -> HeaderEmitter:
        return self._header_emitter

    @property
    def error_handler(self) -> ErrorHandler:
        return self._error_handler

    @property
    def denied_handler(self) -> DeniedHandler:
        return self._denied_handler

    async def check(self, request: Request) -> RateLimitResult | None:
        """Count ``request`` against its identity's window and decide.

        Returns:
            The decision, or None when the identity is empty and no limiting
            applies (the store is not contacted).

        Raises:
            IdentityResolutionError: If the identity cannot be extracted.
            StoreUnavailableError: If the counter store call fails.
        """
        identity = self._identity_resolver.resolve(request)
        if identity == "":
            logger.debug("rate_limit.exempt", extra={"request_path": request.url.path})
            return None

        now = self._clock()
        slot = self._quota.slot(now)
        key = self._key_deriver.derive(now, slot, identity)
        counter = await self._store.check_and_increment(key, self._quota.within_seconds)

        result = RateLimitResult.from_counter(self._quota, identity, counter, now)
        self._log_decision(result, key)
        return result

    async def handle(self, request: Request, call_next: CallNext) -> Response:
        """HTTP middleware entry point: ``app.middleware("http")(limiter.handle)``."""
        try:
            result = await self.check(request)
        except (IdentityResolutionError, StoreUnavailableError) as exc:
            return await self._error_handler.handle(request, exc)

        if result is None:
            return await call_next(request)

        # Published before forwarding; headers set downstream take precedence.
        quota_headers = self.quota_headers(result)
        if result.denied:
            response = await self._denied_handler.handle(request, result)
        else:
            response = await call_next(request)

        for name, value in quota_headers.items():
            response.headers.setdefault(name, value)
        return response

    def quota_headers(self, result: RateLimitResult) -> dict[str, str]:
        """Render the rate-limit headers for ``result`` without touching a response."""
        headers: dict[str, str] = {}
        self._header_emitter.emit(headers, result)
        return headers

    async def enforce(self, request: Request, response: Response) -> RateLimitResult | None:
        """FastAPI dependency form of the limiter.

        Returns the decision to the route so downstream code gets it as an
        explicit argument. Headers are set on the route's response; a denial
        raises ``QuotaExceeded`` carrying the result, and resolution/store
        failures propagate to the registered exception handlers.

        Raises:
            QuotaExceeded: If the request exceeded the quota.
            IdentityResolutionError: If the identity cannot be extracted.
            StoreUnavailableError: If the counter store call fails.
        """
        result = await self.check(request)
        if result is None:
            return None

        self._header_emitter.emit(response.headers, result)
        if result.denied:
            raise QuotaExceeded(
                details={"retry_after": result.retry_after_seconds(self._clock())},
                result=result,
            )
        return result

    async def close(self) -> None:
        await self._store.close()

    def _log_decision(self, result: RateLimitResult, key: str) -> None:
        fields = {
            "identity_hash": hash_identity(result.identity),
            "key_hash": hash_identity(key),
            "store_atomic": self._store.atomic,
            "limit": result.limit,
            "counter": result.counter,
            "remaining": result.remaining,
            "reset_at": result.reset_at,
            "window_s": self._quota.within_seconds,
        }
        if result.denied:
            logger.warning("rate_limit.denied", extra=fields)
        else:
            logger.debug("rate_limit.allowed", extra=fields)

    def __repr__(self) -> str:
        return (
            f"Limiter(quota={self._quota!r}, store={self._store!r}, "
            f"key_deriver={self._key_deriver!r}, identity_resolver={self._identity_resolver!r}, "
            f"store_atomic={self._store.atomic!r})"
        )
