"""Redis counter stores.

Both stores use ``redis.asyncio``. The client owns a connection pool; each
operation borrows a connection for the duration of a single pipeline and
returns it on exit, including on errors, timeouts and cancellation.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, TypeVar

from redis.asyncio import Redis
from redis.exceptions import RedisError

from limiter.adapters.store.base import CounterStore, TwoStepCounterStore
from limiter.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _RedisBackend:
    """Shared client handling and error translation for the Redis stores."""

    backend_name = "redis"

    def __init__(self, client: Redis, *, operation_timeout: float | None = None) -> None:
        if operation_timeout is not None and operation_timeout <= 0:
            raise ValueError("operation_timeout must be > 0")
        self._client = client
        self._operation_timeout = operation_timeout

    @property
    def client(self) -> Redis:
        return self._client

    async def _run(self, awaitable: Awaitable[T], *, operation: str) -> T:
        """Await a Redis operation, translating failures.

        Cancellation is not a store failure and propagates unchanged.

        Raises:
            StoreUnavailableError: On Redis/socket errors or timeout.
        """
        try:
            if self._operation_timeout is None:
                return await awaitable
            return await asyncio.wait_for(awaitable, timeout=self._operation_timeout)
        except (RedisError, OSError, asyncio.TimeoutError) as exc:
            logger.warning(
                "counter_store.failed",
                extra={
                    "backend": self.backend_name,
                    "operation": operation,
                    "error_type": type(exc).__name__,
                },
            )
            raise StoreUnavailableError(
                code="store_unavailable",
                message=f"Counter store operation '{operation}' failed",
                details={"backend": self.backend_name},
            ) from exc

    async def _incr_expire(self, key: str, window_seconds: int) -> int:
        # MULTI / INCR / EXPIRE / EXEC
        async with self._client.pipeline(transaction=True) as pipe:
            count, _ = await pipe.incr(key).expire(key, window_seconds).execute()
        return int(count)

    async def close(self) -> None:
        await self._client.aclose()


class RedisCounterStore(_RedisBackend, CounterStore):
    """Atomic store: increment and expiry re-arm in one transaction.

    One round trip per request. Concurrent increments of the same key are
    serialized by Redis, so none are lost and every counter that exists has
    an armed TTL.
    """

    atomic = True

    async def check_and_increment(self, key: str, window_seconds: int) -> int:
        return await self._run(
            self._incr_expire(key, window_seconds),
            operation="check_and_increment",
        )

    def __repr__(self) -> str:
        return f"RedisCounterStore(operation_timeout={self._operation_timeout!r})"


class RedisTwoStepCounterStore(_RedisBackend, TwoStepCounterStore):
    """Best-effort store: ``GET`` followed by a transactional increment.

    Two round trips per request. See ``TwoStepCounterStore`` for the
    concurrency trade-off.
    """

    backend_name = "redis_two_step"

    async def get(self, key: str) -> int:
        raw = await self._run(self._client.get(key), operation="get")
        if raw is None:
            return 0
        return int(raw)

    async def increment(self, key: str, window_seconds: int) -> None:
        await self._run(self._incr_expire(key, window_seconds), operation="increment")

    def __repr__(self) -> str:
        return f"RedisTwoStepCounterStore(operation_timeout={self._operation_timeout!r})"
