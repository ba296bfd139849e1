"""Factory for creating counter store instances."""

from __future__ import annotations

import redis.asyncio as aioredis

from limiter.adapters.store.base import CounterStore
from limiter.adapters.store.in_memory import InMemoryCounterStore
from limiter.adapters.store.redis_store import RedisCounterStore, RedisTwoStepCounterStore
from limiter.core.config import StoreSettings, settings
from limiter.core.errors import ConfigurationError


def create_redis_client(store_settings: StoreSettings) -> aioredis.Redis:
    """Build a pooled asyncio Redis client from settings."""
    return aioredis.from_url(
        store_settings.redis_url,
        socket_timeout=store_settings.socket_timeout_seconds,
        socket_connect_timeout=store_settings.socket_timeout_seconds,
    )


def create_counter_store(store_settings: StoreSettings | None = None) -> CounterStore:
    """Instantiate the counter store selected by configuration.

    Args:
        store_settings: Store settings; defaults to the global settings.

    Returns:
        CounterStore: Configured store instance.

    Raises:
        ConfigurationError: If the backend name is not supported.
    """
    cfg = store_settings or settings.store
    backend = cfg.backend.lower()

    if backend == "memory":
        return InMemoryCounterStore()

    if backend == "redis":
        return RedisCounterStore(
            create_redis_client(cfg),
            operation_timeout=cfg.operation_timeout_seconds,
        )

    if backend == "redis_two_step":
        return RedisTwoStepCounterStore(
            create_redis_client(cfg),
            operation_timeout=cfg.operation_timeout_seconds,
        )

    raise ConfigurationError(
        code="store_unknown_backend",
        message=(
            f"Unknown counter store backend: '{cfg.backend}'. "
            "Supported backends: memory, redis, redis_two_step"
        ),
    )
