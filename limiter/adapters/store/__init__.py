"""Counter store adapters.

The decision engine depends only on ``CounterStore``; concrete backends
(Redis for shared deployments, in-memory for a single process) live behind
it and are selected by ``create_counter_store``.
"""

from limiter.adapters.store.base import CounterStore
from limiter.adapters.store.in_memory import InMemoryCounterStore
from limiter.adapters.store.redis_store import RedisCounterStore, RedisTwoStepCounterStore

__all__ = [
    "CounterStore",
    "InMemoryCounterStore",
    "RedisCounterStore",
    "RedisTwoStepCounterStore",
]
