"""Fixed-window request admission control for ASGI/FastAPI applications."""

from limiter.adapters.store import (
    CounterStore,
    InMemoryCounterStore,
    RedisCounterStore,
    RedisTwoStepCounterStore,
)
from limiter.adapters.store.base import TwoStepCounterStore
from limiter.core.errors import (
    AddressParseError,
    IdentityResolutionError,
    QuotaExceeded,
    StoreUnavailableError,
    TypeMismatchError,
)
from limiter.services.engine import Limiter
from limiter.services.handlers import (
    DeniedHandler,
    ErrorHandler,
    HeaderEmitter,
    LoggingErrorHandler,
    RateLimitHeaderEmitter,
    TooManyRequestsHandler,
)
from limiter.services.identity import (
    HeaderIdentityResolver,
    IdentityResolver,
    IPIdentityResolver,
    PathExemptIdentityResolver,
    RequestStateIdentityResolver,
)
from limiter.services.keys import DelimitedKeyDeriver, KeyDeriver
from limiter.services.quota import Quota, RateLimitResult

__all__ = [
    "AddressParseError",
    "CounterStore",
    "DelimitedKeyDeriver",
    "DeniedHandler",
    "ErrorHandler",
    "HeaderEmitter",
    "HeaderIdentityResolver",
    "IPIdentityResolver",
    "IdentityResolutionError",
    "IdentityResolver",
    "InMemoryCounterStore",
    "KeyDeriver",
    "Limiter",
    "LoggingErrorHandler",
    "PathExemptIdentityResolver",
    "Quota",
    "QuotaExceeded",
    "RateLimitHeaderEmitter",
    "RateLimitResult",
    "RedisCounterStore",
    "RedisTwoStepCounterStore",
    "RequestStateIdentityResolver",
    "StoreUnavailableError",
    "TooManyRequestsHandler",
    "TwoStepCounterStore",
    "TypeMismatchError",
]
