"""Tests for building limiters and stores from settings."""

import logging

import pytest

from limiter.adapters.store.factory import create_counter_store
from limiter.adapters.store.in_memory import InMemoryCounterStore
from limiter.adapters.store.redis_store import RedisCounterStore, RedisTwoStepCounterStore
from limiter.core.config import LimiterSettings, LogSettings, Settings, StoreSettings
from limiter.core.errors import ConfigurationError
from limiter.core.factory import build_limiter, create_identity_resolver
from limiter.services.identity import (
    HeaderIdentityResolver,
    IPIdentityResolver,
    PathExemptIdentityResolver,
    RequestStateIdentityResolver,
)


def _settings(**limiter_overrides) -> Settings:
    return Settings(
        limiter=LimiterSettings(**limiter_overrides),
        store=StoreSettings(backend="memory"),
        log=LogSettings(),
    )


class TestCreateIdentityResolver:
    def test_ip_strategy_wrapped_with_exempt_paths(self) -> None:
        resolver = create_identity_resolver(LimiterSettings(identity_strategy="ip"))

        assert isinstance(resolver, PathExemptIdentityResolver)
        assert isinstance(resolver.inner, IPIdentityResolver)

    def test_header_strategy(self) -> None:
        resolver = create_identity_resolver(
            LimiterSettings(identity_strategy="header", identity_header="X-Api-Key", exempt_paths=[])
        )

        assert isinstance(resolver, HeaderIdentityResolver)
        assert resolver.header_name == "X-Api-Key"

    def test_state_strategy(self) -> None:
        resolver = create_identity_resolver(
            LimiterSettings(identity_strategy="state", exempt_paths=[])
        )

        assert isinstance(resolver, RequestStateIdentityResolver)

    def test_unknown_strategy(self) -> None:
        cfg = LimiterSettings.model_construct(identity_strategy="cookie")

        with pytest.raises(ConfigurationError) as exc_info:
            create_identity_resolver(cfg)

        assert exc_info.value.code == "limiter_unknown_identity_strategy"


class TestCreateCounterStore:
    def test_memory_backend(self) -> None:
        assert isinstance(create_counter_store(StoreSettings(backend="memory")), InMemoryCounterStore)

    def test_redis_backend(self) -> None:
        store = create_counter_store(StoreSettings(backend="redis", operation_timeout_seconds=0.5))

        assert isinstance(store, RedisCounterStore)
        assert store.atomic is True

    def test_redis_two_step_backend(self) -> None:
        store = create_counter_store(StoreSettings(backend="redis_two_step"))

        assert isinstance(store, RedisTwoStepCounterStore)
        assert store.atomic is False

    def test_unknown_backend(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            create_counter_store(StoreSettings.model_construct(backend="memcached"))

        assert exc_info.value.code == "store_unknown_backend"


class TestBuildLimiter:
    def test_builds_from_settings(self) -> None:
        store = InMemoryCounterStore()
        limiter = build_limiter(
            _settings(limit=10, within_seconds=30, key_prefix="api", key_delimiter=":"),
            store=store,
        )

        assert limiter.quota.limit == 10
        assert limiter.quota.within_seconds == 30
        assert limiter.store is store
        assert limiter.key_deriver.derive(0.0, 1, "u") == "api:1:u"

    def test_uses_configured_backend_without_override(self) -> None:
        limiter = build_limiter(_settings())

        assert isinstance(limiter.store, InMemoryCounterStore)

    def test_invalid_delimiter_is_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            build_limiter(_settings(key_delimiter="7"), store=InMemoryCounterStore())

        assert exc_info.value.code == "limiter_invalid_settings"

    def test_injected_empty_store_is_kept_over_configured_backend(self) -> None:
        store = InMemoryCounterStore()
        cfg = Settings(
            limiter=LimiterSettings(),
            store=StoreSettings(backend="redis"),
            log=LogSettings(),
        )

        limiter = build_limiter(cfg, store=store)

        assert len(store) == 0
        assert limiter.store is store

    def test_warns_when_store_is_not_atomic(self, caplog) -> None:
        cfg = Settings(
            limiter=LimiterSettings(),
            store=StoreSettings(backend="redis_two_step"),
            log=LogSettings(),
        )

        with caplog.at_level(logging.INFO, logger="limiter.core.factory"):
            limiter = build_limiter(cfg)

        events = {r.getMessage(): r for r in caplog.records}
        assert events["limiter.built"].store_atomic is False
        assert "limiter.store_not_atomic" in events
        assert "store_atomic=False" in repr(limiter)
