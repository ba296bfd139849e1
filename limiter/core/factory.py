"""Factory for building a Limiter from settings."""

from __future__ import annotations

import logging

from limiter.adapters.store.base import CounterStore
from limiter.adapters.store.factory import create_counter_store
from limiter.core.config import LimiterSettings, Settings, settings
from limiter.core.errors import ConfigurationError
from limiter.services.engine import Limiter
from limiter.services.identity import (
    HeaderIdentityResolver,
    IdentityResolver,
    IPIdentityResolver,
    PathExemptIdentityResolver,
    RequestStateIdentityResolver,
)
from limiter.services.keys import DelimitedKeyDeriver
from limiter.services.quota import Quota

logger = logging.getLogger(__name__)


def create_identity_resolver(limiter_settings: LimiterSettings) -> IdentityResolver:
    """Instantiate the identity strategy named in configuration.

    Raises:
        ConfigurationError: If the strategy name is not supported.
    """
    strategy = limiter_settings.identity_strategy.lower()

    resolver: IdentityResolver
    if strategy == "ip":
        resolver = IPIdentityResolver(limiter_settings.forwarded_for_header)
    elif strategy == "header":
        resolver = HeaderIdentityResolver(limiter_settings.identity_header)
    elif strategy == "state":
        resolver = RequestStateIdentityResolver(limiter_settings.identity_state_attribute)
    else:
        raise ConfigurationError(
            code="limiter_unknown_identity_strategy",
            message=(
                f"Unknown identity strategy: '{limiter_settings.identity_strategy}'. "
                "Supported strategies: ip, header, state"
            ),
        )

    if limiter_settings.exempt_paths:
        resolver = PathExemptIdentityResolver(resolver, limiter_settings.exempt_paths)
    return resolver


def build_limiter(
    app_settings: Settings | None = None,
    *,
    store: CounterStore | None = None,
) -> Limiter:
    """Build a Limiter with quota, key, identity and store from settings.

    Args:
        app_settings: Settings container; defaults to the global settings.
        store: Pre-built counter store (overrides the configured backend).

    Returns:
        Limiter: Configured limiter with default outcome handlers.

    Raises:
        ConfigurationError: If the settings name an unsupported component.
    """
    cfg = app_settings or settings
    limiter_cfg = cfg.limiter

    try:
        quota = Quota.per_seconds(limiter_cfg.limit, limiter_cfg.within_seconds)
        key_deriver = DelimitedKeyDeriver(limiter_cfg.key_prefix, limiter_cfg.key_delimiter)
    except ValueError as exc:
        raise ConfigurationError(
            code="limiter_invalid_settings",
            message=str(exc),
        ) from exc

    if store is None:
        store = create_counter_store(cfg.store)

    logger.info(
        "limiter.built",
        extra={
            "limit": quota.limit,
            "window_s": quota.within_seconds,
            "store": type(store).__name__,
            "store_atomic": store.atomic,
            "identity_strategy": limiter_cfg.identity_strategy,
        },
    )
    if not store.atomic:
        logger.warning(
            "limiter.store_not_atomic",
            extra={"store": type(store).__name__},
        )

    return Limiter(
        quota,
        store,
        key_deriver=key_deriver,
        identity_resolver=create_identity_resolver(limiter_cfg),
    )
