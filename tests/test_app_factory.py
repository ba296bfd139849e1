"""End-to-end tests for the application built by ``create_app``."""

from __future__ import annotations

from unittest.mock import AsyncMock

from fastapi.testclient import TestClient

from limiter.core.app_factory import create_app
from limiter.core.config import LimiterSettings, LogSettings, Settings, StoreSettings
from limiter.services.handlers import LIMIT_HEADER, REMAINING_HEADER, RESET_HEADER


def _settings(**limiter_overrides) -> Settings:
    return Settings(
        limiter=LimiterSettings(**limiter_overrides),
        store=StoreSettings(backend="memory"),
        log=LogSettings(),
    )


class TestMiddlewareMode:
    def test_ping_is_limited_and_carries_headers(self) -> None:
        client = TestClient(create_app(_settings(limit=2, within_seconds=60)))

        first = client.get("/v1/ping")
        second = client.get("/v1/ping")
        third = client.get("/v1/ping")

        assert [first.status_code, second.status_code, third.status_code] == [200, 200, 429]
        assert first.json() == {"pong": True}
        assert first.headers[LIMIT_HEADER] == "2"
        assert [r.headers[REMAINING_HEADER] for r in (first, second, third)] == ["1", "0", "0"]
        assert third.text == "Too Many Requests"
        assert int(third.headers[RESET_HEADER]) % 60 == 0

    def test_identities_are_counted_separately(self) -> None:
        client = TestClient(create_app(_settings(limit=1)))

        a = client.get("/v1/ping", headers={"X-Forwarded-For": "203.0.113.1"})
        b = client.get("/v1/ping", headers={"X-Forwarded-For": "203.0.113.2"})
        a_again = client.get("/v1/ping", headers={"X-Forwarded-For": "203.0.113.1"})

        assert [a.status_code, b.status_code, a_again.status_code] == [200, 200, 429]

    def test_health_is_exempt(self) -> None:
        client = TestClient(create_app(_settings(limit=0)))

        resp = client.get("/health")

        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "rate_limited": True}
        assert LIMIT_HEADER not in resp.headers

    def test_limit_zero_denies_everything_counted(self) -> None:
        resp = TestClient(create_app(_settings(limit=0))).get("/v1/ping")

        assert resp.status_code == 429
        assert resp.headers[REMAINING_HEADER] == "0"

    def test_denial_carries_request_id(self) -> None:
        client = TestClient(create_app(_settings(limit=0)))

        resp = client.get("/v1/ping", headers={"X-Request-ID": "req-429"})

        assert resp.status_code == 429
        assert resp.headers["X-Request-ID"] == "req-429"

    def test_header_strategy_without_header_is_unlimited(self) -> None:
        client = TestClient(
            create_app(_settings(limit=0, identity_strategy="header", identity_header="X-Api-Key"))
        )

        anonymous = client.get("/v1/ping")
        keyed = client.get("/v1/ping", headers={"X-Api-Key": "k1"})

        assert anonymous.status_code == 200
        assert LIMIT_HEADER not in anonymous.headers
        assert keyed.status_code == 429


class TestDependencyMode:
    def test_ping_is_limited_through_dependency(self) -> None:
        client = TestClient(create_app(_settings(limit=1, mode="dependency")))

        allowed = client.get("/v1/ping")
        denied = client.get("/v1/ping")

        assert allowed.status_code == 200
        assert allowed.headers[LIMIT_HEADER] == "1"
        assert allowed.headers[REMAINING_HEADER] == "0"
        assert denied.status_code == 429
        assert denied.text == "Too Many Requests"
        assert denied.headers[REMAINING_HEADER] == "0"
        assert denied.headers["X-Request-ID"]

    def test_health_is_not_wrapped(self) -> None:
        client = TestClient(create_app(_settings(limit=0, mode="dependency")))

        resp = client.get("/health")

        assert resp.status_code == 200
        assert LIMIT_HEADER not in resp.headers


class TestDisabled:
    def test_no_limiter_attached(self) -> None:
        app = create_app(_settings(enabled=False, limit=0))
        client = TestClient(app)

        assert app.state.limiter is None
        assert client.get("/health").json() == {"status": "ok", "rate_limited": False}
        resp = client.get("/v1/ping")
        assert resp.status_code == 200
        assert LIMIT_HEADER not in resp.headers


def test_lifespan_closes_limiter() -> None:
    app = create_app(_settings())
    limiter = app.state.limiter
    limiter.close = AsyncMock()

    with TestClient(app) as client:
        client.get("/v1/ping")
        limiter.close.assert_not_awaited()

    limiter.close.assert_awaited_once()
