"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It pins the environment so settings never pick up a developer's .env file
or a real Redis instance.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"

os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("LIMITER_IDENTITY_STRATEGY", "ip")
os.environ.setdefault("LOG_FORMAT", "json")

from typing import Any  # noqa: E402
from unittest.mock import Mock  # noqa: E402

import pytest  # noqa: E402
from starlette.requests import Request  # noqa: E402

NOW = 1_000_000_000.5


def make_request(
    *,
    path: str = "/",
    headers: dict[str, str] | None = None,
    client: Any = ("10.0.0.1", 51234),
    state: dict[str, Any] | None = None,
) -> Request:
    """Build a bare Starlette request without going through an app."""
    scope: dict[str, Any] = {
        "type": "http",
        "method": "GET",
        "scheme": "http",
        "server": ("testserver", 80),
        "path": path,
        "raw_path": path.encode(),
        "query_string": b"",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    if state is not None:
        scope["state"] = state
    return Request(scope)


@pytest.fixture
def clock() -> Mock:
    """Deterministic wall clock shared by limiter and store."""
    return Mock(return_value=NOW)


@pytest.fixture
def request_factory():
    """Factory for bare requests, see ``make_request``."""
    return make_request
