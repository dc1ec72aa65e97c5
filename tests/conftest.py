"""
tests/conftest.py -- Shared test fixtures for SecureToken.

This module provides:
  - KEY / T0 / TTL: the fixed configuration the pinned token vectors use
  - counting_random(): deterministic stand-in for the secure random source
  - clock / tokener: a Tokener on a FrozenClock at T0
  - web_client: TestClient with follow_redirects=False and a patched lifespan

The DEBUG env var must be set before any core import so get_settings() can
auto-generate TOKEN_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import timedelta

# CRITICAL: Set DEBUG before any core/api import so get_settings() can
# auto-generate TOKEN_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from asgi import app
from core.config import Settings, get_settings
from core.tokener import get_tokener
from securetoken import FrozenClock, Tokener

# ---------------------------------------------------------------------------
# Fixed configuration
# ---------------------------------------------------------------------------

KEY = b"asdf;lkjasdf;lkj"
T0 = 1_000_000_000  # one second after the Unix epoch, in nanoseconds
TTL = timedelta(minutes=1)


def counting_random(n: int) -> bytes:
    """Return bytes 0, 1, ..., n-1. Only for pinning exact token output."""
    return bytes(range(n))


def cookie_header(token: str, name: str = "session") -> dict[str, str]:
    return {"Cookie": f"{name}={token}"}


# ---------------------------------------------------------------------------
# Tokener fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(T0)


@pytest.fixture
def tokener(clock: FrozenClock) -> Tokener:
    return Tokener(KEY, TTL, clock=clock)


@pytest.fixture
def clear_settings_cache() -> Generator[None, None, None]:
    """Reset the Settings and Tokener singletons around a test."""
    get_settings.cache_clear()
    get_tokener.cache_clear()
    yield
    get_settings.cache_clear()
    get_tokener.cache_clear()


# ---------------------------------------------------------------------------
# Web fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(settings: Settings, tokener: Tokener):
    """Return an async context manager that replaces the real lifespan.

    Wires a Tokener on a frozen clock into app.state so tests can move time
    forward and watch sessions expire.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = settings
        app.state.tokener = tokener
        yield

    return test_lifespan


@pytest.fixture
def web_client(clock: FrozenClock) -> Generator[tuple[TestClient, Tokener, FrozenClock], None, None]:
    """Yield (client, tokener, clock) for web and session API tests.

    follow_redirects=False so tests can assert on 302 Location headers.
    """
    settings = Settings(
        _env_file=None,
        debug=True,
        token_key=KEY.hex(),
        token_ttl_seconds=int(TTL.total_seconds()),
    )
    tokener = Tokener(KEY, TTL, clock=clock)
    app.router.lifespan_context = _patch_lifespan(settings, tokener)

    with TestClient(app, follow_redirects=False) as client:
        yield client, tokener, clock
