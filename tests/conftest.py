"""
Pytest configuration and fixtures for tests.

Shared fixtures: in-memory and fake-redis key-value stores, a controllable
clock, local cart stores, and helpers that build HTTP responses for the
remote cart client.
"""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import fakeredis
import pytest
import requests

from cartsync.repos.kv_store import MemoryStore, RedisStore
from cartsync.repos.local_cart import LocalCartStore
from cartsync.services.cart_client import RemoteCartClient


class FakeClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def make_response(status: int = 200, payload=None, raw: bytes | None = None) -> requests.Response:
    """Build a real requests.Response with a JSON (or raw) body."""
    resp = requests.Response()
    resp.status_code = status
    if raw is not None:
        resp._content = raw
    else:
        resp._content = json.dumps(payload if payload is not None else {}).encode()
    resp.headers["Content-Type"] = "application/json"
    resp.url = "http://cart.test/api/cart"
    return resp


def cart_payload(**overrides) -> dict:
    """Cart JSON as the cart service returns it (camelCase)."""
    payload = {
        "id": "cart-remote",
        "customerId": None,
        "sessionId": "sess-1",
        "items": [],
        "subtotal": 0,
        "tax": 0,
        "shipping": 10,
        "discount": 0,
        "total": 10,
        "status": "active",
        "createdAt": "2026-01-01T12:00:00+00:00",
        "updatedAt": "2026-01-01T12:00:00+00:00",
    }
    payload.update(overrides)
    return payload


# ============================================================================
# Store Fixtures
# ============================================================================

@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def fake_redis():
    return fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
def redis_store(fake_redis):
    return RedisStore(client=fake_redis)


@pytest.fixture
def local_store(memory_store, clock):
    return LocalCartStore(memory_store, clock=clock)


# ============================================================================
# Remote Client Fixtures
# ============================================================================

@pytest.fixture
def http_session():
    """Mock requests.Session; set .request.return_value / side_effect per test."""
    session = MagicMock()
    session.headers = {}
    return session


@pytest.fixture
def token_store():
    return MemoryStore()


@pytest.fixture
def remote_client(http_session, token_store):
    return RemoteCartClient(
        base_url="http://cart.test/api/",
        timeout=2,
        token_store=token_store,
        session=http_session,
    )


@pytest.fixture
def response():
    """Factory: response(status, payload) -> requests.Response."""
    return make_response


@pytest.fixture
def remote_cart():
    """Factory: remote_cart(**overrides) -> cart JSON dict."""
    return cart_payload
