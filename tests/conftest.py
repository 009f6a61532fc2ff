"""
Shared pytest fixtures for tgauth tests.

This module provides common fixtures including:
- A controllable clock for expiry tests
- Redis mocks for persistence/audit tests
- Recording collaborators for the stores
"""

import fnmatch
import hashlib
import hmac
from typing import Any, Dict
from unittest.mock import AsyncMock, MagicMock

import pytest

from tgauth.modules.audit import AuditService, MemoryAuditStorage
from tgauth.modules.identity import Identity

TEST_BOT_TOKEN = "123456:TEST-TOKEN"


# =============================================================================
# Time and identities
# =============================================================================

class FakeClock:
    """Callable time source that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def alice():
    return Identity(id=42, first_name="Alice", username="alice", language_code="en")


@pytest.fixture
def bob():
    return Identity(id=7, first_name="Bob")


# =============================================================================
# Store collaborators
# =============================================================================

@pytest.fixture
def dispatcher():
    """Records dispatch(event, identity) calls without delivering anything."""
    return MagicMock()


@pytest.fixture
def audit(clock):
    return AuditService(MemoryAuditStorage(), clock=clock)


def sign_widget(payload: Dict[str, Any], bot_token: str = TEST_BOT_TOKEN) -> Dict[str, Any]:
    """Return ``payload`` with the hash Telegram would attach to it."""
    check_string = "\n".join(
        f"{key}={value}"
        for key, value in sorted(payload.items())
        if key != "hash" and value not in (None, "")
    )
    secret = hashlib.sha256(bot_token.encode()).digest()
    signed = dict(payload)
    signed["hash"] = hmac.new(secret, check_string.encode(), hashlib.sha256).hexdigest()
    return signed


# =============================================================================
# Redis Mocking Infrastructure
# =============================================================================

@pytest.fixture
def mock_redis():
    """Create a mock Redis client for async operations."""
    redis = AsyncMock()

    # Basic operations
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock()
    redis.delete = AsyncMock(return_value=1)
    redis.ping = AsyncMock(return_value=True)

    # List operations
    redis.lpush = AsyncMock()
    redis.ltrim = AsyncMock()
    redis.lrange = AsyncMock(return_value=[])

    return redis


@pytest.fixture
def mock_redis_with_data():
    """
    Redis mock with in-memory data storage for more realistic tests.

    This allows testing code that reads back what it writes.
    """
    storage = {}

    redis = AsyncMock()

    async def mock_set(key, value, *args, **kwargs):
        storage[key] = value
        return True

    async def mock_get(key):
        return storage.get(key)

    async def mock_delete(*keys):
        count = 0
        for key in keys:
            if key in storage:
                del storage[key]
                count += 1
        return count

    async def mock_keys(pattern):
        return [k for k in storage.keys() if fnmatch.fnmatch(k, pattern)]

    async def mock_lpush(key, *values):
        items = storage.setdefault(key, [])
        for value in values:
            items.insert(0, value)
        return len(items)

    async def mock_ltrim(key, start, end):
        items = storage.get(key, [])
        storage[key] = items[start:] if end == -1 else items[start:end + 1]
        return True

    async def mock_lrange(key, start, end):
        items = storage.get(key, [])
        return items[start:] if end == -1 else items[start:end + 1]

    redis.set = mock_set
    redis.get = mock_get
    redis.delete = mock_delete
    redis.keys = mock_keys
    redis.lpush = mock_lpush
    redis.ltrim = mock_ltrim
    redis.lrange = mock_lrange
    redis._storage = storage  # Expose for test assertions

    return redis


# =============================================================================
# Test Markers Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: Integration tests requiring infrastructure"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take a long time to run"
    )
