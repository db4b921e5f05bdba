"""
Pytest configuration for the Session Service test suite.

This configuration sets up:
- Test markers for categorization
- Shared fixtures following the FakeRepository pattern: a fakeredis client
  stands in for Redis, so the real RedisDocumentStore runs in every test
- Store, repository, service and TestClient fixtures
"""

import pytest
import pytest_asyncio
import fakeredis.aioredis
from fastapi.testclient import TestClient


# =============================================================================
# Test Markers
# =============================================================================


def pytest_configure(config):
    """
    Register custom markers for test categorization.

    - unit: Tests for individual components
    - integration: Tests exercising the full HTTP stack
    """
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Integration tests for service interactions")


# =============================================================================
# FakeRedis Fixture
# =============================================================================


@pytest_asyncio.fixture
async def fake_redis():
    """
    Create a fake Redis client for testing.

    fakeredis provides a fully functional Redis-compatible interface,
    including WATCH/MULTI/EXEC, without requiring a real Redis instance.
    """
    redis = fakeredis.aioredis.FakeRedis(decode_responses=True)
    yield redis
    await redis.aclose()


# =============================================================================
# Test Settings Fixture
# =============================================================================


@pytest.fixture
def test_settings():
    """
    Create test settings with safe defaults.

    Returns:
        Settings: Development settings with the baseline session types
    """
    from session_service.core.config import Settings

    return Settings(
        service_name="session-service-test",
        version="1.0.0-test",
        environment="development",
        redis_url="redis://localhost:6379",
        redis_key_prefix="test:",
        session_types=["main_session", "virtual_cohort"],
        source_min_length=3,
    )


# =============================================================================
# Store / Repository / Service Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def store(fake_redis):
    """Provide a RedisDocumentStore backed by fakeredis."""
    from session_service.store.redis_store import RedisDocumentStore

    return RedisDocumentStore(redis_client=fake_redis, key_prefix="test:")


@pytest_asyncio.fixture
async def repository(store):
    """Provide a SessionRepository over the fake store."""
    from session_service.sessions.repository import SessionRepository

    return SessionRepository(store)


@pytest_asyncio.fixture
async def service(repository, test_settings):
    """Provide a SessionService over the fake repository."""
    from session_service.sessions.service import SessionService

    return SessionService(repository, test_settings)


# =============================================================================
# FastAPI Test Client Fixtures
# =============================================================================


@pytest.fixture
def app(test_settings):
    """
    Create the application wired to a fresh fakeredis instance.

    The client is synchronous, so the fake Redis is created here rather than
    through the async fake_redis fixture.
    """
    from session_service.main import create_app

    redis = fakeredis.aioredis.FakeRedis(decode_responses=True)
    return create_app(settings=test_settings, redis_client=redis)


@pytest.fixture
def client(app):
    """
    Create a TestClient for the application.

    Entering the client runs the lifespan, which builds the store and service.
    """
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def sample_payload():
    """A representative nested session payload."""
    return '{"user": {"name": "ada", "roles": ["admin", "dev"]}, "step": 3, "done": false}'
