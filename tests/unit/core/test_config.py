"""
Tests for Settings and get_settings.
"""

import pytest
from pydantic import ValidationError

from session_service.core.config import DEFAULT_SESSION_TYPES, Settings, get_settings


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestDefaults:
    """Defaults match a local development deployment."""

    def test_defaults(self):
        settings = Settings()

        assert settings.service_name == "session-service"
        assert settings.redis_url == "redis://localhost:6379"
        assert settings.redis_key_prefix == "session_service:"
        assert settings.session_types == DEFAULT_SESSION_TYPES
        assert settings.source_min_length == 3
        assert settings.otlp_endpoint is None

    def test_session_types_default_is_a_copy(self):
        Settings().session_types.append("extra")
        assert Settings().session_types == ["main_session", "virtual_cohort"]


class TestEnvironment:
    """Values come from SESSION_SERVICE_* environment variables."""

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("SESSION_SERVICE_PORT", "9090")
        monkeypatch.setenv("SESSION_SERVICE_REDIS_URL", "rediss://cache:6380/1")
        monkeypatch.setenv("SESSION_SERVICE_SESSION_TYPES", '["main_session", "settings"]')

        settings = Settings()

        assert settings.port == 9090
        assert settings.redis_url == "rediss://cache:6380/1"
        assert settings.session_types == ["main_session", "settings"]

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


class TestValidation:
    """Invalid configuration fails fast."""

    def test_redis_url_scheme(self):
        with pytest.raises(ValidationError):
            Settings(redis_url="http://localhost:6379")

    @pytest.mark.parametrize("session_type", ["", "with space", "dots.in.name", "colon:name"])
    def test_session_type_names(self, session_type):
        with pytest.raises(ValidationError):
            Settings(session_types=["main_session", session_type])

    def test_session_types_not_empty(self):
        with pytest.raises(ValidationError):
            Settings(session_types=[])

    def test_log_level_is_normalized(self):
        assert Settings(log_level="debug").log_level == "DEBUG"

    def test_unknown_log_level(self):
        with pytest.raises(ValidationError):
            Settings(log_level="chatty")

    def test_port_range(self):
        with pytest.raises(ValidationError):
            Settings(port=0)
