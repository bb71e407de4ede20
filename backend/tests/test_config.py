"""
Tests for application configuration and settings validation.
"""

import os
import pytest
from unittest.mock import patch


def test_settings_loads_defaults():
    """Settings should load with sensible defaults in development."""
    from recengine.config import get_settings
    get_settings.cache_clear()

    with patch.dict(os.environ, {
        "ENVIRONMENT": "development",
        "DATABASE_URL": "postgresql+asyncpg://localhost/test",
        "SECRET_KEY": "change-me-in-production",
    }, clear=False):
        get_settings.cache_clear()
        settings = get_settings()
        assert settings.environment == "development"
        assert settings.is_production is False
        assert settings.disable_recommendation_scheduler is False
        assert settings.recommendation_scheduler_day == 0
        assert settings.recommendation_scheduler_hour == 23
        assert settings.recommendation_scheduler_tz == "America/New_York"
        assert settings.recommendation_lookback_days == 30
        assert settings.stagger_seconds == 2.0
        get_settings.cache_clear()


def test_settings_cors_origin_list():
    """CORS origins string should be split into a list."""
    from recengine.config import get_settings
    get_settings.cache_clear()

    with patch.dict(os.environ, {
        "ENVIRONMENT": "development",
        "DATABASE_URL": "postgresql+asyncpg://localhost/test",
        "CORS_ORIGINS": "http://localhost:3000, http://example.com",
    }, clear=False):
        get_settings.cache_clear()
        settings = get_settings()
        origins = settings.cors_origin_list
        assert len(origins) == 2
        assert "http://localhost:3000" in origins
        assert "http://example.com" in origins
        get_settings.cache_clear()


def test_plain_postgres_url_is_rewritten_for_asyncpg():
    from recengine.config import Settings
    settings = Settings(database_url="postgresql://user:pw@db-host/ads")
    assert settings.database_url == "postgresql+asyncpg://user:pw@db-host/ads"


def test_scheduler_env_overrides():
    from recengine.config import Settings
    with patch.dict(os.environ, {
        "DISABLE_RECOMMENDATION_SCHEDULER": "true",
        "RECOMMENDATION_SCHEDULER_DAY": "3",
        "RECOMMENDATION_STAGGER_MS": "500",
    }, clear=False):
        settings = Settings()
        assert settings.disable_recommendation_scheduler is True
        assert settings.recommendation_scheduler_day == 3
        assert settings.stagger_seconds == 0.5


@pytest.mark.parametrize("field,value", [
    ("recommendation_scheduler_day", 7),
    ("recommendation_scheduler_hour", 24),
    ("recommendation_stagger_ms", -1),
    ("recommendation_lookback_days", 0),
])
def test_invalid_scheduler_settings_rejected(field, value):
    from recengine.config import Settings
    with pytest.raises(ValueError):
        Settings(**{field: value})


def test_production_rejects_default_secret():
    """Production mode should reject the default secret key."""
    from recengine.config import get_settings, Settings
    get_settings.cache_clear()

    with pytest.raises(ValueError, match="SECRET_KEY must be set"):
        Settings(
            environment="production",
            secret_key="change-me-in-production",
            database_url="postgresql+asyncpg://prod-host/db",
        )
    get_settings.cache_clear()


def test_production_requires_api_key():
    from recengine.config import Settings
    with pytest.raises(ValueError, match="API_KEY must be set"):
        Settings(
            environment="production",
            secret_key="a-real-secret-key-that-is-not-the-default",
            api_key="",
            database_url="postgresql+asyncpg://prod-host/db",
        )


def test_production_accepts_real_secret():
    """Production mode should accept a real secret key."""
    from recengine.config import Settings
    settings = Settings(
        environment="production",
        secret_key="a-real-secret-key-that-is-not-the-default",
        api_key="prod-api-key",
        database_url="postgresql+asyncpg://prod-host/db",
    )
    assert settings.is_production is True
    assert settings.secret_key == "a-real-secret-key-that-is-not-the-default"
