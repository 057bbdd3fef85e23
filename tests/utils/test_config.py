"""
Tests for centralized configuration system.
Verifies environment variable loading and default values.
"""
import pytest
from pydantic import ValidationError

from relay.config import Settings, get_settings


class TestConfigurationSystem:
    """Test suite for configuration management."""

    def test_default_values(self):
        """Verify all configuration fields have sensible defaults."""
        get_settings.cache_clear()

        settings = Settings()

        # Server
        assert settings.port == 8080
        assert settings.max_payload_bytes == 10 * 1024 * 1024

        # Store
        assert settings.mongodb_database == "relay"
        assert settings.mongodb_max_pool_size == 50
        assert settings.mongodb_min_pool_size == 5

        # Backend delivery
        assert settings.backend_timeout_secs == 30.0
        assert settings.backend_max_retries == 5
        assert settings.backend_initial_backoff_ms == 100
        assert settings.backend_max_backoff_ms == 60000
        assert settings.backend_backoff_multiplier == 2.0

        # Retry worker
        assert settings.retry_worker_enabled is True
        assert settings.retry_worker_interval_secs == 60.0
        assert settings.retry_worker_batch_size == 100
        assert settings.retry_worker_hard_attempt_ceiling == 10
        assert settings.retry_worker_max_concurrent == 50

        # Logging
        assert settings.log_level == "INFO"
        assert settings.enable_structured_logging is False

    def test_environment_variable_override(self, monkeypatch):
        """Verify environment variables override defaults."""
        get_settings.cache_clear()

        monkeypatch.setenv("BACKEND_URL", "https://fhir.example.org/Bundle")
        monkeypatch.setenv("BACKEND_MAX_RETRIES", "3")
        monkeypatch.setenv("RETRY_WORKER_BATCH_SIZE", "20")
        monkeypatch.setenv("STORE_BACKEND", "memory")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("ENVIRONMENT", "production")

        settings = get_settings()

        assert settings.backend_url == "https://fhir.example.org/Bundle"
        assert settings.backend_max_retries == 3
        assert settings.retry_worker_batch_size == 20
        assert settings.store_backend == "memory"
        assert settings.log_level == "DEBUG"
        assert settings.environment == "production"

        get_settings.cache_clear()

    def test_boolean_environment_variables(self, monkeypatch):
        """Verify boolean environment variables parse correctly."""
        get_settings.cache_clear()

        monkeypatch.setenv("RETRY_WORKER_ENABLED", "false")
        monkeypatch.setenv("ENABLE_STRUCTURED_LOGGING", "true")

        settings = get_settings()

        assert settings.retry_worker_enabled is False
        assert settings.enable_structured_logging is True

        get_settings.cache_clear()

    def test_singleton_pattern(self):
        """Verify get_settings() returns same instance."""
        get_settings.cache_clear()

        settings1 = get_settings()
        settings2 = get_settings()

        assert settings1 is settings2

    def test_backoff_conversions(self):
        settings = Settings(backend_initial_backoff_ms=100, backend_max_backoff_ms=2000)

        assert settings.initial_backoff_seconds == 0.1
        assert settings.max_backoff_seconds == 2.0

    def test_rejects_unknown_store_backend(self, monkeypatch):
        monkeypatch.setenv("STORE_BACKEND", "postgres")

        with pytest.raises(ValidationError):
            Settings()

    @pytest.mark.parametrize("field", [
        "backend_max_retries",
        "retry_worker_hard_attempt_ceiling",
        "retry_worker_batch_size",
        "retry_worker_max_concurrent",
    ])
    def test_rejects_non_positive_limits(self, field):
        """Attempt, batch and concurrency limits must be at least 1."""
        with pytest.raises(ValidationError):
            Settings(**{field: 0})

    def test_rejects_zero_ceiling_from_environment(self, monkeypatch):
        monkeypatch.setenv("RETRY_WORKER_HARD_ATTEMPT_CEILING", "0")

        with pytest.raises(ValidationError):
            Settings()
