"""
Centralized Configuration System
Environment-aware settings for the relay, its store and its delivery pipeline.
"""
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Literal


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="allow"
    )
    """
    Production-grade configuration management.
    Loads from environment variables with sensible defaults.
    """

    # ============================================
    # HTTP SERVER
    # ============================================
    host: str = "0.0.0.0"
    port: int = 8080
    max_payload_bytes: int = 10 * 1024 * 1024  # 10MB

    # ============================================
    # MESSAGE STORE
    # ============================================
    store_backend: Literal["mongodb", "memory"] = "mongodb"
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "relay"
    mongodb_max_pool_size: int = 50
    mongodb_min_pool_size: int = 5
    mongodb_server_selection_timeout_ms: int = 5000

    # ============================================
    # DOWNSTREAM BACKEND (per-cycle delivery)
    # ============================================
    backend_url: str = "http://localhost:9000/ingest"
    backend_timeout_secs: float = 30.0
    backend_max_retries: int = Field(default=5, ge=1)  # Attempts per delivery cycle
    backend_initial_backoff_ms: int = 100
    backend_max_backoff_ms: int = 60000
    backend_backoff_multiplier: float = 2.0

    # ============================================
    # RETRY WORKER (background sweep)
    # ============================================
    retry_worker_enabled: bool = True
    retry_worker_interval_secs: float = 60.0
    retry_worker_batch_size: int = Field(default=100, ge=1)
    retry_worker_hard_attempt_ceiling: int = Field(default=10, ge=1)  # Failed cycles before exclusion
    retry_worker_max_concurrent: int = Field(default=50, ge=1)

    # ============================================
    # LOGGING
    # ============================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    enable_structured_logging: bool = False  # Set to True for production JSON logs

    # ============================================
    # ENVIRONMENT
    # ============================================
    environment: Literal["development", "test", "staging", "production"] = "development"

    @property
    def initial_backoff_seconds(self) -> float:
        return self.backend_initial_backoff_ms / 1000

    @property
    def max_backoff_seconds(self) -> float:
        return self.backend_max_backoff_ms / 1000


@lru_cache()
def get_settings() -> Settings:
    """
    Singleton pattern for settings.
    Uses LRU cache to ensure only one Settings instance exists.
    """
    return Settings()


# Convenience accessor for common use
settings = get_settings()
