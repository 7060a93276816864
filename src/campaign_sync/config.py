"""Application configuration via Pydantic BaseSettings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    development = "development"
    staging = "staging"
    production = "production"


class StorageBackend(str, Enum):
    memory = "memory"
    redis = "redis"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Environment
    ENVIRONMENT: Environment = Environment.development

    # Logging
    LOG_LEVEL: str = "INFO"

    # Persistence (connection list, auto-sync config, trailing sync logs)
    STORAGE_BACKEND: StorageBackend = StorageBackend.memory
    REDIS_URL: str = "redis://localhost:6379/0"
    STORAGE_PREFIX: str = "zenith"

    # CRM vendor APIs
    AIRTABLE_API_URL: str = "https://api.airtable.com"
    SALESFORCE_API_VERSION: str = "v57.0"
    CRM_HTTP_TIMEOUT_MUTATE: float = 30.0
    CRM_HTTP_TIMEOUT_READ: float = 10.0

    # Sync audit log
    SYNC_LOG_MAX_ENTRIES: int = 1000
    SYNC_LOG_PERSISTED_ENTRIES: int = 100

    # CORS
    CORS_ALLOWED_ORIGINS: str = "*"


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
