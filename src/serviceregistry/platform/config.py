"""
Service Registry Configuration Management

Uses Pydantic Settings for type-safe configuration from environment variables.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    # =========================================================================
    # APPLICATION
    # =========================================================================
    APP_NAME: str = "ServiceRegistry"
    APP_ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "info"
    VERSION: str = "0.1.0"

    # =========================================================================
    # API SERVER
    # =========================================================================
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    CORS_ORIGINS: str = "http://localhost:3000"

    # =========================================================================
    # AUTHENTICATION
    # =========================================================================
    AUTH_SOURCE: str = "login-admin"
    USERID_ATTR: str = "eduPersonPrincipalName"
    AUTH_HEADER: str = "X-User-ID"
    CLI_MODE: bool = False

    # =========================================================================
    # METADATA
    # =========================================================================
    # Empty means the definitions bundled with the package
    METADATA_DEFINITIONS_PATH: str = ""
    METADATA_IGNORE_MISSING_DEFINITION: bool = False

    # =========================================================================
    # CONNECTIONS
    # =========================================================================
    DEFAULT_CONNECTION_STATE: str = "testaccepted"
    PURGE_ON_DELETE: bool = False

    # =========================================================================
    # OBSERVABILITY
    # =========================================================================
    METRICS_ENABLED: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Singleton instance for easy import
settings = get_settings()
