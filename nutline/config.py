"""
Configuration management for nutline.

This module uses Pydantic's BaseSettings to manage configuration
through environment variables. It provides a centralized and typed
way to handle client defaults.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Client settings.

    These settings are loaded from environment variables prefixed with
    ``NUTLINE_`` (e.g. ``NUTLINE_NUT_HOST``).
    """

    # NUT Server Configuration
    NUT_HOST: str = "localhost"
    NUT_PORT: int = 3493
    NUT_USERNAME: str | None = None
    NUT_PASSWORD: str | None = None

    # Timeouts
    CONNECT_TIMEOUT: float = 5.0  # seconds
    READ_TIMEOUT: float = 2.0  # seconds

    # Connection pool
    POOL_MAX_SIZE: int = 10

    # TLS
    USE_TLS: bool = False
    TLS_VERIFY: bool = True
    TLS_CA_FILE: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        env_prefix="NUTLINE_",
        extra="ignore",
    )


# Global settings instance
settings = Settings()
