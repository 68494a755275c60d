"""
Application settings for Request Runner.

Values are read from environment variables prefixed with ``REQUEST_RUNNER_``
or from a ``.env`` file at the working directory.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralized, env-driven configuration."""
    database_url: str = "sqlite:///./request_runner.db"
    request_timeout: float = Field(default=30.0, gt=0)  # seconds
    verify_ssl: bool = False
    follow_redirects: bool = False
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="REQUEST_RUNNER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
