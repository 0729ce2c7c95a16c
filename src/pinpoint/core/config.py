"""Environment-driven configuration using Pydantic Settings."""

from __future__ import annotations

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All env vars are prefixed with ``PINPOINT_`` and can be set via a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PINPOINT_",
        case_sensitive=False,
    )

    # --- GitHub ---
    github_token: SecretStr | None = None
    github_api_base: str = "https://api.github.com"
    github_repository: str | None = None  # "owner/repo"
    request_timeout_seconds: float = 30.0

    # --- Retries (transport errors only) ---
    max_retries: int = 3
    retry_base_delay: float = 1.0
    retry_max_delay: float = 30.0

    # --- Analysis fan-out ---
    max_concurrent_analyses: int = 5
    analysis_timeout_seconds: float = 120.0

    # --- Server ---
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    debug: bool = False


def get_settings() -> Settings:
    """Factory that creates a Settings instance."""
    return Settings()
