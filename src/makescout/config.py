"""Application configuration."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):  # type: ignore[misc]
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="MAKESCOUT_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Make API access
    base_url: str = "eu1.make.com"  # Zone host, scheme optional
    api_token: str = ""

    # Local state (favorites, selected organization/team)
    state_file: Path = Path("makescout.json")

    # Rate limiting
    default_rate_limit_per_minute: int = 60
    rate_limit_ttl_hours: float = 24.0  # How long a learned API limit stays valid
    max_attempts: int = 3

    # HTTP client settings
    timeout_ms: int = 20_000

    # Execution payloads may contain secrets, hidden unless enabled
    allow_execution_payloads: bool = False


def get_settings() -> Settings:
    """Get application settings instance."""
    return Settings()
