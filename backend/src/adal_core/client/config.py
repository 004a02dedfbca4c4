"""Client configuration."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Chat client settings, read from ``ADAL_CLIENT_*`` variables."""

    base_url: str = "http://localhost:8000"
    cooldown_seconds: float = 2.5
    request_timeout: float = 120.0
    state_path: Path = Path.home() / ".adal" / "state.json"
    purge_interval_hours: float = 24.0

    model_config = SettingsConfigDict(
        env_prefix="ADAL_CLIENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
