"""Configuration management."""

import logging
from typing import Literal

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Identity service (hosted auth) - validates bearer tokens
    supabase_url: str = ""
    supabase_anon_key: str = ""

    # Upstream AI providers
    gemini_api_key: str = ""
    openai_api_key: str = ""
    deepseek_api_key: str = ""
    gemini_model: str = "gemini-3-flash-preview"
    openai_model: str = "gpt-4o"
    deepseek_model: str = "deepseek-chat"
    openai_base_url: str = "https://api.openai.com/v1"
    deepseek_base_url: str = "https://api.deepseek.com"
    temperature: float = 0.7
    upstream_timeout: float = 120.0

    # Database (PostgreSQL) - constructed from parts
    db_host: str = "localhost"
    db_port: str = "5432"
    db_name: str = "adal"
    db_user: str = "adal"
    db_password: str = ""
    store_backend: Literal["postgres", "memory"] = "postgres"

    @computed_field
    @property
    def database_url(self) -> str:
        """Construct database URL from parts."""
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    # Conversation policy
    conversation_limit_policy: Literal["archive", "reject"] = "archive"
    stale_conversation_days: int = 90

    # Origins that receive Access-Control-Allow-Origin
    allowed_origins: list[str] = [
        "https://adalparedes.com",
        "https://webapp-adalparedes.vercel.app",
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def identity_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """FastAPI dependency returning the global settings."""
    return settings


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for the server process."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
