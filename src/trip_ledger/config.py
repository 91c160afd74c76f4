"""Configuration management for Trip Ledger."""

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError
from .money import DEFAULT_CURRENCY


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Row store backend
    store_backend: Literal["sqlite", "supabase"] = "sqlite"

    # Local SQLite store
    database_path: Path = Path.home() / ".trip_ledger" / "trip_ledger.db"

    # Managed database REST endpoint
    supabase_url: str | None = None
    supabase_key: str | None = None

    # Ledger settings
    default_currency: str = DEFAULT_CURRENCY  # Working currency of every trip
    balance_epsilon_units: int = 1  # Balances within this many minor units count as settled

    def __init__(self, **kwargs):
        """Initialize settings and create database directory if needed."""
        super().__init__(**kwargs)
        if self.store_backend == "sqlite":
            self.database_path.parent.mkdir(parents=True, exist_ok=True)


def load_settings() -> Settings:
    """Load application settings from environment variables."""
    try:
        settings = Settings()
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load settings. Check your .env file and environment "
            f"variables.\n"
            f"Error: {e}"
        ) from e

    if settings.store_backend == "supabase" and not (
        settings.supabase_url and settings.supabase_key
    ):
        raise ConfigurationError(
            "STORE_BACKEND=supabase requires SUPABASE_URL and SUPABASE_KEY"
        )
    return settings


def build_store(settings: Settings):
    """Create the row store selected by the settings."""
    if settings.store_backend == "supabase":
        from .clients.supabase import SupabaseClient

        if not (settings.supabase_url and settings.supabase_key):
            raise ConfigurationError("Supabase backend needs a URL and an API key")
        return SupabaseClient(
            settings.supabase_url,
            settings.supabase_key,
            currency=settings.default_currency,
        )

    from .db import Database

    return Database(settings.database_path)
