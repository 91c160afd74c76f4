"""Tests for settings loading and store selection."""

import pytest

from trip_ledger.clients.supabase import SupabaseClient
from trip_ledger.config import Settings, build_store, load_settings
from trip_ledger.db import Database
from trip_ledger.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate settings from the developer's environment and .env file."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "STORE_BACKEND",
        "DATABASE_PATH",
        "SUPABASE_URL",
        "SUPABASE_KEY",
        "DEFAULT_CURRENCY",
        "BALANCE_EPSILON_UNITS",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "data" / "ledger.db"))


def test_defaults(tmp_path):
    settings = load_settings()

    assert settings.store_backend == "sqlite"
    assert settings.default_currency == "EUR"
    assert settings.balance_epsilon_units == 1
    assert (tmp_path / "data").is_dir()


def test_sqlite_store(tmp_path):
    store = build_store(load_settings())
    try:
        assert isinstance(store, Database)
    finally:
        store.close()


def test_supabase_requires_credentials(monkeypatch):
    monkeypatch.setenv("STORE_BACKEND", "supabase")
    monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")

    with pytest.raises(ConfigurationError, match="SUPABASE_KEY"):
        load_settings()


def test_supabase_store(monkeypatch):
    monkeypatch.setenv("STORE_BACKEND", "supabase")
    monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
    monkeypatch.setenv("SUPABASE_KEY", "anon-key")
    monkeypatch.setenv("DEFAULT_CURRENCY", "USD")

    store = build_store(load_settings())
    try:
        assert isinstance(store, SupabaseClient)
        assert store.currency == "USD"
    finally:
        store.close()


def test_invalid_backend(monkeypatch):
    monkeypatch.setenv("STORE_BACKEND", "postgres")

    with pytest.raises(ConfigurationError):
        load_settings()


def test_settings_accept_overrides(tmp_path):
    settings = Settings(database_path=tmp_path / "x.db", balance_epsilon_units=0)

    assert settings.balance_epsilon_units == 0
