# tests/test_config.py
from datetime import timedelta

import pytest

from marketplace.config import Settings
from marketplace.errors import ConfigurationError


def test_from_env_reads_offsets_and_normalizes_url(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setenv("POSTGRES_URL", "postgres://u:p@db:5432/market")
    monkeypatch.setenv("LISTING_EXPIRE_SECONDS", "180")
    monkeypatch.setenv("LISTING_PURGE_SECONDS", "300")
    monkeypatch.setenv("SWEEP_INTERVAL_SECONDS", "60")
    monkeypatch.setenv("SWEEP_ENABLED", "0")
    settings = Settings.from_env()
    assert settings.database_url == "postgresql+psycopg2://u:p@db:5432/market"
    assert settings.listing_expire_after == timedelta(minutes=3)
    assert settings.listing_purge_after == timedelta(minutes=5)
    assert settings.sweep_interval_seconds == 60
    assert settings.sweep_enabled is False


def test_from_env_rejects_inverted_offsets(monkeypatch):
    monkeypatch.setenv("LISTING_EXPIRE_SECONDS", "600")
    monkeypatch.setenv("LISTING_PURGE_SECONDS", "300")
    with pytest.raises(ConfigurationError):
        Settings.from_env()


def test_from_env_rejects_non_integer(monkeypatch):
    monkeypatch.setenv("DEFAULT_PAGE_SIZE", "twenty")
    with pytest.raises(ConfigurationError) as exc:
        Settings.from_env()
    assert exc.value.details["setting"] == "DEFAULT_PAGE_SIZE"


@pytest.mark.parametrize("overrides", [
    {"sweep_interval_seconds": 0},
    {"default_page_size": 200, "max_page_size": 100},
    {"listing_expire_after": timedelta(0)},
])
def test_validate_rejects(overrides):
    with pytest.raises(ConfigurationError):
        Settings(**overrides).validate()
