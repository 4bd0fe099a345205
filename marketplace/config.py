# marketplace/config.py
"""Environment-driven settings for the listing core.

Values are read once by ``Settings.from_env()`` and passed explicitly to the
components that need them.
"""
import os
from dataclasses import dataclass
from datetime import timedelta
from dotenv import load_dotenv

from .errors import ConfigurationError

WEEK_SECONDS = 7 * 24 * 60 * 60


def _normalize_db_url(url: str) -> str:
    # SQLAlchemy 2.x doesn't accept 'postgres://'
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg2://", 1)
    return url


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}", setting=name) from e


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    database_url: str = "sqlite:///./marketplace.db"
    db_pool_size: int = 5
    db_max_overflow: int = 10

    # T_expire / T_delete, relative to creation time
    listing_expire_after: timedelta = timedelta(weeks=3)
    listing_purge_after: timedelta = timedelta(weeks=5)

    sweep_interval_seconds: int = 3600
    sweep_enabled: bool = True
    sweep_on_startup: bool = True

    default_page_size: int = 20
    max_page_size: int = 100

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        url = os.getenv("DATABASE_URL") or os.getenv("POSTGRES_URL") or cls.database_url
        settings = cls(
            database_url=_normalize_db_url(url),
            db_pool_size=_env_int("DB_POOL_SIZE", 5),
            db_max_overflow=_env_int("DB_MAX_OVERFLOW", 10),
            listing_expire_after=timedelta(seconds=_env_int("LISTING_EXPIRE_SECONDS", 3 * WEEK_SECONDS)),
            listing_purge_after=timedelta(seconds=_env_int("LISTING_PURGE_SECONDS", 5 * WEEK_SECONDS)),
            sweep_interval_seconds=_env_int("SWEEP_INTERVAL_SECONDS", 3600),
            sweep_enabled=_env_flag("SWEEP_ENABLED", True),
            sweep_on_startup=_env_flag("SWEEP_ON_STARTUP", True),
            default_page_size=_env_int("DEFAULT_PAGE_SIZE", 20),
            max_page_size=_env_int("MAX_PAGE_SIZE", 100),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        """Reject settings that would break the expire-then-purge ordering or paging."""
        if self.listing_expire_after <= timedelta(0):
            raise ConfigurationError("listing expiry offset must be positive", setting="LISTING_EXPIRE_SECONDS")
        if self.listing_expire_after >= self.listing_purge_after:
            raise ConfigurationError(
                "listing expiry offset must be shorter than the purge offset",
                setting="LISTING_PURGE_SECONDS",
            )
        if self.sweep_interval_seconds <= 0:
            raise ConfigurationError("sweep interval must be positive", setting="SWEEP_INTERVAL_SECONDS")
        if self.max_page_size <= 0 or not 0 < self.default_page_size <= self.max_page_size:
            raise ConfigurationError(
                "default page size must be between 1 and the page size ceiling",
                setting="DEFAULT_PAGE_SIZE",
            )

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")
