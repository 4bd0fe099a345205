# marketplace/db.py
"""Database engine and session utilities.

The engine and session factory are built explicitly from ``Settings`` at
start-up and handed to the components that need them; nothing here is a
module-level singleton.
"""
from contextlib import contextmanager
from sqlalchemy import create_engine
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from .config import Settings
from .errors import StoreUnavailableError

Base = declarative_base()


def build_engine(settings: Settings):
    url = settings.database_url
    if settings.is_sqlite:
        connect_args = {"check_same_thread": False, "timeout": 30}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # one shared connection so every session sees the same in-memory DB
            return create_engine(url, connect_args=connect_args, poolclass=StaticPool)
        return create_engine(url, connect_args=connect_args)
    # tuned pool settings for cloud DB
    return create_engine(
        url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
    )


def build_session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@contextmanager
def session_scope(session_factory, operation: str):
    """Yield a session; roll back on error and surface connectivity failures as StoreUnavailableError."""
    db = session_factory()
    try:
        yield db
    except (OperationalError, InterfaceError) as e:
        db.rollback()
        raise StoreUnavailableError(operation, cause=e) from e
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

