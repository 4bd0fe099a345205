# tests/conftest.py
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from marketplace import crud
from marketplace.clock import FrozenClock
from marketplace.config import Settings
from marketplace.db import Base, build_engine, build_session_factory
from marketplace.events import EventBus, ALL_EVENTS
from marketplace.lifecycle import LifecycleManager
from marketplace.models import Listing
from marketplace.query import QueryPlanner

START = datetime(2026, 1, 5, 12, 0, 0)


def make_settings(url="sqlite://", **overrides):
    values = dict(
        database_url=url,
        listing_expire_after=timedelta(minutes=3),
        listing_purge_after=timedelta(minutes=5),
        sweep_interval_seconds=60,
        sweep_enabled=False,
        default_page_size=20,
        max_page_size=50,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def engine(settings):
    eng = build_engine(settings)
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    factory = build_session_factory(engine)
    db = factory()
    crud.seed_categories(db)
    db.close()
    return factory


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FrozenClock(START)


@pytest.fixture
def published():
    return []


@pytest.fixture
def bus(published):
    b = EventBus()
    b.subscribe(ALL_EVENTS, published.append)
    return b


@pytest.fixture
def manager(session_factory, settings, clock, bus):
    return LifecycleManager(session_factory, settings, clock=clock, bus=bus)


@pytest.fixture
def planner(session_factory, settings, clock):
    return QueryPlanner(session_factory, settings, clock=clock)


@pytest.fixture
def categories(db):
    return {c.name: c for c in crud.list_categories(db)}


@pytest.fixture
def make_listing(manager, categories):
    def _make(seller="seller-1", category="GPU", **fields):
        data = {
            "title": "RTX 3080",
            "description": "Used graphics card, works great",
            "category_id": categories[category].id,
            "brand": "NVIDIA",
            "model": "RTX 3080",
            "condition": "used",
            "price": Decimal("450.00"),
            "location": "Austin, TX",
            "images": ["a.jpg"],
        }
        data.update(fields)
        return manager.create(seller, data)
    return _make


@pytest.fixture
def check_sold_invariant(session_factory):
    """Assert that no stored listing is both sold and active."""
    def _check():
        db = session_factory()
        try:
            for listing in db.query(Listing).all():
                assert not (listing.is_sold and listing.is_active), listing
        finally:
            db.close()
    return _check
