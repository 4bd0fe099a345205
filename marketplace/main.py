# marketplace/main.py
"""Application factory.

Run with ``uvicorn marketplace.main:create_app --factory``.
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI
from sqlalchemy.exc import OperationalError

import marketplace.models  # noqa: F401 ensure models are imported so tables are known
from . import crud
from .api.errors import setup_error_handlers
from .api.routes import router as api_router
from .auth import forwarded_header_resolver
from .clock import SystemClock
from .config import Settings
from .db import Base, build_engine, build_session_factory
from .events import EventBus
from .lifecycle import LifecycleManager
from .query import QueryPlanner
from .scheduler import SweepScheduler
from .utils import logger, retry


@retry(OperationalError, attempts=5, delay=1, backoff=2)
def init_db(engine, session_factory) -> None:
    """Create tables and seed the category taxonomy. Safe to run on every start."""
    Base.metadata.create_all(bind=engine)
    db = session_factory()
    try:
        inserted = crud.seed_categories(db)
        if inserted:
            logger.info("Seeded %s categories", inserted)
    finally:
        db.close()


def create_app(settings: Settings = None, *, engine=None, clock=None, bus: EventBus = None,
               identity_resolver=None, start_scheduler: bool = None) -> FastAPI:
    settings = settings or Settings.from_env()
    settings.validate()
    owns_engine = engine is None
    engine = engine or build_engine(settings)
    session_factory = build_session_factory(engine)
    clock = clock or SystemClock()
    bus = bus or EventBus()

    manager = LifecycleManager(session_factory, settings, clock=clock, bus=bus)
    planner = QueryPlanner(session_factory, settings, clock=clock)
    sweeper = SweepScheduler(manager, settings.sweep_interval_seconds, run_on_start=settings.sweep_on_startup)
    run_scheduler = settings.sweep_enabled if start_scheduler is None else start_scheduler

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_db(engine, session_factory)
        if run_scheduler:
            sweeper.start()
        try:
            yield
        finally:
            sweeper.shutdown()
            if owns_engine:
                engine.dispose()

    app = FastAPI(title="PC Parts Marketplace", lifespan=lifespan)
    app.state.settings = settings
    app.state.manager = manager
    app.state.planner = planner
    app.state.sweeper = sweeper
    app.state.bus = bus
    app.state.identity_resolver = identity_resolver or forwarded_header_resolver

    setup_error_handlers(app)
    app.include_router(api_router)
    return app
