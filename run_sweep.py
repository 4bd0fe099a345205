"""Run one listing sweep by hand (deactivate expired, purge past deletion date).

Usage: python run_sweep.py [--no-seed]
"""
import argparse
from dotenv import load_dotenv

# Load environment variables from .env
load_dotenv()


def main(argv=None):
    from marketplace.config import Settings
    from marketplace.db import Base, build_engine, build_session_factory
    from marketplace.lifecycle import LifecycleManager
    from marketplace.main import init_db

    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--no-seed", action="store_true", help="only create tables, do not seed categories")
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    engine = build_engine(settings)
    session_factory = build_session_factory(engine)
    try:
        if args.no_seed:
            Base.metadata.create_all(bind=engine)
        else:
            init_db(engine, session_factory)
        result = LifecycleManager(session_factory, settings).sweep()
    finally:
        engine.dispose()

    print(f"Cleanup complete: {result.deactivated} deactivated, {result.purged} purged")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
