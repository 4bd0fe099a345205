# marketplace/utils.py
"""Shared utilities: the service logger and a retry decorator for start-up work."""
import os
import logging
import time
from functools import wraps
from dotenv import load_dotenv

load_dotenv()

LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"
SERVICE_LOGGER = "parts-market"

def get_logger(name=SERVICE_LOGGER, level=None):
    """Return a named logger. The root handler is configured once, from LOG_LEVEL unless `level` is given."""
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(format=LOG_FORMAT, level=getattr(logging, level, logging.INFO))
    return logging.getLogger(name)

logger = get_logger()

def retry(exceptions, attempts=3, delay=1.0, backoff=2.0, log=None, sleep=time.sleep):
    """Call the wrapped function up to `attempts` times while it raises `exceptions`.

    Waits `delay`, then `delay * backoff`, and so on between attempts. The
    final failure propagates unchanged.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")
    log = log or logger

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            wait = delay
            for attempt in range(1, attempts + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt == attempts:
                        log.error("%s failed after %d attempts: %s", func.__name__, attempts, e)
                        raise
                    log.warning("%s attempt %d/%d failed (%s); next try in %.1fs",
                                func.__name__, attempt, attempts, e, wait)
                    sleep(wait)
                    wait *= backoff
        return wrapper
    return decorator

def normalize_whitespace(value: str) -> str:
    return " ".join(value.split())
