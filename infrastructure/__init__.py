# infrastructure/__init__.py
"""Infrastructure: logging, database, Redis, real-time rooms."""

from .logger import logger, setup_logging
from .redis_storage import redis, redis_storage
from .database import engine, async_session_maker, get_db_session, init_db, close_db

__all__ = [
    "logger",
    "setup_logging",
    "redis",
    "redis_storage",
    "engine",
    "async_session_maker",
    "get_db_session",
    "init_db",
    "close_db",
]
