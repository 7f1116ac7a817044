# infrastructure/redis_storage.py
"""
🔴 REDIS

One Redis connection serves two jobs:
- FSM storage for both bots (aiogram RedisStorage)
- pub/sub for the real-time rooms (see infrastructure/realtime.py)

If the client cannot be built (bad URL, missing driver) the bots fall back
to MemoryStorage; their states are then lost on restart.
"""

from aiogram.fsm.storage.base import BaseStorage
from aiogram.fsm.storage.memory import MemoryStorage
from aiogram.fsm.storage.redis import RedisStorage
from redis.asyncio.client import Redis

from config.settings import config
from infrastructure.logger import logger

# ==========================================
# SETUP STORAGE (Redis if available, else Memory)
# ==========================================

redis = None
redis_storage: BaseStorage

try:
    redis = Redis.from_url(
        config.redis_url,
        encoding="utf-8",
        decode_responses=True
    )
    redis_storage = RedisStorage(redis=redis)
except ValueError as e:
    logger.warning("redis_unavailable_using_memory_storage", error=str(e))
    redis = None
    redis_storage = MemoryStorage()


async def check_redis_connection() -> bool:
    """Ping Redis. Called on startup for diagnostics only."""
    if redis is None:
        return False

    try:
        await redis.ping()
        return True
    except Exception as e:
        logger.error("redis_connection_error", error=str(e))
        return False


__all__ = [
    "redis",
    "redis_storage",
    "check_redis_connection",
]
