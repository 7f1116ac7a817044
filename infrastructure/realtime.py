# infrastructure/realtime.py
"""
📡 REAL-TIME ROOMS

Services push events to named rooms (``order_<id>``, ``user_<id>``) through a
``Publisher``; they never hold a global socket handle. The API relays a room
to browsers as Server-Sent Events.

    await publisher.publish("order_42", "delivery_location_update", {...})

RedisPublisher  - production, one Redis channel per room ``<prefix>:<room>``
LocalPublisher  - single process fan-out (development without Redis)
"""

import asyncio
import json
from collections import defaultdict
from typing import Any, AsyncIterator, Dict, Protocol, Set

from redis.asyncio.client import Redis

from infrastructure.logger import logger


def _encode(event: str, payload: Dict[str, Any]) -> str:
    return json.dumps({"event": event, "data": payload}, default=str)


class Publisher(Protocol):

    async def publish(self, room: str, event: str, payload: Dict[str, Any]) -> None:
        ...

    def subscribe(self, room: str) -> AsyncIterator[str]:
        ...


# ==========================================
# REDIS PUB/SUB
# ==========================================

class RedisPublisher:

    def __init__(self, redis: Redis, prefix: str = "rooms"):
        self.redis = redis
        self.prefix = prefix

    def channel(self, room: str) -> str:
        return f"{self.prefix}:{room}"

    async def publish(self, room: str, event: str, payload: Dict[str, Any]) -> None:
        receivers = await self.redis.publish(self.channel(room), _encode(event, payload))
        logger.debug("realtime_published", room=room, event_name=event, receivers=receivers)

    async def subscribe(self, room: str) -> AsyncIterator[str]:
        """Yield raw JSON messages for ``room`` until the consumer stops."""
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(self.channel(room))
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                yield message["data"]
        finally:
            await pubsub.unsubscribe(self.channel(room))
            await pubsub.aclose()


# ==========================================
# IN-PROCESS FAN-OUT
# ==========================================

class LocalPublisher:

    def __init__(self):
        self._queues: Dict[str, Set[asyncio.Queue]] = defaultdict(set)

    async def publish(self, room: str, event: str, payload: Dict[str, Any]) -> None:
        message = _encode(event, payload)
        for queue in list(self._queues.get(room, ())):
            queue.put_nowait(message)

    async def subscribe(self, room: str) -> AsyncIterator[str]:
        queue: asyncio.Queue = asyncio.Queue()
        self._queues[room].add(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            self._queues[room].discard(queue)
            if not self._queues[room]:
                del self._queues[room]


def create_publisher(redis: Redis = None, prefix: str = "rooms") -> Publisher:
    if redis is None:
        logger.warning("realtime_using_local_publisher")
        return LocalPublisher()
    return RedisPublisher(redis, prefix=prefix)
