# app/api/routes/events.py
"""
Server-Sent Events relay for the real-time rooms.

    GET /api/events/order_<id>   delivery_location_update
    GET /api/events/user_<id>    notification

Only participants may listen: a user room belongs to its user, an order room
to the order's customer and delivery partner. Admins may listen anywhere.
"""

import json
import uuid

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from app.api.deps import get_current_user, get_order_service, get_publisher
from app.domain.errors import NotFound, PermissionDenied
from app.services.orders import OrderService
from infrastructure.database.models import User
from infrastructure.logger import logger

router = APIRouter(prefix="/events", tags=["events"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
    "Connection": "keep-alive",
}


def format_sse(message: str) -> str:
    """One published JSON message -> one SSE frame."""
    decoded = json.loads(message)
    return f"event: {decoded['event']}\ndata: {json.dumps(decoded['data'])}\n\n"


def parse_room(room: str):
    kind, _, raw_id = room.partition("_")
    if kind not in ("user", "order"):
        raise NotFound("Unknown room")
    try:
        return kind, uuid.UUID(raw_id)
    except ValueError:
        raise NotFound("Unknown room")


@router.get("/{room}")
async def stream_room(
    room: str,
    user: User = Depends(get_current_user),
    orders: OrderService = Depends(get_order_service),
    publisher=Depends(get_publisher),
):
    kind, entity_id = parse_room(room)

    if not user.is_admin:
        if kind == "user" and entity_id != user.id:
            raise PermissionDenied("Access denied")
        if kind == "order":
            await orders.get_order(user, entity_id)

    if publisher is None:
        raise NotFound("Real-time events are not enabled")

    # the stream may stay open for hours; give the connection back to the pool now
    user_id = str(user.id)
    await orders.session.close()

    async def relay():
        yield "retry: 3000\n\n"
        logger.info("sse_subscribed", room=room, user_id=user_id)
        try:
            async for message in publisher.subscribe(room):
                yield format_sse(message)
        finally:
            logger.info("sse_unsubscribed", room=room, user_id=user_id)

    return StreamingResponse(relay(), media_type="text/event-stream", headers=SSE_HEADERS)
