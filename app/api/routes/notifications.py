# app/api/routes/notifications.py
"""In-app inbox under /api/notifications."""

import uuid

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_current_user, get_notification_service
from app.api.responses import dump, dump_many, ok
from app.domain.schemas import NotificationOut
from app.services.notifications import NotificationService
from infrastructure.database.models import User

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
async def list_notifications(
    unread_only: bool = False,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user: User = Depends(get_current_user),
    notifications: NotificationService = Depends(get_notification_service),
):
    rows, total = await notifications.list_for_user(user, unread_only=unread_only, limit=limit, offset=offset)
    return ok({
        "notifications": dump_many(NotificationOut, rows),
        "total": total,
        "limit": limit,
        "offset": offset,
    })


@router.patch("/{notification_id}/read")
async def mark_as_read(
    notification_id: uuid.UUID,
    user: User = Depends(get_current_user),
    notifications: NotificationService = Depends(get_notification_service),
):
    notification = await notifications.mark_as_read(user, notification_id)
    return ok({"notification": dump(NotificationOut, notification)})
