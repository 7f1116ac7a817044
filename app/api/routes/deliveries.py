# app/api/routes/deliveries.py
"""Delivery partner endpoints under /api/deliveries."""

import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_delivery_service, require_roles
from app.api.responses import dump, dump_many, ok
from app.domain.schemas import DeliveryOut, DeliveryWithOrderOut, LocationIn
from app.services.deliveries import DeliveryService, parse_statuses
from infrastructure.database.models import User, UserRole

router = APIRouter(prefix="/deliveries", tags=["deliveries"])

partner_only = require_roles(UserRole.DELIVERY)


@router.get("/available")
async def available_deliveries(
    _: User = Depends(require_roles(UserRole.DELIVERY, UserRole.ADMIN)),
    deliveries: DeliveryService = Depends(get_delivery_service),
):
    rows = await deliveries.available()
    return ok({"deliveries": dump_many(DeliveryWithOrderOut, rows)})


@router.get("/my-deliveries")
async def my_deliveries(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    user: User = Depends(partner_only),
    deliveries: DeliveryService = Depends(get_delivery_service),
):
    rows = await deliveries.mine(user, statuses=parse_statuses(status_filter))
    return ok({"deliveries": dump_many(DeliveryWithOrderOut, rows)})


@router.get("/statistics")
async def delivery_statistics(
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    _: User = Depends(require_roles(UserRole.ADMIN)),
    deliveries: DeliveryService = Depends(get_delivery_service),
):
    return ok(await deliveries.statistics(date_from=date_from, date_to=date_to))


@router.post("/{delivery_id}/accept")
async def accept_delivery(
    delivery_id: uuid.UUID,
    user: User = Depends(partner_only),
    deliveries: DeliveryService = Depends(get_delivery_service),
):
    delivery = await deliveries.accept(user, delivery_id)
    return ok({"delivery": dump(DeliveryOut, delivery)}, "Delivery accepted successfully")


@router.patch("/{delivery_id}/location")
async def update_location(
    delivery_id: uuid.UUID,
    payload: LocationIn,
    user: User = Depends(partner_only),
    deliveries: DeliveryService = Depends(get_delivery_service),
):
    await deliveries.update_location(user, delivery_id, payload.latitude, payload.longitude)
    return ok(message="Location updated successfully")


@router.patch("/{delivery_id}/picked-up")
async def mark_picked_up(
    delivery_id: uuid.UUID,
    user: User = Depends(partner_only),
    deliveries: DeliveryService = Depends(get_delivery_service),
):
    delivery = await deliveries.mark_picked_up(user, delivery_id)
    return ok({"delivery": dump(DeliveryOut, delivery)}, "Delivery marked as picked up")


@router.patch("/{delivery_id}/complete")
async def complete_delivery(
    delivery_id: uuid.UUID,
    user: User = Depends(partner_only),
    deliveries: DeliveryService = Depends(get_delivery_service),
):
    delivery = await deliveries.complete(user, delivery_id)
    return ok({"delivery": dump(DeliveryOut, delivery)}, "Delivery completed successfully")
