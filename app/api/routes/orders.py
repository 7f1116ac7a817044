# app/api/routes/orders.py
"""Order endpoints under /api/orders."""

import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, status

from app.api.deps import get_current_user, get_order_service, require_roles
from app.api.responses import dump, dump_many, ok
from app.domain.schemas import CancelOrderIn, CreateOrderIn, OrderOut, PaymentOut, UpdateStatusIn
from app.services.orders import OrderService
from infrastructure.database.models import OrderStatus, PaymentStatus, User, UserRole

router = APIRouter(prefix="/orders", tags=["orders"])

admin_only = require_roles(UserRole.ADMIN)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_order(
    payload: CreateOrderIn,
    user: User = Depends(require_roles(UserRole.CUSTOMER, UserRole.ADMIN)),
    orders: OrderService = Depends(get_order_service),
):
    order, intent = await orders.create_order(user, payload)
    payment = None
    if intent is not None:
        payment = PaymentOut(client_secret=intent.client_secret, payment_intent_id=intent.id).model_dump()
    return ok({"order": dump(OrderOut, order), "payment": payment}, "Order created successfully")


@router.get("/my-orders")
async def my_orders(
    status_filter: Optional[OrderStatus] = Query(default=None, alias="status"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user: User = Depends(get_current_user),
    orders: OrderService = Depends(get_order_service),
):
    rows, total = await orders.my_orders(user, status=status_filter, limit=limit, offset=offset)
    return ok({"orders": dump_many(OrderOut, rows), "total": total, "limit": limit, "offset": offset})


# registered before "/{order_id}" so the path is not read as an id
@router.get("/statistics/overview")
async def order_statistics(
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    _: User = Depends(admin_only),
    orders: OrderService = Depends(get_order_service),
):
    return ok(await orders.statistics(date_from=date_from, date_to=date_to))


@router.get("")
async def all_orders(
    status_filter: Optional[OrderStatus] = Query(default=None, alias="status"),
    payment_status: Optional[PaymentStatus] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    _: User = Depends(admin_only),
    orders: OrderService = Depends(get_order_service),
):
    rows, total = await orders.all_orders(
        status=status_filter,
        payment_status=payment_status,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )
    return ok({"orders": dump_many(OrderOut, rows), "total": total, "limit": limit, "offset": offset})


@router.get("/{order_id}")
async def get_order(
    order_id: uuid.UUID,
    user: User = Depends(get_current_user),
    orders: OrderService = Depends(get_order_service),
):
    order = await orders.get_order(user, order_id)
    return ok({"order": dump(OrderOut, order)})


@router.patch("/{order_id}/status")
async def update_order_status(
    order_id: uuid.UUID,
    payload: UpdateStatusIn,
    user: User = Depends(admin_only),
    orders: OrderService = Depends(get_order_service),
):
    order = await orders.update_status(user, order_id, payload.status)
    return ok({"order": dump(OrderOut, order)}, "Order status updated successfully")


@router.patch("/{order_id}/cancel")
async def cancel_order(
    order_id: uuid.UUID,
    payload: Optional[CancelOrderIn] = Body(default=None),
    user: User = Depends(get_current_user),
    orders: OrderService = Depends(get_order_service),
):
    reason = payload.cancellation_reason if payload else None
    order = await orders.cancel_order(user, order_id, reason)
    return ok({"order": dump(OrderOut, order)}, "Order cancelled successfully")
