# app/domain/schemas.py
"""
Pydantic models for what goes in and out of the API (and real-time rooms).

Output models read straight from ORM objects (``from_attributes``).
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from infrastructure.database.models import (
    DeliveryStatus,
    NotificationType,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    UserRole,
)


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ==========================================
# REQUESTS
# ==========================================

class OrderItemIn(BaseModel):
    menu_item_id: uuid.UUID
    quantity: int = Field(ge=1)
    special_instructions: Optional[str] = None


class CreateOrderIn(BaseModel):
    items: List[OrderItemIn] = Field(min_length=1)
    address_id: uuid.UUID
    delivery_notes: Optional[str] = None
    payment_method: PaymentMethod = PaymentMethod.CARD


class UpdateStatusIn(BaseModel):
    status: OrderStatus


class CancelOrderIn(BaseModel):
    cancellation_reason: Optional[str] = None


class LocationIn(BaseModel):
    latitude: Decimal = Field(ge=-90, le=90)
    longitude: Decimal = Field(ge=-180, le=180)


# ==========================================
# RESPONSES
# ==========================================

class UserOut(ORMModel):
    id: uuid.UUID
    telegram_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    role: UserRole


class AddressOut(ORMModel):
    id: uuid.UUID
    street_address: str
    city: Optional[str] = None
    latitude: Optional[Decimal] = None
    longitude: Optional[Decimal] = None


class MenuItemOut(ORMModel):
    id: uuid.UUID
    name: str
    price: Decimal
    is_available: bool


class OrderItemOut(ORMModel):
    id: uuid.UUID
    menu_item_id: uuid.UUID
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    special_instructions: Optional[str] = None
    menu_item: Optional[MenuItemOut] = None


class DeliveryOut(ORMModel):
    id: uuid.UUID
    order_id: uuid.UUID
    delivery_partner_id: Optional[uuid.UUID] = None
    status: DeliveryStatus
    dropoff_latitude: Optional[Decimal] = None
    dropoff_longitude: Optional[Decimal] = None
    current_latitude: Optional[Decimal] = None
    current_longitude: Optional[Decimal] = None
    accepted_at: Optional[datetime] = None
    picked_up_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    failed_reason: Optional[str] = None
    created_at: Optional[datetime] = None


class OrderOut(ORMModel):
    id: uuid.UUID
    order_number: str
    customer_id: uuid.UUID
    delivery_partner_id: Optional[uuid.UUID] = None
    address_id: uuid.UUID
    status: OrderStatus
    payment_status: PaymentStatus
    payment_method: PaymentMethod
    payment_intent_id: Optional[str] = None
    subtotal: Decimal
    delivery_fee: Decimal
    total_amount: Decimal
    delivery_notes: Optional[str] = None
    estimated_delivery_time: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    preparing_at: Optional[datetime] = None
    ready_at: Optional[datetime] = None
    picked_up_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    items: List[OrderItemOut] = []
    delivery: Optional[DeliveryOut] = None
    delivery_address: Optional[AddressOut] = None
    customer: Optional[UserOut] = None
    delivery_partner: Optional[UserOut] = None


class DeliveryWithOrderOut(DeliveryOut):
    order: Optional[OrderOut] = None


class NotificationOut(ORMModel):
    id: uuid.UUID
    user_id: uuid.UUID
    order_id: Optional[uuid.UUID] = None
    type: NotificationType
    title: str
    message: str
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class PaymentOut(BaseModel):
    client_secret: Optional[str] = None
    payment_intent_id: Optional[str] = None
