# infrastructure/database/models.py
"""
Table definitions.

Every class is one table, every attribute is one column.
SQLAlchemy creates the tables on first start (see ``init_db``).

Values that the old system computed in ORM hooks (order number, line item
subtotal) are computed explicitly here, by the factories and ``recalculate_*``
methods, and are called by the services right before a write.
"""

import secrets
import uuid
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import relationship

from infrastructure.database.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def money(value) -> Decimal:
    """Round to two decimal places, the precision of every money column."""
    return Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _enum(enum_cls, name: str) -> Enum:
    # store the lowercase values, not the member names
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


# ==========================================
# ENUMS
# ==========================================

class UserRole(str, PyEnum):
    CUSTOMER = "customer"
    DELIVERY = "delivery"
    ADMIN = "admin"


class OrderStatus(str, PyEnum):
    """Kitchen-side lifecycle of an order."""
    PENDING = "pending"
    PAID = "paid"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, PyEnum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, PyEnum):
    CARD = "card"
    CASH = "cash"
    PAYME = "payme"
    CLICK = "click"


class DeliveryStatus(str, PyEnum):
    """Courier-side lifecycle of the delivery paired with an order."""
    PENDING = "pending"
    ASSIGNED = "assigned"
    ACCEPTED = "accepted"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    FAILED = "failed"


class NotificationType(str, PyEnum):
    ORDER_CREATED = "order_created"
    ORDER_PAID = "order_paid"
    ORDER_CONFIRMED = "order_confirmed"
    ORDER_PREPARING = "order_preparing"
    ORDER_READY = "order_ready"
    ORDER_OUT_FOR_DELIVERY = "order_out_for_delivery"
    ORDER_DELIVERED = "order_delivered"
    ORDER_CANCELLED = "order_cancelled"
    PAYMENT_SUCCESS = "payment_success"
    PAYMENT_FAILED = "payment_failed"
    DELIVERY_ASSIGNED = "delivery_assigned"
    DELIVERY_ACCEPTED = "delivery_accepted"


# ==========================================
# MODEL: User
# ==========================================

class User(Base):
    """Customers, delivery partners and admins share one table."""
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # Telegram user id (string, as Telegram ids do not fit every client int)
    telegram_id = Column(String(64), unique=True, nullable=True, index=True)
    email = Column(String(255), unique=True, nullable=True, index=True)
    phone = Column(String(32), nullable=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)

    role = Column(
        _enum(UserRole, "user_role"),
        default=UserRole.CUSTOMER,
        nullable=False,
        index=True
    )
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    addresses = relationship("Address", back_populates="user")

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def __repr__(self):
        return f"<User(id={self.id}, role={self.role}, telegram_id={self.telegram_id})>"


# ==========================================
# MODEL: Address
# ==========================================

class Address(Base):
    __tablename__ = "addresses"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    street_address = Column(Text, nullable=False)
    city = Column(String(100), nullable=True)
    latitude = Column(Numeric(10, 8), nullable=True)
    longitude = Column(Numeric(11, 8), nullable=True)
    is_default = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)

    user = relationship("User", back_populates="addresses")


# ==========================================
# MODEL: Category / MenuItem
# ==========================================

class Category(Base):
    __tablename__ = "categories"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)

    items = relationship("MenuItem", back_populates="category")


class MenuItem(Base):
    __tablename__ = "menu_items"
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_menu_items_price_non_negative"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    category_id = Column(Uuid, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    is_available = Column(Boolean, default=True, nullable=False, index=True)
    sort_order = Column(Integer, default=0, nullable=False)

    # Denormalized popularity counter, bumped when an order is confirmed
    sales_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)

    category = relationship("Category", back_populates="items")


# ==========================================
# MODEL: Order
# ==========================================

class Order(Base):
    """
    A customer's purchase.

    Owned by one customer; gets one delivery partner once a delivery is
    claimed. ``status`` only moves along the table in app/domain/lifecycle.py.
    """
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("subtotal >= 0", name="ck_orders_subtotal_non_negative"),
        CheckConstraint("delivery_fee >= 0", name="ck_orders_delivery_fee_non_negative"),
        CheckConstraint("total_amount >= 0", name="ck_orders_total_non_negative"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    order_number = Column(String(32), unique=True, nullable=False, index=True)

    customer_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    delivery_partner_id = Column(Uuid, ForeignKey("users.id"), nullable=True, index=True)
    address_id = Column(Uuid, ForeignKey("addresses.id"), nullable=False)

    status = Column(
        _enum(OrderStatus, "order_status"),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True
    )
    payment_status = Column(
        _enum(PaymentStatus, "payment_status"),
        default=PaymentStatus.PENDING,
        nullable=False,
        index=True
    )
    payment_method = Column(
        _enum(PaymentMethod, "payment_method"),
        default=PaymentMethod.CARD,
        nullable=False
    )
    payment_intent_id = Column(String(255), nullable=True)

    subtotal = Column(Numeric(10, 2), nullable=False)
    delivery_fee = Column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    total_amount = Column(Numeric(10, 2), nullable=False)

    delivery_notes = Column(Text, nullable=True)
    estimated_delivery_time = Column(DateTime(timezone=True), nullable=True)

    # One stamp per lifecycle step
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    preparing_at = Column(DateTime(timezone=True), nullable=True)
    ready_at = Column(DateTime(timezone=True), nullable=True)
    picked_up_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    delivery = relationship("Delivery", back_populates="order", uselist=False)
    customer = relationship("User", foreign_keys=[customer_id])
    delivery_partner = relationship("User", foreign_keys=[delivery_partner_id])
    delivery_address = relationship("Address")

    @staticmethod
    def generate_order_number(now: datetime = None) -> str:
        """
        ``ORD-<yymmddHHMMSS><8 hex>``.

        32 random bits per second keep back-to-back orders apart; the unique
        index on the column is the final guard.
        """
        now = now or utcnow()
        return f"ORD-{now:%y%m%d%H%M%S}{secrets.token_hex(4).upper()}"

    @classmethod
    def checkout(
        cls,
        customer_id,
        address_id,
        items: list,
        delivery_fee,
        payment_method: PaymentMethod,
        delivery_notes: str = None,
        estimated_delivery_time: datetime = None,
    ) -> "Order":
        """Build a new pending order with its money fields computed from ``items``."""
        for item in items:
            item.recalculate_subtotal()

        subtotal = money(sum((item.subtotal for item in items), Decimal("0")))
        fee = money(delivery_fee)

        return cls(
            id=uuid.uuid4(),
            order_number=cls.generate_order_number(),
            customer_id=customer_id,
            address_id=address_id,
            status=OrderStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            payment_method=payment_method,
            subtotal=subtotal,
            delivery_fee=fee,
            total_amount=subtotal + fee,
            delivery_notes=delivery_notes,
            estimated_delivery_time=estimated_delivery_time,
            items=items,
        )

    def __repr__(self):
        return f"<Order(id={self.id}, number={self.order_number}, status={self.status})>"


# ==========================================
# MODEL: OrderItem
# ==========================================

class OrderItem(Base):
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_order_items_unit_price_non_negative"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id = Column(Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    menu_item_id = Column(Uuid, ForeignKey("menu_items.id"), nullable=False, index=True)

    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(10, 2), nullable=False)
    subtotal = Column(Numeric(10, 2), nullable=False)
    special_instructions = Column(Text, nullable=True)

    order = relationship("Order", back_populates="items")
    menu_item = relationship("MenuItem")

    @classmethod
    def for_menu_item(cls, menu_item: MenuItem, quantity: int, special_instructions: str = None) -> "OrderItem":
        """Snapshot the current price of ``menu_item`` into a new line item."""
        item = cls(
            menu_item_id=menu_item.id,
            quantity=quantity,
            unit_price=money(menu_item.price),
            special_instructions=special_instructions,
        )
        item.recalculate_subtotal()
        return item

    def recalculate_subtotal(self) -> Decimal:
        """``subtotal = unit_price * quantity``; call before every write."""
        self.subtotal = money(Decimal(str(self.unit_price)) * int(self.quantity))
        return self.subtotal


# ==========================================
# MODEL: Delivery
# ==========================================

class Delivery(Base):
    """
    The courier-facing record paired one-to-one with an Order.

    ``delivery_partner_id`` stays empty until a partner claims the delivery.
    """
    __tablename__ = "deliveries"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id = Column(Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, unique=True)
    delivery_partner_id = Column(Uuid, ForeignKey("users.id"), nullable=True, index=True)

    status = Column(
        _enum(DeliveryStatus, "delivery_status"),
        default=DeliveryStatus.PENDING,
        nullable=False,
        index=True
    )

    dropoff_latitude = Column(Numeric(10, 8), nullable=True)
    dropoff_longitude = Column(Numeric(11, 8), nullable=True)
    current_latitude = Column(Numeric(10, 8), nullable=True)
    current_longitude = Column(Numeric(11, 8), nullable=True)
    distance_km = Column(Numeric(5, 2), nullable=True)

    assigned_at = Column(DateTime(timezone=True), nullable=True)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    picked_up_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    failed_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    order = relationship("Order", back_populates="delivery")
    delivery_partner = relationship("User")

    def __repr__(self):
        return f"<Delivery(id={self.id}, order_id={self.order_id}, status={self.status})>"


# ==========================================
# MODEL: Notification
# ==========================================

class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    order_id = Column(Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=True, index=True)

    type = Column(_enum(NotificationType, "notification_type"), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)

    is_read = Column(Boolean, default=False, nullable=False, index=True)
    read_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
