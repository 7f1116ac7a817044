# app/services/orders.py
"""
🧾 ORDERS

Checkout, status changes, cancellation and the admin views.

Every write runs as one unit of work on the request's session:
    try: ... commit
    except: rollback, re-raise
Notifications go out only after the commit succeeded.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.domain import lifecycle
from app.domain.errors import NotFound, ValidationFailed
from app.domain.schemas import CreateOrderIn
from app.services.notifications import NotificationService
from app.services.payments import PaymentGateway, PaymentIntent
from config.settings import Settings, config
from infrastructure.database.models import (
    Delivery,
    DeliveryStatus,
    NotificationType,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    User,
    utcnow,
)
from infrastructure.database.repositories import (
    AddressRepository,
    DeliveryRepository,
    MenuRepository,
    OrderRepository,
)
from infrastructure.logger import logger

DEFAULT_CANCELLATION_REASON = "Cancelled by customer"


class OrderService:

    def __init__(
        self,
        session: AsyncSession,
        notifications: NotificationService,
        payments: Optional[PaymentGateway] = None,
        settings: Settings = config,
    ):
        self.session = session
        self.notifications = notifications
        self.payments = payments
        self.settings = settings

        self.orders = OrderRepository(session)
        self.addresses = AddressRepository(session)
        self.menu = MenuRepository(session)
        self.deliveries = DeliveryRepository(session)

    # ==========================================
    # CHECKOUT
    # ==========================================

    async def create_order(self, customer: User, data: CreateOrderIn) -> Tuple[Order, Optional[PaymentIntent]]:
        """
        Validate the basket and create Order + OrderItems + Delivery at once.

        For card payments a payment intent is created before the commit, so a
        provider failure leaves nothing behind.
        """
        intent = None
        try:
            address = await self.addresses.get_for_user(data.address_id, customer.id)
            if address is None:
                raise NotFound("Delivery address not found")

            menu_items = await self.menu.get_items(line.menu_item_id for line in data.items)

            line_items = []
            for line in data.items:
                menu_item = menu_items.get(line.menu_item_id)
                if menu_item is None:
                    raise NotFound(f"Menu item {line.menu_item_id} not found")
                if not menu_item.is_available:
                    raise ValidationFailed(f"{menu_item.name} is currently unavailable")
                line_items.append(
                    OrderItem.for_menu_item(menu_item, line.quantity, line.special_instructions)
                )

            now = utcnow()
            order = Order.checkout(
                customer_id=customer.id,
                address_id=address.id,
                items=line_items,
                delivery_fee=self.settings.delivery_fee,
                payment_method=data.payment_method,
                delivery_notes=data.delivery_notes,
                estimated_delivery_time=now + timedelta(minutes=self.settings.estimated_delivery_minutes),
            )

            minimum = Decimal(str(self.settings.min_order_amount))
            if order.subtotal < minimum:
                raise ValidationFailed(f"Minimum order amount is {minimum.normalize():f} UZS")

            self.orders.add(order)
            self.deliveries.add(Delivery(
                order_id=order.id,
                status=DeliveryStatus.PENDING,
                dropoff_latitude=address.latitude,
                dropoff_longitude=address.longitude,
            ))
            await self.session.flush()

            if data.payment_method == PaymentMethod.CARD and self.payments is not None:
                intent = await self.payments.create_intent(order, customer)
                order.payment_intent_id = intent.id

            await self.session.commit()

        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "order_created",
            order_id=str(order.id),
            order_number=order.order_number,
            customer_id=str(customer.id),
            total_amount=str(order.total_amount),
        )

        await self.notifications.notify(
            customer.id,
            order.id,
            NotificationType.ORDER_CREATED,
            title="Order Created",
            message=f"Your order #{order.order_number} has been created. Total: {order.total_amount} UZS",
        )

        return await self.orders.get_with_relations(order.id), intent

    # ==========================================
    # STATUS
    # ==========================================

    async def update_status(self, actor: User, order_id, requested: OrderStatus) -> Order:
        """
        Admin path: any move in the transition table.

        ``confirmed`` bumps the sales counters of the ordered items; the
        linked delivery follows ``out_for_delivery``, ``delivered`` and
        ``cancelled``.
        """
        requested = OrderStatus(requested)
        try:
            order = await self._get_locked(order_id)
            lifecycle.can_transition(actor, order, requested).enforce()

            if requested == OrderStatus.CANCELLED and not actor.is_admin:
                lifecycle.ensure_customer_cancellable(order)

            now = utcnow()
            previous = lifecycle.transition(order, requested, now)
            lifecycle.sync_delivery(order.delivery, requested, now)

            if requested == OrderStatus.CONFIRMED:
                await self.menu.increment_sales(
                    (item.menu_item_id, item.quantity) for item in order.items
                )

            await self.session.commit()

        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "order_status_updated",
            order_id=str(order.id),
            previous_status=previous.value,
            status=requested.value,
            actor_id=str(actor.id),
        )

        await self.notifications.notify(
            order.customer_id,
            order.id,
            NotificationType(f"order_{requested.value}"),
            title=f"Order {requested.value}",
            message=lifecycle.NOTIFICATION_MESSAGES.get(
                requested, f"Order status updated to {requested.value}"
            ),
        )

        return await self.orders.get_with_relations(order.id)

    async def cancel_order(self, actor: User, order_id, reason: Optional[str] = None) -> Order:
        """
        Customer-facing cancel: only while pending, paid or confirmed, even
        though the admin path may also cancel an order out for delivery.
        """
        try:
            order = await self._get_locked(order_id)
            lifecycle.can_transition(actor, order, OrderStatus.CANCELLED).enforce()
            lifecycle.ensure_customer_cancellable(order)

            now = utcnow()
            lifecycle.transition(order, OrderStatus.CANCELLED, now)
            order.cancellation_reason = reason or DEFAULT_CANCELLATION_REASON
            lifecycle.sync_delivery(order.delivery, OrderStatus.CANCELLED, now)

            await self.session.commit()

        except Exception:
            await self.session.rollback()
            raise

        logger.info("order_cancelled", order_id=str(order.id), actor_id=str(actor.id))

        await self.notifications.notify(
            order.customer_id,
            order.id,
            NotificationType.ORDER_CANCELLED,
            title="Order Cancelled",
            message=f"Order #{order.order_number} has been cancelled",
        )

        return await self.orders.get_with_relations(order.id)

    async def _get_locked(self, order_id) -> Order:
        order = await self.orders.get_with_relations(order_id, for_update=True)
        if order is None:
            raise NotFound("Order not found")
        return order

    # ==========================================
    # QUERIES
    # ==========================================

    async def my_orders(
        self,
        customer: User,
        status: Optional[OrderStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[Order], int]:
        return await self.orders.list_orders(
            customer_id=customer.id, status=status, limit=limit, offset=offset
        )

    async def get_order(self, actor: User, order_id) -> Order:
        """Admins see every order, others only the ones they take part in."""
        if actor.is_admin:
            order = await self.orders.get_with_relations(order_id)
        else:
            order = await self.orders.get_visible_to(order_id, actor.id)

        if order is None:
            raise NotFound("Order not found")
        return order

    async def all_orders(
        self,
        status: Optional[OrderStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[Order], int]:
        return await self.orders.list_orders(
            status=status,
            payment_status=payment_status,
            date_from=date_from,
            date_to=date_to,
            limit=limit,
            offset=offset,
        )

    async def statistics(self, date_from: Optional[datetime] = None, date_to: Optional[datetime] = None) -> dict:
        return await self.orders.get_statistics(date_from=date_from, date_to=date_to)
