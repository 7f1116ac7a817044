# infrastructure/database/repositories.py
"""
Repository pattern.

Instead of writing
    session.execute(select(...))
all over the services, every query lives here behind a named method:
    await orders.get_with_relations(order_id)
    await deliveries.claim(delivery_id, partner_id, now)

Repositories never commit. The service that owns the unit of work decides
when to commit or roll back.

Relations are loaded with selectinload() up front: lazy loading does not
work with AsyncSession.
"""

from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from .models import (
    Address,
    Category,
    Delivery,
    DeliveryStatus,
    MenuItem,
    Notification,
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
    User,
)


def _order_relations():
    return (
        selectinload(Order.items).selectinload(OrderItem.menu_item),
        selectinload(Order.delivery),
        selectinload(Order.delivery_address),
        selectinload(Order.customer),
        selectinload(Order.delivery_partner),
    )


def _created_between(column, date_from: Optional[datetime], date_to: Optional[datetime]) -> list:
    conditions = []
    if date_from:
        conditions.append(column >= date_from)
    if date_to:
        conditions.append(column <= date_to)
    return conditions


# ==========================================
# REPOSITORY: User
# ==========================================

class UserRepository:

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id) -> Optional[User]:
        return await self.session.get(User, user_id)

    async def get_by_telegram_id(self, telegram_id) -> Optional[User]:
        stmt = select(User).where(User.telegram_id == str(telegram_id))
        result = await self.session.execute(stmt)
        return result.scalars().first()


# ==========================================
# REPOSITORY: Address
# ==========================================

class AddressRepository:

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_for_user(self, address_id, user_id) -> Optional[Address]:
        """Only returns the address when ``user_id`` owns it."""
        stmt = select(Address).where(Address.id == address_id, Address.user_id == user_id)
        result = await self.session.execute(stmt)
        return result.scalars().first()


# ==========================================
# REPOSITORY: Menu
# ==========================================

class MenuRepository:

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_items(self, item_ids: Iterable) -> dict:
        """``{id: MenuItem}`` for the ids that exist."""
        ids = list(set(item_ids))
        if not ids:
            return {}
        stmt = select(MenuItem).where(MenuItem.id.in_(ids))
        result = await self.session.execute(stmt)
        return {item.id: item for item in result.scalars().all()}

    async def get_active_menu(self) -> Sequence[Category]:
        """Active categories, each with its available items loaded."""
        stmt = (
            select(Category)
            .where(Category.is_active.is_(True))
            .order_by(Category.sort_order, Category.name)
            .options(selectinload(Category.items))
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def increment_sales(self, quantities: Iterable[Tuple]):
        """
        ``sales_count += quantity`` per (menu_item_id, quantity) pair.

        Each bump is a relative UPDATE so it does not overwrite concurrent
        edits to the item.
        """
        for menu_item_id, quantity in quantities:
            stmt = (
                update(MenuItem)
                .where(MenuItem.id == menu_item_id)
                .values(sales_count=MenuItem.sales_count + quantity)
                .execution_options(synchronize_session=False)
            )
            await self.session.execute(stmt)


# ==========================================
# REPOSITORY: Order
# ==========================================

class OrderRepository:

    def __init__(self, session: AsyncSession):
        self.session = session

    def add(self, order: Order):
        self.session.add(order)

    async def get_with_relations(self, order_id, for_update: bool = False) -> Optional[Order]:
        """
        The order with items, delivery, address and both users.

        ``for_update`` takes a row lock on the order until the transaction
        ends (PostgreSQL); it also refreshes an already-loaded instance.
        """
        stmt = (
            select(Order)
            .where(Order.id == order_id)
            .options(*_order_relations())
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update(of=Order)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def get_visible_to(self, order_id, user_id) -> Optional[Order]:
        """The order if ``user_id`` is its customer or its delivery partner."""
        stmt = (
            select(Order)
            .where(
                Order.id == order_id,
                or_(Order.customer_id == user_id, Order.delivery_partner_id == user_id),
            )
            .options(*_order_relations())
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def list_orders(
        self,
        customer_id=None,
        status: Optional[OrderStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[Order], int]:
        """Newest first. Returns (page, total matching)."""
        conditions = _created_between(Order.created_at, date_from, date_to)
        if customer_id is not None:
            conditions.append(Order.customer_id == customer_id)
        if status is not None:
            conditions.append(Order.status == status)
        if payment_status is not None:
            conditions.append(Order.payment_status == payment_status)

        total = await self.session.scalar(select(func.count(Order.id)).where(*conditions))

        stmt = (
            select(Order)
            .where(*conditions)
            .order_by(Order.created_at.desc())
            .limit(limit)
            .offset(offset)
            .options(*_order_relations())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), int(total or 0)

    async def get_statistics(self, date_from: Optional[datetime] = None, date_to: Optional[datetime] = None) -> dict:
        conditions = _created_between(Order.created_at, date_from, date_to)

        total = await self.session.scalar(select(func.count(Order.id)).where(*conditions))

        by_status = await self.session.execute(
            select(Order.status, func.count(Order.id))
            .where(*conditions)
            .group_by(Order.status)
        )

        revenue = await self.session.execute(
            select(func.sum(Order.total_amount), func.avg(Order.total_amount))
            .where(*conditions, Order.payment_status == PaymentStatus.PAID)
        )
        total_revenue, average = revenue.one()

        return {
            "total_orders": int(total or 0),
            "orders_by_status": [
                {"status": OrderStatus(status).value, "count": count}
                for status, count in by_status.all()
            ],
            "total_revenue": float(total_revenue or 0),
            "average_order_value": float(average or 0),
        }


# ==========================================
# REPOSITORY: Delivery
# ==========================================

class DeliveryRepository:

    def __init__(self, session: AsyncSession):
        self.session = session

    def add(self, delivery: Delivery):
        self.session.add(delivery)

    async def get_by_id(self, delivery_id) -> Optional[Delivery]:
        """Always re-reads the row, so it reflects conditional updates."""
        stmt = (
            select(Delivery)
            .where(Delivery.id == delivery_id)
            .options(selectinload(Delivery.order))
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def get_for_partner(self, delivery_id, partner_id) -> Optional[Delivery]:
        stmt = (
            select(Delivery)
            .where(Delivery.id == delivery_id, Delivery.delivery_partner_id == partner_id)
            .options(selectinload(Delivery.order))
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def get_order_id(self, delivery_id):
        """Plain read, no lock; writers lock the order with this id first."""
        return await self.session.scalar(select(Delivery.order_id).where(Delivery.id == delivery_id))

    async def claim(self, delivery_id, partner_id, now: datetime) -> bool:
        """
        Atomic check-and-set for accepting a delivery.

        One UPDATE guarded by the current status and owner; the database
        serializes concurrent writers on the row, so of two partners racing
        for the same delivery exactly one sees rowcount == 1.
        """
        stmt = (
            update(Delivery)
            .where(
                Delivery.id == delivery_id,
                Delivery.status == DeliveryStatus.PENDING,
                or_(
                    Delivery.delivery_partner_id.is_(None),
                    Delivery.delivery_partner_id == partner_id,
                ),
            )
            .values(
                delivery_partner_id=partner_id,
                status=DeliveryStatus.ACCEPTED,
                accepted_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def advance(self, delivery_id, partner_id, from_statuses: Iterable[DeliveryStatus], **values) -> bool:
        """Conditional status move for the partner that owns the delivery."""
        stmt = (
            update(Delivery)
            .where(
                Delivery.id == delivery_id,
                Delivery.delivery_partner_id == partner_id,
                Delivery.status.in_(list(from_statuses)),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def list_available(self, limit: Optional[int] = None) -> List[Delivery]:
        """Pending deliveries whose order is ready, oldest first."""
        stmt = (
            select(Delivery)
            .join(Delivery.order)
            .where(
                Delivery.status == DeliveryStatus.PENDING,
                Order.status == OrderStatus.READY,
            )
            .order_by(Delivery.created_at.asc())
            .options(
                selectinload(Delivery.order).options(*_order_relations())
            )
        )
        if limit:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_for_partner(
        self,
        partner_id,
        statuses: Optional[Sequence[DeliveryStatus]] = None,
        limit: Optional[int] = None,
    ) -> List[Delivery]:
        stmt = select(Delivery).where(Delivery.delivery_partner_id == partner_id)
        if statuses:
            stmt = stmt.where(Delivery.status.in_(list(statuses)))
        stmt = (
            stmt.order_by(Delivery.created_at.desc())
            .options(selectinload(Delivery.order).options(*_order_relations()))
        )
        if limit:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_statistics(self, date_from: Optional[datetime] = None, date_to: Optional[datetime] = None) -> dict:
        conditions = _created_between(Delivery.created_at, date_from, date_to)

        total = await self.session.scalar(select(func.count(Delivery.id)).where(*conditions))

        by_status = await self.session.execute(
            select(Delivery.status, func.count(Delivery.id))
            .where(*conditions)
            .group_by(Delivery.status)
        )

        delivery_count = func.count(Delivery.id).label("delivery_count")
        top_partners = await self.session.execute(
            select(Delivery.delivery_partner_id, User.first_name, User.last_name, delivery_count)
            .outerjoin(User, User.id == Delivery.delivery_partner_id)
            .where(*conditions, Delivery.status == DeliveryStatus.DELIVERED)
            .group_by(Delivery.delivery_partner_id, User.first_name, User.last_name)
            .order_by(delivery_count.desc())
            .limit(10)
        )

        return {
            "total_deliveries": int(total or 0),
            "deliveries_by_status": [
                {"status": DeliveryStatus(status).value, "count": count}
                for status, count in by_status.all()
            ],
            "top_delivery_partners": [
                {
                    "partner_id": str(partner_id) if partner_id else None,
                    "first_name": first_name,
                    "last_name": last_name,
                    "delivery_count": count,
                }
                for partner_id, first_name, last_name, count in top_partners.all()
            ],
        }


# ==========================================
# REPOSITORY: Notification
# ==========================================

class NotificationRepository:

    def __init__(self, session: AsyncSession):
        self.session = session

    def add(self, notification: Notification):
        self.session.add(notification)

    async def list_for_user(
        self,
        user_id,
        unread_only: bool = False,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[Notification], int]:
        conditions = [Notification.user_id == user_id]
        if unread_only:
            conditions.append(Notification.is_read.is_(False))

        total = await self.session.scalar(select(func.count(Notification.id)).where(*conditions))

        stmt = (
            select(Notification)
            .where(*conditions)
            .order_by(Notification.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), int(total or 0)

    async def get_for_user(self, notification_id, user_id) -> Optional[Notification]:
        stmt = select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()
