# app/services/deliveries.py
"""
🛵 DELIVERIES

What delivery partners do, from the API and from the delivery bot alike:

    available -> accept -> picked up -> complete
                  \\_ location updates while on the way

Accept, pick-up and complete are single conditional UPDATEs (see
DeliveryRepository); when one matches no row the delivery is re-read only to
explain why. Accept and complete lock the order row before they write the
delivery row, the same order OrderService uses.
"""

from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.domain import claims, lifecycle
from app.domain.errors import InvalidState, NotFound, PermissionDenied
from app.services.notifications import NotificationService
from config.settings import Settings, config
from infrastructure.database.models import (
    Delivery,
    DeliveryStatus,
    NotificationType,
    Order,
    OrderStatus,
    User,
    utcnow,
)
from infrastructure.database.repositories import DeliveryRepository, OrderRepository
from infrastructure.logger import logger
from infrastructure.realtime import Publisher


def parse_statuses(raw: Optional[str]) -> List[DeliveryStatus]:
    """``"accepted,picked_up"`` -> [ACCEPTED, PICKED_UP]; unknown names are dropped."""
    statuses = []
    for name in (raw or "").split(","):
        name = name.strip()
        if name in DeliveryStatus._value2member_map_:
            statuses.append(DeliveryStatus(name))
    return statuses


class DeliveryService:

    def __init__(
        self,
        session: AsyncSession,
        notifications: NotificationService,
        publisher: Optional[Publisher] = None,
        settings: Settings = config,
    ):
        self.session = session
        self.notifications = notifications
        self.publisher = publisher
        self.settings = settings

        self.deliveries = DeliveryRepository(session)
        self.orders = OrderRepository(session)

    # ==========================================
    # QUERIES
    # ==========================================

    async def available(self, limit: Optional[int] = None) -> List[Delivery]:
        return await self.deliveries.list_available(limit=limit)

    async def mine(
        self,
        partner: User,
        statuses: Optional[Iterable[DeliveryStatus]] = None,
        limit: Optional[int] = None,
    ) -> List[Delivery]:
        return await self.deliveries.list_for_partner(partner.id, statuses=list(statuses or []), limit=limit)

    async def statistics(self, date_from: Optional[datetime] = None, date_to: Optional[datetime] = None) -> dict:
        return await self.deliveries.get_statistics(date_from=date_from, date_to=date_to)

    # ==========================================
    # ACCEPT
    # ==========================================

    async def accept(self, partner: User, delivery_id) -> Delivery:
        """
        Claim a pending delivery for ``partner``.

        The claim and the order's move to ``out_for_delivery`` commit together;
        if the order is not ready the claim is rolled back as well.
        """
        demo_email = self.settings.demo_delivery_email
        if claims.is_demo_account(partner, demo_email):
            logger.warning("demo_account_accept_refused", partner_id=str(partner.id))
            raise PermissionDenied(claims.DEMO_ACCOUNT_REFUSED)

        try:
            order = await self._lock_order_of(delivery_id)
            if order is None:
                raise NotFound("Delivery not found")

            now = utcnow()
            claimed = await self.deliveries.claim(delivery_id, partner.id, now)
            delivery = await self.deliveries.get_by_id(delivery_id)

            if not claimed:
                claims.ensure_claimable(delivery, partner, demo_email)
                # the row changed between the UPDATE and the re-read
                raise InvalidState(claims.NO_LONGER_AVAILABLE)

            lifecycle.transition(order, OrderStatus.OUT_FOR_DELIVERY, now)
            order.delivery_partner_id = partner.id

            await self.session.commit()

        except Exception:
            await self.session.rollback()
            raise

        logger.info("delivery_accepted", delivery_id=str(delivery.id), partner_id=str(partner.id))

        await self.notifications.notify(
            order.customer_id,
            order.id,
            NotificationType.DELIVERY_ACCEPTED,
            title="Delivery Partner Assigned",
            message="Your order is being delivered",
        )

        return await self.deliveries.get_by_id(delivery.id)

    # ==========================================
    # ON THE WAY
    # ==========================================

    async def update_location(self, partner: User, delivery_id, latitude, longitude) -> Delivery:
        try:
            delivery = await self._get_own(partner, delivery_id)
            claims.ensure_location_tracked(delivery)

            delivery.current_latitude = latitude
            delivery.current_longitude = longitude
            await self.session.commit()

        except Exception:
            await self.session.rollback()
            raise

        if self.publisher is not None:
            try:
                await self.publisher.publish(
                    f"order_{delivery.order_id}",
                    "delivery_location_update",
                    {
                        "order_id": str(delivery.order_id),
                        "latitude": float(latitude),
                        "longitude": float(longitude),
                    },
                )
            except Exception as e:
                logger.error("location_publish_failed", delivery_id=str(delivery.id), error=str(e))

        return delivery

    async def mark_picked_up(self, partner: User, delivery_id) -> Delivery:
        try:
            now = utcnow()
            moved = await self.deliveries.advance(
                delivery_id,
                partner.id,
                claims.PICKUP_FROM,
                status=DeliveryStatus.PICKED_UP,
                picked_up_at=now,
                updated_at=now,
            )
            if not moved:
                delivery = await self._get_own(partner, delivery_id)
                claims.ensure_can_pick_up(delivery)
                raise InvalidState("Invalid delivery status")

            await self.session.commit()

        except Exception:
            await self.session.rollback()
            raise

        logger.info("delivery_picked_up", delivery_id=str(delivery_id), partner_id=str(partner.id))
        return await self.deliveries.get_by_id(delivery_id)

    async def complete(self, partner: User, delivery_id) -> Delivery:
        """Mark the delivery and its order delivered in one transaction."""
        try:
            order = await self._lock_order_of(delivery_id)

            now = utcnow()
            moved = await self.deliveries.advance(
                delivery_id,
                partner.id,
                claims.COMPLETABLE_FROM,
                status=DeliveryStatus.DELIVERED,
                delivered_at=now,
                updated_at=now,
            )
            if not moved:
                delivery = await self._get_own(partner, delivery_id)
                claims.ensure_can_complete(delivery)
                raise InvalidState("Delivery cannot be completed at this stage")

            delivery = await self.deliveries.get_by_id(delivery_id)
            lifecycle.transition(order, OrderStatus.DELIVERED, now)

            await self.session.commit()

        except Exception:
            await self.session.rollback()
            raise

        logger.info("delivery_completed", delivery_id=str(delivery.id), partner_id=str(partner.id))

        await self.notifications.notify(
            order.customer_id,
            order.id,
            NotificationType.ORDER_DELIVERED,
            title="Order Delivered",
            message=f"Your order #{order.order_number} has been delivered",
        )

        return await self.deliveries.get_by_id(delivery.id)

    async def _lock_order_of(self, delivery_id) -> Optional[Order]:
        """
        Lock the delivery's order before the delivery row is written.

        Order status changes lock the order and then write the delivery, so
        every path that touches both takes the locks in that order.
        """
        order_id = await self.deliveries.get_order_id(delivery_id)
        if order_id is None:
            return None
        return await self.orders.get_with_relations(order_id, for_update=True)

    async def _get_own(self, partner: User, delivery_id) -> Delivery:
        delivery = await self.deliveries.get_for_partner(delivery_id, partner.id)
        if delivery is None:
            raise NotFound("Delivery not found")
        return delivery
