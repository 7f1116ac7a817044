# app/services/notifications.py
"""
🔔 NOTIFICATIONS

A notification is three things at once:
1. a row in ``notifications`` (the in-app inbox)
2. a Telegram message from the bot the user talks to
3. a ``notification`` event in the user's real-time room

``notify`` is called after the business transaction has committed and is
best-effort: whatever fails is logged, nothing is raised to the caller.
"""

from typing import List, Optional, Protocol, Tuple

from aiogram import Bot
from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup
from sqlalchemy.ext.asyncio import AsyncSession

from app.bot.utils.text import notification_text
from app.domain.errors import NotFound
from app.domain.schemas import NotificationOut
from infrastructure.database.models import Notification, NotificationType, User, UserRole, utcnow
from infrastructure.database.repositories import NotificationRepository, UserRepository
from infrastructure.logger import logger
from infrastructure.realtime import Publisher


class TelegramSender(Protocol):

    async def send(self, user: User, title: str, message: str, order_id=None) -> None:
        ...


# ==========================================
# TELEGRAM
# ==========================================

def view_order_keyboard(order_id) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[[
        InlineKeyboardButton(text="View Order", callback_data=f"view_order:{order_id}")
    ]])


class TelegramNotifier:
    """Sends through the delivery bot to partners, the customer bot to everyone else."""

    def __init__(self, customer_bot: Optional[Bot], delivery_bot: Optional[Bot]):
        self.customer_bot = customer_bot
        self.delivery_bot = delivery_bot

    def bot_for(self, user: User) -> Optional[Bot]:
        if user.role == UserRole.DELIVERY:
            return self.delivery_bot
        return self.customer_bot

    async def send(self, user: User, title: str, message: str, order_id=None) -> None:
        bot = self.bot_for(user)
        if bot is None or not user.telegram_id:
            return

        await bot.send_message(
            chat_id=user.telegram_id,
            text=notification_text(title, message),
            reply_markup=view_order_keyboard(order_id) if order_id else None,
        )
        logger.info("telegram_notification_sent", user_id=str(user.id))


# ==========================================
# SERVICE
# ==========================================

class NotificationService:

    def __init__(
        self,
        session: AsyncSession,
        publisher: Optional[Publisher] = None,
        sender: Optional[TelegramSender] = None,
    ):
        self.session = session
        self.publisher = publisher
        self.sender = sender
        self.notifications = NotificationRepository(session)
        self.users = UserRepository(session)

    async def notify(
        self,
        user_id,
        order_id,
        type: NotificationType,
        title: str,
        message: str,
    ) -> Optional[Notification]:
        """Store, push and publish one notification. Never raises."""
        try:
            notification = Notification(
                user_id=user_id,
                order_id=order_id,
                type=NotificationType(type),
                title=title,
                message=message,
                is_read=False,
                created_at=utcnow(),
            )
            self.notifications.add(notification)
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            logger.error("notification_create_failed", user_id=str(user_id), error=str(e))
            return None

        if self.sender is not None:
            try:
                user = await self.users.get_by_id(user_id)
                if user is not None:
                    await self.sender.send(user, title, message, order_id=order_id)
            except Exception as e:
                logger.error("telegram_notification_failed", user_id=str(user_id), error=str(e))

        if self.publisher is not None:
            try:
                payload = NotificationOut.model_validate(notification).model_dump(mode="json")
                await self.publisher.publish(f"user_{user_id}", "notification", payload)
            except Exception as e:
                logger.error("notification_publish_failed", user_id=str(user_id), error=str(e))

        logger.info(
            "notification_created",
            notification_id=str(notification.id),
            user_id=str(user_id),
            type=notification.type.value,
        )
        return notification

    async def list_for_user(
        self,
        user: User,
        unread_only: bool = False,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[Notification], int]:
        return await self.notifications.list_for_user(
            user.id, unread_only=unread_only, limit=limit, offset=offset
        )

    async def mark_as_read(self, user: User, notification_id) -> Notification:
        """Idempotent; only the owner can see (and so mark) a notification."""
        notification = await self.notifications.get_for_user(notification_id, user.id)
        if notification is None:
            raise NotFound("Notification not found")

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            await self.session.commit()

        return notification
