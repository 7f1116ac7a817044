# app/bot/handlers/delivery.py
"""
Delivery bot.

- /start          welcome + Delivery App button
- /available      up to five ready deliveries, each with an Accept button
- /mydeliveries   the partner's active deliveries
- accept_delivery:<id>  claims the delivery through DeliveryService.accept,
  the same guarded update the API uses
"""

import uuid

from aiogram import F, Router, types
from aiogram.filters import Command
from sqlalchemy.ext.asyncio import AsyncSession

from app.bot.filters.role import HasRole
from app.bot.keyboards.delivery import ACCEPT_PREFIX, accept_delivery_keyboard, open_delivery_app_keyboard
from app.bot.utils.text import delivery_line_text, welcome_partner_text
from app.domain import claims
from app.domain.errors import DomainError
from app.services.deliveries import DeliveryService
from app.services.notifications import NotificationService
from config.settings import config
from infrastructure.database.models import User, UserRole
from infrastructure.logger import logger

router = Router(name="delivery")

partner_only = HasRole(UserRole.DELIVERY)

NOT_A_PARTNER = "You are not registered as a delivery partner."


def delivery_service(session: AsyncSession, publisher=None, telegram=None) -> DeliveryService:
    notifications = NotificationService(session, publisher=publisher, sender=telegram)
    return DeliveryService(session, notifications, publisher=publisher)


# ==========================================
# COMMAND: /start
# ==========================================

@router.message(Command("start"))
async def cmd_start(message: types.Message):
    logger.info("partner_start", telegram_id=message.from_user.id)
    await message.answer(
        welcome_partner_text(config.restaurant_name),
        reply_markup=open_delivery_app_keyboard(config.delivery_webapp_url),
    )


# ==========================================
# COMMAND: /available
# ==========================================

@router.message(Command("available"), partner_only)
async def cmd_available(message: types.Message, session: AsyncSession, user: User):
    deliveries = await delivery_service(session).available(limit=5)

    if not deliveries:
        await message.answer("No deliveries available at the moment.")
        return

    await message.answer("📦 <b>Available Deliveries</b>")
    for delivery in deliveries:
        await message.answer(
            delivery_line_text(delivery),
            reply_markup=accept_delivery_keyboard(delivery.id),
        )


# ==========================================
# COMMAND: /mydeliveries
# ==========================================

@router.message(Command("mydeliveries"), partner_only)
async def cmd_my_deliveries(message: types.Message, session: AsyncSession, user: User):
    deliveries = await delivery_service(session).mine(user, statuses=claims.LOCATION_TRACKED, limit=5)

    if not deliveries:
        await message.answer("You have no active deliveries.")
        return

    text = "\n\n".join(delivery_line_text(delivery, with_status=True) for delivery in deliveries)
    await message.answer(f"🚗 <b>Your Active Deliveries</b>\n\n{text}")


@router.message(Command("available", "mydeliveries"))
async def cmd_not_a_partner(message: types.Message):
    await message.answer(NOT_A_PARTNER)


# ==========================================
# CALLBACK: accept_delivery:<id>
# ==========================================

@router.callback_query(F.data.startswith(ACCEPT_PREFIX), partner_only)
async def on_accept_delivery(
    callback: types.CallbackQuery,
    session: AsyncSession,
    user: User,
    publisher=None,
    telegram=None,
):
    try:
        delivery_id = uuid.UUID(callback.data[len(ACCEPT_PREFIX):])
    except ValueError:
        await callback.answer("Delivery not found", show_alert=True)
        return

    try:
        await delivery_service(session, publisher, telegram).accept(user, delivery_id)
    except DomainError as e:
        logger.info("bot_accept_refused", delivery_id=str(delivery_id), reason=e.message)
        await callback.answer(e.message, show_alert=True)
        return

    await callback.answer("Delivery accepted ✅")
    await callback.message.edit_reply_markup(reply_markup=None)
    await callback.message.answer(
        "Delivery accepted. Open the app to navigate and update your location.",
        reply_markup=open_delivery_app_keyboard(config.delivery_webapp_url),
    )


@router.callback_query(F.data.startswith(ACCEPT_PREFIX))
async def on_accept_not_a_partner(callback: types.CallbackQuery):
    await callback.answer(NOT_A_PARTNER, show_alert=True)
