# app/bot/handlers/customer.py
"""
Customer bot.

- /start     welcome + Mini App button
- /menu      active categories with what is available now
- /myorders  the last five orders
- view_order:<id>  (button under every notification) order card
"""

import uuid

from aiogram import F, Router, types
from aiogram.filters import Command
from sqlalchemy.ext.asyncio import AsyncSession

from app.bot.keyboards.customer import open_menu_keyboard, order_card_keyboard
from app.bot.utils.text import menu_text, order_card_text, orders_list_text, welcome_customer_text
from app.domain.errors import NotFound
from app.services.notifications import NotificationService
from app.services.orders import OrderService
from config.settings import config
from infrastructure.database.repositories import MenuRepository, UserRepository
from infrastructure.logger import logger

router = Router(name="customer")

VIEW_ORDER_PREFIX = "view_order:"


# ==========================================
# COMMAND: /start
# ==========================================

@router.message(Command("start"))
async def cmd_start(message: types.Message):
    logger.info("customer_start", telegram_id=message.from_user.id)
    await message.answer(
        welcome_customer_text(config.restaurant_name),
        reply_markup=open_menu_keyboard(config.customer_webapp_url),
    )


# ==========================================
# COMMAND: /menu
# ==========================================

@router.message(Command("menu"))
async def cmd_menu(message: types.Message, session: AsyncSession):
    categories = await MenuRepository(session).get_active_menu()
    await message.answer(menu_text(categories))


# ==========================================
# COMMAND: /myorders
# ==========================================

@router.message(Command("myorders"))
async def cmd_my_orders(message: types.Message, session: AsyncSession):
    user = await UserRepository(session).get_by_telegram_id(message.from_user.id)
    if user is None:
        await message.answer("Please register first by opening the app.")
        return

    orders = OrderService(session, NotificationService(session))
    recent, _ = await orders.my_orders(user, limit=5)

    if not recent:
        await message.answer("You have no orders yet.")
        return

    await message.answer(orders_list_text(recent))


# ==========================================
# CALLBACK: view_order:<id>
# ==========================================

@router.callback_query(F.data.startswith(VIEW_ORDER_PREFIX))
async def on_view_order(callback: types.CallbackQuery, session: AsyncSession):
    raw_id = callback.data[len(VIEW_ORDER_PREFIX):]
    user = await UserRepository(session).get_by_telegram_id(callback.from_user.id)

    try:
        if user is None:
            raise NotFound("Order not found")
        order = await OrderService(session, NotificationService(session)).get_order(user, uuid.UUID(raw_id))
    except (ValueError, NotFound):
        await callback.answer("Order not found", show_alert=True)
        return

    await callback.message.answer(
        order_card_text(order),
        reply_markup=order_card_keyboard(config.customer_webapp_url, order.id),
    )
    await callback.answer()
