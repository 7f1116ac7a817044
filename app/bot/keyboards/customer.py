# app/bot/keyboards/customer.py
"""
Keyboards for the customer bot.

The Mini App opens through a ``web_app`` button; Telegram then signs the
init data the API checks on every request.
"""

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup, WebAppInfo


def open_menu_keyboard(webapp_url: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[[
        InlineKeyboardButton(text="🍽️ Open Menu", web_app=WebAppInfo(url=webapp_url))
    ]])


def order_card_keyboard(webapp_url: str, order_id) -> InlineKeyboardMarkup:
    """Deep link straight to the order page of the Mini App."""
    return InlineKeyboardMarkup(inline_keyboard=[[
        InlineKeyboardButton(
            text="🍽️ Open App",
            web_app=WebAppInfo(url=f"{webapp_url}/orders/{order_id}")
        )
    ]])
