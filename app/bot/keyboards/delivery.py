# app/bot/keyboards/delivery.py
"""Keyboards for the delivery bot."""

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup, WebAppInfo

ACCEPT_PREFIX = "accept_delivery:"


def open_delivery_app_keyboard(webapp_url: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[[
        InlineKeyboardButton(text="🚗 Open Delivery App", web_app=WebAppInfo(url=webapp_url))
    ]])


def accept_delivery_keyboard(delivery_id) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[[
        InlineKeyboardButton(text="✅ Accept", callback_data=f"{ACCEPT_PREFIX}{delivery_id}")
    ]])
