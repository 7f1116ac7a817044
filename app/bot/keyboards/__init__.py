# app/bot/keyboards/__init__.py
"""Keyboards for both bots."""

from .customer import open_menu_keyboard, order_card_keyboard
from .delivery import ACCEPT_PREFIX, accept_delivery_keyboard, open_delivery_app_keyboard

__all__ = [
    "ACCEPT_PREFIX",
    "accept_delivery_keyboard",
    "open_delivery_app_keyboard",
    "open_menu_keyboard",
    "order_card_keyboard",
]
