# app/bot/utils/__init__.py
"""Bot helpers."""

from .text import (
    delivery_line_text,
    menu_text,
    money_text,
    notification_text,
    order_card_text,
    orders_list_text,
    welcome_customer_text,
    welcome_partner_text,
)

__all__ = [
    "delivery_line_text",
    "menu_text",
    "money_text",
    "notification_text",
    "order_card_text",
    "orders_list_text",
    "welcome_customer_text",
    "welcome_partner_text",
]
