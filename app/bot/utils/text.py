# app/bot/utils/text.py
"""Message texts for both bots (HTML parse mode)."""

from html import escape
from typing import Iterable

from infrastructure.database.models import Category, Delivery, Order


def money_text(amount) -> str:
    return f"{amount} UZS"


def welcome_customer_text(restaurant_name: str) -> str:
    return (
        f"Welcome to <b>{escape(restaurant_name)}</b>! 🍽️\n\n"
        "Use our Telegram Mini App to:\n"
        "🛒 Browse menu\n"
        "📦 Place orders\n"
        "📍 Track deliveries\n"
        "💳 Make payments\n\n"
        "Tap the button below to open the app!"
    )


def welcome_partner_text(restaurant_name: str) -> str:
    return (
        f"Welcome to <b>{escape(restaurant_name)} Delivery</b>! 🚗\n\n"
        "Use our Telegram Mini App to:\n"
        "📦 View available deliveries\n"
        "✅ Accept delivery jobs\n"
        "📍 Update your location\n\n"
        "Tap the button below to open the app!"
    )


def menu_text(categories: Iterable[Category]) -> str:
    lines = ["📋 <b>Our Menu</b>", ""]
    for category in categories:
        available = [item for item in category.items if item.is_available]
        if not available:
            continue
        lines.append(f"<b>{escape(category.name)}</b>")
        for item in sorted(available, key=lambda i: (i.sort_order, i.name)):
            lines.append(f"  • {escape(item.name)} - {money_text(item.price)}")
        lines.append("")
    if len(lines) == 2:
        return "The menu is empty right now."
    return "\n".join(lines).rstrip()


def orders_list_text(orders: Iterable[Order]) -> str:
    lines = ["📦 <b>Your Recent Orders</b>", ""]
    for order in orders:
        lines.append(f"Order #{order.order_number}")
        lines.append(f"Status: {order.status.value}")
        lines.append(f"Total: {money_text(order.total_amount)}")
        lines.append("")
    return "\n".join(lines).rstrip()


def order_card_text(order: Order) -> str:
    lines = [
        f"📦 <b>Order #{order.order_number}</b>",
        "",
        f"Status: {order.status.value}",
        f"Total: {money_text(order.total_amount)}",
        f"Payment: {order.payment_status.value}",
    ]
    if order.estimated_delivery_time:
        lines.append(f"Estimated Delivery: {order.estimated_delivery_time:%Y-%m-%d %H:%M} UTC")
    return "\n".join(lines)


def delivery_line_text(delivery: Delivery, with_status: bool = False) -> str:
    order = delivery.order
    lines = [f"Order #{order.order_number}"]
    if with_status:
        lines.append(f"Status: {delivery.status.value}")
    lines.append(f"Amount: {money_text(order.total_amount)}")
    if not with_status:
        distance = delivery.distance_km if delivery.distance_km is not None else "N/A"
        lines.append(f"Distance: ~{distance} km")
    return "\n".join(lines)


def notification_text(title: str, message: str) -> str:
    return f"<b>{escape(title)}</b>\n\n{escape(message)}"
