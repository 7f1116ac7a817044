# app/bot/handlers/__init__.py
"""
🤖 BOT HANDLERS

One router per bot; main.py includes each into its own Dispatcher.
"""

from .customer import router as customer_router
from .delivery import router as delivery_router

__all__ = ["customer_router", "delivery_router"]
