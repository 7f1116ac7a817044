# app/bot/middlewares/__init__.py
"""
🔄 MIDDLEWARE

Run around every message and callback of both bots:
- LoggingMiddleware   one log line per update
- DatabaseMiddleware  an AsyncSession for the handler
"""

from .database import DatabaseMiddleware
from .logging import LoggingMiddleware

__all__ = [
    "DatabaseMiddleware",
    "LoggingMiddleware",
]
