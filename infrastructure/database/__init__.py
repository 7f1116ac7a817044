# infrastructure/database/__init__.py
"""
🗄️ DATABASE

Engine, sessions and the repositories the services build on.
"""

from infrastructure.database.base import (
    Base,
    async_session_maker,
    close_db,
    engine,
    get_db_session,
    init_db,
)
from infrastructure.database.repositories import (
    AddressRepository,
    DeliveryRepository,
    MenuRepository,
    NotificationRepository,
    OrderRepository,
    UserRepository,
)

__all__ = [
    "Base",
    "engine",
    "async_session_maker",
    "get_db_session",
    "init_db",
    "close_db",
    "AddressRepository",
    "DeliveryRepository",
    "MenuRepository",
    "NotificationRepository",
    "OrderRepository",
    "UserRepository",
]
