# app/api/deps.py
"""
FastAPI dependencies: the DB session, the current user, and the services
wired with whatever the app was started with (publisher, Telegram, payments).
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from aiogram.utils.web_app import WebAppInitData, safe_parse_webapp_init_data
from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.errors import PermissionDenied, Unauthorized
from app.services.deliveries import DeliveryService
from app.services.notifications import NotificationService
from app.services.orders import OrderService
from app.services.payments import PaymentGateway, PaymentService
from config.settings import config
from infrastructure.database.base import get_db_session
from infrastructure.database.models import User, UserRole
from infrastructure.database.repositories import UserRepository
from infrastructure.logger import logger

AUTH_SCHEME = "tma"


# ==========================================
# AUTH (Telegram Mini App init data)
# ==========================================

def parse_init_data(init_data: str, max_age: int = None) -> WebAppInitData:
    """
    Validate Mini App init data against either bot's token.

    The customer and delivery apps are opened from different bots, so the
    hash may have been signed with either token.
    """
    max_age = config.init_data_max_age if max_age is None else max_age

    for token in (config.customer_bot_token, config.delivery_bot_token):
        if not token:
            continue
        try:
            data = safe_parse_webapp_init_data(token=token, init_data=init_data)
        except ValueError:
            continue

        auth_date = data.auth_date
        if auth_date.tzinfo is None:
            auth_date = auth_date.replace(tzinfo=timezone.utc)
        if max_age and datetime.now(timezone.utc) - auth_date > timedelta(seconds=max_age):
            raise Unauthorized("Init data expired")
        return data

    raise Unauthorized("Invalid init data")


async def get_current_user(
    authorization: Optional[str] = Header(default=None),
    session: AsyncSession = Depends(get_db_session),
) -> User:
    if not authorization:
        raise Unauthorized("Authorization required")

    scheme, _, init_data = authorization.partition(" ")
    if scheme.lower() != AUTH_SCHEME or not init_data:
        raise Unauthorized("Unsupported authorization scheme")

    data = parse_init_data(init_data.strip())
    if data.user is None:
        raise Unauthorized("Init data has no user")

    user = await UserRepository(session).get_by_telegram_id(data.user.id)
    if user is None or not user.is_active:
        logger.warning("unknown_telegram_user", telegram_id=data.user.id)
        raise Unauthorized("User not found or inactive")

    return user


def require_roles(*roles: UserRole):
    """``Depends(require_roles(UserRole.ADMIN))`` -> the current user, or 403."""

    async def dependency(user: User = Depends(get_current_user)) -> User:
        if UserRole(user.role) not in roles:
            raise PermissionDenied("Access denied")
        return user

    return dependency


# ==========================================
# SERVICES
# ==========================================

def get_publisher(request: Request):
    return getattr(request.app.state, "publisher", None)


def get_telegram_sender(request: Request):
    return getattr(request.app.state, "telegram", None)


def get_payment_gateway(request: Request) -> Optional[PaymentGateway]:
    return getattr(request.app.state, "payments", None)


def get_notification_service(
    session: AsyncSession = Depends(get_db_session),
    publisher=Depends(get_publisher),
    sender=Depends(get_telegram_sender),
) -> NotificationService:
    return NotificationService(session, publisher=publisher, sender=sender)


def get_order_service(
    session: AsyncSession = Depends(get_db_session),
    notifications: NotificationService = Depends(get_notification_service),
    payments: Optional[PaymentGateway] = Depends(get_payment_gateway),
) -> OrderService:
    return OrderService(session, notifications, payments=payments)


def get_delivery_service(
    session: AsyncSession = Depends(get_db_session),
    notifications: NotificationService = Depends(get_notification_service),
    publisher=Depends(get_publisher),
) -> DeliveryService:
    return DeliveryService(session, notifications, publisher=publisher)


def get_payment_service(
    session: AsyncSession = Depends(get_db_session),
    notifications: NotificationService = Depends(get_notification_service),
) -> PaymentService:
    return PaymentService(session, notifications)
