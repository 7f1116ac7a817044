# app/bot/filters/role.py
"""
Filters that look the Telegram sender up in ``users``.

    @router.message(Command("available"), HasRole(UserRole.DELIVERY))
    async def cmd_available(message: Message, user: User):
        ...

When the filter passes it hands the loaded ``user`` to the handler.
"""

from typing import Union

from aiogram.filters import BaseFilter
from aiogram.types import CallbackQuery, Message
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.database.models import UserRole
from infrastructure.database.repositories import UserRepository


class HasRole(BaseFilter):

    def __init__(self, *roles: UserRole):
        self.roles = roles

    async def __call__(self, event: Union[Message, CallbackQuery], session: AsyncSession) -> Union[bool, dict]:
        user = await UserRepository(session).get_by_telegram_id(event.from_user.id)

        if user is None or not user.is_active:
            return False
        if self.roles and UserRole(user.role) not in self.roles:
            return False

        return {"user": user}
