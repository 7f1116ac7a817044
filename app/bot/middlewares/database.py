# app/bot/middlewares/database.py
"""
Gives every handler its own AsyncSession:

    async def handler(message: Message, session: AsyncSession): ...

Whatever the handler leaves uncommitted is rolled back when the session
closes.
"""

from typing import Any, Awaitable, Callable, Dict, Union

from aiogram import BaseMiddleware
from aiogram.types import CallbackQuery, Message
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from infrastructure.logger import logger


class DatabaseMiddleware(BaseMiddleware):

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def __call__(
        self,
        handler: Callable[[Union[Message, CallbackQuery], Dict[str, Any]], Awaitable[Any]],
        event: Union[Message, CallbackQuery],
        data: Dict[str, Any],
    ) -> Any:
        async with self.session_maker() as session:
            data["session"] = session
            try:
                return await handler(event, data)
            except Exception as e:
                logger.error("bot_handler_error", error=str(e), error_type=type(e).__name__)
                raise
