# app/bot/middlewares/logging.py
"""Logs every message and callback a bot receives and tags the handler's logs with the bot name."""

from typing import Any, Awaitable, Callable, Dict, Union

from aiogram import BaseMiddleware
from aiogram.types import CallbackQuery, Message
from structlog.contextvars import bound_contextvars

from infrastructure.logger import logger


class LoggingMiddleware(BaseMiddleware):

    def __init__(self, bot_name: str):
        self.bot_name = bot_name

    async def __call__(
        self,
        handler: Callable[[Union[Message, CallbackQuery], Dict[str, Any]], Awaitable[Any]],
        event: Union[Message, CallbackQuery],
        data: Dict[str, Any],
    ) -> Any:
        if isinstance(event, Message):
            logger.info(
                "message_received",
                bot=self.bot_name,
                telegram_id=event.from_user.id if event.from_user else None,
                text=event.text[:50] if event.text else None,
            )
        elif isinstance(event, CallbackQuery):
            logger.info(
                "callback_received",
                bot=self.bot_name,
                telegram_id=event.from_user.id,
                callback_data=event.data,
            )

        with bound_contextvars(bot=self.bot_name):
            return await handler(event, data)
