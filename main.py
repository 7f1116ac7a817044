# main.py
"""
🚀 ENTRY POINT

One process runs everything:
- the REST API (uvicorn)
- the customer bot (polling)
- the delivery bot (polling)

    python main.py
"""

import asyncio

import uvicorn
from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.fsm.storage.base import BaseStorage
from aiogram.fsm.storage.memory import MemoryStorage

from app.api.app import create_app
from app.bot.handlers import customer_router, delivery_router
from app.bot.middlewares import DatabaseMiddleware, LoggingMiddleware
from app.services.notifications import TelegramNotifier
from app.services.payments import PaymentGateway
from config.settings import config
from infrastructure.database.base import async_session_maker, close_db, init_db
from infrastructure.logger import logger, setup_logging
from infrastructure.realtime import create_publisher
from infrastructure.redis_storage import check_redis_connection, redis, redis_storage


# ==========================================
# 🤖 BOTS
# ==========================================

def build_dispatcher(name: str, router, storage: BaseStorage, publisher, telegram) -> Dispatcher:
    """
    Dispatcher with logging + session middlewares.

    Both are outer middlewares so filters (HasRole) already see the session.
    """
    dp = Dispatcher(storage=storage)

    for observer in (dp.message, dp.callback_query):
        observer.outer_middleware(LoggingMiddleware(name))
        observer.outer_middleware(DatabaseMiddleware(async_session_maker))

    # available to every handler as keyword arguments
    dp["publisher"] = publisher
    dp["telegram"] = telegram

    dp.include_router(router)
    return dp


async def run_bot(name: str, bot: Bot, dp: Dispatcher):
    try:
        me = await bot.get_me()
        logger.info("polling_started", bot=name, bot_username=f"@{me.username}")
        await dp.start_polling(bot, handle_signals=False)
    except asyncio.CancelledError:
        logger.info("polling_cancelled", bot=name)
        raise
    except Exception as e:
        logger.error("bot_polling_error", bot=name, error=str(e), error_type=type(e).__name__)
        raise
    finally:
        await bot.session.close()
        logger.info("bot_session_closed", bot=name)


# ==========================================
# 🌐 API
# ==========================================

async def run_api(app):
    server = uvicorn.Server(uvicorn.Config(
        app,
        host=config.api_host,
        port=config.api_port,
        log_level="info",
        access_log=True,
    ))
    logger.info("api_starting", host=config.api_host, port=config.api_port)
    await server.serve()


# ==========================================
# 🚀 MAIN
# ==========================================

async def main():
    setup_logging()
    logger.info("application_start", environment=config.environment)

    if not config.customer_bot_token or not config.delivery_bot_token:
        logger.error("bot_token_missing")
        raise ValueError("CUSTOMER_BOT_TOKEN and DELIVERY_BOT_TOKEN must be set")

    if not config.payment_secret_key:
        logger.warning("payment_secret_key_missing", message="card checkout will fail")

    await init_db()

    redis_alive = await check_redis_connection()
    storage = redis_storage if redis_alive else MemoryStorage()
    publisher = create_publisher(
        redis if redis_alive else None,
        prefix=config.realtime_channel_prefix,
    )

    defaults = DefaultBotProperties(parse_mode="HTML")
    customer_bot = Bot(token=config.customer_bot_token, default=defaults)
    delivery_bot = Bot(token=config.delivery_bot_token, default=defaults)
    telegram = TelegramNotifier(customer_bot, delivery_bot)

    app = create_app(
        publisher=publisher,
        telegram=telegram,
        payments=PaymentGateway(),
        manage_database=False,
    )

    customer_dp = build_dispatcher("customer", customer_router, storage, publisher, telegram)
    delivery_dp = build_dispatcher("delivery", delivery_router, storage, publisher, telegram)

    try:
        await asyncio.gather(
            run_api(app),
            run_bot("customer", customer_bot, customer_dp),
            run_bot("delivery", delivery_bot, delivery_dp),
        )
    finally:
        await close_db()
        logger.info("application_stopped")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("app_interrupted")
