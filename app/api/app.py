# app/api/app.py
"""
FastAPI application for both Mini Apps and the payment provider.

    /api/orders, /api/deliveries, /api/notifications   Mini App REST
    /api/webhooks/payments                             provider callbacks
    /api/events/{room}                                 real-time relay (SSE)
    /api/health                                        liveness

``create_app`` takes the collaborators the services need, so main.py wires
real bots and Redis while tests pass fakes.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.errors import register_error_handlers
from app.api.routes.deliveries import router as deliveries_router
from app.api.routes.events import router as events_router
from app.api.routes.notifications import router as notifications_router
from app.api.routes.orders import router as orders_router
from app.api.webhooks.payments import router as payments_webhook_router
from config.settings import config
from infrastructure.database.base import close_db, init_db
from infrastructure.logger import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("api_startup")
    await init_db()
    try:
        yield
    finally:
        logger.info("api_shutdown")
        await close_db()


def create_app(publisher=None, telegram=None, payments=None, manage_database: bool = True) -> FastAPI:
    app = FastAPI(
        title=f"{config.restaurant_name} API",
        description="Orders, deliveries and notifications for the customer and delivery Mini Apps",
        version="1.0.0",
        lifespan=lifespan if manage_database else None,
    )

    app.state.publisher = publisher
    app.state.telegram = telegram
    app.state.payments = payments

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    # ==========================================
    # ENDPOINT: Health check
    # ==========================================

    @app.get("/api/health")
    async def health_check():
        return {"status": "ok", "environment": config.environment}

    # ==========================================
    # ROUTERS
    # ==========================================

    for router in (
        orders_router,
        deliveries_router,
        notifications_router,
        payments_webhook_router,
        events_router,
    ):
        app.include_router(router, prefix="/api")

    return app
