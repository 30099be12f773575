"""Coupon Server API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map CouponError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Each app owns one ServiceContainer (app.state.container); nothing is module-global
    - Dataset file initialized (or recovered) on startup via lifespan
    - The optional demo reset job runs only between lifespan startup and shutdown
    - Every response carries the standard security headers

Design Decisions:
    - create_app() factory: tests build isolated apps on temporary data files
    - Lifespan over @app.on_event: FastAPI recommended pattern
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from coupon_server.api.error_handlers import register_error_handlers
from coupon_server.api.routes import admin, clients, coupons, health, offers, redemptions
from coupon_server.api.security_headers import SecurityHeadersMiddleware
from coupon_server.config import Settings, get_settings
from coupon_server.container import build_container
from coupon_server.infrastructure.observability import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    container = app.state.container
    setup_logging(container.settings.log_level, container.settings.log_format)
    await container.store.load()
    if not container.settings.api_key:
        logger.warning("API_KEY not set: redemption and admin routes will refuse requests")
    if container.demo_reset is not None:
        container.demo_reset.start()
    logger.info(f"Coupon API started (data file: {container.store.path})")
    try:
        yield
    finally:
        if container.demo_reset is not None:
            await container.demo_reset.stop()
        logger.info("Coupon API shutting down")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    application = FastAPI(
        title="Coupon Server API", version="1.0.0", lifespan=lifespan,
    )
    application.state.container = build_container(settings)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    application.add_middleware(SecurityHeadersMiddleware)

    application.include_router(health.router)
    application.include_router(coupons.router)
    application.include_router(redemptions.router)
    application.include_router(offers.router)
    application.include_router(admin.router)
    application.include_router(clients.router)

    register_error_handlers(application)
    return application


app = create_app()
