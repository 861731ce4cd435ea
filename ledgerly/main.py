"""
Ledgerly FastAPI application entry point.
"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerly import __version__
from ledgerly.config import get_settings
from ledgerly.core.logging_config import setup_logging
from ledgerly.core.sentry_config import init_sentry
from ledgerly.middleware.logging_middleware import LoggingMiddleware
from ledgerly.middleware.rate_limiter import (
    RedisRateLimiter,
    build_rate_limiter,
    sweep_periodically,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown lifecycle management."""
    settings = get_settings()
    logger.info(f"Starting {settings.app_name} v{__version__} ({settings.app_env.value})")
    if not settings.stripe_configured:
        logger.warning("Stripe is not configured; billing endpoints will return 503")

    sweeper = asyncio.create_task(
        sweep_periodically(app.state.rate_limiter, settings.rate_limit_sweep_interval_seconds)
    )
    yield

    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper
    await app.state.rate_limiter.close()
    logger.info(f"Shutting down {settings.app_name}")


def create_app() -> FastAPI:
    """Application factory — creates and configures the FastAPI instance."""
    settings = get_settings()

    # 1. Configure structured logging (before anything else)
    setup_logging(
        app_env=settings.app_env,
        log_level=settings.log_level,
        log_format=settings.log_format,
    )

    # 2. Initialize Sentry (before app creation so ASGI integration hooks in)
    init_sentry(
        dsn=settings.sentry_dsn,
        app_env=settings.app_env,
        app_version=__version__,
        traces_sample_rate=settings.sentry_traces_sample_rate,
    )

    openapi_tags = [
        {"name": "Billing", "description": "Stripe checkout, customer portal, webhooks, and subscription status."},
        {"name": "Customers", "description": "Credit customers and their balances."},
        {"name": "Transactions", "description": "Debts and payments recorded against customers."},
        {"name": "Custom Fields", "description": "User-defined customer fields (Pro)."},
        {"name": "Export", "description": "CSV and JSON data export (Pro)."},
        {"name": "Dashboard", "description": "Ledger statistics and recent activity."},
        {"name": "Profiles", "description": "Shop details and onboarding state."},
        {"name": "Config", "description": "Read-only operator configuration and plan limits."},
        {"name": "System", "description": "Health checks and operational endpoints."},
    ]

    app = FastAPI(
        title=settings.app_name,
        description=(
            "Ledgerly tracks customer credit (debts and payments) for small merchants. "
            "Paid plans are sold through Stripe and unlock additional features.\n\n"
            "**Authentication:** All endpoints except `/health` and the Stripe webhook "
            "require the auth provider's access token, as a Bearer token or session cookie."
        ),
        version=__version__,
        lifespan=lifespan,
        openapi_tags=openapi_tags,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        redirect_slashes=False,
    )

    # Process-scoped rate limiter, injected into routes via get_rate_limiter
    app.state.rate_limiter = build_rate_limiter(settings)

    app.add_middleware(LoggingMiddleware)
    if settings.is_development:
        cors_origins = [settings.app_url]
    elif settings.cors_allowed_origins:
        cors_origins = [o.strip() for o in settings.cors_allowed_origins.split(",") if o.strip()]
    else:
        cors_origins = []

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register API routers (triggers database module import)
    from ledgerly.api.routes import (
        config,
        custom_fields,
        customers,
        dashboard,
        export,
        stripe,
        subscription,
        transactions,
        user_profiles,
    )
    from ledgerly.db.database import get_db

    @app.get("/health", tags=["System"])
    async def health_check(request: Request, db: AsyncSession = Depends(get_db)):
        from ledgerly.core.health import get_health_status

        limiter = request.app.state.rate_limiter
        return await get_health_status(
            app_name=settings.app_name,
            app_version=__version__,
            app_env=settings.app_env.value,
            billing_configured=settings.stripe_configured,
            db_session=db,
            redis_client=limiter.client if isinstance(limiter, RedisRateLimiter) else None,
        )

    app.include_router(stripe.router, prefix="/api")
    app.include_router(subscription.router, prefix="/api")
    app.include_router(customers.router, prefix="/api")
    app.include_router(transactions.router, prefix="/api")
    app.include_router(custom_fields.router, prefix="/api")
    app.include_router(export.router, prefix="/api")
    app.include_router(dashboard.router, prefix="/api")
    app.include_router(user_profiles.router, prefix="/api")
    app.include_router(config.router, prefix="/api")

    # Register global exception handlers (after routers)
    from ledgerly.middleware.exception_handler import register_exception_handlers

    register_exception_handlers(app)

    return app


app = create_app()
