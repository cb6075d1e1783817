"""Main FastAPI application."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from prometheus_fastapi_instrumentator import Instrumentator
from redis.asyncio import Redis

from gcbulkedit import __version__
from gcbulkedit.config import Settings, get_settings
from gcbulkedit.errors import LedgerError
from gcbulkedit.routers import (
    blog_router,
    customers_router,
    health_router,
    pages_router,
    preferences_router,
    webhook_router,
)
from gcbulkedit.services import (
    BlogRepository,
    CustomerLedger,
    PaymentGateway,
    RedisCustomerStore,
    StripeGateway,
)
from gcbulkedit.services.store import create_redis
from gcbulkedit.utils.logging import configure_logging

logger = structlog.get_logger()


def build_gateway(settings: Settings) -> StripeGateway:
    """Stripe gateway from configuration."""
    return StripeGateway(
        api_key=(
            settings.stripe_secret_key.get_secret_value() if settings.stripe_secret_key else None
        ),
        webhook_secret=(
            settings.stripe_webhook_secret.get_secret_value()
            if settings.stripe_webhook_secret
            else None
        ),
        price_id=settings.stripe_price_id,
        timeout=settings.stripe_timeout_seconds,
    )


def create_app(
    settings: Settings | None = None,
    *,
    redis: Redis | None = None,
    gateway: PaymentGateway | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    ``redis`` and ``gateway`` replace the clients built from settings; the
    lifespan closes whichever Redis client ends up in use.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Build the service objects and release them on shutdown."""
        logger.info("Initializing Redis connection...")
        client = redis or create_redis(settings)

        store = RedisCustomerStore(
            client, prefix=settings.redis_key_prefix, timeout=settings.redis_timeout_seconds
        )
        payment_gateway = gateway or build_gateway(settings)

        app.state.settings = settings
        app.state.customer_store = store
        app.state.gateway = payment_gateway
        app.state.blog = BlogRepository(
            client, prefix=settings.redis_key_prefix, timeout=settings.redis_timeout_seconds
        )
        app.state.ledger = CustomerLedger(
            store,
            payment_gateway,
            free_actions_limit=settings.free_actions_limit,
            plan=settings.stripe_price_id,
            public_base_url=settings.public_base_url,
        )

        # Initialize Sentry if configured
        if settings.sentry_dsn:
            import sentry_sdk

            sentry_sdk.init(
                dsn=settings.sentry_dsn,
                environment=settings.environment.value,
                traces_sample_rate=0.1,
            )
            logger.info("Sentry initialized")

        logger.info(
            "Application startup complete",
            free_actions_limit=settings.free_actions_limit,
        )

        try:
            yield
        finally:
            logger.info("Shutting down...")
            await client.aclose()
            logger.info("Shutdown complete")

    configure_logging(settings)

    app = FastAPI(
        title="GC Bulk Edit API",
        description="Subscription checkout, free-action quota and content API "
        "for the Google Calendar Bulk Edit extension.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Prometheus metrics
    if settings.prometheus_enabled:
        Instrumentator().instrument(app).expose(app, endpoint="/metrics")

    # Include routers
    app.include_router(health_router)
    app.include_router(webhook_router)
    app.include_router(customers_router)
    app.include_router(preferences_router)
    app.include_router(blog_router, prefix="/api")
    app.include_router(pages_router)

    if settings.static_dir.is_dir():
        app.mount("/static", StaticFiles(directory=settings.static_dir), name="static")

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
        log = logger.error if exc.status_code >= 500 else logger.info
        log(
            "Request failed",
            error=exc.error,
            message=exc.message,
            path=request.url.path,
            method=request.method,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.error, "message": exc.message},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "invalid_input",
                "message": "Invalid request",
                "details": jsonable_errors(exc),
            },
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            exc_info=exc,
            path=request.url.path,
            method=request.method,
        )

        if settings.debug:
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": "internal_server_error",
                    "message": str(exc),
                    "type": type(exc).__name__,
                },
            )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
            },
        )

    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Validation errors without the raw input values."""
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
        for error in exc.errors()
    ]


def run() -> None:
    """Serve the API with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "gcbulkedit.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
    )
