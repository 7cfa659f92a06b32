import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import SQLModel

import src.domain  # noqa: F401  registers table models on SQLModel.metadata
from src.api.error import ClientError, client_error_handler
from src.api.middleware import request_logging_middleware
from src.api.routes import billing, health, payments, products, subscriptions, webhooks

logger = logging.getLogger(__name__)


def create_app(config) -> FastAPI:
    """Build the FastAPI application from an ApplicationConfig-like object."""
    logging.basicConfig(
        level=getattr(logging, str(config.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    if config.ENABLE_SENTRY and config.DSN_SENTRY:
        import sentry_sdk

        sentry_sdk.init(dsn=config.DSN_SENTRY, environment=config.SENTRY_ENVIRONMENT)
        logger.info(f"Sentry enabled for environment {config.SENTRY_ENVIRONMENT}")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if config.DB_AUTO_CREATE:
            from src.depends import engine

            async with engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)
            logger.info("Database tables created")
        yield

    app = FastAPI(title="Payment Billing Service", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=config.CORS_ALLOW_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    if config.ENABLE_LOGGING_MIDDLEWARE:
        app.middleware("http")(request_logging_middleware)

    app.add_exception_handler(ClientError, client_error_handler)

    app.include_router(health.router)  # /health
    app.include_router(webhooks.router)  # /webhooks/*
    app.include_router(products.router)  # /products
    app.include_router(payments.router)  # /billing/payments/*
    app.include_router(billing.router)  # /billing/credits/*
    app.include_router(subscriptions.router)  # /billing/subscriptions/*

    return app
