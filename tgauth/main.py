#!/usr/bin/env python3
"""
tgauth - Main Entry Point

This is the thin orchestration layer that:
1. Loads configuration
2. Initializes modules
3. Runs the API server

All business logic is in the modules, following black box principles.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import redis.asyncio as redis
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tgauth import __version__
from tgauth.config.provider import ConfigProvider, EnvConfigProvider
from tgauth.logging_config import configure_logging, get_logging_config
from tgauth.modules.api import create_auth_router
from tgauth.modules.auth import TelegramAuthFactory
from tgauth.modules.identity import Identity
from tgauth.modules.storage import StorageModule

# Configure logging with health check suppression
configure_logging(os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

# Configuration provider (centralized config access)
config_provider: ConfigProvider = EnvConfigProvider()

# Initialized at startup
storage: Optional[StorageModule] = None


async def log_authenticated(identity: Identity) -> None:
    """Default callback channel: record the login in the service log."""
    logger.info(f"Authentication result delivered for user {identity.id}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle - initialize and cleanup resources.
    """
    global storage

    # Startup
    logger.info("Starting Telegram auth service...")
    config = config_provider.get_auth_config()

    redis_client = None
    if config.redis_url:
        storage = StorageModule(config.redis_url)
        redis_client = await storage.connect()

    # Build authentication stack via factory (dependency injection)
    auth = TelegramAuthFactory.build_from_config(
        config, redis_client=redis_client, on_auth=log_authenticated
    )
    await auth.start()

    app.state.auth = auth
    app.state.redis = redis_client
    app.state.webhook_secret = config.webhook_secret
    logger.info("Telegram auth service started successfully")

    yield

    # Shutdown
    logger.info("Shutting down Telegram auth service...")
    app.state.auth = None
    await auth.shutdown()
    if storage:
        await storage.disconnect()
        storage = None
    logger.info("Telegram auth service shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="tgauth API",
    description="Passwordless login through a Telegram bot",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(create_auth_router())


@app.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint.

    Returns:
        200: Service healthy
        503: Service unhealthy
    """
    auth = getattr(request.app.state, "auth", None)
    redis_client = getattr(request.app.state, "redis", None)

    try:
        if redis_client is not None:
            await redis_client.ping()
            redis_status = "connected"
        else:
            redis_status = "not configured"
    except redis.ConnectionError as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "unhealthy", "error": str(e)})

    if auth is None:
        return JSONResponse(
            status_code=503, content={"status": "unhealthy", "modules": "not initialized"}
        )

    methods = [
        name
        for name in ("deeplink", "code", "widget", "two_fa")
        if getattr(auth, name) is not None
    ]
    return {
        "status": "healthy",
        "redis": redis_status,
        "methods": methods,
        "sessions": len(auth.sessions),
        "version": __version__,
    }


# Error handlers


@app.exception_handler(redis.ConnectionError)
async def redis_error_handler(request, exc):
    """Handle Redis connection errors."""
    logger.error(f"Redis connection error: {exc}")
    return JSONResponse(status_code=503, content={"error": "Database connection failed"})


@app.exception_handler(ValueError)
async def validation_error_handler(request, exc):
    """Handle validation errors."""
    logger.error(f"Validation error: {exc}")
    return JSONResponse(status_code=400, content={"error": str(exc)})


def run():
    """Console entry point."""
    # Use dict config for logging, not file path
    level = os.getenv("LOG_LEVEL", "INFO")
    uvicorn.run(
        "tgauth.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8080")),
        log_level=level.lower(),
        log_config=get_logging_config(level.upper()),
    )


if __name__ == "__main__":
    run()
