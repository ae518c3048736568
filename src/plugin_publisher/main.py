"""
Main FastAPI application for the plugin publisher.

Endpoints:
- POST /publish/{owner}/{repo} - Submit a plugin commit for review
- POST /webhook/github - Build workflow completions (needs GITHUB_WEBHOOK_SECRET)
- POST /discord/interactions - Review button presses (needs DISCORD_PUBLIC_KEY)
- GET /build/current - Plugin build currently holding the build slot
- GET /health - Health check
- GET /metrics - Publish pipeline counters
"""

import logging
from contextlib import asynccontextmanager
from typing import Any

import redis.asyncio as redis
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api.publish import router as publish_router
from .config import Settings
from .infrastructure.store import create_redis
from .integrations.discord import InteractionVerifier
from .observability import get_metrics, setup_logging
from .publishing.errors import PublishingError
from .publishing.service import PublishingService, create_service
from .webhooks.discord import router as discord_router
from .webhooks.github import router as github_webhook_router

logger = logging.getLogger(__name__)

INTERNAL_ERROR = "An internal error occurred. Please try again later."


def create_app(
    settings: Settings | None = None,
    service: PublishingService | None = None,
) -> FastAPI:
    """Build the application.

    Args:
        settings: Settings to use, read from the environment when omitted
        service: Pre-wired service (tests); built from settings when omitted

    Returns:
        The FastAPI application
    """
    settings = settings or Settings.from_env()
    setup_logging(settings.log_level, settings.log_format)

    redis_client: redis.Redis | None = None
    if service is None:
        redis_client = create_redis(settings.redis_url)
        service = create_service(settings, redis_client=redis_client)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler for startup/shutdown."""
        logger.info("Starting plugin publisher...")
        yield
        logger.info("Shutting down plugin publisher...")
        if redis_client is not None:
            await redis_client.aclose()

    app = FastAPI(
        title="Plugin Publisher",
        description="Review and build pipeline for third-party plugins",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.service = service

    register_error_handlers(app)

    @app.middleware("http")
    async def log_calls(request: Request, call_next):
        response = await call_next(request)
        host = request.client.host if request.client else "unknown"
        logger.info(f"[{host}] {request.method} {request.url.path} - {response.status_code}")
        return response

    app.include_router(publish_router)

    if settings.github_webhook_secret:
        app.include_router(github_webhook_router)
    else:
        logger.warning("GITHUB_WEBHOOK_SECRET not set, GitHub webhook endpoint disabled")

    if settings.discord_public_key:
        app.state.interaction_verifier = InteractionVerifier(settings.discord_public_key)
        app.include_router(discord_router)
    else:
        logger.warning("DISCORD_PUBLIC_KEY not set, Discord interactions endpoint disabled")

    # =========================================================================
    # Status
    # =========================================================================

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy", "service": "plugin-publisher"}

    @app.get("/metrics")
    async def metrics() -> dict[str, int]:
        return get_metrics().to_dict()

    @app.get("/build/current")
    async def current_build() -> dict[str, Any]:
        """Plugin build currently holding the build slot, if any."""
        return {"data": await service.current_build()}

    return app


def register_error_handlers(app: FastAPI) -> None:
    """Render every error as ``{"error": message}``."""

    @app.exception_handler(PublishingError)
    async def publishing_error_handler(request: Request, exc: PublishingError) -> JSONResponse:
        logger.warning(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info(f"Rejected {request.method} {request.url.path}: {exc.errors()}")
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content={"error": INTERNAL_ERROR})


app = create_app()
