"""
FastAPI Application Entry Point

This module creates and configures the FastAPI application and is the
composition root: plugins are registered here and the dispatcher that
runs them is attached to the application state.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from lgtm_bot import __version__
from lgtm_bot.config import get_settings
from lgtm_bot.logging_config import get_logger, setup_logging
from lgtm_bot.plugins import PluginRegistry, register_plugins
from lgtm_bot.services.github_client import get_github_client
from lgtm_bot.webhook import router as webhook_router
from lgtm_bot.webhook.processor import ClientFactory, EventDispatcher

# Initialize logging first
setup_logging()

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Validate configuration on startup and log lifecycle events."""
    settings = get_settings()
    logger.info(
        "Starting LGTM bot",
        host=settings.host,
        port=settings.port,
        plugins=sorted(app.state.registry.help_providers)
    )

    try:
        settings.validate_credentials()
        logger.info("Configuration validated successfully")
    except ValueError as e:
        logger.error("Configuration validation failed", error=str(e))
        raise

    yield

    logger.info("Shutting down LGTM bot")


def create_app(client_factory: Optional[ClientFactory] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        client_factory: Builds the GitHub client used for a delivery,
            defaults to a real client per installation

    Returns:
        Configured FastAPI application instance
    """
    settings = get_settings()

    app = FastAPI(
        title="LGTM Bot",
        description="GitHub bot managing the lgtm label on pull requests",
        version=__version__,
        lifespan=lifespan,
    )

    registry = register_plugins(PluginRegistry(), settings)
    app.state.registry = registry
    app.state.dispatcher = EventDispatcher(registry, client_factory or get_github_client)

    app.include_router(webhook_router)

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request,
        exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.error(
            "Unhandled exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            error_type=type(exc).__name__
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "Internal server error",
                "type": type(exc).__name__
            }
        )

    @app.get("/")
    async def root():
        return {
            "name": "LGTM Bot",
            "version": __version__,
            "status": "running",
            "plugins": sorted(registry.help_providers)
        }

    @app.get("/health")
    async def health_check():
        """Basic health status for load balancers and monitors."""
        return {
            "status": "healthy",
            "service": "lgtm-bot",
            "version": __version__
        }

    @app.get("/ready")
    async def readiness_check():
        """Ready once GitHub credentials are configured."""
        try:
            get_settings().validate_credentials()
        except ValueError as e:
            logger.error("Readiness check failed", error=str(e))
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail=f"Not ready: {e}"
            )
        return {"status": "ready", "service": "lgtm-bot"}

    @app.get("/plugins/help")
    async def plugin_help():
        """Help text of every registered plugin."""
        return {
            name: entry.model_dump()
            for name, entry in registry.plugin_help().items()
        }

    return app


app = create_app()
