"""
FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from verifier import __version__
from verifier.api import verifications, webhooks
from verifier.config import Settings, get_settings
from verifier.container import Services
from verifier.services.scheduler import PeriodicScheduler
from verifier.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


def create_app(services: Optional[Services] = None, settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        services: Prebuilt service container. When given, the caller owns
            its connections and the lifespan neither opens nor closes them.
        settings: Settings used to build the container when services is None

    Returns:
        Configured FastAPI application
    """
    owns_services = services is None
    if services is None:
        settings = settings or get_settings()
        setup_logging(settings.log_level)
        services = Services.build(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting completion verifier API")
        if owns_services:
            await services.start()

        if services.settings.embedded_processor:
            services.processor.start(PeriodicScheduler(), services.settings.poll_interval_seconds)

        try:
            yield
        finally:
            logger.info("Shutting down completion verifier API")
            await services.processor.stop()
            if owns_services:
                await services.close()

    app = FastAPI(
        title="Completion Verifier",
        description="Verifies work reported complete on GitHub issues and posts the verdict back",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services

    @app.get("/health")
    async def health_check():
        """Health check endpoint for container orchestration."""
        return {"status": "healthy", "version": __version__}

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": "Completion Verifier API",
            "version": __version__,
            "docs": "/docs",
        }

    # Include API routers
    app.include_router(webhooks.router)
    app.include_router(verifications.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
