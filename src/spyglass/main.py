"""FastAPI application factory."""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from spyglass.config import get_settings
from spyglass.health.router import router as health_router
from spyglass.middleware import setup_middleware
from spyglass.services import Services
from spyglass.slack.router import router as slack_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    services = Services.from_settings(settings)
    await services.open()

    app.state.services = services
    app.state.database = services.database

    poller_task: asyncio.Task[None] | None = None
    if settings.poller_enabled:
        poller_task = asyncio.create_task(services.poller.run())
    else:
        logger.info("In-app poller disabled; run spyglass.workers.poller_runner separately")

    yield

    # Let the in-flight tick finish before pools are closed
    if poller_task is not None:
        services.poller.stop()
        await poller_task

    await services.close()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Spyglass",
        description="Coding activity milestones and leaderboards for Slack",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(slack_router)

    return app


app = create_app()
