from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI

from .config import Settings, get_settings
from .logging_config import configure_logging
from .services import Services, build_services

# Import integration routers
from .integrations.google_calendar.routes import router as oauth_router
from .integrations.slack.routes import router as slack_router


logger = logging.getLogger(__name__)

RATE_LIMIT_CLEANUP_INTERVAL = 10 * 60  # seconds


async def _cleanup_rate_limits(services: Services) -> None:
    while True:
        await asyncio.sleep(RATE_LIMIT_CLEANUP_INTERVAL)
        removed = services.rate_limiter.cleanup()
        logger.debug(f"Rate limiter cleanup removed {removed} entries")


def create_app(
    settings: Optional[Settings] = None,
    *,
    services: Optional[Services] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Validated settings; loaded from the environment if omitted
        services: Pre-built components (tests); built from settings if omitted
    """
    if services is None:
        settings = settings or get_settings()
        configure_logging(settings.log_level)
        services = build_services(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        task = asyncio.create_task(_cleanup_rate_limits(services))
        try:
            yield
        finally:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task

    app = FastAPI(title="meetbot", version="0.1.0", lifespan=lifespan)
    app.state.services = services

    # Include integration routers
    app.include_router(slack_router)
    app.include_router(oauth_router)

    @app.get("/health")
    def health():
        return {
            "status": "healthy",
            "service": "meetbot",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return app
