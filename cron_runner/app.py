"""
FastAPI application factory for the cron runner service.

The app exposes liveness/readiness probes and a trigger endpoint. Shared
state (health, pipeline client, shutdown coordinator) is created here and
attached to app.state; routes reach it through dependencies.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from cron_runner.api.routes import health, trigger
from cron_runner.config.settings import SERVICE_VERSION, Settings
from cron_runner.integrations.pipeline.client import PipelineClient, get_pipeline_client
from cron_runner.platform.health_state import HealthState
from cron_runner.platform.shutdown import ShutdownCoordinator

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    pipeline_client: Optional[PipelineClient] = None,
    health_state: Optional[HealthState] = None,
    shutdown: Optional[ShutdownCoordinator] = None,
) -> FastAPI:
    """
    Build the service application.

    Args:
        settings: Service settings (required unless pipeline_client is given)
        pipeline_client: Pre-built client, mainly for tests
        health_state: Shared health state (new one if omitted)
        shutdown: Shutdown coordinator (new one bound to health_state if omitted)

    Returns:
        Configured FastAPI app
    """
    if pipeline_client is None:
        if settings is None:
            raise ValueError("settings are required when no pipeline_client is given")
        pipeline_client = get_pipeline_client(settings)

    health_state = health_state or HealthState()
    shutdown = shutdown or ShutdownCoordinator(health_state)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events."""
        shutdown.bind_loop(asyncio.get_running_loop())
        logger.info("Starting cron-runner API")

        yield

        shutdown.begin_shutdown(reason="lifespan")
        await pipeline_client.close()
        logger.info("Shutting down cron-runner API")

    app = FastAPI(
        title="cron-runner",
        description="Triggers backend pipeline jobs and tracks them to completion",
        version=SERVICE_VERSION,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.health_state = health_state
    app.state.pipeline_client = pipeline_client
    app.state.shutdown = shutdown

    app.include_router(health.router)
    app.include_router(trigger.router)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle unhandled exceptions with proper logging."""
        logger.error(
            "Unhandled exception",
            extra={
                "error": str(exc),
                "error_type": type(exc).__name__,
                "path": request.url.path,
            },
            exc_info=True,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal server error",
                "detail": "An unexpected error occurred",
            },
        )

    return app
