"""
uvicorn server wiring with graceful shutdown.

On the first SIGINT/SIGTERM the service is marked not-ready and in-flight
triggers are cancelled at their next checkpoint, then uvicorn stops
accepting connections and gives open requests the grace period to finish.
"""

import logging

import uvicorn
from fastapi import FastAPI

from cron_runner.config.settings import Settings
from cron_runner.platform.shutdown import ShutdownCoordinator

logger = logging.getLogger(__name__)

IDLE_TIMEOUT_SECONDS = 60


class CronRunnerServer(uvicorn.Server):
    """uvicorn server that starts cancellation before connections drain."""

    def __init__(self, config: uvicorn.Config, shutdown: ShutdownCoordinator):
        super().__init__(config)
        self.shutdown = shutdown

    def handle_exit(self, sig, frame) -> None:
        self.shutdown.begin_shutdown(reason=f"signal {sig}")
        super().handle_exit(sig, frame)


def build_server(app: FastAPI, settings: Settings) -> CronRunnerServer:
    config = uvicorn.Config(
        app,
        host="0.0.0.0",
        port=settings.port,
        timeout_keep_alive=IDLE_TIMEOUT_SECONDS,
        timeout_graceful_shutdown=max(1, round(settings.shutdown_grace_period)),
        log_config=None,
    )
    return CronRunnerServer(config, shutdown=app.state.shutdown)


def run_server(app: FastAPI, settings: Settings) -> None:
    """Serve until a termination signal arrives."""
    server = build_server(app, settings)
    logger.info("HTTP server starting", extra={"port": settings.port})
    server.run()
    logger.info("Server stopped")
