"""
Service state dependencies.

Route handlers receive the shared health state, pipeline client and
shutdown coordinator through these dependencies; all three live on
app.state and are created by create_app().
"""

from fastapi import Request

from cron_runner.integrations.pipeline.client import PipelineClient
from cron_runner.platform.health_state import HealthState
from cron_runner.platform.shutdown import ShutdownCoordinator


def get_health_state(request: Request) -> HealthState:
    return request.app.state.health_state


def get_pipeline_client(request: Request) -> PipelineClient:
    return request.app.state.pipeline_client


def get_shutdown_coordinator(request: Request) -> ShutdownCoordinator:
    return request.app.state.shutdown
