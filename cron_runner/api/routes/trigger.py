"""
Pipeline trigger endpoint.

POST /trigger starts a job running all pipelines and blocks until the job
reaches a terminal state, the polling deadline passes or shutdown cancels
it. Every completed trigger replaces the last-run record in the health
state. Concurrent triggers are independent.
"""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from cron_runner.api.dependencies import (
    get_health_state,
    get_pipeline_client,
    get_shutdown_coordinator,
)
from cron_runner.api.schemas import TriggerFailureResponse, TriggerSuccessResponse
from cron_runner.integrations.pipeline.client import PipelineClient
from cron_runner.integrations.pipeline.models import TriggerResult
from cron_runner.platform.health_state import HealthState
from cron_runner.platform.shutdown import ShutdownCoordinator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["trigger"])


def _format_duration(seconds: float) -> str:
    return f"{seconds:.3f}s"


def trigger_response(result: TriggerResult) -> JSONResponse:
    """Render a TriggerResult as the /trigger response body."""
    if result.success:
        body = TriggerSuccessResponse(
            job_id=result.job_id,
            attempts=result.attempts,
            duration=_format_duration(result.duration_seconds),
        )
        return JSONResponse(status_code=status.HTTP_200_OK, content=body.model_dump())

    body = TriggerFailureResponse(
        job_id=result.job_id,
        phase=result.phase.value,
        attempts=result.attempts,
        duration=_format_duration(result.duration_seconds),
        status_code=result.status_code,
        error=result.error_message,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=body.model_dump(),
    )


@router.post(
    "/trigger",
    response_model=TriggerSuccessResponse,
    responses={500: {"model": TriggerFailureResponse}},
)
async def trigger_pipelines(
    client: PipelineClient = Depends(get_pipeline_client),
    health_state: HealthState = Depends(get_health_state),
    shutdown: ShutdownCoordinator = Depends(get_shutdown_coordinator),
):
    logger.info("Received trigger request")

    result = await client.trigger_all(cancel_event=shutdown.cancel_event)
    health_state.record_pipeline_run(
        success=result.success,
        duration_seconds=result.duration_seconds,
        attempts=result.attempts,
        error=result.error,
    )

    return trigger_response(result)
