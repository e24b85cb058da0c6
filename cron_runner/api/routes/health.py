"""
Liveness, readiness and service info endpoints.

These endpoints are unauthenticated and read the health state without
waiting on in-flight trigger work.
"""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from cron_runner.api.dependencies import get_health_state
from cron_runner.api.schemas import HealthResponse, ReadinessResponse, ServiceInfoResponse
from cron_runner.config.settings import SERVICE_VERSION
from cron_runner.platform.health_state import HealthState, SERVICE_NAME

router = APIRouter(tags=["health"])


@router.get("/", response_model=ServiceInfoResponse)
def service_info():
    return ServiceInfoResponse(service=SERVICE_NAME, version=SERVICE_VERSION)


@router.get("/health", response_model=HealthResponse, response_model_exclude_none=True)
def health(health_state: HealthState = Depends(get_health_state)):
    """Liveness probe. Always 200; includes the last pipeline run when there is one."""
    return HealthResponse(**health_state.health_payload())


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    responses={503: {"model": ReadinessResponse}},
)
def ready(health_state: HealthState = Depends(get_health_state)):
    """Readiness probe. 503 once shutdown has begun."""
    body = ReadinessResponse(**health_state.readiness_payload())
    status_code = (
        status.HTTP_200_OK
        if body.status == "ready"
        else status.HTTP_503_SERVICE_UNAVAILABLE
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())
