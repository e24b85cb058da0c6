"""
Pydantic schemas for the service endpoints.

Response models for service info, health, readiness and trigger endpoints.
"""

from typing import Optional

from pydantic import BaseModel, Field


# =============================================================================
# Nested Models
# =============================================================================


class LastPipelineRun(BaseModel):
    """Outcome of the most recently completed trigger."""

    success: bool
    timestamp: str = Field(..., description="ISO-8601 UTC completion time")
    duration: str = Field(..., description="Duration such as '12.500s'")
    attempts: int = Field(..., ge=0, description="Attempts used to start the job")
    error: Optional[str] = None


class HealthChecks(BaseModel):
    last_pipeline_run: Optional[LastPipelineRun] = None


# =============================================================================
# Response Models
# =============================================================================


class ServiceInfoResponse(BaseModel):
    service: str
    version: str


class HealthResponse(BaseModel):
    """Liveness probe body."""

    status: str = Field("healthy", description="Always 'healthy' while the process serves")
    service: str
    timestamp: str
    checks: Optional[HealthChecks] = None


class ReadinessResponse(BaseModel):
    """Readiness probe body."""

    status: str = Field(..., description="'ready' or 'not_ready'")
    service: str
    timestamp: str


class TriggerSuccessResponse(BaseModel):
    status: str = "success"
    job_id: Optional[str] = None
    attempts: int
    duration: str


class TriggerFailureResponse(BaseModel):
    status: str = "failed"
    job_id: Optional[str] = None
    phase: str = Field(..., description="Terminal state of the trigger")
    attempts: int
    duration: str
    status_code: Optional[int] = Field(None, description="HTTP status of the start request, if any")
    error: str
