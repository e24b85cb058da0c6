from cron_runner.api.schemas.service import (
    HealthResponse,
    ReadinessResponse,
    ServiceInfoResponse,
    TriggerFailureResponse,
    TriggerSuccessResponse,
)

__all__ = [
    "HealthResponse",
    "ReadinessResponse",
    "ServiceInfoResponse",
    "TriggerFailureResponse",
    "TriggerSuccessResponse",
]
