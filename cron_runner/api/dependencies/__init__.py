"""
API Dependencies module.

Provides shared FastAPI dependencies for route handlers.
"""

from cron_runner.api.dependencies.service_state import (
    get_health_state,
    get_pipeline_client,
    get_shutdown_coordinator,
)

__all__ = [
    "get_health_state",
    "get_pipeline_client",
    "get_shutdown_coordinator",
]
