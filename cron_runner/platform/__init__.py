"""
Platform-level modules shared by the HTTP service and the CLI.

- health_state: Readiness flag and last pipeline run record
- shutdown: Process-wide cancellation and signal handling
"""

from cron_runner.platform.health_state import (
    HealthState,
    HealthSnapshot,
    PipelineRunRecord,
    SERVICE_NAME,
)
from cron_runner.platform.shutdown import ShutdownCoordinator

__all__ = [
    "HealthState",
    "HealthSnapshot",
    "PipelineRunRecord",
    "SERVICE_NAME",
    "ShutdownCoordinator",
]
