"""
Pipeline backend integration.

This module provides a client for starting pipeline jobs on the backend
service and tracking them to completion, plus the retry executor and
backoff policy it is built on.
"""

from cron_runner.integrations.pipeline.client import (
    PipelineClient,
    get_pipeline_client,
    next_poll_interval,
)
from cron_runner.integrations.pipeline.exceptions import (
    PipelineError,
    TransportError,
    TransientStatusError,
    TerminalStatusError,
    JobNotFoundError,
    ParseError,
    PollTimeoutError,
    PipelineCancelledError,
    PipelineJobFailedError,
)
from cron_runner.integrations.pipeline.models import (
    JobState,
    JobStatus,
    PipelineRunResult,
    PollConfig,
    TriggerPhase,
    TriggerResult,
)
from cron_runner.integrations.pipeline.retry import (
    RetryConfig,
    RequestOutcome,
    compute_backoff,
    execute_with_retry,
    is_retryable,
)

__all__ = [
    # Client
    "PipelineClient",
    "get_pipeline_client",
    "next_poll_interval",
    # Retry
    "RetryConfig",
    "RequestOutcome",
    "compute_backoff",
    "execute_with_retry",
    "is_retryable",
    # Exceptions
    "PipelineError",
    "TransportError",
    "TransientStatusError",
    "TerminalStatusError",
    "JobNotFoundError",
    "ParseError",
    "PollTimeoutError",
    "PipelineCancelledError",
    "PipelineJobFailedError",
    # Models
    "JobState",
    "JobStatus",
    "PipelineRunResult",
    "PollConfig",
    "TriggerPhase",
    "TriggerResult",
]
