"""
Pipeline backend exceptions for error handling.

Retryable errors (TransportError, TransientStatusError) are absorbed by the
retry executor and the polling loop. Everything else is terminal and is
surfaced to the caller on the TriggerResult.
"""

from typing import Optional, Dict, Any


class PipelineError(Exception):
    """Base exception for pipeline backend errors."""

    retryable = False

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response = response or {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, status_code={self.status_code})"


class TransportError(PipelineError):
    """Raised when network/connection errors or timeouts occur."""

    retryable = True

    def __init__(
        self,
        message: str = "Connection error - unable to reach pipeline backend",
        **kwargs,
    ):
        super().__init__(message, **kwargs)


class TransientStatusError(PipelineError):
    """Raised for 429/502/503/504 and other 5xx responses."""

    retryable = True

    def __init__(
        self,
        message: str,
        status_code: int,
        retry_after: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, status_code=status_code, **kwargs)
        self.retry_after = retry_after


class TerminalStatusError(PipelineError):
    """Raised for non-2xx responses that are not worth retrying."""

    def __init__(self, message: str, status_code: int, **kwargs):
        super().__init__(message, status_code=status_code, **kwargs)


class JobNotFoundError(TerminalStatusError):
    """Raised when the status endpoint returns 404 for a job."""

    def __init__(self, job_id: str, **kwargs):
        super().__init__(f"Job not found: {job_id}", status_code=404, **kwargs)
        self.job_id = job_id


class ParseError(PipelineError):
    """Raised when a backend response body is malformed."""


class PollTimeoutError(PipelineError):
    """Raised when a job does not reach a terminal state before the deadline."""

    def __init__(self, job_id: str, max_wait_seconds: float, **kwargs):
        super().__init__(
            f"Polling timeout after {max_wait_seconds:g}s waiting for job {job_id}",
            **kwargs,
        )
        self.job_id = job_id
        self.max_wait_seconds = max_wait_seconds


class PipelineCancelledError(PipelineError):
    """Raised when shutdown cancels an in-flight trigger."""

    def __init__(self, message: str = "Operation cancelled by shutdown", **kwargs):
        super().__init__(message, **kwargs)


class PipelineJobFailedError(PipelineError):
    """Raised when a job ends without every pipeline succeeding."""

    def __init__(
        self,
        message: str,
        job_id: Optional[str] = None,
        pipelines_failed: int = 0,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.job_id = job_id
        self.pipelines_failed = pipelines_failed
