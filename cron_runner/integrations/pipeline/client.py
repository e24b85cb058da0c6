"""
Pipeline backend API client for job orchestration.

This client handles:
- Starting a batch job that runs every pipeline (POST /v1/internal/pipelines/all)
- Fetching job status (GET /v1/internal/pipelines/jobs/{job_id})
- Polling a job to completion with a growing interval and a hard deadline

Every wait inside the client is interruptible through an asyncio.Event that
the service sets on shutdown.

SECURITY: API token must be stored securely and never logged.
"""

import asyncio
import logging
import os
import time
from typing import Optional, Dict, Any
from urllib.parse import quote

import httpx

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
    POLL_GROWTH_FACTOR,
    JobCreated,
    JobState,
    JobStatus,
    PollConfig,
    PollOutcome,
    StartJobResult,
    TriggerPhase,
    TriggerResult,
)
from cron_runner.integrations.pipeline.retry import (
    RetryConfig,
    execute_with_retry,
    is_retryable,
    wait_or_cancel,
)

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_TIMEOUT_SECONDS = 180.0
DEFAULT_CONNECT_TIMEOUT_SECONDS = 10.0

START_JOB_PATH = "/v1/internal/pipelines/all"
JOB_STATUS_PATH = "/v1/internal/pipelines/jobs/{job_id}"


def next_poll_interval(current: float, poll_config: PollConfig) -> float:
    """Grow the poll interval by 1.5x, capped at the configured maximum."""
    return min(current * POLL_GROWTH_FACTOR, poll_config.max_interval)


def _body_snippet(response: httpx.Response, limit: int = 500) -> str:
    return response.text[:limit]


class PipelineClient:
    """
    Async client for the backend pipeline API.

    All methods are async and should be used with async/await. One client
    can serve concurrent triggers; no state is shared between jobs.

    SECURITY: API token must be stored securely and never logged.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_token: Optional[str] = None,
        retry_config: Optional[RetryConfig] = None,
        poll_config: Optional[PollConfig] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize pipeline client.

        Args:
            base_url: Backend base URL (default: BACKEND_URL env)
            api_token: Bearer token for the internal API (default: PIPELINE_API_TOKEN env)
            retry_config: Retry policy for the start request
            poll_config: Polling intervals and deadline
            timeout: Per-request timeout in seconds
            connect_timeout: Connection timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = (base_url or os.getenv("BACKEND_URL") or "").rstrip("/")
        self.api_token = api_token or os.getenv("PIPELINE_API_TOKEN")
        self.retry_config = retry_config or RetryConfig()
        self.poll_config = poll_config or PollConfig()

        if not self.base_url:
            raise ValueError(
                "Backend URL is required. Set BACKEND_URL environment variable "
                "or pass base_url parameter."
            )

        if not self.api_token:
            raise ValueError(
                "Pipeline API token is required. Set PIPELINE_API_TOKEN environment variable "
                "or pass api_token parameter."
            )

        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=min(connect_timeout, timeout)),
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
                "Authorization": f"Bearer {self.api_token}",
            },
            transport=transport,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "PipelineClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    # =========================================================================
    # Start
    # =========================================================================

    async def start_job(
        self,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> StartJobResult:
        """
        Ask the backend to start a job running all pipelines.

        The request goes through the retry executor. Only a 2xx response with
        a job identifier counts as started; everything else is terminal.

        Args:
            cancel_event: Shutdown signal observed during backoff waits

        Returns:
            StartJobResult in phase STARTED, START_FAILED or CANCELLED
        """
        url = self._url(START_JOB_PATH)
        logger.info(
            "Starting pipeline job",
            extra={"url": url, "phase": TriggerPhase.STARTING.value},
        )

        async def send() -> httpx.Response:
            # Fresh request (and empty body) for every attempt
            return await self._client.post(url, content=b"")

        outcome = await execute_with_retry(
            send,
            self.retry_config,
            cancel_event=cancel_event,
            description="start_job",
        )

        def failed(error: PipelineError) -> StartJobResult:
            phase = (
                TriggerPhase.CANCELLED
                if isinstance(error, PipelineCancelledError)
                else TriggerPhase.START_FAILED
            )
            logger.error(
                "Failed to start pipeline job",
                extra={
                    "attempts": outcome.attempts,
                    "status_code": outcome.status_code,
                    "error": str(error),
                    "phase": phase.value,
                },
            )
            return StartJobResult(
                phase=phase,
                attempts=outcome.attempts,
                elapsed_seconds=outcome.elapsed_seconds,
                status_code=outcome.status_code,
                error=error,
            )

        if outcome.final_error is not None:
            return failed(outcome.final_error)

        if outcome.response is None:
            return failed(TransportError("No response received"))

        response = outcome.response
        if not 200 <= response.status_code < 300:
            return failed(
                TerminalStatusError(
                    f"Unexpected status {response.status_code}: {_body_snippet(response)}",
                    status_code=response.status_code,
                )
            )

        try:
            body = response.json()
        except ValueError as e:
            return failed(
                ParseError(f"Failed to parse start response: {e}", status_code=response.status_code)
            )

        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            return failed(
                ParseError("Start response has no data object", status_code=response.status_code)
            )

        job = JobCreated.from_dict(data)
        if not job.job_id:
            return failed(
                ParseError("No job ID in start response", status_code=response.status_code)
            )

        logger.info(
            "Pipeline job started",
            extra={
                "job_id": job.job_id,
                "attempts": outcome.attempts,
                "pipelines_total": job.pipelines_total,
            },
        )

        return StartJobResult(
            phase=TriggerPhase.STARTED,
            attempts=outcome.attempts,
            elapsed_seconds=outcome.elapsed_seconds,
            job=job,
            status_code=response.status_code,
        )

    # =========================================================================
    # Status
    # =========================================================================

    async def get_job_status(self, job_id: str) -> JobStatus:
        """
        Fetch the current status of a job once, without retries.

        Args:
            job_id: Job ID returned by start_job

        Returns:
            JobStatus snapshot

        Raises:
            JobNotFoundError: On 404
            TransientStatusError: On 429/5xx
            TerminalStatusError: On other non-2xx responses
            TransportError: On connection errors and timeouts
            ParseError: On a malformed body
        """
        url = self._url(JOB_STATUS_PATH.format(job_id=quote(job_id, safe="")))

        try:
            response = await self._client.get(url)
        except httpx.TimeoutException as e:
            raise TransportError(f"Request timeout: {e}")
        except httpx.RequestError as e:
            raise TransportError(f"Connection error: {e}")

        if response.status_code == 404:
            raise JobNotFoundError(job_id)

        if not 200 <= response.status_code < 300:
            message = f"Unexpected status {response.status_code}: {_body_snippet(response)}"
            if is_retryable(response):
                raise TransientStatusError(
                    message,
                    status_code=response.status_code,
                    retry_after=response.headers.get("Retry-After"),
                )
            raise TerminalStatusError(message, status_code=response.status_code)

        try:
            body = response.json()
        except ValueError as e:
            raise ParseError(f"Failed to parse status response: {e}")

        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            raise ParseError("Status response has no data object")

        try:
            return JobStatus.from_dict(data)
        except (TypeError, ValueError, AttributeError) as e:
            raise ParseError(f"Malformed job status: {e}")

    async def wait_for_job(
        self,
        job_id: str,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> PollOutcome:
        """
        Poll a job until it completes, fails, times out or is cancelled.

        Fetch failures of any kind (404 included) are logged and retried on
        the next cycle. The interval grows after every cycle whether or not
        the fetch succeeded. The deadline is fixed when polling starts.

        Args:
            job_id: Job ID to monitor
            cancel_event: Shutdown signal checked before each fetch and during waits

        Returns:
            PollOutcome in phase COMPLETED, FAILED, TIMED_OUT or CANCELLED
        """
        interval = self.poll_config.initial_interval
        deadline = time.monotonic() + self.poll_config.max_wait_time
        last_status: Optional[JobStatus] = None
        polls = 0

        logger.info(
            "Polling pipeline job",
            extra={
                "job_id": job_id,
                "phase": TriggerPhase.POLLING.value,
                "initial_interval_seconds": interval,
                "max_interval_seconds": self.poll_config.max_interval,
                "max_wait_seconds": self.poll_config.max_wait_time,
            },
        )

        while True:
            if time.monotonic() > deadline:
                error = PollTimeoutError(job_id, self.poll_config.max_wait_time)
                logger.error(
                    "Pipeline job polling timed out",
                    extra={"job_id": job_id, "polls": polls},
                )
                return PollOutcome(
                    phase=TriggerPhase.TIMED_OUT,
                    polls=polls,
                    job_status=last_status,
                    error=error,
                )

            if cancel_event is not None and cancel_event.is_set():
                return self._cancelled(job_id, polls, last_status)

            polls += 1
            try:
                status = await self.get_job_status(job_id)
            except PipelineError as e:
                logger.warning(
                    "Failed to fetch job status, will retry",
                    extra={
                        "job_id": job_id,
                        "poll": polls,
                        "error": str(e),
                        "status_code": e.status_code,
                    },
                )
            else:
                last_status = status
                logger.debug(
                    "Job status update",
                    extra={
                        "job_id": job_id,
                        "status": status.raw_status,
                        "completed": status.pipelines_completed,
                        "total": status.pipelines_total,
                        "current": status.current_pipeline,
                    },
                )

                if status.is_terminal:
                    phase = (
                        TriggerPhase.COMPLETED
                        if status.status == JobState.COMPLETED
                        else TriggerPhase.FAILED
                    )
                    return PollOutcome(phase=phase, polls=polls, job_status=status)

            if await wait_or_cancel(interval, cancel_event):
                return self._cancelled(job_id, polls, last_status)

            interval = next_poll_interval(interval, self.poll_config)

    def _cancelled(
        self,
        job_id: str,
        polls: int,
        last_status: Optional[JobStatus],
    ) -> PollOutcome:
        logger.warning(
            "Pipeline job polling cancelled",
            extra={"job_id": job_id, "polls": polls},
        )
        return PollOutcome(
            phase=TriggerPhase.CANCELLED,
            polls=polls,
            job_status=last_status,
            error=PipelineCancelledError(),
        )

    # =========================================================================
    # Trigger
    # =========================================================================

    def _log_trigger_requested(self, mode: str) -> None:
        logger.info(
            "Pipeline trigger requested",
            extra={"mode": mode, "phase": TriggerPhase.NOT_STARTED.value},
        )

    async def trigger(
        self,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> TriggerResult:
        """
        Fire-and-forget: start a job and return without polling.

        Returns:
            TriggerResult whose success reflects the start outcome only
        """
        start_time = time.monotonic()
        self._log_trigger_requested("fire_and_forget")
        started = await self.start_job(cancel_event=cancel_event)

        return TriggerResult(
            success=started.started,
            phase=started.phase,
            job_id=started.job_id,
            attempts=started.attempts,
            duration_seconds=time.monotonic() - start_time,
            status_code=started.status_code,
            error=started.error,
        )

    async def trigger_all(
        self,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> TriggerResult:
        """
        Start a job running all pipelines and track it to completion.

        Convenience method that combines start_job and wait_for_job. Errors are
        returned on the result, never raised.

        Args:
            cancel_event: Shutdown signal

        Returns:
            TriggerResult; success only when the job completed with no failed pipelines
        """
        start_time = time.monotonic()
        self._log_trigger_requested("wait")

        started = await self.start_job(cancel_event=cancel_event)
        if not started.started:
            return TriggerResult(
                success=False,
                phase=started.phase,
                attempts=started.attempts,
                duration_seconds=time.monotonic() - start_time,
                status_code=started.status_code,
                error=started.error,
            )

        job_id = started.job_id
        logger.info(
            "Pipeline job started, polling for completion",
            extra={"job_id": job_id, "attempts": started.attempts},
        )

        try:
            outcome = await self.wait_for_job(job_id, cancel_event=cancel_event)
        except Exception as e:
            logger.exception(
                "Pipeline job polling errored",
                extra={"job_id": job_id, "error": str(e)},
            )
            outcome = PollOutcome(
                phase=TriggerPhase.POLL_ERROR,
                polls=0,
                error=PipelineError(f"Polling failed: {type(e).__name__}: {e}"),
            )

        result = TriggerResult(
            success=False,
            phase=outcome.phase,
            job_id=job_id,
            attempts=started.attempts,
            duration_seconds=time.monotonic() - start_time,
            status_code=started.status_code,
            error=outcome.error,
            job_details=outcome.job_status,
        )

        job = outcome.job_status
        if outcome.phase == TriggerPhase.COMPLETED and job is not None and job.is_successful:
            result.success = True
            logger.info(
                "All pipelines completed successfully",
                extra={
                    "job_id": job_id,
                    "pipelines_completed": job.pipelines_completed,
                    "job_duration_seconds": job.duration_seconds,
                    "total_duration_seconds": round(result.duration_seconds, 3),
                },
            )
            return result

        if outcome.phase in (TriggerPhase.COMPLETED, TriggerPhase.FAILED) and job is not None:
            result.error = PipelineJobFailedError(
                job.error
                or f"Job {job_id} finished with status {job.status.value} "
                f"and {job.pipelines_failed} failed pipeline(s)",
                job_id=job_id,
                pipelines_failed=job.pipelines_failed,
            )

        log_extra: Dict[str, Any] = {
            "job_id": job_id,
            "phase": outcome.phase.value,
            "duration_seconds": round(result.duration_seconds, 3),
            "error": result.error_message,
        }
        if job is not None:
            log_extra.update(
                {
                    "job_status": job.status.value,
                    "pipelines_failed": job.pipelines_failed,
                    "pipelines_completed": job.pipelines_completed,
                }
            )
        logger.error("Pipeline job failed", extra=log_extra)

        return result


def get_pipeline_client(settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> PipelineClient:
    """
    Factory function to create a PipelineClient from service settings.

    Args:
        settings: cron_runner.config.settings.Settings instance
        transport: Optional httpx transport override

    Returns:
        Configured PipelineClient instance
    """
    return PipelineClient(
        base_url=settings.backend_url,
        api_token=settings.pipeline_api_token,
        retry_config=settings.retry_config(),
        poll_config=settings.poll_config(),
        timeout=settings.request_timeout,
        transport=transport,
    )
