"""
Retry policy, backoff calculation and the retrying request executor.

Error-aware retry logic:
- Connection errors and timeouts -> retry with exponential backoff
- 429 rate limit -> retry, honouring Retry-After when present
- 502/503/504 and any other 5xx -> retry with exponential backoff
- Anything else (2xx, 3xx, 4xx) -> stop and hand the response back

Backoff formula: min(initial_backoff * factor^attempt, max_backoff)
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Awaitable, Callable, Optional

import httpx

from cron_runner.integrations.pipeline.exceptions import (
    PipelineCancelledError,
    PipelineError,
    TransientStatusError,
    TransportError,
)

logger = logging.getLogger(__name__)

# Retry configuration defaults
MAX_RETRIES = 3
INITIAL_BACKOFF_SECONDS = 2.0
MAX_BACKOFF_SECONDS = 30.0
BACKOFF_FACTOR = 2.0

RETRYABLE_STATUS_CODES = frozenset({429, 502, 503, 504})


@dataclass(frozen=True)
class RetryConfig:
    """
    Retry policy configuration.

    Attributes:
        max_retries: Retries after the first attempt (total attempts = max_retries + 1)
        initial_backoff: Seconds to wait before the first retry
        max_backoff: Maximum delay cap in seconds
        backoff_factor: Exponential growth factor
    """
    max_retries: int = MAX_RETRIES
    initial_backoff: float = INITIAL_BACKOFF_SECONDS
    max_backoff: float = MAX_BACKOFF_SECONDS
    backoff_factor: float = BACKOFF_FACTOR

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        if self.initial_backoff <= 0:
            raise ValueError("initial_backoff must be positive")
        if self.max_backoff < self.initial_backoff:
            raise ValueError("max_backoff must be >= initial_backoff")
        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be >= 1")


@dataclass(frozen=True)
class RequestOutcome:
    """
    Result of one logical request run through the executor.

    Attributes:
        response: Last response received, if any
        attempts: Number of attempts actually sent
        elapsed_seconds: Wall-clock time spent, waits included
        final_error: Set when the request did not produce a usable response
    """
    response: Optional[httpx.Response]
    attempts: int
    elapsed_seconds: float
    final_error: Optional[PipelineError] = None

    @property
    def status_code(self) -> Optional[int]:
        return self.response.status_code if self.response is not None else None

    @property
    def succeeded(self) -> bool:
        return self.final_error is None and self.response is not None


def parse_retry_after(value: Optional[str], now: Optional[datetime] = None) -> Optional[float]:
    """
    Parse a Retry-After header value.

    Accepts either a whole number of seconds or an HTTP-date. For a date the
    result is the distance from ``now`` and may be zero or negative.

    Returns:
        Seconds to wait, or None if the value cannot be parsed
    """
    if not value:
        return None

    value = value.strip()
    # isdigit() alone accepts superscripts such as "²" that int() rejects
    if value.isascii() and value.isdigit():
        try:
            return float(int(value))
        except (ValueError, OverflowError):
            return None

    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if retry_at is None:
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)

    now = now or datetime.now(timezone.utc)
    return (retry_at - now).total_seconds()


def compute_backoff(
    config: RetryConfig,
    attempt_index: int,
    prior_response: Optional[httpx.Response] = None,
    now: Optional[datetime] = None,
) -> float:
    """
    Calculate the wait before the next retry.

    A 429 response carrying a parseable Retry-After header wins over the
    exponential formula. The date form can yield a non-positive value; callers
    clamp it to zero before waiting.

    Args:
        config: Retry policy
        attempt_index: 0 for the wait before the second attempt
        prior_response: Response of the attempt that just failed
        now: Reference time for HTTP-date hints

    Returns:
        Delay in seconds
    """
    if prior_response is not None and prior_response.status_code == 429:
        retry_after = parse_retry_after(prior_response.headers.get("Retry-After"), now=now)
        if retry_after is not None:
            return retry_after

    try:
        delay = config.initial_backoff * (config.backoff_factor ** attempt_index)
    except OverflowError:
        return config.max_backoff
    return min(delay, config.max_backoff)


def is_retryable(
    response: Optional[httpx.Response],
    error: Optional[BaseException] = None,
) -> bool:
    """Whether an attempt's outcome should trigger another attempt."""
    if error is not None:
        return True
    if response is None:
        return True

    if response.status_code in RETRYABLE_STATUS_CODES:
        return True

    return response.status_code >= 500


async def wait_or_cancel(delay: float, cancel_event: Optional[asyncio.Event]) -> bool:
    """
    Suspend for ``delay`` seconds unless the cancel event fires first.

    Returns:
        True if cancellation was observed
    """
    delay = max(delay, 0.0)
    if cancel_event is None:
        await asyncio.sleep(delay)
        return False

    if cancel_event.is_set():
        return True

    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return False
    return True


async def execute_with_retry(
    send: Callable[[], Awaitable[httpx.Response]],
    config: RetryConfig,
    cancel_event: Optional[asyncio.Event] = None,
    description: str = "",
) -> RequestOutcome:
    """
    Send one logical request, retrying transient failures.

    ``send`` is called once per attempt and must build a fresh request each
    time, so a request body is supplied anew for every attempt.

    Args:
        send: Coroutine factory issuing the HTTP call
        config: Retry policy
        cancel_event: Shutdown signal checked during every backoff wait
        description: Short label used in log records

    Returns:
        RequestOutcome with the terminal response or error
    """
    start = time.monotonic()
    last_response: Optional[httpx.Response] = None
    last_error: Optional[PipelineError] = None
    attempts = 0

    for attempt in range(config.max_retries + 1):
        if attempt > 0:
            backoff = max(compute_backoff(config, attempt - 1, last_response), 0.0)
            logger.info(
                "Retrying pipeline request after backoff",
                extra={
                    "request": description,
                    "attempt": attempt + 1,
                    "backoff_seconds": round(backoff, 3),
                },
            )
            if await wait_or_cancel(backoff, cancel_event):
                logger.warning(
                    "Pipeline request cancelled during backoff",
                    extra={"request": description, "attempts": attempts},
                )
                return RequestOutcome(
                    response=None,
                    attempts=attempts,
                    elapsed_seconds=time.monotonic() - start,
                    final_error=PipelineCancelledError(),
                )

        attempts = attempt + 1
        logger.debug(
            "Sending pipeline request",
            extra={"request": description, "attempt": attempts},
        )

        try:
            response = await send()
        except httpx.RequestError as e:
            last_response = None
            last_error = TransportError(f"Request failed: {type(e).__name__}: {e}")
            logger.warning(
                "Pipeline request failed with transport error",
                extra={
                    "request": description,
                    "attempt": attempts,
                    "error": str(e),
                },
            )
            continue

        last_response = response
        last_error = None
        logger.debug(
            "Received pipeline response",
            extra={
                "request": description,
                "attempt": attempts,
                "status_code": response.status_code,
            },
        )

        if not is_retryable(response):
            return RequestOutcome(
                response=response,
                attempts=attempts,
                elapsed_seconds=time.monotonic() - start,
            )

        if attempt < config.max_retries:
            logger.warning(
                "Retryable status received from pipeline backend",
                extra={
                    "request": description,
                    "attempt": attempts,
                    "status_code": response.status_code,
                },
            )

    if last_error is None and last_response is not None:
        last_error = TransientStatusError(
            f"Pipeline backend returned {last_response.status_code} after {attempts} attempts",
            status_code=last_response.status_code,
            retry_after=last_response.headers.get("Retry-After"),
        )

    logger.error(
        "Pipeline request retries exhausted",
        extra={
            "request": description,
            "attempts": attempts,
            "status_code": last_response.status_code if last_response is not None else None,
            "error": str(last_error),
        },
    )

    return RequestOutcome(
        response=last_response,
        attempts=attempts,
        elapsed_seconds=time.monotonic() - start,
        final_error=last_error,
    )
