"""
Process-wide health state for liveness and readiness probes.

Tracks whether the service is ready for traffic and the outcome of the most
recently completed pipeline trigger. Written by trigger callers and by the
shutdown path, read by the /health and /ready handlers.

Usage:
    state = HealthState()
    state.record_pipeline_run(success=True, duration_seconds=12.5, attempts=1)
    state.set_ready(False)  # on shutdown; never flips back
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

SERVICE_NAME = "cron-runner"


@dataclass(frozen=True)
class PipelineRunRecord:
    """Outcome of the last completed pipeline trigger."""

    success: bool
    timestamp: datetime
    duration_seconds: float
    attempts: int
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "timestamp": self.timestamp.isoformat(),
            "duration": f"{self.duration_seconds:.3f}s",
            "attempts": self.attempts,
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class HealthSnapshot:
    """Consistent view of the health state at one instant."""

    ready: bool
    last_pipeline_run: Optional[PipelineRunRecord]


class HealthState:
    """
    Lock-guarded readiness flag and last-run record.

    Readiness starts true and, once set to false, stays false for the rest of
    the process lifetime. Pipeline runs are last-write-wins.
    """

    def __init__(self):
        self._lock = Lock()
        self._ready = True
        self._last_pipeline_run: Optional[PipelineRunRecord] = None

    def record_pipeline_run(
        self,
        success: bool,
        duration_seconds: float,
        attempts: int,
        error: Optional[BaseException] = None,
    ) -> PipelineRunRecord:
        record = PipelineRunRecord(
            success=success,
            timestamp=datetime.now(timezone.utc),
            duration_seconds=duration_seconds,
            attempts=attempts,
            error=str(error) if error else None,
        )
        with self._lock:
            self._last_pipeline_run = record
        return record

    def set_ready(self, ready: bool) -> None:
        with self._lock:
            if ready and not self._ready:
                logger.warning("Ignoring attempt to mark service ready after shutdown began")
                return
            self._ready = ready

    def is_ready(self) -> bool:
        with self._lock:
            return self._ready

    def last_pipeline_run(self) -> Optional[PipelineRunRecord]:
        with self._lock:
            return self._last_pipeline_run

    def snapshot(self) -> HealthSnapshot:
        with self._lock:
            return HealthSnapshot(ready=self._ready, last_pipeline_run=self._last_pipeline_run)

    def health_payload(self, service: str = SERVICE_NAME) -> Dict[str, Any]:
        """Body for the liveness probe."""
        last_run = self.last_pipeline_run()
        payload: Dict[str, Any] = {
            "status": "healthy",
            "service": service,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if last_run is not None:
            payload["checks"] = {"last_pipeline_run": last_run.to_dict()}
        return payload

    def readiness_payload(self, service: str = SERVICE_NAME) -> Dict[str, Any]:
        """Body for the readiness probe."""
        return {
            "status": "ready" if self.is_ready() else "not_ready",
            "service": service,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
