"""
Data models for pipeline backend API responses and trigger outcomes.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Optional, Dict, Any, Mapping

from cron_runner.integrations.pipeline.exceptions import PipelineError

# Poll interval grows by this factor after every cycle
POLL_GROWTH_FACTOR = 1.5


class JobState(str, Enum):
    """Status of a pipeline job as reported by the backend."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "JobState":
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.UNKNOWN


class TriggerPhase(str, Enum):
    """
    Named states of the trigger-and-poll state machine.

    NOT_STARTED, STARTING and POLLING are in-progress states. They appear on
    log records as the machine enters them; results only ever carry a
    terminal phase or STARTED (fire-and-forget).
    """

    NOT_STARTED = "not_started"
    STARTING = "starting"
    START_FAILED = "start_failed"
    STARTED = "started"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    POLL_ERROR = "poll_error"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (
            TriggerPhase.START_FAILED,
            TriggerPhase.COMPLETED,
            TriggerPhase.FAILED,
            TriggerPhase.TIMED_OUT,
            TriggerPhase.POLL_ERROR,
            TriggerPhase.CANCELLED,
        )


def _parse_timestamp(ts: Any) -> Optional[datetime]:
    if not ts or not isinstance(ts, str):
        return None
    try:
        return datetime.fromisoformat(ts.replace("Z", "+00:00"))
    except ValueError:
        return None


def _as_int(value: Any) -> int:
    try:
        return max(int(value or 0), 0)
    except (TypeError, ValueError):
        return 0


def _as_float(value: Any) -> float:
    try:
        return float(value or 0.0)
    except (TypeError, ValueError):
        return 0.0


@dataclass(frozen=True)
class PollConfig:
    """
    Job status polling configuration.

    Attributes:
        initial_interval: Seconds to wait after the first status fetch
        max_interval: Ceiling for the growing wait between fetches
        max_wait_time: Wall-clock ceiling for the whole polling phase
    """
    initial_interval: float = 5.0
    max_interval: float = 30.0
    max_wait_time: float = 7200.0

    def __post_init__(self):
        if self.initial_interval <= 0:
            raise ValueError("initial_interval must be positive")
        if self.max_interval < self.initial_interval:
            raise ValueError("max_interval must be >= initial_interval")
        if self.max_wait_time <= 0:
            raise ValueError("max_wait_time must be positive")


@dataclass(frozen=True)
class PipelineRunResult:
    """Result of a single pipeline inside a job."""

    pipeline_name: str
    status: str
    message: str = ""
    duration_seconds: float = 0.0
    records_processed: int = 0
    error: Optional[str] = None

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "PipelineRunResult":
        return cls(
            pipeline_name=data.get("pipeline_name") or name,
            status=data.get("status", ""),
            message=data.get("message", ""),
            duration_seconds=_as_float(data.get("duration_seconds")),
            records_processed=_as_int(data.get("records_processed")),
            error=data.get("error") or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pipeline_name": self.pipeline_name,
            "status": self.status,
            "message": self.message,
            "duration_seconds": self.duration_seconds,
            "records_processed": self.records_processed,
            "error": self.error,
        }


@dataclass(frozen=True)
class JobStatus:
    """Snapshot of a pipeline job, as returned by the status endpoint."""

    job_id: str
    status: JobState
    raw_status: str = ""
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_seconds: float = 0.0
    pipelines_total: int = 0
    pipelines_completed: int = 0
    pipelines_failed: int = 0
    current_pipeline: Optional[str] = None
    results: Mapping[str, PipelineRunResult] = field(
        default_factory=lambda: MappingProxyType({})
    )
    error: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobStatus":
        results_data = data.get("results") or {}
        if not isinstance(results_data, dict):
            raise ValueError("results must be an object")
        results = {
            name: PipelineRunResult.from_dict(name, item or {})
            for name, item in results_data.items()
        }

        raw_status = str(data.get("status", ""))
        return cls(
            job_id=str(data.get("job_id", "")),
            status=JobState.parse(raw_status),
            raw_status=raw_status,
            created_at=_parse_timestamp(data.get("created_at")),
            started_at=_parse_timestamp(data.get("started_at")),
            completed_at=_parse_timestamp(data.get("completed_at")),
            duration_seconds=_as_float(data.get("duration_seconds")),
            pipelines_total=_as_int(data.get("pipelines_total")),
            pipelines_completed=_as_int(data.get("pipelines_completed")),
            pipelines_failed=_as_int(data.get("pipelines_failed")),
            current_pipeline=data.get("current_pipeline") or None,
            results=MappingProxyType(results),
            error=data.get("error") or None,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobState.COMPLETED, JobState.FAILED)

    @property
    def is_successful(self) -> bool:
        return self.status == JobState.COMPLETED and self.pipelines_failed == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "status": self.status.value,
            "pipelines_total": self.pipelines_total,
            "pipelines_completed": self.pipelines_completed,
            "pipelines_failed": self.pipelines_failed,
            "current_pipeline": self.current_pipeline,
            "duration_seconds": self.duration_seconds,
            "results": {name: r.to_dict() for name, r in self.results.items()},
            "error": self.error,
        }


@dataclass(frozen=True)
class JobCreated:
    """Data returned by the start endpoint."""

    job_id: str
    status: str = ""
    created_at: Optional[datetime] = None
    pipelines_total: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobCreated":
        return cls(
            job_id=str(data.get("job_id") or ""),
            status=str(data.get("status", "")),
            created_at=_parse_timestamp(data.get("created_at")),
            pipelines_total=_as_int(data.get("pipelines_total")),
        )


@dataclass(frozen=True)
class StartJobResult:
    """Outcome of the start step (Started or StartFailed)."""

    phase: TriggerPhase
    attempts: int
    elapsed_seconds: float
    job: Optional[JobCreated] = None
    status_code: Optional[int] = None
    error: Optional[PipelineError] = None

    @property
    def job_id(self) -> Optional[str]:
        return self.job.job_id if self.job else None

    @property
    def started(self) -> bool:
        return self.phase == TriggerPhase.STARTED


@dataclass(frozen=True)
class PollOutcome:
    """Terminal outcome of the polling phase."""

    phase: TriggerPhase
    polls: int
    job_status: Optional[JobStatus] = None
    error: Optional[PipelineError] = None


@dataclass
class TriggerResult:
    """Result of one trigger invocation, owned by the caller."""

    success: bool
    phase: TriggerPhase
    attempts: int = 0
    duration_seconds: float = 0.0
    job_id: Optional[str] = None
    status_code: Optional[int] = None
    error: Optional[PipelineError] = None
    job_details: Optional[JobStatus] = None

    @property
    def error_message(self) -> str:
        return str(self.error) if self.error else ""

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "phase": self.phase.value,
            "job_id": self.job_id,
            "attempts": self.attempts,
            "duration_seconds": round(self.duration_seconds, 3),
            "status_code": self.status_code,
            "error": self.error_message or None,
        }
        if self.job_details is not None:
            data["job"] = self.job_details.to_dict()
        return data
