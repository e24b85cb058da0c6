"""
Service configuration loaded from environment variables.

Required:
    BACKEND_URL         Base URL of the pipeline backend
    PIPELINE_API_TOKEN  Bearer token for the internal pipeline API

Everything else has a default. Durations accept "500ms", "2s", "1m30s",
"2h" or a bare number of seconds; values that cannot be parsed fall back to
the default.

Usage:
    from cron_runner.config.settings import Settings

    settings = Settings.from_env()
    client = get_pipeline_client(settings)
"""

import logging
import os
import re
from dataclasses import dataclass
from typing import Mapping, Optional

from cron_runner.integrations.pipeline.models import PollConfig
from cron_runner.integrations.pipeline.retry import RetryConfig

logger = logging.getLogger(__name__)

SERVICE_VERSION = "1.0.0"

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}
_TRUE_VALUES = {"1", "t", "true", "yes", "on"}
_FALSE_VALUES = {"0", "f", "false", "no", "off"}


class ConfigurationError(ValueError):
    """Raised when required configuration is missing or invalid."""


def parse_duration(value: str) -> float:
    """
    Parse a duration string into seconds.

    Raises:
        ValueError: If the value is not a valid duration
    """
    value = value.strip().lower()
    try:
        return float(value)
    except ValueError:
        pass

    pos = 0
    total = 0.0
    for match in _DURATION_PART.finditer(value):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()

    if pos == 0 or pos != len(value):
        raise ValueError(f"invalid duration: {value!r}")
    return total


class _EnvReader:
    def __init__(self, environ: Mapping[str, str]):
        self._environ = environ

    def get_str(self, key: str, default: str = "") -> str:
        return self._environ.get(key) or default

    def get_int(self, key: str, default: int) -> int:
        raw = self._environ.get(key)
        if not raw:
            return default
        try:
            return int(raw)
        except ValueError:
            logger.warning("Invalid integer for %s, using default", key, extra={"value": raw})
            return default

    def get_float(self, key: str, default: float) -> float:
        raw = self._environ.get(key)
        if not raw:
            return default
        try:
            return float(raw)
        except ValueError:
            logger.warning("Invalid float for %s, using default", key, extra={"value": raw})
            return default

    def get_duration(self, key: str, default: float) -> float:
        raw = self._environ.get(key)
        if not raw:
            return default
        try:
            return parse_duration(raw)
        except ValueError:
            logger.warning("Invalid duration for %s, using default", key, extra={"value": raw})
            return default

    def get_bool(self, key: str, default: bool) -> bool:
        raw = (self._environ.get(key) or "").strip().lower()
        if raw in _TRUE_VALUES:
            return True
        if raw in _FALSE_VALUES:
            return False
        return default


@dataclass(frozen=True)
class Settings:
    """Immutable service configuration, constructed once per process."""

    backend_url: str
    pipeline_api_token: str
    port: int = 8082
    max_retries: int = 3
    initial_backoff: float = 2.0
    max_backoff: float = 30.0
    backoff_factor: float = 2.0
    request_timeout: float = 180.0
    poll_initial_interval: float = 5.0
    poll_max_interval: float = 30.0
    poll_max_wait_time: float = 7200.0
    shutdown_grace_period: float = 10.0
    log_level: str = "info"
    log_json: bool = True

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Load settings from the environment.

        Raises:
            ConfigurationError: If a required variable is missing or values are inconsistent
        """
        env = _EnvReader(os.environ if environ is None else environ)

        settings = cls(
            backend_url=env.get_str("BACKEND_URL").rstrip("/"),
            pipeline_api_token=env.get_str("PIPELINE_API_TOKEN"),
            port=env.get_int("PORT", 8082),
            max_retries=env.get_int("MAX_RETRIES", 3),
            initial_backoff=env.get_duration("INITIAL_BACKOFF", 2.0),
            max_backoff=env.get_duration("MAX_BACKOFF", 30.0),
            backoff_factor=env.get_float("BACKOFF_FACTOR", 2.0),
            request_timeout=env.get_duration("REQUEST_TIMEOUT", 180.0),
            poll_initial_interval=env.get_duration("POLL_INITIAL_INTERVAL", 5.0),
            poll_max_interval=env.get_duration("POLL_MAX_INTERVAL", 30.0),
            poll_max_wait_time=env.get_duration("POLL_MAX_WAIT_TIME", 7200.0),
            shutdown_grace_period=env.get_duration("SHUTDOWN_GRACE_PERIOD", 10.0),
            log_level=env.get_str("LOG_LEVEL", "info").lower(),
            log_json=env.get_bool("LOG_JSON", True),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if not self.backend_url:
            raise ConfigurationError("BACKEND_URL environment variable is required")
        if not self.pipeline_api_token:
            raise ConfigurationError("PIPELINE_API_TOKEN environment variable is required")
        if self.request_timeout <= 0:
            raise ConfigurationError("REQUEST_TIMEOUT must be positive")
        try:
            self.retry_config()
            self.poll_config()
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

    def retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_retries=self.max_retries,
            initial_backoff=self.initial_backoff,
            max_backoff=self.max_backoff,
            backoff_factor=self.backoff_factor,
        )

    def poll_config(self) -> PollConfig:
        return PollConfig(
            initial_interval=self.poll_initial_interval,
            max_interval=self.poll_max_interval,
            max_wait_time=self.poll_max_wait_time,
        )

    def to_log_dict(self) -> dict:
        """Settings safe to log (token omitted)."""
        return {
            "backend_url": self.backend_url,
            "port": self.port,
            "max_retries": self.max_retries,
            "initial_backoff_seconds": self.initial_backoff,
            "max_backoff_seconds": self.max_backoff,
            "backoff_factor": self.backoff_factor,
            "request_timeout_seconds": self.request_timeout,
            "poll_initial_interval_seconds": self.poll_initial_interval,
            "poll_max_interval_seconds": self.poll_max_interval,
            "poll_max_wait_seconds": self.poll_max_wait_time,
        }
