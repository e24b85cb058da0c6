"""
Unit tests for logging configuration.
"""

import json
import logging
import sys

import pytest

from cron_runner.logging_config import JSONFormatter, configure_logging, resolve_level


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def _record(msg="hello", level=logging.INFO, exc_info=None, **extra):
    record = logging.LogRecord("cron_runner.test", level, __file__, 10, msg, (), exc_info)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_base_fields(self):
        entry = json.loads(JSONFormatter().format(_record()))

        assert entry["message"] == "hello"
        assert entry["level"] == "INFO"
        assert entry["logger"] == "cron_runner.test"
        assert entry["service"] == "cron-runner"
        assert "timestamp" in entry

    def test_extra_fields_included(self):
        entry = json.loads(JSONFormatter().format(_record(job_id="job-1", attempts=3)))

        assert entry["job_id"] == "job-1"
        assert entry["attempts"] == 3
        assert "pathname" not in entry
        assert "args" not in entry

    def test_non_serializable_extra_uses_str(self):
        entry = json.loads(JSONFormatter().format(_record(error=ValueError("bad"))))

        assert entry["error"] == "bad"

    def test_exception_included(self):
        try:
            raise RuntimeError("exploded")
        except RuntimeError:
            record = _record(level=logging.ERROR, exc_info=sys.exc_info())

        entry = json.loads(JSONFormatter().format(record))

        assert "RuntimeError: exploded" in entry["exception"]


class TestResolveLevel:
    """Tests for resolve_level."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("debug", logging.DEBUG),
            ("INFO", logging.INFO),
            ("warn", logging.WARNING),
            ("warning", logging.WARNING),
            ("error", logging.ERROR),
            ("verbose", logging.INFO),
            (None, logging.INFO),
        ],
    )
    def test_levels(self, name, expected):
        assert resolve_level(name) == expected


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_json_handler_installed(self, restore_root_logger):
        configure_logging("debug", json_output=True)

        assert restore_root_logger.level == logging.DEBUG
        assert len(restore_root_logger.handlers) == 1
        assert isinstance(restore_root_logger.handlers[0].formatter, JSONFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_text_handler_installed(self, restore_root_logger):
        configure_logging("error", json_output=False)

        assert restore_root_logger.level == logging.ERROR
        assert not isinstance(restore_root_logger.handlers[0].formatter, JSONFormatter)
