#!/usr/bin/env python
"""
cron-runner entry point.

Modes:
    (default)         Serve /health, /ready and /trigger over HTTP until SIGTERM/SIGINT
    --once            Trigger all pipelines, poll to completion, exit 0/1
    --once --no-wait  Fire-and-forget: start the job and exit on the start outcome

Usage:
    # Long-running service (container default)
    python main.py

    # Cron job, e.g. nightly at 2am UTC
    0 2 * * * cd /app && python main.py --once

Configuration comes from environment variables; see
cron_runner/config/settings.py.
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence

from cron_runner.app import create_app
from cron_runner.config.settings import ConfigurationError, Settings
from cron_runner.integrations.pipeline.client import get_pipeline_client
from cron_runner.integrations.pipeline.models import TriggerResult
from cron_runner.logging_config import configure_logging
from cron_runner.platform.shutdown import ShutdownCoordinator
from cron_runner.server import run_server

logger = logging.getLogger(__name__)


def _log_result(result: TriggerResult, mode: str) -> None:
    extra = result.to_dict()
    extra["mode"] = mode
    if result.success:
        logger.info("Pipeline trigger succeeded", extra=extra)
    else:
        logger.error("Pipeline trigger failed", extra=extra)


async def _run_client(settings: Settings, wait: bool) -> TriggerResult:
    shutdown = ShutdownCoordinator()
    shutdown.bind_loop(asyncio.get_running_loop())
    shutdown.install_signal_handlers()

    async with get_pipeline_client(settings) as client:
        if wait:
            return await client.trigger_all(cancel_event=shutdown.cancel_event)
        return await client.trigger(cancel_event=shutdown.cancel_event)


def run_once(settings: Settings) -> int:
    """Trigger all pipelines and wait for the job. Returns the exit code."""
    logger.info("Running in CLI mode (single execution)")
    result = asyncio.run(_run_client(settings, wait=True))
    _log_result(result, mode="once")
    return 0 if result.success else 1


def run_fire_and_forget(settings: Settings) -> int:
    """Start a job without waiting for it. Returns the exit code."""
    logger.info("Running in CLI mode (fire-and-forget)")
    result = asyncio.run(_run_client(settings, wait=False))
    _log_result(result, mode="fire_and_forget")
    return 0 if result.success else 1


def serve(settings: Settings) -> int:
    logger.info("Running in server mode")
    app = create_app(settings)
    run_server(app, settings)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cron-runner",
        description="Trigger backend data pipelines and track them to completion",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run pipeline trigger once and exit (CLI mode)",
    )
    parser.add_argument(
        "--no-wait",
        action="store_true",
        help="With --once: start the job and exit without polling for completion",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warn", "warning", "error"],
        default=None,
        help="Override LOG_LEVEL",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for running from the command line."""
    args = build_parser().parse_args(argv)

    # Settings loading logs fallback warnings; format them before settings exist
    configure_logging(args.log_level)

    try:
        settings = Settings.from_env()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    configure_logging(args.log_level or settings.log_level, json_output=settings.log_json)
    logger.info("cron-runner starting", extra=settings.to_log_dict())

    if args.no_wait and not args.once:
        logger.warning("--no-wait only applies with --once; starting server mode")

    if args.once:
        if args.no_wait:
            return run_fire_and_forget(settings)
        return run_once(settings)

    return serve(settings)


if __name__ == "__main__":
    sys.exit(main())
