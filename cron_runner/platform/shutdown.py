"""
Shutdown coordination for the service and CLI modes.

Owns the cancellation event threaded through the pipeline client. Beginning
shutdown marks the health state not-ready and sets the event, so in-flight
triggers stop at their next backoff wait, poll wait or pre-fetch check.
"""

import asyncio
import logging
import signal
from threading import Lock
from typing import Optional

from cron_runner.platform.health_state import HealthState

logger = logging.getLogger(__name__)


class ShutdownCoordinator:
    """Single cancellation signal for the whole process."""

    def __init__(self, health_state: Optional[HealthState] = None):
        self.health_state = health_state
        self.cancel_event = asyncio.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._lock = Lock()
        self._shutting_down = False

    @property
    def shutting_down(self) -> bool:
        with self._lock:
            return self._shutting_down

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Remember the loop the event is awaited on, for signal-safe wakeups."""
        self._loop = loop

    def begin_shutdown(self, reason: str = "shutdown") -> None:
        """Mark not-ready and cancel in-flight work. Safe to call more than once."""
        with self._lock:
            if self._shutting_down:
                return
            self._shutting_down = True

        logger.info("Shutdown initiated", extra={"reason": reason})

        if self.health_state is not None:
            self.health_state.set_ready(False)

        loop = self._loop
        if loop is not None and not loop.is_closed():
            loop.call_soon_threadsafe(self.cancel_event.set)
        else:
            self.cancel_event.set()

    def install_signal_handlers(self) -> None:
        """Route SIGINT/SIGTERM to begin_shutdown (CLI modes)."""

        def _handle_signal(sig, _frame):
            logger.info("Received signal %s, shutting down gracefully", signal.Signals(sig).name)
            self.begin_shutdown(reason=signal.Signals(sig).name)

        signal.signal(signal.SIGTERM, _handle_signal)
        signal.signal(signal.SIGINT, _handle_signal)
