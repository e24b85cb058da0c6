"""
Unit tests for ShutdownCoordinator.
"""

import asyncio
import signal
import threading

import pytest

from cron_runner.platform.health_state import HealthState
from cron_runner.platform.shutdown import ShutdownCoordinator


class TestShutdownCoordinator:
    """Tests for ShutdownCoordinator."""

    def test_initial_state(self):
        coordinator = ShutdownCoordinator()

        assert coordinator.shutting_down is False
        assert not coordinator.cancel_event.is_set()

    def test_begin_shutdown_without_loop(self):
        health = HealthState()
        coordinator = ShutdownCoordinator(health_state=health)

        coordinator.begin_shutdown("test")

        assert coordinator.shutting_down is True
        assert coordinator.cancel_event.is_set()
        assert health.is_ready() is False

    def test_begin_shutdown_is_idempotent(self):
        health = HealthState()
        coordinator = ShutdownCoordinator(health_state=health)

        coordinator.begin_shutdown("first")
        coordinator.begin_shutdown("second")

        assert coordinator.cancel_event.is_set()
        assert health.is_ready() is False

    @pytest.mark.asyncio
    async def test_wakes_waiter_from_another_thread(self):
        coordinator = ShutdownCoordinator()
        coordinator.bind_loop(asyncio.get_running_loop())

        waiter = asyncio.create_task(coordinator.cancel_event.wait())
        thread = threading.Thread(target=coordinator.begin_shutdown, args=("signal",))
        thread.start()

        await asyncio.wait_for(waiter, timeout=1.0)
        thread.join()

        assert coordinator.cancel_event.is_set()

    def test_install_signal_handlers(self):
        coordinator = ShutdownCoordinator()
        previous_term = signal.getsignal(signal.SIGTERM)
        previous_int = signal.getsignal(signal.SIGINT)

        try:
            coordinator.install_signal_handlers()
            handler = signal.getsignal(signal.SIGTERM)
            assert callable(handler)
            assert signal.getsignal(signal.SIGINT) is handler

            handler(signal.SIGTERM, None)
            assert coordinator.shutting_down is True
        finally:
            signal.signal(signal.SIGTERM, previous_term)
            signal.signal(signal.SIGINT, previous_int)
