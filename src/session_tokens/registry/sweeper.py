"""SessionSweeper — background thread that expires sessions and tokens.

Calls a countdown function every *interval* seconds with the time actually
elapsed since the previous call, measured on the monotonic clock.
"""
from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


class SessionSweeper(threading.Thread):
    """Daemon thread driving a registry's timers.

    Parameters
    ----------
    countdown:
        Callable receiving the elapsed seconds, normally
        ``SessionTokenRegistry.decrement_timers``.
    interval:
        Seconds between calls.
    """

    def __init__(self, countdown: Callable[[float], object], interval: float) -> None:
        super().__init__(name="session-sweeper", daemon=True)
        self._countdown = countdown
        self._interval = interval
        self._stop_event = threading.Event()

    def run(self) -> None:
        last = time.monotonic()
        while not self._stop_event.wait(self._interval):
            now = time.monotonic()
            try:
                self._countdown(now - last)
            except Exception:
                logger.exception("Session sweep failed; retrying next interval")
            last = now

    def stop(self, timeout: float | None = None) -> None:
        """Signal the thread to exit and wait for it."""
        self._stop_event.set()
        if self.is_alive() and threading.current_thread() is not self:
            self.join(timeout)
