"""
Bounded-rate reapplication.

Requests are debounced (a burst of mutations yields one run) and runs are
limited with a sliding window; a run that would exceed the window is
deferred until the oldest run leaves it, never dropped. Without an event
loop there is no timer to wait on, so a deferred run is owed and the next
request() performs it once the window has room.

Usage:
    scheduler = ReapplyScheduler(runtime.apply_injection, debounce_seconds=0.1)
    scheduler.request()
"""

import asyncio
import logging
import time
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class ReapplyScheduler:
    def __init__(
        self,
        callback: Callable[[], None],
        debounce_seconds: float = 0.1,
        max_runs: int = 10,
        window_seconds: float = 10.0,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            callback: Work to run (synchronous)
            debounce_seconds: Quiet period before a requested run
            max_runs: Maximum runs per window
            window_seconds: Sliding window length
            loop: Event loop for timers (default: running loop at request time)
            clock: Time source used when no event loop is running
        """
        self.callback = callback
        self.debounce = debounce_seconds
        self.max_runs = max_runs
        self.window = window_seconds
        self._loop = loop
        self._clock = clock
        self._owed = False
        self._handle: Optional[asyncio.TimerHandle] = None
        self._run_times: List[float] = []
        self._closed = False
        self.run_count = 0
        self.deferred_count = 0

    @property
    def pending(self) -> bool:
        return self._handle is not None or self._owed

    def _get_loop(self) -> Optional[asyncio.AbstractEventLoop]:
        if self._loop is not None:
            return self._loop
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            return None

    def _cleanup_old_runs(self, now: float):
        cutoff = now - self.window
        self._run_times = [t for t in self._run_times if t > cutoff]

    def request(self):
        """Ask for a run; restarts the debounce timer."""
        if self._closed:
            return
        loop = self._get_loop()
        if loop is None:
            logger.debug("No event loop, reapplying without debounce")
            self._owed = False
            self._fire()
            return
        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self.debounce, self._fire)

    def cancel(self):
        """Drop pending work and refuse further requests."""
        self._closed = True
        self._owed = False
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _now(self) -> float:
        loop = self._get_loop()
        if loop is not None:
            return loop.time()
        return self._clock()

    def _fire(self):
        self._handle = None
        if self._closed:
            return

        now = self._now()
        self._cleanup_old_runs(now)
        if len(self._run_times) >= self.max_runs:
            wait_time = self._run_times[0] + self.window - now
            loop = self._get_loop()
            self.deferred_count += 1
            logger.info(
                f"Reapply limit reached ({len(self._run_times)} runs in {self.window}s). "
                f"Deferring {wait_time:.2f}s..."
            )
            if loop is not None:
                self._handle = loop.call_later(max(wait_time, 0.0), self._fire)
            else:
                self._owed = True
            return

        self._run_times.append(now)
        self._owed = False
        self.run_count += 1
        try:
            self.callback()
        except Exception as e:
            logger.error(f"Reapply run failed: {e}")
