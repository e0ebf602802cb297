"""
Cooperative single-threaded scheduling for the polling loops.
"""

from __future__ import annotations

import logging
import sched
import threading
import time
from typing import Callable

from portal.observability import POLL_TICKS

logger = logging.getLogger("portal-client")


class EventLoop:
    """One ``sched.scheduler`` shared by every periodic task.

    The delay function waits on ``_stop_event`` so :meth:`stop` wakes the
    loop at once instead of sleeping out the current interval.
    """

    def __init__(
        self,
        timefunc: Callable[[], float] = time.monotonic,
        delayfunc: Callable[[float], object] | None = None,
    ):
        self._stop_event = threading.Event()
        self.scheduler = sched.scheduler(timefunc, delayfunc or self._wait)

    def _wait(self, delay: float) -> None:
        if delay > 0:
            self._stop_event.wait(delay)

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def run(self) -> None:
        """Run until every task is cancelled or :meth:`stop` is called."""
        self._stop_event.clear()
        while not self._stop_event.is_set() and not self.scheduler.empty():
            self.scheduler.run(blocking=False)
            if self._stop_event.is_set() or self.scheduler.empty():
                break
            delay = self.scheduler.queue[0].time - self.scheduler.timefunc()
            self.scheduler.delayfunc(max(0.0, delay))

    def run_pending(self) -> None:
        """Run every event that is due now (used by one-shot commands and tests)."""
        self.scheduler.run(blocking=False)

    def stop(self) -> None:
        """Drop all pending events and wake the loop."""
        for event in list(self.scheduler.queue):
            try:
                self.scheduler.cancel(event)
            except ValueError:
                pass
        self._stop_event.set()


class PeriodicTask:
    """A supervised periodic task with explicit start/stop.

    Stopping removes the queued tick before returning. Every tick also
    carries the generation it was scheduled under, so a tick left over
    from before a stop or restart never runs.
    """

    def __init__(self, loop: EventLoop, name: str, action: Callable[[], None], interval_ms: int):
        """
        Initialize the task.

        Args:
            loop: Event loop the task is scheduled on
            name: Task name (logs and metrics)
            action: Callable run on every tick; exceptions are logged
            interval_ms: Period in milliseconds (0 keeps the task stopped)
        """
        self.loop = loop
        self.name = name
        self.action = action
        self.interval_ms = interval_ms
        self._generation = 0
        self._event: sched.Event | None = None
        self.running = False

    def start(self, immediate: bool = False) -> None:
        """Start ticking; no-op when already running or interval is 0."""
        if self.running or self.interval_ms <= 0:
            return
        self.running = True
        self._generation += 1
        self._schedule(0.0 if immediate else self.interval_ms / 1000)
        logger.debug(f"Task {self.name} started (every {self.interval_ms}ms)")

    def stop(self) -> None:
        """Stop ticking; the pending tick is cancelled synchronously."""
        if not self.running:
            return
        self.running = False
        self._generation += 1
        self._cancel_pending()
        logger.debug(f"Task {self.name} stopped")

    def reschedule(self, interval_ms: int) -> None:
        """Change the period; 0 stops the task."""
        if interval_ms == self.interval_ms:
            return
        was_running = self.running
        self.stop()
        self.interval_ms = interval_ms
        if was_running:
            self.start()

    def _schedule(self, delay: float) -> None:
        generation = self._generation
        self._event = self.loop.scheduler.enter(delay, 0, self._tick, argument=(generation,))

    def _cancel_pending(self) -> None:
        if self._event is not None:
            try:
                self.loop.scheduler.cancel(self._event)
            except ValueError:
                pass  # already dequeued by the scheduler
            self._event = None

    def _tick(self, generation: int) -> None:
        if not self.running or generation != self._generation:
            return
        self._event = None
        POLL_TICKS.labels(task=self.name).inc()
        try:
            self.action()
        except Exception as e:
            logger.error(f"Task {self.name} tick failed: {e}")
        # The action may have stopped or restarted this task
        if self.running and generation == self._generation:
            self._schedule(self.interval_ms / 1000)
