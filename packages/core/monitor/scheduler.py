"""
Sequential task scheduler.

Every task (periodic ticks and delayed one-shots) runs on a single worker
thread in due-time order, so tasks never overlap. The clock is injectable:
tests drive a fake clock and call run_pending() without starting the thread.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from typing import Callable, List, Optional, Tuple

log = logging.getLogger(__name__)


class ScheduledTask:
    def __init__(self, fn: Callable[[], None], name: str, interval: Optional[float] = None) -> None:
        self.fn = fn
        self.name = name
        self.interval = interval
        self.due: float = 0.0
        self._cancelled = False
        self._done = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        """True once a one-shot task has run."""
        return self._done

    def cancel(self) -> None:
        self._cancelled = True

    def __repr__(self) -> str:
        return f"ScheduledTask({self.name!r}, due={self.due:.3f}, cancelled={self._cancelled})"


class TaskScheduler:
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._queue: List[Tuple[float, int, ScheduledTask]] = []
        self._seq = itertools.count()
        self._cond = threading.Condition()
        self._thread: Optional[threading.Thread] = None
        self._stop_evt = threading.Event()

    def now(self) -> float:
        return self._clock()

    def _push(self, task: ScheduledTask, due: float) -> None:
        task.due = due
        with self._cond:
            heapq.heappush(self._queue, (due, next(self._seq), task))
            self._cond.notify()

    def call_later(self, delay: float, fn: Callable[[], None], name: str = "task") -> ScheduledTask:
        task = ScheduledTask(fn, name)
        self._push(task, self._clock() + max(0.0, delay))
        return task

    def call_every(self, interval: float, fn: Callable[[], None], name: str = "periodic") -> ScheduledTask:
        """Run fn every interval seconds, first run one interval from now."""
        if interval <= 0:
            raise ValueError("interval must be > 0")
        task = ScheduledTask(fn, name, interval=interval)
        self._push(task, self._clock() + interval)
        return task

    def pending(self) -> List[ScheduledTask]:
        with self._cond:
            return [t for _, _, t in sorted(self._queue) if not t.cancelled]

    def _pop_due(self) -> Optional[ScheduledTask]:
        with self._cond:
            while self._queue:
                due, _, task = self._queue[0]
                if task.cancelled:
                    heapq.heappop(self._queue)
                    continue
                if due > self._clock():
                    return None
                heapq.heappop(self._queue)
                return task
            return None

    def _run(self, task: ScheduledTask) -> None:
        try:
            task.fn()
        except Exception:
            log.exception(f"Scheduled task {task.name!r} failed")
        if task.interval is None:
            task._done = True
        elif not task.cancelled:
            # Late ticks run once, they don't queue up a catch-up burst
            self._push(task, max(task.due + task.interval, self._clock()))

    def run_pending(self) -> int:
        """Run every task that is due now, in order. Returns how many ran."""
        ran = 0
        while True:
            task = self._pop_due()
            if task is None:
                return ran
            self._run(task)
            ran += 1

    def _next_wait(self) -> Optional[float]:
        # caller holds self._cond
        for due, _, task in sorted(self._queue):
            if not task.cancelled:
                return max(0.0, due - self._clock())
        return None

    def _worker(self) -> None:
        while not self._stop_evt.is_set():
            self.run_pending()
            with self._cond:
                if self._stop_evt.is_set():
                    break
                self._cond.wait(timeout=self._next_wait())

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_evt.clear()
        self._thread = threading.Thread(target=self._worker, name="MatchMonitorScheduler", daemon=True)
        self._thread.start()

    def shutdown(self, timeout: float = 5.0) -> None:
        self._stop_evt.set()
        with self._cond:
            for _, _, task in self._queue:
                task.cancel()
            self._queue.clear()
            self._cond.notify_all()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None
