"""Cooperative event loop for the playback core.

All playback state is owned by a single thread. Fixed-interval work (watch
ticks, stall polls, watchdogs) runs as jobs on a ``schedule.Scheduler``;
anything coming from another thread (socket handlers, finished remote
calls) is posted with ``call_soon`` and executed on the loop thread.
"""

import logging
import queue
import time
from typing import Callable, List, Optional

import schedule

logger = logging.getLogger(__name__)

class EventLoop:
    """Single-threaded scheduler plus a thread-safe callback inbox."""

    def __init__(self, scheduler: Optional[schedule.Scheduler] = None, idle_sleep: float = 0.1):
        self.scheduler = scheduler or schedule.Scheduler()
        self.idle_sleep = idle_sleep
        self._inbox: "queue.Queue[Callable[[], None]]" = queue.Queue()
        self._running = False

    # Scheduling -------------------------------------------------------

    def every(self, seconds: float, func: Callable, *args, tag: Optional[str] = None) -> schedule.Job:
        """Run ``func`` every ``seconds`` until cancelled."""
        job = self.scheduler.every(seconds).seconds.do(func, *args)
        if tag:
            job.tag(tag)
        return job

    def call_later(self, seconds: float, func: Callable, *args, tag: Optional[str] = None) -> schedule.Job:
        """Run ``func`` once after ``seconds``."""
        def once():
            func(*args)
            return schedule.CancelJob

        job = self.scheduler.every(seconds).seconds.do(once)
        if tag:
            job.tag(tag)
        return job

    def cancel(self, job: Optional[schedule.Job]):
        """Cancel a job; unknown or already finished jobs are ignored."""
        if job is not None:
            self.scheduler.cancel_job(job)

    def clear(self, tag: str):
        """Cancel every job carrying ``tag``."""
        self.scheduler.clear(tag)

    def jobs(self, tag: Optional[str] = None) -> List[schedule.Job]:
        return self.scheduler.get_jobs(tag)

    # Cross-thread inbox ---------------------------------------------

    def call_soon(self, func: Callable, *args):
        """Queue ``func`` to run on the loop thread. Safe from any thread."""
        if args:
            self._inbox.put(lambda: func(*args))
        else:
            self._inbox.put(func)

    def drain(self) -> int:
        """Run every queued callback, including ones queued while draining."""
        count = 0
        while True:
            try:
                callback = self._inbox.get_nowait()
            except queue.Empty:
                return count
            callback()
            count += 1

    def run_pending(self):
        """One loop iteration: inbox first, then due jobs."""
        self.drain()
        self.scheduler.run_pending()
        self.drain()

    def run_forever(self):
        """Run the loop until ``stop()`` is called."""
        self._running = True
        logger.info("Playback loop started")

        while self._running:
            try:
                self.run_pending()
            except Exception as e:
                logger.error(f"Playback loop error: {e}", exc_info=True)
            time.sleep(self.idle_sleep)

        logger.info("Playback loop stopped")

    def stop(self):
        self._running = False
