"""Watch timer that only counts time the user could actually have watched."""

import logging
from typing import Callable, Optional

import schedule

from .config import config
from .loop import EventLoop
from .models import PlaybackSession

logger = logging.getLogger(__name__)

class WatchTimer:
    """Counts whole seconds of gated playback for one session.

    The tick loop is either running or idle. Losing focus or buffering does
    not change that; ``gate`` is asked on every tick and a failed check just
    means the tick is not counted.
    """

    def __init__(
        self,
        loop: EventLoop,
        session: PlaybackSession,
        gate: Callable[[], bool],
        on_complete: Callable[[], None],
        interval: Optional[float] = None,
    ):
        self.loop = loop
        self.session = session
        self.gate = gate
        self.on_complete = on_complete
        self.interval = interval or config.TICK_INTERVAL
        self._job: Optional[schedule.Job] = None
        self._completed = False

    @property
    def is_running(self) -> bool:
        return self._job is not None

    def start(self) -> bool:
        """Start ticking if gating conditions hold. Idempotent."""
        if self._job is not None:
            logger.debug("⏱️ Timer already running")
            return False
        if self._completed or self.session.closed:
            return False
        if not self.gate():
            logger.debug("⏱️ Timer conditions not met, not starting")
            return False

        logger.info(f"⏱️ Timer started for {self.session.video_id} at {self.session.accumulated_watch_seconds}s")
        self._job = self.loop.every(self.interval, self.tick, tag=self.session.tag)
        return True

    def stop(self):
        """Cancel the tick loop. Safe to call when idle."""
        if self._job is not None:
            self.loop.cancel(self._job)
            self._job = None
            logger.info(f"⏱️ Timer stopped for {self.session.video_id} at {self.session.accumulated_watch_seconds}s")

    def tick(self):
        """Count one interval if every gating condition still holds."""
        if self._job is None or self._completed or self.session.closed:
            return
        if self.session.reward_claimed or not self.gate():
            return

        self.session.accumulated_watch_seconds += 1
        if self.session.target_reached:
            self._completed = True
            self.stop()
            logger.info(f"⏱️ Target of {self.session.target_seconds}s reached for {self.session.video_id}")
            self.on_complete()
