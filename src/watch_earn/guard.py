"""At-most-once reward claiming."""

import logging
from concurrent.futures import Executor, Future
from typing import Optional

from .backend import BackendClient, ClaimResult
from .balance import BalanceTracker
from .bridge import EmbeddedPlayerBridge
from .config import config
from .exceptions import NetworkError, WatchEarnError
from .loop import EventLoop
from .models import BridgeCommand, ClaimStatus, PlaybackSession
from .network import NetworkMonitor
from .notifications import NotificationCenter
from .timer import WatchTimer
from .video_queue import VideoQueue

logger = logging.getLogger(__name__)

class RewardGuard:
    """Claims each session's reward at most once and handles the outcome.

    ``reward_claimed`` is set before the remote call is even submitted, so a
    second trigger that arrives while the first call is in flight is turned
    away. Once set it never goes back, whatever the server says.
    """

    def __init__(self, loop: EventLoop, executor: Executor, backend: BackendClient,
                 bridge: EmbeddedPlayerBridge, queue: VideoQueue,
                 notifications: NotificationCenter, network: NetworkMonitor,
                 balance: BalanceTracker, user_id: str = "", low_water: Optional[int] = None):
        self.loop = loop
        self.executor = executor
        self.backend = backend
        self.bridge = bridge
        self.queue = queue
        self.notifications = notifications
        self.network = network
        self.balance = balance
        self.user_id = user_id
        self.low_water = config.QUEUE_LOW_WATER if low_water is None else low_water

    def complete_and_claim(self, session: PlaybackSession, timer: Optional[WatchTimer] = None,
                           auto_advance: bool = True, auto_skip: bool = False) -> bool:
        """Claim the reward for ``session``. Returns False if it was already claimed."""
        if session.reward_claimed:
            logger.debug(f"Reward for {session.video_id} already claimed, ignoring")
            return False
        if session.closed:
            logger.debug(f"Session for {session.video_id} is closed, not claiming")
            return False

        session.reward_claimed = True
        session.claim_status = ClaimStatus.PROCESSING

        if timer is not None:
            timer.stop()
        self.bridge.send(BridgeCommand.TIMER_COMPLETE)

        logger.info(f"🪙 Claiming reward for {session.video_id} after {session.accumulated_watch_seconds}s")
        self._submit(session, auto_advance, auto_skip)
        return True

    def retry_claim(self, session: PlaybackSession, auto_advance: bool = True, auto_skip: bool = False) -> bool:
        """Resend a claim that never reached the server.

        Only a claim that failed at the transport level can be resent; the
        backend treats repeated claims for the same viewing as one.
        """
        if session.closed or session.claim_status != ClaimStatus.OFFLINE:
            return False
        logger.info(f"🔁 Retrying reward claim for {session.video_id}")
        session.claim_status = ClaimStatus.PROCESSING
        self._submit(session, auto_advance, auto_skip)
        return True

    def _submit(self, session: PlaybackSession, auto_advance: bool, auto_skip: bool):
        future = self.executor.submit(
            self.backend.claim_reward,
            self.user_id,
            session.video_id,
            session.accumulated_watch_seconds,
            auto_skip,
        )
        future.add_done_callback(
            lambda f: self.loop.call_soon(self._on_claim_done, session, f, auto_advance)
        )

    def _on_claim_done(self, session: PlaybackSession, future: Future, auto_advance: bool):
        error = future.exception()
        if error is None:
            self._on_success(session, future.result(), auto_advance)
        elif isinstance(error, NetworkError):
            self._on_network_failure(session, error)
        else:
            self._on_rejected(session, error)

    def _on_success(self, session: PlaybackSession, result: ClaimResult, auto_advance: bool):
        self.network.report_success()
        self.balance.refresh(self.user_id)

        if session.closed:
            logger.info(f"Claim for {session.video_id} finished after the session closed")
            return

        session.claim_status = ClaimStatus.CLAIMED
        logger.info(f"✅ Reward claimed for {session.video_id}")

        if auto_advance:
            self.queue.advance()
        if result.video_completed:
            logger.info("Video marked as completed, refreshing queue")
            self.queue.refresh(self.user_id)
        elif self.queue.remaining() <= self.low_water:
            self.queue.refresh(self.user_id)

    def _on_network_failure(self, session: PlaybackSession, error: Exception):
        logger.warning(f"🚨 Network error while claiming {session.video_id}: {error}")
        self.network.report_failure()
        if not session.closed:
            session.claim_status = ClaimStatus.OFFLINE

    def _on_rejected(self, session: PlaybackSession, error: Exception):
        if isinstance(error, WatchEarnError):
            logger.warning(f"⚠️ Reward claim for {session.video_id} rejected: {error}")
        else:
            logger.error(f"Unexpected error claiming {session.video_id}: {error}", exc_info=error)
        if not session.closed:
            session.claim_status = ClaimStatus.REJECTED
        self.notifications.show_error(
            'Reward Processing Failed',
            'Unable to process your video reward. Please try watching another video.',
        )
