"""Playback-reward controller: one video at a time, watched, claimed, advanced."""

import logging
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from functools import partial
from typing import Any, Callable, Dict, List, Optional

import schedule

from .backend import BackendClient
from .balance import BalanceTracker
from .bridge import EmbeddedPlayerBridge
from .config import config
from .guard import RewardGuard
from .loop import EventLoop
from .models import (
    BridgeCommand, BridgeEvent, BridgeEventType, ClaimStatus, PlaybackSession, PlayerState, VideoDescriptor,
)
from .network import NetworkMonitor
from .notifications import NotificationCenter
from .timer import WatchTimer
from .video_queue import VideoQueue
from .youtube import YouTubeResolver

logger = logging.getLogger(__name__)

class PlaybackController:
    """Wires the queue, the embed bridge, the watch timer and the reward guard.

    Every method runs on the loop thread. Host input from other threads
    (focus, visibility, embed messages, button presses) must be posted with
    ``loop.call_soon``.
    """

    def __init__(
        self,
        backend: BackendClient,
        transport: Callable[[Dict[str, Any]], None],
        loop: Optional[EventLoop] = None,
        executor: Optional[Executor] = None,
        resolver: Optional[YouTubeResolver] = None,
        auto_skip: Optional[bool] = None,
        auto_skip_unavailable: Optional[bool] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.loop = loop or EventLoop()
        self.executor = executor or ThreadPoolExecutor(
            max_workers=config.WORKER_THREADS, thread_name_prefix="watch-earn"
        )
        self.clock = clock

        self.notifications = NotificationCenter()
        self.network = NetworkMonitor(self.loop, self.executor, self.notifications)
        self.balance = BalanceTracker(backend, self.loop, self.executor)
        self.queue = VideoQueue(backend, self.loop, self.executor, resolver)
        self.bridge = EmbeddedPlayerBridge(self.loop, transport)
        self.guard = RewardGuard(
            self.loop, self.executor, backend, self.bridge, self.queue,
            self.notifications, self.network, self.balance,
        )

        self.bridge.subscribe(self._on_bridge_event)
        self.queue.subscribe(self._on_queue_changed)

        self.user_id = ""
        self.session: Optional[PlaybackSession] = None
        self.timer: Optional[WatchTimer] = None
        self.focused = False
        self.foreground = True

        self.auto_skip = config.AUTO_SKIP if auto_skip is None else auto_skip
        self.auto_skip_unavailable = (
            config.AUTO_SKIP_UNAVAILABLE if auto_skip_unavailable is None else auto_skip_unavailable
        )
        self.load_timeout = config.LOAD_TIMEOUT
        self.stall_warning_delay = config.STALL_WARNING_DELAY
        self.unavailable_skip_delay = config.UNAVAILABLE_SKIP_DELAY
        self.skip_storm_limit = config.SKIP_STORM_LIMIT
        self.skip_storm_window = config.SKIP_STORM_WINDOW
        self.refresh_interval = config.QUEUE_REFRESH_INTERVAL

        self._suppress_autoplay = False
        self._load_job: Optional[schedule.Job] = None
        self._stall_warning_job: Optional[schedule.Job] = None
        self._stall_notice: Optional[str] = None
        self._refresh_job: Optional[schedule.Job] = None
        self._unavailable_skips: List[float] = []

    # Lifecycle --------------------------------------------------------

    def start(self, user_id: Optional[str] = None):
        """Load the queue for ``user_id`` and start background monitors."""
        self.user_id = user_id or config.USER_ID
        self.guard.user_id = self.user_id
        logger.info(f"🎬 Starting playback controller for user {self.user_id or '<unknown>'}")

        self.network.start()
        if self._refresh_job is None:
            self._refresh_job = self.loop.every(self.refresh_interval, self._periodic_refresh)
        self.queue.refresh(self.user_id)
        self.balance.refresh(self.user_id)

    def shutdown(self):
        """Release everything, as when the host view unmounts."""
        logger.info("Shutting down playback controller")
        self._teardown()
        self.network.stop()
        if self._refresh_job is not None:
            self.loop.cancel(self._refresh_job)
            self._refresh_job = None
        self.bridge.unload()

    # Session management -----------------------------------------------

    def _on_queue_changed(self, video: Optional[VideoDescriptor], moved: bool):
        if video is None:
            logger.info("🎬 No current video available")
            self._teardown()
            return

        if not moved and self.session is not None and self.session.video_id == video.id:
            return

        index = self.queue.find_eligible()
        if index is None:
            logger.warning("Every queued video is ineligible right now, refreshing queue")
            self._teardown()
            self.queue.refresh(self.user_id, on_done=self._start_if_idle)
            return
        if index != self.queue.index:
            logger.info(f"Skipping ineligible video {video.id}")
            self.queue.move_to(index)
            return

        self._begin_session(video)

    def _begin_session(self, video: VideoDescriptor):
        self._teardown()

        session = PlaybackSession(video=video, player_state=PlayerState.LOADING)
        self.session = session
        self.timer = WatchTimer(
            self.loop,
            session,
            gate=partial(self._can_count, session),
            on_complete=partial(self._on_timer_complete, session),
        )
        logger.info(f"🎬 New session for {video.id} '{video.title}' "
                    f"(target {video.target_duration_seconds}s, reward {video.reward_amount})")

        self._load_job = self.loop.call_later(self.load_timeout, self.on_load_timeout, session, tag=session.tag)
        self.bridge.load(video.source_id, session.load_token)

        if video.target_duration_seconds == 0 and self.auto_skip and not session.is_terminal:
            logger.info("Zero-length target, claiming immediately")
            self.guard.complete_and_claim(session, self.timer, auto_advance=True, auto_skip=True)

    def _teardown(self):
        session = self.session
        if session is None:
            return

        if self.timer is not None:
            self.timer.stop()
        self.loop.clear(session.tag)
        self._load_job = None
        self._stall_warning_job = None
        self._dismiss_stall_notice()
        self.bridge.unload()
        session.close()
        logger.debug(f"Session for {session.video_id} torn down")

        self.session = None
        self.timer = None

    def _can_count(self, session: PlaybackSession) -> bool:
        """Live gating check, asked on every timer tick."""
        return (
            session is self.session
            and not session.closed
            and session.loaded
            and session.player_state == PlayerState.PLAYING
            and not session.timer_paused
            and not session.reward_claimed
            and self.focused
            and self.foreground
        )

    def _on_timer_complete(self, session: PlaybackSession):
        if session is not self.session:
            return
        self.guard.complete_and_claim(session, self.timer, auto_advance=self.auto_skip, auto_skip=self.auto_skip)

    def on_load_timeout(self, session: PlaybackSession):
        """Watchdog for embeds that never report a loaded video."""
        if session is not self.session or session.closed or session.loaded:
            return
        logger.warning(f"⏰ Video {session.video_id} did not load within {self.load_timeout:.0f}s")
        self._mark_unavailable(session, "load_timeout")

    # Embed events -----------------------------------------------------

    def _on_bridge_event(self, event: BridgeEvent):
        session = self.session
        if session is None or session.closed:
            return

        kind = event.type
        if kind == BridgeEventType.BRIDGE_READY:
            session.bridge_ready = True
            if self.focused and self.foreground and not session.reward_claimed:
                logger.info("🎬 Auto-playing now that the embed is ready")
                self.bridge.send(BridgeCommand.PLAY_VIDEO)

        elif kind == BridgeEventType.VIDEO_LOADED:
            self._mark_loaded(session)

        elif kind == BridgeEventType.VIDEO_PLAYING:
            session.player_state = PlayerState.PLAYING
            session.timer_paused = False
            if session.failure == "error":
                session.failure = None
                session.error_code = None
            self._mark_loaded(session)
            self._clear_stall_warning()
            if self.focused and self.foreground:
                self.timer.start()
            else:
                self.bridge.send(BridgeCommand.PAUSE_VIDEO)

        elif kind == BridgeEventType.VIDEO_PAUSED:
            session.player_state = PlayerState.PAUSED
            session.timer_paused = True

        elif kind == BridgeEventType.VIDEO_BUFFERING:
            session.player_state = PlayerState.BUFFERING
            session.timer_paused = True
            self._schedule_stall_warning(session)

        elif kind == BridgeEventType.VIDEO_CUED:
            session.player_state = PlayerState.CUED
            session.timer_paused = True
            self._mark_loaded(session)
            if self.focused and self.foreground and not session.reward_claimed:
                self.bridge.send(BridgeCommand.PLAY_VIDEO)

        elif kind == BridgeEventType.VIDEO_ENDED:
            session.player_state = PlayerState.ENDED
            self.timer.stop()
            self._clear_stall_warning()
            self._on_video_ended(session)

        elif kind == BridgeEventType.VIDEO_UNAVAILABLE:
            self._mark_unavailable(session, "unavailable")

        elif kind == BridgeEventType.VIDEO_ERROR:
            logger.warning(f"⚠️ Playback error {event.error_code} on {session.video_id}")
            session.player_state = PlayerState.ERROR
            session.error_code = event.error_code
            session.failure = "error"
            session.timer_paused = True
            self._clear_stall_warning()
            self._maybe_auto_skip_failure(session)

    def _mark_loaded(self, session: PlaybackSession):
        if session.loaded:
            return
        session.loaded = True
        self._unavailable_skips.clear()
        if self._load_job is not None:
            self.loop.cancel(self._load_job)
            self._load_job = None
        logger.info(f"✅ Video {session.video_id} loaded")

    def _mark_unavailable(self, session: PlaybackSession, reason: str):
        logger.warning(f"🚫 Video {session.video_id} unavailable ({reason})")
        session.player_state = PlayerState.UNAVAILABLE
        session.failure = reason
        session.timer_paused = True
        if self.timer is not None:
            self.timer.stop()
        if self._load_job is not None:
            self.loop.cancel(self._load_job)
            self._load_job = None
        self._clear_stall_warning()
        self.bridge.detach()
        self._maybe_auto_skip_failure(session)

    def _on_video_ended(self, session: PlaybackSession):
        if session.target_reached and not session.reward_claimed:
            if self.auto_skip:
                self.guard.complete_and_claim(session, self.timer, auto_advance=True, auto_skip=True)
            return
        if not self.auto_skip:
            return
        if not session.reward_claimed:
            logger.info(f"Video {session.video_id} ended before the target, moving on")
            self._advance()
        elif session.claim_status != ClaimStatus.PROCESSING:
            self._advance()

    def _maybe_auto_skip_failure(self, session: PlaybackSession):
        """Auto-skip a broken video at most once, and never in a storm."""
        if not (self.auto_skip and self.auto_skip_unavailable):
            return
        if session.failure_handled:
            return
        session.failure_handled = True

        now = self.clock()
        self._unavailable_skips = [t for t in self._unavailable_skips if now - t < self.skip_storm_window]
        if len(self._unavailable_skips) >= self.skip_storm_limit:
            logger.warning("Too many unplayable videos in a row, not auto-skipping")
            self.notifications.show_warning(
                'Videos Unavailable',
                'Several videos in a row could not be played. Tap skip to continue.',
            )
            return

        self._unavailable_skips.append(now)
        self.loop.call_later(self.unavailable_skip_delay, self._auto_skip_failed, session, tag=session.tag)

    def _auto_skip_failed(self, session: PlaybackSession):
        if session is self.session and not session.closed:
            self._advance()

    # Stall warning ----------------------------------------------------

    def _schedule_stall_warning(self, session: PlaybackSession):
        if self._stall_warning_job is None:
            self._stall_warning_job = self.loop.call_later(
                self.stall_warning_delay, self._show_stall_warning, session, tag=session.tag
            )

    def _show_stall_warning(self, session: PlaybackSession):
        self._stall_warning_job = None
        if session is self.session and session.player_state == PlayerState.BUFFERING and self._stall_notice is None:
            logger.info(f"⚠️ Still buffering after {self.stall_warning_delay:.0f}s")
            self._stall_notice = self.notifications.show_warning(
                'Weak Internet Connection', 'Video is buffering due to slow internet.'
            )

    def _clear_stall_warning(self):
        if self._stall_warning_job is not None:
            self.loop.cancel(self._stall_warning_job)
            self._stall_warning_job = None
        self._dismiss_stall_notice()

    def _dismiss_stall_notice(self):
        if self._stall_notice is not None:
            self.notifications.dismiss(self._stall_notice)
            self._stall_notice = None

    # Host signals -----------------------------------------------------

    def set_focus(self, focused: bool):
        """The screen hosting the player gained or lost focus."""
        if focused == self.focused:
            return
        self.focused = focused
        logger.info(f"🎯 Tab {'gained' if focused else 'lost'} focus")
        if focused:
            self._resume(from_focus=True)
        else:
            self._pause_for_host()

    def set_foreground(self, foreground: bool):
        """The application moved to the foreground or background."""
        if foreground == self.foreground:
            return
        self.foreground = foreground
        logger.info(f"📱 App went to {'foreground' if foreground else 'background'}")
        if foreground:
            self._resume(from_focus=False)
        else:
            self._pause_for_host()

    def suppress_autoplay_once(self):
        """Do not auto-play on the next focus gain."""
        self._suppress_autoplay = True

    def _resume(self, from_focus: bool):
        session = self.session
        if session is None or session.closed or not (self.focused and self.foreground):
            return
        if from_focus and self._suppress_autoplay:
            logger.info("🚫 Suppressing auto-play for this focus")
            self._suppress_autoplay = False
            return
        if session.reward_claimed or session.is_terminal:
            return
        if session.bridge_ready:
            self.bridge.send(BridgeCommand.PLAY_VIDEO)
        self.timer.start()

    def _pause_for_host(self):
        session = self.session
        if session is None or session.closed:
            return
        self.timer.stop()
        self.bridge.send(BridgeCommand.PAUSE_VIDEO)

    # User actions -----------------------------------------------------

    def skip(self) -> bool:
        """The skip / earn button. Claims first when the target was reached."""
        session = self.session
        if session is None:
            self._advance()
            return True

        if session.claim_status == ClaimStatus.PROCESSING:
            logger.debug("Claim in flight, ignoring skip")
            return False

        if session.target_reached and not session.reward_claimed:
            return self.guard.complete_and_claim(session, self.timer, auto_advance=True, auto_skip=False)

        self._advance()
        return True

    def retry(self) -> bool:
        """Retry a failed claim or reload a video that failed to play."""
        session = self.session
        if session is None:
            return self.queue.refresh(self.user_id, on_done=self._start_if_idle)
        if session.claim_status == ClaimStatus.OFFLINE:
            return self.guard.retry_claim(session, auto_advance=self.auto_skip, auto_skip=self.auto_skip)
        if session.failure is not None:
            logger.info(f"🔁 Reloading {session.video_id}")
            self._begin_session(session.video)
            return True
        return False

    def set_auto_skip(self, enabled: bool, persist: bool = False):
        self.auto_skip = enabled
        logger.info(f"Auto-skip {'enabled' if enabled else 'disabled'}")
        if persist:
            config.update_env_value("AUTO_SKIP", "true" if enabled else "false")

    def _advance(self):
        if len(self.queue) == 0:
            self._teardown()
            self.queue.refresh(self.user_id)
            return
        self.queue.advance()
        if self.queue.remaining() <= self.guard.low_water:
            self.queue.refresh(self.user_id)

    def _periodic_refresh(self):
        if self.session is None:
            self.queue.refresh(self.user_id, on_done=self._start_if_idle)
        elif self.queue.should_skip_current():
            self.queue.refresh(self.user_id)

    def _start_if_idle(self):
        """Start a session on the current entry once one is eligible again.

        A refetch that keeps the same video at the cursor does not notify,
        so an expired hold on that video is picked up here.
        """
        if self.session is not None or self.queue.current is None:
            return
        if self.queue.find_eligible() is None:
            return
        self._on_queue_changed(self.queue.current, moved=True)

    # Presentation -----------------------------------------------------

    def button_state(self) -> Dict[str, Any]:
        session = self.session
        if session is None:
            return {'state': 'loading', 'label': 'LOADING VIDEOS...', 'disabled': True}
        if session.claim_status == ClaimStatus.PROCESSING:
            return {'state': 'processing', 'label': 'PROCESSING...', 'disabled': True}
        if session.claim_status == ClaimStatus.OFFLINE:
            return {'state': 'error', 'label': 'NO CONNECTION - TAP TO SKIP', 'disabled': False}
        if session.claim_status == ClaimStatus.REJECTED:
            return {'state': 'error', 'label': 'REWARD FAILED - TAP TO SKIP', 'disabled': False}
        if session.target_reached:
            if session.reward_claimed:
                return {'state': 'earned', 'label': 'COINS EARNED! TAP TO CONTINUE', 'disabled': False}
            return {'state': 'earn', 'label': f"EARN {session.video.reward_amount} COINS NOW", 'disabled': False}
        if session.failure is not None:
            return {'state': 'error', 'label': 'VIDEO ERROR - TAP TO SKIP', 'disabled': False}
        if not session.loaded:
            return {'state': 'loading', 'label': 'TAP TO SKIP', 'disabled': False}
        return {'state': 'skip', 'label': 'SKIP VIDEO', 'disabled': False}

    def status(self) -> Dict[str, Any]:
        session = self.session
        return {
            'session': session.to_dict() if session else None,
            'button': self.button_state(),
            'can_retry': bool(session and (session.failure or session.claim_status == ClaimStatus.OFFLINE)),
            'host': {'focused': self.focused, 'foreground': self.foreground},
            'auto_skip': self.auto_skip,
            'queue': {
                'size': len(self.queue),
                'index': self.queue.index,
                'remaining': self.queue.remaining(),
                'loading': self.queue.is_loading,
                'error': self.queue.error,
            },
            'balance': self.balance.coins,
            'online': not self.notifications.offline,
            'notifications': [n.to_dict() for n in self.notifications.active()],
        }
