"""Per-video playback session state."""

import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .video import VideoDescriptor

_session_counter = itertools.count(1)

class PlayerState(str, Enum):
    UNSTARTED = "unstarted"
    LOADING = "loading"
    CUED = "cued"
    PLAYING = "playing"
    PAUSED = "paused"
    BUFFERING = "buffering"
    ENDED = "ended"
    UNAVAILABLE = "unavailable"
    ERROR = "error"

class ClaimStatus(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    CLAIMED = "claimed"
    OFFLINE = "offline"
    REJECTED = "rejected"

@dataclass
class PlaybackSession:
    """Runtime state for the video currently on screen.

    Exactly one session is live at a time. A session is never reused: a new
    video, a retry or a remount always gets a fresh instance, so nothing a
    closed session holds can leak into the next one.
    """

    video: VideoDescriptor
    player_state: PlayerState = PlayerState.UNSTARTED
    accumulated_watch_seconds: int = 0
    reward_claimed: bool = False
    bridge_ready: bool = False
    loaded: bool = False
    timer_paused: bool = False
    error_code: Optional[int] = None
    failure: Optional[str] = None
    claim_status: ClaimStatus = ClaimStatus.IDLE
    closed: bool = False
    failure_handled: bool = False
    number: int = field(default_factory=lambda: next(_session_counter))

    @property
    def video_id(self) -> str:
        return self.video.id

    @property
    def tag(self) -> str:
        """Scheduler tag shared by every job this session owns."""
        return f"session-{self.number}"

    @property
    def load_token(self) -> str:
        return f"{self.video.id}:{self.number}"

    @property
    def target_seconds(self) -> int:
        return self.video.target_duration_seconds

    @property
    def target_reached(self) -> bool:
        return self.accumulated_watch_seconds >= self.target_seconds

    @property
    def remaining_seconds(self) -> int:
        return max(0, self.target_seconds - self.accumulated_watch_seconds)

    @property
    def progress(self) -> float:
        if self.target_seconds <= 0:
            return 1.0
        return min(1.0, self.accumulated_watch_seconds / self.target_seconds)

    @property
    def is_terminal(self) -> bool:
        """Unavailable content is never retried within the same session."""
        return self.player_state == PlayerState.UNAVAILABLE

    def close(self):
        self.closed = True

    def to_dict(self) -> dict:
        return {
            'video_id': self.video_id,
            'title': self.video.title,
            'player_state': self.player_state.value,
            'watched_seconds': self.accumulated_watch_seconds,
            'target_seconds': self.target_seconds,
            'remaining_seconds': self.remaining_seconds,
            'progress': round(self.progress, 3),
            'reward_amount': self.video.reward_amount,
            'reward_claimed': self.reward_claimed,
            'claim_status': self.claim_status.value,
            'bridge_ready': self.bridge_ready,
            'loaded': self.loaded,
            'failure': self.failure,
            'error_code': self.error_code,
        }
