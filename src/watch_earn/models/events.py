"""Message vocabulary spoken across the embed bridge."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .session import PlayerState

class BridgeEventType(str, Enum):
    BRIDGE_READY = "bridgeReady"
    VIDEO_LOADED = "videoLoaded"
    VIDEO_PLAYING = "videoPlaying"
    VIDEO_PAUSED = "videoPaused"
    VIDEO_BUFFERING = "videoBuffering"
    VIDEO_CUED = "videoCued"
    VIDEO_ENDED = "videoEnded"
    VIDEO_UNAVAILABLE = "videoUnavailable"
    VIDEO_ERROR = "videoError"

class BridgeCommand(str, Enum):
    LOAD_VIDEO = "loadVideo"
    PLAY_VIDEO = "playVideo"
    PAUSE_VIDEO = "pauseVideo"
    TIMER_COMPLETE = "timerComplete"

# Inbound aliases and non-event messages
INBOUND_ALIASES = {
    "webViewReady": BridgeEventType.BRIDGE_READY,
}
POSITION_MESSAGE = "playbackPosition"

# Embed error codes that mean the content itself can never play
UNAVAILABLE_ERROR_CODES = frozenset({2, 5, 100, 101, 150})

STATE_FOR_EVENT = {
    BridgeEventType.VIDEO_PLAYING: PlayerState.PLAYING,
    BridgeEventType.VIDEO_PAUSED: PlayerState.PAUSED,
    BridgeEventType.VIDEO_BUFFERING: PlayerState.BUFFERING,
    BridgeEventType.VIDEO_CUED: PlayerState.CUED,
    BridgeEventType.VIDEO_ENDED: PlayerState.ENDED,
    BridgeEventType.VIDEO_UNAVAILABLE: PlayerState.UNAVAILABLE,
    BridgeEventType.VIDEO_ERROR: PlayerState.ERROR,
}

@dataclass(frozen=True)
class BridgeEvent:
    """A translated event from the embed."""

    type: BridgeEventType
    error_code: Optional[int] = None
    synthetic: bool = False

    @property
    def player_state(self) -> Optional[PlayerState]:
        return STATE_FOR_EVENT.get(self.type)
