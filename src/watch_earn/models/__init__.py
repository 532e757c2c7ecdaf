"""Data models for Watch & Earn."""

from .video import VideoDescriptor, parse_timestamp, utcnow
from .session import PlaybackSession, PlayerState, ClaimStatus
from .events import BridgeEvent, BridgeEventType, BridgeCommand, UNAVAILABLE_ERROR_CODES

__all__ = [
    "VideoDescriptor", "parse_timestamp", "utcnow",
    "PlaybackSession", "PlayerState", "ClaimStatus",
    "BridgeEvent", "BridgeEventType", "BridgeCommand", "UNAVAILABLE_ERROR_CODES",
]
