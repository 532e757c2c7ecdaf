"""Error taxonomy for Watch & Earn."""

from typing import Optional


class WatchEarnError(Exception):
    """Base class for all Watch & Earn errors."""


class NetworkError(WatchEarnError):
    """Transport-level failure: connectivity lost, DNS, timeout."""


class BackendError(WatchEarnError):
    """The backend answered but refused or failed the request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ClaimRejected(BackendError):
    """The reward claim was explicitly rejected by the backend."""


class BridgeProtocolError(WatchEarnError):
    """A message from the embed could not be understood."""
