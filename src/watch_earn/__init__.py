"""Watch & Earn playback-reward core."""

__version__ = "0.1.0"
