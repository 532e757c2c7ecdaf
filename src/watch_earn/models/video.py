"""Video descriptor served by the watch queue."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from ..config import config
from ..youtube import extract_video_id, watch_url

logger = logging.getLogger(__name__)

PLAYABLE_STATUSES = ("active", "repromoted")

def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a backend timestamp into an aware UTC datetime."""
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            logger.warning(f"Unparseable timestamp: {value!r}")
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def _as_int(value: Any, default: int) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return default

@dataclass(frozen=True)
class VideoDescriptor:
    """A promoted video the user can watch for a reward."""

    id: str
    source_url: str
    title: str
    target_duration_seconds: int = 30
    reward_amount: int = 10
    source_id: str = ""
    status: str = "active"
    views_count: int = 0
    target_views: int = 0
    completed: bool = False
    hold_until: Optional[datetime] = None
    created_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any], resolver=None) -> "VideoDescriptor":
        """Normalize a raw backend row."""
        source_url = row.get("youtube_url") or ""
        resolve = resolver or extract_video_id
        duration = row.get("duration_seconds")
        if duration is None:
            duration = row.get("duration")
        reward = row.get("coin_reward")

        return cls(
            id=str(row.get("video_id") or row.get("id") or ""),
            source_url=source_url,
            title=row.get("title") or "",
            target_duration_seconds=_as_int(duration if duration is not None else 30, 30),
            reward_amount=_as_int(reward if reward is not None else 10, 10),
            source_id=resolve(source_url) if source_url else "",
            status=row.get("status") or "active",
            views_count=_as_int(row.get("views_count"), 0),
            target_views=_as_int(row.get("target_views"), 0),
            completed=bool(row.get("completed")),
            hold_until=parse_timestamp(row.get("hold_until")),
            created_at=parse_timestamp(row.get("created_at")),
            deleted_at=parse_timestamp(row.get("deleted_at")),
        )

    def hold_deadline(self, hold_minutes: Optional[int] = None) -> Optional[datetime]:
        """When the administrative hold ends, if the video is held at all."""
        if self.hold_until:
            return self.hold_until
        if self.status == "on_hold" and self.created_at:
            minutes = config.HOLD_WINDOW_MINUTES if hold_minutes is None else hold_minutes
            return self.created_at + timedelta(minutes=minutes)
        return None

    def is_on_hold(self, now: Optional[datetime] = None, hold_minutes: Optional[int] = None) -> bool:
        deadline = self.hold_deadline(hold_minutes)
        return bool(deadline and deadline > (now or utcnow()))

    def has_valid_status(self, now: Optional[datetime] = None) -> bool:
        """Active-like status; an expired hold counts as active."""
        if self.status in PLAYABLE_STATUSES:
            return True
        return self.status == "on_hold" and not self.is_on_hold(now)

    def should_skip(self, now: Optional[datetime] = None) -> bool:
        """Deleted, not active, or inside its hold window."""
        if self.deleted_at:
            return True
        if not self.has_valid_status(now):
            return True
        return self.is_on_hold(now)

    def is_servable(self, now: Optional[datetime] = None) -> bool:
        """Whether the queue should keep this video at all."""
        missing = [name for name in ("id", "source_url", "title") if not getattr(self, name)]
        if missing:
            logger.debug(f"Filtering out video {self.title or '?'}: missing {', '.join(missing)}")
            return False
        if self.completed or self.status == "completed" or self.views_count >= self.target_views:
            logger.debug(f"Filtering out video {self.title}: completed")
            return False
        if not self.has_valid_status(now):
            logger.debug(f"Filtering out video {self.title}: status {self.status}")
            return False
        return True

    @property
    def watch_url(self) -> str:
        return watch_url(self.source_id) if self.source_id else self.source_url
