"""User-facing notices: one-shot alerts and persistent indicators."""

import itertools
import logging
import threading
from dataclasses import dataclass, asdict
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

@dataclass
class Notification:
    id: str
    title: str
    message: str
    kind: str = "info"  # info, warning, error, network
    persistent: bool = False

    def to_dict(self) -> dict:
        return asdict(self)

class NotificationCenter:
    """Holds the notices the host should currently display.

    Written from the playback loop and read by the web status broadcast, so
    access goes through a lock.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._items: Dict[str, Notification] = {}
        self._ids = itertools.count(1)
        self._network_id: Optional[str] = None
        self._listeners: List[Callable[[List[Notification]], None]] = []

    def subscribe(self, listener: Callable[[List[Notification]], None]):
        self._listeners.append(listener)

    def _changed(self):
        snapshot = self.active()
        for listener in list(self._listeners):
            listener(snapshot)

    def show(self, title: str, message: str, kind: str = "info", persistent: bool = False) -> str:
        with self._lock:
            notification_id = f"n{next(self._ids)}"
            self._items[notification_id] = Notification(notification_id, title, message, kind, persistent)
        logger.info(f"🔔 {title}: {message}")
        self._changed()
        return notification_id

    def show_error(self, title: str, message: str) -> str:
        return self.show(title, message, kind="error")

    def show_warning(self, title: str, message: str) -> str:
        return self.show(title, message, kind="warning")

    def get(self, notification_id: str) -> Optional[Notification]:
        with self._lock:
            return self._items.get(notification_id)

    def dismiss(self, notification_id: str) -> bool:
        with self._lock:
            removed = self._items.pop(notification_id, None)
            if notification_id == self._network_id:
                self._network_id = None
        if removed:
            self._changed()
        return removed is not None

    def show_network_alert(self) -> str:
        """Show the persistent offline indicator once."""
        if self._network_id is not None:
            return self._network_id
        self._network_id = self.show(
            'No Internet Connection',
            'Please check your internet connection and try again.',
            kind="network",
            persistent=True,
        )
        return self._network_id

    def hide_network_alert(self):
        if self._network_id is not None:
            logger.info("✅ Connection restored, hiding offline indicator")
            self.dismiss(self._network_id)

    @property
    def offline(self) -> bool:
        return self._network_id is not None

    def active(self) -> List[Notification]:
        with self._lock:
            return list(self._items.values())
