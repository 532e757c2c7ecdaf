"""Connectivity monitor behind the persistent offline indicator."""

import logging
from concurrent.futures import Executor, Future
from typing import Optional

import requests
import schedule

from .config import config
from .loop import EventLoop
from .notifications import NotificationCenter

logger = logging.getLogger(__name__)

class NetworkMonitor:
    """Periodically checks connectivity and drives the offline indicator."""

    def __init__(self, loop: EventLoop, executor: Executor, notifications: NotificationCenter,
                 check_url: Optional[str] = None, interval: Optional[float] = None,
                 timeout: Optional[float] = None):
        self.loop = loop
        self.executor = executor
        self.notifications = notifications
        self.check_url = check_url or config.NETWORK_CHECK_URL
        self.interval = interval or config.NETWORK_CHECK_INTERVAL
        self.timeout = timeout or config.NETWORK_CHECK_TIMEOUT
        self.is_online = True
        self._job: Optional[schedule.Job] = None
        self._check_in_flight = False

    def start(self):
        if self._job is None:
            logger.info("🔌 Starting network monitoring")
            self._job = self.loop.every(self.interval, self.schedule_check)

    def stop(self):
        if self._job is not None:
            logger.info("🔌 Stopping network monitoring")
            self.loop.cancel(self._job)
            self._job = None

    def check_connection(self) -> bool:
        """Blocking reachability probe. Runs on a worker thread."""
        try:
            response = requests.head(self.check_url, timeout=self.timeout, allow_redirects=False)
            return response.status_code < 400
        except requests.RequestException as e:
            logger.debug(f"Network check failed: {e}")
            return False

    def schedule_check(self):
        if self._check_in_flight:
            return
        self._check_in_flight = True
        future = self.executor.submit(self.check_connection)
        future.add_done_callback(lambda f: self.loop.call_soon(self._on_checked, f))

    def _on_checked(self, future: Future):
        self._check_in_flight = False
        if future.exception() is not None:
            logger.error(f"Network check crashed: {future.exception()}")
            return
        self.set_online(future.result())

    def set_online(self, online: bool):
        was_online = self.is_online
        self.is_online = online
        if online:
            if not was_online:
                logger.info("✅ Network restored")
            self.notifications.hide_network_alert()
        else:
            if was_online:
                logger.warning("❌ Network lost")
            self.notifications.show_network_alert()

    def report_failure(self):
        """A remote call failed at the transport level."""
        self.set_online(False)

    def report_success(self):
        """A remote call got through, so we are online."""
        self.set_online(True)
