"""Displayed coin balance, re-synced after rewards."""

import logging
from concurrent.futures import Executor, Future
from typing import Optional

from .backend import BackendClient
from .loop import EventLoop

logger = logging.getLogger(__name__)

class BalanceTracker:
    """Keeps the last known coin balance for the host to display."""

    def __init__(self, backend: BackendClient, loop: EventLoop, executor: Executor):
        self.backend = backend
        self.loop = loop
        self.executor = executor
        self.coins: Optional[int] = None

    def refresh(self, user_id: str):
        """Re-read the balance in the background."""
        if not user_id:
            return
        future = self.executor.submit(self.backend.refresh_balance, user_id)
        future.add_done_callback(lambda f: self.loop.call_soon(self._on_refreshed, f))

    def _on_refreshed(self, future: Future):
        error = future.exception()
        if error is not None:
            logger.warning(f"Could not refresh balance: {error}")
            return
        coins = future.result()
        if coins is not None:
            if coins != self.coins:
                logger.info(f"💰 Balance is now {coins} coins")
            self.coins = coins
