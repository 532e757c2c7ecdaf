"""The watch queue: ordered eligible videos and a looping cursor."""

import logging
from concurrent.futures import Executor, Future
from datetime import datetime
from typing import Callable, List, Optional

from .backend import BackendClient
from .loop import EventLoop
from .models import VideoDescriptor, utcnow
from .youtube import YouTubeResolver

logger = logging.getLogger(__name__)

# Called with (current video, moved) where moved means the cursor was advanced
Listener = Callable[[Optional[VideoDescriptor], bool], None]

class VideoQueue:
    """Queue cursor over the videos the user can watch next.

    The list and index are only mutated on the loop thread. Fetching runs
    on a worker and is applied back through the loop.
    """

    def __init__(self, backend: BackendClient, loop: EventLoop, executor: Executor,
                 resolver: Optional[YouTubeResolver] = None):
        self.backend = backend
        self.loop = loop
        self.executor = executor
        self.resolver = resolver
        self.videos: List[VideoDescriptor] = []
        self.index = 0
        self.error: Optional[str] = None
        self.is_loading = False
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener):
        self._listeners.append(listener)

    @property
    def current(self) -> Optional[VideoDescriptor]:
        if 0 <= self.index < len(self.videos):
            return self.videos[self.index]
        return None

    def __len__(self) -> int:
        return len(self.videos)

    def remaining(self) -> int:
        """Entries after the current one."""
        if not self.videos:
            return 0
        return len(self.videos) - self.index - 1

    # Fetching ---------------------------------------------------------

    def fetch(self, user_id: str) -> List[VideoDescriptor]:
        """Fetch and filter the queue. Blocking; call from a worker."""
        rows = self.backend.fetch_queue(user_id)
        resolve = self.resolver.resolve if self.resolver else None
        now = utcnow()
        videos = [VideoDescriptor.from_row(row, resolver=resolve) for row in rows]
        servable = [video for video in videos if video.is_servable(now)]
        if len(servable) != len(videos):
            logger.info(f"Filtered {len(videos) - len(servable)} unservable videos out of the queue")
        return servable

    def refresh(self, user_id: str, on_done: Optional[Callable[[], None]] = None) -> bool:
        """Refetch in the background. Returns False if a refresh is already running."""
        if not user_id:
            self.error = "User not authenticated"
            return False
        if self.is_loading:
            logger.debug("Queue refresh already in flight")
            return False

        self.is_loading = True
        logger.info("🔄 Refreshing video queue")
        future = self.executor.submit(self.fetch, user_id)
        future.add_done_callback(lambda f: self.loop.call_soon(self._on_fetched, f, on_done))
        return True

    def _on_fetched(self, future: Future, on_done: Optional[Callable[[], None]]):
        self.is_loading = False
        error = future.exception()
        if error is not None:
            logger.error(f"Error fetching videos: {error}")
            self.error = str(error) or "Failed to load videos. Please check your connection."
        else:
            self.apply(future.result())
        if on_done:
            on_done()

    def apply(self, videos: List[VideoDescriptor]):
        """Swap in a fresh list, keeping the cursor position when possible."""
        previous = self.current
        self.videos = list(videos)
        if self.index >= len(self.videos):
            self.index = 0

        if self.videos:
            self.error = None
        else:
            self.error = "No videos available. Videos will loop automatically when available!"
        logger.info(f"🎬 Queue updated. Current index: {self.index}, queue size: {len(self.videos)}")

        current = self.current
        if (previous.id if previous else None) != (current.id if current else None):
            self._notify(moved=False)

    # Cursor -----------------------------------------------------------

    def advance(self) -> Optional[VideoDescriptor]:
        """Move to the next video, looping back to the head after the last."""
        if not self.videos:
            return None
        if self.index < len(self.videos) - 1:
            self.index += 1
        else:
            self.index = 0
        logger.info(f"⏭️ Queue advanced to index {self.index}")
        self._notify(moved=True)
        return self.current

    def should_skip_current(self, now: Optional[datetime] = None) -> bool:
        current = self.current
        return current is None or current.should_skip(now)

    def find_eligible(self, now: Optional[datetime] = None) -> Optional[int]:
        """Index of the first eligible entry from the cursor on, scanning each entry once."""
        count = len(self.videos)
        for offset in range(count):
            index = (self.index + offset) % count
            if not self.videos[index].should_skip(now):
                return index
        return None

    def move_to(self, index: int):
        if index != self.index and 0 <= index < len(self.videos):
            self.index = index
            self._notify(moved=True)

    def _notify(self, moved: bool):
        current = self.current
        for listener in list(self._listeners):
            listener(current, moved)
