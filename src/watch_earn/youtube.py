"""YouTube source resolution for the embedded player."""

import logging
import re
from typing import Dict, Optional

import yt_dlp

logger = logging.getLogger(__name__)

_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{11}$")
_URL_PATTERN = re.compile(
    r"(?:youtube\.com/watch\?(?:.*&)?v=|youtu\.be/|youtube\.com/embed/|youtube\.com/shorts/)([a-zA-Z0-9_-]{11})"
)

def extract_video_id(url: str) -> str:
    """Return the 11 character video id from a URL or bare id, or ''."""
    if not url:
        return ""
    url = url.strip()
    if _ID_PATTERN.match(url):
        return url
    match = _URL_PATTERN.search(url)
    if match:
        return match.group(1)
    return ""

class YouTubeResolver:
    """Resolves source URLs to embeddable ids, asking yt-dlp for odd URLs."""

    def __init__(self):
        self.ydl_opts = {
            'quiet': True,
            'no_warnings': True,
            'extract_flat': True,
            'skip_download': True,
            'nocheckcertificate': True,
        }
        self._cache: Dict[str, str] = {}

    def resolve(self, url: str) -> str:
        """Resolve a source URL, falling back to yt-dlp extraction."""
        video_id = extract_video_id(url)
        if video_id or not url or not url.startswith("http"):
            return video_id

        if url in self._cache:
            return self._cache[url]

        video_id = self._extract_with_ytdlp(url) or ""
        self._cache[url] = video_id
        return video_id

    def _extract_with_ytdlp(self, url: str) -> Optional[str]:
        try:
            with yt_dlp.YoutubeDL(self.ydl_opts) as ydl:
                info = ydl.extract_info(url, download=False, process=False)
        except Exception as e:
            logger.warning(f"Could not resolve video id for {url}: {e}")
            return None

        if not info:
            return None
        candidate = info.get('id') or ""
        if _ID_PATTERN.match(candidate):
            logger.info(f"Resolved {url} to {candidate}")
            return candidate
        logger.warning(f"yt-dlp returned a non-YouTube id for {url}: {candidate!r}")
        return None

def watch_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"
