"""Client for the remote database and its procedures."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from .config import config
from .exceptions import BackendError, ClaimRejected, NetworkError

logger = logging.getLogger(__name__)

@dataclass
class ClaimResult:
    success: bool
    video_completed: bool = False
    coins_earned: Optional[int] = None
    error: Optional[str] = None

class BackendClient:
    """Calls the backend's REST and RPC endpoints.

    Transport failures raise ``NetworkError``; anything the server answered
    with but refused raises ``BackendError`` (or ``ClaimRejected`` for
    reward claims), so callers can tell "offline" from "denied".
    """

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None,
                 access_token: Optional[str] = None, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        self.base_url = (base_url or config.BACKEND_URL).rstrip("/")
        self.api_key = config.BACKEND_ANON_KEY if api_key is None else api_key
        self.access_token = config.ACCESS_TOKEN if access_token is None else access_token
        self.timeout = timeout or config.REQUEST_TIMEOUT
        self.http = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {
            'apikey': self.api_key,
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        }
        token = self.access_token or self.api_key
        if token:
            headers['Authorization'] = f"Bearer {token}"
        return headers

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.http.request(method, url, headers=self._headers(), timeout=self.timeout, **kwargs)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise NetworkError(f"{method} {path} failed: {e}") from e
        except requests.RequestException as e:
            raise BackendError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            message = response.text[:500]
            try:
                payload = response.json()
                if isinstance(payload, dict):
                    message = payload.get('message') or payload.get('error') or message
            except ValueError:
                pass
            raise BackendError(f"{method} {path} returned {response.status_code}: {message}",
                               status_code=response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise BackendError(f"{method} {path} returned invalid JSON") from e

    def rpc(self, name: str, params: Dict[str, Any]) -> Any:
        """Invoke a remote procedure."""
        return self._request('POST', f"/rest/v1/rpc/{name}", json=params)

    def claim_reward(self, user_id: str, video_id: str, watched_seconds: int, is_auto_skip: bool) -> ClaimResult:
        """Claim the reward for a watched video."""
        logger.info(f"Claiming reward: video={video_id} watched={watched_seconds}s auto_skip={is_auto_skip}")
        try:
            data = self.rpc('watch_video_and_earn_coins', {
                'user_uuid': user_id,
                'video_uuid': video_id,
                'watch_duration': watched_seconds,
                'video_fully_watched': is_auto_skip,
            })
        except BackendError as e:
            if isinstance(e, ClaimRejected):
                raise
            raise ClaimRejected(str(e), status_code=e.status_code) from e

        if isinstance(data, list):
            data = data[0] if data else {}
        if not isinstance(data, dict) or not data.get('success'):
            error = data.get('error') if isinstance(data, dict) else None
            raise ClaimRejected(error or "Failed to process video watch")

        return ClaimResult(
            success=True,
            video_completed=bool(data.get('video_completed')),
            coins_earned=data.get('coins_earned'),
        )

    def fetch_queue(self, user_id: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Fetch raw rows of videos the user may watch."""
        now = datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')
        params = {
            'select': '*',
            'user_id': f"neq.{user_id}",
            'deleted_at': 'is.null',
            'status': 'in.(active,repromoted)',
            'or': f"(hold_until.is.null,hold_until.lte.{now})",
            'order': 'created_at.desc',
            'limit': str(limit or config.QUEUE_LIMIT),
        }
        rows = self._request('GET', "/rest/v1/videos", params=params)
        if not isinstance(rows, list):
            raise BackendError("Video queue response was not a list")
        logger.info(f"Fetched {len(rows)} queue rows")
        return rows

    def refresh_balance(self, user_id: str) -> Optional[int]:
        """Read the user's current coin balance."""
        data = self.rpc('get_profile_by_id', {'profile_id': user_id})
        if isinstance(data, list):
            data = data[0] if data else None
        if not data:
            logger.warning(f"No profile found for {user_id}")
            return None
        return data.get('coins')
