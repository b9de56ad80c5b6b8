import logging
import os
from typing import List, Optional

from .exceptions import DiscoveryError

try:
    import requests
except ImportError:
    requests = None

logger = logging.getLogger(__name__)

VIDEO_EXT = ".mp4"
SUBTITLE_EXT = ".srt"


def list_media_basenames(media_dir: str, extension: str = VIDEO_EXT) -> List[str]:
    """
    Basenames of the `extension` files in `media_dir`, in directory
    enumeration order. The match is case-insensitive; nothing is
    sorted or de-duplicated.
    """
    try:
        files = os.listdir(media_dir)
    except OSError as e:
        logger.error(f"Error listing {extension} files in {media_dir}: {e}", exc_info=True)
        raise DiscoveryError(f"Could not list media directory {media_dir}: {e}") from e
    ext = extension.lower()
    return [f[: -len(ext)] for f in files if f.lower().endswith(ext)]


def media_url(api_base_url: str, session_id: str, extension: str = VIDEO_EXT) -> str:
    return f"{api_base_url.rstrip('/')}/media/{session_id}{extension}"


class SessionRegistry:
    """Lazily fetched list of recorded sessions known to the API server."""

    def __init__(self, api_base_url: str, session=None, timeout: Optional[float] = None):
        self.api_base_url = api_base_url.rstrip("/")
        self.session = session
        self.timeout = timeout
        self._sessions: Optional[List[str]] = None

    def _fetch(self) -> List[str]:
        if requests is None:
            raise ImportError("`requests` not installed.")
        http = self.session or requests
        url = f"{self.api_base_url}/list-media-mp4-basenames"
        try:
            resp = http.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise DiscoveryError(f"Failed to fetch session IDs: {e}") from e
        if resp.status_code >= 400:
            raise DiscoveryError(f"Failed to fetch session IDs ({resp.status_code})", status_code=resp.status_code)
        try:
            data = resp.json()
        except ValueError as e:
            raise DiscoveryError(f"Session listing is not JSON: {e}") from e
        basenames = data.get("basenames") if isinstance(data, dict) else None
        if not isinstance(basenames, list):
            raise DiscoveryError("Session listing has no 'basenames' list.")
        return [str(b) for b in basenames]

    def list_sessions(self) -> List[str]:
        if self._sessions is None:
            self._sessions = self._fetch()
            logger.info(f"Discovered {len(self._sessions)} sessions")
        return list(self._sessions)

    def default_session(self) -> Optional[str]:
        sessions = self.list_sessions()
        return sessions[0] if sessions else None

    def refresh(self) -> None:
        self._sessions = None
