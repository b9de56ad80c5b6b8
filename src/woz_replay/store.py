import logging
from typing import Any, Dict, List, Optional

from .exceptions import FetchError
from .models import MAX_RATING, MIN_RATING, Message

try:
    import requests
except ImportError:
    requests = None

logger = logging.getLogger(__name__)

PATCHABLE_FIELDS = ("rating", "comment")


def toggle_rating(current: int, star: int) -> int:
    """Clicking the star that is already set clears the rating."""
    if not 1 <= star <= MAX_RATING:
        raise ValueError(f"Star must be between 1 and {MAX_RATING}, got {star}.")
    return MIN_RATING if star == current else star


def _to_message(data: Any) -> Message:
    try:
        return Message.from_dict(data or {})
    except (AttributeError, TypeError, ValueError) as e:
        raise FetchError(f"Malformed message record {data!r}: {e}") from e


class MessageStoreClient:
    """CRUD calls against the `messages` collection of the REST store."""

    def __init__(self, base_url: str, session=None, timeout: Optional[float] = None):
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.timeout = timeout

    def _request(self, method: str, path: str, **kwargs) -> Any:
        if requests is None:
            raise ImportError("`requests` not installed.")
        http = self.session or requests
        url = f"{self.base_url}{path}"
        try:
            resp = http.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise FetchError(f"{method} {url} failed: {e}") from e
        if resp.status_code >= 400:
            raise FetchError(f"{method} {url} failed {resp.status_code}: {resp.text[:300]}", status_code=resp.status_code)
        try:
            return resp.json()
        except ValueError:
            return None

    def list_for_session(self, session_id: str, max_timestamp: Optional[float] = None) -> List[Message]:
        params: Dict[str, Any] = {"sessionID": session_id, "_sort": "timestamp", "_order": "asc"}
        if max_timestamp is not None:
            params["timestamp_lte"] = max_timestamp
        data = self._request("GET", "/messages", params=params)
        if not isinstance(data, list):
            raise FetchError(f"Message listing for {session_id} is not a list.")
        messages: List[Message] = []
        for d in data:
            if not isinstance(d, dict):
                continue
            try:
                messages.append(Message.from_dict(d))
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed message record {d.get('id')!r}: {e}")
        return messages

    def create(self, message: Message) -> Message:
        data = self._request("POST", "/messages", json=message.to_dict())
        logger.info(f"Stored message {data.get('id') if isinstance(data, dict) else '?'} for session {message.sessionID}")
        return _to_message(data)

    def patch(self, message_id: int, **fields: Any) -> Message:
        unknown = [k for k in fields if k not in PATCHABLE_FIELDS]
        if unknown:
            raise ValueError(f"Cannot patch fields: {unknown}")
        if "rating" in fields:
            rating = fields["rating"]
            if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
                raise ValueError(f"Rating must be an integer in {MIN_RATING}..{MAX_RATING}, got {rating!r}.")
        data = self._request("PATCH", f"/messages/{message_id}", json=fields)
        logger.info(f"Patched message {message_id}: {sorted(fields)}")
        return _to_message(data)

    def remove(self, message_id: int) -> None:
        self._request("DELETE", f"/messages/{message_id}")
        logger.info(f"Deleted message {message_id}")


class MessageCache:
    """
    Read-through cache of session messages.

    Every write goes to the store and is then followed by a full re-fetch
    of that session; mutation replies are never merged into the cache.
    """

    def __init__(self, client: MessageStoreClient):
        self.client = client
        self._by_session: Dict[str, List[Message]] = {}

    def get(self, session_id: str) -> List[Message]:
        if session_id not in self._by_session:
            self.refresh(session_id)
        return list(self._by_session.get(session_id, []))

    def refresh(self, session_id: str) -> List[Message]:
        try:
            self._by_session[session_id] = self.client.list_for_session(session_id)
        except FetchError as e:
            # keep whatever was cached before
            logger.error(f"Error fetching messages for session {session_id}: {e}")
        return list(self._by_session.get(session_id, []))

    def invalidate(self, session_id: Optional[str] = None) -> None:
        if session_id is None:
            self._by_session.clear()
        else:
            self._by_session.pop(session_id, None)

    def create(self, message: Message) -> Message:
        stored = self.client.create(message)
        self.refresh(message.sessionID)
        return stored

    def patch(self, session_id: str, message_id: int, **fields: Any) -> List[Message]:
        self.client.patch(message_id, **fields)
        return self.refresh(session_id)

    def remove(self, session_id: str, message_id: int) -> List[Message]:
        self.client.remove(message_id)
        return self.refresh(session_id)
