import logging
from typing import Any, Dict, Optional

from .exceptions import FetchError, ParseError, ValidationError

try:
    import requests
except ImportError:
    requests = None

logger = logging.getLogger(__name__)


def request_llm_response(
    api_base_url: str,
    payload: Dict[str, Any],
    session=None,
    timeout: Optional[float] = None,
) -> Dict[str, Any]:
    """
    POST a prompter request to the orchestration API.
    400 -> ValidationError, 502 -> ParseError (worth retrying), other
    failures -> FetchError.
    """
    if requests is None:
        raise ImportError("`requests` not installed.")
    http = session or requests
    url = f"{api_base_url.rstrip('/')}/generate-llm-response"
    try:
        resp = http.post(url, json=payload, timeout=timeout)
    except requests.RequestException as e:
        raise FetchError(f"Request to {url} failed: {e}") from e

    try:
        data = resp.json()
    except ValueError:
        data = {}
    error = data.get("error") if isinstance(data, dict) else None

    if resp.status_code == 400:
        raise ValidationError("", error or "Invalid request.")
    if resp.status_code == 502 and isinstance(data, dict) and data.get("retryable"):
        raise ParseError(error or "LLM reply could not be parsed.")
    if resp.status_code >= 400:
        raise FetchError(error or f"Network response was not ok ({resp.status_code})", status_code=resp.status_code)
    if not isinstance(data, dict) or "message" not in data:
        raise FetchError("Orchestration API returned no message.")
    logger.info(f"Message received for session {data.get('sessionID')}: {data.get('uuid')}")
    return data
