import base64
import io
import json
import logging
import math
import re
import uuid
from typing import Any, Dict, List, Optional

from .exceptions import LLMError, ParseError, ValidationError
from .models import GenerateRequest, Message
from .store import MessageStoreClient

try:
    from openai import OpenAI
except ImportError:
    OpenAI = None

try:
    from PIL import Image
except ImportError:
    Image = None

logger = logging.getLogger(__name__)

DATA_URL_PREFIX_RE = re.compile(r"^data:image/(jpeg|png);base64,")
JPEG_DATA_URL_PREFIX = "data:image/jpeg;base64,"

# ----------------------------
# Request validation
# ----------------------------

def _is_number(val: Any) -> bool:
    if isinstance(val, bool) or val is None:
        return False
    if isinstance(val, (int, float)):
        return not math.isnan(val)
    if isinstance(val, str) and val.strip():
        try:
            return not math.isnan(float(val))
        except ValueError:
            return False
    return False


def validate_request(payload: Optional[Dict[str, Any]]) -> GenerateRequest:
    """Check the fields in a fixed order and stop at the first bad one."""
    payload = payload or {}
    session_id = payload.get("sessionID")
    max_timestamp = payload.get("maxTimestamp")
    system_prompt = payload.get("systemPrompt")
    transcript = payload.get("transcript")
    screenshot = payload.get("screenshot")

    if not session_id:
        raise ValidationError("sessionID", "Invalid or missing session ID.")
    if not _is_number(max_timestamp):
        raise ValidationError("maxTimestamp", "Invalid or missing maxTimestamp.")
    if not system_prompt:
        raise ValidationError("systemPrompt", "Invalid or missing system prompt.")
    if not transcript:
        raise ValidationError("transcript", "Invalid or missing transcript.")
    if not screenshot:
        raise ValidationError("screenshot", "Invalid or missing screenshot.")

    return GenerateRequest(
        sessionID=str(session_id),
        maxTimestamp=float(max_timestamp),
        systemPrompt=str(system_prompt),
        screenshot=str(screenshot),
        transcript=str(transcript),
        includePrevMessages=bool(payload.get("includePrevMessages", True)),
    )

# ----------------------------
# Prompt assembly
# ----------------------------

def downscale_screenshot(screenshot: str, max_width: int = 1200) -> str:
    """
    Shrink a base64 screenshot to `max_width` (aspect ratio kept) and
    re-encode it as JPEG. Returns the input unchanged if anything fails.
    """
    try:
        if Image is None:
            raise ImportError("`Pillow` not installed.")
        raw = base64.b64decode(DATA_URL_PREFIX_RE.sub("", screenshot), validate=True)
        with Image.open(io.BytesIO(raw)) as img:
            img = img.convert("RGB")
            if img.width > max_width:
                height = max(1, round(img.height * max_width / img.width))
                img = img.resize((max_width, height), Image.LANCZOS)
            out = io.BytesIO()
            img.save(out, format="JPEG")
        return JPEG_DATA_URL_PREFIX + base64.b64encode(out.getvalue()).decode("ascii")
    except Exception as e:
        logger.error(f"Error scaling screenshot, sending original: {e}")
        return screenshot


def _format_timestamp(ts: Optional[float]) -> str:
    # whole seconds print without a trailing ".0"
    if isinstance(ts, float) and ts.is_integer():
        return str(int(ts))
    return str(ts)


def format_previous_messages(messages: List[Message]) -> str:
    return "\n".join(f"Timestamp: {_format_timestamp(m.timestamp)} | Message: {m.message}" for m in messages)


def build_prompt(
    system_prompt: str,
    transcript: str,
    screenshot: str,
    previous_messages: str = "",
    include_previous: bool = True,
) -> List[Dict[str, Any]]:
    text = f"TRANSCRIPT: {transcript}"
    if include_previous:
        text += f"\nPREVIOUS_AGENT_MESSAGES: {previous_messages}"
    return [
        {"role": "system", "content": system_prompt},
        {
            "role": "user",
            "content": [
                {"type": "text", "text": text},
                {"type": "image_url", "image_url": {"url": screenshot}},
            ],
        },
    ]

# ----------------------------
# LLM call + reply parsing
# ----------------------------

class LLMClient:
    """Streams a JSON-mode chat completion and returns the joined text."""

    def __init__(self, api_key: str, model: str = "gpt-4o", max_tokens: int = 4000):
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens

    def complete(self, messages: List[Dict[str, Any]]) -> str:
        if OpenAI is None:
            raise ImportError("`openai` client not installed.")
        if not self.api_key.strip():
            raise LLMError("Missing LLM API key.")

        client = OpenAI(api_key=self.api_key)
        logger.info(f"New completion request (model={self.model})")
        try:
            events = client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=self.max_tokens,
                response_format={"type": "json_object"},
                stream=True,
            )
            parts: List[str] = []
            for event in events:
                for choice in event.choices:
                    delta = choice.delta.content if choice.delta else None
                    if delta is not None:
                        parts.append(delta)
        except Exception as e:
            logger.error(f"Completion request failed: {e}", exc_info=True)
            raise LLMError(f"Failed to make LLM call: {e}") from e

        result = "".join(parts)
        logger.debug(f"Completion result: {result[:500]}")
        return result


def _extract_json_text(raw: str) -> str:
    """Strip a ```json fence if the model wrapped its object in one."""
    s = raw.strip()
    if s.startswith("```") and s.endswith("```"):
        return s[s.find("\n") + 1 : s.rfind("```")].strip()
    return s


def parse_reply(raw: str) -> str:
    text = _extract_json_text(raw)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"LLM did not return valid JSON (parse error: {e})", raw=raw) from e
    if not isinstance(data, dict) or "message" not in data:
        raise ParseError("LLM reply has no 'message' field.", raw=raw)
    return str(data["message"])


class ResponseOrchestrator:
    """
    Turns a prompter request into one generated message:
    validate, shrink the screenshot, gather earlier messages, call the
    model and pull `message` out of its JSON reply. Nothing is stored.
    """

    def __init__(self, llm: LLMClient, store: MessageStoreClient, screenshot_max_width: int = 1200):
        self.llm = llm
        self.store = store
        self.screenshot_max_width = screenshot_max_width

    def generate(self, payload: Optional[Dict[str, Any]]) -> Dict[str, str]:
        req = validate_request(payload)
        logger.info(f"Generating message for session {req.sessionID} at {req.maxTimestamp}s")

        screenshot = downscale_screenshot(req.screenshot, self.screenshot_max_width)

        previous = ""
        if req.includePrevMessages:
            messages = self.store.list_for_session(req.sessionID, max_timestamp=req.maxTimestamp)
            previous = format_previous_messages(messages)

        prompt = build_prompt(
            req.systemPrompt,
            req.transcript,
            screenshot,
            previous_messages=previous,
            include_previous=req.includePrevMessages,
        )
        reply = self.llm.complete(prompt)
        message = parse_reply(reply)

        return {"uuid": str(uuid.uuid4()), "sessionID": req.sessionID, "message": message}
