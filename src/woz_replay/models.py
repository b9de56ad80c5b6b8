from dataclasses import dataclass
from typing import Any, Dict, Optional

MIN_RATING = 0
MAX_RATING = 5
DEFAULT_PROMPTER_RATING = 3


@dataclass(frozen=True)
class Cue:
    """One subtitle text unit; `start` is in seconds."""
    start: float
    text: str


@dataclass
class Message:
    """
    A simulated assistant message.
    `id` is assigned by the store on create; `uuid` only correlates
    a generated message with its later persisted copy.
    """
    message: str
    sessionID: str = ""
    uuid: str = ""
    id: Optional[int] = None
    timestamp: Optional[float] = None
    rating: int = MIN_RATING
    comment: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        raw_id = data.get("id")
        raw_ts = data.get("timestamp")
        return cls(
            message=str(data.get("message") or ""),
            sessionID=str(data.get("sessionID") or ""),
            uuid=str(data.get("uuid") or ""),
            id=int(raw_id) if raw_id is not None else None,
            timestamp=float(raw_ts) if raw_ts is not None else None,
            rating=int(data.get("rating") or MIN_RATING),
            comment=str(data.get("comment") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "uuid": self.uuid,
            "sessionID": self.sessionID,
            "message": self.message,
            "timestamp": self.timestamp,
            "rating": self.rating,
            "comment": self.comment,
        }
        if self.id is not None:
            out["id"] = self.id
        return out


@dataclass
class GenerateRequest:
    """Validated body of POST /generate-llm-response."""
    sessionID: str
    maxTimestamp: float
    systemPrompt: str
    screenshot: str
    transcript: str
    includePrevMessages: bool = True
