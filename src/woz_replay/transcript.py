import logging
import re
from typing import Callable, List, Optional, Tuple

from .exceptions import FetchError
from .models import Cue

try:
    import requests
except ImportError:
    requests = None

logger = logging.getLogger(__name__)

# index, "start --> end", then text up to a blank line or end of input
SRT_BLOCK_RE = re.compile(
    r"(\d+)\n(\d{2}:\d{2}:\d{2},\d{3}) --> (\d{2}:\d{2}:\d{2},\d{3})\n(.*?)(?=\n\n|\n*\Z)",
    re.DOTALL,
)

# ----------------------------
# Parsing
# ----------------------------

def timecode_to_seconds(timecode: str) -> float:
    """
    "HH:MM:SS,mmm" -> seconds. Field ranges are not checked,
    so "00:75:00,000" is 75 minutes.
    """
    hours, minutes, rest = timecode.split(":")
    secs, millis = rest.split(",")
    return int(hours) * 3600 + int(minutes) * 60 + int(secs) + int(millis) / 1000


def parse_srt(text: str) -> List[Cue]:
    data = text.replace("\r\n", "\n").replace("\r", "\n")
    cues: List[Cue] = []
    for match in SRT_BLOCK_RE.finditer(data):
        start = timecode_to_seconds(match.group(2))
        cues.append(Cue(start=start, text=match.group(4).replace("\n", " ")))
    return cues


def load_cues(url: str, session=None, timeout: Optional[float] = None) -> List[Cue]:
    """Fetch a subtitle file over HTTP and parse it."""
    if requests is None:
        raise ImportError("`requests` not installed.")
    http = session or requests
    try:
        resp = http.get(url, timeout=timeout)
    except requests.RequestException as e:
        logger.error(f"Error loading subtitle file {url}: {e}")
        raise FetchError(f"Could not load subtitles from {url}: {e}") from e
    if resp.status_code >= 400:
        raise FetchError(f"Subtitle fetch failed {resp.status_code}: {url}", status_code=resp.status_code)
    cues = parse_srt(resp.text)
    logger.info(f"Loaded {len(cues)} cues from {url}")
    return cues

# ----------------------------
# Playback sync
# ----------------------------

def format_hms(seconds: float) -> str:
    total = int(max(0.0, seconds))
    h = total // 3600
    m = (total % 3600) // 60
    s = total % 60
    return f"{h:02d}:{m:02d}:{s:02d}"


def visible_transcript(cues: List[Cue], current_time: float) -> str:
    return "\n".join(f"[{format_hms(c.start)}] {c.text}" for c in cues if c.start <= current_time)


class TranscriptSynchronizer:
    """
    Recomputes the transcript visible at the current playback position.

    `update` is called for every time-update or seek; it rebuilds the text
    from the full cue list each time and hands (transcript, time) to
    `on_update`.
    """

    def __init__(self, cues: List[Cue], on_update: Optional[Callable[[str, float], None]] = None):
        self.cues = list(cues)
        self.on_update = on_update
        self.current_time = 0.0
        self.transcript = ""

    def update(self, current_time: float) -> Tuple[str, float]:
        self.current_time = current_time
        self.transcript = visible_transcript(self.cues, current_time)
        if self.on_update is not None:
            self.on_update(self.transcript, current_time)
        return self.transcript, current_time

    @property
    def max_timestamp(self) -> int:
        return int(max(0.0, self.current_time))
