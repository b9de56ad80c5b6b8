import base64
import hashlib
import io
import os
import tempfile
from typing import Optional
from urllib.parse import urlparse

import streamlit as st

try:
    import requests
except ImportError:
    requests = None

try:
    from moviepy.video.io.VideoFileClip import VideoFileClip
except ImportError:
    VideoFileClip = None

try:
    from PIL import Image
except ImportError:
    Image = None


def _sha1(s: str) -> str:
    return hashlib.sha1(s.encode("utf-8")).hexdigest()


def infer_ext_from_url(url: str) -> str:
    """
    Best-effort extension inference from URL path.
    """
    try:
        path = urlparse(url).path
        ext = os.path.splitext(path)[1].lower()
        return ext if ext else ".mp4"
    except Exception:
        return ".mp4"


def _ensure_moviepy():
    if VideoFileClip is None:
        raise ImportError("moviepy not installed. Run: pip install moviepy")
    return True


@st.cache_data(show_spinner=False)
def download_media_to_cache(url: str) -> str:
    """
    Download URL to a stable local path (cached by Streamlit).
    Returns local file path.
    """
    if requests is None:
        raise ImportError("`requests` not installed.")
    if not url.strip():
        raise ValueError("Missing media URL.")

    ext = infer_ext_from_url(url)
    cache_dir = os.path.join(tempfile.gettempdir(), "woz_replay_media_cache")
    os.makedirs(cache_dir, exist_ok=True)

    out_path = os.path.join(cache_dir, f"{_sha1(url)}{ext}")

    if os.path.exists(out_path) and os.path.getsize(out_path) > 0:
        return out_path

    r = requests.get(url, stream=True, timeout=180, allow_redirects=True)
    r.raise_for_status()
    with open(out_path, "wb") as f:
        for chunk in r.iter_content(chunk_size=1024 * 1024):
            if chunk:
                f.write(chunk)

    return out_path


@st.cache_data(show_spinner=False)
def probe_duration(media_path: str) -> Optional[float]:
    """Duration in seconds, or None when the file cannot be opened."""
    _ensure_moviepy()
    try:
        clip = VideoFileClip(media_path, audio=False)
    except Exception:
        return None
    try:
        return float(clip.duration) if clip.duration else None
    finally:
        clip.close()


def grab_frame_data_url(media_path: str, at_seconds: float) -> str:
    """
    Full-resolution JPEG of the frame shown at `at_seconds`, as a data URL.
    Times past the end are clamped to the last frame.
    """
    _ensure_moviepy()
    if Image is None:
        raise ImportError("`Pillow` not installed.")
    if not os.path.exists(media_path):
        raise FileNotFoundError(f"Media path not found: {media_path}")

    clip = VideoFileClip(media_path, audio=False)
    try:
        t = max(0.0, float(at_seconds))
        if clip.duration:
            t = min(t, max(0.0, clip.duration - 1.0 / (clip.fps or 25)))
        frame = clip.get_frame(t)
    finally:
        clip.close()

    buf = io.BytesIO()
    Image.fromarray(frame).convert("RGB").save(buf, format="JPEG")
    return "data:image/jpeg;base64," + base64.b64encode(buf.getvalue()).decode("ascii")
