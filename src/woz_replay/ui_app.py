import logging
from typing import List, Optional

import streamlit as st

from .api_client import request_llm_response
from .config import Settings, load_settings
from .exceptions import DiscoveryError, FetchError, ParseError, ValidationError
from .media import download_media_to_cache, grab_frame_data_url, probe_duration
from .models import DEFAULT_PROMPTER_RATING, MAX_RATING, Cue, Message
from .prompts import load_prompt, save_prompt
from .sessions import SUBTITLE_EXT, VIDEO_EXT, SessionRegistry, media_url
from .store import MessageCache, MessageStoreClient, toggle_rating
from .transcript import TranscriptSynchronizer, format_hms, load_cues
from .utils import messages_summary_df, pretty_json, rating_stars

logger = logging.getLogger(__name__)

SEEK_STEP_SECONDS = 10


@st.cache_data(show_spinner=False)
def _cached_cues(srt_url: str) -> List[Cue]:
    return load_cues(srt_url)


class ReplayApp:
    def __init__(self, settings: Optional[Settings] = None):
        st.set_page_config(page_title="Replay Prompter", layout="wide")
        self.settings = settings or load_settings()
        self.ensure_session_state()
        self.run()

    def ensure_session_state(self):
        s = self.settings
        st.session_state.setdefault("registry", SessionRegistry(s.api_base_url))
        st.session_state.setdefault("message_cache", MessageCache(MessageStoreClient(s.db_base_url)))

        st.session_state.setdefault("llm_system_prompt", load_prompt(s.prompt_file))
        st.session_state.setdefault("include_prev_messages", True)
        st.session_state.setdefault("playback_position", 0.0)

        # current generated message and its rating form
        st.session_state.setdefault("message", None)
        st.session_state.setdefault("message_timestamp", 0)
        st.session_state.setdefault("msg_rating", DEFAULT_PROMPTER_RATING)
        st.session_state.setdefault("msg_comment", "")
        st.session_state.setdefault("retryable_error", None)
        st.session_state.setdefault("requesting", False)
        st.session_state.setdefault("last_payload", None)

        st.session_state.setdefault("coder_position", 0)

    def run(self):
        screen = st.sidebar.radio("Screen", ["Prompter", "Coder"], key="screen")
        st.sidebar.caption(f"API: {self.settings.api_base_url}")
        st.sidebar.caption(f"Store: {self.settings.db_base_url}")

        if screen == "Prompter":
            self.section_prompter()
        else:
            self.section_coder()

    # ----------------------------
    # Shared helpers
    # ----------------------------

    def _session_picker(self, key: str) -> Optional[str]:
        registry: SessionRegistry = st.session_state["registry"]
        try:
            session_ids = registry.list_sessions()
        except DiscoveryError as e:
            st.error(f"Error fetching available session IDs: {e}")
            session_ids = []
        return st.selectbox("Loaded Session", options=session_ids, key=key)

    def _load_cues(self, session_id: str) -> List[Cue]:
        srt_url = media_url(self.settings.api_base_url, session_id, SUBTITLE_EXT)
        try:
            return _cached_cues(srt_url)
        except FetchError as e:
            st.error(f"Error loading SRT file: {e}")
            return []

    def _local_video(self, session_id: str):
        """Local copy of the session video and its duration (None, None on failure)."""
        video_url = media_url(self.settings.api_base_url, session_id, VIDEO_EXT)
        try:
            with st.spinner("Loading session video…"):
                local = download_media_to_cache(video_url)
            return local, probe_duration(local)
        except Exception as e:
            st.warning(f"Video not available for screenshots: {e}")
            return None, None

    # ----------------------------
    # Prompter
    # ----------------------------

    def _persist_prompt(self):
        save_prompt(self.settings.prompt_file, st.session_state["llm_system_prompt"])

    def _request_message(self, session_id: str, local_video: Optional[str], position: float, max_timestamp: int):
        st.session_state["requesting"] = True
        try:
            self._fetch_message(session_id, local_video, position, max_timestamp)
        finally:
            st.session_state["requesting"] = False

    def _fetch_message(self, session_id: str, local_video: Optional[str], position: float, max_timestamp: int):
        st.session_state["retryable_error"] = None
        try:
            screenshot = grab_frame_data_url(local_video, position) if local_video else ""
        except Exception as e:
            logger.error(f"Could not capture frame at {position}s: {e}", exc_info=True)
            screenshot = ""

        payload = {
            "sessionID": session_id,
            "maxTimestamp": max_timestamp,
            "systemPrompt": st.session_state["llm_system_prompt"],
            "screenshot": screenshot,
            "transcript": st.session_state.get("current_transcript", ""),
            "includePrevMessages": st.session_state["include_prev_messages"],
        }
        st.session_state["last_payload"] = {**payload, "screenshot": f"<{len(screenshot)} chars>"}

        try:
            with st.spinner("Waiting for the LLM…"):
                data = request_llm_response(self.settings.api_base_url, payload)
        except ParseError as e:
            st.session_state["retryable_error"] = str(e)
            return
        except (ValidationError, FetchError) as e:
            logger.error(f"Error fetching message: {e}")
            st.error(f"Error fetching message: {e}")
            return

        st.session_state["message"] = Message(message=data["message"], sessionID=data["sessionID"], uuid=data["uuid"])
        st.session_state["message_timestamp"] = max_timestamp

    def _reset_current_message(self):
        st.session_state["message"] = None
        st.session_state["msg_comment"] = ""
        st.session_state["msg_rating"] = DEFAULT_PROMPTER_RATING

    def _send_feedback(self):
        current: Optional[Message] = st.session_state["message"]
        if current is None:
            return
        current.rating = int(st.session_state["msg_rating"])
        current.comment = st.session_state["msg_comment"]
        current.timestamp = st.session_state["message_timestamp"]
        cache: MessageCache = st.session_state["message_cache"]
        try:
            stored = cache.create(current)
        except FetchError as e:
            logger.error(f"Error sending message: {e}")
            st.error(f"Error sending message: {e}")
            return
        st.toast(f"Saved message #{stored.id}")
        self._reset_current_message()

    def section_prompter(self):
        st.title("Replay Prompter")

        col_session, col_prompt, col_action = st.columns([1, 3, 2])
        with col_session:
            session_id = self._session_picker("prompter_session")
        with col_prompt:
            st.checkbox("Include Previous Agent Messages", key="include_prev_messages")
            st.text_area("System Prompt", key="llm_system_prompt", height=240, on_change=self._persist_prompt)

        if not session_id:
            st.info("No recorded sessions available.")
            return

        cues = self._load_cues(session_id)
        local_video, duration = self._local_video(session_id)

        if duration and st.session_state["playback_position"] > duration:
            st.session_state["playback_position"] = float(duration)
        position = st.number_input(
            "Playback position (seconds)",
            min_value=0.0,
            max_value=float(duration) if duration else None,
            step=1.0,
            key="playback_position",
        )

        sync = TranscriptSynchronizer(cues)
        transcript, current_time = sync.update(position)
        st.session_state["current_transcript"] = transcript

        with col_action:
            self._show_message_panel(session_id, local_video, current_time, sync.max_timestamp)

        st.markdown(f"`Playback Position: {current_time:.0f} seconds`")
        col_video, col_transcript = st.columns([3, 2])
        with col_video:
            st.video(media_url(self.settings.api_base_url, session_id, VIDEO_EXT), start_time=int(current_time))
        with col_transcript:
            st.text_area("Transcript", value=transcript, height=300, disabled=True)
            if transcript:
                st.caption(f"Latest: {transcript.splitlines()[-1]}")

        if st.session_state.get("last_payload"):
            with st.expander("Last request payload", expanded=False):
                st.code(pretty_json(st.session_state["last_payload"]), language="json")

    def _show_message_panel(self, session_id: str, local_video: Optional[str], position: float, max_timestamp: int):
        current: Optional[Message] = st.session_state["message"]
        if current is None:
            st.button(
                f"Request LLM Response for Sec {max_timestamp}",
                use_container_width=True,
                key="request_message",
                disabled=st.session_state["requesting"],
                on_click=self._request_message,
                args=(session_id, local_video, position, max_timestamp),
            )
            retry_error = st.session_state.get("retryable_error")
            if retry_error:
                st.warning(f"The LLM reply could not be read: {retry_error}")
                st.button(
                    "Retry",
                    key="retry_message",
                    disabled=st.session_state["requesting"],
                    on_click=self._request_message,
                    args=(session_id, local_video, position, max_timestamp),
                )
            return

        st.markdown("**LLM Response**")
        with st.container(border=True):
            st.markdown(f"**{current.message}**")
        st.radio(
            "Rate this response",
            options=list(range(1, MAX_RATING + 1)),
            format_func=lambda n: rating_stars(n, MAX_RATING),
            horizontal=True,
            key="msg_rating",
        )
        st.text_input("Comment", placeholder="Enter a comment", key="msg_comment")
        c1, c2 = st.columns(2)
        with c1:
            st.button("Save Response Rating", key="save_rating", on_click=self._send_feedback)
        with c2:
            st.button("Cancel", key="cancel_rating", on_click=self._reset_current_message)

    # ----------------------------
    # Coder
    # ----------------------------

    def _seek(self, seconds: float, duration: Optional[float] = None):
        seconds = max(0.0, seconds)
        if duration:
            seconds = min(seconds, duration)
        st.session_state["coder_position"] = int(seconds)

    def _rate(self, session_id: str, message_id: int, current: int, star: int):
        cache: MessageCache = st.session_state["message_cache"]
        try:
            cache.patch(session_id, message_id, rating=toggle_rating(current, star))
        except FetchError as e:
            st.error(f"Error updating message: {e}")

    def _comment_changed(self, session_id: str, message_id: int):
        cache: MessageCache = st.session_state["message_cache"]
        try:
            cache.patch(session_id, message_id, comment=st.session_state[f"comment_{message_id}"])
        except FetchError as e:
            st.error(f"Error updating message: {e}")

    def _delete(self, session_id: str, message_id: int):
        cache: MessageCache = st.session_state["message_cache"]
        try:
            cache.remove(session_id, message_id)
        except FetchError as e:
            st.error(f"Error deleting message: {e}")
            return
        st.session_state.pop(f"comment_{message_id}", None)

    def section_coder(self):
        st.title("Replay Coder")

        session_id = self._session_picker("coder_session")
        if not session_id:
            st.info("No recorded sessions available.")
            return

        cache: MessageCache = st.session_state["message_cache"]
        _, duration = self._local_video(session_id)
        position = st.session_state["coder_position"]

        st.video(media_url(self.settings.api_base_url, session_id, VIDEO_EXT), start_time=int(position))
        b1, b2, b3, _ = st.columns([1, 1, 1, 5])
        with b1:
            st.button(f"-{SEEK_STEP_SECONDS}s", on_click=self._seek, args=(position - SEEK_STEP_SECONDS, duration))
        with b2:
            st.button(f"+{SEEK_STEP_SECONDS}s", on_click=self._seek, args=(position + SEEK_STEP_SECONDS, duration))
        with b3:
            st.button("Refresh", on_click=cache.refresh, args=(session_id,))
        st.caption(f"Video position: {format_hms(position)}")

        messages = cache.get(session_id)
        if not messages:
            st.info("No stored messages for this session.")
            return

        st.dataframe(messages_summary_df(messages), use_container_width=True, hide_index=True)

        for msg in messages:
            with st.container(border=True):
                st.caption(f"{msg.sessionID} | #{msg.id} | Time: {format_hms(msg.timestamp or 0)}")
                st.markdown(f"**{msg.message}**")

                cols = st.columns([1] * MAX_RATING + [2, 2, 6])
                for star in range(1, MAX_RATING + 1):
                    with cols[star - 1]:
                        st.button(
                            "★" if star <= msg.rating else "☆",
                            key=f"star_{msg.id}_{star}",
                            on_click=self._rate,
                            args=(session_id, msg.id, msg.rating, star),
                        )
                with cols[MAX_RATING]:
                    st.button("Jump to", key=f"jump_{msg.id}", on_click=self._seek, args=(msg.timestamp or 0, duration))
                with cols[MAX_RATING + 1]:
                    st.button("Delete", key=f"delete_{msg.id}", on_click=self._delete, args=(session_id, msg.id))

                st.text_input(
                    "Comment",
                    value=msg.comment,
                    placeholder="Enter a comment",
                    key=f"comment_{msg.id}",
                    on_change=self._comment_changed,
                    args=(session_id, msg.id),
                )
