import contextlib
from types import SimpleNamespace

import pytest

from woz_replay import ui_app
from woz_replay.config import Settings
from woz_replay.exceptions import FetchError, ParseError


@pytest.fixture
def fake_st(monkeypatch):
    state = {
        "requesting": False,
        "retryable_error": None,
        "llm_system_prompt": "SYS",
        "include_prev_messages": True,
        "current_transcript": "[00:00:01] Hello",
        "message": None,
    }
    errors = []
    fake = SimpleNamespace(
        session_state=state,
        spinner=lambda text: contextlib.nullcontext(),
        error=errors.append,
        errors=errors,
    )
    monkeypatch.setattr(ui_app, "st", fake)
    return fake


def _app():
    app = ui_app.ReplayApp.__new__(ui_app.ReplayApp)
    app.settings = Settings()
    return app


def test_request_flag_is_set_only_while_waiting(fake_st, monkeypatch):
    seen = []

    def fake_request(api_base_url, payload):
        seen.append(fake_st.session_state["requesting"])
        return {"uuid": "u-1", "sessionID": payload["sessionID"], "message": "Next step?"}

    monkeypatch.setattr(ui_app, "request_llm_response", fake_request)
    _app()._request_message("P1", None, 12.5, 12)

    assert seen == [True]
    assert fake_st.session_state["requesting"] is False
    assert fake_st.session_state["message"].message == "Next step?"
    assert fake_st.session_state["message_timestamp"] == 12


@pytest.mark.parametrize("error", [ParseError("bad json", raw="{"), FetchError("api down")])
def test_request_flag_cleared_after_failure(fake_st, monkeypatch, error):
    def fake_request(api_base_url, payload):
        raise error

    monkeypatch.setattr(ui_app, "request_llm_response", fake_request)
    _app()._request_message("P1", None, 3.0, 3)

    assert fake_st.session_state["requesting"] is False
    assert fake_st.session_state["message"] is None
    if isinstance(error, ParseError):
        assert fake_st.session_state["retryable_error"]
    else:
        assert fake_st.errors
