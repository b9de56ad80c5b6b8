import os

import pytest

from woz_replay.exceptions import DiscoveryError
from woz_replay.sessions import SessionRegistry, list_media_basenames, media_url


def test_lists_mp4_basenames_in_listing_order(tmp_path, monkeypatch):
    for name in ["a.mp4", "b.mp4", "notes.txt", "a.srt"]:
        (tmp_path / name).write_bytes(b"")
    monkeypatch.setattr(os, "listdir", lambda path: ["b.mp4", "notes.txt", "a.mp4", "a.srt", "C.MP4"])
    assert list_media_basenames(str(tmp_path)) == ["b", "a", "C"]


def test_real_directory(tmp_path):
    for name in ["a.mp4", "b.mp4", "notes.txt"]:
        (tmp_path / name).write_bytes(b"")
    assert sorted(list_media_basenames(str(tmp_path))) == ["a", "b"]


def test_listing_failure(tmp_path):
    with pytest.raises(DiscoveryError):
        list_media_basenames(str(tmp_path / "missing"))


def test_media_url():
    assert media_url("http://h:5005/", "P16") == "http://h:5005/media/P16.mp4"
    assert media_url("http://h:5005", "P16", ".srt") == "http://h:5005/media/P16.srt"


class _Resp:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self.body = body

    def json(self):
        if isinstance(self.body, Exception):
            raise self.body
        return self.body


class _HTTP:
    def __init__(self, resp):
        self.resp = resp
        self.calls = 0

    def get(self, url, timeout=None):
        self.calls += 1
        assert url == "http://api/list-media-mp4-basenames"
        return self.resp


def test_registry_is_lazy_and_cached():
    http = _HTTP(_Resp(200, {"basenames": ["P1", "P2", "P1"]}))
    registry = SessionRegistry("http://api/", session=http)
    assert http.calls == 0
    assert registry.list_sessions() == ["P1", "P2", "P1"]
    assert registry.default_session() == "P1"
    assert http.calls == 1

    registry.refresh()
    registry.list_sessions()
    assert http.calls == 2


def test_registry_empty_listing_has_no_default():
    registry = SessionRegistry("http://api", session=_HTTP(_Resp(200, {"basenames": []})))
    assert registry.default_session() is None


@pytest.mark.parametrize(
    "resp",
    [
        _Resp(500, {"error": "Failed to list MP4 files."}),
        _Resp(200, {"names": []}),
        _Resp(200, ValueError("not json")),
    ],
)
def test_registry_failures(resp):
    with pytest.raises(DiscoveryError):
        SessionRegistry("http://api", session=_HTTP(resp)).list_sessions()
