import pytest

from woz_replay.exceptions import FetchError
from woz_replay.models import Cue
from woz_replay.transcript import (
    TranscriptSynchronizer,
    format_hms,
    load_cues,
    parse_srt,
    timecode_to_seconds,
    visible_transcript,
)

SAMPLE = "1\n00:00:01,000 --> 00:00:02,000\nHello\n\n2\n00:00:05,500 --> 00:00:06,000\nWorld\n"


def test_parse_sample():
    assert parse_srt(SAMPLE) == [Cue(start=1.0, text="Hello"), Cue(start=5.5, text="World")]


def test_parse_is_repeatable():
    assert parse_srt(SAMPLE) == parse_srt(SAMPLE)


def test_multiline_text_joined_with_spaces():
    text = "1\n00:00:03,250 --> 00:00:04,000\nfirst line\nsecond line\n\n"
    assert parse_srt(text) == [Cue(start=3.25, text="first line second line")]


def test_crlf_input():
    assert parse_srt(SAMPLE.replace("\n", "\r\n")) == parse_srt(SAMPLE)


def test_malformed_block_skipped():
    text = (
        "1\n00:00:01,000 --> 00:00:02,000\nok\n\n"
        "2\n0:00:03 --> 00:00:04,000\nbroken timecode\n\n"
        "3\n00:00:05,000 --> 00:00:06,000\nalso ok\n"
    )
    assert [c.text for c in parse_srt(text)] == ["ok", "also ok"]


def test_empty_and_garbage_input():
    assert parse_srt("") == []
    assert parse_srt("not a subtitle file") == []


def test_timecode_is_lenient():
    assert timecode_to_seconds("01:02:03,456") == pytest.approx(3723.456)
    assert timecode_to_seconds("00:75:00,000") == 4500


def test_format_hms():
    assert format_hms(0) == "00:00:00"
    assert format_hms(5.99) == "00:00:05"
    assert format_hms(3723.456) == "01:02:03"
    assert format_hms(90000) == "25:00:00"


@pytest.mark.parametrize("timecode", ["00:00:09,999", "00:59:59,500", "02:30:15,001", "10:00:00,000"])
def test_rendered_prefix_recovers_input_fields(timecode):
    text = f"1\n{timecode} --> 23:59:59,000\nline\n"
    cue = parse_srt(text)[0]
    assert visible_transcript([cue], cue.start) == f"[{timecode.split(',')[0]}] line"


def test_visible_transcript_sample_times():
    cues = parse_srt(SAMPLE)
    assert visible_transcript(cues, 0) == ""
    assert visible_transcript(cues, 4.9) == "[00:00:01] Hello"
    assert visible_transcript(cues, 5.5) == "[00:00:01] Hello\n[00:00:05] World"


def test_boundary_is_inclusive():
    cues = [Cue(start=2.0, text="a")]
    assert visible_transcript(cues, 2.0) == "[00:00:02] a"
    assert visible_transcript(cues, 1.999) == ""


def test_equal_starts_keep_file_order():
    cues = [Cue(start=1.0, text="b"), Cue(start=1.0, text="a"), Cue(start=0.5, text="c")]
    assert visible_transcript(cues, 1.0) == "[00:00:01] b\n[00:00:01] a\n[00:00:00] c"


def test_later_time_extends_earlier_transcript():
    cues = parse_srt(SAMPLE) + [Cue(start=9.0, text="Again")]
    earlier = visible_transcript(cues, 5.6)
    later = visible_transcript(cues, 30)
    assert later.startswith(earlier)
    assert later == earlier + "\n[00:00:09] Again"


def test_synchronizer_emits_transcript_and_time():
    seen = []
    sync = TranscriptSynchronizer(parse_srt(SAMPLE), on_update=lambda text, t: seen.append((text, t)))

    assert sync.update(5.7) == ("[00:00:01] Hello\n[00:00:05] World", 5.7)
    # seek backwards
    sync.update(1.2)

    assert seen == [("[00:00:01] Hello\n[00:00:05] World", 5.7), ("[00:00:01] Hello", 1.2)]
    assert sync.transcript == "[00:00:01] Hello"
    assert sync.max_timestamp == 1


class _Resp:
    def __init__(self, status_code, text):
        self.status_code = status_code
        self.text = text


class _HTTP:
    def __init__(self, resp):
        self.resp = resp
        self.urls = []

    def get(self, url, timeout=None):
        self.urls.append(url)
        return self.resp


def test_load_cues_over_http():
    http = _HTTP(_Resp(200, SAMPLE))
    cues = load_cues("http://api/media/s1.srt", session=http)
    assert http.urls == ["http://api/media/s1.srt"]
    assert len(cues) == 2


def test_load_cues_reports_missing_file():
    with pytest.raises(FetchError) as exc:
        load_cues("http://api/media/none.srt", session=_HTTP(_Resp(404, "not found")))
    assert exc.value.status_code == 404
