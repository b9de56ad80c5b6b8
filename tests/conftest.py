import base64
import io
import json
from urllib.parse import urlsplit

import pytest
from PIL import Image

from woz_replay.db_server import create_app as create_db_app


class FakeResponse:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self._body = body
        self.text = body.decode("utf-8") if isinstance(body, bytes) else str(body)

    def json(self):
        return json.loads(self.text)


class FlaskHTTP:
    """Routes requests-style calls into a Flask test client."""

    def __init__(self, app):
        self.client = app.test_client()
        self.calls = []

    def request(self, method, url, params=None, json=None, timeout=None):
        parts = urlsplit(url)
        self.calls.append((method, parts.path, params, json))
        resp = self.client.open(parts.path, method=method, query_string=params, json=json)
        return FakeResponse(resp.status_code, resp.get_data())

    def get(self, url, params=None, timeout=None):
        return self.request("GET", url, params=params, timeout=timeout)

    def post(self, url, json=None, timeout=None):
        return self.request("POST", url, json=json, timeout=timeout)


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "db.json")


@pytest.fixture
def db_app(db_path):
    return create_db_app(db_path)


@pytest.fixture
def db_http(db_app):
    return FlaskHTTP(db_app)


@pytest.fixture
def image_data_url():
    def _make(width, height, fmt="PNG"):
        buf = io.BytesIO()
        Image.new("RGB", (width, height), color=(200, 30, 30)).save(buf, format=fmt)
        mime = "png" if fmt == "PNG" else "jpeg"
        return f"data:image/{mime};base64," + base64.b64encode(buf.getvalue()).decode("ascii")

    return _make
