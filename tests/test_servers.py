import signal
import threading

import pytest
import requests
from flask import Flask

from woz_replay.servers import create_server, run_server, shutdown_handler


def _slow_app(started, release):
    app = Flask(__name__)

    @app.route("/slow")
    def slow():
        started.set()
        release.wait(10)
        return "done"

    return app


def test_shutdown_lets_in_flight_request_finish():
    started, release = threading.Event(), threading.Event()
    server = create_server(_slow_app(started, release), "127.0.0.1", 0)
    url = f"http://127.0.0.1:{server.server_port}/slow"

    runner = threading.Thread(target=run_server, args=(server, "test"))
    runner.start()

    result = {}
    caller = threading.Thread(target=lambda: result.update(resp=requests.get(url, timeout=10)))
    caller.start()
    assert started.wait(5)

    shutdown_handler(server, "test")(signal.SIGINT, None)
    runner.join(1.5)
    # still draining the request that was already accepted
    assert runner.is_alive()

    release.set()
    caller.join(10)
    runner.join(10)
    assert not runner.is_alive()
    assert result["resp"].status_code == 200
    assert result["resp"].text == "done"


def test_no_new_connections_after_shutdown():
    server = create_server(Flask(__name__), "127.0.0.1", 0)
    port = server.server_port
    runner = threading.Thread(target=run_server, args=(server, "test"))
    runner.start()

    shutdown_handler(server, "test")(signal.SIGTERM, None)
    runner.join(10)
    assert not runner.is_alive()

    with pytest.raises(requests.ConnectionError):
        requests.get(f"http://127.0.0.1:{port}/", timeout=2)
