import logging
import signal
import threading

from flask import Flask
from werkzeug.serving import BaseWSGIServer, make_server

logger = logging.getLogger(__name__)


def create_server(app: Flask, host: str, port: int) -> BaseWSGIServer:
    server = make_server(host, port, app, threaded=True)
    # server_close() joins request threads only when they are not daemons
    server.daemon_threads = False
    return server


def shutdown_handler(server: BaseWSGIServer, name: str = "server"):
    """Signal handler that stops `server` from accepting new connections."""

    def _shutdown(signum, frame):
        logger.info(f"{name} received signal {signum}, shutting down")
        # shutdown() waits for serve_forever(), which may run on this thread
        threading.Thread(target=server.shutdown, daemon=True).start()

    return _shutdown


def run_server(server: BaseWSGIServer, name: str = "server") -> None:
    """Serve until shut down, then wait for in-flight requests to finish."""
    try:
        server.serve_forever()
    finally:
        server.server_close()
        logger.info(f"{name} closed")


def serve(app: Flask, host: str, port: int, name: str = "server") -> None:
    """
    Serve `app` until SIGINT/SIGTERM. On a signal the listener stops
    accepting connections, in-flight requests finish, then this returns.
    """
    server = create_server(app, host, port)
    handler = shutdown_handler(server, name)
    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)

    logger.info(f"{name} is running on http://{host}:{port}")
    run_server(server, name)
