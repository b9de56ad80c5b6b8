"""Command-line entry point: `woz-replay api` and `woz-replay db`."""

import argparse
import logging
import sys
from typing import List, Optional

from .config import load_settings
from .exceptions import ConfigurationError
from .log_setup import setup_logging

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="woz-replay",
        description="Replay prompter backends: orchestration API and JSON message store.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--log-level", default=None, choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Override LOG_LEVEL from the environment.")
    sub = parser.add_subparsers(dest="command", required=True)

    api = sub.add_parser("api", help="Run the orchestration API (LLM responses, sessions, media).")
    api.add_argument("--host", default=None, help="Override API_HOST.")
    api.add_argument("--port", type=int, default=None, help="Override API_PORT.")
    api.add_argument("--media-dir", default=None, help="Override MEDIA_DIR.")

    db = sub.add_parser("db", help="Run the REST store over the JSON data file.")
    db.add_argument("--host", default=None, help="Override DB_HOST.")
    db.add_argument("--port", type=int, default=None, help="Override DB_PORT.")
    db.add_argument("--db-file", default=None, help="Override DB_FILE.")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = create_parser().parse_args(argv)

    try:
        settings = load_settings()
    except ConfigurationError as e:
        sys.stderr.write(f"Configuration error: {e}\n")
        return 1

    setup_logging(args.log_level or settings.log_level, settings.log_dir, f"woz_replay_{args.command}.log")

    # Imported here so `--help` works without the web stack installed.
    from .servers import serve

    if args.command == "api":
        from .api import create_app

        if args.media_dir:
            settings.media_dir = args.media_dir
        app = create_app(settings)
        serve(app, args.host or settings.api_host, args.port or settings.api_port, name="API server")
    else:
        from .db_server import create_app

        db_file = args.db_file or settings.db_file
        app = create_app(db_file)
        serve(app, args.host or settings.db_host, args.port or settings.db_port, name="JSON server")
    return 0


if __name__ == "__main__":
    sys.exit(main())
