import logging
import os
from typing import Optional

from flask import Flask, jsonify, request, send_from_directory
from flask_cors import CORS

from .config import Settings
from .exceptions import DiscoveryError, FetchError, LLMError, ParseError, ValidationError
from .orchestrator import LLMClient, ResponseOrchestrator
from .sessions import VIDEO_EXT, list_media_basenames
from .store import MessageStoreClient

logger = logging.getLogger(__name__)

MAX_BODY_BYTES = 50 * 1024 * 1024


def build_orchestrator(settings: Settings) -> ResponseOrchestrator:
    llm = LLMClient(settings.openai_api_key, model=settings.llm_model, max_tokens=settings.llm_max_tokens)
    store = MessageStoreClient(settings.db_base_url)
    return ResponseOrchestrator(llm, store, screenshot_max_width=settings.screenshot_max_width)


def create_app(settings: Settings, orchestrator: Optional[ResponseOrchestrator] = None) -> Flask:
    """Create the orchestration API: LLM responses, session listing, media files."""
    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = MAX_BODY_BYTES
    CORS(app)

    media_dir = os.path.abspath(settings.media_dir)
    orchestrator = orchestrator or build_orchestrator(settings)

    @app.route("/generate-llm-response", methods=["POST"])
    def generate_llm_response():
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            payload = {}
        logger.info(
            "/generate-llm-response -- session=%s maxTimestamp=%s includePrevMessages=%s",
            payload.get("sessionID"),
            payload.get("maxTimestamp"),
            payload.get("includePrevMessages", True),
        )
        try:
            result = orchestrator.generate(payload)
        except ValidationError as e:
            return jsonify({"error": e.message}), 400
        except ParseError as e:
            logger.error(f"Unusable LLM reply: {e}; raw={e.raw[:500]!r}")
            return jsonify({"error": str(e), "retryable": True}), 502
        except (FetchError, LLMError) as e:
            logger.error(f"Failed to generate LLM response: {e}", exc_info=True)
            return jsonify({"error": "Failed to generate LLM response."}), 500
        return jsonify(result)

    @app.route("/list-media-mp4-basenames", methods=["GET"])
    def list_mp4_basenames():
        try:
            basenames = list_media_basenames(media_dir, VIDEO_EXT)
        except DiscoveryError:
            return jsonify({"error": "Failed to list MP4 files."}), 500
        return jsonify({"basenames": basenames})

    @app.route("/media/<path:filename>", methods=["GET"])
    def media_file(filename: str):
        response = send_from_directory(media_dir, filename)
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Cross-Origin-Resource-Policy"] = "cross-origin"
        return response

    return app
