"""
Generic REST API over a JSON file.

Every top-level list in the data file is served as a collection:

    GET    /<collection>?field=value&field_lte=..&_sort=..&_order=asc
    POST   /<collection>
    GET    /<collection>/<id>
    PUT    /<collection>/<id>
    PATCH  /<collection>/<id>
    DELETE /<collection>/<id>
"""

import logging

from flask import Flask, jsonify, request
from flask_cors import CORS

from .json_store import JsonStore

logger = logging.getLogger(__name__)


def create_app(db_path: str) -> Flask:
    app = Flask(__name__)
    app.url_map.strict_slashes = False
    CORS(app)
    app.config["STORE"] = JsonStore(db_path)
    logger.info(f"Serving JSON data file {db_path}")

    def _store() -> JsonStore:
        return app.config["STORE"]

    def _body():
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else None

    @app.route("/<collection>", methods=["GET"])
    def list_records(collection: str):
        store = _store()
        if not store.has_collection(collection):
            return jsonify({}), 404
        return jsonify(store.list(collection, request.args.to_dict(flat=False)))

    @app.route("/<collection>", methods=["POST"])
    def create_record(collection: str):
        store = _store()
        if not store.has_collection(collection):
            return jsonify({}), 404
        body = _body()
        if body is None:
            return jsonify({"error": "Request body must be a JSON object."}), 400
        return jsonify(store.create(collection, body)), 201

    @app.route("/<collection>/<record_id>", methods=["GET"])
    def get_record(collection: str, record_id: str):
        store = _store()
        record = store.get(collection, record_id) if store.has_collection(collection) else None
        if record is None:
            return jsonify({}), 404
        return jsonify(record)

    @app.route("/<collection>/<record_id>", methods=["PATCH", "PUT"])
    def update_record(collection: str, record_id: str):
        store = _store()
        if not store.has_collection(collection):
            return jsonify({}), 404
        body = _body()
        if body is None:
            return jsonify({"error": "Request body must be a JSON object."}), 400
        if request.method == "PUT":
            record = store.replace(collection, record_id, body)
        else:
            record = store.patch(collection, record_id, body)
        if record is None:
            return jsonify({}), 404
        return jsonify(record)

    @app.route("/<collection>/<record_id>", methods=["DELETE"])
    def delete_record(collection: str, record_id: str):
        store = _store()
        if not store.has_collection(collection) or not store.delete(collection, record_id):
            return jsonify({}), 404
        return jsonify({})

    return app
