import logging
import re

from flask import Flask, jsonify, request
from werkzeug.exceptions import MethodNotAllowed, RequestEntityTooLarge

from wherenow.auth import require_token
from wherenow.config import load_config
from wherenow.errors import ApiError, BadRequest, NotFound, PayloadTooLarge
from wherenow.records import build_record
from wherenow.store import LocationLog
from wherenow.validator import LocationValidator

logger = logging.getLogger(__name__)

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


def parse_limit(raw: str | None, default: int = 200, maximum: int = 200) -> int:
    """Leading-integer parse of ?limit=; non-positive or missing falls back to *default*."""
    match = _LEADING_INT_RE.match(raw or "")
    limit = int(match.group(1)) if match else 0
    if limit <= 0:
        limit = default
    return min(limit, maximum)


def create_app(config=None, store=None):
    """Flask application factory."""
    app = Flask(__name__)

    if config is None:
        config = load_config()

    limits = config["limits"]
    if store is None:
        store = LocationLog(
            config["storage"]["log_file"],
            chunk_size=config["storage"]["chunk_size"],
        )
    validator = LocationValidator()
    token = config["auth"]["token"]

    if not token:
        logger.warning("No auth token configured; all authenticated requests will be rejected")

    # Bodies without a declared Content-Length are capped by werkzeug.
    app.config["MAX_CONTENT_LENGTH"] = limits["max_body_bytes"]

    # Store components on app for access in tests
    app.config["components"] = {
        "config": config,
        "validator": validator,
        "store": store,
    }

    # --- Errors ---

    @app.errorhandler(ApiError)
    def handle_api_error(error):
        return jsonify(error.to_dict()), error.status

    @app.errorhandler(MethodNotAllowed)
    def handle_method_not_allowed(_error):
        return jsonify({"error": "method_not_allowed"}), 405

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(_error):
        return jsonify({"error": "payload_too_large"}), 413

    # --- Helpers ---

    def authenticate():
        try:
            require_token(request.headers.get("Authorization"), token)
        except ApiError:
            logger.warning("Unauthorized %s from %s", request.method, request.remote_addr)
            raise

    def read_json_body():
        if request.content_length is not None and request.content_length > limits["max_body_bytes"]:
            raise PayloadTooLarge()
        payload = request.get_json(force=True, silent=True)
        if not isinstance(payload, dict):
            raise BadRequest("invalid_json")
        return payload

    # --- Routes ---

    @app.route("/", methods=["GET", "POST", "PATCH"], provide_automatic_options=False)
    def index():
        if request.method == "HEAD":
            raise MethodNotAllowed()

        ping = request.args.get("ping")
        if request.method == "GET" and ping == "1":
            return jsonify({"ok": True})

        authenticate()

        if request.method == "GET":
            if ping == "auth":
                return jsonify({"ok": True})
            return list_recent()
        if request.method == "POST":
            return create_location()
        return patch_location()

    def list_recent():
        limit = parse_limit(
            request.args.get("limit"),
            default=limits["default_limit"],
            maximum=limits["max_limit"],
        )
        entries = store.recent(limit)
        if not entries:
            return jsonify({"error": "no_location_found"})
        return jsonify(entries)

    def create_location():
        fields = validator.validate_create(read_json_body())
        record = build_record(fields, request.headers.get("User-Agent"))
        store.append(record)

        echo = {key: value for key, value in record.items() if key != "ua"}
        return jsonify({"ok": True, **echo})

    def patch_location():
        record_id, changes = validator.validate_patch(read_json_body())
        if not changes:
            return jsonify({"ok": True, "id": record_id, "noop": True})

        try:
            patched = store.patch(record_id, changes)
        except NotFound:
            logger.warning("Patch target %s not found", record_id)
            raise

        response = {"ok": True, "id": patched.get("id", record_id)}
        response.update({field: patched.get(field) for field in changes})
        response["updatedAt"] = patched["updatedAt"]
        return jsonify(response)

    return app


# For gunicorn: `gunicorn 'wherenow.app:create_app()'`
