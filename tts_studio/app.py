from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Iterator, Optional

import requests
from dotenv import load_dotenv
from flask import Blueprint, Flask, Response, current_app, jsonify, make_response, request, send_from_directory
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from .config import DEFAULT_MODEL_ID, ConfigError, ConfigLoader
from .elevenlabs import ElevenLabsClient, ProviderError, character_limit_for
from .languages import LANGUAGE_OPTIONS
from .schemas import ValidationFailed, validate_synthesis_payload

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Paths & Configuration
# ---------------------------------------------------------------------------

PACKAGE_ROOT = Path(__file__).resolve().parent
STATIC_DIR = PACKAGE_ROOT / "static"

BACKEND_HOST = os.environ.get("BACKEND_HOST", os.environ.get("HOST", "127.0.0.1"))
BACKEND_PORT = int(os.environ.get("BACKEND_PORT", os.environ.get("PORT", "7860")))
API_PREFIX = os.environ.get("API_PREFIX", "api").strip("/")

EXTENSION_KEY = "tts_studio"

VOICES_PERMISSION_MESSAGE = (
    "Your ElevenLabs API key is missing required permissions. "
    "Please generate a new API key with 'voices_read' permission enabled."
)
VOICES_UNAUTHORIZED_MESSAGE = "Invalid or unauthorized ElevenLabs API key. Check your key."
VOICES_GENERIC_MESSAGE = "Unable to load ElevenLabs voices. Check your API key and network connection."
SYNTHESIS_FAILED_MESSAGE = "Synthesis service failed. Please try again."

# ---------------------------------------------------------------------------
# Custom error
# ---------------------------------------------------------------------------


class PlaygroundError(Exception):
    """Raise for user-facing errors that should become JSON responses."""

    def __init__(self, message: str, status: int = 400) -> None:
        super().__init__(message)
        self.status = status


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _state() -> dict:
    return current_app.extensions[EXTENSION_KEY]


def _config_loader() -> ConfigLoader:
    return _state()["config_loader"]


def _provider() -> ElevenLabsClient:
    return _state()["client"]


def parse_json_request() -> Any:
    raw = request.get_data()
    try:
        return json.loads(raw.decode("utf-8"))
    except ValueError as exc:
        logger.error("Invalid JSON payload: %s", exc)
        raise PlaygroundError("Invalid JSON payload", status=400) from exc


def voices_error_message(detail: str) -> str:
    if "missing_permissions" in detail:
        return VOICES_PERMISSION_MESSAGE
    if "401" in detail:
        return VOICES_UNAUTHORIZED_MESSAGE
    return VOICES_GENERIC_MESSAGE


def _relay(chunks: Iterator[bytes]) -> Iterator[bytes]:
    try:
        for chunk in chunks:
            yield chunk
    except requests.RequestException:
        # Headers are already sent; aborting is the only signal left.
        logger.exception("Upstream audio stream failed mid-transfer")
        raise


# ---------------------------------------------------------------------------
# API routes
# ---------------------------------------------------------------------------

api = Blueprint("api", __name__)


@api.route("/voices", methods=["GET"])
def voices_endpoint():
    try:
        voices = _provider().fetch_voices()
    except (ProviderError, ConfigError, requests.RequestException) as exc:
        logger.error("Voice listing failed: %s", exc)
        return make_response(jsonify({"error": voices_error_message(str(exc))}), 500)
    return jsonify({"voices": [voice.to_json() for voice in voices]})


@api.route("/languages", methods=["GET"])
def languages_endpoint():
    model_id = _config_loader().get().model_id
    languages = []
    for option in LANGUAGE_OPTIONS:
        payload = option.to_json()
        payload["characterLimit"] = character_limit_for(option.code, model_id)
        languages.append(payload)
    return jsonify({"languages": languages})


@api.route("/synthesize", methods=["POST"])
@api.route("/synthesise", methods=["POST"])
def synthesize_endpoint():
    payload = parse_json_request()
    config_error: Optional[ConfigError] = None
    try:
        default_model = _config_loader().get().model_id
    except ConfigError as exc:
        # Input is still validated; the text bound uses the stock model.
        config_error = exc
        default_model = DEFAULT_MODEL_ID

    try:
        synthesis = validate_synthesis_payload(payload, default_model=default_model)
    except ValidationFailed as exc:
        logger.warning("Validation error: %s", exc.message)
        raise PlaygroundError(f"Invalid input: {exc.message}", status=422) from exc

    if config_error is not None:
        logger.error("Configuration unavailable: %s", config_error)
        raise PlaygroundError(SYNTHESIS_FAILED_MESSAGE, status=502) from config_error

    try:
        chunks = _provider().synthesize_stream(synthesis.to_input())
    except (ProviderError, ConfigError, requests.RequestException) as exc:
        logger.error("Upstream synthesis failed: %s", exc)
        raise PlaygroundError(SYNTHESIS_FAILED_MESSAGE, status=502) from exc

    return Response(_relay(chunks), mimetype="audio/mpeg", headers={"Cache-Control": "no-store"})


# ---------------------------------------------------------------------------
# Flask app
# ---------------------------------------------------------------------------


def create_app(
    config_loader: Optional[ConfigLoader] = None,
    client: Optional[ElevenLabsClient] = None,
    *,
    frontend_dist: Optional[Path] = None,
) -> Flask:
    loader = config_loader or ConfigLoader.from_environment()
    app = Flask(__name__, static_folder=None)
    CORS(app, resources={rf"/{API_PREFIX}/*": {"origins": "*"}})
    app.extensions[EXTENSION_KEY] = {
        "config_loader": loader,
        "client": client or ElevenLabsClient(loader),
    }

    dist_env = os.environ.get("FRONTEND_DIST")
    frontend = Path(frontend_dist or dist_env or STATIC_DIR).expanduser().resolve()

    @app.errorhandler(PlaygroundError)
    def handle_playground_error(err: PlaygroundError):
        return make_response(jsonify({"error": str(err)}), err.status)

    @app.errorhandler(Exception)
    def handle_generic_error(err: Exception):
        if isinstance(err, HTTPException):
            return make_response(jsonify({"error": err.description or err.name}), err.code or 500)
        logger.exception("Unhandled error")
        return make_response(jsonify({"error": "Internal server error"}), 500)

    app.register_blueprint(api, url_prefix=f"/{API_PREFIX}" if API_PREFIX else None)

    @app.route("/health", methods=["GET"])
    def health_check():
        return jsonify({"status": "ok"})

    @app.route("/", defaults={"path": ""})
    @app.route("/<path:path>")
    def spa_handler(path: str):
        if API_PREFIX and (path == API_PREFIX or path.startswith(f"{API_PREFIX}/")):
            return make_response(jsonify({"error": "Not found"}), 404)

        if frontend.exists():
            requested = (frontend / path).resolve()
            try:
                relative = requested.relative_to(frontend)
            except ValueError:
                relative = Path("index.html")

            if requested.is_file():
                return send_from_directory(frontend, str(relative))

            index_path = frontend / "index.html"
            if index_path.is_file():
                return send_from_directory(frontend, "index.html")

        return jsonify({"status": "ok"})

    return app


def configure_logging() -> None:
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")


def main() -> None:
    load_dotenv(".env.local")
    load_dotenv()
    configure_logging()
    loader = ConfigLoader.from_environment()
    try:
        config = loader.get()
    except ConfigError as exc:
        sys.exit(f"[TTS Studio] {exc}")
    logger.info("Default model: %s", config.model_id)
    logger.info("Config reload on access: %s", loader.reload_on_access)
    logger.info("Serving on http://%s:%s/%s", BACKEND_HOST, BACKEND_PORT, API_PREFIX)
    app = create_app(loader)
    app.run(host=BACKEND_HOST, port=BACKEND_PORT, debug=False)


if __name__ == "__main__":
    main()
