"""Session management API routes for operators and bot integrations."""

import logging

from flask import Blueprint, current_app, jsonify, request

from ..services.session_manager import (
    SessionExistsError,
    SessionHostError,
    SessionManagerError,
    SessionNotFoundError,
    SessionValidationError,
    make_session_id,
)
from ..services.session_workspace import ensure_session_workspace

logger = logging.getLogger(__name__)

sessions_bp = Blueprint("sessions", __name__)

MAX_CAPTURE_LINES = 5000


def _get_manager():
    return current_app.extensions.get("session_manager")


def _sessions_config() -> dict:
    return current_app.config.get("SESSIONS_CONFIG", {})


def _error_response(error: SessionManagerError):
    """Map a session manager error to a JSON error response."""
    if isinstance(error, SessionExistsError):
        status = 409
    elif isinstance(error, SessionValidationError):
        status = 400
    elif isinstance(error, SessionNotFoundError):
        status = 404
    elif isinstance(error, SessionHostError):
        status = 502
    else:
        status = 500
    return jsonify({"error": str(error)}), status


def _unavailable():
    return jsonify({"error": "Session manager not initialized"}), 503


def _not_an_object():
    return jsonify({"error": "Request body must be a JSON object"}), 400


def _lines_arg(default: int) -> int | None:
    """Parse ?lines=N, clamped to [0, MAX_CAPTURE_LINES]. None if malformed."""
    raw = request.args.get("lines")
    if raw is None:
        return default
    try:
        return max(0, min(int(raw), MAX_CAPTURE_LINES))
    except ValueError:
        return None


@sessions_bp.route("/api/sessions", methods=["GET"])
def list_sessions():
    """List all sessions owned by this relay."""
    manager = _get_manager()
    if manager is None:
        return _unavailable()

    sessions = manager.list_sessions()
    return jsonify({"sessions": [s.to_dict() for s in sessions]})


@sessions_bp.route("/api/sessions", methods=["POST"])
def create_session():
    """
    Create a new agent session.

    Accepts JSON payload:
        - id: Session ID (or guild_id + channel_id to derive one)
        - directory: Working directory (defaults to sessions.default_directory)
        - channel_id: Optional channel to link
        - seed_workspace: If true, write the session guide before starting

    Returns:
        201: Session created
        400: Invalid request or directory rejected
        409: Session already exists
        502: tmux failed
    """
    manager = _get_manager()
    if manager is None:
        return _unavailable()

    data = request.get_json(silent=True)
    if not data:
        return jsonify({"error": "Request body is required"}), 400
    if not isinstance(data, dict):
        return _not_an_object()

    session_id = data.get("id")
    channel_id = data.get("channel_id")
    guild_id = data.get("guild_id")
    if not session_id and guild_id and channel_id:
        session_id = make_session_id(str(guild_id), str(channel_id))
    if not session_id:
        return jsonify({"error": "Missing required field: id (or guild_id and channel_id)"}), 400

    sessions_config = _sessions_config()
    directory = data.get("directory") or sessions_config.get("default_directory")
    if not directory:
        return jsonify({"error": "Missing required field: directory"}), 400

    try:
        if data.get("seed_workspace"):
            if not manager.is_path_allowed(directory):
                raise SessionValidationError(f"Directory not in allowed paths: {directory}")
            ensure_session_workspace(directory, sessions_config.get("workspace_template"))

        info = manager.create_session(
            str(session_id),
            directory,
            str(channel_id) if channel_id else None,
        )
    except SessionManagerError as e:
        logger.warning(f"Create session '{session_id}' failed: {e}")
        return _error_response(e)
    except OSError as e:
        logger.warning(f"Workspace seeding for '{session_id}' failed: {e}")
        return jsonify({"error": f"Failed to prepare workspace: {e}"}), 500

    return jsonify(info.to_dict()), 201


@sessions_bp.route("/api/sessions/<session_id>", methods=["GET"])
def get_session(session_id: str):
    manager = _get_manager()
    if manager is None:
        return _unavailable()

    info = manager.get_session(session_id)
    if info is None:
        return jsonify({"error": f"Session '{session_id}' does not exist"}), 404
    return jsonify(info.to_dict())


@sessions_bp.route("/api/sessions/<session_id>", methods=["DELETE"])
def kill_session(session_id: str):
    manager = _get_manager()
    if manager is None:
        return _unavailable()

    try:
        manager.kill_session(session_id)
    except SessionManagerError as e:
        return _error_response(e)
    return jsonify({"status": "killed", "id": session_id})


@sessions_bp.route("/api/sessions/<session_id>/input", methods=["POST"])
def send_input(session_id: str):
    """Type text into a session and submit it. Body: {"text": "..."}."""
    manager = _get_manager()
    if manager is None:
        return _unavailable()

    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return _not_an_object()
    text = data.get("text")
    if not isinstance(text, str) or not text:
        return jsonify({"error": "Missing required field: text"}), 400

    try:
        manager.send_to_session(session_id, text)
    except SessionManagerError as e:
        return _error_response(e)
    return jsonify({"status": "sent", "id": session_id})


@sessions_bp.route("/api/sessions/<session_id>/escape", methods=["POST"])
def send_escape(session_id: str):
    manager = _get_manager()
    if manager is None:
        return _unavailable()

    try:
        manager.send_escape(session_id)
    except SessionManagerError as e:
        return _error_response(e)
    return jsonify({"status": "sent", "id": session_id})


@sessions_bp.route("/api/sessions/<session_id>/output", methods=["GET"])
def capture_output(session_id: str):
    """Full pane capture with escape sequences preserved."""
    manager = _get_manager()
    if manager is None:
        return _unavailable()

    lines = _lines_arg(_sessions_config().get("capture_lines", 100))
    if lines is None:
        return jsonify({"error": "lines must be an integer"}), 400

    try:
        output = manager.capture_output(session_id, lines)
    except SessionManagerError as e:
        return _error_response(e)
    return jsonify({"id": session_id, "output": output})


@sessions_bp.route("/api/sessions/<session_id>/output/new", methods=["GET"])
def new_output(session_id: str):
    """Output that appeared since the previous call (null when nothing new)."""
    manager = _get_manager()
    if manager is None:
        return _unavailable()

    lines = _lines_arg(_sessions_config().get("stream_lines", 200))
    if lines is None:
        return jsonify({"error": "lines must be an integer"}), 400

    try:
        output = manager.get_new_output(session_id, lines)
    except SessionManagerError as e:
        return _error_response(e)
    return jsonify({"id": session_id, "output": output})


@sessions_bp.route("/api/channels/<channel_id>", methods=["GET"])
def get_channel_session(channel_id: str):
    manager = _get_manager()
    if manager is None:
        return _unavailable()

    session_id = manager.get_session_by_channel(channel_id)
    if session_id is None:
        return jsonify({"error": f"Channel {channel_id} is not linked"}), 404
    return jsonify({"channel_id": channel_id, "session_id": session_id})


@sessions_bp.route("/api/channels/<channel_id>", methods=["PUT"])
def link_channel(channel_id: str):
    """Link a channel to a session. Body: {"session_id": "..."}."""
    manager = _get_manager()
    if manager is None:
        return _unavailable()

    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return _not_an_object()
    session_id = data.get("session_id")
    if not session_id:
        return jsonify({"error": "Missing required field: session_id"}), 400

    manager.link_channel(str(session_id), channel_id)
    return jsonify({"channel_id": channel_id, "session_id": str(session_id)})


@sessions_bp.route("/api/channels/<channel_id>", methods=["DELETE"])
def unlink_channel(channel_id: str):
    manager = _get_manager()
    if manager is None:
        return _unavailable()

    if not manager.unlink_channel(channel_id):
        return jsonify({"error": f"Channel {channel_id} is not linked"}), 404
    return jsonify({"status": "unlinked", "channel_id": channel_id})
