"""Health check endpoint."""

import logging

from flask import Blueprint, current_app, jsonify

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__)


@health_bp.route("/health")
def health_check():
    """
    Health check endpoint.

    Returns:
        JSON response with status, version, tmux availability and path policy
    """
    version = current_app.config.get("APP_VERSION", "unknown")
    manager = current_app.extensions.get("session_manager")

    if manager is None:
        return jsonify({
            "status": "degraded",
            "version": version,
            "tmux": "not_initialized",
        })

    try:
        tmux_available = manager.check_host_available()
    except Exception as e:
        logger.error(f"Error checking tmux availability: {e}")
        tmux_available = False

    return jsonify({
        "status": "healthy" if tmux_available else "degraded",
        "version": version,
        "tmux": "available" if tmux_available else "unavailable",
        "path_restrictions": len(manager.allowed_paths),
    })
