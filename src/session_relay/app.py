"""Flask application factory."""

import logging
import logging.config
from pathlib import Path

from flask import Flask, jsonify

from . import __version__
from .config import get_sessions_config, get_tmux_config, get_value, load_config
from .services.session_manager import SessionManager


def setup_logging(config: dict, app_root: Path) -> None:
    """Configure structured logging to console and file."""
    log_level = get_value(config, "logging", "level", default="INFO")
    log_file = get_value(config, "logging", "file", default="logs/app.log")
    max_bytes = get_value(config, "logging", "max_bytes", default=10_000_000)  # 10MB
    backup_count = get_value(config, "logging", "backup_count", default=5)

    # Ensure logs directory exists
    log_path = app_root / log_file
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s - %(levelname)s - %(name)s - %(message)s",
                "datefmt": "%Y-%m-%dT%H:%M:%S%z",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "standard",
                "stream": "ext://sys.stdout",
            },
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "level": log_level,
                "formatter": "standard",
                "filename": str(log_path),
                "maxBytes": max_bytes,
                "backupCount": backup_count,
            },
        },
        "root": {
            "level": log_level,
            "handlers": ["console", "file"],
        },
    }

    logging.config.dictConfig(logging_config)


def log_path_policy(manager: SessionManager, logger: logging.Logger) -> None:
    """Announce the directory policy at startup."""
    if manager.allowed_paths:
        logger.info(f"Path restrictions enabled: {len(manager.allowed_paths)} path(s) allowed")
    else:
        logger.warning("No allowed paths set - sessions can access any directory")


def create_app(config_path: str = "config.yaml", testing: bool = False) -> Flask:
    """
    Create and configure the Flask application.

    Args:
        config_path: Path to the YAML configuration file
        testing: If True, skip file logging and the tmux availability probe

    Returns:
        Configured Flask application instance
    """
    # Determine the application root directory
    app_root = Path(config_path).parent.absolute()
    if not app_root.exists():
        app_root = Path.cwd()

    config = load_config(config_path)

    app = Flask(__name__)

    if testing:
        app.config["TESTING"] = True

    app.config["DEBUG"] = get_value(config, "server", "debug", default=False)
    app.config["APP_CONFIG"] = config
    app.config["APP_VERSION"] = __version__
    app.config["APP_ROOT"] = str(app_root)

    if not testing:
        setup_logging(config, app_root)
    logger = logging.getLogger(__name__)
    logger.info(f"Starting Session Relay v{__version__}")

    sessions_config = get_sessions_config(config)
    app.config["SESSIONS_CONFIG"] = sessions_config

    manager = SessionManager.from_config(sessions_config, get_tmux_config(config))
    app.extensions["session_manager"] = manager
    log_path_policy(manager, logger)

    if not testing and not manager.check_host_available():
        logger.warning("tmux is not installed or not on PATH - sessions cannot be created")

    from .routes import health_bp, sessions_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(sessions_bp)

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"error": "Not found"}), 404

    return app
