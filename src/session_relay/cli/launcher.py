"""
Session Relay CLI.

Operator commands for the tmux-hosted agent sessions managed by the relay:
create, list, send input to, capture, interrupt and kill sessions.
"""

import argparse
import logging
import os
import sys
from pathlib import Path

from ..config import get_sessions_config, get_tmux_config, load_config
from ..services.session_manager import (
    SessionManager,
    SessionManagerError,
    SessionNotFoundError,
)
from ..services.session_workspace import ensure_session_workspace

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_NOT_FOUND = 2
EXIT_TMUX_NOT_FOUND = 3

logger = logging.getLogger(__name__)


def find_config_path() -> Path:
    """
    Locate config.yaml.

    Checks SESSION_RELAY_CONFIG, then the current directory, then
    ~/.session-relay/config.yaml. Falls back to ./config.yaml (which
    load_config treats as empty when absent).
    """
    env_path = os.environ.get("SESSION_RELAY_CONFIG")
    if env_path:
        return Path(env_path).expanduser()

    candidates = [
        Path.cwd() / "config.yaml",
        Path.home() / ".session-relay" / "config.yaml",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return candidates[0]


def build_manager(config: dict) -> SessionManager:
    return SessionManager.from_config(get_sessions_config(config), get_tmux_config(config))


def _exit_code_for(error: SessionManagerError) -> int:
    if isinstance(error, SessionNotFoundError):
        return EXIT_NOT_FOUND
    return EXIT_ERROR


def cmd_check(manager: SessionManager, args: argparse.Namespace, config: dict) -> int:
    if not manager.check_host_available():
        print("tmux: not installed or not on PATH", file=sys.stderr)
        return EXIT_TMUX_NOT_FOUND

    print("tmux: available")
    if manager.allowed_paths:
        print("Allowed paths:")
        for path in manager.allowed_paths:
            print(f"  {path}")
    else:
        print("Allowed paths: unrestricted (set ALLOWED_PATHS to restrict)")
    return EXIT_SUCCESS


def cmd_list(manager: SessionManager, args: argparse.Namespace, config: dict) -> int:
    sessions = manager.list_sessions()
    if not sessions:
        print("No sessions running.")
        return EXIT_SUCCESS

    for info in sessions:
        created = info.created_at.isoformat() if info.created_at else "unknown"
        print(f"{info.id}\t{info.directory}\t{created}\t{info.attach_command}")
    return EXIT_SUCCESS


def cmd_create(manager: SessionManager, args: argparse.Namespace, config: dict) -> int:
    if not manager.check_host_available():
        print("Error: tmux is not installed or not on PATH", file=sys.stderr)
        return EXIT_TMUX_NOT_FOUND

    sessions_config = get_sessions_config(config)
    directory = args.directory or sessions_config["default_directory"]

    if args.seed:
        if not manager.is_path_allowed(directory):
            print(f"Error: Directory not in allowed paths: {directory}", file=sys.stderr)
            return EXIT_ERROR
        try:
            ensure_session_workspace(directory, sessions_config.get("workspace_template"))
        except OSError as e:
            print(f"Error: Failed to prepare workspace: {e}", file=sys.stderr)
            return EXIT_ERROR

    info = manager.create_session(args.session_id, directory, args.channel)
    print(f"Created session {info.id} in {info.directory}")
    print(f"Attach with: {info.attach_command}")
    return EXIT_SUCCESS


def cmd_send(manager: SessionManager, args: argparse.Namespace, config: dict) -> int:
    manager.send_to_session(args.session_id, " ".join(args.text))
    print(f"Sent to {args.session_id}")
    return EXIT_SUCCESS


def cmd_capture(manager: SessionManager, args: argparse.Namespace, config: dict) -> int:
    lines = args.lines
    if lines is None:
        lines = get_sessions_config(config)["capture_lines"]
    sys.stdout.write(manager.capture_output(args.session_id, lines))
    return EXIT_SUCCESS


def cmd_escape(manager: SessionManager, args: argparse.Namespace, config: dict) -> int:
    manager.send_escape(args.session_id)
    print(f"Sent Escape to {args.session_id}")
    return EXIT_SUCCESS


def cmd_kill(manager: SessionManager, args: argparse.Namespace, config: dict) -> int:
    manager.kill_session(args.session_id)
    print(f"Killed session {args.session_id}")
    return EXIT_SUCCESS


COMMANDS = {
    "check": cmd_check,
    "list": cmd_list,
    "create": cmd_create,
    "send": cmd_send,
    "capture": cmd_capture,
    "escape": cmd_escape,
    "kill": cmd_kill,
}


def create_parser() -> argparse.ArgumentParser:
    """
    Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog="session-relay",
        description="Manage tmux-hosted agent sessions.",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("check", help="Check tmux availability and path policy")
    subparsers.add_parser("list", help="List running sessions")

    create_cmd = subparsers.add_parser("create", help="Start a new agent session")
    create_cmd.add_argument("session_id", help="Session ID")
    create_cmd.add_argument(
        "--directory", "-d",
        default=None,
        help="Working directory (defaults to sessions.default_directory)",
    )
    create_cmd.add_argument(
        "--channel",
        default=None,
        help="Channel ID to link to the session",
    )
    create_cmd.add_argument(
        "--seed",
        action="store_true",
        default=False,
        help="Create the directory and its .claude/CLAUDE.md guide if missing",
    )

    send_parser = subparsers.add_parser("send", help="Type text into a session and press Enter")
    send_parser.add_argument("session_id", help="Session ID")
    send_parser.add_argument("text", nargs="+", help="Text to send")

    capture_parser = subparsers.add_parser("capture", help="Print the session's pane")
    capture_parser.add_argument("session_id", help="Session ID")
    capture_parser.add_argument(
        "--lines", "-n",
        type=int,
        default=None,
        help="Scrollback lines to include (defaults to sessions.capture_lines)",
    )

    escape_parser = subparsers.add_parser("escape", help="Send Escape to interrupt the agent")
    escape_parser.add_argument("session_id", help="Session ID")

    kill_parser = subparsers.add_parser("kill", help="Kill a session")
    kill_parser.add_argument("session_id", help="Session ID")

    return parser


def main(args: list[str] | None = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        args: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(message)s",
    )

    parser = create_parser()
    parsed = parser.parse_args(args)

    if parsed.command is None:
        parser.print_help()
        return EXIT_SUCCESS

    handler = COMMANDS.get(parsed.command)
    if handler is None:
        parser.print_help()
        return EXIT_ERROR

    config = load_config(find_config_path())
    manager = build_manager(config)
    if not manager.allowed_paths and parsed.command == "create":
        logger.warning("WARNING: No allowed paths set - sessions can access any directory")

    try:
        return handler(manager, parsed, config)
    except SessionManagerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return _exit_code_for(e)


if __name__ == "__main__":
    sys.exit(main())
