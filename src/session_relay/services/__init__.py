"""Services package for Session Relay."""

from .channel_registry import ChannelRegistry
from .output_differ import diff_output
from .path_guard import PathAccessGuard, expand_path
from .session_manager import (
    SessionExistsError,
    SessionHostError,
    SessionInfo,
    SessionManager,
    SessionManagerError,
    SessionNotFoundError,
    SessionValidationError,
    make_session_id,
    parse_session_id,
)
from .session_workspace import ensure_session_workspace, load_session_template

__all__ = [
    "ChannelRegistry",
    "diff_output",
    "PathAccessGuard",
    "expand_path",
    "SessionExistsError",
    "SessionHostError",
    "SessionInfo",
    "SessionManager",
    "SessionManagerError",
    "SessionNotFoundError",
    "SessionValidationError",
    "make_session_id",
    "parse_session_id",
    "ensure_session_workspace",
    "load_session_template",
]
