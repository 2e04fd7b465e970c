"""Session manager for tmux-hosted agent sessions.

Owns the session lifecycle: naming, creation behind the path allowlist,
input delivery, pane capture, incremental output and teardown. tmux is the
source of truth for whether a session exists; every mutating operation
re-queries it instead of trusting anything cached here.

State kept per manager instance (never module-global):
- channel <-> session links (ChannelRegistry)
- last full capture per session, for get_new_output()
"""

import logging
import os
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from . import tmux_host
from .channel_registry import ChannelRegistry
from .output_differ import diff_output
from .path_guard import PathAccessGuard, expand_path
from .tmux_host import TmuxHostErrorType

logger = logging.getLogger(__name__)

DEFAULT_SESSION_PREFIX = "claude-"
DEFAULT_AGENT_COMMAND = "claude"
DEFAULT_AGENT_ARGS = ("--dangerously-skip-permissions",)


class SessionManagerError(Exception):
    """Base error for session manager operations."""


class SessionValidationError(SessionManagerError):
    """Bad input: directory outside the allowlist, missing, or invalid id."""


class SessionExistsError(SessionValidationError):
    """A session with the derived tmux name is already running."""


class SessionNotFoundError(SessionManagerError):
    """The target session is not running."""


class SessionHostError(SessionManagerError):
    """tmux refused or failed; the message carries tmux's diagnostic."""

    def __init__(self, message: str, error_type: TmuxHostErrorType | None = None):
        super().__init__(message)
        self.error_type = error_type


def make_session_id(guild_id: str, channel_id: str) -> str:
    """Build a session ID from chat-platform guild and channel IDs."""
    return f"{guild_id}_{channel_id}"


def parse_session_id(session_id: str) -> Optional[tuple[str, str]]:
    """Split a guild-scoped session ID into (guild_id, channel_id).

    Returns None unless the ID has exactly two ``_``-separated parts.
    """
    parts = session_id.split("_")
    if len(parts) != 2 or not all(parts):
        return None
    return parts[0], parts[1]


@dataclass
class SessionInfo:
    """A running session as seen by the manager."""

    id: str
    tmux_name: str
    directory: str
    channel_id: Optional[str] = None
    created_at: Optional[datetime] = None
    attach_command: str = field(default="")

    def __post_init__(self) -> None:
        if not self.attach_command:
            self.attach_command = f"tmux attach -t {self.tmux_name}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tmux_name": self.tmux_name,
            "directory": self.directory,
            "channel_id": self.channel_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "attach_command": self.attach_command,
        }


class SessionManager:
    """
    Creates, addresses and drives agent sessions inside tmux.

    Mutating operations on the same session or channel are serialised with
    per-key locks, so concurrent callers cannot double-create a session or
    lose an update to the channel map.
    """

    def __init__(
        self,
        prefix: str = DEFAULT_SESSION_PREFIX,
        agent_command: str = DEFAULT_AGENT_COMMAND,
        agent_args: list[str] | tuple[str, ...] = DEFAULT_AGENT_ARGS,
        allowed_paths: list[str] | None = None,
        text_enter_delay_ms: int = tmux_host.DEFAULT_TEXT_ENTER_DELAY_MS,
        subprocess_timeout: float = tmux_host.DEFAULT_SUBPROCESS_TIMEOUT,
    ) -> None:
        self.prefix = prefix
        self.agent_command = agent_command
        self.agent_args = tuple(agent_args)
        self.text_enter_delay_ms = text_enter_delay_ms
        self.subprocess_timeout = subprocess_timeout

        self._guard = PathAccessGuard(allowed_paths or [])
        self._registry = ChannelRegistry()
        self._last_output: dict[str, str] = {}
        self._output_lock = threading.Lock()

        # key -> [lock, holders and waiters]
        self._key_locks: dict[str, list] = {}
        self._key_locks_meta_lock = threading.Lock()

    @classmethod
    def from_config(cls, sessions_config: dict, tmux_config: dict) -> "SessionManager":
        """Build a manager from get_sessions_config() / get_tmux_config() output."""
        return cls(
            prefix=sessions_config.get("prefix", DEFAULT_SESSION_PREFIX),
            agent_command=sessions_config.get("agent_command", DEFAULT_AGENT_COMMAND),
            agent_args=sessions_config.get("agent_args", DEFAULT_AGENT_ARGS),
            allowed_paths=sessions_config.get("allowed_paths", []),
            text_enter_delay_ms=tmux_config.get(
                "text_enter_delay_ms", tmux_host.DEFAULT_TEXT_ENTER_DELAY_MS
            ),
            subprocess_timeout=tmux_config.get(
                "subprocess_timeout", tmux_host.DEFAULT_SUBPROCESS_TIMEOUT
            ),
        )

    @contextmanager
    def _key_lock(self, key: str):
        """Hold the per-key lock; the entry is dropped once nobody holds or waits on it."""
        with self._key_locks_meta_lock:
            entry = self._key_locks.get(key)
            if entry is None:
                entry = self._key_locks[key] = [threading.RLock(), 0]
            entry[1] += 1

        try:
            with entry[0]:
                yield
        finally:
            with self._key_locks_meta_lock:
                entry[1] -= 1
                if entry[1] == 0:
                    self._key_locks.pop(key, None)

    # --- Naming ---

    def get_tmux_name(self, session_id: str) -> str:
        return f"{self.prefix}{session_id}"

    def get_session_id_from_tmux_name(self, tmux_name: str) -> Optional[str]:
        if not tmux_name.startswith(self.prefix):
            return None
        return tmux_name[len(self.prefix):]

    # --- Host and configuration ---

    def check_host_available(self) -> bool:
        return tmux_host.is_tmux_available(timeout=self.subprocess_timeout)

    def set_allowed_paths(self, paths: list[str]) -> None:
        """Replace the directory allowlist. An empty list allows everything."""
        self._guard.configure(paths)

    @property
    def allowed_paths(self) -> tuple[str, ...]:
        return self._guard.allowed_roots

    def is_path_allowed(self, path: str) -> bool:
        return self._guard.is_allowed(path)

    # --- Existence ---

    def session_exists(self, session_id: str) -> bool:
        return tmux_host.has_session(
            self.get_tmux_name(session_id), timeout=self.subprocess_timeout
        )

    def _require_session(self, session_id: str) -> str:
        tmux_name = self.get_tmux_name(session_id)
        if not tmux_host.has_session(tmux_name, timeout=self.subprocess_timeout):
            raise SessionNotFoundError(f"Session '{session_id}' does not exist")
        return tmux_name

    # --- Lifecycle ---

    def create_session(
        self,
        session_id: str,
        directory: str,
        channel_id: Optional[str] = None,
    ) -> SessionInfo:
        """
        Start a new agent session in tmux.

        Args:
            session_id: Caller-chosen session ID (letters, digits, _ and -)
            directory: Working directory; ``~`` is expanded
            channel_id: Optional channel to link to the new session

        Returns:
            SessionInfo for the new session

        Raises:
            SessionValidationError: Invalid ID, directory not allowed or missing
            SessionExistsError: A session with this ID is already running
            SessionHostError: tmux failed to create the session
        """
        tmux_name = self.get_tmux_name(session_id)
        if not session_id or not tmux_host.is_valid_session_name(tmux_name):
            raise SessionValidationError(f"Invalid session id: {session_id!r}")

        resolved_dir = expand_path(directory)

        if not self._guard.is_allowed(resolved_dir):
            logger.warning(f"Rejected session '{session_id}': {resolved_dir} not in allowed paths")
            raise SessionValidationError(f"Directory not in allowed paths: {resolved_dir}")

        if not os.path.isdir(resolved_dir):
            raise SessionValidationError(f"Directory does not exist: {resolved_dir}")

        with self._key_lock(f"session:{session_id}"):
            if tmux_host.has_session(tmux_name, timeout=self.subprocess_timeout):
                raise SessionExistsError(f"Session '{session_id}' already exists")

            result = tmux_host.new_session(
                tmux_name,
                resolved_dir,
                self.agent_command,
                self.agent_args,
                timeout=self.subprocess_timeout,
            )
            if not result.success:
                raise SessionHostError(
                    f"Failed to create session: {result.error_message}",
                    error_type=result.error_type,
                )

            if channel_id:
                self.link_channel(session_id, channel_id)

        logger.info(f"Created session '{session_id}' in {resolved_dir}")
        return SessionInfo(
            id=session_id,
            tmux_name=tmux_name,
            directory=resolved_dir,
            channel_id=channel_id,
            created_at=result.created_at,
        )

    def kill_session(self, session_id: str) -> bool:
        """
        Kill a session and forget its channel link and cached output.

        Raises:
            SessionNotFoundError: The session is not running
            SessionHostError: tmux failed to kill the session
        """
        with self._key_lock(f"session:{session_id}"):
            tmux_name = self._require_session(session_id)

            result = tmux_host.kill_session(tmux_name, timeout=self.subprocess_timeout)
            if not result.success:
                raise SessionHostError(
                    f"Failed to kill session: {result.error_message}",
                    error_type=result.error_type,
                )

            channel_id = self._registry.channel_for(session_id)
            if channel_id is not None:
                self.unlink_channel(channel_id)
            with self._output_lock:
                self._last_output.pop(session_id, None)
            tmux_host.release_send_lock(tmux_name)

        logger.info(f"Killed session '{session_id}'")
        return True

    # --- Input ---

    def send_to_session(self, session_id: str, text: str) -> bool:
        """
        Type text into a session and submit it with Enter.

        Raises:
            SessionNotFoundError: The session is not running
            SessionHostError: tmux failed to deliver the text
        """
        tmux_name = self._require_session(session_id)

        result = tmux_host.send_text(
            tmux_name,
            text,
            timeout=self.subprocess_timeout,
            text_enter_delay_ms=self.text_enter_delay_ms,
        )
        if not result.success:
            raise SessionHostError(
                f"Failed to send to session: {result.error_message}",
                error_type=result.error_type,
            )
        return True

    def send_escape(self, session_id: str) -> bool:
        """Send Escape to interrupt the agent."""
        tmux_name = self._require_session(session_id)

        result = tmux_host.send_keys(tmux_name, "Escape", timeout=self.subprocess_timeout)
        if not result.success:
            raise SessionHostError(
                f"Failed to send escape: {result.error_message}",
                error_type=result.error_type,
            )
        return True

    # --- Output ---

    def capture_output(self, session_id: str, lines: int = 100) -> str:
        """
        Capture the visible pane plus ``lines`` of scrollback.

        Raises:
            SessionNotFoundError: The session is not running
            SessionHostError: tmux failed to capture the pane
        """
        tmux_name = self._require_session(session_id)

        result = tmux_host.capture_pane(tmux_name, lines=lines, timeout=self.subprocess_timeout)
        if not result.success:
            raise SessionHostError(
                f"Failed to capture output: {result.error_message}",
                error_type=result.error_type,
            )
        return result.content

    def get_new_output(self, session_id: str, lines: int = 200) -> Optional[str]:
        """
        Return output that appeared since the previous call for this session.

        The first call for a session only primes the cache and returns None.
        """
        output = self.capture_output(session_id, lines)

        with self._output_lock:
            previous = self._last_output.get(session_id, "")
            self._last_output[session_id] = output

        return diff_output(previous, output)

    # --- Queries ---

    def _to_session_info(self, host_session: tmux_host.HostSession) -> Optional[SessionInfo]:
        session_id = self.get_session_id_from_tmux_name(host_session.name)
        if session_id is None:
            return None
        return SessionInfo(
            id=session_id,
            tmux_name=host_session.name,
            directory=host_session.directory,
            channel_id=self._registry.channel_for(session_id),
            created_at=host_session.created_at,
        )

    def list_sessions(self) -> list[SessionInfo]:
        """List this manager's sessions. Never raises; failures yield []."""
        try:
            result = tmux_host.list_sessions(timeout=self.subprocess_timeout)
        except Exception as e:
            logger.warning(f"Listing sessions failed: {e}")
            return []

        if not result.success:
            logger.warning(f"Listing sessions failed: {result.error_message}")
            return []

        sessions = []
        for host_session in result.sessions:
            info = self._to_session_info(host_session)
            if info is not None:
                sessions.append(info)
        return sessions

    def get_session(self, session_id: str) -> Optional[SessionInfo]:
        """Look up a single session; None when it is not running."""
        if not self.session_exists(session_id):
            return None

        tmux_name = self.get_tmux_name(session_id)
        for info in self.list_sessions():
            if info.tmux_name == tmux_name:
                return info
        return None

    def get_session_for_channel(self, channel_id: str) -> Optional[SessionInfo]:
        session_id = self._registry.session_for(channel_id)
        if session_id is None:
            return None
        return self.get_session(session_id)

    # --- Channel links ---

    def link_channel(self, session_id: str, channel_id: str) -> None:
        with self._key_lock(f"channel:{channel_id}"):
            self._registry.link(session_id, channel_id)
        logger.debug(f"Linked channel {channel_id} to session '{session_id}'")

    def unlink_channel(self, channel_id: str) -> bool:
        with self._key_lock(f"channel:{channel_id}"):
            return self._registry.unlink(channel_id)

    def get_session_by_channel(self, channel_id: str) -> Optional[str]:
        return self._registry.session_for(channel_id)

    def get_channel_by_session(self, session_id: str) -> Optional[str]:
        return self._registry.channel_for(session_id)
