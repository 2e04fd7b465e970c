"""tmux host adapter for agent sessions.

Every call runs the ``tmux`` binary as an argument vector through
subprocess.run with a timeout; nothing is ever interpolated into a shell
string. Failures are returned as typed results carrying tmux's own stderr,
so callers never see a raw CalledProcessError, TimeoutExpired or
FileNotFoundError.

Sessions are addressed by exact name (``-t =name``) so that ``claude-a``
never resolves to ``claude-ab`` through tmux's prefix matching.
"""

import logging
import re
import shutil
import subprocess
import threading
import time
from datetime import datetime, timezone
from enum import Enum
from typing import NamedTuple

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_SUBPROCESS_TIMEOUT = 5  # seconds
DEFAULT_TEXT_ENTER_DELAY_MS = 1500  # ms between text send and Enter
DEFAULT_CAPTURE_LINES = 100

# Wide geometry avoids URL wrapping in captured output. Not user-configurable.
SESSION_WIDTH = 200
SESSION_HEIGHT = 50

# Per-session send lock registry. Text and its Enter must not interleave with
# another send to the same session.
_send_locks: dict[str, threading.RLock] = {}
_send_locks_meta_lock = threading.Lock()


def _get_send_lock(session_name: str) -> threading.RLock:
    """Get or create a per-session reentrant send lock."""
    with _send_locks_meta_lock:
        if session_name not in _send_locks:
            _send_locks[session_name] = threading.RLock()
        return _send_locks[session_name]


def release_send_lock(session_name: str) -> None:
    """Remove a session's send lock once the session is gone."""
    with _send_locks_meta_lock:
        _send_locks.pop(session_name, None)


class TmuxHostErrorType(str, Enum):
    """Error types for tmux host operations."""

    SESSION_NOT_FOUND = "session_not_found"
    TMUX_NOT_INSTALLED = "tmux_not_installed"
    SUBPROCESS_FAILED = "subprocess_failed"
    INVALID_NAME = "invalid_name"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


class HostResult(NamedTuple):
    """Result of a tmux command with no payload."""

    success: bool
    error_type: TmuxHostErrorType | None = None
    error_message: str | None = None
    latency_ms: int = 0


class SpawnResult(NamedTuple):
    """Result of creating a tmux session."""

    success: bool
    created_at: datetime | None = None
    error_type: TmuxHostErrorType | None = None
    error_message: str | None = None
    latency_ms: int = 0


class CaptureResult(NamedTuple):
    """Result of a pane capture."""

    success: bool
    content: str = ""
    error_type: TmuxHostErrorType | None = None
    error_message: str | None = None


class HostSession(NamedTuple):
    """A tmux session as reported by list-sessions."""

    name: str
    created_at: datetime | None
    directory: str


class ListResult(NamedTuple):
    """Result of listing tmux sessions."""

    success: bool
    sessions: tuple[HostSession, ...] = ()
    error_type: TmuxHostErrorType | None = None
    error_message: str | None = None


_SESSION_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def is_valid_session_name(session_name: str | None) -> bool:
    """Validate that a session name is safe to use as a tmux target.

    tmux rewrites ``.`` and ``:`` in session names and treats them as
    target separators, so only letters, digits, ``_`` and ``-`` are accepted.
    """
    if not session_name:
        return False
    return bool(_SESSION_NAME_PATTERN.match(session_name))


def _session_target(session_name: str) -> str:
    return f"={session_name}"


def _pane_target(session_name: str) -> str:
    # Active pane of the active window in the exactly-named session
    return f"={session_name}:"


def _invalid_name_message(session_name: str | None) -> str:
    return f"Invalid session name: {session_name!r}"


def _stderr_text(error: subprocess.CalledProcessError) -> str:
    stderr = error.stderr or b""
    if isinstance(stderr, bytes):
        stderr = stderr.decode("utf-8", errors="replace")
    return stderr.strip()


def _classify_subprocess_error(error: subprocess.CalledProcessError) -> TmuxHostErrorType:
    """Classify a tmux subprocess error based on stderr content."""
    stderr = _stderr_text(error).lower()
    if (
        "can't find session" in stderr
        or "can't find pane" in stderr
        or "no such" in stderr
        or "not found" in stderr
        or "no server running" in stderr
    ):
        return TmuxHostErrorType.SESSION_NOT_FOUND
    return TmuxHostErrorType.SUBPROCESS_FAILED


def _parse_created(value: str) -> datetime | None:
    """Convert tmux's #{session_created} (epoch seconds) to an aware datetime."""
    value = value.strip()
    if not value:
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        return None


def _run(cmd: list[str], timeout: float) -> subprocess.CompletedProcess:
    return subprocess.run(
        cmd,
        check=True,
        timeout=timeout,
        capture_output=True,
    )


def _failure(
    error: Exception,
    action: str,
    timeout: float,
) -> tuple[TmuxHostErrorType, str]:
    """Map an exception raised around a tmux call to (error_type, message)."""
    if isinstance(error, FileNotFoundError):
        return TmuxHostErrorType.TMUX_NOT_INSTALLED, "tmux is not installed or not on PATH."
    if isinstance(error, subprocess.CalledProcessError):
        stderr_text = _stderr_text(error)
        message = f"tmux {action} failed: {stderr_text}" if stderr_text else f"tmux {action} failed"
        return _classify_subprocess_error(error), message
    if isinstance(error, subprocess.TimeoutExpired):
        return TmuxHostErrorType.TIMEOUT, f"tmux {action} timed out after {timeout}s."
    return TmuxHostErrorType.UNKNOWN, f"Unexpected error: {error}"


def is_tmux_available(timeout: float = DEFAULT_SUBPROCESS_TIMEOUT) -> bool:
    """Check whether the tmux binary is installed and runnable.

    Never raises; any probe failure is reported as unavailable.
    """
    try:
        if not shutil.which("tmux"):
            return False
        _run(["tmux", "-V"], timeout)
        return True
    except Exception as e:
        logger.debug(f"tmux availability probe failed: {e}")
        return False


def has_session(
    session_name: str,
    timeout: float = DEFAULT_SUBPROCESS_TIMEOUT,
) -> bool:
    """Check whether a tmux session with exactly this name is running.

    Any failure, including "not found" and a missing tmux server, is False.
    """
    if not is_valid_session_name(session_name):
        return False

    try:
        _run(["tmux", "has-session", "-t", _session_target(session_name)], timeout)
        return True
    except Exception:
        return False


def new_session(
    session_name: str,
    directory: str,
    command: str,
    args: list[str] | tuple[str, ...] = (),
    width: int = SESSION_WIDTH,
    height: int = SESSION_HEIGHT,
    timeout: float = DEFAULT_SUBPROCESS_TIMEOUT,
) -> SpawnResult:
    """Start a detached tmux session running ``command`` in ``directory``.

    The directory, command and each argument are separate argv elements
    after ``--``, so shell metacharacters in any of them reach tmux verbatim.

    Args:
        session_name: Exact tmux session name
        directory: Working directory for the session
        command: Program to run in the session
        args: Arguments for the program
        width: Pane width in columns
        height: Pane height in rows
        timeout: Subprocess timeout in seconds

    Returns:
        SpawnResult with the creation timestamp reported by tmux
    """
    if not is_valid_session_name(session_name):
        return SpawnResult(
            success=False,
            error_type=TmuxHostErrorType.INVALID_NAME,
            error_message=_invalid_name_message(session_name),
        )

    start_time = time.time()
    cmd = [
        "tmux", "new-session", "-d",
        "-P", "-F", "#{session_created}",
        "-x", str(width), "-y", str(height),
        "-s", session_name,
        "-c", directory,
        "--",
        command,
        *args,
    ]

    try:
        result = _run(cmd, timeout)
        latency_ms = int((time.time() - start_time) * 1000)
        created_at = _parse_created(
            (result.stdout or b"").decode("utf-8", errors="replace")
        )
        logger.info(
            f"Created tmux session '{session_name}' in {directory} ({latency_ms}ms)"
        )
        return SpawnResult(success=True, created_at=created_at, latency_ms=latency_ms)

    except Exception as e:
        latency_ms = int((time.time() - start_time) * 1000)
        error_type, message = _failure(e, "new-session", timeout)
        logger.warning(f"Failed to create tmux session '{session_name}': {message}")
        return SpawnResult(
            success=False,
            error_type=error_type,
            error_message=message,
            latency_ms=latency_ms,
        )


def send_text(
    session_name: str,
    text: str,
    timeout: float = DEFAULT_SUBPROCESS_TIMEOUT,
    text_enter_delay_ms: int = DEFAULT_TEXT_ENTER_DELAY_MS,
) -> HostResult:
    """Type literal text into a session, wait, then press Enter.

    Pipeline:
      1. send-keys -l -- <text>   (literal; key names are not interpreted)
      2. sleep text_enter_delay_ms
      3. send-keys Enter

    The delay is required: an Enter that arrives while the agent is still
    reading the typed text is dropped.

    Args:
        session_name: Exact tmux session name
        text: Text to deliver verbatim as keystrokes
        timeout: Subprocess timeout in seconds
        text_enter_delay_ms: Delay in ms between text send and Enter send

    Returns:
        HostResult with success status and optional error information
    """
    if not is_valid_session_name(session_name):
        return HostResult(
            success=False,
            error_type=TmuxHostErrorType.INVALID_NAME,
            error_message=_invalid_name_message(session_name),
        )

    target = _pane_target(session_name)

    with _get_send_lock(session_name):
        start_time = time.time()

        try:
            _run(["tmux", "send-keys", "-t", target, "-l", "--", text], timeout)

            time.sleep(text_enter_delay_ms / 1000.0)

            _run(["tmux", "send-keys", "-t", target, "Enter"], timeout)

            latency_ms = int((time.time() - start_time) * 1000)
            logger.info(
                f"Sent {len(text)} chars to tmux session '{session_name}' ({latency_ms}ms)"
            )
            return HostResult(success=True, latency_ms=latency_ms)

        except Exception as e:
            latency_ms = int((time.time() - start_time) * 1000)
            error_type, message = _failure(e, "send-keys", timeout)
            if error_type == TmuxHostErrorType.UNKNOWN:
                logger.exception(f"Unexpected error sending to tmux session '{session_name}'")
            else:
                logger.warning(f"Send to tmux session '{session_name}' failed: {message}")
            return HostResult(
                success=False,
                error_type=error_type,
                error_message=message,
                latency_ms=latency_ms,
            )


def send_keys(
    session_name: str,
    *keys: str,
    timeout: float = DEFAULT_SUBPROCESS_TIMEOUT,
) -> HostResult:
    """Send special keys to a session.

    Sends keys without the -l flag so tmux interprets key names
    (Enter, Escape, C-c, Up, ...).

    Args:
        session_name: Exact tmux session name
        *keys: Key names to send
        timeout: Subprocess timeout in seconds

    Returns:
        HostResult with success status
    """
    if not is_valid_session_name(session_name):
        return HostResult(
            success=False,
            error_type=TmuxHostErrorType.INVALID_NAME,
            error_message=_invalid_name_message(session_name),
        )

    target = _pane_target(session_name)

    with _get_send_lock(session_name):
        start_time = time.time()

        try:
            for key in keys:
                _run(["tmux", "send-keys", "-t", target, key], timeout)

            latency_ms = int((time.time() - start_time) * 1000)
            logger.info(f"Sent keys {keys} to tmux session '{session_name}' ({latency_ms}ms)")
            return HostResult(success=True, latency_ms=latency_ms)

        except Exception as e:
            latency_ms = int((time.time() - start_time) * 1000)
            error_type, message = _failure(e, "send-keys", timeout)
            logger.warning(f"Send keys to tmux session '{session_name}' failed: {message}")
            return HostResult(
                success=False,
                error_type=error_type,
                error_message=message,
                latency_ms=latency_ms,
            )


def capture_pane(
    session_name: str,
    lines: int = DEFAULT_CAPTURE_LINES,
    timeout: float = DEFAULT_SUBPROCESS_TIMEOUT,
) -> CaptureResult:
    """Capture the visible pane plus ``lines`` of scrollback.

    Color and attribute escape sequences are preserved (-e flag).

    Args:
        session_name: Exact tmux session name
        lines: Number of history lines above the visible pane to include
        timeout: Subprocess timeout in seconds

    Returns:
        CaptureResult with the captured text
    """
    if not is_valid_session_name(session_name):
        return CaptureResult(
            success=False,
            error_type=TmuxHostErrorType.INVALID_NAME,
            error_message=_invalid_name_message(session_name),
        )

    cmd = [
        "tmux", "capture-pane",
        "-t", _pane_target(session_name),
        "-p", "-e",
        "-S", f"-{max(0, int(lines))}",
        "-E", "-",
    ]

    try:
        result = _run(cmd, timeout)
        return CaptureResult(
            success=True,
            content=result.stdout.decode("utf-8", errors="replace"),
        )
    except Exception as e:
        error_type, message = _failure(e, "capture-pane", timeout)
        logger.warning(f"capture-pane failed for '{session_name}': {message}")
        return CaptureResult(
            success=False,
            error_type=error_type,
            error_message=message,
        )


def kill_session(
    session_name: str,
    timeout: float = DEFAULT_SUBPROCESS_TIMEOUT,
) -> HostResult:
    """Kill a tmux session by exact name.

    Args:
        session_name: The tmux session name to kill
        timeout: Subprocess timeout in seconds

    Returns:
        HostResult with success status
    """
    if not is_valid_session_name(session_name):
        return HostResult(
            success=False,
            error_type=TmuxHostErrorType.INVALID_NAME,
            error_message=_invalid_name_message(session_name),
        )

    start_time = time.time()

    try:
        _run(["tmux", "kill-session", "-t", _session_target(session_name)], timeout)
        latency_ms = int((time.time() - start_time) * 1000)
        logger.info(f"Killed tmux session '{session_name}' ({latency_ms}ms)")
        return HostResult(success=True, latency_ms=latency_ms)

    except Exception as e:
        latency_ms = int((time.time() - start_time) * 1000)
        error_type, message = _failure(e, "kill-session", timeout)
        logger.warning(f"Failed to kill tmux session '{session_name}': {message}")
        return HostResult(
            success=False,
            error_type=error_type,
            error_message=message,
            latency_ms=latency_ms,
        )


def list_sessions(
    timeout: float = DEFAULT_SUBPROCESS_TIMEOUT,
) -> ListResult:
    """List every tmux session on the server, regardless of name.

    A missing tmux server means no sessions and is reported as success.

    Args:
        timeout: Subprocess timeout in seconds

    Returns:
        ListResult of HostSession(name, created_at, directory)
    """
    cmd = [
        "tmux", "list-sessions", "-F",
        "#{session_name}\t#{session_created}\t#{pane_current_path}",
    ]

    try:
        result = _run(cmd, timeout)
    except subprocess.CalledProcessError as e:
        stderr_text = _stderr_text(e).lower()
        if "no server running" in stderr_text or "error connecting" in stderr_text:
            return ListResult(success=True, sessions=())
        error_type, message = _failure(e, "list-sessions", timeout)
        logger.warning(f"list-sessions failed: {message}")
        return ListResult(success=False, error_type=error_type, error_message=message)
    except Exception as e:
        error_type, message = _failure(e, "list-sessions", timeout)
        logger.warning(f"list-sessions failed: {message}")
        return ListResult(success=False, error_type=error_type, error_message=message)

    sessions = []
    output = result.stdout.decode("utf-8", errors="replace")
    for line in output.strip().splitlines():
        parts = line.split("\t")
        if not parts or not parts[0]:
            continue
        sessions.append(HostSession(
            name=parts[0],
            created_at=_parse_created(parts[1]) if len(parts) > 1 else None,
            directory=parts[2] if len(parts) > 2 and parts[2] else "unknown",
        ))
    return ListResult(success=True, sessions=tuple(sessions))
