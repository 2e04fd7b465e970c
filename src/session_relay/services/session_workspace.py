"""Session workspace seeding.

Ensures a session's working directory carries a ``.claude/CLAUDE.md`` guide
telling the agent its output is relayed to a chat channel. Existing files are
never overwritten so user edits survive.
"""

import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)

GUIDE_DIRNAME = ".claude"
GUIDE_FILENAME = "CLAUDE.md"

DEFAULT_TEMPLATE = """# Chat Relay Session

Your output is being relayed to a chat channel.

- Keep responses concise; long output is split across several messages.
- Prefer fenced code blocks for code and command output.
- Avoid wide tables and ASCII art; they do not render well in chat."""

_HTML_COMMENT = re.compile(r"<!--.*?-->", re.DOTALL)
_EXCESS_NEWLINES = re.compile(r"\n{3,}")


def render_template(raw: str) -> str:
    """Strip HTML comments and collapse runs of blank lines."""
    text = _HTML_COMMENT.sub("", raw)
    text = _EXCESS_NEWLINES.sub("\n\n", text)
    return text.strip()


def load_session_template(template_path: str | Path | None = None) -> str:
    """Read the session guide template, falling back to the built-in guide.

    Args:
        template_path: Optional path to a markdown template

    Returns:
        Rendered template text
    """
    if not template_path:
        return DEFAULT_TEMPLATE

    try:
        raw = Path(template_path).expanduser().read_text(encoding="utf-8")
    except OSError as e:
        logger.error(f"Failed to read session template {template_path}: {e}")
        return DEFAULT_TEMPLATE

    return render_template(raw)


def ensure_session_workspace(
    directory: str | Path,
    template_path: str | Path | None = None,
) -> Path:
    """Create the workspace directory and its guide file if missing.

    Args:
        directory: Session working directory (``~`` is expanded)
        template_path: Optional template for the guide file

    Returns:
        The resolved workspace directory
    """
    workspace = Path(directory).expanduser().resolve()

    if not workspace.exists():
        workspace.mkdir(parents=True, exist_ok=True)
        logger.info(f"Created session directory: {workspace}")

    guide_dir = workspace / GUIDE_DIRNAME
    guide_dir.mkdir(parents=True, exist_ok=True)

    guide_path = guide_dir / GUIDE_FILENAME
    if not guide_path.exists():
        guide_path.write_text(load_session_template(template_path), encoding="utf-8")
        logger.info(f"Created session guide: {guide_path}")

    return workspace
