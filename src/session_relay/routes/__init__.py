"""Routes package for Session Relay."""

# SECURITY NOTE: the operator API has no authentication of its own. Bind it to
# localhost (the default) or a private network; directory access is still
# bounded by the sessions.allowed_paths allowlist.

from .health import health_bp
from .sessions import sessions_bp

__all__ = ["health_bp", "sessions_bp"]
