"""Filesystem allowlist for session working directories."""

import os


def expand_path(path: str) -> str:
    """Expand a leading ``~`` and resolve to an absolute, canonical path.

    Args:
        path: Raw path as supplied by config or a caller

    Returns:
        Absolute canonical path (symlinks resolved)
    """
    return os.path.realpath(os.path.expanduser(path))


class PathAccessGuard:
    """
    Validates candidate directories against an administrator-set allowlist.

    An empty allowlist is permissive: every path is allowed. Containment is
    checked on separator boundaries, so ``/home/projects-evil`` is not inside
    ``/home/projects``.
    """

    def __init__(self, allowed_roots: list[str] | None = None) -> None:
        self._roots: tuple[str, ...] = ()
        if allowed_roots:
            self.configure(allowed_roots)

    def configure(self, allowed_roots: list[str]) -> None:
        """Replace the allowlist. Blank entries are ignored."""
        self._roots = tuple(
            expand_path(root) for root in allowed_roots if root and root.strip()
        )

    @property
    def allowed_roots(self) -> tuple[str, ...]:
        return self._roots

    @property
    def is_restricted(self) -> bool:
        return bool(self._roots)

    def is_allowed(self, candidate: str) -> bool:
        """
        Check whether a path is an allowed root or lies beneath one.

        Args:
            candidate: Path to check (expanded and resolved before comparison)

        Returns:
            True if allowed, False otherwise
        """
        if not self._roots:
            return True

        resolved = expand_path(candidate)
        for root in self._roots:
            if resolved == root:
                return True
            # "/" already ends with the separator
            boundary = root if root.endswith(os.sep) else root + os.sep
            if resolved.startswith(boundary):
                return True
        return False
