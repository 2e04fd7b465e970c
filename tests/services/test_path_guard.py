"""Tests for the directory allowlist."""

import os

from session_relay.services.path_guard import PathAccessGuard, expand_path


class TestExpandPath:
    """Tests for expand_path."""

    def test_expands_home(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        assert expand_path("~/work") == os.path.join(os.path.realpath(str(tmp_path)), "work")

    def test_resolves_dotdot(self, tmp_path):
        assert expand_path(str(tmp_path / "a" / ".." / "b")) == os.path.realpath(str(tmp_path / "b"))

    def test_resolves_symlink(self, tmp_path):
        target = tmp_path / "target"
        target.mkdir()
        link = tmp_path / "link"
        link.symlink_to(target)
        assert expand_path(str(link)) == os.path.realpath(str(target))


class TestPathAccessGuard:
    """Tests for PathAccessGuard."""

    def test_empty_allowlist_allows_everything(self):
        guard = PathAccessGuard()
        assert guard.is_restricted is False
        assert guard.is_allowed("/etc") is True
        assert guard.is_allowed("/") is True

    def test_blank_roots_ignored(self):
        guard = PathAccessGuard(["", "   "])
        assert guard.allowed_roots == ()
        assert guard.is_allowed("/anything") is True

    def test_root_and_descendants_allowed(self, tmp_path):
        guard = PathAccessGuard([str(tmp_path / "projects")])
        assert guard.is_restricted is True
        assert guard.is_allowed(str(tmp_path / "projects")) is True
        assert guard.is_allowed(str(tmp_path / "projects" / "a" / "b")) is True

    def test_shared_prefix_sibling_rejected(self, tmp_path):
        guard = PathAccessGuard([str(tmp_path / "projects")])
        assert guard.is_allowed(str(tmp_path / "projects-evil")) is False
        assert guard.is_allowed(str(tmp_path / "projectsX")) is False

    def test_parent_rejected(self, tmp_path):
        guard = PathAccessGuard([str(tmp_path / "projects")])
        assert guard.is_allowed(str(tmp_path)) is False

    def test_dotdot_escape_rejected(self, tmp_path):
        guard = PathAccessGuard([str(tmp_path / "projects")])
        assert guard.is_allowed(str(tmp_path / "projects" / ".." / "secrets")) is False

    def test_trailing_separator_on_root(self, tmp_path):
        guard = PathAccessGuard([str(tmp_path / "projects") + os.sep])
        assert guard.is_allowed(str(tmp_path / "projects" / "a")) is True
        assert guard.is_allowed(str(tmp_path / "projects-evil")) is False

    def test_filesystem_root(self):
        guard = PathAccessGuard([os.sep])
        assert guard.is_allowed("/usr/lib") is True

    def test_home_root(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        guard = PathAccessGuard(["~/projects"])
        assert guard.is_allowed(str(tmp_path / "projects" / "x")) is True
        assert guard.is_allowed("~/projects/y") is True
        assert guard.is_allowed("~/other") is False

    def test_multiple_roots(self, tmp_path):
        guard = PathAccessGuard([str(tmp_path / "a"), str(tmp_path / "b")])
        assert guard.is_allowed(str(tmp_path / "b" / "c")) is True
        assert guard.is_allowed(str(tmp_path / "c")) is False

    def test_configure_replaces(self, tmp_path):
        guard = PathAccessGuard([str(tmp_path / "a")])
        guard.configure([str(tmp_path / "b")])
        assert guard.is_allowed(str(tmp_path / "a")) is False
        assert guard.is_allowed(str(tmp_path / "b")) is True
