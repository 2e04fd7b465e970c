"""Tests for session workspace seeding."""

from session_relay.services.session_workspace import (
    DEFAULT_TEMPLATE,
    ensure_session_workspace,
    load_session_template,
    render_template,
)


class TestRenderTemplate:
    def test_strips_comments_and_blank_runs(self):
        raw = "# Title\n<!-- internal\nnote -->\n\n\n\nBody\n"
        assert render_template(raw) == "# Title\n\nBody"


class TestLoadSessionTemplate:
    """Tests for load_session_template."""

    def test_default(self):
        assert load_session_template() == DEFAULT_TEMPLATE

    def test_custom(self, tmp_path):
        template = tmp_path / "guide.md"
        template.write_text("# Custom\n<!-- hidden -->\nBe brief.\n")
        assert load_session_template(template) == "# Custom\n\nBe brief."

    def test_missing_falls_back(self, tmp_path):
        assert load_session_template(tmp_path / "missing.md") == DEFAULT_TEMPLATE


class TestEnsureSessionWorkspace:
    """Tests for ensure_session_workspace."""

    def test_creates_directory_and_guide(self, tmp_path):
        workspace = ensure_session_workspace(tmp_path / "new" / "project")

        guide = workspace / ".claude" / "CLAUDE.md"
        assert workspace.is_dir()
        assert guide.read_text(encoding="utf-8") == DEFAULT_TEMPLATE

    def test_existing_guide_not_overwritten(self, tmp_path):
        guide = tmp_path / ".claude" / "CLAUDE.md"
        guide.parent.mkdir()
        guide.write_text("my notes")

        ensure_session_workspace(tmp_path)

        assert guide.read_text() == "my notes"

    def test_uses_template(self, tmp_path):
        template = tmp_path / "t.md"
        template.write_text("Relay guide")

        workspace = ensure_session_workspace(tmp_path / "ws", template)

        assert (workspace / ".claude" / "CLAUDE.md").read_text(encoding="utf-8") == "Relay guide"

    def test_expands_home(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        workspace = ensure_session_workspace("~/ws")
        assert workspace == (tmp_path / "ws").resolve()
