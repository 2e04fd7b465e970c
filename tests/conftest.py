"""Pytest fixtures for Session Relay tests."""

import pytest

from session_relay.app import create_app
from session_relay.config import ENV_MAPPINGS


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep the developer's environment from leaking into config under test."""
    for env_var in ENV_MAPPINGS:
        monkeypatch.delenv(env_var, raising=False)
    monkeypatch.delenv("SESSION_RELAY_CONFIG", raising=False)


@pytest.fixture
def app(tmp_path):
    """Create a Flask application for testing (no config file, no tmux probe)."""
    app = create_app(config_path=str(tmp_path / "config.yaml"), testing=True)
    yield app


@pytest.fixture
def client(app):
    """Create a test client."""
    return app.test_client()
