"""Session Relay: tmux-hosted agent sessions for chat-platform bots."""

__version__ = "0.1.0"
