"""Command-line entry points for Session Relay."""
