"""Bidirectional channel <-> session mapping."""

import threading
from typing import Optional


class ChannelRegistry:
    """
    Thread-safe 1:1 map between chat channels and session IDs.

    Entries are independent of whether the tmux session still exists;
    callers are responsible for that check. Nothing is persisted.
    """

    def __init__(self) -> None:
        self._session_by_channel: dict[str, str] = {}
        self._channel_by_session: dict[str, str] = {}
        self._lock = threading.Lock()

    def link(self, session_id: str, channel_id: str) -> None:
        """
        Link a session to a channel, replacing any prior link of either.

        Args:
            session_id: Session to link
            channel_id: Channel to link
        """
        with self._lock:
            old_channel = self._channel_by_session.pop(session_id, None)
            if old_channel is not None:
                self._session_by_channel.pop(old_channel, None)

            old_session = self._session_by_channel.pop(channel_id, None)
            if old_session is not None:
                self._channel_by_session.pop(old_session, None)

            self._session_by_channel[channel_id] = session_id
            self._channel_by_session[session_id] = channel_id

    def unlink(self, channel_id: str) -> bool:
        """
        Remove a channel's link in both directions.

        Returns:
            True if a link was removed, False if the channel was not linked
        """
        with self._lock:
            session_id = self._session_by_channel.pop(channel_id, None)
            if session_id is None:
                return False
            self._channel_by_session.pop(session_id, None)
            return True

    def unlink_session(self, session_id: str) -> bool:
        """
        Remove a session's link in both directions.

        Returns:
            True if a link was removed, False if the session was not linked
        """
        with self._lock:
            channel_id = self._channel_by_session.pop(session_id, None)
            if channel_id is None:
                return False
            self._session_by_channel.pop(channel_id, None)
            return True

    def session_for(self, channel_id: str) -> Optional[str]:
        with self._lock:
            return self._session_by_channel.get(channel_id)

    def channel_for(self, session_id: str) -> Optional[str]:
        with self._lock:
            return self._channel_by_session.get(session_id)

    def links(self) -> dict[str, str]:
        """Snapshot of channel_id -> session_id."""
        with self._lock:
            return dict(self._session_by_channel)

    def clear(self) -> None:
        """Remove all links."""
        with self._lock:
            self._session_by_channel.clear()
            self._channel_by_session.clear()
