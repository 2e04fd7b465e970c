"""Tests for ChannelRegistry."""

import threading

from session_relay.services.channel_registry import ChannelRegistry


class TestChannelRegistry:
    """Tests for link/unlink bookkeeping."""

    def test_link_both_directions(self):
        registry = ChannelRegistry()
        registry.link("s1", "c1")

        assert registry.session_for("c1") == "s1"
        assert registry.channel_for("s1") == "c1"

    def test_unknown_lookups(self):
        registry = ChannelRegistry()
        assert registry.session_for("c1") is None
        assert registry.channel_for("s1") is None

    def test_relink_channel(self):
        registry = ChannelRegistry()
        registry.link("s1", "c1")
        registry.link("s2", "c1")

        assert registry.links() == {"c1": "s2"}
        assert registry.channel_for("s1") is None

    def test_relink_session(self):
        registry = ChannelRegistry()
        registry.link("s1", "c1")
        registry.link("s1", "c2")

        assert registry.links() == {"c2": "s1"}
        assert registry.session_for("c1") is None

    def test_unlink(self):
        registry = ChannelRegistry()
        registry.link("s1", "c1")

        assert registry.unlink("c1") is True
        assert registry.unlink("c1") is False
        assert registry.channel_for("s1") is None

    def test_unlink_session(self):
        registry = ChannelRegistry()
        registry.link("s1", "c1")

        assert registry.unlink_session("s1") is True
        assert registry.unlink_session("s1") is False
        assert registry.session_for("c1") is None

    def test_links_is_snapshot(self):
        registry = ChannelRegistry()
        registry.link("s1", "c1")
        snapshot = registry.links()
        snapshot["c2"] = "s2"
        assert registry.session_for("c2") is None

    def test_clear(self):
        registry = ChannelRegistry()
        registry.link("s1", "c1")
        registry.clear()
        assert registry.links() == {}
        assert registry.channel_for("s1") is None

    def test_concurrent_links_stay_consistent(self):
        registry = ChannelRegistry()

        def worker(n):
            for i in range(200):
                registry.link(f"s{i % 5}", f"c{(i + n) % 7}")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        for channel_id, session_id in registry.links().items():
            assert registry.channel_for(session_id) == channel_id
