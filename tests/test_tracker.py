"""
Tests for the in-flight tracker.
"""

import pytest

from pacebot.auto_reply.tracker import InFlightTracker


class TestInFlightTracker:
    """Tests for the per-conversation gate."""

    def test_acquire_is_exclusive(self):
        tracker = InFlightTracker()

        assert tracker.try_acquire("a@c.us") is True
        assert tracker.try_acquire("a@c.us") is False
        assert tracker.try_acquire("b@c.us") is True
        assert len(tracker) == 2

    def test_release_frees_conversation(self):
        tracker = InFlightTracker()
        tracker.try_acquire("a@c.us")

        tracker.release("a@c.us")

        assert tracker.is_busy("a@c.us") is False
        assert tracker.try_acquire("a@c.us") is True

    def test_release_free_conversation_is_noop(self):
        tracker = InFlightTracker()

        tracker.release("a@c.us")

        assert len(tracker) == 0

    def test_hold_releases_on_exit(self):
        tracker = InFlightTracker()

        with tracker.hold("a@c.us") as acquired:
            assert acquired is True
            assert tracker.is_busy("a@c.us")

        assert not tracker.is_busy("a@c.us")

    def test_hold_releases_on_error(self):
        tracker = InFlightTracker()

        with pytest.raises(RuntimeError):
            with tracker.hold("a@c.us"):
                raise RuntimeError("generation exploded")

        assert not tracker.is_busy("a@c.us")

    def test_hold_when_busy_leaves_owner_gate(self):
        tracker = InFlightTracker()
        tracker.try_acquire("a@c.us")

        with tracker.hold("a@c.us") as acquired:
            assert acquired is False

        # The original holder still owns the gate
        assert tracker.is_busy("a@c.us")
