"""Tests for teamwatch.lifecycle."""

from datetime import datetime, timedelta, timezone

from teamwatch.lifecycle import LifecycleTracker

T0 = datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc)


class TestLifecycleTracker:
    def test_observe_inserts_once(self):
        tracker = LifecycleTracker()
        assert tracker.observe("alpha", now=T0) is True
        assert tracker.observe("alpha", now=T0 + timedelta(minutes=5)) is False
        record = tracker.get("alpha")
        assert record.created == T0
        assert record.last_seen == T0 + timedelta(minutes=5)

    def test_touch_only_updates_known_teams(self):
        tracker = LifecycleTracker()
        tracker.touch("ghost", now=T0)
        assert "ghost" not in tracker
        tracker.observe("alpha", now=T0)
        tracker.touch("alpha", now=T0 + timedelta(minutes=1))
        assert tracker.get("alpha").last_seen == T0 + timedelta(minutes=1)

    def test_remove(self):
        tracker = LifecycleTracker()
        tracker.observe("alpha", now=T0)
        record = tracker.remove("alpha")
        assert record.age_minutes(now=T0 + timedelta(minutes=30)) == 30
        assert len(tracker) == 0
        assert tracker.remove("alpha") is None

    def test_as_dict(self):
        tracker = LifecycleTracker()
        tracker.observe("beta", now=T0)
        tracker.observe("alpha", now=T0)
        d = tracker.as_dict()
        assert list(d) == ["alpha", "beta"]
        assert d["alpha"]["created"] == T0.isoformat()
