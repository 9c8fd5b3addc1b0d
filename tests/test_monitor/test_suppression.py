"""Tests for the expiring cache and new-identity suppression."""

from datetime import datetime, timedelta, timezone

from profile_monitor.monitor.suppression import ExpiringCache, NewIdentitySuppression

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestExpiringCache:
    def test_entry_expires_after_ttl(self, clock):
        cache = ExpiringCache(60, clock=clock)
        cache.put("alpha")

        clock.advance(59)
        assert "alpha" in cache

        clock.advance(1)
        assert "alpha" not in cache
        assert len(cache) == 0

    def test_put_refreshes_expiry(self, clock):
        cache = ExpiringCache(60, clock=clock)
        cache.put("alpha")
        clock.advance(50)
        cache.put("alpha")
        clock.advance(50)

        assert cache.contains("alpha")

    def test_evicts_oldest_when_full(self, clock):
        cache = ExpiringCache(60, max_entries=2, clock=clock)
        for key in ("a", "b", "c"):
            cache.put(key)

        assert len(cache) == 2
        assert "a" not in cache
        assert "b" in cache and "c" in cache

    def test_purge_drops_only_expired(self, clock):
        cache = ExpiringCache(60, clock=clock)
        cache.put("old")
        clock.advance(30)
        cache.put("new")
        clock.advance(40)

        assert cache.purge() == 1
        assert "new" in cache


class TestNewIdentitySuppression:
    def test_suppressed_inside_grace_window(self, clock):
        suppression = NewIdentitySuppression(ExpiringCache(90, clock=clock))
        suppression.mark_added("alpha")

        clock.advance(30)
        assert suppression.should_suppress("alpha") is True

    def test_not_suppressed_after_grace_window(self, clock):
        suppression = NewIdentitySuppression(ExpiringCache(90, clock=clock))
        suppression.mark_added("alpha")

        clock.advance(120)
        assert suppression.should_suppress("alpha") is False

    def test_force_overrides(self, clock):
        suppression = NewIdentitySuppression(ExpiringCache(90, clock=clock))
        suppression.mark_added("alpha")

        assert suppression.should_suppress("alpha", force=True) is False

    def test_unknown_identity_not_suppressed(self, clock):
        suppression = NewIdentitySuppression(ExpiringCache(90, clock=clock))
        assert suppression.should_suppress("beta") is False

    def test_persisted_add_inside_grace_window(self, clock):
        suppression = NewIdentitySuppression(ExpiringCache(90, clock=clock), now=lambda: NOW)

        added_at = NOW - timedelta(seconds=30)

        assert suppression.should_suppress("alpha", added_at=added_at) is True

    def test_persisted_add_after_grace_window(self, clock):
        suppression = NewIdentitySuppression(ExpiringCache(90, clock=clock), now=lambda: NOW)

        added_at = NOW - timedelta(seconds=120)

        assert suppression.should_suppress("alpha", added_at=added_at) is False

    def test_force_overrides_persisted_add(self, clock):
        suppression = NewIdentitySuppression(ExpiringCache(90, clock=clock), now=lambda: NOW)

        assert suppression.should_suppress("alpha", force=True, added_at=NOW) is False
