"""Tests for TrackingService add/remove/stats flows."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from profile_monitor.history.schemas import MediaCategory, MediaRecord
from profile_monitor.ingestion.schemas import MediaKind
from profile_monitor.tracking.schemas import InvalidIdentityError, normalize_identity
from profile_monitor.tracking.service import TrackingService


@pytest.fixture
def service(harness, mock_database):
    return TrackingService(
        database=mock_database,
        subscriptions=harness.subscriptions,
        snapshots=harness.snapshots,
        checker=harness.checker,
    )


class TestNormalizeIdentity:
    def test_strips_at_sign_and_case(self):
        assert normalize_identity("  @Alpha.Beta_1 ") == "alpha.beta_1"

    @pytest.mark.parametrize("raw", ["", "@", "has space", "dash-name", "x" * 31])
    def test_rejects_invalid(self, raw):
        with pytest.raises(InvalidIdentityError):
            normalize_identity(raw)


class TestAdd:
    @pytest.mark.asyncio
    async def test_add_normalizes_and_stores(self, service, harness):
        result = await service.add("@Alpha", "t1", created_by="u1", run_checks=False)

        assert result.identity == "alpha"
        assert result.created is True
        assert await harness.subscriptions.list_targets("alpha") == ["t1"]

    @pytest.mark.asyncio
    async def test_invalid_identity_raises(self, service, harness):
        with pytest.raises(InvalidIdentityError):
            await service.add("not valid!", "t1")
        assert harness.subscriptions.rows == {}

    @pytest.mark.asyncio
    async def test_add_runs_forced_initial_checks(self, service, harness, make_snapshot):
        harness.profile_client.fetch_profile.return_value = make_snapshot()

        await service.add("alpha", "t1")

        harness.profile_client.fetch_profile.assert_awaited_once_with("alpha")
        harness.media_client.fetch_story.assert_awaited_once_with("alpha")
        [text] = harness.transport.delivered_to("t1")
        assert "Initial data for" in text

    @pytest.mark.asyncio
    async def test_add_starts_grace_window(self, service, harness):
        await service.add("alpha", "t1", run_checks=False)

        assert harness.suppression.should_suppress("alpha") is True

    @pytest.mark.asyncio
    async def test_duplicate_add_is_not_created(self, service, harness):
        await service.add("alpha", "t1", run_checks=False)

        result = await service.add("ALPHA", "t1")

        assert result.created is False
        harness.profile_client.fetch_profile.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_provider_failure_keeps_subscription(self, service, harness):
        harness.profile_client.fetch_profile.side_effect = RuntimeError("provider down")

        result = await service.add("alpha", "t1")

        assert result.created is True
        assert await harness.subscriptions.count_subscribers("alpha") == 1
        harness.media_client.fetch_story.assert_awaited_once()


class TestRemove:
    @pytest.mark.asyncio
    async def test_remove_unknown_subscription(self, service):
        result = await service.remove("alpha", "t1")
        assert result.removed is False

    @pytest.mark.asyncio
    async def test_remove_with_remaining_subscribers_keeps_history(self, service, harness):
        await harness.subscriptions.add("alpha", "t1")
        await harness.subscriptions.add("alpha", "t2")

        with patch(
            "profile_monitor.tracking.service.delete_identity_history",
            new=AsyncMock(return_value=(0, 0)),
        ) as purge:
            result = await service.remove("alpha", "t1")

        assert result.removed is True
        assert result.history_deleted is False
        purge.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_remove_last_subscriber_purges_history(
        self, service, harness, mock_database
    ):
        await harness.subscriptions.add("alpha", "t1")

        with patch(
            "profile_monitor.tracking.service.delete_identity_history",
            new=AsyncMock(return_value=(3, 2)),
        ) as purge:
            result = await service.remove("@alpha", "t1")

        assert result.history_deleted is True
        purge.assert_awaited_once_with(mock_database, "alpha")


class TestStats:
    @pytest.mark.asyncio
    async def test_no_history(self, service):
        stats = await service.stats("alpha")

        assert stats.latest is None
        assert "No historical data found for @alpha" in stats.format()

    @pytest.mark.asyncio
    async def test_follower_change_over_history(self, service, harness, make_snapshot):
        for followers in (100, 110, 130):
            await harness.snapshots.append(make_snapshot(followers=followers))

        stats = await service.stats("alpha")

        assert stats.latest.followers == 130
        assert stats.follower_change == 30
        assert stats.history_length == 3
        assert "+30 followers" in stats.format()

    @pytest.mark.asyncio
    async def test_list_identities(self, service, harness):
        await harness.subscriptions.add("beta", "t1")
        await harness.subscriptions.add("alpha", "t1")
        await harness.subscriptions.add("gamma", "t2")

        subs = await service.list_identities("t1")

        assert [s.identity for s in subs] == ["alpha", "beta"]


def _cascade_into_fakes(mock_database, harness) -> None:
    """Route the cascade transaction's deletes to the in-memory stores."""

    async def execute(sql, identity):
        store = harness.snapshots if "snapshots" in sql else harness.media_events
        return f"DELETE {await store.delete_for_identity(identity)}"

    conn = MagicMock()
    conn.execute = AsyncMock(side_effect=execute)
    transaction = MagicMock()
    transaction.__aenter__ = AsyncMock(return_value=conn)
    transaction.__aexit__ = AsyncMock(return_value=False)
    mock_database.transaction = MagicMock(return_value=transaction)


class TestCascade:
    @pytest.mark.asyncio
    async def test_last_removal_leaves_no_history(
        self, service, harness, mock_database, make_snapshot
    ):
        await harness.subscriptions.add("alpha", "t1")
        await harness.snapshots.append(make_snapshot())
        await harness.ledger.record_seen(
            MediaRecord(
                identity="alpha",
                category=MediaCategory.STORY,
                event_key="m1",
                media_url="https://cdn.example.com/m1.jpg",
                media_kind=MediaKind.PHOTO,
            )
        )

        _cascade_into_fakes(mock_database, harness)

        result = await service.remove("alpha", "t1")

        assert result.history_deleted is True
        assert harness.snapshots.for_identity("alpha") == []
        assert harness.media_events.rows == {}

    @pytest.mark.asyncio
    async def test_removal_waits_for_in_flight_check(
        self, service, harness, mock_database, make_snapshot
    ):
        await harness.subscriptions.add("alpha", "t1")
        _cascade_into_fakes(mock_database, harness)
        harness.profile_client.fetch_profile.return_value = make_snapshot()

        writing = asyncio.Event()
        release = asyncio.Event()
        append = harness.snapshots.append

        async def slow_append(snapshot):
            writing.set()
            await release.wait()
            return await append(snapshot)

        harness.snapshots.append = slow_append

        check = asyncio.create_task(harness.checker.check_profile("alpha"))
        await writing.wait()
        removal = asyncio.create_task(service.remove("alpha", "t1"))
        for _ in range(5):
            await asyncio.sleep(0)
        assert not removal.done()

        release.set()
        assert await check == "changed"
        result = await removal

        assert result.history_deleted is True
        assert harness.snapshots.for_identity("alpha") == []
        assert await harness.checker.check_profile("alpha") == "untracked"
        assert harness.snapshots.for_identity("alpha") == []
