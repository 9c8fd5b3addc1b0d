"""Tests for snapshot and media event repositories."""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from profile_monitor.history.repository import (
    MediaEventRepository,
    SnapshotRepository,
    delete_identity_history,
)
from profile_monitor.history.schemas import MediaCategory, MediaRecord, Snapshot
from profile_monitor.ingestion.schemas import MediaKind

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _snapshot_row(**overrides) -> dict:
    row = {
        "id": 1,
        "identity": "alpha",
        "display_name": "Alpha",
        "description": None,
        "avatar_url": None,
        "avatar_hash": None,
        "avatar_hash_status": "absent",
        "is_private": False,
        "is_verified": False,
        "followers": 100,
        "following": 5,
        "posts": 3,
        "raw_payload": '{"status": true}',
        "created_at": NOW,
    }
    row.update(overrides)
    return row


def _media_row(**overrides) -> dict:
    row = {
        "id": 1,
        "identity": "alpha",
        "category": "story",
        "event_key": "m1",
        "media_url": "https://cdn.example.com/m1.jpg",
        "media_kind": "photo",
        "caption": None,
        "content_timestamp": None,
        "first_seen_at": NOW,
        "notified_targets": ["t1"],
        "baseline": False,
    }
    row.update(overrides)
    return row


class TestSnapshotRepository:
    @pytest.mark.asyncio
    async def test_create_table(self, mock_database):
        await SnapshotRepository(mock_database).create_table()

        sql = mock_database.execute.call_args[0][0]
        assert "CREATE TABLE IF NOT EXISTS snapshots" in sql
        assert "JSONB" in sql

    @pytest.mark.asyncio
    async def test_latest_orders_by_creation(self, mock_database):
        mock_database.fetchrow.return_value = _snapshot_row()

        snapshot = await SnapshotRepository(mock_database).latest("alpha")

        sql = mock_database.fetchrow.call_args[0][0]
        assert "ORDER BY created_at DESC, id DESC" in sql
        assert snapshot.followers == 100
        assert snapshot.raw_payload == {"status": True}

    @pytest.mark.asyncio
    async def test_latest_missing(self, mock_database):
        assert await SnapshotRepository(mock_database).latest("alpha") is None

    @pytest.mark.asyncio
    async def test_append_serializes_payload(self, mock_database):
        mock_database.fetchrow.return_value = _snapshot_row()
        snapshot = Snapshot(identity="alpha", followers=100, raw_payload={"status": True})

        await SnapshotRepository(mock_database).append(snapshot)

        args = mock_database.fetchrow.call_args[0]
        assert args[0].strip().startswith("INSERT INTO snapshots")
        assert json.loads(args[12]) == {"status": True}

    @pytest.mark.asyncio
    async def test_recent(self, mock_database):
        mock_database.fetch.return_value = [_snapshot_row(followers=120), _snapshot_row()]

        history = await SnapshotRepository(mock_database).recent("alpha", limit=2)

        assert [s.followers for s in history] == [120, 100]
        assert mock_database.fetch.call_args[0][1:] == ("alpha", 2)


class TestMediaEventRepository:
    @pytest.mark.asyncio
    async def test_insert_if_absent_created(self, mock_database):
        mock_database.fetchrow.return_value = _media_row(notified_targets=[])
        record = MediaRecord(
            identity="alpha",
            category=MediaCategory.STORY,
            event_key="m1",
            media_url="https://cdn.example.com/m1.jpg",
            media_kind=MediaKind.PHOTO,
        )

        created = await MediaEventRepository(mock_database).insert_if_absent(record)

        sql = mock_database.fetchrow.call_args[0][0]
        assert "ON CONFLICT (identity, category, event_key) DO NOTHING" in sql
        assert created.first_seen_at == NOW

    @pytest.mark.asyncio
    async def test_insert_if_absent_conflict(self, mock_database):
        record = MediaRecord(
            identity="alpha",
            category=MediaCategory.POST,
            event_key="p1",
            media_url="https://cdn.example.com/p1.jpg",
            media_kind=MediaKind.PHOTO,
        )
        assert await MediaEventRepository(mock_database).insert_if_absent(record) is None

    @pytest.mark.asyncio
    async def test_get(self, mock_database):
        mock_database.fetchrow.return_value = _media_row()

        record = await MediaEventRepository(mock_database).get(
            "alpha", MediaCategory.STORY, "m1"
        )

        assert record.category == MediaCategory.STORY
        assert record.notified_targets == ["t1"]

    @pytest.mark.asyncio
    async def test_add_notified_is_conditional(self, mock_database):
        repo = MediaEventRepository(mock_database)
        mock_database.fetchrow.return_value = {"id": 1}

        assert await repo.add_notified("alpha", MediaCategory.STORY, "m1", "t2") is True

        sql, *params = mock_database.fetchrow.call_args[0]
        assert "array_append(notified_targets, $4)" in sql
        assert "NOT ($4 = ANY(notified_targets))" in sql
        assert params == ["alpha", "story", "m1", "t2"]

        mock_database.fetchrow.return_value = None
        assert await repo.add_notified("alpha", MediaCategory.STORY, "m1", "t2") is False

    @pytest.mark.asyncio
    async def test_exists_and_has_any(self, mock_database):
        repo = MediaEventRepository(mock_database)
        mock_database.fetchval.return_value = True

        assert await repo.exists("alpha", MediaCategory.STORY, "m1") is True
        assert await repo.has_any("alpha", MediaCategory.POST) is True
        assert mock_database.fetchval.call_args[0][1:] == ("alpha", "post")


class TestDeleteIdentityHistory:
    @pytest.mark.asyncio
    async def test_deletes_both_tables_in_one_transaction(self, mock_database):
        conn = MagicMock()
        conn.execute = AsyncMock(side_effect=["DELETE 4", "DELETE 2"])
        transaction = MagicMock()
        transaction.__aenter__ = AsyncMock(return_value=conn)
        transaction.__aexit__ = AsyncMock(return_value=False)
        mock_database.transaction = MagicMock(return_value=transaction)

        result = await delete_identity_history(mock_database, "alpha")

        assert result == (4, 2)
        statements = [call.args[0] for call in conn.execute.await_args_list]
        assert statements == [
            "DELETE FROM snapshots WHERE identity = $1",
            "DELETE FROM media_events WHERE identity = $1",
        ]

    @pytest.mark.asyncio
    async def test_repository_delete_without_transaction(self, mock_database):
        mock_database.execute.return_value = "DELETE 7"

        assert await SnapshotRepository(mock_database).delete_for_identity("alpha") == 7
        assert mock_database.execute.call_args[0] == (
            "DELETE FROM snapshots WHERE identity = $1", "alpha",
        )
