"""Tests for the Postgres upsert builder and row mapping (no database needed)."""

from __future__ import annotations

import json
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock

import pytest

from clarity.models.energy import Action, EnergyScoreDraft
from clarity.models.health import HealthMetricRecord, MetricType
from clarity.storage import postgres
from clarity.storage.postgres import (
    PostgresHealthMetricRepository,
    PostgresScoreRepository,
    build_upsert_query,
)

TEST_USER_ID = "user_test_123"
TEST_DATE = date(2026, 2, 23)
CREATED = datetime(2026, 2, 23, 15, 0, tzinfo=timezone.utc)


class TestBuildUpsertQuery:
    def test_updates_non_key_columns(self) -> None:
        query = build_upsert_query("energy_scores", ["user_id", "date", "score"], ["user_id", "date"])
        assert query == (
            "INSERT INTO energy_scores (user_id, date, score) VALUES ($1, $2, $3) "
            "ON CONFLICT (user_id, date) DO UPDATE SET score = EXCLUDED.score, "
            "updated_at = NOW()"
        )

    def test_all_key_columns_do_nothing(self) -> None:
        query = build_upsert_query("t", ["a", "b"], ["a", "b"])
        assert query.endswith("ON CONFLICT (a, b) DO NOTHING")

    def test_returning_clause(self) -> None:
        query = build_upsert_query("t", ["a", "b"], ["a"], returning=["id"])
        assert query.endswith("RETURNING id")


class TestHealthMetricRepository:
    @pytest.mark.asyncio
    async def test_upsert_writes_type_specific_payload(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        execute = AsyncMock()
        monkeypatch.setattr(postgres.db, "execute", execute)
        record = HealthMetricRecord(
            user_id=TEST_USER_ID,
            metric_type=MetricType.STEPS,
            source_date=TEST_DATE,
            source="synthetic",
            steps=8200,
            active_calories=410,
        )

        await PostgresHealthMetricRepository().upsert(record)

        args = execute.await_args.args
        assert "ON CONFLICT (user_id, metric_type, source_date)" in args[0]
        assert args[1:5] == (TEST_USER_ID, "steps", TEST_DATE, "synthetic")
        assert json.loads(args[5]) == {"count": 8200, "active_calories": 410}

    @pytest.mark.asyncio
    async def test_get_decodes_json_column(self, monkeypatch: pytest.MonkeyPatch) -> None:
        row = {
            "user_id": TEST_USER_ID,
            "metric_type": "sleep",
            "source_date": TEST_DATE,
            "source": "google_fit",
            "data": json.dumps({"duration_hours": 6.5, "quality": "fair"}),
            "synced_at": CREATED,
        }
        monkeypatch.setattr(postgres.db, "fetchrow", AsyncMock(return_value=row))

        record = await PostgresHealthMetricRepository().get(TEST_USER_ID, MetricType.SLEEP, TEST_DATE)

        assert record.sleep_duration_hours == 6.5
        assert record.sleep_quality.value == "fair"
        assert record.steps is None


class TestScoreRepository:
    @pytest.mark.asyncio
    async def test_upsert_returns_stored_row(self, monkeypatch: pytest.MonkeyPatch) -> None:
        row = {
            "id": "5f0c1c3e-0000-4000-8000-000000000001",
            "user_id": TEST_USER_ID,
            "date": TEST_DATE,
            "score": "3.7",
            "explanation": "Low rest.",
            "actions": json.dumps([{"id": "walk", "title": "Take a 10-minute walk", "reason": None}]),
            "check_in_hash": "abcdef0123456789",
            "created_at": CREATED,
        }
        fetchrow = AsyncMock(return_value=row)
        monkeypatch.setattr(postgres.db, "fetchrow", fetchrow)
        draft = EnergyScoreDraft(
            score=3.7,
            explanation="Low rest.",
            actions=[Action(id="walk", title="Take a 10-minute walk")],
            check_in_hash="abcdef0123456789",
        )

        score = await PostgresScoreRepository().upsert(TEST_USER_ID, TEST_DATE, draft)

        assert score.id == row["id"]
        assert score.score == 3.7
        assert [a.id for a in score.actions] == ["walk"]
        sql = fetchrow.await_args.args[0]
        assert "ON CONFLICT (user_id, date) DO UPDATE" in sql
        assert "RETURNING id::text AS id" in sql

    @pytest.mark.asyncio
    async def test_missing_score(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(postgres.db, "fetchrow", AsyncMock(return_value=None))
        assert await PostgresScoreRepository().get(TEST_USER_ID, TEST_DATE) is None
