"""Postgres repositories over the asyncpg pool in ``clarity.services.database``.

Upserts are single ``INSERT ... ON CONFLICT DO UPDATE`` statements built by
``build_upsert_query``, so concurrent writers resolve last-writer-wins at
the row level.  JSON columns travel as text and are decoded here.
"""

from __future__ import annotations

import json
import logging
from datetime import date
from typing import Any

from clarity.models.base import utc_now
from clarity.models.checkins import CheckInRecord
from clarity.models.energy import Action, EnergyScore, EnergyScoreDraft, ExplanationFeedback
from clarity.models.health import HealthMetricRecord, MetricType
from clarity.services import database as db
from clarity.storage.base import day_window

logger = logging.getLogger("clarity.storage.postgres")


def build_upsert_query(
    table: str,
    columns: list[str],
    conflict_columns: list[str],
    update_columns: list[str] | None = None,
    returning: list[str] | None = None,
) -> str:
    """Build a PostgreSQL INSERT ... ON CONFLICT DO UPDATE (upsert) query.

    Idempotent: safe to call multiple times with the same data.  On conflict,
    the non-key columns are overwritten and ``updated_at`` is bumped.

    Args:
        table:            Target table name.
        columns:          All columns to insert.
        conflict_columns: Columns that define the UNIQUE constraint.
        update_columns:   Columns to update on conflict (defaults to non-key columns).
        returning:        Columns for a RETURNING clause, if any.

    Returns:
        Parameterized SQL string.
    """
    if update_columns is None:
        update_columns = [c for c in columns if c not in conflict_columns]

    placeholders = ", ".join(f"${i + 1}" for i in range(len(columns)))
    col_list = ", ".join(columns)
    conflict_target = ", ".join(conflict_columns)

    if update_columns:
        update_set = ", ".join(f"{col} = EXCLUDED.{col}" for col in update_columns)
        update_set += ", updated_at = NOW()"
        do_clause = f"DO UPDATE SET {update_set}"
    else:
        do_clause = "DO NOTHING"

    query = (
        f"INSERT INTO {table} ({col_list}) "
        f"VALUES ({placeholders}) "
        f"ON CONFLICT ({conflict_target}) {do_clause}"
    )
    if returning:
        query += f" RETURNING {', '.join(returning)}"
    return query


def _json(value: Any) -> Any:
    return json.loads(value) if isinstance(value, str) else value


# ---------------------------------------------------------------------------
# Health metrics
# ---------------------------------------------------------------------------

_HEALTH_COLUMNS = ["user_id", "metric_type", "source_date", "source", "data", "synced_at"]
_HEALTH_UPSERT = build_upsert_query(
    "health_metrics", _HEALTH_COLUMNS, ["user_id", "metric_type", "source_date"]
)


def _health_from_row(row: Any) -> HealthMetricRecord:
    return HealthMetricRecord.from_data(
        user_id=row["user_id"],
        metric_type=row["metric_type"],
        source_date=row["source_date"],
        source=row["source"],
        data=_json(row["data"]) or {},
        synced_at=row["synced_at"],
    )


class PostgresHealthMetricRepository:
    async def upsert(self, record: HealthMetricRecord) -> None:
        await db.execute(
            _HEALTH_UPSERT,
            record.user_id,
            record.metric_type.value,
            record.source_date,
            record.source,
            json.dumps(record.data()),
            record.synced_at,
        )

    async def get(
        self, user_id: str, metric_type: MetricType, source_date: date
    ) -> HealthMetricRecord | None:
        row = await db.fetchrow(
            "SELECT * FROM health_metrics "
            "WHERE user_id = $1 AND metric_type = $2 AND source_date = $3",
            user_id,
            MetricType(metric_type).value,
            source_date,
        )
        return _health_from_row(row) if row else None

    async def list_between(
        self, user_id: str, start: date, end_exclusive: date
    ) -> list[HealthMetricRecord]:
        rows = await db.fetch(
            "SELECT * FROM health_metrics "
            "WHERE user_id = $1 AND source_date >= $2 AND source_date < $3 "
            "ORDER BY source_date, metric_type",
            user_id,
            start,
            end_exclusive,
        )
        return [_health_from_row(r) for r in rows]


# ---------------------------------------------------------------------------
# Check-ins (read-only)
# ---------------------------------------------------------------------------


class PostgresCheckInRepository:
    async def list_for_day(self, user_id: str, day: date) -> list[CheckInRecord]:
        start, end = day_window(day)
        rows = await db.fetch(
            "SELECT id::text AS id, user_id, type, data, created_at FROM check_ins "
            "WHERE user_id = $1 AND created_at >= $2 AND created_at < $3 "
            "ORDER BY created_at",
            user_id,
            start,
            end,
        )
        return [
            CheckInRecord(
                id=r["id"],
                user_id=r["user_id"],
                type=r["type"],
                data=_json(r["data"]) or {},
                created_at=r["created_at"],
            )
            for r in rows
        ]


# ---------------------------------------------------------------------------
# Energy scores
# ---------------------------------------------------------------------------

_SCORE_COLUMNS = ["user_id", "date", "score", "explanation", "actions", "check_in_hash"]
_SCORE_SELECT = (
    "SELECT id::text AS id, user_id, date, score, explanation, actions, "
    "check_in_hash, created_at FROM energy_scores"
)
_SCORE_UPSERT = build_upsert_query(
    "energy_scores",
    _SCORE_COLUMNS + ["created_at"],
    ["user_id", "date"],
    returning=["id::text AS id", "user_id", "date", "score", "explanation", "actions",
               "check_in_hash", "created_at"],
)


def _score_from_row(row: Any) -> EnergyScore:
    return EnergyScore(
        id=row["id"],
        user_id=row["user_id"],
        date=row["date"],
        score=float(row["score"]),
        explanation=row["explanation"],
        actions=[Action(**a) for a in _json(row["actions"]) or []],
        check_in_hash=row["check_in_hash"],
        created_at=row["created_at"],
    )


class PostgresScoreRepository:
    async def get(self, user_id: str, day: date) -> EnergyScore | None:
        row = await db.fetchrow(f"{_SCORE_SELECT} WHERE user_id = $1 AND date = $2", user_id, day)
        return _score_from_row(row) if row else None

    async def get_by_id(self, score_id: str) -> EnergyScore | None:
        row = await db.fetchrow(f"{_SCORE_SELECT} WHERE id::text = $1", score_id)
        return _score_from_row(row) if row else None

    async def upsert(self, user_id: str, day: date, draft: EnergyScoreDraft) -> EnergyScore:
        row = await db.fetchrow(
            _SCORE_UPSERT,
            user_id,
            day,
            draft.score,
            draft.explanation,
            json.dumps([a.model_dump() for a in draft.actions]),
            draft.check_in_hash,
            utc_now(),
        )
        return _score_from_row(row)

    async def list_between(
        self, user_id: str, start: date, end_exclusive: date
    ) -> list[EnergyScore]:
        rows = await db.fetch(
            f"{_SCORE_SELECT} WHERE user_id = $1 AND date >= $2 AND date < $3 "
            "ORDER BY date DESC",
            user_id,
            start,
            end_exclusive,
        )
        return [_score_from_row(r) for r in rows]


# ---------------------------------------------------------------------------
# Explanation feedback (append-only)
# ---------------------------------------------------------------------------


class PostgresFeedbackRepository:
    async def add(self, user_id: str, energy_score_id: str, matched: bool) -> ExplanationFeedback:
        row = await db.fetchrow(
            "INSERT INTO explanation_feedback (user_id, energy_score_id, matched) "
            "VALUES ($1, $2::uuid, $3) "
            "RETURNING id::text AS id, user_id, energy_score_id::text AS energy_score_id, "
            "matched, created_at",
            user_id,
            energy_score_id,
            matched,
        )
        return ExplanationFeedback(**dict(row))

    async def list_for_user(self, user_id: str) -> list[ExplanationFeedback]:
        rows = await db.fetch(
            "SELECT id::text AS id, user_id, energy_score_id::text AS energy_score_id, "
            "matched, created_at FROM explanation_feedback WHERE user_id = $1 "
            "ORDER BY created_at",
            user_id,
        )
        return [ExplanationFeedback(**dict(r)) for r in rows]
