"""In-process repositories with the same keyed-upsert semantics as Postgres.

Used in development, in synthetic-data mode and throughout the tests.
"""

from __future__ import annotations

import uuid
from datetime import date

from clarity.models.base import utc_now
from clarity.models.checkins import CheckInRecord
from clarity.models.energy import EnergyScore, EnergyScoreDraft, ExplanationFeedback
from clarity.models.health import HealthMetricRecord, MetricType
from clarity.storage.base import day_window


class InMemoryHealthMetricRepository:
    def __init__(self) -> None:
        self._records: dict[tuple[str, MetricType, date], HealthMetricRecord] = {}

    async def upsert(self, record: HealthMetricRecord) -> None:
        # Full replacement, never a field merge.
        self._records[record.key] = record.model_copy()

    async def get(
        self, user_id: str, metric_type: MetricType, source_date: date
    ) -> HealthMetricRecord | None:
        return self._records.get((user_id, MetricType(metric_type), source_date))

    async def list_between(
        self, user_id: str, start: date, end_exclusive: date
    ) -> list[HealthMetricRecord]:
        rows = [
            r
            for (uid, _, day), r in self._records.items()
            if uid == user_id and start <= day < end_exclusive
        ]
        return sorted(rows, key=lambda r: (r.source_date, r.metric_type.value))

    def __len__(self) -> int:
        return len(self._records)


class InMemoryCheckInRepository:
    def __init__(self, records: list[CheckInRecord] | None = None) -> None:
        self._records: list[CheckInRecord] = list(records or [])

    def add(self, record: CheckInRecord) -> None:
        self._records.append(record)

    async def list_for_day(self, user_id: str, day: date) -> list[CheckInRecord]:
        start, end = day_window(day)
        return sorted(
            (
                r
                for r in self._records
                if r.user_id == user_id and start <= r.created_at < end
            ),
            key=lambda r: r.created_at,
        )


class InMemoryScoreRepository:
    def __init__(self) -> None:
        self._scores: dict[tuple[str, date], EnergyScore] = {}

    async def get(self, user_id: str, day: date) -> EnergyScore | None:
        return self._scores.get((user_id, day))

    async def get_by_id(self, score_id: str) -> EnergyScore | None:
        for score in self._scores.values():
            if score.id == score_id:
                return score
        return None

    async def upsert(self, user_id: str, day: date, draft: EnergyScoreDraft) -> EnergyScore:
        existing = self._scores.get((user_id, day))
        score = EnergyScore(
            id=existing.id if existing else str(uuid.uuid4()),
            user_id=user_id,
            date=day,
            score=draft.score,
            explanation=draft.explanation,
            actions=list(draft.actions),
            check_in_hash=draft.check_in_hash,
            created_at=utc_now(),
        )
        self._scores[(user_id, day)] = score
        return score

    async def list_between(
        self, user_id: str, start: date, end_exclusive: date
    ) -> list[EnergyScore]:
        rows = [
            s
            for (uid, day), s in self._scores.items()
            if uid == user_id and start <= day < end_exclusive
        ]
        return sorted(rows, key=lambda s: s.date, reverse=True)

    def __len__(self) -> int:
        return len(self._scores)


class InMemoryFeedbackRepository:
    def __init__(self) -> None:
        self._rows: list[ExplanationFeedback] = []

    async def add(self, user_id: str, energy_score_id: str, matched: bool) -> ExplanationFeedback:
        row = ExplanationFeedback(
            id=str(uuid.uuid4()),
            user_id=user_id,
            energy_score_id=energy_score_id,
            matched=matched,
        )
        self._rows.append(row)
        return row

    async def list_for_user(self, user_id: str) -> list[ExplanationFeedback]:
        return [r for r in self._rows if r.user_id == user_id]
