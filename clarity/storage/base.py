"""Repository contracts shared by the in-memory and Postgres backends.

All writes to ``health_metrics`` and ``energy_scores`` are keyed upserts:
writing the same key twice leaves only the latest payload.  Feedback is
append-only.  Check-ins are read-only from the engine's point of view.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Protocol

from clarity.models.checkins import CheckInRecord
from clarity.models.energy import EnergyScore, EnergyScoreDraft, ExplanationFeedback
from clarity.models.health import HealthMetricRecord, MetricType


class HealthMetricRepository(Protocol):
    async def upsert(self, record: HealthMetricRecord) -> None: ...

    async def get(
        self, user_id: str, metric_type: MetricType, source_date: date
    ) -> HealthMetricRecord | None: ...

    async def list_between(
        self, user_id: str, start: date, end_exclusive: date
    ) -> list[HealthMetricRecord]: ...


class CheckInRepository(Protocol):
    async def list_for_day(self, user_id: str, day: date) -> list[CheckInRecord]: ...


class ScoreRepository(Protocol):
    async def get(self, user_id: str, day: date) -> EnergyScore | None: ...

    async def get_by_id(self, score_id: str) -> EnergyScore | None: ...

    async def upsert(self, user_id: str, day: date, draft: EnergyScoreDraft) -> EnergyScore: ...

    async def list_between(
        self, user_id: str, start: date, end_exclusive: date
    ) -> list[EnergyScore]: ...


class FeedbackRepository(Protocol):
    async def add(self, user_id: str, energy_score_id: str, matched: bool) -> ExplanationFeedback: ...

    async def list_for_user(self, user_id: str) -> list[ExplanationFeedback]: ...


def day_window(day: date, tz: timezone = timezone.utc) -> tuple[datetime, datetime]:
    """``[start, end)`` timestamps covering one calendar day."""
    start = datetime(day.year, day.month, day.day, tzinfo=tz)
    return start, start + timedelta(days=1)
