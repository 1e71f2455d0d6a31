"""Shared fixtures for the energy score engine tests."""

from __future__ import annotations

from datetime import date, datetime, timezone
from itertools import count
from typing import Any

import pytest

from clarity.energy.store import FeedbackService, ScoreStore
from clarity.models.checkins import CheckInRecord, CheckInType
from clarity.storage.memory import (
    InMemoryCheckInRepository,
    InMemoryFeedbackRepository,
    InMemoryHealthMetricRepository,
    InMemoryScoreRepository,
)

# Canonical test user and day
TEST_USER_ID = "user_test_123"
OTHER_USER_ID = "user_other_456"
TEST_DATE = date(2026, 2, 23)
TEST_NOW = datetime(2026, 2, 23, 15, 0, tzinfo=timezone.utc)

_ids = count(1)


def make_check_in(
    type: str,
    data: dict[str, Any],
    hour: int = 8,
    user_id: str = TEST_USER_ID,
    day: date = TEST_DATE,
    id: str | None = None,
) -> CheckInRecord:
    return CheckInRecord(
        id=id or f"ci-{next(_ids)}",
        user_id=user_id,
        type=CheckInType(type),
        data=data,
        created_at=datetime(day.year, day.month, day.day, hour, tzinfo=timezone.utc),
    )


@pytest.fixture
def check_in_repo() -> InMemoryCheckInRepository:
    return InMemoryCheckInRepository()


@pytest.fixture
def score_repo() -> InMemoryScoreRepository:
    return InMemoryScoreRepository()


@pytest.fixture
def score_store(score_repo: InMemoryScoreRepository) -> ScoreStore:
    return ScoreStore(score_repo)


@pytest.fixture
def feedback_service(score_store: ScoreStore) -> FeedbackService:
    return FeedbackService(score_store, InMemoryFeedbackRepository())


@pytest.fixture
def health_repo() -> InMemoryHealthMetricRepository:
    return InMemoryHealthMetricRepository()
