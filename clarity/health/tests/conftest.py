"""Shared fixtures for health source, selector and reconciliation tests."""

from __future__ import annotations

import random
from datetime import date, datetime, timezone

import pytest

from clarity.config_loader import EngineConfig, load_engine_config
from clarity.health.adapters.native import HealthSample
from clarity.health.adapters.synthetic import SyntheticAdapter
from clarity.storage.local_state import LocalStateStore
from clarity.storage.memory import InMemoryHealthMetricRepository

# Canonical test user and day
TEST_USER_ID = "user_test_123"
TEST_DATE = date(2026, 2, 23)
TEST_NOW = datetime(2026, 2, 24, 8, 0, tzinfo=timezone.utc)


def at(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=timezone.utc)


class FakeHealthStore:
    """In-memory stand-in for a native health store bridge."""

    def __init__(
        self,
        supported: bool = True,
        permitted: bool = True,
        grant_on_request: bool = True,
    ) -> None:
        self.supported = supported
        self.permitted = permitted
        self.grant_on_request = grant_on_request
        self.permission_requests = 0
        self.samples: dict[str, list[HealthSample]] = {
            "sleep": [],
            "steps": [],
            "hrv": [],
            "rhr": [],
            "calories": [],
        }
        self.failing: set[str] = set()

    def is_supported(self) -> bool:
        return self.supported

    async def has_permission(self) -> bool:
        return self.permitted

    async def request_permission(self) -> bool:
        self.permission_requests += 1
        self.permitted = self.grant_on_request
        return self.permitted

    async def _read(self, kind: str, start: datetime, end: datetime) -> list[HealthSample]:
        if kind in self.failing:
            raise RuntimeError(f"{kind} read failed")
        return [s for s in self.samples[kind] if start <= s.start < end]

    async def read_sleep_sessions(self, start: datetime, end: datetime) -> list[HealthSample]:
        return await self._read("sleep", start, end)

    async def read_steps(self, start: datetime, end: datetime) -> list[HealthSample]:
        return await self._read("steps", start, end)

    async def read_heart_rate_variability(self, start: datetime, end: datetime) -> list[HealthSample]:
        return await self._read("hrv", start, end)

    async def read_resting_heart_rate(self, start: datetime, end: datetime) -> list[HealthSample]:
        return await self._read("rhr", start, end)

    async def read_active_calories(self, start: datetime, end: datetime) -> list[HealthSample]:
        return await self._read("calories", start, end)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def engine_config() -> EngineConfig:
    """Load the real engine config for tests."""
    return load_engine_config()


@pytest.fixture
def synthetic_adapter() -> SyntheticAdapter:
    return SyntheticAdapter(rng=random.Random(42))


@pytest.fixture
def health_store() -> FakeHealthStore:
    return FakeHealthStore()


@pytest.fixture
def metrics_repo() -> InMemoryHealthMetricRepository:
    return InMemoryHealthMetricRepository()


@pytest.fixture
def local_state() -> LocalStateStore:
    return LocalStateStore(path=None)
