"""Tests for the energy score engine's remote-first / local-fallback flow."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from clarity.energy.engine import EnergyScoreEngine, ScoreState, Session
from clarity.energy.remote import RemoteScoreClient, RemoteScoreError, RemoteScoreTimeout
from clarity.energy.store import ScoreStore
from clarity.energy.tests.conftest import TEST_DATE, TEST_NOW, TEST_USER_ID, make_check_in
from clarity.models.energy import TRANSIENT_SCORE_ID, EnergyScore, EnergyScoreDraft
from clarity.models.health import HealthMetricRecord, MetricType
from clarity.storage.memory import (
    InMemoryCheckInRepository,
    InMemoryHealthMetricRepository,
    InMemoryScoreRepository,
)

SESSION = Session(user_id=TEST_USER_ID, access_token="jwt-token")

REMOTE = EnergyScore(
    id="remote-1",
    user_id=TEST_USER_ID,
    score=7.4,
    explanation="From the server.",
    actions=[],
    date=TEST_DATE,
)


def _outcome(result: object) -> AsyncMock:
    if isinstance(result, Exception):
        return AsyncMock(side_effect=result)
    return AsyncMock(return_value=result)


def _remote(today: object = REMOTE, regenerate: object = REMOTE) -> MagicMock:
    remote = MagicMock(spec=RemoteScoreClient)
    remote.fetch_today = _outcome(today)
    remote.regenerate = _outcome(regenerate)
    return remote


def _engine(
    remote: MagicMock,
    check_ins: InMemoryCheckInRepository,
    store: ScoreStore,
    health: InMemoryHealthMetricRepository | None = None,
) -> EnergyScoreEngine:
    return EnergyScoreEngine(remote, check_ins, store, health_metrics=health, clock=lambda: TEST_NOW)


@pytest.fixture
def tired_morning(check_in_repo: InMemoryCheckInRepository) -> InMemoryCheckInRepository:
    check_in_repo.add(make_check_in("morning", {"rested_score": 3, "motivation_level": "low"}))
    return check_in_repo


class TestRemotePath:
    @pytest.mark.asyncio
    async def test_remote_score_returned_as_is(
        self, tired_morning: InMemoryCheckInRepository, score_store: ScoreStore,
        score_repo: InMemoryScoreRepository,
    ) -> None:
        remote = _remote()
        outcome = await _engine(remote, tired_morning, score_store).evaluate(SESSION)

        assert outcome.state is ScoreState.REMOTE_SUCCESS
        assert outcome.score is REMOTE
        remote.fetch_today.assert_awaited_once_with(TEST_USER_ID, "jwt-token", TEST_DATE)
        assert len(score_repo) == 0  # the server owns remote caching

    @pytest.mark.asyncio
    async def test_not_authenticated(
        self, tired_morning: InMemoryCheckInRepository, score_store: ScoreStore
    ) -> None:
        remote = _remote()
        engine = _engine(remote, tired_morning, score_store)

        assert await engine.get_today_score(None) is None
        assert await engine.regenerate(None) is None
        remote.fetch_today.assert_not_called()
        remote.regenerate.assert_not_called()


class TestLocalFallback:
    @pytest.mark.asyncio
    async def test_timeout_falls_back_and_persists(
        self, tired_morning: InMemoryCheckInRepository, score_store: ScoreStore,
        score_repo: InMemoryScoreRepository,
    ) -> None:
        engine = _engine(_remote(today=RemoteScoreTimeout("15s")), tired_morning, score_store)

        outcome = await engine.evaluate(SESSION)

        assert outcome.state is ScoreState.LOCAL_FALLBACK_COMPUTED
        assert outcome.score.score == 3.7
        assert outcome.persisted is True
        stored = await score_store.get_or_null(TEST_USER_ID, TEST_DATE)
        assert stored == outcome.score
        assert stored.check_in_hash is not None
        assert len(score_repo) == 1

    @pytest.mark.asyncio
    async def test_malformed_remote_is_a_failure(
        self, tired_morning: InMemoryCheckInRepository, score_store: ScoreStore
    ) -> None:
        engine = _engine(_remote(today=RemoteScoreError("malformed")), tired_morning, score_store)
        score = await engine.get_today_score(SESSION)
        assert score.score == 3.7

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error", [httpx.InvalidURL("bad url"), RuntimeError("client bug"), TypeError("bad arg")]
    )
    async def test_any_remote_error_falls_back(
        self,
        error: Exception,
        tired_morning: InMemoryCheckInRepository,
        score_store: ScoreStore,
    ) -> None:
        engine = _engine(_remote(today=error, regenerate=error), tired_morning, score_store)

        outcome = await engine.evaluate(SESSION)
        assert outcome.state is ScoreState.LOCAL_FALLBACK_COMPUTED
        assert outcome.score.score == 3.7

        regenerated = await engine.evaluate(SESSION, regenerate=True)
        assert regenerated.state is ScoreState.LOCAL_FALLBACK_COMPUTED

    @pytest.mark.asyncio
    async def test_no_check_ins_means_no_score(
        self, check_in_repo: InMemoryCheckInRepository, score_store: ScoreStore,
        score_repo: InMemoryScoreRepository,
    ) -> None:
        engine = _engine(_remote(today=RemoteScoreError("down")), check_in_repo, score_store)

        outcome = await engine.evaluate(SESSION)

        assert outcome.state is ScoreState.LOCAL_FALLBACK_UNAVAILABLE
        assert outcome.score is None
        assert len(score_repo) == 0

    @pytest.mark.asyncio
    async def test_other_days_check_ins_are_ignored(
        self, check_in_repo: InMemoryCheckInRepository, score_store: ScoreStore
    ) -> None:
        check_in_repo.add(
            make_check_in("morning", {"rested_score": 9}, day=TEST_DATE - timedelta(days=1))
        )
        check_in_repo.add(make_check_in("morning", {"rested_score": 9}, user_id="someone_else"))
        engine = _engine(_remote(today=RemoteScoreError("down")), check_in_repo, score_store)
        assert await engine.get_today_score(SESSION) is None

    @pytest.mark.asyncio
    async def test_failed_upsert_returns_transient_score(
        self, tired_morning: InMemoryCheckInRepository
    ) -> None:
        repo = InMemoryScoreRepository()
        repo.upsert = AsyncMock(side_effect=ConnectionError("db down"))
        engine = _engine(_remote(today=RemoteScoreError("down")), tired_morning, ScoreStore(repo))

        outcome = await engine.evaluate(SESSION)

        assert outcome.state is ScoreState.LOCAL_FALLBACK_COMPUTED
        assert outcome.score.id == TRANSIENT_SCORE_ID
        assert outcome.score.is_transient is True
        assert outcome.persisted is False
        assert outcome.score.score == 3.7
        assert len(outcome.score.actions) == 3

    @pytest.mark.asyncio
    async def test_short_sleep_from_health_data_adds_action(
        self, tired_morning: InMemoryCheckInRepository, score_store: ScoreStore,
        health_repo: InMemoryHealthMetricRepository,
    ) -> None:
        await health_repo.upsert(
            HealthMetricRecord(
                user_id=TEST_USER_ID,
                metric_type=MetricType.SLEEP,
                source_date=TEST_DATE - timedelta(days=1),
                source="synthetic",
                sleep_duration_hours=5.0,
                sleep_quality="poor",
            )
        )
        engine = _engine(
            _remote(today=RemoteScoreError("down")), tired_morning, score_store, health_repo
        )
        score = await engine.get_today_score(SESSION)
        assert [a.id for a in score.actions] == ["caffeine", "walk", "sleep"]

    @pytest.mark.asyncio
    async def test_unexpected_error_never_escapes(self, score_store: ScoreStore) -> None:
        check_ins = MagicMock()
        check_ins.list_for_day = AsyncMock(side_effect=RuntimeError("boom"))
        engine = _engine(_remote(today=RemoteScoreError("down")), check_ins, score_store)
        assert await engine.get_today_score(SESSION) is None


class TestRegenerate:
    @pytest.mark.asyncio
    async def test_always_tries_remote_regeneration(
        self, tired_morning: InMemoryCheckInRepository, score_store: ScoreStore
    ) -> None:
        remote = _remote()
        score = await _engine(remote, tired_morning, score_store).regenerate(SESSION)

        assert score is REMOTE
        remote.regenerate.assert_awaited_once_with(TEST_USER_ID, "jwt-token")
        remote.fetch_today.assert_not_called()

    @pytest.mark.asyncio
    async def test_falls_back_after_trying_remote(
        self, tired_morning: InMemoryCheckInRepository, score_store: ScoreStore
    ) -> None:
        remote = _remote(regenerate=RemoteScoreTimeout("20s"))
        engine = _engine(remote, tired_morning, score_store)

        await score_store.upsert(
            TEST_USER_ID, TEST_DATE, EnergyScoreDraft(score=9.0, explanation="stale")
        )
        score = await engine.regenerate(SESSION)

        remote.regenerate.assert_awaited_once()
        assert score.score == 3.7
        assert (await score_store.get_or_null(TEST_USER_ID, TEST_DATE)).explanation != "stale"
