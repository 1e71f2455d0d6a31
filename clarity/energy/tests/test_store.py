"""Tests for the score store and explanation feedback."""

from __future__ import annotations

from datetime import timedelta

import pytest

from clarity.energy.store import FeedbackService, ScoreStore
from clarity.energy.tests.conftest import OTHER_USER_ID, TEST_DATE, TEST_USER_ID
from clarity.models.energy import TRANSIENT_SCORE_ID, Action, EnergyScoreDraft


def _draft(score: float, explanation: str = "ok") -> EnergyScoreDraft:
    return EnergyScoreDraft(score=score, explanation=explanation)


class TestScoreStore:
    @pytest.mark.asyncio
    async def test_missing_score_is_none(self, score_store: ScoreStore) -> None:
        assert await score_store.get_or_null(TEST_USER_ID, TEST_DATE) is None

    @pytest.mark.asyncio
    async def test_upsert_overwrites_and_keeps_id(self, score_store: ScoreStore, score_repo) -> None:
        first = await score_store.upsert(TEST_USER_ID, TEST_DATE, _draft(4.0, "first"))
        second = await score_store.upsert(
            TEST_USER_ID,
            TEST_DATE,
            EnergyScoreDraft(
                score=6.5,
                explanation="second",
                actions=[Action(id="walk", title="Take a 10-minute walk")],
            ),
        )

        assert second.id == first.id
        assert len(score_repo) == 1
        stored = await score_store.get_or_null(TEST_USER_ID, TEST_DATE)
        assert stored.score == 6.5
        assert stored.explanation == "second"
        assert [a.id for a in stored.actions] == ["walk"]

    @pytest.mark.asyncio
    async def test_scores_are_per_user_and_day(self, score_store: ScoreStore, score_repo) -> None:
        await score_store.upsert(TEST_USER_ID, TEST_DATE, _draft(4.0))
        await score_store.upsert(OTHER_USER_ID, TEST_DATE, _draft(5.0))
        await score_store.upsert(TEST_USER_ID, TEST_DATE - timedelta(days=1), _draft(6.0))

        assert len(score_repo) == 3
        assert (await score_store.get_or_null(OTHER_USER_ID, TEST_DATE)).score == 5.0

    @pytest.mark.asyncio
    async def test_get_by_id(self, score_store: ScoreStore) -> None:
        saved = await score_store.upsert(TEST_USER_ID, TEST_DATE, _draft(4.0))
        assert (await score_store.get_by_id(saved.id)) == saved
        assert await score_store.get_by_id("missing") is None


class TestHistory:
    @pytest.mark.asyncio
    async def test_yesterday_score(self, score_store: ScoreStore) -> None:
        assert await score_store.yesterday_score(TEST_USER_ID, TEST_DATE) is None
        await score_store.upsert(TEST_USER_ID, TEST_DATE - timedelta(days=1), _draft(6.2))
        assert await score_store.yesterday_score(TEST_USER_ID, TEST_DATE) == 6.2

    @pytest.mark.asyncio
    async def test_baseline_needs_two_scores(self, score_store: ScoreStore) -> None:
        await score_store.upsert(TEST_USER_ID, TEST_DATE, _draft(5.0))
        assert await score_store.baseline(TEST_USER_ID, TEST_DATE) is None

    @pytest.mark.asyncio
    async def test_baseline_over_last_week(self, score_store: ScoreStore) -> None:
        for offset, value in [(0, 4.0), (1, 5.0), (3, 6.0), (7, 7.5), (8, 1.0)]:
            await score_store.upsert(
                TEST_USER_ID, TEST_DATE - timedelta(days=offset), _draft(value)
            )
        await score_store.upsert(OTHER_USER_ID, TEST_DATE, _draft(10.0))

        baseline = await score_store.baseline(TEST_USER_ID, TEST_DATE)

        # 8 days back and the other user are excluded
        assert baseline.average == 5.6
        assert baseline.min == 4.0
        assert baseline.max == 7.5


class TestFeedback:
    @pytest.mark.asyncio
    async def test_submit_for_own_score(
        self, score_store: ScoreStore, feedback_service: FeedbackService
    ) -> None:
        saved = await score_store.upsert(TEST_USER_ID, TEST_DATE, _draft(4.0))

        feedback = await feedback_service.submit(TEST_USER_ID, saved.id, True)

        assert feedback is not None
        assert feedback.energy_score_id == saved.id
        assert feedback.matched is True

    @pytest.mark.asyncio
    async def test_transient_score_refused(self, feedback_service: FeedbackService) -> None:
        assert await feedback_service.submit(TEST_USER_ID, TRANSIENT_SCORE_ID, True) is None
        assert (await feedback_service.stats(TEST_USER_ID)).total == 0

    @pytest.mark.asyncio
    async def test_unknown_or_foreign_score_refused(
        self, score_store: ScoreStore, feedback_service: FeedbackService
    ) -> None:
        theirs = await score_store.upsert(OTHER_USER_ID, TEST_DATE, _draft(4.0))

        assert await feedback_service.submit(TEST_USER_ID, "nope", False) is None
        assert await feedback_service.submit(TEST_USER_ID, theirs.id, False) is None

    @pytest.mark.asyncio
    async def test_stats(self, score_store: ScoreStore, feedback_service: FeedbackService) -> None:
        saved = await score_store.upsert(TEST_USER_ID, TEST_DATE, _draft(4.0))
        for matched in (True, True, False):
            await feedback_service.submit(TEST_USER_ID, saved.id, matched)

        stats = await feedback_service.stats(TEST_USER_ID)

        assert stats.total == 3
        assert stats.matched == 2
        assert stats.match_rate == 66.7

    @pytest.mark.asyncio
    async def test_stats_without_feedback(self, feedback_service: FeedbackService) -> None:
        stats = await feedback_service.stats(TEST_USER_ID)
        assert (stats.total, stats.matched, stats.match_rate) == (0, 0, 0.0)
