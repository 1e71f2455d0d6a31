"""Score cache/store and explanation feedback.

``ScoreStore`` is the one place scores are read and written: one row per
(user, date), overwritten by every upsert, with no expiry.  A cached score
stays valid until it is regenerated; check-in edits do not invalidate it.

``FeedbackService`` records whether an explanation matched the user's day.
Feedback is refused for transient scores and for scores the user does not own.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta

from clarity.energy.local_score import round_score
from clarity.models.energy import (
    TRANSIENT_SCORE_ID,
    EnergyScore,
    EnergyScoreDraft,
    ExplanationFeedback,
    FeedbackStats,
    ScoreBaseline,
)
from clarity.storage.base import FeedbackRepository, ScoreRepository

logger = logging.getLogger("clarity.energy.store")

BASELINE_DAYS = 7
_MIN_BASELINE_SCORES = 2


class ScoreStore:
    def __init__(self, repository: ScoreRepository) -> None:
        self._repo = repository

    async def get_or_null(self, user_id: str, day: date) -> EnergyScore | None:
        return await self._repo.get(user_id, day)

    async def upsert(self, user_id: str, day: date, draft: EnergyScoreDraft) -> EnergyScore:
        """Write the score for (user, day), replacing any previous one.

        Raises:
            Whatever the backing repository raises; callers decide how to degrade.
        """
        score = await self._repo.upsert(user_id, day, draft)
        logger.debug("Stored score %.1f for %s on %s (id=%s)", score.score, user_id, day, score.id)
        return score

    async def get_by_id(self, score_id: str) -> EnergyScore | None:
        return await self._repo.get_by_id(score_id)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    async def yesterday_score(self, user_id: str, today: date) -> float | None:
        score = await self._repo.get(user_id, today - timedelta(days=1))
        return score.score if score else None

    async def baseline(self, user_id: str, today: date) -> ScoreBaseline | None:
        """Average/min/max over the last week (today included); needs two scores."""
        scores = await self._repo.list_between(
            user_id, today - timedelta(days=BASELINE_DAYS), today + timedelta(days=1)
        )
        values = [s.score for s in scores]
        if len(values) < _MIN_BASELINE_SCORES:
            return None
        return ScoreBaseline(
            average=round_score(sum(values) / len(values)),
            min=round_score(min(values)),
            max=round_score(max(values)),
        )


class FeedbackService:
    def __init__(self, scores: ScoreStore, repository: FeedbackRepository) -> None:
        self._scores = scores
        self._repo = repository

    async def submit(
        self, user_id: str, energy_score_id: str, matched: bool
    ) -> ExplanationFeedback | None:
        """Record feedback; None when the score is transient, unknown or not the user's."""
        if energy_score_id == TRANSIENT_SCORE_ID:
            logger.info("Ignoring feedback for an unsaved score")
            return None

        score = await self._scores.get_by_id(energy_score_id)
        if score is None or score.user_id != user_id:
            logger.info("Feedback for unknown score %s from user %s", energy_score_id, user_id)
            return None

        feedback = await self._repo.add(user_id, energy_score_id, matched)
        logger.info("Feedback recorded for score %s (matched=%s)", energy_score_id, matched)
        return feedback

    async def stats(self, user_id: str) -> FeedbackStats:
        rows = await self._repo.list_for_user(user_id)
        total = len(rows)
        matched = sum(1 for r in rows if r.matched)
        rate = (matched / total) * 100 if total else 0.0
        return FeedbackStats(total=total, matched=matched, match_rate=round_score(rate))
