"""Energy score, suggested actions and explanation feedback."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import Field, StrictBool

from clarity.models.base import ClarityBase, utc_now

#: Id carried by a locally computed score that could not be persisted.
TRANSIENT_SCORE_ID = "temp"


class Action(ClarityBase):
    id: str
    title: str
    reason: str | None = None


class EnergyScore(ClarityBase):
    """One daily score per (user, date)."""

    id: str
    user_id: str
    score: float = Field(ge=1, le=10)
    explanation: str
    actions: list[Action] = Field(default_factory=list)
    date: date
    created_at: datetime = Field(default_factory=utc_now)
    check_in_hash: str | None = None

    @property
    def is_transient(self) -> bool:
        return self.id == TRANSIENT_SCORE_ID


class EnergyScoreDraft(ClarityBase):
    """Score payload before it has been assigned an id by the store."""

    score: float = Field(ge=1, le=10)
    explanation: str
    actions: list[Action] = Field(default_factory=list, max_length=3)
    check_in_hash: str | None = None


class ExplanationFeedback(ClarityBase):
    id: str
    user_id: str
    energy_score_id: str
    matched: bool
    created_at: datetime = Field(default_factory=utc_now)


class FeedbackStats(ClarityBase):
    total: int
    matched: int
    match_rate: float


class ScoreBaseline(ClarityBase):
    average: float
    min: float
    max: float


# ---------- API payloads ----------


class EnergyScoreResult(ClarityBase):
    """Score plus the engine state it ended in; ``score`` is None when nothing could be scored."""

    state: str
    score: EnergyScore | None = None


class YesterdayScore(ClarityBase):
    score: float | None = None


class FeedbackCreate(ClarityBase):
    energy_score_id: str = Field(min_length=1)
    matched: StrictBool
