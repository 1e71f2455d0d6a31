"""Energy score engine: remote first, deterministic local fallback.

Per (user, date) request the engine moves through::

    NOT_REQUESTED -> REMOTE_PENDING -> REMOTE_SUCCESS
                                    -> REMOTE_FAILED_OR_TIMED_OUT
                                         -> LOCAL_FALLBACK_COMPUTED
                                         -> LOCAL_FALLBACK_UNAVAILABLE

A remote score is returned as-is; the server owns its cache.  A local
score is upserted into the score store, and if that write fails it is
still returned under the transient id so the user sees a value.

Public methods never raise.  No session, no check-ins or an unexpected
failure all come back as ``None``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Callable

from clarity.energy.checkins import aggregate, check_in_fingerprint
from clarity.energy.local_score import compute_local_score
from clarity.energy.remote import RemoteScoreClient, RemoteScoreError, RemoteScoreTimeout
from clarity.energy.store import ScoreStore
from clarity.models.energy import TRANSIENT_SCORE_ID, EnergyScore, EnergyScoreDraft
from clarity.models.health import MetricType
from clarity.storage.base import CheckInRepository, HealthMetricRepository

logger = logging.getLogger("clarity.energy.engine")


class ScoreState(str, Enum):
    NOT_REQUESTED = "not_requested"
    REMOTE_PENDING = "remote_pending"
    REMOTE_SUCCESS = "remote_success"
    REMOTE_FAILED_OR_TIMED_OUT = "remote_failed_or_timed_out"
    LOCAL_FALLBACK_COMPUTED = "local_fallback_computed"
    LOCAL_FALLBACK_UNAVAILABLE = "local_fallback_unavailable"


@dataclass(frozen=True)
class Session:
    """Authenticated caller: user id plus the bearer token forwarded upstream."""

    user_id: str
    access_token: str


@dataclass
class ScoreOutcome:
    state: ScoreState
    score: EnergyScore | None = None

    @property
    def persisted(self) -> bool:
        return self.score is not None and not self.score.is_transient


class EnergyScoreEngine:
    def __init__(
        self,
        remote: RemoteScoreClient,
        check_ins: CheckInRepository,
        store: ScoreStore,
        health_metrics: HealthMetricRepository | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._remote = remote
        self._check_ins = check_ins
        self._store = store
        self._health_metrics = health_metrics
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def get_today_score(self, session: Session | None) -> EnergyScore | None:
        return (await self.evaluate(session)).score

    async def regenerate(self, session: Session | None) -> EnergyScore | None:
        """Force a fresh remote generation; falls back locally only after trying."""
        return (await self.evaluate(session, regenerate=True)).score

    async def evaluate(
        self, session: Session | None, regenerate: bool = False, today: date | None = None
    ) -> ScoreOutcome:
        """Run the state machine once and report where it ended."""
        if session is None:
            logger.info("No session; skipping energy score")
            return ScoreOutcome(ScoreState.NOT_REQUESTED)

        day = today or self._clock().date()
        try:
            return await self._evaluate(session, day, regenerate)
        except Exception:
            logger.exception("Energy score for user %s on %s failed", session.user_id, day)
            return ScoreOutcome(ScoreState.LOCAL_FALLBACK_UNAVAILABLE)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    async def _evaluate(self, session: Session, day: date, regenerate: bool) -> ScoreOutcome:
        logger.debug("%s: %s", ScoreState.REMOTE_PENDING.value, session.user_id)
        try:
            if regenerate:
                score = await self._remote.regenerate(session.user_id, session.access_token)
            else:
                score = await self._remote.fetch_today(session.user_id, session.access_token, day)
            return ScoreOutcome(ScoreState.REMOTE_SUCCESS, score)
        except RemoteScoreTimeout as exc:
            logger.warning("Remote energy score timed out, using local fallback: %s", exc)
        except RemoteScoreError as exc:
            logger.warning("Remote energy score failed, using local fallback: %s", exc)
        except Exception:
            logger.exception("Remote energy score raised unexpectedly, using local fallback")

        return await self._local_fallback(session.user_id, day)

    async def _local_fallback(self, user_id: str, day: date) -> ScoreOutcome:
        check_ins = await self._check_ins.list_for_day(user_id, day)
        if not check_ins:
            logger.info("No check-ins for %s on %s; nothing to score", user_id, day)
            return ScoreOutcome(ScoreState.LOCAL_FALLBACK_UNAVAILABLE)

        inputs = aggregate(check_ins, await self._last_night_sleep(user_id, day))
        local = compute_local_score(inputs)
        draft = EnergyScoreDraft(
            score=local.score,
            explanation=local.explanation,
            actions=local.actions,
            check_in_hash=check_in_fingerprint(check_ins),
        )

        try:
            saved = await self._store.upsert(user_id, day, draft)
        except Exception as exc:
            logger.warning("Could not save local score for %s on %s: %s", user_id, day, exc)
            saved = EnergyScore(
                id=TRANSIENT_SCORE_ID,
                user_id=user_id,
                date=day,
                created_at=self._clock(),
                **draft.model_dump(),
            )

        logger.info("Local energy score %.1f for %s on %s", saved.score, user_id, day)
        return ScoreOutcome(ScoreState.LOCAL_FALLBACK_COMPUTED, saved)

    async def _last_night_sleep(self, user_id: str, day: date) -> float | None:
        if self._health_metrics is None:
            return None
        try:
            record = await self._health_metrics.get(
                user_id, MetricType.SLEEP, day - timedelta(days=1)
            )
        except Exception as exc:
            logger.warning("Could not read last night's sleep for %s: %s", user_id, exc)
            return None
        return record.sleep_duration_hours if record else None
