"""Energy score endpoints: today's score, regeneration and history."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter

from clarity.dependencies import CurrentUser, Services
from clarity.energy.checkins import check_in_status
from clarity.models.checkins import CheckInStatus
from clarity.models.energy import EnergyScoreResult, ScoreBaseline, YesterdayScore

router = APIRouter(prefix="/energy", tags=["energy"])


def _today():
    return datetime.now(timezone.utc).date()


@router.get("/today", response_model=EnergyScoreResult)
async def get_today(user: CurrentUser, services: Services) -> EnergyScoreResult:
    outcome = await services.engine.evaluate(user.session())
    return EnergyScoreResult(state=outcome.state.value, score=outcome.score)


@router.post("/regenerate", response_model=EnergyScoreResult)
async def regenerate(user: CurrentUser, services: Services) -> EnergyScoreResult:
    outcome = await services.engine.evaluate(user.session(), regenerate=True)
    return EnergyScoreResult(state=outcome.state.value, score=outcome.score)


@router.get("/yesterday", response_model=YesterdayScore)
async def get_yesterday(user: CurrentUser, services: Services) -> YesterdayScore:
    return YesterdayScore(score=await services.scores.yesterday_score(user.user_id, _today()))


@router.get("/baseline", response_model=ScoreBaseline | None)
async def get_baseline(user: CurrentUser, services: Services) -> ScoreBaseline | None:
    return await services.scores.baseline(user.user_id, _today())


@router.get("/check-ins/status", response_model=CheckInStatus)
async def get_check_in_status(user: CurrentUser, services: Services) -> CheckInStatus:
    return check_in_status(await services.check_ins.list_for_day(user.user_id, _today()))
