"""Explanation feedback endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException

from clarity.dependencies import CurrentUser, Services
from clarity.models.energy import ExplanationFeedback, FeedbackCreate, FeedbackStats

router = APIRouter(prefix="/feedback", tags=["feedback"])


@router.post("", response_model=ExplanationFeedback, status_code=201)
async def submit_feedback(
    user: CurrentUser, services: Services, body: FeedbackCreate
) -> ExplanationFeedback:
    feedback = await services.feedback.submit(user.user_id, body.energy_score_id, body.matched)
    if feedback is None:
        raise HTTPException(status_code=404, detail="Energy score not found")
    return feedback


@router.get("/stats", response_model=FeedbackStats)
async def feedback_stats(user: CurrentUser, services: Services) -> FeedbackStats:
    return await services.feedback.stats(user.user_id)
