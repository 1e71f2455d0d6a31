"""Deterministic local energy score, used when the remote score is unavailable.

Score formula (parameters from engine_config.yaml):
    - start from a neutral baseline (5.0)
    - blend in the morning rested rating: score * 0.6 + rested * 0.4
    - add fixed deltas for categorical answers and habit flags
    - clamp to [1, 10], round to one decimal

The blend is applied before any delta because it is a weighted average,
not an offset.  Deltas are independent and additive.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

from clarity.config_loader import LocalScoringConfig, get_engine_config
from clarity.energy.checkins import ScoringInputs
from clarity.models.energy import Action

logger = logging.getLogger("clarity.energy.local")

MAX_ACTIONS = 3

# Last night's sleep below this many hours triggers the sleep suggestion.
_SHORT_SLEEP_HOURS = 6.0

NO_CHECK_INS_EXPLANATION = "Complete your first check-in to get personalized energy insights!"

CAFFEINE = Action(id="caffeine", title="Delay caffeine until 9:30am", reason="Boosts natural alertness")
WALK = Action(id="walk", title="Take a 10-minute walk", reason="Movement boosts energy")
SLEEP = Action(
    id="sleep",
    title="Plan an earlier bedtime tonight",
    reason="You slept under 6 hours last night",
)
HYDRATE = Action(id="hydrate", title="Stay hydrated", reason="Water maintains energy levels")
BREATHE = Action(id="breathe", title="Take 5 deep breaths", reason="Resets your nervous system")
STRETCH = Action(id="stretch", title="Do a quick stretch", reason="Releases physical tension")


@dataclass
class LocalScore:
    """Result of the local heuristic."""

    score: float
    explanation: str
    actions: list[Action] = field(default_factory=list)


def round_score(value: float) -> float:
    """Round half-up to one decimal."""
    return math.floor(value * 10 + 0.5) / 10


# ---------------------------------------------------------------------------
# Score
# ---------------------------------------------------------------------------


def compute_score(inputs: ScoringInputs, config: LocalScoringConfig | None = None) -> float:
    cfg = config or get_engine_config().local_scoring
    score = cfg.baseline

    if inputs.rested_score is not None:
        score = score * (1 - cfg.rested_weight) + inputs.rested_score * cfg.rested_weight

    if inputs.motivation_level == "low":
        score += cfg.delta("motivation_low")
    elif inputs.motivation_level == "high":
        score += cfg.delta("motivation_high")

    if inputs.midday_energy == "low":
        score += cfg.delta("midday_energy_low")
    elif inputs.midday_energy == "high":
        score += cfg.delta("midday_energy_high")

    if inputs.day_vs_expectations == "worse":
        score += cfg.delta("day_worse")
    elif inputs.day_vs_expectations == "better":
        score += cfg.delta("day_better")

    if inputs.late_caffeine:
        score += cfg.delta("late_caffeine")
    if inputs.skipped_meals:
        score += cfg.delta("skipped_meals")
    if inputs.alcohol:
        score += cfg.delta("alcohol")

    return round_score(min(max(score, cfg.min_score), cfg.max_score))


# ---------------------------------------------------------------------------
# Explanation and actions
# ---------------------------------------------------------------------------


def explain(inputs: ScoringInputs, score: float) -> str:
    if not inputs.has_check_ins:
        return NO_CHECK_INS_EXPLANATION

    rested = inputs.rested_score
    if rested is not None and rested < 5:
        return (
            "You started the day feeling tired. Consider taking short breaks "
            "and delaying caffeine for better alertness."
        )
    if rested is not None and rested >= 7:
        return (
            "You started the day well-rested! This is a great foundation for "
            "maintaining energy throughout the day."
        )

    if score >= 7:
        return "You're having a great energy day! Keep up the positive habits."
    if score >= 5:
        return (
            "Your energy is moderate today. A short walk or break might help "
            "boost your afternoon."
        )
    return (
        "Your energy is lower than usual. Be kind to yourself and focus on "
        "small, achievable tasks."
    )


def suggest_actions(inputs: ScoringInputs, score: float) -> list[Action]:
    """Up to three actions: rule matches first, then generic fillers."""
    actions: list[Action] = []

    if inputs.rested_score is not None and inputs.rested_score < 5:
        actions.append(CAFFEINE)
    if score < 6:
        actions.append(WALK)
    if (
        inputs.last_night_sleep_hours is not None
        and inputs.last_night_sleep_hours < _SHORT_SLEEP_HOURS
    ):
        actions.append(SLEEP)

    fillers = [BREATHE, HYDRATE, STRETCH] if score < 5 else [HYDRATE, STRETCH, BREATHE]
    for filler in fillers:
        if len(actions) >= MAX_ACTIONS:
            break
        if filler not in actions:
            actions.append(filler)

    return actions[:MAX_ACTIONS]


def compute_local_score(
    inputs: ScoringInputs, config: LocalScoringConfig | None = None
) -> LocalScore:
    """Score, explanation and actions for one day's inputs."""
    score = compute_score(inputs, config)
    result = LocalScore(
        score=score,
        explanation=explain(inputs, score),
        actions=suggest_actions(inputs, score),
    )
    logger.debug(
        "Local score %.1f (actions=%s)", result.score, [a.id for a in result.actions]
    )
    return result
