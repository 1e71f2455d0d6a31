"""Flatten a day's check-ins into the inputs of the local score.

Check-in payloads are open dictionaries; a missing key means "unknown" and
never contributes a value.  When a slot was submitted more than once in a
day, the most recent submission for that slot is the one that counts.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from clarity.models.checkins import CheckInRecord, CheckInStatus, CheckInType

logger = logging.getLogger("clarity.energy.checkins")

_LEVELS = {"low", "medium", "high"}
_COMPARISONS = {"worse", "same", "better"}


@dataclass
class ScoringInputs:
    """Everything the local heuristic reads.  ``None`` means unknown."""

    rested_score: float | None = None
    motivation_level: str | None = None
    midday_energy: str | None = None
    day_vs_expectations: str | None = None
    late_caffeine: bool | None = None
    skipped_meals: bool | None = None
    alcohol: bool | None = None
    last_night_sleep_hours: float | None = None
    slots: set[CheckInType] = field(default_factory=set)

    @property
    def has_check_ins(self) -> bool:
        return bool(self.slots)


def _rating(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not 1 <= value <= 10:
        return None
    return float(value)


def _choice(value: Any, allowed: set[str]) -> str | None:
    if isinstance(value, str) and value.lower() in allowed:
        return value.lower()
    return None


def _flag(value: Any) -> bool | None:
    return value if isinstance(value, bool) else None


def latest_per_slot(check_ins: Iterable[CheckInRecord]) -> dict[CheckInType, CheckInRecord]:
    latest: dict[CheckInType, CheckInRecord] = {}
    for record in check_ins:
        current = latest.get(record.type)
        if current is None or record.created_at >= current.created_at:
            latest[record.type] = record
    return latest


def aggregate(
    check_ins: Iterable[CheckInRecord], last_night_sleep_hours: float | None = None
) -> ScoringInputs:
    """Build ``ScoringInputs`` from the day's check-in records."""
    by_slot = latest_per_slot(check_ins)
    inputs = ScoringInputs(last_night_sleep_hours=last_night_sleep_hours, slots=set(by_slot))

    morning = by_slot.get(CheckInType.MORNING)
    if morning is not None:
        inputs.rested_score = _rating(morning.data.get("rested_score"))
        inputs.motivation_level = _choice(morning.data.get("motivation_level"), _LEVELS)

    midday = by_slot.get(CheckInType.MIDDAY)
    if midday is not None:
        inputs.midday_energy = _choice(midday.data.get("energy_level"), _LEVELS)

    evening = by_slot.get(CheckInType.EVENING)
    if evening is not None:
        inputs.day_vs_expectations = _choice(
            evening.data.get("day_vs_expectations"), _COMPARISONS
        )
        inputs.late_caffeine = _flag(evening.data.get("late_caffeine"))
        inputs.skipped_meals = _flag(evening.data.get("skipped_meals"))
        inputs.alcohol = _flag(evening.data.get("alcohol"))

    logger.debug("Aggregated check-ins for slots %s: %s", sorted(s.value for s in inputs.slots), inputs)
    return inputs


def check_in_status(check_ins: Iterable[CheckInRecord]) -> CheckInStatus:
    """Which of today's slots have at least one submission."""
    types = {c.type for c in check_ins}
    return CheckInStatus(
        morning=CheckInType.MORNING in types,
        midday=CheckInType.MIDDAY in types,
        evening=CheckInType.EVENING in types,
    )


def check_in_fingerprint(check_ins: Iterable[CheckInRecord]) -> str:
    """Short content hash of a day's check-ins, stored with a computed score.

    MD5 over ``id:type:payload`` entries sorted by id and joined with ``|``;
    the first 16 hex characters are kept.
    """
    content = "|".join(
        f"{c.id}:{c.type.value}:{json.dumps(c.data, separators=(',', ':'), default=str)}"
        for c in sorted(check_ins, key=lambda c: c.id)
    )
    return hashlib.md5(content.encode("utf-8")).hexdigest()[:16]
