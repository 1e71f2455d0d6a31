"""Normalization rules shared by the adapters and the reconciliation engine.

Pure functions, no I/O:

- sleep duration is rounded to one decimal hour
- sleep quality is derived from duration (>= 7h good, [6, 7) fair, < 6h poor)
- heart-rate samples over a window collapse to their mean, rounded half-up
- step and calorie samples within a day are summed
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Iterable, Sequence

from clarity.config_loader import SleepQualityConfig, get_engine_config
from clarity.health.base import PartialMetrics
from clarity.models.health import SleepQuality


def _half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _numeric(samples: Iterable[object]) -> list[float]:
    """Finite numbers only; strings, bools and other junk are dropped."""
    return [
        v
        for v in samples
        if isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)
    ]


def round_hours(hours: float) -> float:
    return _half_up(hours * 10) / 10


def sleep_quality_for(hours: float, config: SleepQualityConfig | None = None) -> SleepQuality:
    """Derive the quality tier from a sleep duration in hours."""
    cfg = config or get_engine_config().sleep_quality
    if hours >= cfg.good_hours:
        return SleepQuality.GOOD
    if hours >= cfg.fair_hours:
        return SleepQuality.FAIR
    return SleepQuality.POOR


def sleep_hours(intervals: Iterable[tuple[datetime, datetime]]) -> float | None:
    """Total hours across sleep sessions, rounded; None if there were none."""
    total_seconds = 0.0
    seen = False
    for start, end in intervals:
        if end <= start:
            continue
        total_seconds += (end - start).total_seconds()
        seen = True
    if not seen:
        return None
    return round_hours(total_seconds / 3600.0)


def mean_rounded(samples: Sequence[object]) -> int | None:
    values = [v for v in _numeric(samples) if v > 0]
    if not values:
        return None
    return _half_up(sum(values) / len(values))


def summed(samples: Sequence[object]) -> int | None:
    values = _numeric(samples)
    if not values:
        return None
    return _half_up(sum(values))


def canonicalize(
    metrics: PartialMetrics, config: SleepQualityConfig | None = None
) -> PartialMetrics:
    """Apply the canonical rounding and derived fields to an adapter result.

    Provider-reported quality labels are discarded in favour of the
    duration-derived tier so every record follows one rule.
    """
    hours = metrics.sleep_duration_hours
    quality = None
    if hours is not None:
        hours = round_hours(hours)
        quality = sleep_quality_for(hours, config).value

    def _int(value: float | int | None) -> int | None:
        return _half_up(value) if value is not None else None

    return PartialMetrics(
        sleep_duration_hours=hours,
        sleep_quality=quality,
        steps=_int(metrics.steps),
        heart_rate_variability_ms=_int(metrics.heart_rate_variability_ms),
        resting_heart_rate_bpm=_int(metrics.resting_heart_rate_bpm),
        active_calories=_int(metrics.active_calories),
    )
