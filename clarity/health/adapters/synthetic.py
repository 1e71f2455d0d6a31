"""Synthetic health source for development and testing.

Always available.  Generates plausible bounded values for every field; the
generator is deliberately not seeded in production use.  Tests can pass a
seeded ``random.Random`` for reproducible output.
"""

from __future__ import annotations

import logging
import math
import random
from datetime import date

from clarity.config_loader import SyntheticRanges, get_engine_config
from clarity.health.base import HealthSourceAdapter, MetricsByDay, PartialMetrics, SourceKind, date_range
from clarity.health.normalize import sleep_quality_for

logger = logging.getLogger("clarity.health.synthetic")


class SyntheticAdapter(HealthSourceAdapter):
    """Random-but-plausible metrics, one complete set per day."""

    KIND = SourceKind.SYNTHETIC
    DISPLAY_NAME = "Test Data"

    def __init__(
        self,
        ranges: SyntheticRanges | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._ranges = ranges or get_engine_config().synthetic
        self._rng = rng or random.Random()

    def is_available(self) -> bool:
        return True

    async def fetch_single_day(self, day: date) -> PartialMetrics:
        metrics = self._generate()
        logger.debug("Synthetic metrics for %s: %s", day, metrics)
        return metrics

    async def fetch_range(self, start: date, end_exclusive: date) -> MetricsByDay:
        result = MetricsByDay(start=start, end_exclusive=end_exclusive)
        for day in date_range(start, end_exclusive):
            result.days[day] = self._generate()
        return result

    def _generate(self) -> PartialMetrics:
        r = self._ranges
        raw = r.sleep_hours[0] + self._rng.random() * (r.sleep_hours[1] - r.sleep_hours[0])
        # truncate so the upper bound stays exclusive
        hours = math.floor(raw * 10) / 10
        return PartialMetrics(
            sleep_duration_hours=hours,
            sleep_quality=sleep_quality_for(hours).value,
            steps=self._rng.randrange(*r.steps),
            heart_rate_variability_ms=self._rng.randrange(*r.hrv_ms),
            resting_heart_rate_bpm=self._rng.randrange(*r.resting_hr_bpm),
            active_calories=self._rng.randrange(*r.active_calories),
        )
