"""Canonical per-day health metric records."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import Field

from clarity.models.base import ClarityBase, utc_now


class MetricType(str, Enum):
    SLEEP = "sleep"
    STEPS = "steps"


class SleepQuality(str, Enum):
    POOR = "poor"
    FAIR = "fair"
    GOOD = "good"


class HealthMetricRecord(ClarityBase):
    """One canonical record per (user, metric type, source date).

    Sleep records carry the overnight vitals (duration, quality, resting HR,
    HRV, active calories); steps records carry the step count and the day's
    active calories.  Writes are full replacements keyed on
    ``(user_id, metric_type, source_date)``.
    """

    user_id: str
    metric_type: MetricType
    source_date: date
    source: str
    sleep_duration_hours: float | None = Field(default=None, ge=0, le=24)
    sleep_quality: SleepQuality | None = None
    resting_heart_rate_bpm: int | None = Field(default=None, ge=20, le=300)
    heart_rate_variability_ms: int | None = Field(default=None, ge=0, le=500)
    active_calories: int | None = Field(default=None, ge=0)
    steps: int | None = Field(default=None, ge=0)
    synced_at: datetime = Field(default_factory=utc_now)

    @property
    def key(self) -> tuple[str, MetricType, date]:
        return (self.user_id, self.metric_type, self.source_date)

    def data(self) -> dict:
        """Type-specific payload, as stored in the ``data`` JSON column."""
        if self.metric_type is MetricType.STEPS:
            return {"count": self.steps, "active_calories": self.active_calories}
        return {
            "duration_hours": self.sleep_duration_hours,
            "quality": self.sleep_quality.value if self.sleep_quality else None,
            "resting_heart_rate_bpm": self.resting_heart_rate_bpm,
            "heart_rate_variability_ms": self.heart_rate_variability_ms,
            "active_calories": self.active_calories,
        }

    @classmethod
    def from_data(
        cls,
        user_id: str,
        metric_type: MetricType | str,
        source_date: date,
        source: str,
        data: dict,
        synced_at: datetime | None = None,
    ) -> "HealthMetricRecord":
        """Inverse of :meth:`data` for rows read back from storage."""
        metric_type = MetricType(metric_type)
        fields: dict = {}
        if metric_type is MetricType.STEPS:
            fields["steps"] = data.get("count")
            fields["active_calories"] = data.get("active_calories")
        else:
            fields["sleep_duration_hours"] = data.get("duration_hours")
            fields["sleep_quality"] = data.get("quality")
            fields["resting_heart_rate_bpm"] = data.get("resting_heart_rate_bpm")
            fields["heart_rate_variability_ms"] = data.get("heart_rate_variability_ms")
            fields["active_calories"] = data.get("active_calories")
        if synced_at is not None:
            fields["synced_at"] = synced_at
        return cls(
            user_id=user_id,
            metric_type=metric_type,
            source_date=source_date,
            source=source,
            **fields,
        )
