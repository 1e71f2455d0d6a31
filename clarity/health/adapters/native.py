"""Native OS health store adapter (Apple Health / Health Connect).

The platform SDK itself is an opaque collaborator: anything implementing
``HealthStoreClient`` can be plugged in (a bridge to the device, an export
reader, or a fake in tests).  This adapter only reads, needs a one-time
permission grant before first use, and reduces raw samples to daily values.

Each metric is read separately and sequentially so one failing read cannot
spoil the others.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Awaitable, Callable, Protocol

from clarity.health.base import HealthSourceAdapter, MetricsByDay, PartialMetrics, SourceKind
from clarity.health.normalize import mean_rounded, sleep_hours, sleep_quality_for, summed

logger = logging.getLogger("clarity.health.native")

#: Platforms that ship a native health store.
SUPPORTED_PLATFORMS: dict[str, str] = {
    "ios": "Apple Health",
    "android": "Health Connect",
}


@dataclass(frozen=True)
class HealthSample:
    """One provider sample: a value observed over ``[start, end)``."""

    start: datetime
    end: datetime
    value: float = 0.0


class HealthStoreClient(Protocol):
    """Narrow read contract of a native health store."""

    def is_supported(self) -> bool: ...

    async def has_permission(self) -> bool: ...

    async def request_permission(self) -> bool: ...

    async def read_sleep_sessions(self, start: datetime, end: datetime) -> list[HealthSample]: ...

    async def read_steps(self, start: datetime, end: datetime) -> list[HealthSample]: ...

    async def read_heart_rate_variability(
        self, start: datetime, end: datetime
    ) -> list[HealthSample]: ...

    async def read_resting_heart_rate(self, start: datetime, end: datetime) -> list[HealthSample]: ...

    async def read_active_calories(self, start: datetime, end: datetime) -> list[HealthSample]: ...


class NativeHealthAdapter(HealthSourceAdapter):
    """Adapter over the device's own health store."""

    KIND = SourceKind.NATIVE

    def __init__(
        self,
        platform: str,
        client: HealthStoreClient | None = None,
        tz: timezone = timezone.utc,
    ) -> None:
        self._platform = platform
        self._client = client
        self._tz = tz
        self.DISPLAY_NAME = SUPPORTED_PLATFORMS.get(platform, "Health")

    def is_available(self) -> bool:
        if self._platform not in SUPPORTED_PLATFORMS or self._client is None:
            return False
        try:
            return bool(self._client.is_supported())
        except Exception as exc:
            logger.warning("%s capability check failed: %s", self.DISPLAY_NAME, exc)
            return False

    async def ensure_permission(self) -> bool:
        """Request read access once; a no-op when it was already granted."""
        if not self.is_available():
            return False
        try:
            if await self._client.has_permission():
                return True
            granted = bool(await self._client.request_permission())
        except Exception as exc:
            logger.warning("%s permission request failed: %s", self.DISPLAY_NAME, exc)
            return False
        logger.info("%s permission %s", self.DISPLAY_NAME, "granted" if granted else "denied")
        return granted

    async def fetch_single_day(self, day: date) -> PartialMetrics | None:
        result = await self.fetch_range(day, day + timedelta(days=1))
        metrics = result.days.get(day)
        if metrics is None:
            logger.info("%s: no data for %s", self.DISPLAY_NAME, day)
        return metrics

    async def fetch_range(self, start: date, end_exclusive: date) -> MetricsByDay:
        result = MetricsByDay(start=start, end_exclusive=end_exclusive)
        if not await self._readable():
            return result

        window_start, _ = self._day_bounds(start, self._tz)
        window_end, _ = self._day_bounds(end_exclusive, self._tz)

        sleep = await self._read("sleep", self._client.read_sleep_sessions, window_start, window_end)
        for day, samples in self._by_day(sleep, result).items():
            hours = sleep_hours((s.start, s.end) for s in samples)
            if hours is not None:
                slot = result.slot(day)
                slot.sleep_duration_hours = hours
                slot.sleep_quality = sleep_quality_for(hours).value

        steps = await self._read("steps", self._client.read_steps, window_start, window_end)
        for day, samples in self._by_day(steps, result).items():
            result.slot(day).steps = summed([s.value for s in samples])

        hrv = await self._read(
            "hrv", self._client.read_heart_rate_variability, window_start, window_end
        )
        for day, samples in self._by_day(hrv, result).items():
            result.slot(day).heart_rate_variability_ms = mean_rounded([s.value for s in samples])

        rhr = await self._read(
            "resting heart rate", self._client.read_resting_heart_rate, window_start, window_end
        )
        for day, samples in self._by_day(rhr, result).items():
            result.slot(day).resting_heart_rate_bpm = mean_rounded([s.value for s in samples])

        calories = await self._read(
            "active calories", self._client.read_active_calories, window_start, window_end
        )
        for day, samples in self._by_day(calories, result).items():
            result.slot(day).active_calories = summed([s.value for s in samples])

        return result.finalize()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _readable(self) -> bool:
        if not self.is_available():
            logger.info("%s not available on platform %r", self.DISPLAY_NAME, self._platform)
            return False
        try:
            permitted = await self._client.has_permission()
        except Exception as exc:
            logger.warning("%s permission check failed: %s", self.DISPLAY_NAME, exc)
            return False
        if not permitted:
            logger.info("%s: read permission not granted yet", self.DISPLAY_NAME)
        return bool(permitted)

    async def _read(
        self,
        label: str,
        reader: Callable[[datetime, datetime], Awaitable[list[HealthSample]]],
        start: datetime,
        end: datetime,
    ) -> list[HealthSample]:
        try:
            samples = list(await reader(start, end) or [])
        except Exception as exc:
            logger.warning("%s %s read failed: %s", self.DISPLAY_NAME, label, exc)
            return []
        logger.debug("%s %s: %d samples", self.DISPLAY_NAME, label, len(samples))
        return samples

    def _by_day(
        self, samples: list[HealthSample], result: MetricsByDay
    ) -> dict[date, list[HealthSample]]:
        """Group samples by the local calendar day they started on."""
        grouped: dict[date, list[HealthSample]] = defaultdict(list)
        for sample in samples:
            start = sample.start
            if start.tzinfo is not None:
                start = start.astimezone(self._tz)
            day = start.date()
            if day in result.days:
                grouped[day].append(sample)
        return grouped
