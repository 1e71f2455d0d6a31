"""Health reconciliation: selected source -> canonical per-day records.

Sync workflow:
1. Ask the selector for the one authoritative source (fresh on every call)
2. Fetch yesterday, or the trailing ``range_days`` window
3. Canonicalize each day (rounding, duration-derived sleep quality)
4. Upsert one record per populated metric type, keyed (user, type, date)
5. Stamp the user's last-sync time if anything was written

Nothing here raises across the public boundary: an unavailable source,
failed fetches or failed writes all end as ``False`` ("no data synced")
with the cause in the logs.  There is no automatic retry, and two
overlapping syncs are not serialized: the later upsert wins.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from typing import Callable

from pydantic import ValidationError

from clarity.config_loader import EngineConfig, get_engine_config
from clarity.health.adapters.google_fit import GoogleFitAccounts
from clarity.health.adapters.native import NativeHealthAdapter
from clarity.health.base import HealthSourceAdapter, PartialMetrics
from clarity.health.normalize import canonicalize
from clarity.health.selector import SourceAdapters, SourcePreferences, select_source
from clarity.models.health import HealthMetricRecord, MetricType
from clarity.storage.base import HealthMetricRepository
from clarity.storage.local_state import LocalStateStore

logger = logging.getLogger("clarity.health.sync")

_SLEEP_FIELDS = (
    "sleep_duration_hours",
    "sleep_quality",
    "resting_heart_rate_bpm",
    "heart_rate_variability_ms",
)
_STEPS_FIELDS = ("steps", "active_calories")
# quality is derived from duration, so it never keeps a sleep record alive alone
_SLEEP_ANCHORS = tuple(f for f in _SLEEP_FIELDS if f != "sleep_quality")


def _build_record(
    metric_type: MetricType, fields: dict, anchors: tuple[str, ...], common: dict
) -> HealthMetricRecord | None:
    """Validate one record, dropping any field that fails its range check.

    Returns None once none of the ``anchors`` fields survive.
    """
    fields = {k: v for k, v in fields.items() if v is not None}
    while fields.keys() & set(anchors):
        try:
            return HealthMetricRecord(metric_type=metric_type, **fields, **common)
        except ValidationError as exc:
            rejected = {err["loc"][0] for err in exc.errors() if err["loc"]} & fields.keys()
            if not rejected:
                raise
            dropped = {k: fields.pop(k) for k in sorted(rejected)}
            logger.warning(
                "Discarding out-of-range %s values for %s: %s",
                metric_type.value,
                common["source_date"],
                dropped,
            )
    return None


def records_for_day(
    user_id: str,
    day: date,
    metrics: PartialMetrics,
    source: str,
    synced_at: datetime | None = None,
) -> list[HealthMetricRecord]:
    """Build the canonical records for one day of already-canonical metrics.

    A sleep record is produced when any overnight field is present, a steps
    record when steps or active calories are.  A day with nothing populated
    yields no records.  Each record is validated on its own: an out-of-range
    value is dropped from that record (with a warning) and the rest is kept.
    """
    populated = set(metrics.populated())
    common = {"user_id": user_id, "source_date": day, "source": source}
    if synced_at is not None:
        common["synced_at"] = synced_at

    records: list[HealthMetricRecord] = []
    if populated.intersection(_SLEEP_FIELDS):
        sleep = _build_record(
            MetricType.SLEEP,
            {name: getattr(metrics, name) for name in (*_SLEEP_FIELDS, "active_calories")},
            _SLEEP_ANCHORS,
            common,
        )
        if sleep is not None:
            records.append(sleep)
    if populated.intersection(_STEPS_FIELDS):
        steps = _build_record(
            MetricType.STEPS,
            {name: getattr(metrics, name) for name in _STEPS_FIELDS},
            _STEPS_FIELDS,
            common,
        )
        if steps is not None:
            records.append(steps)
    return records


class HealthReconciler:
    """Runs single-day and range syncs, per user."""

    def __init__(
        self,
        adapters: SourceAdapters,
        metrics: HealthMetricRepository,
        state: LocalStateStore,
        platform: str = "web",
        config: EngineConfig | None = None,
        clock: Callable[[], datetime] | None = None,
        google_fit: GoogleFitAccounts | None = None,
    ) -> None:
        self._adapters = adapters
        self._google_fit = google_fit
        self._metrics = metrics
        self._state = state
        self._platform = platform
        self._config = config or get_engine_config()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def preferences(self, user_id: str) -> SourcePreferences:
        stored = self._state.preferences(user_id)
        return SourcePreferences(
            platform=self._platform,
            use_synthetic_data=stored.use_synthetic_data,
            third_party_enabled=stored.third_party_enabled,
        )

    def adapters_for(self, user_id: str) -> SourceAdapters:
        """The shared adapters, with Google Fit bound to this user's account."""
        if self._google_fit is None:
            return self._adapters
        return replace(self._adapters, google_fit=self._google_fit.for_user(user_id))

    def current_source(self, user_id: str) -> HealthSourceAdapter | None:
        return select_source(self.preferences(user_id), self.adapters_for(user_id))

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def sync_yesterday(self, user_id: str, today: date | None = None) -> bool:
        """Sync the most recently completed calendar day.

        Returns:
            True if at least one record was written.
        """
        day = (today or self._clock().date()) - timedelta(days=1)
        source = self.current_source(user_id)
        if source is None:
            return False

        try:
            metrics = await source.fetch_single_day(day)
        except Exception:
            logger.exception("%s: single-day fetch for %s failed", source.DISPLAY_NAME, day)
            return False

        written = 0
        if metrics is not None:
            written = await self._write_day(user_id, day, metrics, source)
        return self._finish(user_id, source, written)

    async def sync_range(self, user_id: str, today: date | None = None) -> bool:
        """Sync the trailing window ``[today - range_days, today)``.

        Days with no populated field are skipped; no empty record is written.

        Returns:
            True if at least one record was written.
        """
        end = today or self._clock().date()
        start = end - timedelta(days=self._config.health_sync.range_days)
        source = self.current_source(user_id)
        if source is None:
            return False

        try:
            result = await source.fetch_range(start, end)
        except Exception:
            logger.exception("%s: range fetch %s..%s failed", source.DISPLAY_NAME, start, end)
            return False

        written = 0
        skipped = 0
        for day in sorted(result.days):
            metrics = result.days[day]
            if metrics is None or metrics.is_empty():
                skipped += 1
                continue
            written += await self._write_day(user_id, day, metrics, source)

        logger.info(
            "%s range sync %s..%s: %d records, %d empty days skipped",
            source.DISPLAY_NAME,
            start,
            end,
            written,
            skipped,
        )
        return self._finish(user_id, source, written)

    async def connect(self, user_id: str, today: date | None = None) -> bool:
        """First connection: obtain native permission when needed, then range sync."""
        source = self.current_source(user_id)
        if source is None:
            return False
        if isinstance(source, NativeHealthAdapter) and not await source.ensure_permission():
            logger.info("%s permission not granted; nothing to sync", source.DISPLAY_NAME)
            return False
        return await self.sync_range(user_id, today=today)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _write_day(
        self,
        user_id: str,
        day: date,
        metrics: PartialMetrics,
        source: HealthSourceAdapter,
    ) -> int:
        try:
            records = records_for_day(
                user_id,
                day,
                canonicalize(metrics, self._config.sleep_quality),
                source.KIND.value,
                synced_at=self._clock(),
            )
        except ValueError as exc:
            logger.warning("%s: discarding out-of-range metrics for %s: %s",
                           source.DISPLAY_NAME, day, exc)
            return 0

        written = 0
        for record in records:
            try:
                await self._metrics.upsert(record)
                written += 1
            except Exception as exc:
                logger.warning(
                    "Upsert of %s for %s failed: %s", record.metric_type.value, day, exc
                )
        return written

    def _finish(self, user_id: str, source: HealthSourceAdapter, written: int) -> bool:
        if written == 0:
            logger.info("%s: no data synced for user %s", source.DISPLAY_NAME, user_id)
            return False
        self._state.stamp_last_sync(user_id, self._clock())
        logger.info("%s: synced %d records for user %s", source.DISPLAY_NAME, written, user_id)
        return True
