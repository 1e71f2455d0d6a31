"""Base classes and shared types for Clarity health-data sources.

Every source adapter must subclass HealthSourceAdapter and return
PartialMetrics.  These are the only types the source selector and the
reconciliation engine see; provider payloads never leave the adapter.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields
from datetime import date, datetime, timedelta, timezone
from enum import Enum

logger = logging.getLogger("clarity.health")


class SourceKind(str, Enum):
    """The closed set of health-data sources."""

    SYNTHETIC = "synthetic"
    GOOGLE_FIT = "google_fit"
    NATIVE = "native"


# ---------------------------------------------------------------------------
# OAuth token store
# ---------------------------------------------------------------------------


class ReauthorizationRequired(Exception):
    """Raised when a refresh token is rejected and the user must sign in again."""


@dataclass(frozen=True)
class OAuthTokens:
    """OAuth token pair held by a third-party adapter.

    Attributes:
        access_token:  Bearer token for API calls.
        refresh_token: Long-lived token used to obtain a new access_token.
        expires_at:    UTC datetime when the access_token expires.
    """

    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None

    def is_expiring_soon(self, now: datetime, buffer_seconds: int = 300) -> bool:
        """Return True if the access token expires within ``buffer_seconds`` of ``now``."""
        if self.expires_at is None:
            return False
        return now >= self.expires_at - timedelta(seconds=buffer_seconds)

    def to_json(self) -> dict:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }

    @classmethod
    def from_token_response(
        cls, data: dict, now: datetime | None = None, previous_refresh: str | None = None
    ) -> "OAuthTokens":
        """Build tokens from an OAuth2 token endpoint response body."""
        now = now or datetime.now(timezone.utc)
        expires_in = int(data.get("expires_in", 3600))
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or previous_refresh,
            expires_at=now + timedelta(seconds=expires_in),
        )


# ---------------------------------------------------------------------------
# Partial metrics
# ---------------------------------------------------------------------------


@dataclass
class PartialMetrics:
    """Whatever a source could report for one calendar day.

    Every field is optional.  Adapters leave a field as None when they have
    no data for it; they never fill in zeros.
    """

    sleep_duration_hours: float | None = None
    sleep_quality: str | None = None
    steps: int | None = None
    heart_rate_variability_ms: int | None = None
    resting_heart_rate_bpm: int | None = None
    active_calories: int | None = None

    def populated(self) -> list[str]:
        """Names of the fields that carry a value."""
        return [f.name for f in fields(self) if getattr(self, f.name) is not None]

    def is_empty(self) -> bool:
        return not self.populated()


def date_range(start: date, end_exclusive: date) -> list[date]:
    """Calendar days in ``[start, end_exclusive)``."""
    return [start + timedelta(days=i) for i in range((end_exclusive - start).days)]


@dataclass
class MetricsByDay:
    """Range fetch result: one slot per day, ``None`` where nothing came back."""

    start: date
    end_exclusive: date
    days: dict[date, PartialMetrics | None] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for day in date_range(self.start, self.end_exclusive):
            self.days.setdefault(day, None)

    def slot(self, day: date) -> PartialMetrics:
        """Return the metrics for ``day``, creating an empty slot on first use."""
        if day not in self.days:
            raise KeyError(f"{day} is outside {self.start}..{self.end_exclusive}")
        current = self.days[day]
        if current is None:
            current = PartialMetrics()
            self.days[day] = current
        return current

    def finalize(self) -> "MetricsByDay":
        """Collapse slots that ended up empty back to ``None``."""
        for day, metrics in self.days.items():
            if metrics is not None and metrics.is_empty():
                self.days[day] = None
        return self


# ---------------------------------------------------------------------------
# Abstract base adapter
# ---------------------------------------------------------------------------


class HealthSourceAdapter(ABC):
    """Abstract base class for all health-data sources.

    Subclasses must implement:
        - is_available()
        - fetch_single_day()
        - fetch_range()

    Any provider failure is caught inside the adapter and reported as a
    missing field.  ``fetch_*`` never raise.
    """

    #: Which variant this adapter is.
    KIND: SourceKind

    #: Human-readable name for logging and UI.
    DISPLAY_NAME: str = "Unknown Source"

    @abstractmethod
    def is_available(self) -> bool:
        """Capability / permission / runtime check.  Must not have side effects."""

    @abstractmethod
    async def fetch_single_day(self, day: date) -> PartialMetrics | None:
        """Fetch what the source has for one calendar day.

        Returns:
            PartialMetrics, or None when the source returned nothing at all.
        """

    @abstractmethod
    async def fetch_range(self, start: date, end_exclusive: date) -> MetricsByDay:
        """Fetch metrics for every day in ``[start, end_exclusive)``.

        Days without any data are left as None in the result.
        """

    # ------------------------------------------------------------------
    # Shared helpers, available to all adapters
    # ------------------------------------------------------------------

    @staticmethod
    def _safe_int(value: object) -> int | None:
        """Safely coerce a value to int, returning None on failure."""
        if value is None or isinstance(value, bool):
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None

    @staticmethod
    def _day_bounds(day: date, tz: timezone = timezone.utc) -> tuple[datetime, datetime]:
        """Midnight-to-midnight window for ``day`` in ``tz``."""
        start = datetime(day.year, day.month, day.day, tzinfo=tz)
        return start, start + timedelta(days=1)
