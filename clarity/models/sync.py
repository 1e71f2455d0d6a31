"""Health sync request/response schemas."""

from __future__ import annotations

from datetime import datetime

from clarity.models.base import ClarityBase


class SyncResult(ClarityBase):
    synced: bool
    source: str | None = None
    last_sync: datetime | None = None
    last_sync_label: str


class SyncStatus(ClarityBase):
    source: str | None = None
    source_name: str | None = None
    last_sync: datetime | None = None
    last_sync_label: str
    use_synthetic_data: bool
    third_party_enabled: bool
    google_fit_connected: bool = False
    google_fit_needs_reauthorization: bool = False


class PreferencesUpdate(ClarityBase):
    use_synthetic_data: bool | None = None
    third_party_enabled: bool | None = None


class GoogleFitAuthorization(ClarityBase):
    url: str


class GoogleFitCode(ClarityBase):
    code: str
