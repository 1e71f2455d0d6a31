"""Per-user sync state persisted as a small JSON file.

Holds what is not part of the server-side health records: each user's last
successful health sync timestamp (display only), their source toggles and
their Google Fit token store.  Entries are keyed by user id; nothing is
shared between users.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from clarity.health.base import OAuthTokens

logger = logging.getLogger("clarity.storage.local_state")


class StoredPreferences(BaseModel):
    use_synthetic_data: bool = False
    third_party_enabled: bool = False


class StoredTokens(BaseModel):
    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None


class UserState(BaseModel):
    last_health_sync: datetime | None = None
    preferences: StoredPreferences = Field(default_factory=StoredPreferences)
    google_fit_tokens: StoredTokens | None = None


class LocalState(BaseModel):
    users: dict[str, UserState] = Field(default_factory=dict)


class LocalStateStore:
    """Read-through cache of ``LocalState`` backed by a JSON file.

    With ``path=None`` the state lives only in memory.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path
        self._state = self._load()

    @property
    def state(self) -> LocalState:
        return self._state

    def user(self, user_id: str) -> UserState:
        """State for ``user_id``; unknown users read as defaults."""
        return self._state.users.setdefault(user_id, UserState())

    # --- last sync ---

    def last_sync(self, user_id: str) -> datetime | None:
        return self.user(user_id).last_health_sync

    def stamp_last_sync(self, user_id: str, when: datetime) -> None:
        self.user(user_id).last_health_sync = when
        self._save()

    # --- preferences ---

    def preferences(self, user_id: str) -> StoredPreferences:
        return self.user(user_id).preferences

    def update_preferences(
        self,
        user_id: str,
        use_synthetic_data: bool | None = None,
        third_party_enabled: bool | None = None,
    ) -> StoredPreferences:
        prefs = self.user(user_id).preferences
        if use_synthetic_data is not None:
            prefs.use_synthetic_data = use_synthetic_data
        if third_party_enabled is not None:
            prefs.third_party_enabled = third_party_enabled
        self._save()
        return prefs

    # --- tokens ---

    def google_fit_tokens(self, user_id: str) -> OAuthTokens | None:
        stored = self.user(user_id).google_fit_tokens
        if stored is None:
            return None
        return OAuthTokens(**stored.model_dump())

    async def save_google_fit_tokens(self, user_id: str, tokens: OAuthTokens | None) -> None:
        """Token listener for one user's ``GoogleFitAdapter``."""
        self.user(user_id).google_fit_tokens = StoredTokens(**tokens.to_json()) if tokens else None
        self._save()

    # ------------------------------------------------------------------

    def _load(self) -> LocalState:
        if self._path is None or not self._path.exists():
            return LocalState()
        try:
            return LocalState.model_validate_json(self._path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as exc:
            logger.warning("Ignoring unreadable local state %s: %s", self._path, exc)
            return LocalState()

    def _save(self) -> None:
        if self._path is None:
            return
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(self._state.model_dump_json(indent=2), encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not write local state %s: %s", self._path, exc)


def format_last_sync(when: datetime | None, now: datetime | None = None) -> str:
    """Human label for the last sync time."""
    if when is None:
        return "Never synced"
    now = now or datetime.now(timezone.utc)
    minutes = int((now - when).total_seconds() // 60)
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes} minutes ago"
    if minutes < 24 * 60:
        return f"{minutes // 60} hours ago"
    return when.date().isoformat()
