"""Health sync endpoints: sync now, first connection, status and source toggles."""

from __future__ import annotations

import logging

import httpx
from fastapi import APIRouter, HTTPException

from clarity.dependencies import CurrentUser, Services
from clarity.health.adapters.google_fit import GoogleFitAdapter
from clarity.models.sync import (
    GoogleFitAuthorization,
    GoogleFitCode,
    PreferencesUpdate,
    SyncResult,
    SyncStatus,
)
from clarity.services.container import ClarityServices
from clarity.storage.local_state import format_last_sync

router = APIRouter(prefix="/health-sync", tags=["health-sync"])
logger = logging.getLogger("clarity.health.api")


def _result(services: ClarityServices, user_id: str, synced: bool) -> SyncResult:
    source = services.reconciler.current_source(user_id)
    last_sync = services.state.last_sync(user_id)
    return SyncResult(
        synced=synced,
        source=source.KIND.value if source else None,
        last_sync=last_sync,
        last_sync_label=format_last_sync(last_sync),
    )


def _google_fit(services: ClarityServices, user_id: str) -> GoogleFitAdapter:
    if services.google_fit is None:
        raise HTTPException(status_code=404, detail="Google Fit is not configured")
    return services.google_fit.for_user(user_id)


# ---------- Sync ----------

@router.post("/day", response_model=SyncResult)
async def sync_day(user: CurrentUser, services: Services) -> SyncResult:
    """Sync yesterday, the most recent complete day."""
    synced = await services.reconciler.sync_yesterday(user.user_id)
    return _result(services, user.user_id, synced)


@router.post("/range", response_model=SyncResult)
async def sync_range(user: CurrentUser, services: Services) -> SyncResult:
    """Manual "sync now": the trailing week."""
    synced = await services.reconciler.sync_range(user.user_id)
    return _result(services, user.user_id, synced)


@router.post("/connect", response_model=SyncResult)
async def connect(user: CurrentUser, services: Services) -> SyncResult:
    """Grant native read permission if needed, then sync the trailing week."""
    synced = await services.reconciler.connect(user.user_id)
    return _result(services, user.user_id, synced)


# ---------- Status & preferences ----------

@router.get("/status", response_model=SyncStatus)
async def sync_status(user: CurrentUser, services: Services) -> SyncStatus:
    source = services.reconciler.current_source(user.user_id)
    prefs = services.state.preferences(user.user_id)
    last_sync = services.state.last_sync(user.user_id)
    google_fit = services.google_fit.for_user(user.user_id) if services.google_fit else None
    return SyncStatus(
        source=source.KIND.value if source else None,
        source_name=source.DISPLAY_NAME if source else None,
        last_sync=last_sync,
        last_sync_label=format_last_sync(last_sync),
        use_synthetic_data=prefs.use_synthetic_data,
        third_party_enabled=prefs.third_party_enabled,
        google_fit_connected=google_fit is not None and google_fit.is_available(),
        google_fit_needs_reauthorization=google_fit is not None and google_fit.needs_reauthorization,
    )


@router.put("/preferences", response_model=SyncStatus)
async def update_preferences(
    user: CurrentUser, services: Services, body: PreferencesUpdate
) -> SyncStatus:
    services.state.update_preferences(
        user.user_id,
        use_synthetic_data=body.use_synthetic_data,
        third_party_enabled=body.third_party_enabled,
    )
    logger.info("User %s updated health source preferences: %s", user.user_id, body.model_dump())
    return await sync_status(user, services)


# ---------- Google Fit ----------

@router.get("/google-fit/authorize-url", response_model=GoogleFitAuthorization)
async def google_fit_authorize_url(user: CurrentUser, services: Services) -> GoogleFitAuthorization:
    return GoogleFitAuthorization(url=_google_fit(services, user.user_id).authorization_url())


@router.post("/google-fit/token", response_model=SyncStatus)
async def google_fit_token(
    user: CurrentUser, services: Services, body: GoogleFitCode
) -> SyncStatus:
    """Exchange an authorization code and switch the third-party source on."""
    adapter = _google_fit(services, user.user_id)
    try:
        await adapter.authenticate(body.code)
    except (httpx.HTTPError, KeyError) as exc:
        logger.warning("Google Fit code exchange failed for user %s: %s", user.user_id, exc)
        raise HTTPException(status_code=400, detail="Google Fit authorization failed") from exc
    services.state.update_preferences(user.user_id, third_party_enabled=True)
    return await sync_status(user, services)


@router.delete("/google-fit", response_model=SyncStatus)
async def google_fit_disconnect(user: CurrentUser, services: Services) -> SyncStatus:
    await _google_fit(services, user.user_id).disconnect()
    services.state.update_preferences(user.user_id, third_party_enabled=False)
    return await sync_status(user, services)
