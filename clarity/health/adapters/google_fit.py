"""Google Fit REST API adapter.

Environment variables (via Settings):
    GOOGLE_FIT_CLIENT_ID      OAuth2 client ID
    GOOGLE_FIT_CLIENT_SECRET  OAuth2 client secret (optional for installed apps)
    GOOGLE_FIT_REDIRECT_URI   Redirect URI registered with the client

API base: https://www.googleapis.com/fitness/v1/users/me

Endpoints used:
    POST /dataset:aggregate   step_count.delta, calories.expended, heart_rate.bpm
    GET  /sessions            sleep sessions (activityType=72)

Token lifecycle: the adapter owns an ``OAuthTokens`` value.  Before each
fetch it checks ``is_expiring_soon`` with a 5-minute buffer and refreshes;
a rejected refresh clears the tokens and flags the adapter as needing the
user to authorize again.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from functools import partial
from typing import Awaitable, Callable, Protocol
from urllib.parse import urlencode

import httpx

from clarity.config_loader import get_engine_config
from clarity.health.base import (
    HealthSourceAdapter,
    MetricsByDay,
    OAuthTokens,
    PartialMetrics,
    ReauthorizationRequired,
    SourceKind,
)
from clarity.health.normalize import mean_rounded, sleep_hours, sleep_quality_for, summed

logger = logging.getLogger("clarity.health.google_fit")

_GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
_GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
_GOOGLE_FIT_API_BASE = "https://www.googleapis.com/fitness/v1/users/me"

_SCOPES = (
    "https://www.googleapis.com/auth/fitness.activity.read",
    "https://www.googleapis.com/auth/fitness.body.read",
    "https://www.googleapis.com/auth/fitness.sleep.read",
    "https://www.googleapis.com/auth/fitness.heart_rate.read",
)

_STEPS = "com.google.step_count.delta"
_CALORIES = "com.google.calories.expended"
_HEART_RATE = "com.google.heart_rate.bpm"
_SLEEP_ACTIVITY_TYPE = 72

_ONE_DAY_MS = 24 * 60 * 60 * 1000

TokenListener = Callable[[OAuthTokens | None], Awaitable[None]]


class TokenStore(Protocol):
    """Where per-user tokens live (see ``clarity.storage.local_state``)."""

    def google_fit_tokens(self, user_id: str) -> OAuthTokens | None: ...

    async def save_google_fit_tokens(self, user_id: str, tokens: OAuthTokens | None) -> None: ...


def _millis(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def _objects(value: object) -> list[dict]:
    """The dict entries of a JSON list; anything else in the payload is skipped."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _from_millis(ms: int | None, tz: timezone) -> datetime | None:
    if ms is None:
        return None
    try:
        return datetime.fromtimestamp(ms / 1000, tz=tz)
    except (OverflowError, OSError, ValueError):
        return None


class GoogleFitAdapter(HealthSourceAdapter):
    """Third-party fitness REST adapter."""

    KIND = SourceKind.GOOGLE_FIT
    DISPLAY_NAME = "Google Fit"

    def __init__(
        self,
        client_id: str,
        client_secret: str = "",
        redirect_uri: str = "",
        tokens: OAuthTokens | None = None,
        http_client: httpx.AsyncClient | None = None,
        on_tokens_changed: TokenListener | None = None,
        refresh_buffer_seconds: int | None = None,
        tz: timezone = timezone.utc,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the Google Fit adapter.

        Args:
            client_id:        OAuth2 client ID.
            client_secret:    OAuth2 client secret, if the client type has one.
            redirect_uri:     Redirect URI used for the authorization code grant.
            tokens:           Previously stored tokens, if any.
            http_client:      Optional pre-configured httpx client (for testing).
            on_tokens_changed: Async callback persisting the token store.
            refresh_buffer_seconds: Refresh this long before expiry (default from config).
            tz:               Timezone that defines calendar-day boundaries.
            clock:            Returns the current UTC time (for testing).
        """
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri
        self._tokens = tokens
        self._http_client = http_client
        self._on_tokens_changed = on_tokens_changed
        self._refresh_buffer = (
            refresh_buffer_seconds
            if refresh_buffer_seconds is not None
            else get_engine_config().health_sync.token_refresh_buffer_seconds
        )
        self._tz = tz
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.needs_reauthorization = False

    @property
    def tokens(self) -> OAuthTokens | None:
        return self._tokens

    # ------------------------------------------------------------------
    # HealthSourceAdapter interface
    # ------------------------------------------------------------------

    def is_available(self) -> bool:
        return bool(self._client_id) and self._tokens is not None and not self.needs_reauthorization

    async def fetch_single_day(self, day: date) -> PartialMetrics | None:
        result = await self.fetch_range(day, day + timedelta(days=1))
        return result.days.get(day)

    async def fetch_range(self, start: date, end_exclusive: date) -> MetricsByDay:
        result = MetricsByDay(start=start, end_exclusive=end_exclusive)

        access_token = await self._valid_access_token()
        if access_token is None:
            logger.info("Google Fit: no valid token, skipping fetch")
            return result

        window_start, _ = self._day_bounds(start, self._tz)
        window_end, _ = self._day_bounds(end_exclusive, self._tz)

        steps = await self._aggregate(_STEPS, window_start, window_end, access_token)
        for day, points in steps.items():
            if day in result.days:
                result.slot(day).steps = summed([p.get("intVal") for p in points])

        calories = await self._aggregate(_CALORIES, window_start, window_end, access_token)
        for day, points in calories.items():
            if day in result.days:
                result.slot(day).active_calories = summed([p.get("fpVal") for p in points])

        heart_rate = await self._aggregate(_HEART_RATE, window_start, window_end, access_token)
        for day, points in heart_rate.items():
            if day in result.days:
                result.slot(day).resting_heart_rate_bpm = mean_rounded(
                    [p.get("fpVal") for p in points]
                )

        sleep = await self._sleep_sessions(window_start, window_end, access_token)
        for day, intervals in sleep.items():
            hours = sleep_hours(intervals)
            if hours is not None and day in result.days:
                slot = result.slot(day)
                slot.sleep_duration_hours = hours
                slot.sleep_quality = sleep_quality_for(hours).value

        result.finalize()
        received = sum(1 for m in result.days.values() if m is not None)
        logger.info("Google Fit: %d/%d days have data", received, len(result.days))
        return result

    # ------------------------------------------------------------------
    # OAuth
    # ------------------------------------------------------------------

    def authorization_url(self) -> str:
        """URL the user opens to grant read access (offline, forced consent)."""
        params = {
            "client_id": self._client_id,
            "redirect_uri": self._redirect_uri,
            "response_type": "code",
            "scope": " ".join(_SCOPES),
            "access_type": "offline",
            "prompt": "consent",
        }
        return f"{_GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def authenticate(self, auth_code: str) -> OAuthTokens:
        """Exchange an authorization code for tokens and keep them.

        Raises:
            httpx.HTTPStatusError: If the token endpoint rejects the code.
        """
        logger.info("Google Fit: exchanging authorization code")
        data = await self._post_token(
            {
                "grant_type": "authorization_code",
                "code": auth_code,
                "redirect_uri": self._redirect_uri,
            }
        )
        tokens = OAuthTokens.from_token_response(data, now=self._clock())
        await self._store_tokens(tokens)
        self.needs_reauthorization = False
        return tokens

    async def refresh(self, tokens: OAuthTokens) -> OAuthTokens:
        """Obtain a fresh access token; returns the new token store.

        Raises:
            ReauthorizationRequired: If there is no refresh token or it was rejected.
        """
        if not tokens.refresh_token:
            raise ReauthorizationRequired("No refresh token stored")
        try:
            data = await self._post_token(
                {"grant_type": "refresh_token", "refresh_token": tokens.refresh_token}
            )
            return OAuthTokens.from_token_response(
                data, now=self._clock(), previous_refresh=tokens.refresh_token
            )
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            raise ReauthorizationRequired(f"Token refresh failed: {exc}") from exc

    async def disconnect(self) -> None:
        """Forget stored tokens (sign-out from the provider)."""
        await self._store_tokens(None)

    async def _valid_access_token(self) -> str | None:
        tokens = self._tokens
        if tokens is None or self.needs_reauthorization:
            return None
        if not tokens.is_expiring_soon(self._clock(), self._refresh_buffer):
            return tokens.access_token

        logger.info("Google Fit: access token expiring, refreshing")
        try:
            new_tokens = await self.refresh(tokens)
        except ReauthorizationRequired as exc:
            logger.warning("Google Fit: %s; user must authorize again", exc)
            self.needs_reauthorization = True
            await self._store_tokens(None)
            return None
        await self._store_tokens(new_tokens)
        return new_tokens.access_token

    async def _store_tokens(self, tokens: OAuthTokens | None) -> None:
        self._tokens = tokens
        if self._on_tokens_changed is not None:
            await self._on_tokens_changed(tokens)

    async def _post_token(self, form: dict) -> dict:
        form = {"client_id": self._client_id, **form}
        if self._client_secret:
            form["client_secret"] = self._client_secret
        if self._http_client:
            response = await self._http_client.post(_GOOGLE_TOKEN_URL, data=form)
        else:
            async with httpx.AsyncClient() as client:
                response = await client.post(_GOOGLE_TOKEN_URL, data=form)
        response.raise_for_status()
        data = response.json()
        if "access_token" not in data:
            raise KeyError("access_token missing from token response")
        return data

    # ------------------------------------------------------------------
    # Fitness API reads
    # ------------------------------------------------------------------

    async def _aggregate(
        self, data_type: str, start: datetime, end: datetime, access_token: str
    ) -> dict[date, list[dict]]:
        """Daily-bucketed aggregate for one data type.  Empty on any failure."""
        body = {
            "aggregateBy": [{"dataTypeName": data_type}],
            "bucketByTime": {"durationMillis": _ONE_DAY_MS},
            "startTimeMillis": _millis(start),
            "endTimeMillis": _millis(end),
        }
        try:
            payload = await self._request(
                "POST", f"{_GOOGLE_FIT_API_BASE}/dataset:aggregate", access_token, json=body
            )
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Google Fit %s: fetch failed: %s", data_type, exc)
            return {}

        by_day: dict[date, list[dict]] = defaultdict(list)
        for bucket in _objects(payload.get("bucket")):
            started = _from_millis(self._safe_int(bucket.get("startTimeMillis")), self._tz)
            if started is None:
                continue
            for dataset in _objects(bucket.get("dataset")):
                for point in _objects(dataset.get("point")):
                    values = _objects(point.get("value"))
                    if values:
                        by_day[started.date()].append(values[0])
        logger.debug("Google Fit %s: %d days with points", data_type, len(by_day))
        return dict(by_day)

    async def _sleep_sessions(
        self, start: datetime, end: datetime, access_token: str
    ) -> dict[date, list[tuple[datetime, datetime]]]:
        """Sleep sessions grouped by the day they started on.  Empty on failure."""
        params = {
            "startTime": start.astimezone(timezone.utc).isoformat().replace("+00:00", "Z"),
            "endTime": end.astimezone(timezone.utc).isoformat().replace("+00:00", "Z"),
            "activityType": _SLEEP_ACTIVITY_TYPE,
        }
        try:
            payload = await self._request(
                "GET", f"{_GOOGLE_FIT_API_BASE}/sessions", access_token, params=params
            )
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Google Fit sleep: fetch failed: %s", exc)
            return {}

        by_day: dict[date, list[tuple[datetime, datetime]]] = defaultdict(list)
        for session in _objects(payload.get("session")):
            session_start = _from_millis(self._safe_int(session.get("startTimeMillis")), self._tz)
            session_end = _from_millis(self._safe_int(session.get("endTimeMillis")), self._tz)
            if session_start is None or session_end is None:
                continue
            by_day[session_start.date()].append((session_start, session_end))
        return dict(by_day)

    async def _request(
        self,
        method: str,
        url: str,
        access_token: str,
        params: dict | None = None,
        json: dict | None = None,
    ) -> dict:
        """Make an authenticated request to the Fitness API.

        Raises:
            httpx.HTTPStatusError: On non-2xx responses.
            ValueError:            On a body that is not a JSON object.
        """
        headers = {"Authorization": f"Bearer {access_token}"}

        if self._http_client:
            response = await self._http_client.request(
                method, url, params=params, json=json, headers=headers
            )
        else:
            async with httpx.AsyncClient() as client:
                response = await client.request(
                    method, url, params=params, json=json, headers=headers
                )

        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError(f"Unexpected Google Fit payload: {type(data).__name__}")
        return data


class GoogleFitAccounts:
    """One ``GoogleFitAdapter`` per user, sharing the OAuth client settings.

    Each adapter is built on first use from that user's stored tokens and
    writes token changes back under the same user id.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str = "",
        redirect_uri: str = "",
        token_store: TokenStore | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri
        self._token_store = token_store
        self._http_client = http_client
        self._adapters: dict[str, GoogleFitAdapter] = {}

    def for_user(self, user_id: str) -> GoogleFitAdapter:
        adapter = self._adapters.get(user_id)
        if adapter is None:
            store = self._token_store
            adapter = GoogleFitAdapter(
                client_id=self._client_id,
                client_secret=self._client_secret,
                redirect_uri=self._redirect_uri,
                tokens=store.google_fit_tokens(user_id) if store else None,
                http_client=self._http_client,
                on_tokens_changed=partial(store.save_google_fit_tokens, user_id) if store else None,
            )
            self._adapters[user_id] = adapter
        return adapter
