"""Client for the remote, AI-augmented energy score endpoint.

Endpoints (relative to ``Settings.api_url``):
    GET  /energy?date=YYYY-MM-DD   today's score, cached server-side
    POST /energy/regenerate        discard the cached explanation and regenerate

Both answer ``{"success": bool, "data": {...}}``.  Anything other than a
2xx response with ``success=true`` and a complete ``data`` object is a
``RemoteScoreError``.  Deadlines are enforced here with ``asyncio.wait_for``;
hitting one raises ``RemoteScoreTimeout`` and abandons the local wait only.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date

import httpx
from pydantic import BaseModel, ValidationError

from clarity.config_loader import RemoteScoringConfig, get_engine_config
from clarity.models.energy import EnergyScore

logger = logging.getLogger("clarity.energy.remote")


class RemoteScoreError(Exception):
    """The remote score could not be obtained or was malformed."""


class RemoteScoreTimeout(RemoteScoreError):
    """The remote score did not arrive before the deadline."""


class _RemoteEnvelope(BaseModel):
    success: bool = False
    data: dict | None = None


class RemoteScoreClient:
    """Fetches authoritative scores from the scoring API."""

    def __init__(
        self,
        api_url: str,
        config: RemoteScoringConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_url = api_url.rstrip("/")
        self._config = config or get_engine_config().remote
        self._http_client = http_client

    async def fetch_today(self, user_id: str, access_token: str, day: date) -> EnergyScore:
        """GET today's score within the standard deadline.

        Raises:
            RemoteScoreTimeout: Deadline exceeded.
            RemoteScoreError:   Transport, status or payload failure.
        """
        return await self._with_deadline(
            self._request(
                "GET", "/energy", user_id, access_token, params={"date": day.isoformat()}
            ),
            self._config.timeout_seconds,
        )

    async def regenerate(self, user_id: str, access_token: str) -> EnergyScore:
        """POST a regeneration request within the longer regeneration deadline.

        Raises:
            RemoteScoreTimeout: Deadline exceeded.
            RemoteScoreError:   Transport, status or payload failure.
        """
        return await self._with_deadline(
            self._request("POST", "/energy/regenerate", user_id, access_token),
            self._config.regenerate_timeout_seconds,
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _with_deadline(operation, timeout: float) -> EnergyScore:
        try:
            return await asyncio.wait_for(operation, timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise RemoteScoreTimeout(f"No remote score after {timeout:g}s") from exc

    async def _request(
        self,
        method: str,
        path: str,
        user_id: str,
        access_token: str,
        params: dict | None = None,
    ) -> EnergyScore:
        url = f"{self._api_url}{path}"
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }
        try:
            if self._http_client:
                response = await self._http_client.request(
                    method, url, params=params, headers=headers
                )
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.request(method, url, params=params, headers=headers)
        except httpx.HTTPError as exc:
            raise RemoteScoreError(f"{method} {path} failed: {exc}") from exc

        if response.status_code >= 400:
            raise RemoteScoreError(f"{method} {path} returned HTTP {response.status_code}")

        try:
            envelope = _RemoteEnvelope.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise RemoteScoreError(f"{method} {path}: unreadable body: {exc}") from exc

        if not envelope.success or not envelope.data:
            raise RemoteScoreError(f"{method} {path}: success=false or no data")

        try:
            score = EnergyScore.model_validate({"user_id": user_id, **envelope.data})
        except ValidationError as exc:
            raise RemoteScoreError(f"{method} {path}: malformed score: {exc}") from exc

        logger.info("Remote energy score %.1f for %s", score.score, score.date)
        return score
