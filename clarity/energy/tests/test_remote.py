"""Tests for the remote score client."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from clarity.config_loader import RemoteScoringConfig
from clarity.energy.remote import RemoteScoreClient, RemoteScoreError, RemoteScoreTimeout
from clarity.energy.tests.conftest import TEST_DATE, TEST_USER_ID

REMOTE_SCORE = {
    "id": "5b1f6c3e-0000-4000-8000-000000000001",
    "score": "6.8",
    "explanation": "Solid sleep and steady motivation.",
    "actions": [{"id": "walk", "title": "Take a 10-minute walk", "reason": "Movement boosts energy"}],
    "date": "2026-02-23",
}


def _response(status: int, payload: object) -> MagicMock:
    response = MagicMock()
    response.status_code = status
    response.json = MagicMock(return_value=payload)
    return response


def _client(response: MagicMock | None = None, side_effect: object = None) -> MagicMock:
    client = MagicMock()
    client.request = AsyncMock(return_value=response, side_effect=side_effect)
    return client


def _remote(client: MagicMock, timeout: float = 15.0) -> RemoteScoreClient:
    return RemoteScoreClient(
        "https://api.example/api/",
        config=RemoteScoringConfig(timeout_seconds=timeout, regenerate_timeout_seconds=timeout),
        http_client=client,
    )


class TestFetchToday:
    @pytest.mark.asyncio
    async def test_success(self) -> None:
        client = _client(_response(200, {"success": True, "data": REMOTE_SCORE}))

        score = await _remote(client).fetch_today(TEST_USER_ID, "jwt-token", TEST_DATE)

        assert score.score == 6.8
        assert score.id == REMOTE_SCORE["id"]
        assert score.user_id == TEST_USER_ID
        assert score.actions[0].id == "walk"

        args, kwargs = client.request.call_args
        assert args == ("GET", "https://api.example/api/energy")
        assert kwargs["params"] == {"date": "2026-02-23"}
        assert kwargs["headers"]["Authorization"] == "Bearer jwt-token"

    @pytest.mark.asyncio
    async def test_http_error_status(self) -> None:
        client = _client(_response(503, {"success": False}))
        with pytest.raises(RemoteScoreError, match="503"):
            await _remote(client).fetch_today(TEST_USER_ID, "t", TEST_DATE)

    @pytest.mark.asyncio
    async def test_success_false(self) -> None:
        client = _client(_response(200, {"success": False, "error": "nope"}))
        with pytest.raises(RemoteScoreError):
            await _remote(client).fetch_today(TEST_USER_ID, "t", TEST_DATE)

    @pytest.mark.asyncio
    async def test_missing_score_field_is_malformed(self) -> None:
        data = {k: v for k, v in REMOTE_SCORE.items() if k != "score"}
        client = _client(_response(200, {"success": True, "data": data}))
        with pytest.raises(RemoteScoreError, match="malformed"):
            await _remote(client).fetch_today(TEST_USER_ID, "t", TEST_DATE)

    @pytest.mark.asyncio
    async def test_non_json_body(self) -> None:
        response = _response(200, None)
        response.json = MagicMock(side_effect=ValueError("not json"))
        with pytest.raises(RemoteScoreError):
            await _remote(_client(response)).fetch_today(TEST_USER_ID, "t", TEST_DATE)

    @pytest.mark.asyncio
    async def test_transport_error(self) -> None:
        client = _client(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(RemoteScoreError):
            await _remote(client).fetch_today(TEST_USER_ID, "t", TEST_DATE)

    @pytest.mark.asyncio
    async def test_deadline(self) -> None:
        async def hang(*args, **kwargs):
            await asyncio.sleep(5)

        client = _client(side_effect=hang)
        with pytest.raises(RemoteScoreTimeout):
            await _remote(client, timeout=0.05).fetch_today(TEST_USER_ID, "t", TEST_DATE)


class TestRegenerate:
    @pytest.mark.asyncio
    async def test_posts_to_regenerate(self) -> None:
        client = _client(_response(200, {"success": True, "data": REMOTE_SCORE}))

        score = await _remote(client).regenerate(TEST_USER_ID, "jwt-token")

        assert score.explanation == REMOTE_SCORE["explanation"]
        args, _ = client.request.call_args
        assert args == ("POST", "https://api.example/api/energy/regenerate")
