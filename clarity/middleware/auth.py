"""Bearer JWT verification middleware.

Every non-public request must carry ``Authorization: Bearer <jwt>``, signed
with ``JWT_SECRET``.  The ``sub`` claim is the user id.  The raw token stays
on ``request.state.auth`` because the remote scoring API accepts the same
credential.
"""

from __future__ import annotations

import logging
from typing import Any

import jwt as pyjwt
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from clarity.config import Settings, get_settings
from clarity.dependencies import AuthContext

logger = logging.getLogger("clarity.auth")

PUBLIC_PATHS: frozenset[str] = frozenset({"/health", "/openapi.json"})
PUBLIC_PREFIXES: tuple[str, ...] = ("/docs", "/redoc")


class TokenRejected(Exception):
    """The bearer token is missing, malformed, expired or badly signed."""


def is_public(path: str) -> bool:
    return path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIXES)


def bearer_token(request: Request) -> str:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme != "Bearer" or not token.strip():
        raise TokenRejected("Missing or invalid Authorization header")
    return token.strip()


def decode_token(token: str, settings: Settings) -> AuthContext:
    """Verify ``token`` and turn its claims into an ``AuthContext``.

    Raises:
        TokenRejected: with the message returned to the client.
    """
    try:
        claims = pyjwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"verify_aud": False, "require": ["sub"]},
        )
    except pyjwt.ExpiredSignatureError as exc:
        raise TokenRejected("Token expired") from exc
    except pyjwt.PyJWTError as exc:
        logger.warning("JWT validation failed: %s", exc)
        raise TokenRejected("Invalid token") from exc

    return AuthContext(
        user_id=str(claims["sub"]),
        access_token=token,
        email=claims.get("email"),
    )


class JWTAuthMiddleware(BaseHTTPMiddleware):
    """Reject unauthenticated requests; populate ``request.state.auth`` otherwise."""

    def __init__(self, app: Any, settings: Settings | None = None) -> None:
        super().__init__(app)
        self._settings = settings or get_settings()
        if not self._settings.jwt_secret:
            logger.warning("JWT_SECRET is not set; every authenticated route will return 401")

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        # CORS preflight carries no credentials
        if is_public(request.url.path) or request.method == "OPTIONS":
            return await call_next(request)

        try:
            request.state.auth = decode_token(bearer_token(request), self._settings)
        except TokenRejected as exc:
            return JSONResponse({"detail": str(exc)}, status_code=401)

        return await call_next(request)
