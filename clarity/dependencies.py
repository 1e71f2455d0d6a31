"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, HTTPException, Request

from clarity.config import Settings
from clarity.energy.engine import Session
from clarity.services.container import ClarityServices


@dataclass(frozen=True)
class AuthContext:
    """Authenticated user context extracted from the bearer JWT."""

    user_id: str
    access_token: str
    email: str | None = None

    def session(self) -> Session:
        return Session(user_id=self.user_id, access_token=self.access_token)


async def get_current_user(request: Request) -> AuthContext:
    """Extract the authenticated user from the request state.

    The JWT auth middleware sets ``request.state.auth`` before routes run.
    """
    auth: AuthContext | None = getattr(request.state, "auth", None)
    if auth is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return auth


def get_app_settings(request: Request) -> Settings:
    """Settings the app was created with (see ``clarity.main.create_app``)."""
    return request.app.state.settings


def get_services(request: Request) -> ClarityServices:
    """Service graph built at startup (see ``clarity.main.create_app``)."""
    return request.app.state.services


# Annotated shortcuts for route signatures
CurrentUser = Annotated[AuthContext, Depends(get_current_user)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
Services = Annotated[ClarityServices, Depends(get_services)]
