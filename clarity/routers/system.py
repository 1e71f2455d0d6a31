"""Liveness endpoint. Public, no auth required."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter

from clarity.dependencies import AppSettings
from clarity.models.base import ClarityBase, utc_now
from clarity.services import database as db

router = APIRouter(tags=["system"])


class SystemHealth(ClarityBase):
    status: str
    version: str
    environment: str
    storage: str
    database: str
    timestamp: datetime


@router.get("/health", response_model=SystemHealth)
async def health_check(settings: AppSettings) -> SystemHealth:
    """200 while the process is up; ``degraded`` if Postgres is configured but unreachable."""
    database = "not_used"
    if settings.storage_backend == "postgres":
        database = "connected" if await db.ping() else "unreachable"

    return SystemHealth(
        status="degraded" if database == "unreachable" else "healthy",
        version=settings.app_version,
        environment=settings.environment,
        storage=settings.storage_backend,
        database=database,
        timestamp=utc_now(),
    )
