"""Clarity API: FastAPI application entry point.

Run locally:
    uvicorn clarity.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from clarity.config import Settings, get_settings
from clarity.middleware.auth import JWTAuthMiddleware
from clarity.routers import energy, feedback, health_sync, system
from clarity.services.container import ClarityServices, build_services
from clarity.services.database import close_pool, init_pool

# ---------- Logging ----------

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("clarity")


# ---------- Lifespan ----------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup / shutdown hooks."""
    settings: Settings = app.state.settings
    logger.info(
        "Starting Clarity API v%s [%s]",
        settings.app_version,
        settings.environment,
    )
    if settings.storage_backend == "postgres":
        await init_pool(settings)
    yield
    if settings.storage_backend == "postgres":
        await close_pool()
    logger.info("Clarity API shut down")


# ---------- App factory ----------

def create_app(
    settings: Settings | None = None, services: ClarityServices | None = None
) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title="Clarity API",
        description=(
            "Daily energy score from check-ins and health data, with "
            "health-source reconciliation."
        ),
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.services = services or build_services(settings)

    # ---------- Middleware ----------

    # JWT authentication
    app.add_middleware(JWTAuthMiddleware, settings=settings)

    # CORS is added last so it wraps auth and answers preflight requests
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---------- Routes ----------
    app.include_router(system.router)
    app.include_router(energy.router)
    app.include_router(health_sync.router)
    app.include_router(feedback.router)

    return app


app = create_app()
