"""Wires repositories, adapters and engines for one running app."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from clarity.config import Settings
from clarity.energy.engine import EnergyScoreEngine
from clarity.energy.remote import RemoteScoreClient
from clarity.energy.store import FeedbackService, ScoreStore
from clarity.health.adapters.google_fit import GoogleFitAccounts
from clarity.health.adapters.native import HealthStoreClient, NativeHealthAdapter
from clarity.health.adapters.synthetic import SyntheticAdapter
from clarity.health.reconciliation import HealthReconciler
from clarity.health.selector import SourceAdapters
from clarity.storage.base import CheckInRepository, HealthMetricRepository
from clarity.storage.local_state import LocalStateStore
from clarity.storage.memory import (
    InMemoryCheckInRepository,
    InMemoryFeedbackRepository,
    InMemoryHealthMetricRepository,
    InMemoryScoreRepository,
)
from clarity.storage.postgres import (
    PostgresCheckInRepository,
    PostgresFeedbackRepository,
    PostgresHealthMetricRepository,
    PostgresScoreRepository,
)

logger = logging.getLogger("clarity.services")


@dataclass
class ClarityServices:
    settings: Settings
    state: LocalStateStore
    health_metrics: HealthMetricRepository
    check_ins: CheckInRepository
    scores: ScoreStore
    feedback: FeedbackService
    reconciler: HealthReconciler
    engine: EnergyScoreEngine
    google_fit: GoogleFitAccounts | None = None


def build_services(
    settings: Settings,
    http_client: httpx.AsyncClient | None = None,
    native_client: HealthStoreClient | None = None,
    state: LocalStateStore | None = None,
) -> ClarityServices:
    """Build the service graph for ``settings.storage_backend``.

    Args:
        settings:      Environment settings.
        http_client:   Shared httpx client for outbound calls (optional).
        native_client: Bridge to the device health store, when running on one.
        state:         Local state store override (defaults to the settings path).
    """
    if settings.storage_backend == "postgres":
        health_metrics = PostgresHealthMetricRepository()
        check_ins = PostgresCheckInRepository()
        score_repo = PostgresScoreRepository()
        feedback_repo = PostgresFeedbackRepository()
    else:
        health_metrics = InMemoryHealthMetricRepository()
        check_ins = InMemoryCheckInRepository()
        score_repo = InMemoryScoreRepository()
        feedback_repo = InMemoryFeedbackRepository()

    state = state or LocalStateStore(settings.local_state_path)

    google_fit = None
    if settings.google_fit_client_id:
        google_fit = GoogleFitAccounts(
            client_id=settings.google_fit_client_id,
            client_secret=settings.google_fit_client_secret,
            redirect_uri=settings.google_fit_redirect_uri,
            token_store=state,
            http_client=http_client,
        )

    adapters = SourceAdapters(
        synthetic=SyntheticAdapter(),
        native=NativeHealthAdapter(settings.platform, client=native_client),
    )

    scores = ScoreStore(score_repo)
    services = ClarityServices(
        settings=settings,
        state=state,
        health_metrics=health_metrics,
        check_ins=check_ins,
        scores=scores,
        feedback=FeedbackService(scores, feedback_repo),
        reconciler=HealthReconciler(
            adapters,
            health_metrics,
            state,
            platform=settings.platform,
            google_fit=google_fit,
        ),
        engine=EnergyScoreEngine(
            RemoteScoreClient(settings.api_url, http_client=http_client),
            check_ins,
            scores,
            health_metrics=health_metrics,
        ),
        google_fit=google_fit,
    )
    logger.info(
        "Services ready (storage=%s, platform=%s, google_fit=%s)",
        settings.storage_backend,
        settings.platform,
        "configured" if google_fit else "off",
    )
    return services
