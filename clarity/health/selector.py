"""Pick the single authoritative health source for a sync call.

Candidates are evaluated in a fixed priority order by ``select_source``:

1. Synthetic test data, when the user turned test-data mode on (wins outright)
2. Google Fit, when the user enabled it and it reports available
3. The platform's native health store, when supported
4. Nothing: sync is not possible

The choice is recomputed on every call; preferences may change between
syncs.  Two real sources are never blended for one call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from clarity.health.adapters.google_fit import GoogleFitAdapter
from clarity.health.adapters.native import NativeHealthAdapter
from clarity.health.adapters.synthetic import SyntheticAdapter
from clarity.health.base import HealthSourceAdapter

logger = logging.getLogger("clarity.health.selector")


@dataclass(frozen=True)
class SourcePreferences:
    """User toggles that influence source selection."""

    platform: str = "web"
    use_synthetic_data: bool = False
    third_party_enabled: bool = False


@dataclass
class SourceAdapters:
    """The adapter instances a sync chooses from, Google Fit bound to one user."""

    synthetic: SyntheticAdapter
    google_fit: GoogleFitAdapter | None = None
    native: NativeHealthAdapter | None = None


Candidate = Callable[[SourcePreferences, SourceAdapters], HealthSourceAdapter | None]


def _synthetic_candidate(
    prefs: SourcePreferences, adapters: SourceAdapters
) -> HealthSourceAdapter | None:
    if prefs.use_synthetic_data:
        return adapters.synthetic
    return None


def _third_party_candidate(
    prefs: SourcePreferences, adapters: SourceAdapters
) -> HealthSourceAdapter | None:
    adapter = adapters.google_fit
    if prefs.third_party_enabled and adapter is not None and adapter.is_available():
        return adapter
    return None


def _native_candidate(
    prefs: SourcePreferences, adapters: SourceAdapters
) -> HealthSourceAdapter | None:
    adapter = adapters.native
    if adapter is not None and adapter.is_available():
        return adapter
    return None


#: Evaluated in order; the first candidate returning an adapter wins.
CANDIDATES: tuple[Candidate, ...] = (
    _synthetic_candidate,
    _third_party_candidate,
    _native_candidate,
)


def select_source(
    prefs: SourcePreferences, adapters: SourceAdapters
) -> HealthSourceAdapter | None:
    """Return the adapter to use for this sync, or None if none can be used."""
    for candidate in CANDIDATES:
        adapter = candidate(prefs, adapters)
        if adapter is not None:
            logger.debug("Selected health source %s (%s)", adapter.KIND.value, candidate.__name__)
            return adapter
    logger.info("No health source available on platform %r", prefs.platform)
    return None
