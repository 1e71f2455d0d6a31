"""Health-data source adapters for Clarity.

Each adapter implements the HealthSourceAdapter ABC and handles:
- Its own availability check (capability, permission, credentials)
- Fetching one day or a date range from the provider
- Reducing provider payloads to PartialMetrics, leaving gaps as None

Available adapters:
    SyntheticAdapter    Generated test data (always available)
    GoogleFitAdapter    Google Fit REST API (OAuth2), one per user via GoogleFitAccounts
    NativeHealthAdapter Apple Health / Health Connect via a store client
"""

from clarity.health.adapters.google_fit import GoogleFitAccounts, GoogleFitAdapter
from clarity.health.adapters.native import HealthSample, HealthStoreClient, NativeHealthAdapter
from clarity.health.adapters.synthetic import SyntheticAdapter

__all__ = [
    "GoogleFitAccounts",
    "GoogleFitAdapter",
    "HealthSample",
    "HealthStoreClient",
    "NativeHealthAdapter",
    "SyntheticAdapter",
]
