"""Clarity: daily energy score and health-data reconciliation engine."""

__version__ = "0.1.0"
