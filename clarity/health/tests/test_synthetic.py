"""Tests for the synthetic test-data source."""

from __future__ import annotations

import random
from datetime import timedelta

import pytest

from clarity.health.adapters.synthetic import SyntheticAdapter
from clarity.health.base import SourceKind
from clarity.health.normalize import sleep_quality_for
from clarity.health.tests.conftest import TEST_DATE


class TestSyntheticAdapter:
    def test_always_available(self, synthetic_adapter: SyntheticAdapter) -> None:
        assert synthetic_adapter.is_available() is True
        assert synthetic_adapter.KIND is SourceKind.SYNTHETIC

    @pytest.mark.asyncio
    async def test_single_day_populates_every_field(
        self, synthetic_adapter: SyntheticAdapter
    ) -> None:
        metrics = await synthetic_adapter.fetch_single_day(TEST_DATE)
        assert metrics is not None
        assert len(metrics.populated()) == 6

    @pytest.mark.asyncio
    async def test_values_stay_within_ranges(self) -> None:
        adapter = SyntheticAdapter(rng=random.Random(7))
        result = await adapter.fetch_range(TEST_DATE - timedelta(days=60), TEST_DATE)
        assert len(result.days) == 60
        for metrics in result.days.values():
            assert metrics is not None
            assert 6.0 <= metrics.sleep_duration_hours < 8.5
            assert 5000 <= metrics.steps < 13000
            assert 30 <= metrics.heart_rate_variability_ms < 80
            assert 55 <= metrics.resting_heart_rate_bpm < 75
            assert 200 <= metrics.active_calories < 600

    @pytest.mark.asyncio
    async def test_sleep_upper_bound_is_exclusive(self) -> None:
        rng = random.Random()
        rng.random = lambda: 0.9999
        metrics = await SyntheticAdapter(rng=rng).fetch_single_day(TEST_DATE)
        assert metrics.sleep_duration_hours == 8.4

    @pytest.mark.asyncio
    async def test_quality_is_a_valid_tier(self, synthetic_adapter: SyntheticAdapter) -> None:
        metrics = await synthetic_adapter.fetch_single_day(TEST_DATE)
        assert metrics.sleep_quality in {"poor", "fair", "good"}
        assert metrics.sleep_quality != "poor"  # generated sleep never drops below 6h
        assert sleep_quality_for(6.0).value == "fair"

    @pytest.mark.asyncio
    async def test_range_end_is_exclusive(self, synthetic_adapter: SyntheticAdapter) -> None:
        result = await synthetic_adapter.fetch_range(TEST_DATE - timedelta(days=7), TEST_DATE)
        assert TEST_DATE not in result.days
        assert min(result.days) == TEST_DATE - timedelta(days=7)
