"""Shared fixtures: packaged settings, the sample inventory and small synthetic portfolios."""

from __future__ import annotations

from typing import Callable

import pytest

from aro_scenarios.config import EngineSettings, default_settings
from aro_scenarios.engine import ScenarioEngine
from aro_scenarios.inventory import Inventory, ObligationSnapshot, load_inventory, sample_inventory_path


@pytest.fixture
def settings() -> EngineSettings:
    return default_settings()


@pytest.fixture
def make_obligation() -> Callable[..., ObligationSnapshot]:
    """Factory for an active ARO with sensible defaults; override any field by keyword."""

    def _make(oid: str = "OBL-T1", **overrides) -> ObligationSnapshot:
        fields = dict(
            id=oid,
            current_liability=10_000_000.0,
            discount_rate=0.05,
            initial_estimate=0.0,
            accretion_expense=500_000.0,
            years_remaining=10.0,
            status="Active",
            site_id="S-T",
            facility_id="F-T",
        )
        fields.update(overrides)
        return ObligationSnapshot(**fields)

    return _make


@pytest.fixture
def ten_million(make_obligation):
    """Single $10M obligation at 5% with ten years remaining."""
    return (make_obligation(),)


@pytest.fixture
def fifteen_million(make_obligation):
    """$15M portfolio: three $5M obligations settling in 8, 10 and 12 years."""
    return tuple(
        make_obligation(f"OBL-P{i}", current_liability=5_000_000.0, years_remaining=years)
        for i, years in enumerate((8.0, 10.0, 12.0), start=1)
    )


@pytest.fixture(scope="session")
def sample_inventory() -> Inventory:
    return load_inventory(sample_inventory_path())


@pytest.fixture
def engine(sample_inventory) -> ScenarioEngine:
    return ScenarioEngine(sample_inventory)
