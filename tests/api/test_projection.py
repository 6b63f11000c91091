"""
Tests for aro_scenarios.core.projection (deterministic calculator).
"""

from __future__ import annotations

import math

import pytest

from aro_scenarios.core.projection import (
    adjusted_rate,
    comparison_series,
    delta_percent,
    effective_years,
    flat_forecast,
    project,
)
from aro_scenarios.inventory import ForecastPoint
from aro_scenarios.parameters import ParameterSet


def test_ten_million_inflation_and_escalation_scenario(ten_million):
    params = ParameterSet(inflation_delta=0.02, escalation_factor=1.1)
    figures = project(params, ten_million)

    assert figures.baseline_liability == 10_000_000
    assert figures.adjusted_liability > 10_000_000
    assert figures.delta_percent > 0

    # calibrated ratio: 1.1 * ((1.045) / (1.025)) ** 10
    expected = 10_000_000 * 1.1 * (1.045 / 1.025) ** 10
    assert figures.adjusted_liability == pytest.approx(expected, rel=1e-12)
    assert figures.delta_dollars == pytest.approx(expected - 10_000_000)


def test_neutral_parameters_reproduce_baseline(sample_inventory):
    active = [o for o in sample_inventory.obligations if not o.is_settled]
    figures = project(ParameterSet.neutral(), active)

    assert figures.adjusted_liability == figures.baseline_liability
    assert figures.delta_dollars == 0.0
    assert figures.delta_percent == 0.0
    assert figures.npv_change == pytest.approx(0.0, abs=1e-6)
    assert figures.obligation_count == 12


def test_projection_is_deterministic(fifteen_million):
    params = ParameterSet(
        inflation_delta=0.013,
        discount_delta=-0.004,
        escalation_factor=1.07,
        timeline_shift_years=2,
        regulatory_factor=1.1,
        scope_expansion_percent=5,
        probability_adjustment_percent=-3,
    )
    first = project(params, fifteen_million)
    second = project(params, fifteen_million)
    assert first == second


@pytest.mark.parametrize("field", ["escalation_factor", "regulatory_factor"])
def test_escalation_is_monotonic(fifteen_million, field):
    previous = -math.inf
    for value in (0.8, 0.9, 1.0, 1.1, 1.25, 1.5):
        adjusted = project(ParameterSet(**{field: value}), fifteen_million).adjusted_liability
        assert adjusted >= previous
        previous = adjusted


def test_discount_shift_moves_liability_and_npv_the_other_way(ten_million):
    figures = project(ParameterSet(discount_delta=0.01), ten_million)
    assert figures.adjusted_liability < figures.baseline_liability
    assert figures.npv_change < 0

    figures = project(ParameterSet(discount_delta=-0.01), ten_million)
    assert figures.adjusted_liability > figures.baseline_liability
    assert figures.npv_change > 0


def test_empty_scope_is_no_data():
    figures = project(ParameterSet(inflation_delta=0.03), [])
    assert figures.no_data
    assert figures.baseline_liability == 0.0
    assert figures.adjusted_liability == 0.0
    assert figures.delta_percent == 0.0


def test_zero_baseline_gives_zero_delta_percent(make_obligation):
    figures = project(ParameterSet(escalation_factor=1.4), [make_obligation(current_liability=0.0)])
    assert not figures.no_data
    assert figures.delta_percent == 0.0
    assert math.isfinite(figures.npv_change)


def test_initial_estimate_is_the_estimate_basis(make_obligation):
    with_estimate = make_obligation(initial_estimate=8_000_000.0)
    # multipliers act proportionally, so the ratio is independent of the basis
    a = project(ParameterSet(scope_expansion_percent=20), [with_estimate]).adjusted_liability
    b = project(ParameterSet(scope_expansion_percent=20), [make_obligation()]).adjusted_liability
    assert a == pytest.approx(b)
    assert a == pytest.approx(12_000_000.0)


def test_probability_weighting_is_linear(ten_million):
    figures = project(ParameterSet(probability_adjustment_percent=-20), ten_million)
    assert figures.adjusted_liability == pytest.approx(8_000_000.0)
    assert figures.delta_percent == pytest.approx(-20.0)


def test_rate_floor_and_effective_years():
    assert adjusted_rate(0.02, -0.03, 0.005) == 0.005
    assert adjusted_rate(0.05, 0.01, 0.005) == pytest.approx(0.06)
    assert effective_years(3.0, -5) == 0.0
    assert effective_years(3.0, 2) == 5.0


def test_delta_percent_zero_baseline():
    assert delta_percent(0.0, 123.0) == 0.0
    assert delta_percent(200.0, 250.0) == 25.0


def test_comparison_series_phases_in_linearly():
    forecast = [ForecastPoint(2026, 60.0, 40.0), ForecastPoint(2027, 80.0, 20.0)]
    points = comparison_series(forecast, 10.0)

    assert [p.year for p in points] == [2026, 2027]
    assert points[0].base == 100.0
    assert points[0].scenario == pytest.approx(105.0)
    assert points[1].scenario == pytest.approx(110.0)


def test_comparison_series_scale_and_empty():
    forecast = [ForecastPoint(2026, 100.0, 0.0)]
    (point,) = comparison_series(forecast, -50.0, scale=0.25)
    assert point.base == 25.0
    assert point.scenario == pytest.approx(12.5)
    assert comparison_series([], 10.0) == ()


def test_flat_forecast():
    points = flat_forecast(2026, 3, 500.0)
    assert [p.year for p in points] == [2026, 2027, 2028]
    assert all(p.total == 500.0 for p in points)
