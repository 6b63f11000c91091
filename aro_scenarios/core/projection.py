"""Deterministic liability projection under a ParameterSet.

Per obligation:

    adjusted_rate     = max(rate_floor, discount_rate + discount_delta)
    effective_years   = max(0, years_remaining + timeline_shift_years)
    scope_multiplier  = (1 + scope_expansion_percent / 100) * regulatory_factor
    adjusted_estimate = estimate * escalation_factor * scope_multiplier
    prob_multiplier   = 1 + probability_adjustment_percent / 100

    PV = adjusted_estimate * (1 + inflation)^effective_years
                           / (1 + adjusted_rate)^effective_years * prob_multiplier

with inflation = baseline_inflation + inflation_delta. The reported
current_liability is the booked PV, so the scenario PV is applied as a
ratio to the PV of the same formula under neutral inputs:

    adjusted_liability = current_liability * PV(scenario) / PV(neutral)

Neutral inputs therefore reproduce current_liability exactly.

Everything here is a pure function of its arguments: no I/O, no module
state, and identical arguments give bit-identical floats.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from aro_scenarios.config import EngineSettings, default_settings
from aro_scenarios.config_schema import RequiredFieldSpec, is_date, is_number, register_required_fields
from aro_scenarios.contracts import ComparisonPoint, ObligationProjection, ProjectionFigures
from aro_scenarios.inventory import ForecastPoint, ObligationSnapshot
from aro_scenarios.parameters import ParameterSet

logger = logging.getLogger(__name__)

register_required_fields(
    "projection",
    [
        RequiredFieldSpec(
            module="projection",
            name="baseline_inflation",
            path="rates.baseline_inflation",
            description="Baseline annual cost inflation the deltas are applied to.",
            validator=is_number(-0.5, 0.5),
        ),
        RequiredFieldSpec(
            module="projection",
            name="rate_floor",
            path="rates.rate_floor",
            description="Floor for discount_rate + discount_delta (must be > 0).",
            validator=is_number(1e-9, 1.0),
        ),
        RequiredFieldSpec(
            module="projection",
            name="valuation_date",
            path="valuation.date",
            description="Date years_remaining is measured from.",
            validator=is_date,
        ),
        RequiredFieldSpec(
            module="projection",
            name="forecast_horizon_years",
            path="forecast.horizon_years",
            required=False,
            description="Length of the synthetic comparator when no forecast baseline is supplied.",
            validator=is_number(1, 100),
        ),
    ],
)


# ---------------------------------------------------------------------------
# Per-obligation maths
# ---------------------------------------------------------------------------


def adjusted_rate(base_rate: float, discount_delta: float, rate_floor: float) -> float:
    return max(rate_floor, base_rate + discount_delta)


def effective_years(years_remaining: float, timeline_shift_years: float) -> float:
    return max(0.0, years_remaining + timeline_shift_years)


def _estimate_basis(o: ObligationSnapshot) -> float:
    """Undiscounted estimate the multipliers act on."""
    return o.initial_estimate if o.initial_estimate > 0 else o.current_liability


def present_value(
    estimate: float,
    rate: float,
    years: float,
    inflation: float,
) -> float:
    """Inflate ``estimate`` over ``years`` and discount it back at ``rate``."""
    return estimate * (1.0 + inflation) ** years / (1.0 + rate) ** years


def _scenario_terms(
    o: ObligationSnapshot,
    params: ParameterSet,
    settings: EngineSettings,
) -> Tuple[float, float, float, float]:
    """(adjusted_rate, effective_years, adjusted_estimate, present value)."""
    rate = adjusted_rate(o.discount_rate, params.discount_delta, settings.rate_floor)
    years = effective_years(o.years_remaining, params.timeline_shift_years)
    scope_multiplier = (1.0 + params.scope_expansion_percent / 100.0) * params.regulatory_factor
    estimate = _estimate_basis(o) * params.escalation_factor * scope_multiplier
    prob_multiplier = 1.0 + params.probability_adjustment_percent / 100.0
    inflation = settings.baseline_inflation + params.inflation_delta

    pv = present_value(estimate, rate, years, inflation) * prob_multiplier
    return rate, years, estimate, pv


def project_obligation(
    o: ObligationSnapshot,
    params: ParameterSet,
    settings: EngineSettings,
    neutral: Optional[ParameterSet] = None,
) -> ObligationProjection:
    """Scenario figures for one obligation."""
    neutral = neutral or ParameterSet.neutral()
    rate, years, estimate, scenario_pv = _scenario_terms(o, params, settings)
    base_rate, _, _, neutral_pv = _scenario_terms(o, neutral, settings)

    if neutral_pv > 0:
        factor = scenario_pv / neutral_pv
        adjusted = o.current_liability * factor
    else:
        factor = 0.0
        adjusted = o.current_liability

    # Same nominal settlement cost, discounted at the scenario rate vs the
    # unshifted rate: isolates the discount-rate component of the change.
    settlement_cost = adjusted * (1.0 + rate) ** years
    npv_change = adjusted - settlement_cost / (1.0 + base_rate) ** years

    return ObligationProjection(
        obligation_id=o.id,
        baseline_liability=o.current_liability,
        adjusted_liability=adjusted,
        adjusted_rate=rate,
        effective_years=years,
        adjusted_estimate=estimate,
        scenario_factor=factor,
        npv_change=npv_change,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def delta_percent(baseline: float, adjusted: float) -> float:
    """Percent change; defined as 0.0 for a zero baseline."""
    if baseline == 0:
        return 0.0
    return (adjusted - baseline) / baseline * 100.0


def project(
    params: ParameterSet,
    obligations: Sequence[ObligationSnapshot],
    settings: Optional[EngineSettings] = None,
) -> ProjectionFigures:
    """
    Project the in-scope obligations under ``params``.

    An empty ``obligations`` sequence yields a zero-baseline result with
    ``no_data=True``.
    """
    settings = settings or default_settings()

    if not obligations:
        return ProjectionFigures(
            baseline_liability=0.0,
            adjusted_liability=0.0,
            delta_dollars=0.0,
            delta_percent=0.0,
            npv_change=0.0,
            obligations=(),
            no_data=True,
        )

    neutral = ParameterSet.neutral()
    rows: List[ObligationProjection] = [
        project_obligation(o, params, settings, neutral) for o in obligations
    ]

    baseline = 0.0
    adjusted = 0.0
    npv_change = 0.0
    for row in rows:
        baseline += row.baseline_liability
        adjusted += row.adjusted_liability
        npv_change += row.npv_change

    return ProjectionFigures(
        baseline_liability=baseline,
        adjusted_liability=adjusted,
        delta_dollars=adjusted - baseline,
        delta_percent=delta_percent(baseline, adjusted),
        npv_change=npv_change,
        obligations=tuple(rows),
        no_data=False,
    )


def comparison_series(
    forecast: Sequence[ForecastPoint],
    scenario_delta_percent: float,
    scale: float = 1.0,
) -> Tuple[ComparisonPoint, ...]:
    """
    Base-vs-scenario series for charting.

    The scenario delta is phased in linearly: year i (0-based) of N carries
    (i + 1) / N of the full delta, so the last forecast year shows all of it.
    ``scale`` narrows a portfolio-level forecast to the scope's share.
    """
    n = len(forecast)
    if n == 0:
        return ()

    out: List[ComparisonPoint] = []
    for i, point in enumerate(forecast):
        base = point.total * scale
        phased = scenario_delta_percent / 100.0 * (i + 1) / n
        out.append(ComparisonPoint(year=point.year, base=base, scenario=base * (1.0 + phased)))
    return tuple(out)


def flat_forecast(start_year: int, years: int, liability: float) -> Tuple[ForecastPoint, ...]:
    """Synthetic comparator: the current baseline held flat over ``years``."""
    return tuple(ForecastPoint(year=start_year + i, aro=liability, ero=0.0) for i in range(years))


__all__ = [
    "adjusted_rate",
    "comparison_series",
    "delta_percent",
    "effective_years",
    "flat_forecast",
    "present_value",
    "project",
    "project_obligation",
]
