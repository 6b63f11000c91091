"""
ScenarioEngine: one object holding an injected inventory and settings,
exposing the full scenario workflow.

    engine = ScenarioEngine(load_inventory(sample_inventory_path()))
    result = engine.project(STRESS_TEST_PRESETS["severe_inflation_shock"].apply())
    answer = engine.solve(20.0, "inflation")
    risk   = engine.score_with_scenario(0.02, -0.005)

project() chains the baseline resolver, deterministic projection,
sensitivity ranking and Monte Carlo into one SimulationResult. The
before/after headline scores move with the scenario's delta_percent:

    volatility_after = clamp(10, 100, volatility_before + |delta%| * 1.2)
    confidence_after = clamp(30, 95,  confidence_before - |delta%| * 0.8)
    risk_after       = clamp(10, 100, risk_before + delta% * 0.6)
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Mapping, Optional, Tuple

from aro_scenarios.config import EngineSettings, RiskWeights, default_settings
from aro_scenarios.config_schema import RequiredFieldSpec, is_number, register_required_fields
from aro_scenarios.contracts import (
    BeforeAfter,
    ComparisonPoint,
    MonteCarloSummary,
    PercentileBundle,
    ReverseSolveResult,
    RiskScoreResult,
    ScenarioRiskResult,
    SimulationResult,
)
from aro_scenarios.core import monte_carlo, projection, reverse_solver, risk_scoring, sensitivity
from aro_scenarios.core.cancellation import CancellationToken
from aro_scenarios.core.stats import risk_adjusted_exposure
from aro_scenarios.inventory import BaselineResolver, Inventory, ObligationSnapshot, load_inventory
from aro_scenarios.parameters import ParameterSet
from aro_scenarios.presets import STRESS_TEST_PRESETS, StressTestPreset, get_preset

logger = logging.getLogger(__name__)

register_required_fields(
    "engine",
    [
        RequiredFieldSpec(
            module="engine",
            name="confidence_before",
            path="scores.confidence_before",
            description="Forecast confidence index before any scenario.",
            validator=is_number(0, 100),
        ),
        RequiredFieldSpec(
            module="engine",
            name="risk_before",
            path="scores.risk_before",
            description="Headline risk score before any scenario.",
            validator=is_number(0, 100),
        ),
        RequiredFieldSpec(
            module="engine",
            name="volatility_before",
            path="scores.volatility_before",
            description="Exposure volatility score before any scenario.",
            validator=is_number(0, 100),
        ),
        RequiredFieldSpec(
            module="engine",
            name="p75_weight",
            path="exposure.p75_weight",
            description="P75 weight in risk-adjusted exposure.",
            validator=is_number(0, 1),
        ),
        RequiredFieldSpec(
            module="engine",
            name="p95_weight",
            path="exposure.p95_weight",
            description="P95 weight in risk-adjusted exposure.",
            validator=is_number(0, 1),
        ),
    ],
)


def _score(value: float, lo: float, hi: float) -> float:
    """Clamp and round half up to a whole point."""
    return float(math.floor(max(lo, min(hi, value)) + 0.5))


def headline_scores(delta_pct: float, settings: EngineSettings) -> Tuple[BeforeAfter, BeforeAfter, BeforeAfter]:
    """(confidence_index, risk_score, volatility_score) before/after a delta_percent."""
    magnitude = abs(delta_pct)
    confidence = BeforeAfter(
        before=settings.confidence_before,
        after=_score(settings.confidence_before - magnitude * 0.8, 30.0, 95.0),
    )
    risk = BeforeAfter(
        before=settings.risk_before,
        after=_score(settings.risk_before + delta_pct * 0.6, 10.0, 100.0),
    )
    volatility = BeforeAfter(
        before=settings.volatility_before,
        after=_score(settings.volatility_before + magnitude * 1.2, 10.0, 100.0),
    )
    return confidence, risk, volatility


def _empty_monte_carlo() -> MonteCarloSummary:
    return MonteCarloSummary(
        percentiles=PercentileBundle(0.0, 0.0, 0.0, 0.0, 0.0),
        histogram=(),
        mean=0.0,
        std_dev=0.0,
        minimum=0.0,
        maximum=0.0,
        trial_count=0,
    )


class ScenarioEngine:
    """Scenario simulation and risk analytics over one inventory."""

    def __init__(self, inventory: Inventory, settings: Optional[EngineSettings] = None) -> None:
        self.inventory = inventory
        self.settings = settings or default_settings()
        self.resolver = BaselineResolver.from_inventory(inventory)

    @classmethod
    def from_file(
        cls,
        inventory_path: str | Path,
        settings: Optional[EngineSettings] = None,
    ) -> "ScenarioEngine":
        """Load a YAML/JSON inventory; the settings valuation date fills in when the file has none."""
        settings = settings or default_settings()
        inventory = load_inventory(inventory_path, default_valuation_date=settings.valuation_date)
        return cls(inventory, settings)

    # ------------------------------------------------------------------
    # Scope helpers
    # ------------------------------------------------------------------
    def scope(self, level: str = "portfolio", scope_id: Optional[str] = None) -> Tuple[ObligationSnapshot, ...]:
        return self.resolver.resolve(level, scope_id)

    def _comparison(self, figures_baseline: float, delta_pct: float) -> Tuple[ComparisonPoint, ...]:
        forecast = self.inventory.forecast
        if forecast:
            portfolio_baseline = sum(o.current_liability for o in self.resolver.active)
            scale = figures_baseline / portfolio_baseline if portfolio_baseline > 0 else 0.0
            return projection.comparison_series(forecast, delta_pct, scale)

        valuation = self.inventory.valuation_date or self.settings.valuation_date
        flat = projection.flat_forecast(
            valuation.year, self.settings.forecast_horizon_years, figures_baseline
        )
        return projection.comparison_series(flat, delta_pct)

    # ------------------------------------------------------------------
    # Scenario projection
    # ------------------------------------------------------------------
    def project(
        self,
        params: ParameterSet,
        rng: monte_carlo.RngLike = None,
        trial_count: Optional[int] = None,
        max_workers: Optional[int] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> SimulationResult:
        """
        Run the full scenario for ``params`` over its level/scope.

        Args:
            params: Scenario inputs; ``params.level``/``params.scope_id``
                select the obligations.
            rng: numpy Generator or int seed for the Monte Carlo step.
            trial_count: Monte Carlo trials (settings default otherwise).
            max_workers: Thread-pool size for Monte Carlo trials.
            cancel: Cancellation/timeout token polled by Monte Carlo.

        Returns:
            SimulationResult. An empty scope gives zero figures with
            ``no_data=True`` rather than raising.
        """
        settings = self.settings
        obligations = self.scope(params.level, params.scope_id)
        figures = projection.project(params, obligations, settings)
        analysis = sensitivity.rank_sensitivity(params, obligations, settings)

        if figures.no_data:
            logger.warning("No active obligations for %s=%s", params.level, params.scope_id)
            mc = _empty_monte_carlo()
            comparison: Tuple[ComparisonPoint, ...] = ()
        else:
            mc = monte_carlo.simulate(
                params,
                obligations,
                trial_count=trial_count,
                rng=rng,
                settings=settings,
                max_workers=max_workers,
                cancel=cancel,
            )
            comparison = self._comparison(figures.baseline_liability, figures.delta_percent)

        confidence, risk, volatility = headline_scores(figures.delta_percent, settings)
        exposure = risk_adjusted_exposure(
            mc.percentiles, settings.exposure_p75_weight, settings.exposure_p95_weight
        )

        logger.info(
            "Scenario %s%s: baseline=%.0f adjusted=%.0f (%+.2f%%) over %d obligations",
            params.level,
            f"[{params.scope_id}]" if params.scope_id else "",
            figures.baseline_liability,
            figures.adjusted_liability,
            figures.delta_percent,
            figures.obligation_count,
        )

        return SimulationResult(
            params=params,
            baseline_liability=figures.baseline_liability,
            adjusted_liability=figures.adjusted_liability,
            delta_dollars=figures.delta_dollars,
            delta_percent=figures.delta_percent,
            npv_change=figures.npv_change,
            risk_adjusted_exposure=exposure,
            percentiles=mc.percentiles,
            confidence_index=confidence,
            risk_score=risk,
            volatility_score=volatility,
            comparison=comparison,
            tornado=analysis.tornado,
            histogram=mc.histogram,
            sensitivity=analysis.table,
            monte_carlo=mc,
            obligations=figures.obligations,
            no_data=figures.no_data,
        )

    def run_preset(
        self,
        key: str,
        level: str = "portfolio",
        scope_id: Optional[str] = None,
        **kwargs,
    ) -> SimulationResult:
        """Shortcut for ``project(get_preset(key).apply(level, scope_id), ...)``."""
        return self.project(get_preset(key).apply(level, scope_id), **kwargs)

    @property
    def stress_test_presets(self) -> Mapping[str, StressTestPreset]:
        return STRESS_TEST_PRESETS

    # ------------------------------------------------------------------
    # Goal seek
    # ------------------------------------------------------------------
    def solve(
        self,
        target_percent: float,
        lever: str,
        level: str = "portfolio",
        scope_id: Optional[str] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> ReverseSolveResult:
        return reverse_solver.solve(
            target_percent,
            lever,
            self.scope(level, scope_id),
            settings=self.settings,
            level=level,
            scope_id=scope_id,
            cancel=cancel,
        )

    # ------------------------------------------------------------------
    # Risk scoring
    # ------------------------------------------------------------------
    def score_portfolio(self, weights: Optional[RiskWeights] = None) -> RiskScoreResult:
        return risk_scoring.score_portfolio(
            self.inventory.obligations, self.inventory.sites, self.settings, weights
        )

    def score_with_scenario(
        self,
        inflation_delta: float,
        discount_delta: float,
        weights: Optional[RiskWeights] = None,
    ) -> ScenarioRiskResult:
        return risk_scoring.score_with_scenario(
            inflation_delta,
            discount_delta,
            self.inventory.obligations,
            self.inventory.sites,
            self.settings,
            weights,
        )


__all__ = ["ScenarioEngine", "headline_scores"]
