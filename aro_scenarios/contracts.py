"""Result contracts for the scenario and risk engines.

Central repository for the dataclasses the analytics return. All of them
are frozen: a result is built once per call and never mutated afterwards.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from aro_scenarios.parameters import ParameterSet


# =============================================================================
# Deterministic projection
# =============================================================================


@dataclass(frozen=True)
class ObligationProjection:
    """Per-obligation breakdown of one projection."""

    obligation_id: str
    baseline_liability: float
    adjusted_liability: float
    adjusted_rate: float
    effective_years: float
    adjusted_estimate: float
    scenario_factor: float
    npv_change: float


@dataclass(frozen=True)
class ComparisonPoint:
    year: int
    base: float
    scenario: float


@dataclass(frozen=True)
class ProjectionFigures:
    """Output of the deterministic calculator for one scope."""

    baseline_liability: float
    adjusted_liability: float
    delta_dollars: float
    delta_percent: float
    npv_change: float
    obligations: Tuple[ObligationProjection, ...] = ()
    no_data: bool = False

    @property
    def obligation_count(self) -> int:
        return len(self.obligations)


# =============================================================================
# Sensitivity / tornado
# =============================================================================


@dataclass(frozen=True)
class TornadoBar:
    """Adjusted liability at the low/high end of one factor's domain."""

    factor: str
    label: str
    low: float
    high: float
    base: float

    @property
    def swing(self) -> float:
        return abs(self.high - self.low)


@dataclass(frozen=True)
class SensitivityRow:
    rank: int
    factor: str
    label: str
    base_value: float
    adjusted_value: float
    impact_dollars: float
    impact_percent: float


@dataclass(frozen=True)
class SensitivityAnalysis:
    tornado: Tuple[TornadoBar, ...]
    table: Tuple[SensitivityRow, ...]


# =============================================================================
# Monte Carlo
# =============================================================================


@dataclass(frozen=True)
class PercentileBundle:
    p5: float
    p25: float
    p50: float
    p75: float
    p95: float

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class HistogramBucket:
    bucket: float
    lower: float
    upper: float
    frequency: int


@dataclass(frozen=True)
class MonteCarloSummary:
    percentiles: PercentileBundle
    histogram: Tuple[HistogramBucket, ...]
    mean: float
    std_dev: float
    minimum: float
    maximum: float
    trial_count: int


# =============================================================================
# Reverse solve
# =============================================================================


class SolveStatus(str, Enum):
    SOLVED = "solved"
    NEAREST = "nearest"
    UNREACHABLE = "unreachable"
    INCONCLUSIVE = "inconclusive"


@dataclass(frozen=True)
class ReverseSolveResult:
    """Outcome of a goal-seek on one lever.

    ``value`` is set only for SOLVED and NEAREST; UNREACHABLE and
    INCONCLUSIVE carry None rather than an extrapolated number.
    """

    status: SolveStatus
    lever: str
    target_percent: float
    value: Optional[float] = None
    label: str = ""
    achieved_percent: Optional[float] = None
    iterations: int = 0
    reachable_range: Tuple[float, float] = (0.0, 0.0)

    @property
    def solved(self) -> bool:
        return self.status is SolveStatus.SOLVED

    @property
    def unreachable(self) -> bool:
        return self.status is SolveStatus.UNREACHABLE


# =============================================================================
# Full simulation result
# =============================================================================


@dataclass(frozen=True)
class BeforeAfter:
    before: float
    after: float


@dataclass(frozen=True)
class SimulationResult:
    """Everything one scenario run produces for the presentation layer."""

    params: ParameterSet
    baseline_liability: float
    adjusted_liability: float
    delta_dollars: float
    delta_percent: float
    npv_change: float
    risk_adjusted_exposure: float
    percentiles: PercentileBundle
    confidence_index: BeforeAfter
    risk_score: BeforeAfter
    volatility_score: BeforeAfter
    comparison: Tuple[ComparisonPoint, ...]
    tornado: Tuple[TornadoBar, ...]
    histogram: Tuple[HistogramBucket, ...]
    sensitivity: Tuple[SensitivityRow, ...]
    monte_carlo: MonteCarloSummary
    obligations: Tuple[ObligationProjection, ...] = ()
    no_data: bool = False

    @property
    def obligation_count(self) -> int:
        return len(self.obligations)

    @property
    def forecast_volatility_range(self) -> Tuple[float, float]:
        return (self.percentiles.p25, self.percentiles.p75)

    # ------------------------------------------------------------------
    # DataFrame views
    # ------------------------------------------------------------------
    def sensitivity_frame(self) -> pd.DataFrame:
        cols = ["rank", "factor", "label", "base_value", "adjusted_value",
                "impact_dollars", "impact_percent"]
        return pd.DataFrame([asdict(r) for r in self.sensitivity], columns=cols)

    def tornado_frame(self) -> pd.DataFrame:
        rows = [{**asdict(b), "swing": b.swing} for b in self.tornado]
        return pd.DataFrame(rows, columns=["factor", "label", "low", "high", "base", "swing"])

    def histogram_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [asdict(b) for b in self.histogram],
            columns=["bucket", "lower", "upper", "frequency"],
        )

    def comparison_frame(self) -> pd.DataFrame:
        df = pd.DataFrame([asdict(p) for p in self.comparison], columns=["year", "base", "scenario"])
        df["delta"] = df["scenario"] - df["base"]
        return df

    def summary(self) -> Dict[str, Any]:
        """Flat headline figures (one row of a scenario summary table)."""
        return {
            "level": self.params.level,
            "scope_id": self.params.scope_id,
            "obligation_count": self.obligation_count,
            "no_data": self.no_data,
            "baseline_liability": self.baseline_liability,
            "adjusted_liability": self.adjusted_liability,
            "delta_dollars": self.delta_dollars,
            "delta_percent": self.delta_percent,
            "npv_change": self.npv_change,
            "risk_adjusted_exposure": self.risk_adjusted_exposure,
            **self.percentiles.as_dict(),
        }


# =============================================================================
# Risk scoring
# =============================================================================


@dataclass(frozen=True)
class RiskDriver:
    """
    One item pushing a sub-score up.

    ``subject`` is the obligation id for obligation-level findings and the
    site id for site-level ones (compliance status, exposure counts).
    ``value`` carries the measured quantity where there is one: growth %,
    years remaining, overrun %, a count. ``contribution`` is the share of
    the owning sub-score's weighted points credited to this driver.
    """

    component: str
    reason: str
    subject: str
    value: Optional[float] = None
    contribution: float = 0.0

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.component, self.reason, self.subject)


@dataclass(frozen=True)
class SubScore:
    key: str
    name: str
    score: float
    weight: float
    drivers: Tuple[RiskDriver, ...] = ()

    @property
    def weighted_score(self) -> float:
        return self.score * self.weight


@dataclass(frozen=True)
class SiteRiskScore:
    site_id: str
    site_name: str
    region: str
    composite_score: float
    level: str
    trend: str
    sub_scores: Tuple[SubScore, ...]
    obligation_count: int
    total_exposure: float
    top_drivers: Tuple[RiskDriver, ...] = ()

    def sub_score(self, key: str) -> SubScore:
        for s in self.sub_scores:
            if s.key == key:
                return s
        raise KeyError(key)


@dataclass(frozen=True)
class RiskScoreResult:
    portfolio_score: float
    level: str
    trend: str
    exposure_volatility: float
    forecast_confidence: float
    sites: Tuple[SiteRiskScore, ...] = ()
    top_drivers: Tuple[RiskDriver, ...] = ()

    def site(self, site_id: str) -> SiteRiskScore:
        for s in self.sites:
            if s.site_id == site_id:
                return s
        raise KeyError(site_id)

    def to_dataframe(self) -> pd.DataFrame:
        """One row per site with each sub-score as a column."""
        rows: List[Dict[str, Any]] = []
        for s in self.sites:
            row: Dict[str, Any] = {
                "site_id": s.site_id,
                "site_name": s.site_name,
                "composite_score": s.composite_score,
                "level": s.level,
                "trend": s.trend,
                "total_exposure": s.total_exposure,
            }
            row.update({sub.key: sub.score for sub in s.sub_scores})
            rows.append(row)
        return pd.DataFrame(rows)

    def drivers_frame(self) -> pd.DataFrame:
        columns = ["rank", "component", "reason", "subject", "value", "contribution"]
        rows = [
            {"rank": i, **asdict(d)}
            for i, d in enumerate(self.top_drivers, start=1)
        ]
        return pd.DataFrame(rows, columns=columns)


@dataclass(frozen=True)
class ScenarioRiskResult:
    base: float
    adjusted: float
    delta: float
    level: str
    inflation_delta: float = 0.0
    discount_delta: float = 0.0
    sites: Tuple[SiteRiskScore, ...] = field(default_factory=tuple)
    top_drivers: Tuple[RiskDriver, ...] = field(default_factory=tuple)

    def site(self, site_id: str) -> SiteRiskScore:
        for s in self.sites:
            if s.site_id == site_id:
                return s
        raise KeyError(site_id)


__all__ = [
    "BeforeAfter",
    "ComparisonPoint",
    "HistogramBucket",
    "MonteCarloSummary",
    "ObligationProjection",
    "PercentileBundle",
    "ProjectionFigures",
    "ReverseSolveResult",
    "RiskDriver",
    "RiskScoreResult",
    "ScenarioRiskResult",
    "SensitivityAnalysis",
    "SensitivityRow",
    "SimulationResult",
    "SiteRiskScore",
    "SolveStatus",
    "SubScore",
    "TornadoBar",
]
