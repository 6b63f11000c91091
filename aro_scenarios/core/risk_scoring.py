"""Composite environmental risk scoring.

Five sub-scores per site, each 0-100:

    data_completeness  share of failed data-quality checks
    cost_escalation    average cost growth over the initial estimate (30% = 100)
    regulatory         compliance status, near deadlines, severe exposures
    timeline           long-tail and rate-sensitive obligations
    settlement         budget overruns on settlement projects

The composite is the weighted sum (weights sum to 1.0). The portfolio score
is the exposure-weighted average of site composites.

Each sub-score also reports its drivers: the obligations or site facts that
raised it. A sub-score keeps at most three, sharing its weighted points
equally; a site keeps its five largest, and the portfolio sums them per
item and keeps the top five.

Levels: Low <= 30 < Moderate <= 60 < High <= 80 < Critical.

score_with_scenario() re-runs only cost_escalation and timeline under an
inflation/discount shift, using the projection's rate and inflation maths;
the other three sub-scores are carried over unchanged.
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple

from aro_scenarios.config import EngineSettings, RiskWeights, default_settings
from aro_scenarios.config_schema import RequiredFieldSpec, is_number, register_required_fields
from aro_scenarios.contracts import (
    RiskDriver,
    RiskScoreResult,
    ScenarioRiskResult,
    SiteRiskScore,
    SubScore,
)
from aro_scenarios.core.projection import adjusted_rate, project_obligation
from aro_scenarios.inventory import ObligationSnapshot, SiteMeta
from aro_scenarios.parameters import ParameterSet

logger = logging.getLogger(__name__)

register_required_fields(
    "risk_scoring",
    [
        RequiredFieldSpec(
            module="risk_scoring",
            name=f"weight_{key}",
            path=f"risk_weights.{key}",
            description=f"Composite weight of the {key} sub-score.",
            validator=is_number(0.0, 1.0),
        )
        for key in ("data_completeness", "cost_escalation", "regulatory", "timeline", "settlement")
    ],
)

LOW, MODERATE, HIGH, CRITICAL = "Low", "Moderate", "High", "Critical"
IMPROVING, STABLE, DETERIORATING = "Improving", "Stable", "Deteriorating"

COMPLIANCE_POINTS: Dict[str, float] = {
    "Compliant": 0.0,
    "Pending Review": 30.0,
    "Under Investigation": 70.0,
    "Non-Compliant": 100.0,
}
UNKNOWN_COMPLIANCE_POINTS = 20.0
SEVERE_EXPOSURES = ("High", "Critical")
COST_GROWTH_DRIVER_PCT = 15.0
MAX_COMPONENT_DRIVERS = 3
TOP_DRIVER_COUNT = 5

SUB_SCORE_NAMES: Dict[str, str] = {
    "data_completeness": "Data Completeness",
    "cost_escalation": "Cost Escalation",
    "regulatory": "Regulatory Risk",
    "timeline": "Timeline Uncertainty",
    "settlement": "Settlement Variance",
}


def _round(x: float) -> int:
    """Round half up (scores are whole points)."""
    return int(math.floor(x + 0.5))


def _clamp(v: float, lo: float = 0.0, hi: float = 100.0) -> float:
    return max(lo, min(hi, v))


def risk_level(score: float) -> str:
    if score <= 30:
        return LOW
    if score <= 60:
        return MODERATE
    if score <= 80:
        return HIGH
    return CRITICAL


# ---------------------------------------------------------------------------
# Sub-scores
# ---------------------------------------------------------------------------


class Assessment(NamedTuple):
    """A sub-score and the items that pushed it up (contribution not yet set)."""

    score: float
    drivers: Tuple[RiskDriver, ...] = ()


def _driver(component: str, reason: str, subject: str, value: Optional[float] = None) -> RiskDriver:
    return RiskDriver(component=component, reason=reason, subject=subject, value=value)


def score_data_completeness(obligations: Sequence[ObligationSnapshot]) -> Assessment:
    """Failed checks / checks run. The contaminant-tag check applies to EROs only."""
    checks = 0
    drivers: List[RiskDriver] = []
    for o in obligations:
        checks += 4
        failed = [
            ("missing_cost_estimate", not o.current_liability),
            ("missing_discount_rate", not o.discount_rate),
            ("missing_timeline", not o.has_settlement_date),
        ]
        if o.obligation_type == "ERO":
            checks += 1
            failed.append(("missing_contaminant_tag", not o.contaminant_type))
        failed.append(("unclassified", o.status == "Pending"))
        drivers.extend(_driver("data_completeness", reason, o.id) for reason, hit in failed if hit)

    if checks == 0:
        return Assessment(0.0)
    return Assessment(_clamp(_round(len(drivers) / checks * 100.0)), tuple(drivers))


def score_cost_escalation(
    obligations: Sequence[ObligationSnapshot],
    liabilities: Optional[Mapping[str, float]] = None,
    site: Optional[SiteMeta] = None,
) -> Assessment:
    """Average growth of liability over the initial estimate; 30% growth scores 100.

    ``liabilities`` replaces current_liability per obligation id (used for
    scenario-adjusted figures). With ``site`` given, its over-budget
    settlement projects are reported as a driver.
    """
    total_growth = 0.0
    count = 0
    drivers: List[RiskDriver] = []
    for o in obligations:
        liability = liabilities.get(o.id, o.current_liability) if liabilities else o.current_liability
        if liability > 0 and o.initial_estimate > 0:
            growth = (liability - o.initial_estimate) / o.initial_estimate * 100.0
            total_growth += growth
            count += 1
            if growth > COST_GROWTH_DRIVER_PCT:
                drivers.append(_driver("cost_escalation", "cost_growth", o.id, growth))

    if site is not None:
        overruns = sum(1 for p in site.settlement_projects if p.spent > p.budget)
        if overruns:
            drivers.append(_driver("cost_escalation", "projects_over_budget", site.id, float(overruns)))

    avg_growth = total_growth / count if count else 0.0
    return Assessment(_clamp(_round(avg_growth / 30.0 * 100.0)), tuple(drivers))


def score_regulatory(site: SiteMeta, obligations: Sequence[ObligationSnapshot]) -> Assessment:
    score = COMPLIANCE_POINTS.get(site.compliance_status, UNKNOWN_COMPLIANCE_POINTS)
    drivers: List[RiskDriver] = []
    if site.compliance_status != "Compliant":
        drivers.append(_driver("regulatory", "compliance_status", site.id, score))

    for o in obligations:
        if o.obligation_type == "ERO" and o.regulatory_deadline_years is not None:
            if o.regulatory_deadline_years < 1.0:
                score += 15.0
                drivers.append(_driver("regulatory", "deadline_within_year", o.id, o.regulatory_deadline_years))

    severe = sum(1 for e in site.exposures if e in SEVERE_EXPOSURES)
    if severe:
        score += severe * 10.0
        drivers.append(_driver("regulatory", "severe_exposures", site.id, float(severe)))
    return Assessment(_clamp(score), tuple(drivers))


def score_timeline(
    obligations: Sequence[ObligationSnapshot],
    settings: EngineSettings,
    inflation_delta: float = 0.0,
    discount_delta: float = 0.0,
) -> Assessment:
    """Long-tail exposure and rate sensitivity, averaged and scaled by 3.

    Under a shift, a long-duration obligation whose adjusted inflation
    reaches its adjusted rate scores +5, but only where the unshifted
    figures did not already do so. Zero deltas give the baseline score.
    """
    base_inflation = settings.baseline_inflation
    inflation = base_inflation + inflation_delta
    points = 0.0
    count = 0
    drivers: List[RiskDriver] = []
    for o in obligations:
        if not o.has_settlement_date:
            continue
        count += 1
        years = o.years_remaining
        if years > 10:
            points += 15.0
            drivers.append(_driver("timeline", "long_tail", o.id, years))
        elif years > 7:
            points += 8.0

        if years > 8:
            rate = adjusted_rate(o.discount_rate, discount_delta, settings.rate_floor)
            if rate > 0.05:
                points += 5.0
            base_rate = adjusted_rate(o.discount_rate, 0.0, settings.rate_floor)
            if inflation >= rate and base_inflation < base_rate:
                points += 5.0
                drivers.append(_driver("timeline", "real_rate_inversion", o.id, rate))

    avg = points / count if count else 0.0
    return Assessment(_clamp(_round(avg * 3.0)), tuple(drivers))


def score_settlement(site: SiteMeta) -> Assessment:
    score = 0.0
    overruns = 0
    total_overrun_pct = 0.0
    drivers: List[RiskDriver] = []

    for proj in site.settlement_projects:
        variance = proj.variance_percent
        if variance > 0:
            overruns += 1
            total_overrun_pct += variance
            drivers.append(_driver("settlement", "over_budget", proj.obligation_id, variance))
        over_budget_items = [v for v in proj.cost_item_variances if v < -10_000]
        if len(over_budget_items) > 2:
            score += 10.0
            drivers.append(
                _driver("settlement", "cost_items_over_budget", proj.obligation_id, float(len(over_budget_items)))
            )

    if overruns:
        score += _round(total_overrun_pct / overruns * 2.0)
    score += overruns * 8.0
    return Assessment(_clamp(score), tuple(drivers))


# ---------------------------------------------------------------------------
# Site / portfolio aggregation
# ---------------------------------------------------------------------------


def _trend(obligations: Sequence[ObligationSnapshot]) -> str:
    if not obligations:
        return STABLE
    growth = sum(
        (o.current_liability - o.initial_estimate) / max(1.0, o.initial_estimate) for o in obligations
    ) / len(obligations)
    if growth > 0.15:
        return DETERIORATING
    if growth < 0.05:
        return IMPROVING
    return STABLE


def _composite(
    assessments: Mapping[str, Assessment], weights: RiskWeights
) -> Tuple[float, Tuple[SubScore, ...], Tuple[RiskDriver, ...]]:
    """
    Weighted composite, the sub-scores, and the site's top drivers.

    Each sub-score keeps its first MAX_COMPONENT_DRIVERS drivers and splits
    its weighted points evenly among them. The site's top drivers are the
    TOP_DRIVER_COUNT largest contributions, ties in sub-score order.
    """
    w = weights.as_dict()
    subs: List[SubScore] = []
    for key in SUB_SCORE_NAMES:
        score, drivers = assessments[key]
        kept = drivers[:MAX_COMPONENT_DRIVERS]
        share = score * w[key] / max(1, len(kept))
        subs.append(
            SubScore(
                key=key,
                name=SUB_SCORE_NAMES[key],
                score=score,
                weight=w[key],
                drivers=tuple(replace(d, contribution=share) for d in kept),
            )
        )

    composite = _clamp(_round(sum(s.weighted_score for s in subs)))
    ranked = sorted((d for s in subs for d in s.drivers), key=lambda d: -d.contribution)
    return composite, tuple(subs), tuple(ranked[:TOP_DRIVER_COUNT])


def aggregate_drivers(site_scores: Sequence[SiteRiskScore]) -> Tuple[RiskDriver, ...]:
    """Sum site top-driver contributions per (component, reason, subject); keep the largest."""
    merged: Dict[Tuple[str, str, str], RiskDriver] = {}
    for site in site_scores:
        for d in site.top_drivers:
            seen = merged.get(d.key)
            merged[d.key] = d if seen is None else replace(seen, contribution=seen.contribution + d.contribution)

    rounded = [replace(d, contribution=float(_round(d.contribution))) for d in merged.values()]
    rounded.sort(key=lambda d: -d.contribution)
    return tuple(rounded[:TOP_DRIVER_COUNT])


def _site_obligations(site_id: str, obligations: Sequence[ObligationSnapshot]) -> List[ObligationSnapshot]:
    return [o for o in obligations if o.site_id == site_id and not o.is_settled]


def _resolve_sites(
    obligations: Sequence[ObligationSnapshot],
    sites: Optional[Sequence[SiteMeta]],
) -> Tuple[SiteMeta, ...]:
    """Given site metadata, or one default (compliant) site per site id seen."""
    if sites:
        return tuple(sites)
    seen: Dict[str, SiteMeta] = {}
    for o in obligations:
        if o.site_id and o.site_id not in seen:
            seen[o.site_id] = SiteMeta(id=o.site_id, name=o.site_id)
    return tuple(seen.values())


def score_site(
    site: SiteMeta,
    obligations: Sequence[ObligationSnapshot],
    settings: Optional[EngineSettings] = None,
    weights: Optional[RiskWeights] = None,
) -> SiteRiskScore:
    """Score one site from the (full) obligation list."""
    settings = settings or default_settings()
    weights = weights or settings.risk_weights
    site_obls = _site_obligations(site.id, obligations)

    assessments = {
        "data_completeness": score_data_completeness(site_obls),
        "cost_escalation": score_cost_escalation(site_obls, site=site),
        "regulatory": score_regulatory(site, site_obls),
        "timeline": score_timeline(site_obls, settings),
        "settlement": score_settlement(site),
    }
    composite, subs, drivers = _composite(assessments, weights)

    return SiteRiskScore(
        site_id=site.id,
        site_name=site.name,
        region=site.region,
        composite_score=composite,
        level=risk_level(composite),
        trend=_trend(site_obls),
        sub_scores=subs,
        obligation_count=len(site_obls),
        total_exposure=sum(o.current_liability for o in site_obls),
        top_drivers=drivers,
    )


def _portfolio_score(site_scores: Sequence[SiteRiskScore], exposures: Sequence[float]) -> float:
    if not site_scores:
        return 0.0
    total = sum(exposures)
    if total > 0:
        blended = sum(s.composite_score * e / total for s, e in zip(site_scores, exposures))
    else:
        blended = sum(s.composite_score for s in site_scores) / len(site_scores)
    return _clamp(_round(blended))


def score_portfolio(
    obligations: Sequence[ObligationSnapshot],
    sites: Optional[Sequence[SiteMeta]] = None,
    settings: Optional[EngineSettings] = None,
    weights: Optional[RiskWeights] = None,
) -> RiskScoreResult:
    """
    Score every site and aggregate to the portfolio.

    Settled obligations are ignored. Without site metadata each site id in
    ``obligations`` is scored as a compliant site with no exposures or
    settlement projects.
    """
    settings = settings or default_settings()
    site_scores = [score_site(s, obligations, settings, weights) for s in _resolve_sites(obligations, sites)]
    portfolio = _portfolio_score(site_scores, [s.total_exposure for s in site_scores])

    n = max(1, len(site_scores))
    mean = sum(s.composite_score for s in site_scores) / n
    variance = sum((s.composite_score - mean) ** 2 for s in site_scores) / n
    volatility = _clamp(_round(math.sqrt(variance) * 2.5))

    avg_data_risk = sum(s.sub_score("data_completeness").score for s in site_scores) / n
    confidence = _clamp(_round(100.0 - volatility * 0.4 - avg_data_risk * 0.3))

    deteriorating = sum(1 for s in site_scores if s.trend == DETERIORATING)
    improving = sum(1 for s in site_scores if s.trend == IMPROVING)
    if deteriorating > improving:
        trend = DETERIORATING
    elif improving > deteriorating:
        trend = IMPROVING
    else:
        trend = STABLE

    logger.info("Portfolio risk %s (%s) over %d sites", portfolio, risk_level(portfolio), len(site_scores))
    return RiskScoreResult(
        portfolio_score=portfolio,
        level=risk_level(portfolio),
        trend=trend,
        exposure_volatility=volatility,
        forecast_confidence=confidence,
        sites=tuple(site_scores),
        top_drivers=aggregate_drivers(site_scores),
    )


def score_with_scenario(
    inflation_delta: float,
    discount_delta: float,
    obligations: Sequence[ObligationSnapshot],
    sites: Optional[Sequence[SiteMeta]] = None,
    settings: Optional[EngineSettings] = None,
    weights: Optional[RiskWeights] = None,
) -> ScenarioRiskResult:
    """
    Portfolio score before and after an inflation/discount shift.

    The deltas go through ParameterSet, so they are clamped to the same
    domains as every other scenario input. Site weights stay at baseline
    exposure so the change reflects the sub-scores only.
    """
    settings = settings or default_settings()
    weights = weights or settings.risk_weights
    shift = ParameterSet(inflation_delta=inflation_delta, discount_delta=discount_delta)

    base = score_portfolio(obligations, sites, settings, weights)

    active = [o for o in obligations if not o.is_settled]
    adjusted_liability = {
        o.id: project_obligation(o, shift, settings).adjusted_liability for o in active
    }

    adjusted_sites: List[SiteRiskScore] = []
    for site, site_score in zip(_resolve_sites(obligations, sites), base.sites):
        site_obls = _site_obligations(site.id, obligations)
        assessments = {s.key: Assessment(s.score, s.drivers) for s in site_score.sub_scores}
        assessments["cost_escalation"] = score_cost_escalation(site_obls, adjusted_liability, site=site)
        assessments["timeline"] = score_timeline(
            site_obls, settings, shift.inflation_delta, shift.discount_delta
        )
        composite, subs, drivers = _composite(assessments, weights)
        adjusted_sites.append(
            SiteRiskScore(
                site_id=site_score.site_id,
                site_name=site_score.site_name,
                region=site_score.region,
                composite_score=composite,
                level=risk_level(composite),
                trend=site_score.trend,
                sub_scores=subs,
                obligation_count=site_score.obligation_count,
                total_exposure=site_score.total_exposure,
                top_drivers=drivers,
            )
        )

    adjusted = _portfolio_score(adjusted_sites, [s.total_exposure for s in base.sites])
    logger.debug(
        "Scenario risk (inflation %+.3f, discount %+.3f): %s -> %s",
        shift.inflation_delta, shift.discount_delta, base.portfolio_score, adjusted,
    )
    return ScenarioRiskResult(
        base=base.portfolio_score,
        adjusted=adjusted,
        delta=adjusted - base.portfolio_score,
        level=risk_level(adjusted),
        inflation_delta=shift.inflation_delta,
        discount_delta=shift.discount_delta,
        sites=tuple(adjusted_sites),
        top_drivers=aggregate_drivers(adjusted_sites),
    )


__all__ = [
    "CRITICAL",
    "HIGH",
    "LOW",
    "MODERATE",
    "Assessment",
    "aggregate_drivers",
    "risk_level",
    "score_cost_escalation",
    "score_data_completeness",
    "score_portfolio",
    "score_regulatory",
    "score_settlement",
    "score_site",
    "score_timeline",
    "score_with_scenario",
]
