"""
Tests for aro_scenarios.core.risk_scoring.

Sub-scores are checked on small hand-built sites; the portfolio and
scenario paths run on the packaged sample inventory.
"""

from __future__ import annotations

import pytest

from aro_scenarios.config import RiskWeights
from aro_scenarios.contracts import RiskDriver, SiteRiskScore
from aro_scenarios.core.risk_scoring import (
    aggregate_drivers,
    risk_level,
    score_cost_escalation,
    score_data_completeness,
    score_portfolio,
    score_regulatory,
    score_settlement,
    score_site,
    score_timeline,
    score_with_scenario,
)
from aro_scenarios.inventory import SettlementProject, SiteMeta


@pytest.mark.parametrize(
    "score, level",
    [(0, "Low"), (30, "Low"), (31, "Moderate"), (60, "Moderate"), (61, "High"), (80, "High"), (81, "Critical")],
)
def test_risk_level_thresholds(score, level):
    assert risk_level(score) == level


def test_data_completeness(make_obligation):
    complete = make_obligation()
    assert score_data_completeness([complete]).score == 0

    untagged_pending_ero = make_obligation(obligation_type="ERO", status="Pending")
    # 2 of 5 checks fail: pending status, no contaminant tag
    assert score_data_completeness([untagged_pending_ero]).score == 40
    assert score_data_completeness([]).score == 0


def test_cost_escalation_scales_thirty_percent_to_one_hundred(make_obligation):
    o = make_obligation(initial_estimate=1_000_000.0, current_liability=1_150_000.0)
    assert score_cost_escalation([o]).score == 50
    assert score_cost_escalation([o], {o.id: 1_400_000.0}).score == 100
    # no initial estimate -> not measurable
    assert score_cost_escalation([make_obligation()]).score == 0


def test_regulatory_points(make_obligation):
    site = SiteMeta(id="S-T", compliance_status="Under Investigation", exposures=("High", "Critical", "Low"))
    near_deadline = make_obligation(obligation_type="ERO", regulatory_deadline_years=0.5)
    assert score_regulatory(site, [near_deadline]).score == 100  # 70 + 15 + 20, capped

    calm = SiteMeta(id="S-T", compliance_status="Pending Review")
    far_deadline = make_obligation(obligation_type="ERO", regulatory_deadline_years=4.0)
    assert score_regulatory(calm, [far_deadline]).score == 30

    unknown = SiteMeta(id="S-T", compliance_status="Unassessed")
    assert score_regulatory(unknown, []).score == 20


def test_timeline_points(settings, make_obligation):
    long_tail = make_obligation("A", years_remaining=12.0, discount_rate=0.06)  # 15 + 5
    mid = make_obligation("B", years_remaining=9.0, discount_rate=0.04)  # 8
    undated = make_obligation("C", years_remaining=30.0, has_settlement_date=False)

    assert score_timeline([long_tail, mid, undated], settings).score == 42

    # +3 points of inflation: 5.5% >= 4% on the nine-year obligation adds 5
    assert score_timeline([long_tail, mid], settings, inflation_delta=0.03).score == 50


def test_low_rate_obligation_scores_baseline_timeline_only(settings, make_obligation):
    # 2.5% baseline inflation already exceeds a 2% rate; that is not a scenario effect
    low_rate = make_obligation(years_remaining=9.0, discount_rate=0.02)

    assert score_timeline([low_rate], settings).score == 24
    assert score_timeline([low_rate], settings, inflation_delta=0.0, discount_delta=0.0).score == 24
    assert score_timeline([low_rate], settings, inflation_delta=0.01).score == 24


def test_shift_into_negative_real_rate_adds_timeline_points(settings, make_obligation):
    o = make_obligation(years_remaining=9.0, discount_rate=0.03)

    base = score_timeline([o], settings)
    assert base.score == 24
    assert base.drivers == ()

    shifted = score_timeline([o], settings, inflation_delta=0.01)
    assert shifted.score == 39  # (8 + 5) * 3
    assert [(d.reason, d.subject) for d in shifted.drivers] == [("real_rate_inversion", o.id)]

    # a discount cut gets there too: 2.5% >= max(floor, 3% - 1%)
    assert score_timeline([o], settings, discount_delta=-0.01).score == 39


def test_settlement_variance():
    site = SiteMeta(
        id="S-T",
        settlement_projects=(
            SettlementProject("A", budget=100_000.0, spent=120_000.0, cost_item_variances=(-20_000, -15_000, -11_000)),
            SettlementProject("B", budget=100_000.0, spent=90_000.0),
        ),
    )
    # 10 (three items over budget) + 20% * 2 + 8 per overrun project
    assert score_settlement(site).score == 58
    assert score_settlement(SiteMeta(id="empty")).score == 0

    assert [(d.reason, d.subject) for d in score_settlement(site).drivers] == [
        ("over_budget", "A"),
        ("cost_items_over_budget", "A"),
    ]


def test_site_composite_is_weighted_sum(settings, sample_inventory):
    site = sample_inventory.site("S002")
    result = score_site(site, sample_inventory.obligations, settings)

    assert result.obligation_count == 3
    assert result.total_exposure == 1_050_000 + 560_000 + 1_380_000
    weighted = sum(s.score * s.weight for s in result.sub_scores)
    assert result.composite_score == int(weighted + 0.5)
    # Under Investigation (70) + Critical and High exposures (2 x 10)
    assert result.sub_score("regulatory").score == 90
    assert sum(s.weight for s in result.sub_scores) == pytest.approx(1.0)


def test_portfolio_score_on_sample_inventory(sample_inventory):
    result = score_portfolio(sample_inventory.obligations, sample_inventory.sites)

    assert [s.site_id for s in result.sites] == ["S001", "S002", "S003", "S004"]
    assert 0 <= result.portfolio_score <= 100
    assert result.level == risk_level(result.portfolio_score)
    assert 0 <= result.exposure_volatility <= 100
    assert 0 <= result.forecast_confidence <= 100

    composites = [s.composite_score for s in result.sites]
    assert min(composites) <= result.portfolio_score <= max(composites)

    df = result.to_dataframe()
    assert list(df["site_id"]) == ["S001", "S002", "S003", "S004"]
    assert {"composite_score", "data_completeness", "settlement"}.issubset(df.columns)


def test_settled_obligations_are_ignored(sample_inventory):
    result = score_portfolio(sample_inventory.obligations, sample_inventory.sites)
    assert result.site("S003").obligation_count == 2


def test_sites_are_derived_when_metadata_missing(fifteen_million):
    result = score_portfolio(fifteen_million)
    assert [s.site_id for s in result.sites] == ["S-T"]
    assert result.sites[0].sub_score("regulatory").score == 0


def test_custom_weights(sample_inventory):
    only_regulatory = RiskWeights(
        data_completeness=0.0, cost_escalation=0.0, regulatory=1.0, timeline=0.0, settlement=0.0
    )
    result = score_portfolio(sample_inventory.obligations, sample_inventory.sites, weights=only_regulatory)
    for site in result.sites:
        assert site.composite_score == site.sub_score("regulatory").score


def test_neutral_scenario_leaves_score_unchanged(sample_inventory):
    result = score_with_scenario(0.0, 0.0, sample_inventory.obligations, sample_inventory.sites)
    assert result.adjusted == result.base
    assert result.delta == 0


def test_inflation_scenario_raises_risk(sample_inventory):
    result = score_with_scenario(0.03, 0.0, sample_inventory.obligations, sample_inventory.sites)
    assert result.adjusted > result.base
    assert result.delta == result.adjusted - result.base
    assert result.level == risk_level(result.adjusted)
    assert result.inflation_delta == 0.03


def test_scenario_deltas_are_clamped(sample_inventory):
    result = score_with_scenario(0.5, -0.5, sample_inventory.obligations, sample_inventory.sites)
    assert result.inflation_delta == 0.06
    assert result.discount_delta == -0.03


# ---------------------------------------------------------------------------
# Driver attribution
# ---------------------------------------------------------------------------


def test_site_top_drivers_split_weighted_points(settings, make_obligation):
    site = SiteMeta(id="S-T", compliance_status="Pending Review")
    escalating_ero = make_obligation(
        "A",
        obligation_type="ERO",
        status="Pending",
        initial_estimate=1_000_000.0,
        current_liability=1_200_000.0,
        years_remaining=12.0,
    )
    steady = make_obligation("B", initial_estimate=1_000_000.0, current_liability=1_100_000.0, years_remaining=5.0)

    result = score_site(site, [escalating_ero, steady], settings)

    # data 22 (2 of 9 checks), cost 50 (15% average), regulatory 30, timeline 23
    assert [(d.component, d.reason, d.subject) for d in result.top_drivers] == [
        ("cost_escalation", "cost_growth", "A"),
        ("regulatory", "compliance_status", "S-T"),
        ("timeline", "long_tail", "A"),
        ("data_completeness", "missing_contaminant_tag", "A"),
        ("data_completeness", "unclassified", "A"),
    ]
    assert [d.contribution for d in result.top_drivers] == pytest.approx([12.5, 6.0, 4.6, 2.2, 2.2])
    assert result.top_drivers[0].value == pytest.approx(20.0)
    assert result.top_drivers[2].value == 12.0


def test_each_sub_score_keeps_three_drivers(settings, make_obligation):
    unrated = [make_obligation(f"OBL-{i}", discount_rate=0.0) for i in range(4)]
    result = score_site(SiteMeta(id="S-T"), unrated, settings)

    data = result.sub_score("data_completeness")
    assert data.score == 25
    assert [d.subject for d in data.drivers] == ["OBL-0", "OBL-1", "OBL-2"]
    assert all(d.contribution == pytest.approx(25 * 0.20 / 3) for d in data.drivers)


def test_portfolio_drivers_sum_per_item_and_round():
    def site(site_id, *drivers):
        return SiteRiskScore(
            site_id=site_id,
            site_name=site_id,
            region="",
            composite_score=0.0,
            level="Low",
            trend="Stable",
            sub_scores=(),
            obligation_count=0,
            total_exposure=0.0,
            top_drivers=drivers,
        )

    shared = RiskDriver("cost_escalation", "cost_growth", "OBL-1", 20.0, contribution=4.3)
    merged = aggregate_drivers(
        [
            site("S1", shared, RiskDriver("regulatory", "compliance_status", "S1", 70.0, contribution=7.0)),
            site("S2", RiskDriver("timeline", "long_tail", "OBL-9", 12.0, contribution=2.4), shared),
        ]
    )

    assert [(d.subject, d.contribution) for d in merged] == [("OBL-1", 9.0), ("S1", 7.0), ("OBL-9", 2.0)]
    assert merged[0].value == 20.0


def test_portfolio_top_drivers_on_sample_inventory(sample_inventory):
    result = score_portfolio(sample_inventory.obligations, sample_inventory.sites)

    regulatory = result.site("S002").sub_score("regulatory")
    assert [d.reason for d in regulatory.drivers] == ["compliance_status", "severe_exposures"]
    assert all(d.contribution == pytest.approx(90 * 0.20 / 2) for d in regulatory.drivers)

    contributions = [d.contribution for d in result.top_drivers]
    assert 0 < len(result.top_drivers) <= 5
    assert contributions == sorted(contributions, reverse=True)
    assert all(c == int(c) for c in contributions)

    df = result.drivers_frame()
    assert list(df.columns) == ["rank", "component", "reason", "subject", "value", "contribution"]
    assert list(df["rank"]) == list(range(1, len(result.top_drivers) + 1))


def test_scenario_recomputes_drivers(sample_inventory):
    neutral = score_with_scenario(0.0, 0.0, sample_inventory.obligations, sample_inventory.sites)
    base = score_portfolio(sample_inventory.obligations, sample_inventory.sites)
    assert [d.key for d in neutral.top_drivers] == [d.key for d in base.top_drivers]

    # OBL-007 sits exactly at 15% growth: not a driver until inflation pushes it past
    def growth_subjects(result):
        return [d.subject for d in result.site("S002").sub_score("cost_escalation").drivers]

    shocked = score_with_scenario(0.06, 0.0, sample_inventory.obligations, sample_inventory.sites)
    assert "OBL-007" not in growth_subjects(base)
    assert "OBL-007" in growth_subjects(shocked)
