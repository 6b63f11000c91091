#!/usr/bin/env python3
"""
One-at-a-time sensitivity analysis (tornado compatible).

For each factor, in the declared FACTORS order:

  * tornado bar: every other factor stays at the scenario value while this
    one is moved to its domain minimum and maximum; low/high are the
    smaller/larger adjusted liability of the two runs;
  * sensitivity row: the factor alone is set to its scenario value (all
    others neutral) and the adjusted liability is compared to baseline.

Both lists are sorted by magnitude, descending. Python's sort is stable and
the input is in declared order, so ties (including zero-impact factors)
keep the declared order.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from aro_scenarios.config import EngineSettings, default_settings
from aro_scenarios.contracts import SensitivityAnalysis, SensitivityRow, TornadoBar
from aro_scenarios.core.projection import project
from aro_scenarios.inventory import ObligationSnapshot
from aro_scenarios.parameters import FACTORS, ParameterSet

logger = logging.getLogger(__name__)


def tornado_bars(
    params: ParameterSet,
    obligations: Sequence[ObligationSnapshot],
    settings: Optional[EngineSettings] = None,
) -> List[TornadoBar]:
    """Swing of adjusted liability across each factor's domain, widest first."""
    settings = settings or default_settings()
    base = project(params, obligations, settings).adjusted_liability

    bars: List[TornadoBar] = []
    for domain in FACTORS:
        at_min = project(params.with_overrides(**{domain.field: domain.minimum}), obligations, settings)
        at_max = project(params.with_overrides(**{domain.field: domain.maximum}), obligations, settings)
        lo = min(at_min.adjusted_liability, at_max.adjusted_liability)
        hi = max(at_min.adjusted_liability, at_max.adjusted_liability)
        bars.append(TornadoBar(factor=domain.name, label=domain.label, low=lo, high=hi, base=base))

    bars.sort(key=lambda b: b.swing, reverse=True)
    return bars


def sensitivity_table(
    params: ParameterSet,
    obligations: Sequence[ObligationSnapshot],
    settings: Optional[EngineSettings] = None,
) -> List[SensitivityRow]:
    """Isolated impact of each factor's scenario value, ranked by |impact_dollars|."""
    settings = settings or default_settings()
    neutral = ParameterSet.neutral(params.level, params.scope_id)

    rows: List[SensitivityRow] = []
    for domain in FACTORS:
        scenario_value = getattr(params, domain.field)
        figures = project(neutral.with_overrides(**{domain.field: scenario_value}), obligations, settings)
        impact = figures.adjusted_liability - figures.baseline_liability
        rows.append(
            SensitivityRow(
                rank=0,
                factor=domain.name,
                label=domain.label,
                base_value=domain.neutral,
                adjusted_value=scenario_value,
                impact_dollars=impact,
                impact_percent=figures.delta_percent,
            )
        )

    rows.sort(key=lambda r: abs(r.impact_dollars), reverse=True)
    return [
        SensitivityRow(
            rank=i + 1,
            factor=r.factor,
            label=r.label,
            base_value=r.base_value,
            adjusted_value=r.adjusted_value,
            impact_dollars=r.impact_dollars,
            impact_percent=r.impact_percent,
        )
        for i, r in enumerate(rows)
    ]


def rank_sensitivity(
    params: ParameterSet,
    obligations: Sequence[ObligationSnapshot],
    settings: Optional[EngineSettings] = None,
) -> SensitivityAnalysis:
    """Tornado bars and the ranked sensitivity table for one scenario."""
    settings = settings or default_settings()
    bars = tornado_bars(params, obligations, settings)
    table = sensitivity_table(params, obligations, settings)

    if bars:
        logger.debug(
            "Sensitivity: widest swing %s (%.0f), top impact %s (%.0f)",
            bars[0].factor, bars[0].swing, table[0].factor, table[0].impact_dollars,
        )
    return SensitivityAnalysis(tornado=tuple(bars), table=tuple(table))


__all__ = ["rank_sensitivity", "sensitivity_table", "tornado_bars"]
