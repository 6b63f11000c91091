"""Named stress-test scenarios.

Each preset is a partial overlay of ParameterSet fields applied on top of
neutral defaults. The catalog is a read-only mapping in declared order.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from aro_scenarios.parameters import ParameterError, ParameterSet


@dataclass(frozen=True)
class StressTestPreset:
    key: str
    name: str
    description: str
    overlay: Mapping[str, Any] = field(default_factory=dict)

    def apply(self, level: str = "portfolio", scope_id: Optional[str] = None) -> ParameterSet:
        """Neutral ParameterSet for the scope with this preset's overlay applied."""
        return ParameterSet.neutral(level, scope_id).with_overrides(**self.overlay)


_OVERLAY_FIELDS = {f.name for f in fields(ParameterSet)} - {"level", "scope_id"}

_PRESET_DEFS: Tuple[Tuple[str, str, str, Dict[str, Any]], ...] = (
    (
        "rate_adjustment",
        "Rate Adjustment",
        "Moderate one-point rise in cost inflation.",
        {"inflation_delta": 0.01},
    ),
    (
        "severe_inflation_shock",
        "Severe Inflation Shock",
        "Sustained four-point inflation surge with 25% cost escalation.",
        {"inflation_delta": 0.04, "escalation_factor": 1.25},
    ),
    (
        "regulatory_shock",
        "Regulatory Shock",
        "Stricter environmental standards widen remediation scope.",
        {
            "regulatory_factor": 1.25,
            "scope_expansion_percent": 15.0,
            "probability_adjustment_percent": 10.0,
        },
    ),
    (
        "inflation_spike",
        "Inflation Spike",
        "Inflation surge with supply-chain cost pressure.",
        {"inflation_delta": 0.035, "escalation_factor": 1.15, "timeline_shift_years": 1},
    ),
    (
        "cost_overrun",
        "High Cost Overrun",
        "Contractor overruns and scope creep across active projects.",
        {"escalation_factor": 1.3, "scope_expansion_percent": 20.0, "timeline_shift_years": 2},
    ),
    (
        "compliance_penalty",
        "Compliance Penalty",
        "Penalties and accelerated remediation orders.",
        {
            "regulatory_factor": 1.4,
            "probability_adjustment_percent": 15.0,
            "timeline_shift_years": -1,
        },
    ),
    (
        "best_case",
        "Best Case",
        "Favourable conditions: lower costs and faster settlements.",
        {
            "inflation_delta": -0.01,
            "escalation_factor": 0.9,
            "timeline_shift_years": -2,
            "discount_delta": 0.005,
        },
    ),
)


def _build_catalog() -> Mapping[str, StressTestPreset]:
    catalog: Dict[str, StressTestPreset] = {}
    for key, name, description, overlay in _PRESET_DEFS:
        unknown = set(overlay) - _OVERLAY_FIELDS
        if unknown:
            raise ParameterError(f"Preset {key!r} overlays unknown field(s): {', '.join(sorted(unknown))}")
        catalog[key] = StressTestPreset(
            key=key,
            name=name,
            description=description,
            overlay=MappingProxyType(dict(overlay)),
        )
    return MappingProxyType(catalog)


STRESS_TEST_PRESETS: Mapping[str, StressTestPreset] = _build_catalog()


def get_preset(key: str) -> StressTestPreset:
    try:
        return STRESS_TEST_PRESETS[key]
    except KeyError:
        known = ", ".join(STRESS_TEST_PRESETS)
        raise ParameterError(f"Unknown stress-test preset {key!r}; expected one of: {known}") from None


__all__ = ["STRESS_TEST_PRESETS", "StressTestPreset", "get_preset"]
