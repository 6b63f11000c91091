"""Adjustable scenario inputs for the liability projection engine.

A ParameterSet is the single record every analytic (projection, tornado,
Monte Carlo, reverse solve) takes as input. Each numeric field has a fixed
domain; construction clamps values into it, so downstream code never sees
an out-of-domain input.

The declared order of FACTORS is significant: sensitivity rankings use it
as the tie-break when two factors have equal impact.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

LEVELS: Tuple[str, ...] = ("portfolio", "site", "project", "obligation")


class ParameterError(ValueError):
    """Raised for inputs that cannot be clamped into a valid ParameterSet."""


@dataclass(frozen=True)
class ParameterDomain:
    """Bounds and neutral value for one adjustable factor."""

    name: str
    field: str
    label: str
    minimum: float
    maximum: float
    neutral: float
    integer: bool = False

    @property
    def width(self) -> float:
        return self.maximum - self.minimum

    def clamp(self, value: Any) -> float:
        """Coerce ``value`` into the domain (rounded first for integer factors)."""
        try:
            v = float(value)
        except (TypeError, ValueError) as exc:
            raise ParameterError(f"{self.field} must be numeric, got {value!r}") from exc
        if math.isnan(v):
            raise ParameterError(f"{self.field} must not be NaN")

        if self.integer:
            v = float(round(v))
        clamped = min(self.maximum, max(self.minimum, v))
        if clamped != v:
            logger.warning(
                "Clamped %s=%s into [%s, %s] -> %s",
                self.field, value, self.minimum, self.maximum, clamped,
            )
        return int(clamped) if self.integer else clamped


# Declared order doubles as the tie-break order for rankings.
FACTORS: Tuple[ParameterDomain, ...] = (
    ParameterDomain("inflation", "inflation_delta", "Inflation Rate", -0.03, 0.06, 0.0),
    ParameterDomain("discount", "discount_delta", "Discount Rate", -0.03, 0.03, 0.0),
    ParameterDomain("escalation", "escalation_factor", "Cost Escalation", 0.8, 1.5, 1.0),
    ParameterDomain("timeline", "timeline_shift_years", "Timeline Extension", -5, 10, 0, integer=True),
    ParameterDomain("regulatory", "regulatory_factor", "Regulatory Tightening", 0.8, 1.5, 1.0),
    ParameterDomain("scope", "scope_expansion_percent", "Scope Expansion", 0.0, 50.0, 0.0),
    ParameterDomain("probability", "probability_adjustment_percent", "Probability Weighting", -20.0, 30.0, 0.0),
)

_BY_NAME: Dict[str, ParameterDomain] = {d.name: d for d in FACTORS}
_BY_FIELD: Dict[str, ParameterDomain] = {d.field: d for d in FACTORS}


def get_domain(key: str) -> ParameterDomain:
    """Look up a factor by short name ("inflation") or field name ("inflation_delta")."""
    domain = _BY_NAME.get(key) or _BY_FIELD.get(key)
    if domain is None:
        known = ", ".join(d.name for d in FACTORS)
        raise ParameterError(f"Unknown factor {key!r}; expected one of: {known}")
    return domain


@dataclass(frozen=True)
class ParameterSet:
    """Validated scenario inputs.

    Out-of-domain numbers are clamped to the nearest bound in
    ``__post_init__``; an unknown ``level`` or a non-numeric value raises
    ParameterError.
    """

    level: str = "portfolio"
    scope_id: Optional[str] = None
    inflation_delta: float = 0.0
    discount_delta: float = 0.0
    escalation_factor: float = 1.0
    timeline_shift_years: int = 0
    regulatory_factor: float = 1.0
    scope_expansion_percent: float = 0.0
    probability_adjustment_percent: float = 0.0

    def __post_init__(self) -> None:
        if self.level not in LEVELS:
            raise ParameterError(
                f"Unknown level {self.level!r}; expected one of: {', '.join(LEVELS)}"
            )
        # frozen dataclass: write the clamped values through object.__setattr__
        for domain in FACTORS:
            object.__setattr__(self, domain.field, domain.clamp(getattr(self, domain.field)))

    @classmethod
    def neutral(cls, level: str = "portfolio", scope_id: Optional[str] = None) -> "ParameterSet":
        return cls(level=level, scope_id=scope_id)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ParameterSet":
        """Build from a plain mapping, ignoring keys that are not ParameterSet fields."""
        allowed = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in allowed})

    def with_overrides(self, **overrides: Any) -> "ParameterSet":
        """Return a new (re-clamped) set with the given fields replaced."""
        unknown = set(overrides) - {f.name for f in fields(self)}
        if unknown:
            raise ParameterError(f"Unknown ParameterSet field(s): {', '.join(sorted(unknown))}")
        return replace(self, **overrides)

    def value_of(self, factor: str) -> float:
        return getattr(self, get_domain(factor).field)

    def is_neutral(self) -> bool:
        return all(getattr(self, d.field) == d.neutral for d in FACTORS)

    def as_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


__all__ = [
    "FACTORS",
    "LEVELS",
    "ParameterDomain",
    "ParameterError",
    "ParameterSet",
    "get_domain",
]
