"""Engine settings: packaged YAML defaults, user overrides, validation.

load_engine_settings() is the only place settings are read from disk. The
analytic functions take an EngineSettings argument (defaulting to the
packaged defaults) and never look anything up themselves.
"""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from aro_scenarios.parameters import ParameterError
from aro_scenarios.schema_guard import validate_config

logger = logging.getLogger(__name__)

DEFAULTS_PATH = Path(__file__).parent / "data" / "engine_defaults.yaml"


class SettingsError(ValueError):
    """Settings file could not be read or decoded."""


@dataclass(frozen=True)
class RiskWeights:
    """Sub-score weights for the composite risk score. Must sum to 1.0."""

    data_completeness: float = 0.20
    cost_escalation: float = 0.25
    regulatory: float = 0.20
    timeline: float = 0.20
    settlement: float = 0.15

    def __post_init__(self) -> None:
        total = (
            self.data_completeness
            + self.cost_escalation
            + self.regulatory
            + self.timeline
            + self.settlement
        )
        if any(w < 0 for w in self.as_dict().values()):
            raise ParameterError("Risk weights must be non-negative")
        if abs(total - 1.0) > 1e-6:
            raise ParameterError(f"Risk weights must sum to 1.0, got {total:.6f}")

    def as_dict(self) -> Dict[str, float]:
        return {
            "data_completeness": self.data_completeness,
            "cost_escalation": self.cost_escalation,
            "regulatory": self.regulatory,
            "timeline": self.timeline,
            "settlement": self.settlement,
        }


@dataclass(frozen=True)
class EngineSettings:
    """Resolved engine settings (see data/engine_defaults.yaml)."""

    valuation_date: date = date(2026, 1, 1)
    baseline_inflation: float = 0.025
    rate_floor: float = 0.005
    trial_count: int = 1000
    bucket_count: int = 20
    seed: Optional[int] = None
    solver_tolerance_pct: float = 0.05
    solver_max_iterations: int = 40
    solver_stall_limit: int = 5
    forecast_horizon_years: int = 11
    confidence_before: float = 82.0
    risk_before: float = 42.0
    volatility_before: float = 35.0
    exposure_p75_weight: float = 0.6
    exposure_p95_weight: float = 0.4
    risk_weights: RiskWeights = field(default_factory=RiskWeights)


# ---------------------------------------------------------------------------
# Loading helpers
# ---------------------------------------------------------------------------


def _read_document(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Settings file not found: {path}")

    suffix = path.suffix.lower()
    with path.open("r", encoding="utf-8") as f:
        if suffix in (".yml", ".yaml"):
            data = yaml.safe_load(f)
        elif suffix == ".json":
            data = json.load(f)
        else:
            raise SettingsError(f"Unsupported settings extension '{suffix}' for {path}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise SettingsError(
            f"Expected a mapping at top level of {path}, got {type(data).__name__}"
        )
    return data


def _merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursive dict merge; ``override`` wins on leaf collisions."""
    out = copy.deepcopy(base)
    for k, v in override.items():
        if isinstance(v, Mapping) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = copy.deepcopy(v)
    return out


def _coerce_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value), "%Y-%m-%d").date()
    except ValueError as exc:
        raise SettingsError(f"valuation.date must be YYYY-MM-DD, got {value!r}") from exc


def settings_from_mapping(raw: Mapping[str, Any]) -> EngineSettings:
    """Build EngineSettings from a full (already merged and validated) mapping."""
    rates = raw.get("rates", {})
    mc = raw.get("monte_carlo", {})
    solver = raw.get("solver", {})
    scores = raw.get("scores", {})
    exposure = raw.get("exposure", {})
    seed = mc.get("seed")

    try:
        weights = RiskWeights(**{k: float(v) for k, v in raw.get("risk_weights", {}).items()})
    except (TypeError, ValueError) as exc:
        raise SettingsError(f"Invalid risk_weights: {exc}") from exc

    return EngineSettings(
        valuation_date=_coerce_date(raw.get("valuation", {}).get("date")),
        baseline_inflation=float(rates["baseline_inflation"]),
        rate_floor=float(rates["rate_floor"]),
        trial_count=int(mc["trial_count"]),
        bucket_count=int(mc["bucket_count"]),
        seed=int(seed) if seed is not None else None,
        solver_tolerance_pct=float(solver["tolerance_pct"]),
        solver_max_iterations=int(solver["max_iterations"]),
        solver_stall_limit=int(solver["stall_limit"]),
        forecast_horizon_years=int(raw.get("forecast", {}).get("horizon_years", 11)),
        confidence_before=float(scores.get("confidence_before", 82)),
        risk_before=float(scores.get("risk_before", 42)),
        volatility_before=float(scores.get("volatility_before", 35)),
        exposure_p75_weight=float(exposure.get("p75_weight", 0.6)),
        exposure_p95_weight=float(exposure.get("p95_weight", 0.4)),
        risk_weights=weights,
    )


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_raw_settings(
    path: Optional[str | Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Packaged defaults, merged with an optional user file, then ``overrides``."""
    raw = _read_document(DEFAULTS_PATH)
    if path is not None:
        raw = _merge(raw, _read_document(Path(path)))
    if overrides:
        raw = _merge(raw, overrides)
    return raw


def load_engine_settings(
    path: Optional[str | Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> EngineSettings:
    """
    Load, merge and validate engine settings.

    Behaviour:
    - Starts from data/engine_defaults.yaml.
    - Merges a user YAML/JSON file (section by section), then ``overrides``.
    - Validates every registered RequiredFieldSpec (raises
      ConfigValidationError listing all failures).
    """
    raw = load_raw_settings(path, overrides)
    source = str(path) if path is not None else "<defaults>"
    validate_config(raw, config_path=source)

    settings = settings_from_mapping(raw)
    logger.debug("Resolved engine settings from %s: %s", source, settings)
    return settings


@lru_cache(maxsize=1)
def default_settings() -> EngineSettings:
    """Packaged defaults (cached; EngineSettings is immutable)."""
    return load_engine_settings()


__all__ = [
    "DEFAULTS_PATH",
    "EngineSettings",
    "RiskWeights",
    "SettingsError",
    "default_settings",
    "load_engine_settings",
    "load_raw_settings",
    "settings_from_mapping",
]
