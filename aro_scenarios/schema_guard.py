"""
Validation of raw engine settings against the config_schema registry.

The analytic modules register their settings as an import side effect, so
validate_config() imports them on demand before checking anything. That
keeps aro_scenarios.config free of imports from the modules that in turn
import it.
"""

from __future__ import annotations

import importlib
import logging
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from aro_scenarios.config_schema import get_required_fields, is_missing

logger = logging.getLogger(__name__)


class ConfigValidationError(RuntimeError):
    """Engine settings are missing required fields or hold invalid values."""

    def __init__(self, source: str, problems: Sequence[str]) -> None:
        self.source = source
        self.problems = tuple(problems)
        super().__init__(f"Invalid engine settings in '{source}': " + "; ".join(self.problems))


_MODULE_IMPORTS: Dict[str, str] = {
    "projection": "aro_scenarios.core.projection",
    "monte_carlo": "aro_scenarios.core.monte_carlo",
    "solver": "aro_scenarios.core.reverse_solver",
    "risk_scoring": "aro_scenarios.core.risk_scoring",
    "engine": "aro_scenarios.engine",
}

ALL_MODULES: Tuple[str, ...] = tuple(_MODULE_IMPORTS)


def validate_config(
    raw_config: Mapping[str, Any],
    config_path: str,
    modules: Sequence[str] = ALL_MODULES,
) -> None:
    """
    Check ``raw_config`` against every spec registered by ``modules``.

    Raises:
        ConfigValidationError: listing each missing or invalid setting.
        KeyError: for a module name that has no registered import path.
    """
    problems: List[str] = []
    checked = 0

    for module in modules:
        importlib.import_module(_MODULE_IMPORTS[module])

        for spec in get_required_fields(module):
            checked += 1
            value = spec.lookup(raw_config)
            if is_missing(value):
                if spec.required:
                    problems.append(f"{spec.path} is missing ({spec.description or spec.name})")
                continue
            if spec.validator is None:
                continue
            try:
                ok = spec.validator(value)
            except (TypeError, ValueError):
                ok = False
            if not ok:
                problems.append(f"{spec.path}={value!r} is invalid for {spec.module}.{spec.name}")

    if problems:
        raise ConfigValidationError(config_path, sorted(problems))
    logger.debug("Validated %d settings from %s", checked, config_path)


__all__ = ["ALL_MODULES", "ConfigValidationError", "validate_config"]
