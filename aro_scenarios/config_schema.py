"""
Registry of the engine settings each analytic module depends on.

Modules declare their settings at import time::

    register_required_fields("solver", [
        RequiredFieldSpec("solver", "tolerance_pct", "solver.tolerance_pct",
                          validator=is_number(1e-9, 100)),
    ])

schema_guard.validate_config() checks a raw settings mapping against the
registry; build_schema_dataframe() lists everything that is registered.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import pandas as pd

ValidatorFn = Callable[[Any], bool]

_MISSING = object()


@dataclass(frozen=True)
class RequiredFieldSpec:
    """
    One setting read by an analytic module.

    Attributes
    ----------
    module:
        Logical owner ("projection", "monte_carlo", "solver", ...).
    name:
        Logical key, unique within the module.
    path:
        Dotted location in the settings document, e.g. "rates.rate_floor".
    required:
        Absent optional settings pass; present ones are still validated.
    description:
        Shown in validation errors and schema listings.
    validator:
        Predicate on the resolved value.
    """

    module: str
    name: str
    path: str
    required: bool = True
    description: str = ""
    validator: Optional[ValidatorFn] = None

    @property
    def keys(self) -> Tuple[str, ...]:
        return tuple(self.path.split("."))

    def lookup(self, raw: Any) -> Any:
        """Value at ``path`` in ``raw``, or the _MISSING sentinel."""
        node = raw
        for key in self.keys:
            if not isinstance(node, dict) or key not in node:
                return _MISSING
            node = node[key]
        return node


# module -> {name -> spec}; insertion order is registration order
_REGISTRY: Dict[str, Dict[str, RequiredFieldSpec]] = {}


def register_required_fields(module: str, specs: Iterable[RequiredFieldSpec]) -> None:
    """Add ``specs`` under ``module``. A spec with an already registered name replaces it."""
    bucket = _REGISTRY.setdefault(module, {})
    for spec in specs:
        bucket[spec.name] = spec


def get_required_fields(module: Optional[str] = None) -> List[RequiredFieldSpec]:
    if module is not None:
        return list(_REGISTRY.get(module, {}).values())
    return [spec for bucket in _REGISTRY.values() for spec in bucket.values()]


def is_missing(value: Any) -> bool:
    return value is _MISSING or value is None


# ---------------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------------


def is_number(lo: Optional[float] = None, hi: Optional[float] = None) -> ValidatorFn:
    """Numeric (bools excluded), optionally within [lo, hi]."""

    def _check(value: Any) -> bool:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        return (lo is None or value >= lo) and (hi is None or value <= hi)

    return _check


def is_date(value: Any) -> bool:
    """A date, or a YYYY-MM-DD string."""
    if isinstance(value, date):
        return True
    try:
        datetime.strptime(str(value), "%Y-%m-%d")
    except ValueError:
        return False
    return True


# ---------------------------------------------------------------------------
# Introspection
# ---------------------------------------------------------------------------


def build_schema_dataframe() -> pd.DataFrame:
    """Registered settings, one row each, sorted by module then path."""
    columns = ["module", "name", "path", "required", "validated", "description"]
    rows = [
        {
            "module": spec.module,
            "name": spec.name,
            "path": spec.path,
            "required": spec.required,
            "validated": spec.validator is not None,
            "description": spec.description,
        }
        for spec in get_required_fields()
    ]
    df = pd.DataFrame(rows, columns=columns)
    return df.sort_values(["module", "path"]).reset_index(drop=True)


__all__ = [
    "RequiredFieldSpec",
    "ValidatorFn",
    "build_schema_dataframe",
    "get_required_fields",
    "is_date",
    "is_missing",
    "is_number",
    "register_required_fields",
]
