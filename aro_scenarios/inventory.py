"""Obligation inventory records and the baseline resolver.

The engine never reads inventory from module state: callers load an
Inventory (from YAML/JSON or by constructing the dataclasses directly) and
pass it in. Everything here is frozen so snapshots can be shared across
threads and repeated calculations without copying.

Inventory document layout (YAML or JSON)::

    valuation_date: 2026-01-01        # optional, falls back to settings
    sites:
      - id: S001
        name: Eagle Ford Basin
        region: Texas
        compliance_status: Compliant
        exposures: [High, Moderate]
        settlement_projects:
          - obligation_id: OBL-001
            budget: 1000000
            spent: 1100000
            cost_item_variances: [-12000, 4000]
    obligations:
      - id: OBL-001
        name: Tank Farm Decommissioning
        type: ARO
        site_id: S001
        facility_id: F001
        status: Active
        initial_estimate: 2400000
        current_liability: 2847000
        discount_rate: 0.055
        accretion_expense: 156585
        target_settlement_date: 2035-12-31
        regulatory_deadline: 2036-06-30   # optional
        contaminant_type: BTEX / TPH      # optional
    forecast:
      - {year: 2026, aro: 11717000, ero: 5490000}
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import yaml

from aro_scenarios.parameters import LEVELS, ParameterError

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365.25
SETTLED = "Settled"


class InventoryError(ValueError):
    """Raised when an inventory document is malformed."""


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ObligationSnapshot:
    """Read-only view of one ARO/ERO line item."""

    id: str
    current_liability: float
    discount_rate: float
    initial_estimate: float
    accretion_expense: float
    years_remaining: float
    status: str
    site_id: str = ""
    facility_id: str = ""
    name: str = ""
    obligation_type: str = "ARO"
    contaminant_type: Optional[str] = None
    regulatory_deadline_years: Optional[float] = None
    has_settlement_date: bool = True

    @property
    def is_settled(self) -> bool:
        return self.status == SETTLED


@dataclass(frozen=True)
class SettlementProject:
    """Budget tracking for an obligation that is being settled."""

    obligation_id: str
    budget: float
    spent: float
    cost_item_variances: Tuple[float, ...] = ()

    @property
    def variance_percent(self) -> float:
        if self.budget <= 0:
            return 0.0
        return (self.spent - self.budget) / self.budget * 100.0


@dataclass(frozen=True)
class SiteMeta:
    """Site attributes consumed by risk scoring."""

    id: str
    name: str = ""
    region: str = ""
    compliance_status: str = "Compliant"
    exposures: Tuple[str, ...] = ()
    settlement_projects: Tuple[SettlementProject, ...] = ()


@dataclass(frozen=True)
class ForecastPoint:
    """One year of the base-case forecast (comparator series)."""

    year: int
    aro: float
    ero: float

    @property
    def total(self) -> float:
        return self.aro + self.ero


@dataclass(frozen=True)
class Inventory:
    """Everything the engine reads: obligations, sites and forecast baseline."""

    obligations: Tuple[ObligationSnapshot, ...]
    sites: Tuple[SiteMeta, ...] = ()
    forecast: Tuple[ForecastPoint, ...] = ()
    valuation_date: Optional[date] = None
    meta: Mapping[str, Any] = field(default_factory=dict)

    def site(self, site_id: str) -> Optional[SiteMeta]:
        for s in self.sites:
            if s.id == site_id:
                return s
        return None


# ---------------------------------------------------------------------------
# Baseline resolver
# ---------------------------------------------------------------------------


class BaselineResolver:
    """Select the in-scope, non-settled obligations for a level/scope id.

    A missing scope id on a narrowed level does not filter (the whole
    portfolio is returned). An unknown scope id returns an empty tuple; the
    projection layer turns that into a "no data" result.
    """

    def __init__(self, obligations: Sequence[ObligationSnapshot]) -> None:
        self._obligations: Tuple[ObligationSnapshot, ...] = tuple(obligations)

    @classmethod
    def from_inventory(cls, inventory: Inventory) -> "BaselineResolver":
        return cls(inventory.obligations)

    @property
    def active(self) -> Tuple[ObligationSnapshot, ...]:
        return tuple(o for o in self._obligations if not o.is_settled)

    def resolve(self, level: str = "portfolio", scope_id: Optional[str] = None) -> Tuple[ObligationSnapshot, ...]:
        if level not in LEVELS:
            raise ParameterError(f"Unknown level {level!r}")

        in_scope = self.active
        if level == "portfolio" or not scope_id:
            if level != "portfolio":
                logger.debug("No scope id for level=%s; using full portfolio", level)
            return in_scope

        if level == "site":
            selected = tuple(o for o in in_scope if o.site_id == scope_id)
        elif level == "project":
            selected = tuple(o for o in in_scope if o.facility_id == scope_id)
        else:
            selected = tuple(o for o in in_scope if o.id == scope_id)

        if not selected:
            logger.warning("Scope %s=%s resolved to no active obligations", level, scope_id)
        return selected


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def _as_date(value: Any, what: str) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value), "%Y-%m-%d").date()
    except ValueError as exc:
        raise InventoryError(f"{what}: expected YYYY-MM-DD date, got {value!r}") from exc


def years_between(start: date, end: date) -> float:
    """Fractional years from ``start`` to ``end`` (negative if ``end`` is earlier)."""
    return (end - start).days / DAYS_PER_YEAR


def _as_number(row: Mapping[str, Any], key: str, where: str, default: Optional[float] = None) -> float:
    raw = row.get(key, default)
    if raw is None:
        raise InventoryError(f"{where}: missing required field '{key}'")
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise InventoryError(f"{where}: field '{key}' must be numeric, got {raw!r}") from exc


def _parse_obligation(row: Mapping[str, Any], valuation: date, index: int) -> ObligationSnapshot:
    if not isinstance(row, Mapping):
        raise InventoryError(f"obligations[{index}]: expected a mapping")
    oid = row.get("id")
    if not oid:
        raise InventoryError(f"obligations[{index}]: missing 'id'")
    where = f"obligation {oid}"

    settle = _as_date(row.get("target_settlement_date"), where)
    if settle is not None:
        years = max(0.0, years_between(valuation, settle))
    else:
        years = max(0.0, float(row.get("years_remaining", 0.0) or 0.0))

    deadline = _as_date(row.get("regulatory_deadline"), where)

    return ObligationSnapshot(
        id=str(oid),
        current_liability=_as_number(row, "current_liability", where, 0.0),
        discount_rate=_as_number(row, "discount_rate", where, 0.0),
        initial_estimate=_as_number(row, "initial_estimate", where, 0.0),
        accretion_expense=_as_number(row, "accretion_expense", where, 0.0),
        years_remaining=years,
        status=str(row.get("status", "Active")),
        site_id=str(row.get("site_id", "")),
        facility_id=str(row.get("facility_id", "")),
        name=str(row.get("name", oid)),
        obligation_type=str(row.get("type", "ARO")).upper(),
        contaminant_type=row.get("contaminant_type") or None,
        regulatory_deadline_years=years_between(valuation, deadline) if deadline else None,
        has_settlement_date=settle is not None or "years_remaining" in row,
    )


def _parse_site(row: Mapping[str, Any], index: int) -> SiteMeta:
    if not isinstance(row, Mapping) or not row.get("id"):
        raise InventoryError(f"sites[{index}]: expected a mapping with an 'id'")
    projects: List[SettlementProject] = []
    for j, p in enumerate(row.get("settlement_projects") or []):
        where = f"site {row['id']} settlement_projects[{j}]"
        projects.append(
            SettlementProject(
                obligation_id=str(p.get("obligation_id", "")),
                budget=_as_number(p, "budget", where),
                spent=_as_number(p, "spent", where),
                cost_item_variances=tuple(float(v) for v in p.get("cost_item_variances") or ()),
            )
        )
    return SiteMeta(
        id=str(row["id"]),
        name=str(row.get("name", row["id"])),
        region=str(row.get("region", "")),
        compliance_status=str(row.get("compliance_status", "Compliant")),
        exposures=tuple(str(e) for e in row.get("exposures") or ()),
        settlement_projects=tuple(projects),
    )


def parse_inventory(
    data: Mapping[str, Any],
    valuation_date: Optional[date] = None,
    default_valuation_date: Optional[date] = None,
) -> Inventory:
    """Build an Inventory from an already-decoded document.

    ``valuation_date`` overrides the document's own ``valuation_date``;
    ``default_valuation_date`` is used only when the document has none.
    """
    if not isinstance(data, Mapping):
        raise InventoryError(f"Expected a mapping at top level, got {type(data).__name__}")

    valuation = (
        valuation_date
        or _as_date(data.get("valuation_date"), "valuation_date")
        or default_valuation_date
    )
    if valuation is None:
        raise InventoryError("No valuation_date in document and none supplied")

    obligations = tuple(
        _parse_obligation(row, valuation, i) for i, row in enumerate(data.get("obligations") or [])
    )
    sites = tuple(_parse_site(row, i) for i, row in enumerate(data.get("sites") or []))

    forecast: List[ForecastPoint] = []
    for i, row in enumerate(data.get("forecast") or []):
        where = f"forecast[{i}]"
        forecast.append(
            ForecastPoint(
                year=int(_as_number(row, "year", where)),
                aro=_as_number(row, "aro", where, 0.0),
                ero=_as_number(row, "ero", where, 0.0),
            )
        )
    forecast.sort(key=lambda p: p.year)

    logger.debug(
        "Parsed inventory: %d obligations, %d sites, %d forecast years (valuation %s)",
        len(obligations), len(sites), len(forecast), valuation,
    )
    return Inventory(
        obligations=obligations,
        sites=sites,
        forecast=tuple(forecast),
        valuation_date=valuation,
        meta=dict(data.get("meta") or {}),
    )


def load_inventory(
    path: str | Path,
    valuation_date: Optional[date] = None,
    default_valuation_date: Optional[date] = None,
) -> Inventory:
    """Load an inventory document from a YAML or JSON file (see parse_inventory)."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Inventory file not found: {p}")

    suffix = p.suffix.lower()
    with p.open("r", encoding="utf-8") as f:
        if suffix in (".yml", ".yaml"):
            data = yaml.safe_load(f)
        elif suffix == ".json":
            data = json.load(f)
        else:
            raise InventoryError(f"Unsupported inventory extension '{suffix}' for {p}")

    if data is None:
        raise InventoryError(f"Empty inventory file: {p}")

    inventory = parse_inventory(
        data, valuation_date=valuation_date, default_valuation_date=default_valuation_date
    )
    logger.info("Loaded inventory %s (%d obligations)", p.name, len(inventory.obligations))
    return inventory


def sample_inventory_path() -> Path:
    """Path of the demonstration inventory shipped with the package."""
    return Path(__file__).parent / "data" / "sample_inventory.yaml"


__all__ = [
    "BaselineResolver",
    "ForecastPoint",
    "Inventory",
    "InventoryError",
    "ObligationSnapshot",
    "SettlementProject",
    "SiteMeta",
    "load_inventory",
    "parse_inventory",
    "sample_inventory_path",
    "years_between",
]
