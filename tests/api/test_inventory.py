"""
Tests for aro_scenarios.inventory: document loading and the baseline resolver.
"""

from __future__ import annotations

import json
from datetime import date

import pytest

from aro_scenarios.inventory import (
    BaselineResolver,
    InventoryError,
    load_inventory,
    parse_inventory,
    years_between,
)
from aro_scenarios.parameters import ParameterError


def test_sample_inventory_loads(sample_inventory):
    assert len(sample_inventory.obligations) == 13
    assert len(sample_inventory.sites) == 4
    assert [p.year for p in sample_inventory.forecast] == list(range(2026, 2037))
    assert sample_inventory.valuation_date == date(2026, 1, 1)


def test_years_remaining_is_derived_from_settlement_date(sample_inventory):
    by_id = {o.id: o for o in sample_inventory.obligations}

    expected = years_between(date(2026, 1, 1), date(2035, 12, 31))
    assert by_id["OBL-001"].years_remaining == pytest.approx(expected)
    assert by_id["OBL-001"].years_remaining == pytest.approx(10.0, abs=0.01)

    # settled in the past -> floored at zero
    assert by_id["OBL-013"].years_remaining == 0.0
    assert by_id["OBL-013"].is_settled


def test_ero_fields_are_parsed(sample_inventory):
    by_id = {o.id: o for o in sample_inventory.obligations}
    ero = by_id["OBL-012"]
    assert ero.obligation_type == "ERO"
    assert ero.contaminant_type == "Petroleum Hydrocarbons"
    assert 0 < ero.regulatory_deadline_years < 1

    aro = by_id["OBL-001"]
    assert aro.regulatory_deadline_years is None
    assert aro.contaminant_type is None


def test_resolver_excludes_settled_and_filters_by_scope(sample_inventory):
    resolver = BaselineResolver.from_inventory(sample_inventory)

    portfolio = resolver.resolve()
    assert len(portfolio) == 12
    assert all(not o.is_settled for o in portfolio)

    site = resolver.resolve("site", "S001")
    assert {o.id for o in site} == {"OBL-001", "OBL-002", "OBL-003", "OBL-004", "OBL-008"}

    project = resolver.resolve("project", "F004")
    assert {o.id for o in project} == {"OBL-006", "OBL-007"}

    single = resolver.resolve("obligation", "OBL-009")
    assert [o.id for o in single] == ["OBL-009"]


def test_resolver_missing_scope_id_means_portfolio(sample_inventory):
    resolver = BaselineResolver.from_inventory(sample_inventory)
    assert resolver.resolve("site", None) == resolver.resolve("portfolio")


def test_resolver_unknown_scope_is_empty(sample_inventory, caplog):
    resolver = BaselineResolver.from_inventory(sample_inventory)
    assert resolver.resolve("site", "S999") == ()
    assert "resolved to no active obligations" in caplog.text


def test_resolver_settled_obligation_scope_is_empty(sample_inventory):
    resolver = BaselineResolver.from_inventory(sample_inventory)
    assert resolver.resolve("obligation", "OBL-013") == ()


def test_resolver_rejects_unknown_level(sample_inventory):
    with pytest.raises(ParameterError):
        BaselineResolver.from_inventory(sample_inventory).resolve("region", "X")


def test_json_inventory_and_years_remaining_fallback(tmp_path):
    doc = {
        "valuation_date": "2026-01-01",
        "obligations": [
            {
                "id": "J-1",
                "current_liability": 100.0,
                "discount_rate": 0.05,
                "years_remaining": 4.5,
            }
        ],
    }
    path = tmp_path / "inv.json"
    path.write_text(json.dumps(doc), encoding="utf-8")

    inv = load_inventory(path)
    (o,) = inv.obligations
    assert o.years_remaining == 4.5
    assert o.has_settlement_date
    assert o.status == "Active"
    assert inv.sites == ()


def test_default_valuation_date_applies_only_when_document_has_none():
    doc = {"obligations": [{"id": "A", "current_liability": 1, "target_settlement_date": "2030-01-01"}]}

    inv = parse_inventory(doc, default_valuation_date=date(2028, 1, 1))
    assert inv.obligations[0].years_remaining == pytest.approx(2.0, abs=0.01)

    with pytest.raises(InventoryError):
        parse_inventory(doc)


@pytest.mark.parametrize(
    "doc",
    [
        {"valuation_date": "2026-01-01", "obligations": [{"current_liability": 1}]},
        {"valuation_date": "2026-01-01", "obligations": [{"id": "A", "target_settlement_date": "31/12/2030"}]},
        {"valuation_date": "2026-01-01", "obligations": [{"id": "A", "current_liability": "lots"}]},
        ["not", "a", "mapping"],
    ],
)
def test_malformed_documents_raise(doc):
    with pytest.raises(InventoryError):
        parse_inventory(doc)


def test_unsupported_extension_and_missing_file(tmp_path):
    bad = tmp_path / "inv.txt"
    bad.write_text("obligations: []", encoding="utf-8")
    with pytest.raises(InventoryError):
        load_inventory(bad)

    with pytest.raises(FileNotFoundError):
        load_inventory(tmp_path / "missing.yaml")
