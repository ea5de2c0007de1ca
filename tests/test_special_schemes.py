"""Tests for title ad valorem, highway use and privilege tax calculators."""

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from auto_tax_engine.calculator import TaxCalculator
from auto_tax_engine.exceptions import MissingClassification
from auto_tax_engine.jurisdictions import all_rule_sets
from auto_tax_engine.models import TaxInput
from auto_tax_engine.registry import JurisdictionRegistry
from auto_tax_engine.rules import PrivilegeBracket, VehicleClass, VehicleTaxScheme
from auto_tax_engine.special_schemes import bracket_lines

AS_OF = date(2024, 6, 1)


@pytest.fixture
def registry() -> JurisdictionRegistry:
    return JurisdictionRegistry(all_rule_sets())


@pytest.fixture
def calc(registry: JurisdictionRegistry) -> TaxCalculator:
    return TaxCalculator(registry)


def _deal(jurisdiction: str, price: str, **kwargs) -> TaxInput:
    kwargs.setdefault("as_of_date", AS_OF)
    return TaxInput(jurisdiction=jurisdiction, vehicle_price=Decimal(price), **kwargs)


# ── Georgia TAVT ─────────────────────────────────────────────────────


def test_tavt_basic(calc: TaxCalculator):
    result = calc.calculate(_deal("GA", "30000", trade_in_value=Decimal("10000")))
    assert result.scheme is VehicleTaxScheme.SPECIAL_TAVT
    assert result.taxable_amount == Decimal("20000")
    assert result.total_tax == Decimal("1400.00")
    assert [line.label for line in result.lines] == ["TAVT"]


def test_tavt_rebates_and_fees(calc: TaxCalculator):
    result = calc.calculate(
        _deal(
            "GA",
            "30000",
            trade_in_value=Decimal("10000"),
            manufacturer_rebate=Decimal("1000"),
            dealer_rebate=Decimal("500"),
            doc_fee=Decimal("700"),
        )
    )
    # dealer rebate reduces value, manufacturer rebate does not, fees are outside TAVT
    assert result.taxable_amount == Decimal("19500")
    assert result.total_tax == Decimal("1365.00")
    assert any("not subject to TAVT" in n for n in result.notes)


def test_tavt_uses_higher_assessed_value(calc: TaxCalculator):
    result = calc.calculate(_deal("GA", "20000", assessed_value=Decimal("25000")))
    assert result.total_tax == Decimal("1750.00")
    assert any("assessed value used" in n for n in result.notes)


def test_tavt_ignores_negative_equity(calc: TaxCalculator):
    result = calc.calculate(
        _deal(
            "GA",
            "30000",
            trade_in_value=Decimal("10000"),
            trade_in_payoff=Decimal("12000"),
        )
    )
    assert result.total_tax == Decimal("1400.00")
    assert any("Negative equity of $2,000.00" in n for n in result.notes)


# ── North Carolina HUT ───────────────────────────────────────────────


def test_hut_base_and_window(calc: TaxCalculator):
    result = calc.calculate(
        _deal(
            "NC",
            "30000",
            manufacturer_rebate=Decimal("2000"),
            dealer_rebate=Decimal("1000"),
            doc_fee=Decimal("600"),
            service_contracts=Decimal("1500"),
            gap=Decimal("500"),
            trade_in_value=Decimal("5000"),
            transaction_date=date(2024, 5, 1),
        )
    )
    assert result.taxable_amount == Decimal("25600")
    assert result.total_tax == Decimal("768.00")
    assert result.hut_window.inside is True
    assert result.hut_window.closes == date(2024, 7, 30)
    assert any("Dealer rebate of $1,000.00 does not reduce" in n for n in result.notes)


def test_hut_outside_window_warns(calc: TaxCalculator):
    result = calc.calculate(_deal("NC", "30000", transaction_date=date(2024, 1, 1)))
    assert result.total_tax == Decimal("900.00")
    assert result.hut_window.inside is False
    assert any("outside the 90-day window" in w for w in result.warnings)


def test_hut_window_without_transaction_date(calc: TaxCalculator):
    result = calc.calculate(_deal("NC", "30000"))
    assert result.hut_window.anchor == AS_OF
    assert result.hut_window.inside is True
    assert any("No transaction date" in n for n in result.notes)


def test_hut_includes_negative_equity(calc: TaxCalculator):
    result = calc.calculate(
        _deal(
            "NC",
            "20000",
            trade_in_value=Decimal("5000"),
            trade_in_payoff=Decimal("8000"),
            transaction_date=AS_OF,
        )
    )
    assert result.taxable_amount == Decimal("18000")
    assert result.total_tax == Decimal("540.00")


def test_hut_reciprocity_within_window(calc: TaxCalculator):
    result = calc.calculate(
        _deal(
            "NC",
            "10000",
            transaction_date=AS_OF,
            home_jurisdiction="SC",
            home_tax_paid=Decimal("200"),
            home_tax_paid_date=date(2024, 5, 15),
            proof_of_tax_paid=True,
        )
    )
    assert result.reciprocity.credit_applied == Decimal("200")
    assert result.total_tax == Decimal("100.00")


def test_hut_reciprocity_stale_payment(calc: TaxCalculator):
    result = calc.calculate(
        _deal(
            "NC",
            "10000",
            transaction_date=AS_OF,
            home_jurisdiction="SC",
            home_tax_paid=Decimal("200"),
            home_tax_paid_date=date(2023, 12, 1),
            proof_of_tax_paid=True,
        )
    )
    assert result.reciprocity.granted is False
    assert result.total_tax == Decimal("300.00")


# ── West Virginia privilege tax ──────────────────────────────────────


def test_privilege_tax_by_class(calc: TaxCalculator):
    result = calc.calculate(
        _deal(
            "WV",
            "30000",
            vehicle_class=VehicleClass.AUTO,
            trade_in_value=Decimal("5000"),
            doc_fee=Decimal("200"),
        )
    )
    assert result.taxable_amount == Decimal("25200")
    assert result.total_tax == Decimal("1260.00")
    assert [line.label for line in result.lines] == ["PRIVILEGE_AUTO"]


def test_privilege_body_type_mapping(calc: TaxCalculator):
    truck = calc.calculate(_deal("WV", "40000", body_type="pickup"))
    rv = calc.calculate(_deal("WV", "50000", body_type="Motorhome"))
    assert truck.lines[0].label == "PRIVILEGE_TRUCK"
    assert truck.total_tax == Decimal("2000.00")
    assert rv.total_tax == Decimal("3000.00")


def test_privilege_missing_class_raises(calc: TaxCalculator):
    with pytest.raises(MissingClassification):
        calc.calculate(_deal("WV", "30000"))


def test_privilege_unmapped_body_type_raises(calc: TaxCalculator):
    with pytest.raises(MissingClassification) as exc:
        calc.calculate(_deal("WV", "30000", body_type="hovercraft"))
    assert "hovercraft" in exc.value.message


def test_privilege_conservative_product_warning(calc: TaxCalculator):
    result = calc.calculate(
        _deal("WV", "30000", vehicle_class=VehicleClass.AUTO, service_contracts=Decimal("1500"))
    )
    assert result.total_tax == Decimal("1500.00")
    assert any(w.startswith("Service contract treated as not taxable") for w in result.warnings)


def test_progressive_brackets():
    brackets = (
        PrivilegeBracket(Decimal("0"), Decimal("0.03")),
        PrivilegeBracket(Decimal("20000"), Decimal("0.05")),
    )
    lines = bracket_lines(VehicleClass.RV, brackets, Decimal("30000"))
    assert [(line.label, line.taxable_amount, line.tax) for line in lines] == [
        ("PRIVILEGE_RV_1", Decimal("20000"), Decimal("600.00")),
        ("PRIVILEGE_RV_2", Decimal("10000"), Decimal("500.00")),
    ]


def test_progressive_brackets_below_second_floor():
    brackets = (
        PrivilegeBracket(Decimal("0"), Decimal("0.03")),
        PrivilegeBracket(Decimal("20000"), Decimal("0.05")),
    )
    lines = bracket_lines(VehicleClass.RV, brackets, Decimal("15000"))
    assert len(lines) == 1
    assert lines[0].tax == Decimal("450.00")


def test_privilege_with_brackets_end_to_end(calc: TaxCalculator, registry):
    wv = registry.resolve("WV", AS_OF)
    schedules = dict(wv.privilege.class_schedules)
    schedules[VehicleClass.RV] = (
        PrivilegeBracket(Decimal("0"), Decimal("0.03")),
        PrivilegeBracket(Decimal("20000"), Decimal("0.05")),
    )
    rule = replace(wv, privilege=replace(wv.privilege, class_schedules=schedules))
    result = calc.calculate_with_rules(
        _deal("WV", "30000", vehicle_class=VehicleClass.RV), rule
    )
    assert result.total_tax == Decimal("1100.00")
    assert len(result.lines) == 2
