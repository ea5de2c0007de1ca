"""Tests for lease tax calculation."""

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from auto_tax_engine.calculator import TaxCalculator
from auto_tax_engine.exceptions import MissingRequiredField
from auto_tax_engine.jurisdictions import all_rule_sets
from auto_tax_engine.models import BaseComponent, TaxInput
from auto_tax_engine.registry import JurisdictionRegistry
from auto_tax_engine.rules import DealType, JurisdictionRuleSet, LeaseMethod, LeaseRules, taxable


@pytest.fixture
def calc() -> TaxCalculator:
    return TaxCalculator(JurisdictionRegistry(all_rule_sets()))


def _lease(
    jurisdiction: str = "CT",
    gross: str = "55000",
    cash: str = "5000",
    payment: str = "480",
    count: int = 36,
    **kwargs,
) -> TaxInput:
    return TaxInput(
        jurisdiction=jurisdiction,
        deal_type=DealType.LEASE,
        as_of_date=date(2024, 6, 1),
        gross_cap_cost=Decimal(gross),
        cap_reduction_cash=Decimal(cash),
        base_monthly_payment=Decimal(payment),
        payment_count=count,
        **kwargs,
    )


def _stub_with(lease: LeaseRules) -> JurisdictionRuleSet:
    return replace(JurisdictionRuleSet.stub("ZZ", "Test", Decimal("0.05")), lease=lease)


# ── Hybrid ───────────────────────────────────────────────────────────


def test_connecticut_hybrid_over_threshold(calc: TaxCalculator):
    result = calc.calculate(_lease())
    lease = result.lease
    assert lease.method is LeaseMethod.HYBRID
    assert lease.upfront_tax == Decimal("387.50")
    assert lease.payment_tax == Decimal("37.20")
    assert result.total_tax == Decimal("1726.70")
    assert [line.label for line in result.lines] == ["UPFRONT_STATE", "PAYMENT_STATE"]


def test_payment_tax_independent_of_term(calc: TaxCalculator):
    short = calc.calculate(_lease(count=24))
    long = calc.calculate(_lease(count=48))
    assert short.lease.payment_tax == long.lease.payment_tax == Decimal("37.20")


def test_connecticut_hybrid_below_threshold(calc: TaxCalculator):
    result = calc.calculate(_lease(gross="40000"))
    assert result.lease.upfront_tax == Decimal("317.50")
    assert result.lease.payment_tax == Decimal("30.48")


def test_trade_in_equity_reduction_not_taxed(calc: TaxCalculator):
    result = calc.calculate(
        _lease(cash="0", trade_in_value=Decimal("8000"), trade_in_payoff=Decimal("5000"))
    )
    assert result.lease.upfront_tax == Decimal("0")
    assert any("Trade-in cap reduction of $3,000.00 not taxed" in n for n in result.notes)


def test_amortized_product_at_own_rate(calc: TaxCalculator):
    result = calc.calculate(_lease(amortized_service_contract_monthly=Decimal("30")))
    labels = {line.label: line.tax for line in result.lines}
    assert labels["PAYMENT_SERVICE_CONTRACT"] == Decimal("1.91")
    assert result.lease.payment_tax == Decimal("39.11")


def test_reciprocity_offsets_upfront_tax(calc: TaxCalculator):
    result = calc.calculate(
        _lease(home_tax_paid=Decimal("100"), home_jurisdiction="NY", proof_of_tax_paid=True)
    )
    assert result.lease.upfront_tax == Decimal("287.50")
    assert result.total_tax == Decimal("1626.70")


# ── Monthly ──────────────────────────────────────────────────────────


def test_massachusetts_monthly(calc: TaxCalculator):
    result = calc.calculate(
        _lease("MA", gross="35000", cash="3000", payment="400", doc_fee=Decimal("300"))
    )
    assert result.lease.method is LeaseMethod.MONTHLY
    assert result.lease.upfront_tax == Decimal("18.75")
    assert result.lease.payment_tax == Decimal("25.00")
    assert result.total_tax == Decimal("918.75")


def test_excluded_amortized_product(calc: TaxCalculator):
    result = calc.calculate(
        _lease("MA", gross="35000", cash="0", payment="400", amortized_gap_monthly=Decimal("20"))
    )
    assert result.lease.payment_tax == Decimal("25.00")
    assert any("Amortized gap" in n for n in result.notes)


def test_georgia_lease_uses_lease_rate(calc: TaxCalculator):
    result = calc.calculate(_lease("GA", gross="30000", cash="0", payment="400"))
    assert result.lease.upfront_tax == Decimal("0")
    assert result.lease.payment_tax == Decimal("16.00")
    assert result.total_tax == Decimal("576.00")


def test_north_carolina_lease_uses_lease_rate(calc: TaxCalculator):
    result = calc.calculate(_lease("NC", gross="30000", cash="0", payment="400"))
    assert result.lease.payment_tax == Decimal("12.00")


def test_alabama_taxes_lease_negative_equity(calc: TaxCalculator):
    deal = _lease(
        "AL",
        gross="30000",
        cash="1000",
        payment="400",
        trade_in_value=Decimal("3000"),
        trade_in_payoff=Decimal("5000"),
    )
    result = calc.calculate(deal)
    assert result.lease.upfront_taxable == Decimal("3000")
    assert result.lease.upfront_tax == Decimal("45.00")
    assert result.lease.payment_tax == Decimal("6.00")
    assert result.total_tax == Decimal("261.00")


# ── Full upfront ─────────────────────────────────────────────────────


def test_new_jersey_full_upfront(calc: TaxCalculator):
    result = calc.calculate(_lease("NJ", gross="40000", cash="2000", payment="400"))
    assert result.lease.method is LeaseMethod.FULL_UPFRONT
    assert result.lease.upfront_taxable == Decimal("16400")
    assert result.lease.upfront_tax == Decimal("1086.50")
    assert result.lease.payment_tax == Decimal("0")
    assert result.total_tax == Decimal("1086.50")


def test_new_jersey_luxury_surcharge(calc: TaxCalculator):
    result = calc.calculate(_lease("NJ", gross="50000", cash="0", payment="500"))
    labels = {line.label: line.tax for line in result.lines}
    assert labels == {"UPFRONT_STATE": Decimal("1192.50"), "NJ_LUXURY_SURCHARGE": Decimal("20.00")}
    assert result.total_tax == Decimal("1212.50")


def test_negative_equity_added_to_upfront_base(calc: TaxCalculator):
    rule = replace(calc.registry.resolve("NJ", date(2024, 6, 1)), negative_equity=taxable())
    deal = _lease(
        "NJ",
        gross="40000",
        cash="0",
        payment="500",
        trade_in_value=Decimal("5000"),
        trade_in_payoff=Decimal("12000"),
    )
    result = calc.calculate_with_rules(deal, rule)
    assert result.lease.upfront_taxable == Decimal("25000")
    assert result.lease.upfront_tax == Decimal("1656.25")
    assert BaseComponent("Negative equity", Decimal("7000")) in result.base_components


def test_negative_equity_not_taxed_when_rule_excludes_it(calc: TaxCalculator):
    deal = _lease(
        "NJ",
        gross="40000",
        cash="0",
        payment="500",
        trade_in_value=Decimal("5000"),
        trade_in_payoff=Decimal("12000"),
    )
    result = calc.calculate(deal)
    assert result.lease.upfront_tax == Decimal("1192.50")
    assert "Negative equity of $7,000.00 not taxed" in result.notes
    assert any(w.startswith("Negative equity treated as not taxable") for w in result.warnings)


def test_kansas_taxes_trade_in_equity_upfront(calc: TaxCalculator):
    deal = _lease(
        "KS",
        gross="30000",
        cash="2000",
        payment="400",
        trade_in_value=Decimal("6000"),
        trade_in_payoff=Decimal("2000"),
    )
    result = calc.calculate(deal)
    assert result.lease.upfront_taxable == Decimal("20400")
    assert result.total_tax == Decimal("1326.00")


def test_south_carolina_lease_fee_capped(calc: TaxCalculator):
    result = calc.calculate(_lease("SC", gross="30000", cash="0", payment="400"))
    assert result.lease.upfront_tax == Decimal("500")
    assert result.total_tax == Decimal("500")


# ── Net cap cost and reduced base ────────────────────────────────────


def test_net_cap_cost_method(calc: TaxCalculator):
    rule = _stub_with(LeaseRules(method=LeaseMethod.NET_CAP_COST))
    result = calc.calculate_with_rules(_lease("ZZ", gross="30000", payment="400"), rule)
    assert result.lease.upfront_taxable == Decimal("25000")
    assert result.total_tax == Decimal("1250.00")


def test_net_cap_cost_adds_taxable_fees(calc: TaxCalculator):
    rule = _stub_with(LeaseRules(method=LeaseMethod.NET_CAP_COST))
    deal = _lease("ZZ", gross="30000", payment="400", doc_fee=Decimal("500"))
    result = calc.calculate_with_rules(deal, rule)
    assert result.total_tax == Decimal("1275.00")
    assert any("not researched" in w for w in result.warnings)


def test_reduced_base_method(calc: TaxCalculator):
    rule = _stub_with(
        LeaseRules(method=LeaseMethod.REDUCED_BASE, reduced_base_factor=Decimal("0.5"))
    )
    result = calc.calculate_with_rules(_lease("ZZ", gross="30000", payment="400"), rule)
    assert result.lease.upfront_taxable == Decimal("12500")
    assert result.total_tax == Decimal("625.00")


# ── Validation ───────────────────────────────────────────────────────


def test_zero_payment_count_raises(calc: TaxCalculator):
    with pytest.raises(MissingRequiredField) as exc:
        calc.calculate(_lease(count=0))
    assert exc.value.field == "payment_count"
    assert exc.value.deal_type == "lease"


def test_missing_monthly_payment_raises(calc: TaxCalculator):
    deal = replace(_lease(), base_monthly_payment=None)
    with pytest.raises(MissingRequiredField):
        calc.calculate(deal)
