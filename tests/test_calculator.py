"""Tests for the TaxCalculator engine and the retail calculation path."""

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from auto_tax_engine.calculator import TaxCalculator
from auto_tax_engine.exceptions import MissingRequiredField, UnknownJurisdiction
from auto_tax_engine.jurisdictions import all_rule_sets
from auto_tax_engine.models import FeeItem, TaxInput
from auto_tax_engine.registry import JurisdictionRegistry
from auto_tax_engine.rules import (
    DealType,
    JurisdictionRuleSet,
    RateComponents,
    ThresholdEvaluation,
    TradeInPolicy,
    VehicleTaxScheme,
)


@pytest.fixture
def registry() -> JurisdictionRegistry:
    return JurisdictionRegistry(all_rule_sets())


@pytest.fixture
def calc(registry: JurisdictionRegistry) -> TaxCalculator:
    return TaxCalculator(registry, today=lambda: date(2024, 6, 1))


_TEXT_FIELDS = {"home_jurisdiction", "body_type"}


def _deal(
    jurisdiction: str = "CT",
    price: str = "30000",
    as_of: date | None = date(2024, 6, 15),
    **amounts,
) -> TaxInput:
    fields = {
        k: Decimal(v) if isinstance(v, str) and k not in _TEXT_FIELDS else v
        for k, v in amounts.items()
    }
    return TaxInput(
        jurisdiction=jurisdiction,
        as_of_date=as_of,
        deal_id="TEST-001",
        vehicle_price=Decimal(price),
        **fields,
    )


# ── Basic retail calculation ─────────────────────────────────────────


def test_connecticut_below_threshold(calc: TaxCalculator):
    result = calc.calculate(_deal("CT", "45000"))
    assert result.total_tax == Decimal("2857.50")
    assert result.state_tax == Decimal("2857.50")
    assert result.local_tax == Decimal("0")
    assert [line.label for line in result.lines] == ["STATE"]
    assert result.implemented is True
    assert result.rule_version == 2


def test_connecticut_rate_trap(calc: TaxCalculator):
    result = calc.calculate(
        _deal("CT", "52000", trade_in_value="10000", doc_fee="500")
    )
    assert result.taxable_amount == Decimal("42500")
    assert result.trade_in_credit == Decimal("10000")
    assert result.lines[0].rate == Decimal("0.0775")
    assert result.total_tax == Decimal("3293.75")
    assert any(w.startswith("Rate trap") for w in result.warnings)
    assert not any("documentation fee" in w for w in result.warnings)


def test_threshold_crossed_by_doc_fee_warns(calc: TaxCalculator):
    result = calc.calculate(_deal("CT", "49800", doc_fee="500"))
    assert result.lines[0].rate == Decimal("0.0775")
    assert result.total_tax == Decimal("3898.25")
    assert "Threshold crossed due to documentation fee of $500.00" in result.warnings


def test_threshold_needs_strictly_greater(calc: TaxCalculator):
    result = calc.calculate(_deal("CT", "50000"))
    assert result.lines[0].rate == Decimal("0.0635")


def test_earlier_luxury_rate_by_date(calc: TaxCalculator):
    result = calc.calculate(_deal("CT", "60000", as_of=date(2013, 5, 1)))
    assert result.rule_version == 1
    assert result.total_tax == Decimal("4200.00")


def test_post_trade_in_threshold_avoids_trap(calc: TaxCalculator, registry):
    ct = registry.resolve("CT", date(2024, 6, 15))
    rule = replace(
        ct,
        rate_threshold=replace(ct.rate_threshold, evaluation=ThresholdEvaluation.POST_TRADE_IN),
    )
    deal = _deal("CT", "52000", trade_in_value="10000", doc_fee="500")
    result = calc.calculate_with_rules(deal, rule)
    assert result.lines[0].rate == Decimal("0.0635")
    assert result.total_tax == Decimal("2698.75")
    assert not any(w.startswith("Rate trap") for w in result.warnings)


# ── Rebates, fees and products ───────────────────────────────────────


def test_taxable_manufacturer_rebate_does_not_reduce_base(calc: TaxCalculator):
    result = calc.calculate(_deal("CT", "28000", manufacturer_rebate="3000"))
    assert result.taxable_amount == Decimal("28000")
    assert result.total_tax == Decimal("1778.00")
    assert any("does not reduce the taxable price" in n for n in result.notes)


def test_dealer_rebate_reduces_base(calc: TaxCalculator):
    result = calc.calculate(_deal("CT", "28000", dealer_rebate="2000"))
    assert result.taxable_amount == Decimal("26000")
    assert result.total_tax == Decimal("1651.00")


def test_service_contract_taxed_at_own_rate(calc: TaxCalculator):
    result = calc.calculate(_deal("CT", "20000", service_contracts="2000"))
    labels = {line.label: line.tax for line in result.lines}
    assert labels == {"STATE": Decimal("1270.00"), "SERVICE_CONTRACT": Decimal("127.00")}
    assert result.total_tax == Decimal("1397.00")
    assert result.taxable_amount == Decimal("22000")


def test_exempt_product_is_noted(calc: TaxCalculator):
    result = calc.calculate(_deal("MA", "20000", gap="800"))
    assert result.total_tax == Decimal("1250.00")
    assert any("GAP of $800.00 not taxed" in n for n in result.notes)


def test_unknown_fee_code_is_not_taxed_with_warning(calc: TaxCalculator):
    deal = _deal("CT", "20000", other_fees=(FeeItem("XYZ", Decimal("100")),))
    result = calc.calculate(deal)
    assert result.total_tax == Decimal("1270.00")
    assert any("Fee XYZ" in w and "conservative default" in w for w in result.warnings)


def test_government_fees_not_taxed(calc: TaxCalculator):
    deal = _deal(
        "CT",
        "20000",
        other_fees=(FeeItem("TITLE", Decimal("25")), FeeItem("REG", Decimal("120"))),
    )
    result = calc.calculate(deal)
    assert result.taxable_amount == Decimal("20000")
    assert result.warnings == []


def test_negative_equity_not_taxed_by_default(calc: TaxCalculator):
    result = calc.calculate(
        _deal("CT", "30000", trade_in_value="5000", trade_in_payoff="8000")
    )
    assert result.taxable_amount == Decimal("25000")
    assert any("Negative equity of $3,000.00 not taxed" in n for n in result.notes)
    assert any(w.startswith("Negative equity treated as not taxable") for w in result.warnings)


# ── Trade-in policies ────────────────────────────────────────────────


@pytest.mark.parametrize(
    "as_of, expected",
    [
        (date(2005, 3, 1), Decimal("1875.00")),  # no credit
        (date(2012, 3, 1), Decimal("1250.00")),  # capped at 10,000
        (date(2020, 3, 1), Decimal("937.50")),  # full credit
    ],
)
def test_massachusetts_trade_in_by_date(calc: TaxCalculator, as_of, expected):
    result = calc.calculate(_deal("MA", "30000", as_of=as_of, trade_in_value="15000"))
    assert result.total_tax == expected


def test_no_credit_policy_is_noted(calc: TaxCalculator):
    result = calc.calculate(_deal("MA", "30000", as_of=date(2005, 3, 1), trade_in_value="5000"))
    assert "No trade-in credit under none policy" in result.notes


def test_michigan_capped_trade_in(calc: TaxCalculator):
    result = calc.calculate(_deal("MI", "40000", trade_in_value="12000"))
    assert result.trade_in_credit == Decimal("10000")
    assert result.total_tax == Decimal("1800.00")


def test_percent_trade_in_policy(calc: TaxCalculator):
    rule = replace(
        JurisdictionRuleSet.stub("ZZ", "Test", Decimal("0.05")),
        trade_in_policy=TradeInPolicy.percent_of(Decimal("0.5")),
    )
    result = calc.calculate_with_rules(_deal("ZZ", "30000", trade_in_value="10000"), rule)
    assert result.trade_in_credit == Decimal("5000")
    assert result.total_tax == Decimal("1250.00")


def test_trade_in_larger_than_price_never_goes_negative(calc: TaxCalculator):
    result = calc.calculate(_deal("CT", "30000", trade_in_value="40000"))
    assert result.trade_in_credit == Decimal("30000")
    assert result.taxable_amount == Decimal("0")
    assert result.total_tax == Decimal("0")


# ── State and local rates ────────────────────────────────────────────


def test_new_york_default_local_rate(calc: TaxCalculator):
    result = calc.calculate(_deal("NY", "30000"))
    assert result.scheme is VehicleTaxScheme.STATE_PLUS_LOCAL
    assert result.state_tax == Decimal("1200.00")
    assert result.local_tax == Decimal("1350.00")
    assert result.total_tax == Decimal("2550.00")


def test_explicit_rate_components(calc: TaxCalculator):
    rates = RateComponents(Decimal("0.04"), Decimal("0.04875"), Decimal("0.00375"))
    result = calc.calculate(_deal("NY", "30000", rates=rates))
    taxes = {line.label: line.tax for line in result.lines}
    assert taxes == {
        "STATE": Decimal("1200.00"),
        "LOCAL": Decimal("1462.50"),
        "SPECIAL_DISTRICT": Decimal("112.50"),
    }
    assert result.local_tax == Decimal("1575.00")
    assert result.total_tax == Decimal("2775.00")


def test_state_only_ignores_local_rates(calc: TaxCalculator):
    rates = RateComponents(Decimal("0.0635"), Decimal("0.01"))
    result = calc.calculate(_deal("CT", "20000", rates=rates))
    assert result.total_tax == Decimal("1270.00")
    assert any("local rates ignored" in n for n in result.notes)


# ── Researched state rules ───────────────────────────────────────


def test_south_carolina_fee_capped(calc: TaxCalculator):
    result = calc.calculate(_deal("SC", "30000"))
    assert result.lines[0].tax == Decimal("500")
    assert result.total_tax == Decimal("500")
    assert "State tax of $1,500.00 capped at $500.00" in result.notes


def test_south_carolina_below_cap(calc: TaxCalculator):
    result = calc.calculate(_deal("SC", "8000"))
    assert result.total_tax == Decimal("400.00")


def test_alabama_automotive_rate(calc: TaxCalculator):
    result = calc.calculate(_deal("AL", "30000", trade_in_value="5000"))
    assert result.total_tax == Decimal("500.00")


def test_ohio_rebates_and_doc_fee(calc: TaxCalculator):
    deal = _deal(
        "OH",
        "30000",
        manufacturer_rebate="2000",
        dealer_rebate="1000",
        doc_fee="300",
        service_contracts="1500",
    )
    result = calc.calculate(deal)
    assert result.taxable_amount == Decimal("29500")
    assert result.total_tax == Decimal("1696.25")
    assert "Fee DOC_FEE of $300.00 not taxed" in result.notes


def test_ohio_negative_equity_taxed(calc: TaxCalculator):
    result = calc.calculate(_deal("OH", "30000", trade_in_value="5000", trade_in_payoff="8000"))
    assert result.taxable_amount == Decimal("28000")
    assert result.total_tax == Decimal("1610.00")


def test_utah_service_contract_taxed_gap_exempt(calc: TaxCalculator):
    deal = _deal(
        "UT", "30000", service_contracts="2000", gap="800", manufacturer_rebate="1000"
    )
    result = calc.calculate(deal)
    assert result.total_tax == Decimal("2123.50")
    assert "GAP of $800.00 not taxed" in result.notes


# ── Stub jurisdictions ───────────────────────────────────────────────


def test_stub_jurisdiction_uses_conservative_defaults(calc: TaxCalculator):
    result = calc.calculate(
        _deal("TX", "30000", trade_in_value="5000", manufacturer_rebate="1000")
    )
    assert result.implemented is False
    assert result.taxable_amount == Decimal("25000")
    assert result.total_tax == Decimal("1562.50")
    assert any("not researched" in w for w in result.warnings)
    assert any("Manufacturer rebate treated as taxable" in w for w in result.warnings)


def test_every_jurisdiction_returns_a_result(calc: TaxCalculator, registry):
    for code in registry.codes:
        deal = _deal(
            code, "30000", transaction_date=date(2024, 6, 1), body_type="sedan"
        )
        result = calc.calculate(deal)
        assert result.total_tax >= Decimal("0")
        assert result.jurisdiction == code


# ── Reciprocity ──────────────────────────────────────────────────────


def test_reciprocity_credit_with_excess_discarded(calc: TaxCalculator):
    deal = _deal(
        "CT",
        "30000",
        home_jurisdiction="NY",
        home_tax_paid=Decimal("2400"),
        proof_of_tax_paid=True,
    )
    result = calc.calculate(deal)
    assert result.reciprocity is not None
    assert result.reciprocity.credit_applied == Decimal("1905.00")
    assert result.reciprocity.excess_discarded == Decimal("495.00")
    assert result.total_tax == Decimal("0")
    assert result.lines[0].tax == Decimal("1905.00")
    assert any("not refunded or carried forward" in n for n in result.notes)


def test_reciprocity_without_proof_is_denied(calc: TaxCalculator):
    deal = _deal("CT", "30000", home_jurisdiction="NY", home_tax_paid=Decimal("2400"))
    result = calc.calculate(deal)
    assert result.total_tax == Decimal("1905.00")
    assert result.reciprocity.granted is False
    assert any(w.startswith("Proof of $2,400.00") for w in result.warnings)


def test_reciprocity_disabled_in_new_york(calc: TaxCalculator):
    deal = _deal(
        "NY", "30000", home_jurisdiction="NJ", home_tax_paid=Decimal("1000"), proof_of_tax_paid=True
    )
    result = calc.calculate(deal)
    assert result.total_tax == Decimal("2550.00")
    assert result.reciprocity.credit_applied == Decimal("0")


def test_reciprocity_needs_home_jurisdiction(calc: TaxCalculator):
    result = calc.calculate(
        _deal("CT", "30000", home_tax_paid="2400", proof_of_tax_paid=True)
    )
    assert result.reciprocity is None
    assert result.total_tax == Decimal("1905.00")
    assert any("No home jurisdiction given" in n for n in result.notes)


def test_no_reciprocity_for_in_state_buyer(calc: TaxCalculator):
    result = calc.calculate(
        _deal(
            "CT", "30000", home_jurisdiction="ct", home_tax_paid="2400", proof_of_tax_paid=True
        )
    )
    assert result.reciprocity is None
    assert result.total_tax == Decimal("1905.00")


def test_louisiana_credit_leaves_local_tax_owed(calc: TaxCalculator):
    deal = _deal(
        "LA",
        "20000",
        as_of=date(2025, 3, 1),
        rates=RateComponents(state=Decimal("0.05"), local=Decimal("0.04")),
        home_jurisdiction="TX",
        home_tax_paid="1500",
        proof_of_tax_paid=True,
    )
    result = calc.calculate(deal)
    assert result.reciprocity.credit_applied == Decimal("1000.00")
    assert result.reciprocity.remaining_tax == Decimal("800.00")
    assert result.reciprocity.excess_discarded == Decimal("500.00")
    assert result.state_tax == Decimal("0")
    assert result.local_tax == Decimal("800.00")


def test_ohio_reciprocal_collection_note(calc: TaxCalculator):
    deal = _deal(
        "OH", "20000", home_jurisdiction="MI", home_tax_paid="500", proof_of_tax_paid=True
    )
    result = calc.calculate(deal)
    assert "Ohio tax collected from MI residents under a reciprocal agreement." in result.notes
    assert result.total_tax == Decimal("650.00")


# ── Dates, validation and determinism ────────────────────────────────


def test_as_of_defaults_to_injected_today(calc: TaxCalculator):
    result = calc.calculate(_deal("CT", "20000", as_of=None))
    assert result.rule_version == 2


def test_unknown_jurisdiction_raises(calc: TaxCalculator):
    with pytest.raises(UnknownJurisdiction):
        calc.calculate(_deal("ZZ"))


def test_date_before_first_version_raises(calc: TaxCalculator):
    with pytest.raises(UnknownJurisdiction):
        calc.calculate(_deal("CT", as_of=date(2010, 1, 1)))


def test_missing_jurisdiction_raises(calc: TaxCalculator):
    with pytest.raises(MissingRequiredField) as exc:
        calc.calculate(_deal(""))
    assert exc.value.field == "jurisdiction"


def test_lease_without_cap_cost_raises(calc: TaxCalculator):
    deal = TaxInput(jurisdiction="CT", deal_type=DealType.LEASE, as_of_date=date(2024, 6, 1))
    with pytest.raises(MissingRequiredField) as exc:
        calc.calculate(deal)
    assert exc.value.field == "gross_cap_cost"


def test_retail_without_price_raises(calc: TaxCalculator):
    deal = TaxInput(jurisdiction="CT", as_of_date=date(2024, 6, 1))
    with pytest.raises(MissingRequiredField) as exc:
        calc.calculate(deal)
    assert exc.value.field == "vehicle_price"
    assert exc.value.deal_type == "retail"


def test_calculation_is_deterministic(calc: TaxCalculator):
    deal = _deal("CT", "52000", trade_in_value="10000", doc_fee="500")
    assert calc.calculate(deal) == calc.calculate(deal)


# ── Batch processing ─────────────────────────────────────────────────


def test_batch_collects_errors(calc: TaxCalculator):
    deals = [
        replace(_deal("CT", "20000"), deal_id="D1"),
        replace(_deal("MA", "20000", as_of=date(2020, 1, 1)), deal_id="D2"),
        replace(_deal("ZZ", "20000"), deal_id="D3"),
        replace(_deal("CT", "10000"), deal_id=""),
    ]
    batch = calc.calculate_batch(deals)
    assert batch.deal_count == 4
    assert len(batch.results) == 3
    assert batch.errors == ["Deal D3: Unknown jurisdiction: ZZ"]
    assert batch.total_tax == Decimal("1270.00") + Decimal("1250.00") + Decimal("635.00")
    assert batch.jurisdiction_breakdown == {
        "CT": Decimal("1905.00"),
        "MA": Decimal("1250.00"),
    }


def test_batch_labels_unnamed_deals_by_position(calc: TaxCalculator):
    batch = calc.calculate_batch([TaxInput(jurisdiction="")])
    assert batch.errors == ["Deal #1: retail calculation requires 'jurisdiction'"]


# ── Input records ────────────────────────────────────────────────────


def test_tax_input_from_dict():
    deal = TaxInput.from_dict(
        {
            "jurisdiction": " ct ",
            "deal_type": "lease",
            "as_of_date": "2024-06-01",
            "gross_cap_cost": "55,000",
            "payment_count": "36",
            "base_monthly_payment": 480,
            "proof_of_tax_paid": "yes",
            "other_fees": {"title": "25"},
            "vehicle_class": "RV",
        }
    )
    assert deal.jurisdiction == "CT"
    assert deal.deal_type is DealType.LEASE
    assert deal.gross_cap_cost == Decimal("55000")
    assert deal.payment_count == 36
    assert deal.proof_of_tax_paid is True
    assert deal.other_fees == (FeeItem("TITLE", Decimal("25")),)
    assert deal.vehicle_class.value == "rv"
    assert deal.vehicle_price is None


def test_lease_trade_in_reduction_defaults_to_equity():
    deal = TaxInput(
        jurisdiction="CT", trade_in_value=Decimal("12000"), trade_in_payoff=Decimal("9000")
    )
    assert deal.lease_trade_in_reduction == Decimal("3000")
    assert deal.negative_equity == Decimal("0")
