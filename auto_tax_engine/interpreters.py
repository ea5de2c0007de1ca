"""
Policy interpreters.

Pure functions that turn rule-set data into amounts, rates and booleans.
Each dispatch over a policy enum handles every member explicitly and ends
in ``unreachable``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from auto_tax_engine.models import TaxInput, TaxLine
from auto_tax_engine.money import ZERO, apply_rate, clamp_zero, format_money, format_rate
from auto_tax_engine.rules import (
    JurisdictionRuleSet,
    LeaseSpecialScheme,
    ProductKind,
    RateComponents,
    RebateKind,
    Taxability,
    TradeInPolicyType,
    VehicleTaxScheme,
    assumed,
    unreachable,
)

NJ_LUXURY_THRESHOLD = Decimal("45000")
NJ_LUXURY_RATE = Decimal("0.004")


# ── Trade-in ────────────────────────────────────────────────────────────


def trade_in_credit(rule: JurisdictionRuleSet, base: Decimal, trade_in: Decimal) -> Decimal:
    """Credit against ``base`` for a trade-in worth ``trade_in``; never exceeds the base."""
    ceiling = clamp_zero(base)
    value = clamp_zero(trade_in)
    policy = rule.trade_in_policy
    kind = policy.kind

    if kind is TradeInPolicyType.NONE:
        credit = ZERO
    elif kind is TradeInPolicyType.FULL:
        credit = value
    elif kind is TradeInPolicyType.CAPPED:
        credit = min(value, policy.cap or ZERO)
    elif kind is TradeInPolicyType.PERCENT:
        credit = value * (policy.percent or ZERO)
    else:
        unreachable(kind)

    return min(credit, ceiling)


# ── Taxability lookups ──────────────────────────────────────────────────


def rebate_rule(rule: JurisdictionRuleSet, kind: RebateKind) -> Taxability:
    found = rule.rebates.get(kind)
    if found is None:
        return assumed(True, f"No rule for {kind.value} rebate; treated as taxable")
    return found


def fee_rule(rule: JurisdictionRuleSet, fee_code: str) -> Taxability:
    found = rule.fees.get(fee_code.upper())
    if found is None:
        return assumed(False, f"No rule for fee code {fee_code.upper()}; not taxed")
    return found


def product_rule(rule: JurisdictionRuleSet, kind: ProductKind) -> Taxability:
    found = rule.products.get(kind)
    if found is None:
        return assumed(False, f"No rule for {kind.value}; not taxed")
    return found


def is_rebate_taxable(rule: JurisdictionRuleSet, kind: RebateKind) -> bool:
    return rebate_rule(rule, kind).taxable


def is_fee_taxable(rule: JurisdictionRuleSet, fee_code: str) -> bool:
    return fee_rule(rule, fee_code).taxable


def is_product_taxable(rule: JurisdictionRuleSet, kind: ProductKind) -> bool:
    return product_rule(rule, kind).taxable


def product_fixed_rate(rule: JurisdictionRuleSet, kind: ProductKind) -> Optional[Decimal]:
    """Own rate for a taxable product, or None when it takes the vehicle rate."""
    found = product_rule(rule, kind)
    return found.fixed_rate if found.taxable else None


def is_negative_equity_taxable(rule: JurisdictionRuleSet) -> bool:
    return rule.negative_equity.taxable


def confidence_warning(label: str, taxability: Taxability) -> Optional[str]:
    if not taxability.is_conservative:
        return None
    detail = f" ({taxability.note})" if taxability.note else ""
    treatment = "taxable" if taxability.taxable else "not taxable"
    return f"{label} treated as {treatment} by conservative default{detail}"


# ── Rates ───────────────────────────────────────────────────────────────


def applicable_state_rate(
    rule: JurisdictionRuleSet,
    measure: Decimal,
    base_rate: Optional[Decimal] = None,
) -> tuple[Decimal, bool]:
    """
    State rate for a base measured at ``measure``.

    Returns ``(rate, threshold_crossed)``. A threshold is crossed only when
    the measure is strictly above its amount.
    """
    rate = rule.state_rate if base_rate is None else base_rate
    threshold = rule.rate_threshold
    if threshold is not None and measure > threshold.amount:
        return threshold.rate, True
    return rate, False


def scheme_rate_components(
    rule: JurisdictionRuleSet,
    rates: Optional[RateComponents],
    state_rate: Decimal,
    notes: Optional[list[str]] = None,
) -> list[tuple[str, Decimal]]:
    """
    Labeled rate components for the general retail and lease paths.

    ``state_rate`` is the already-resolved state rate (threshold applied).
    Special schemes have their own calculators and are rejected here.
    """
    local = rates.local if rates is not None else rule.default_local_rate
    special = rates.special_district if rates is not None else ZERO
    scheme = rule.vehicle_tax_scheme

    if scheme is VehicleTaxScheme.STATE_ONLY:
        if notes is not None and (local > ZERO or special > ZERO):
            notes.append(f"{rule.code} taxes vehicles at the state rate only; local rates ignored")
        return [("STATE", state_rate)]
    elif scheme is VehicleTaxScheme.STATE_PLUS_LOCAL:
        components = [("STATE", state_rate)]
        if local > ZERO:
            components.append(("LOCAL", local))
        if special > ZERO:
            components.append(("SPECIAL_DISTRICT", special))
        return components
    elif scheme in (
        VehicleTaxScheme.SPECIAL_TAVT,
        VehicleTaxScheme.SPECIAL_HUT,
        VehicleTaxScheme.SPECIAL_PRIVILEGE,
    ):
        raise ValueError(f"{scheme.value} is computed by its own calculator")
    else:
        unreachable(scheme)


# ── Lease special schemes ───────────────────────────────────────────────


@dataclass(frozen=True)
class LeaseSchemeAdjustment:
    surcharge_lines: tuple[TaxLine, ...] = ()
    notes: tuple[str, ...] = ()

    @property
    def surcharge_total(self) -> Decimal:
        return sum((line.tax for line in self.surcharge_lines), ZERO)


def lease_scheme_adjustment(rule: JurisdictionRuleSet, deal: TaxInput) -> LeaseSchemeAdjustment:
    scheme = rule.lease.special_scheme
    gross = deal.gross_cap_cost or ZERO

    if scheme is LeaseSpecialScheme.NONE:
        return LeaseSchemeAdjustment()
    elif scheme is LeaseSpecialScheme.NJ_LUXURY:
        if gross <= NJ_LUXURY_THRESHOLD:
            return LeaseSchemeAdjustment()
        excess = gross - NJ_LUXURY_THRESHOLD
        line = TaxLine("NJ_LUXURY_SURCHARGE", excess, NJ_LUXURY_RATE, apply_rate(excess, NJ_LUXURY_RATE))
        return LeaseSchemeAdjustment(
            surcharge_lines=(line,),
            notes=(
                f"Luxury surcharge of {format_rate(NJ_LUXURY_RATE)} on {format_money(excess)} "
                f"of gross cap cost above {format_money(NJ_LUXURY_THRESHOLD)}",
            ),
        )
    elif scheme is LeaseSpecialScheme.NY_MTR:
        return LeaseSchemeAdjustment(
            notes=("Metropolitan commuter transportation district surcharge not computed",)
        )
    elif scheme is LeaseSpecialScheme.PA_LEASE_TAX:
        return LeaseSchemeAdjustment(
            notes=("Separate motor vehicle lease tax on payments not computed",)
        )
    elif scheme is LeaseSpecialScheme.IL_CHICAGO_COOK:
        return LeaseSchemeAdjustment(
            notes=("Chicago and Cook County lease transaction taxes not computed",)
        )
    elif scheme is LeaseSpecialScheme.TX_LEASE_SPECIAL:
        return LeaseSchemeAdjustment(
            notes=("Lessor motor vehicle tax on the purchase is outside this calculation",)
        )
    elif scheme is LeaseSpecialScheme.VA_USAGE:
        return LeaseSchemeAdjustment(
            notes=("Motor vehicle sales and use tax collected at titling of the leased vehicle",)
        )
    elif scheme is LeaseSpecialScheme.MD_UPFRONT_GAIN:
        return LeaseSchemeAdjustment(notes=("Excise titling tax collected at lease inception",))
    elif scheme is LeaseSpecialScheme.CO_HOME_RULE_LEASE:
        return LeaseSchemeAdjustment(
            notes=("Home-rule city lease taxation may differ from state treatment",)
        )
    else:
        unreachable(scheme)
