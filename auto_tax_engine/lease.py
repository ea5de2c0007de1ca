"""
Lease tax calculation.

Handles:
- Five taxation methods: per payment, all at signing, signing plus payments,
  net capitalized cost, and a reduced share of net capitalized cost
- Taxable cap cost reductions (cash, trade-in equity, rebates) and
  rolled-in negative equity
- Amortized products taxed with the payment or at their own rate
- Lease special-scheme surcharges and notes
- Reciprocity credit against the tax due at signing
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from auto_tax_engine.common import (
    apply_reciprocity,
    cap_state_tax,
    deal_fees,
    note_confidence,
    rule_set_warnings,
    split_state_local,
    taxable_fees,
)
from auto_tax_engine.exceptions import MissingRequiredField
from auto_tax_engine.interpreters import (
    applicable_state_rate,
    lease_scheme_adjustment,
    product_rule,
    rebate_rule,
    scheme_rate_components,
)
from auto_tax_engine.models import BaseComponent, LeaseBreakdown, TaxInput, TaxLine, TaxResult
from auto_tax_engine.money import ZERO, apply_rate, clamp_zero, effective_rate, format_money, format_rate
from auto_tax_engine.rules import (
    JurisdictionRuleSet,
    LeaseMethod,
    ProductKind,
    RebateKind,
    ThresholdEvaluation,
    VehicleTaxScheme,
    unreachable,
)

logger = logging.getLogger("auto_tax_engine.lease")

_SPECIAL_SCHEMES = (
    VehicleTaxScheme.SPECIAL_TAVT,
    VehicleTaxScheme.SPECIAL_HUT,
    VehicleTaxScheme.SPECIAL_PRIVILEGE,
)


def require_lease_fields(deal: TaxInput) -> None:
    if deal.gross_cap_cost is None:
        raise MissingRequiredField("gross_cap_cost", "lease")
    if deal.base_monthly_payment is None:
        raise MissingRequiredField("base_monthly_payment", "lease")
    if deal.payment_count is None or deal.payment_count < 1:
        raise MissingRequiredField("payment_count", "lease")


def lease_rate_components(
    rule: JurisdictionRuleSet,
    deal: TaxInput,
    net_cap_cost: Decimal,
    notes: list[str],
) -> list[tuple[str, Decimal]]:
    lease = rule.lease
    if lease.rate is not None:
        state_rate = lease.rate
        notes.append(f"Lease rate of {format_rate(lease.rate)} applies")
    else:
        threshold = rule.rate_threshold
        measure = deal.gross_cap_cost
        if threshold is not None and threshold.evaluation is ThresholdEvaluation.POST_TRADE_IN:
            measure = net_cap_cost
        explicit = deal.rates.state if deal.rates is not None else None
        state_rate, crossed = applicable_state_rate(rule, measure, explicit)
        if crossed:
            notes.append(
                f"Cap cost of {format_money(measure)} exceeds "
                f"{format_money(threshold.amount)}; {threshold.label} of "
                f"{format_rate(threshold.rate)} applies"
            )

    if rule.vehicle_tax_scheme in _SPECIAL_SCHEMES:
        return [("STATE", state_rate)]
    return scheme_rate_components(rule, deal.rates, state_rate, notes)


def _taxable_cap_reduction(
    rule: JurisdictionRuleSet,
    deal: TaxInput,
    components: list[BaseComponent],
    notes: list[str],
    warnings: list[str],
) -> Decimal:
    lease = rule.lease
    total = ZERO
    trade = deal.lease_trade_in_reduction

    for label, amount, taxability in (
        ("Cash cap reduction", deal.cap_reduction_cash, lease.cash_reduction_taxable),
        ("Trade-in cap reduction", trade, lease.trade_in_reduction_taxable),
    ):
        if amount <= ZERO:
            continue
        note_confidence(warnings, label, taxability)
        if taxability.taxable:
            components.append(BaseComponent(label, amount))
            total += amount
        else:
            notes.append(f"{label} of {format_money(amount)} not taxed")

    for kind, amount in (
        (RebateKind.MANUFACTURER, deal.manufacturer_rebate),
        (RebateKind.DEALER, deal.dealer_rebate),
    ):
        if amount <= ZERO:
            continue
        taxability = rebate_rule(rule, kind)
        note_confidence(warnings, f"{kind.value.capitalize()} rebate", taxability)
        if taxability.taxable:
            components.append(BaseComponent(f"{kind.value.capitalize()} rebate cap reduction", amount))
            total += amount
    return total


def _taxable_negative_equity(
    rule: JurisdictionRuleSet,
    deal: TaxInput,
    notes: list[str],
    warnings: list[str],
) -> Decimal:
    amount = deal.negative_equity
    if amount <= ZERO:
        return ZERO
    taxability = rule.lease.negative_equity_taxable
    if taxability is None:
        taxability = rule.negative_equity
    note_confidence(warnings, "Negative equity", taxability)
    if taxability.taxable:
        return amount
    notes.append(f"Negative equity of {format_money(amount)} not taxed")
    return ZERO


def _monthly_products(
    rule: JurisdictionRuleSet,
    deal: TaxInput,
    notes: list[str],
    warnings: list[str],
) -> tuple[Decimal, list[tuple[str, Decimal, Decimal]]]:
    """Amortized products: (amount taxed with the payment, [(label, amount, own rate)])."""
    with_payment = ZERO
    fixed: list[tuple[str, Decimal, Decimal]] = []
    for kind, label, amount in (
        (ProductKind.SERVICE_CONTRACT, "SERVICE_CONTRACT", deal.amortized_service_contract_monthly),
        (ProductKind.GAP, "GAP", deal.amortized_gap_monthly),
    ):
        if amount <= ZERO:
            continue
        taxability = product_rule(rule, kind)
        note_confidence(warnings, label.replace("_", " ").capitalize(), taxability)
        if not taxability.taxable:
            notes.append(f"Amortized {kind.value} of {format_money(amount)} per payment excluded")
        elif taxability.fixed_rate is not None:
            fixed.append((label, amount, taxability.fixed_rate))
        else:
            with_payment += amount
    return with_payment, fixed


def calculate_lease_tax(rule: JurisdictionRuleSet, deal: TaxInput, as_of: date) -> TaxResult:
    """Tax over the full lease term, split into signing and per-payment amounts."""
    require_lease_fields(deal)
    lease = rule.lease
    method = lease.method
    count = deal.payment_count
    gross = deal.gross_cap_cost
    notes: list[str] = []
    warnings = rule_set_warnings(rule)
    if lease.note:
        notes.append(lease.note)
    components: list[BaseComponent] = []

    reductions = (
        deal.cap_reduction_cash
        + deal.lease_trade_in_reduction
        + deal.manufacturer_rebate
        + deal.dealer_rebate
    )
    net_cap_cost = clamp_zero(gross - reductions)

    rates = lease_rate_components(rule, deal, net_cap_cost, notes)
    reduction_components: list[BaseComponent] = []
    cap_reduction = _taxable_cap_reduction(rule, deal, reduction_components, notes, warnings)
    fees, _ = taxable_fees(rule, deal_fees(deal), components, notes, warnings)
    monthly_products, fixed_products = _monthly_products(rule, deal, notes, warnings)
    monthly = deal.base_monthly_payment + monthly_products
    per_payment_products = True
    negative_equity = _taxable_negative_equity(rule, deal, notes, warnings)

    if negative_equity > ZERO:
        if method is LeaseMethod.MONTHLY:
            notes.append("Negative equity rolled into the lease is taxed through the payments")
            negative_equity = ZERO
        else:
            components.append(BaseComponent("Negative equity", negative_equity))

    if method is LeaseMethod.MONTHLY:
        if lease.tax_cap_reduction_upfront:
            components.extend(reduction_components)
        upfront = fees + (cap_reduction if lease.tax_cap_reduction_upfront else ZERO)
        payment = monthly
    elif method is LeaseMethod.FULL_UPFRONT:
        components.extend(reduction_components)
        upfront = cap_reduction + negative_equity + fees + monthly * count
        payment = ZERO
        per_payment_products = False
    elif method is LeaseMethod.HYBRID:
        components.extend(reduction_components)
        upfront = cap_reduction + negative_equity + fees
        payment = monthly
    elif method is LeaseMethod.NET_CAP_COST:
        components.append(BaseComponent("Net capitalized cost", net_cap_cost))
        upfront = net_cap_cost + negative_equity + fees
        payment = ZERO
        per_payment_products = False
    elif method is LeaseMethod.REDUCED_BASE:
        reduced = (net_cap_cost + negative_equity) * lease.reduced_base_factor
        components.append(BaseComponent("Reduced capitalized cost", reduced))
        upfront = reduced + fees
        payment = ZERO
        per_payment_products = False
    else:
        unreachable(method)

    upfront_lines = [
        TaxLine(f"UPFRONT_{label}", upfront, rate, apply_rate(upfront, rate))
        for label, rate in rates
        if upfront > ZERO
    ]
    payment_lines = [
        TaxLine(f"PAYMENT_{label}", payment, rate, apply_rate(payment, rate))
        for label, rate in rates
        if payment > ZERO
    ]
    for label, amount, rate in fixed_products:
        if per_payment_products:
            payment_lines.append(TaxLine(f"PAYMENT_{label}", amount, rate, apply_rate(amount, rate)))
        else:
            total = amount * count
            upfront_lines.append(TaxLine(f"UPFRONT_{label}", total, rate, apply_rate(total, rate)))

    adjustment = lease_scheme_adjustment(rule, deal)
    upfront_lines.extend(adjustment.surcharge_lines)
    notes.extend(adjustment.notes)
    upfront_lines = cap_state_tax(rule, upfront_lines, notes)

    up_state, up_local = split_state_local(upfront_lines)
    pay_state, pay_local = split_state_local(payment_lines)
    reciprocity, up_state, up_local = apply_reciprocity(
        rule, deal, up_state, up_local, as_of, notes, warnings
    )

    upfront_tax = up_state + up_local
    payment_tax = pay_state + pay_local
    total_tax = upfront_tax + payment_tax * count
    fixed_total = sum((amount for _, amount, _ in fixed_products), ZERO) * count
    taxable_amount = upfront + payment * count + fixed_total

    breakdown = LeaseBreakdown(
        method=method,
        upfront_taxable=upfront,
        upfront_tax=upfront_tax,
        payment_taxable=payment,
        payment_tax=payment_tax,
        payment_count=count,
        total_tax_over_term=total_tax,
    )
    logger.info(
        "calculated code=%s deal=lease method=%s upfront_tax=%s payment_tax=%s total=%s",
        rule.code,
        method.value,
        upfront_tax,
        payment_tax,
        total_tax,
    )
    return TaxResult(
        jurisdiction=rule.code,
        rule_version=rule.version,
        implemented=rule.implemented,
        deal_type=deal.deal_type,
        scheme=rule.vehicle_tax_scheme,
        taxable_amount=taxable_amount,
        lines=upfront_lines + payment_lines,
        state_tax=up_state + pay_state * count,
        local_tax=up_local + pay_local * count,
        total_tax=total_tax,
        effective_rate=effective_rate(total_tax, taxable_amount),
        base_components=components,
        notes=notes,
        warnings=warnings,
        reciprocity=reciprocity,
        lease=breakdown,
        deal_id=deal.deal_id,
    )
