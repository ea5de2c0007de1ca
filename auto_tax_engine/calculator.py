"""
Vehicle tax calculation engine.

Handles:
- Single and batch deal tax computation
- Effective-dated jurisdiction rule resolution
- Retail sales tax with trade-in credit, rebates, fees and products
- Rate-determining thresholds, including the trade-in rate trap
- Dispatch to special-scheme and lease calculators
- Reciprocity credit for tax paid to another jurisdiction
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Callable, Iterable, Optional

from auto_tax_engine.common import (
    apply_reciprocity,
    cap_state_tax,
    deal_fees,
    note_confidence,
    rule_set_warnings,
    split_state_local,
    taxable_fees,
)
from auto_tax_engine.exceptions import MissingRequiredField, TaxEngineError
from auto_tax_engine.interpreters import (
    applicable_state_rate,
    product_rule,
    rebate_rule,
    scheme_rate_components,
    trade_in_credit,
)
from auto_tax_engine.lease import calculate_lease_tax, require_lease_fields
from auto_tax_engine.models import BaseComponent, BatchResult, TaxInput, TaxLine, TaxResult
from auto_tax_engine.money import ZERO, apply_rate, clamp_zero, effective_rate, format_money, format_rate
from auto_tax_engine.registry import JurisdictionRegistry, default_registry
from auto_tax_engine.rules import (
    DealType,
    JurisdictionRuleSet,
    ProductKind,
    RebateKind,
    ThresholdEvaluation,
    VehicleTaxScheme,
    unreachable,
)
from auto_tax_engine.special_schemes import calculate_hut, calculate_privilege, calculate_tavt

logger = logging.getLogger("auto_tax_engine.calculator")

_PRODUCTS = (
    (ProductKind.SERVICE_CONTRACT, "Service contract", "SERVICE_CONTRACT"),
    (ProductKind.GAP, "GAP", "GAP"),
    (ProductKind.ACCESSORIES, "Accessories", "ACCESSORIES"),
)


def _product_amount(deal: TaxInput, kind: ProductKind) -> Decimal:
    if kind is ProductKind.SERVICE_CONTRACT:
        return deal.service_contracts
    elif kind is ProductKind.GAP:
        return deal.gap
    elif kind is ProductKind.ACCESSORIES:
        return deal.accessories
    else:
        unreachable(kind)


def calculate_retail(rule: JurisdictionRuleSet, deal: TaxInput, as_of: date) -> TaxResult:
    """
    Sales tax on a retail purchase under a STATE_ONLY or STATE_PLUS_LOCAL rule set.

    The vehicle-rate base is price plus taxable fees and products, less
    rebates that are not taxable. A rate threshold is measured on that base
    before or after trade-in credit as the rule set says, and the resulting
    rate applies to the whole post-credit base.
    """
    notes: list[str] = []
    warnings = rule_set_warnings(rule)
    price = deal.vehicle_price or ZERO
    components = [BaseComponent("Vehicle price", price)]
    base = price
    fixed_lines: list[TaxLine] = []

    for kind, label, line_label in _PRODUCTS:
        amount = _product_amount(deal, kind)
        if amount <= ZERO:
            continue
        product = product_rule(rule, kind)
        note_confidence(warnings, label, product)
        if not product.taxable:
            notes.append(f"{label} of {format_money(amount)} not taxed")
        elif product.fixed_rate is not None:
            fixed_lines.append(
                TaxLine(line_label, amount, product.fixed_rate, apply_rate(amount, product.fixed_rate))
            )
        else:
            components.append(BaseComponent(label, amount))
            base += amount

    fee_total, doc_fee = taxable_fees(rule, deal_fees(deal), components, notes, warnings)
    base += fee_total

    for kind, amount in (
        (RebateKind.MANUFACTURER, deal.manufacturer_rebate),
        (RebateKind.DEALER, deal.dealer_rebate),
    ):
        if amount <= ZERO:
            continue
        label = f"{kind.value.capitalize()} rebate"
        rebate = rebate_rule(rule, kind)
        note_confidence(warnings, label, rebate)
        if rebate.taxable:
            notes.append(f"{label} of {format_money(amount)} does not reduce the taxable price")
        else:
            components.append(BaseComponent(label, -amount))
            base -= amount

    pre_trade = clamp_zero(base)
    credit = trade_in_credit(rule, pre_trade, deal.trade_in_value)
    if credit > ZERO:
        components.append(BaseComponent("Trade-in credit", -credit))
    elif deal.trade_in_value > ZERO:
        notes.append(f"No trade-in credit under {rule.trade_in_policy.kind.value} policy")
    post_trade = pre_trade - credit

    # Threshold measure and resulting state rate
    threshold = rule.rate_threshold
    measure = pre_trade
    if threshold is not None and threshold.evaluation is ThresholdEvaluation.POST_TRADE_IN:
        measure = post_trade
    explicit = deal.rates.state if deal.rates is not None else None
    state_rate, crossed = applicable_state_rate(rule, measure, explicit)

    if crossed:
        notes.append(
            f"Base of {format_money(measure)} exceeds {format_money(threshold.amount)}; "
            f"{threshold.label} of {format_rate(threshold.rate)} applies"
        )
        logger.debug("threshold_crossed code=%s measure=%s", rule.code, measure)
        if (
            threshold.evaluation is ThresholdEvaluation.PRE_TRADE_IN
            and post_trade <= threshold.amount
        ):
            warnings.append(
                f"Rate trap: price before trade-in of {format_money(pre_trade)} exceeds "
                f"{format_money(threshold.amount)}, so {format_rate(threshold.rate)} applies "
                f"to the post-credit base of {format_money(post_trade)}"
            )
        if doc_fee > ZERO and measure - doc_fee <= threshold.amount:
            warnings.append(
                f"Threshold crossed due to documentation fee of {format_money(doc_fee)}"
            )

    taxable = post_trade
    negative_equity = deal.negative_equity
    if negative_equity > ZERO:
        note_confidence(warnings, "Negative equity", rule.negative_equity)
        if rule.negative_equity.taxable:
            components.append(BaseComponent("Negative equity", negative_equity))
            taxable += negative_equity
        else:
            notes.append(f"Negative equity of {format_money(negative_equity)} not taxed")

    lines = [
        TaxLine(label, taxable, rate, apply_rate(taxable, rate))
        for label, rate in scheme_rate_components(rule, deal.rates, state_rate, notes)
    ]
    lines.extend(fixed_lines)
    lines = cap_state_tax(rule, lines, notes)

    state_tax, local_tax = split_state_local(lines)
    reciprocity, state_tax, local_tax = apply_reciprocity(
        rule, deal, state_tax, local_tax, as_of, notes, warnings
    )
    total = state_tax + local_tax
    taxable_amount = taxable + sum((line.taxable_amount for line in fixed_lines), ZERO)

    logger.info(
        "calculated code=%s version=%d deal=retail base=%s tax=%s",
        rule.code,
        rule.version,
        taxable_amount,
        total,
    )
    return TaxResult(
        jurisdiction=rule.code,
        rule_version=rule.version,
        implemented=rule.implemented,
        deal_type=deal.deal_type,
        scheme=rule.vehicle_tax_scheme,
        taxable_amount=taxable_amount,
        lines=lines,
        state_tax=state_tax,
        local_tax=local_tax,
        total_tax=total,
        effective_rate=effective_rate(total, taxable_amount),
        base_components=components,
        trade_in_credit=credit,
        notes=notes,
        warnings=warnings,
        reciprocity=reciprocity,
        deal_id=deal.deal_id,
    )


def validate_input(deal: TaxInput) -> None:
    """Reject a deal missing what its type needs, before any computation."""
    if not deal.jurisdiction or not deal.jurisdiction.strip():
        raise MissingRequiredField("jurisdiction", deal.deal_type.value)
    if deal.deal_type is DealType.LEASE:
        require_lease_fields(deal)
    elif deal.deal_type is DealType.RETAIL:
        if deal.vehicle_price is None:
            raise MissingRequiredField("vehicle_price", deal.deal_type.value)
    else:
        unreachable(deal.deal_type)


class TaxCalculator:
    """
    Vehicle tax calculation engine.

    Resolves the rule set in force for a deal and routes it to the retail,
    special-scheme or lease calculator.
    """

    def __init__(
        self,
        registry: Optional[JurisdictionRegistry] = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.registry = registry or default_registry()
        self.today = today

    def calculate(self, deal: TaxInput) -> TaxResult:
        """Calculate tax for one deal; ``as_of_date`` defaults to today."""
        validate_input(deal)
        as_of = deal.as_of_date or self.today()
        rule = self.registry.resolve(deal.jurisdiction, as_of)
        return self.calculate_with_rules(deal, rule, as_of)

    def calculate_with_rules(
        self,
        deal: TaxInput,
        rule: JurisdictionRuleSet,
        as_of: Optional[date] = None,
    ) -> TaxResult:
        """Calculate against an explicit rule set, skipping registry lookup."""
        validate_input(deal)
        as_of = as_of or deal.as_of_date or self.today()

        if deal.deal_type is DealType.LEASE:
            return calculate_lease_tax(rule, deal, as_of)

        scheme = rule.vehicle_tax_scheme
        if scheme is VehicleTaxScheme.STATE_ONLY or scheme is VehicleTaxScheme.STATE_PLUS_LOCAL:
            return calculate_retail(rule, deal, as_of)
        elif scheme is VehicleTaxScheme.SPECIAL_TAVT:
            return calculate_tavt(rule, deal, as_of)
        elif scheme is VehicleTaxScheme.SPECIAL_HUT:
            return calculate_hut(rule, deal, as_of)
        elif scheme is VehicleTaxScheme.SPECIAL_PRIVILEGE:
            return calculate_privilege(rule, deal, as_of)
        else:
            unreachable(scheme)

    def calculate_batch(self, deals: Iterable[TaxInput]) -> BatchResult:
        """
        Calculate tax for a batch of deals.

        A deal that fails validation is reported in ``errors`` and
        contributes nothing to the totals.
        """
        results: list[TaxResult] = []
        errors: list[str] = []
        total_tax = ZERO
        breakdown: dict[str, Decimal] = {}
        count = 0

        for index, deal in enumerate(deals, start=1):
            count += 1
            try:
                result = self.calculate(deal)
            except TaxEngineError as e:
                label = deal.deal_id or f"#{index}"
                logger.warning("batch_deal_failed deal=%s code=%s", label, e.code)
                errors.append(f"Deal {label}: {e.message}")
                continue
            results.append(result)
            total_tax += result.total_tax
            breakdown[result.jurisdiction] = (
                breakdown.get(result.jurisdiction, ZERO) + result.total_tax
            )

        return BatchResult(
            results=results,
            errors=errors,
            total_tax=total_tax,
            deal_count=count,
            jurisdiction_breakdown=breakdown,
        )
