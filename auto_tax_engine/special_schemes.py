"""
Calculators for jurisdictions that tax vehicles outside the sales tax.

Handles:
- One-time title tax on fair market value (TAVT)
- Time-windowed highway use tax (HUT) with its collection window
- Titling privilege tax with progressive brackets by vehicle class
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal

from auto_tax_engine.common import (
    apply_reciprocity,
    deal_fees,
    note_confidence,
    rule_set_warnings,
    taxable_fees,
)
from auto_tax_engine.exceptions import MissingClassification
from auto_tax_engine.interpreters import product_rule, trade_in_credit
from auto_tax_engine.models import BaseComponent, HutWindow, TaxInput, TaxLine, TaxResult
from auto_tax_engine.money import ZERO, apply_rate, clamp_zero, effective_rate, format_money
from auto_tax_engine.rules import (
    HutConfig,
    JurisdictionRuleSet,
    PrivilegeBracket,
    ProductKind,
    VehicleClass,
)

logger = logging.getLogger("auto_tax_engine.special_schemes")


def _valuation(
    deal: TaxInput,
    use_higher_of: bool,
    components: list[BaseComponent],
    notes: list[str],
) -> Decimal:
    price = deal.vehicle_price or ZERO
    assessed = deal.assessed_value
    if use_higher_of and assessed is not None and assessed > price:
        notes.append(
            f"Assessed value {format_money(assessed)} exceeds price "
            f"{format_money(price)}; assessed value used"
        )
        components.append(BaseComponent("Assessed value", assessed))
        return assessed
    components.append(BaseComponent("Vehicle price", price))
    return price


def _finish(
    rule: JurisdictionRuleSet,
    deal: TaxInput,
    as_of: date,
    base: Decimal,
    lines: list[TaxLine],
    components: list[BaseComponent],
    credit: Decimal,
    notes: list[str],
    warnings: list[str],
    hut_window: HutWindow | None = None,
) -> TaxResult:
    state_tax = sum((line.tax for line in lines), ZERO)
    reciprocity, state_tax, local_tax = apply_reciprocity(
        rule, deal, state_tax, ZERO, as_of, notes, warnings
    )
    total = state_tax + local_tax
    logger.info(
        "calculated code=%s scheme=%s base=%s tax=%s",
        rule.code,
        rule.vehicle_tax_scheme.value,
        base,
        total,
    )
    return TaxResult(
        jurisdiction=rule.code,
        rule_version=rule.version,
        implemented=rule.implemented,
        deal_type=deal.deal_type,
        scheme=rule.vehicle_tax_scheme,
        taxable_amount=base,
        lines=lines,
        state_tax=state_tax,
        local_tax=local_tax,
        total_tax=total,
        effective_rate=effective_rate(total, base),
        base_components=components,
        trade_in_credit=credit,
        notes=notes,
        warnings=warnings,
        reciprocity=reciprocity,
        hut_window=hut_window,
        deal_id=deal.deal_id,
    )


# ── Title ad valorem tax ────────────────────────────────────────────────


def calculate_tavt(rule: JurisdictionRuleSet, deal: TaxInput, as_of: date) -> TaxResult:
    """
    One-time title tax on the vehicle's value.

    Fees, service contracts, GAP and accessories are not part of the base.
    """
    cfg = rule.tavt
    if cfg is None:
        raise ValueError(f"{rule.code} has no TAVT configuration")
    notes: list[str] = []
    warnings = rule_set_warnings(rule)
    components: list[BaseComponent] = []

    base = _valuation(deal, cfg.use_higher_of_price_or_assessed, components, notes)
    if deal.manufacturer_rebate > ZERO and not cfg.manufacturer_rebate_taxable:
        components.append(BaseComponent("Manufacturer rebate", -deal.manufacturer_rebate))
        base -= deal.manufacturer_rebate
    if deal.dealer_rebate > ZERO and not cfg.dealer_rebate_taxable:
        components.append(BaseComponent("Dealer rebate", -deal.dealer_rebate))
        base -= deal.dealer_rebate
    base = clamp_zero(base)

    credit = ZERO
    if cfg.allow_trade_in_credit:
        credit = trade_in_credit(rule, base, deal.trade_in_value)
        if credit > ZERO:
            components.append(BaseComponent("Trade-in credit", -credit))
            base -= credit

    negative_equity = deal.negative_equity
    if negative_equity > ZERO:
        if cfg.apply_negative_equity:
            components.append(BaseComponent("Negative equity", negative_equity))
            base += negative_equity
        else:
            notes.append(f"Negative equity of {format_money(negative_equity)} not subject to TAVT")

    if deal_fees(deal) or deal.service_contracts or deal.gap or deal.accessories:
        notes.append("Fees, service contracts, GAP and accessories are not subject to TAVT")

    lines = [TaxLine("TAVT", base, cfg.rate, apply_rate(base, cfg.rate))]
    return _finish(rule, deal, as_of, base, lines, components, credit, notes, warnings)


# ── Highway use tax ─────────────────────────────────────────────────────


def hut_window(cfg: HutConfig, deal: TaxInput, as_of: date, notes: list[str]) -> HutWindow:
    """Collection window opening at the transaction date."""
    anchor = deal.transaction_date
    if anchor is None:
        anchor = as_of
        notes.append("No transaction date; collection window anchored to the calculation date")
    closes = anchor + timedelta(days=cfg.window_days)
    return HutWindow(anchor=anchor, closes=closes, as_of=as_of, inside=anchor <= as_of <= closes)


def calculate_hut(rule: JurisdictionRuleSet, deal: TaxInput, as_of: date) -> TaxResult:
    """
    Highway use tax at a flat rate.

    Manufacturer rebates reduce the base; dealer rebates do not. Doc fee,
    service contracts, GAP and negative equity are all part of the base.
    """
    cfg = rule.hut
    if cfg is None:
        raise ValueError(f"{rule.code} has no HUT configuration")
    notes: list[str] = []
    warnings = rule_set_warnings(rule)
    price = deal.vehicle_price or ZERO
    components = [BaseComponent("Vehicle price", price)]
    base = price

    if deal.manufacturer_rebate > ZERO:
        components.append(BaseComponent("Manufacturer rebate", -deal.manufacturer_rebate))
        base -= deal.manufacturer_rebate
    if deal.dealer_rebate > ZERO:
        notes.append(
            f"Dealer rebate of {format_money(deal.dealer_rebate)} does not reduce the base"
        )

    fee_total, _ = taxable_fees(rule, deal_fees(deal), components, notes, warnings)
    base += fee_total

    for label, amount in (
        ("Service contract", deal.service_contracts),
        ("GAP", deal.gap),
    ):
        if amount > ZERO:
            components.append(BaseComponent(label, amount))
            base += amount
    if deal.accessories > ZERO:
        accessories = product_rule(rule, ProductKind.ACCESSORIES)
        note_confidence(warnings, "Accessories", accessories)
        if accessories.taxable:
            components.append(BaseComponent("Accessories", deal.accessories))
            base += deal.accessories

    credit = ZERO
    if cfg.include_trade_in_reduction:
        credit = trade_in_credit(rule, base, deal.trade_in_value)
        if credit > ZERO:
            components.append(BaseComponent("Trade-in credit", -credit))
            base -= credit

    negative_equity = deal.negative_equity
    if negative_equity > ZERO and rule.negative_equity.taxable:
        components.append(BaseComponent("Negative equity", negative_equity))
        base += negative_equity
    base = clamp_zero(base)

    window = hut_window(cfg, deal, as_of, notes)
    if not window.inside:
        warnings.append(
            f"Calculation date {as_of.isoformat()} is outside the {cfg.window_days}-day "
            f"window from {window.anchor.isoformat()} (closed {window.closes.isoformat()})"
        )

    lines = [TaxLine("HUT", base, cfg.rate, apply_rate(base, cfg.rate))]
    return _finish(
        rule, deal, as_of, base, lines, components, credit, notes, warnings, hut_window=window
    )


# ── Privilege tax ───────────────────────────────────────────────────────


def resolve_vehicle_class(rule: JurisdictionRuleSet, deal: TaxInput) -> VehicleClass:
    cfg = rule.privilege
    if cfg is None:
        raise ValueError(f"{rule.code} has no privilege tax configuration")
    if deal.vehicle_class is not None:
        vehicle_class = deal.vehicle_class
    elif deal.body_type:
        mapped = cfg.classify_body_type(deal.body_type)
        if mapped is None:
            raise MissingClassification(
                rule.code, f"body type '{deal.body_type}' does not map to a vehicle class"
            )
        vehicle_class = mapped
    else:
        raise MissingClassification(rule.code, "vehicle_class or body_type is required")

    if vehicle_class not in cfg.class_schedules:
        raise MissingClassification(
            rule.code, f"no privilege tax schedule for class '{vehicle_class.value}'"
        )
    return vehicle_class


def bracket_lines(
    vehicle_class: VehicleClass, brackets: tuple[PrivilegeBracket, ...], base: Decimal
) -> list[TaxLine]:
    """Marginal tax: each bracket's rate applies to the slice of base it covers."""
    lines = []
    for i, bracket in enumerate(brackets):
        upper = brackets[i + 1].floor if i + 1 < len(brackets) else None
        top = base if upper is None else min(base, upper)
        portion = clamp_zero(top - bracket.floor)
        if portion <= ZERO and i > 0:
            break
        label = f"PRIVILEGE_{vehicle_class.name}"
        if len(brackets) > 1:
            label = f"{label}_{i + 1}"
        lines.append(TaxLine(label, portion, bracket.rate, apply_rate(portion, bracket.rate)))
    return lines


def calculate_privilege(rule: JurisdictionRuleSet, deal: TaxInput, as_of: date) -> TaxResult:
    cfg = rule.privilege
    vehicle_class = resolve_vehicle_class(rule, deal)
    notes: list[str] = [f"Vehicle class: {vehicle_class.value}"]
    warnings = rule_set_warnings(rule)
    components: list[BaseComponent] = []

    base = _valuation(deal, cfg.use_higher_of_price_or_assessed, components, notes)

    fee_total, _ = taxable_fees(rule, deal_fees(deal), components, notes, warnings)
    base += fee_total
    for kind, label, amount in (
        (ProductKind.SERVICE_CONTRACT, "Service contract", deal.service_contracts),
        (ProductKind.GAP, "GAP", deal.gap),
        (ProductKind.ACCESSORIES, "Accessories", deal.accessories),
    ):
        if amount <= ZERO:
            continue
        product = product_rule(rule, kind)
        note_confidence(warnings, label, product)
        if product.taxable:
            components.append(BaseComponent(label, amount))
            base += amount
    base = clamp_zero(base)

    credit = ZERO
    if cfg.allow_trade_in_credit:
        credit = trade_in_credit(rule, base, deal.trade_in_value)
        if credit > ZERO:
            components.append(BaseComponent("Trade-in credit", -credit))
            base -= credit

    negative_equity = deal.negative_equity
    if negative_equity > ZERO and cfg.apply_negative_equity:
        components.append(BaseComponent("Negative equity", negative_equity))
        base += negative_equity

    lines = bracket_lines(vehicle_class, cfg.class_schedules[vehicle_class], base)
    return _finish(rule, deal, as_of, base, lines, components, credit, notes, warnings)
