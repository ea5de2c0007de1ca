"""Steps shared by the retail, special-scheme and lease calculators."""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from auto_tax_engine.interpreters import confidence_warning, fee_rule
from auto_tax_engine.models import BaseComponent, CreditResult, FeeItem, TaxInput, TaxLine
from auto_tax_engine.money import ZERO, format_money
from auto_tax_engine.reciprocity import compute_credit
from auto_tax_engine.rules import DOC_FEE, Confidence, JurisdictionRuleSet, Taxability

LOCAL_LABELS = frozenset({"LOCAL", "SPECIAL_DISTRICT"})


def is_local_line(label: str) -> bool:
    """Local lines are LOCAL and SPECIAL_DISTRICT, with or without a phase prefix."""
    return label in LOCAL_LABELS or label.endswith(("_LOCAL", "_SPECIAL_DISTRICT"))


def rule_set_warnings(rule: JurisdictionRuleSet) -> list[str]:
    if rule.implemented:
        return []
    return [
        f"{rule.code} rules are not researched; conservative defaults applied "
        "(full trade-in credit, all rebates taxable, state rate only)"
    ]


def note_confidence(warnings: list[str], label: str, taxability: Taxability) -> None:
    message = confidence_warning(label, taxability)
    if message and message not in warnings:
        warnings.append(message)


def deal_fees(deal: TaxInput) -> list[FeeItem]:
    """The doc fee and every other fee on the deal, in order."""
    fees = []
    if deal.doc_fee > ZERO:
        fees.append(FeeItem(DOC_FEE, deal.doc_fee))
    fees.extend(f for f in deal.other_fees if f.amount > ZERO)
    return fees


def taxable_fees(
    rule: JurisdictionRuleSet,
    fees: Iterable[FeeItem],
    components: list[BaseComponent],
    notes: list[str],
    warnings: list[str],
) -> tuple[Decimal, Decimal]:
    """
    Classify fees against the rule set.

    Returns ``(taxable_total, taxable_doc_fee)``; taxable fees are added to
    ``components``, excluded ones noted.
    """
    total = ZERO
    doc_fee = ZERO
    for fee in fees:
        classification = fee_rule(rule, fee.code)
        note_confidence(warnings, f"Fee {fee.code}", classification)
        if classification.taxable:
            components.append(BaseComponent(f"Fee {fee.code}", fee.amount))
            total += fee.amount
            if fee.code == DOC_FEE:
                doc_fee += fee.amount
        else:
            notes.append(f"Fee {fee.code} of {format_money(fee.amount)} not taxed")
    return total, doc_fee


def split_state_local(lines: Iterable[TaxLine]) -> tuple[Decimal, Decimal]:
    state = ZERO
    local = ZERO
    for line in lines:
        if is_local_line(line.label):
            local += line.tax
        else:
            state += line.tax
    return state, local


def apply_reciprocity(
    rule: JurisdictionRuleSet,
    deal: TaxInput,
    state_tax: Decimal,
    local_tax: Decimal,
    as_of: date,
    notes: list[str],
    warnings: list[str],
) -> tuple[Optional[CreditResult], Decimal, Decimal]:
    """
    Offset tax paid elsewhere against this tax, state portion first.

    Returns the credit result (None when no home tax was claimed or the
    buyer is not from another jurisdiction) and the reduced state and local
    tax.
    """
    if deal.home_tax_paid <= ZERO:
        return None, state_tax, local_tax
    home = (deal.home_jurisdiction or "").strip().upper()
    if not home:
        notes.append("No home jurisdiction given; tax paid elsewhere not credited")
        return None, state_tax, local_tax
    if home == rule.code:
        notes.append(f"Buyer's home jurisdiction is {rule.code}; no reciprocity credit")
        return None, state_tax, local_tax

    credit = compute_credit(
        rule.reciprocity,
        home_tax_paid=deal.home_tax_paid,
        own_tax=state_tax + local_tax,
        own_state_tax=state_tax,
        deal_type=deal.deal_type,
        proof_provided=deal.proof_of_tax_paid,
        origin=deal.home_jurisdiction,
        tax_paid_date=deal.home_tax_paid_date,
        as_of=as_of,
    )
    notes.extend(credit.notes)
    warnings.extend(credit.warnings)
    if rule.reciprocity.confidence is Confidence.CONSERVATIVE_DEFAULT:
        warnings.append(f"{rule.code} reciprocity treatment is a conservative default")

    from_state = min(credit.credit_applied, state_tax)
    from_local = credit.credit_applied - from_state
    return credit, state_tax - from_state, local_tax - from_local


def cap_state_tax(
    rule: JurisdictionRuleSet,
    lines: list[TaxLine],
    notes: list[str],
) -> list[TaxLine]:
    """Hold the state lines to the rule set's ``max_tax``, earliest lines first."""
    if rule.max_tax is None:
        return lines
    state, _ = split_state_local(lines)
    if state <= rule.max_tax:
        return lines
    notes.append(f"State tax of {format_money(state)} capped at {format_money(rule.max_tax)}")
    remaining = rule.max_tax
    capped = []
    for line in lines:
        if is_local_line(line.label):
            capped.append(line)
            continue
        tax = min(line.tax, remaining)
        remaining -= tax
        capped.append(replace(line, tax=tax))
    return capped
