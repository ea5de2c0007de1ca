"""
Reciprocity credit for tax already paid to another jurisdiction.

The credit only offsets tax owed here. Any home tax beyond the credit is
reported as discarded: it is not refunded and does not carry forward.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from auto_tax_engine.models import CreditResult
from auto_tax_engine.money import ZERO, clamp_zero, format_money
from auto_tax_engine.rules import (
    ANY_ORIGIN,
    DealType,
    HomeStateBehavior,
    ReciprocityConfig,
    ReciprocityOverride,
    ReciprocityScope,
    unreachable,
)

logger = logging.getLogger("auto_tax_engine.reciprocity")

__all__ = ["CreditResult", "compute_credit", "find_override", "scope_allows"]


def scope_allows(scope: ReciprocityScope, deal_type: DealType) -> bool:
    if scope is ReciprocityScope.BOTH:
        return True
    elif scope is ReciprocityScope.RETAIL_ONLY:
        return deal_type is DealType.RETAIL
    elif scope is ReciprocityScope.LEASE_ONLY:
        return deal_type is DealType.LEASE
    else:
        unreachable(scope)


def find_override(config: ReciprocityConfig, origin: Optional[str]) -> Optional[ReciprocityOverride]:
    """Exact origin match first, then the wildcard entry."""
    if origin:
        for override in config.overrides:
            if override.origin.upper() == origin.upper():
                return override
    for override in config.overrides:
        if override.origin == ANY_ORIGIN:
            return override
    return None


def _denied(
    home: Decimal,
    own: Decimal,
    behavior: HomeStateBehavior,
    notes: list[str],
    warnings: list[str],
) -> CreditResult:
    return CreditResult(
        home_tax_paid=home,
        own_tax=own,
        credit_applied=ZERO,
        remaining_tax=clamp_zero(own),
        excess_discarded=ZERO,
        behavior=behavior,
        granted=False,
        notes=notes,
        warnings=warnings,
    )


def compute_credit(
    config: ReciprocityConfig,
    home_tax_paid: Decimal,
    own_tax: Decimal,
    own_state_tax: Decimal,
    deal_type: DealType,
    proof_provided: bool,
    origin: Optional[str] = None,
    tax_paid_date: Optional[date] = None,
    as_of: Optional[date] = None,
) -> CreditResult:
    """
    Credit for ``home_tax_paid`` against ``own_tax``.

    ``own_state_tax`` is the state-rate portion of ``own_tax``; it caps the
    credit under CREDIT_UP_TO_STATE_RATE. Missing proof and stale payments
    deny the credit with a warning rather than failing.
    """
    home = clamp_zero(home_tax_paid)
    own = clamp_zero(own_tax)
    behavior = config.home_state_behavior
    notes: list[str] = []
    warnings: list[str] = []

    if not config.enabled:
        notes.append("Reciprocity not offered; no credit for tax paid elsewhere")
        return _denied(home, own, behavior, notes, warnings)
    if home <= ZERO:
        notes.append("No tax paid to another jurisdiction")
        return _denied(home, own, behavior, notes, warnings)
    if not scope_allows(config.scope, deal_type):
        notes.append(f"Reciprocity does not cover {deal_type.value} deals")
        return _denied(home, own, behavior, notes, warnings)

    override = find_override(config, origin)
    if override is not None:
        if override.note:
            notes.append(override.note)
        if override.disallow_credit:
            notes.append(f"No credit allowed for tax paid to {origin or 'that jurisdiction'}")
            return _denied(home, own, behavior, notes, warnings)
        if override.max_age_days is not None and tax_paid_date is not None and as_of is not None:
            if as_of - tax_paid_date > timedelta(days=override.max_age_days):
                warnings.append(
                    f"Tax paid on {tax_paid_date.isoformat()} is older than "
                    f"{override.max_age_days} days; credit denied"
                )
                return _denied(home, own, behavior, notes, warnings)
        if override.behavior is not None:
            behavior = override.behavior

    if config.proof_required and not proof_provided:
        warnings.append(
            f"Proof of {format_money(home)} tax paid elsewhere is required; credit not applied"
        )
        return _denied(home, own, behavior, notes, warnings)

    if behavior is HomeStateBehavior.NONE:
        notes.append("No credit for tax paid elsewhere")
        return _denied(home, own, behavior, notes, warnings)
    elif behavior is HomeStateBehavior.CREDIT_UP_TO_STATE_RATE:
        credit = min(home, own, clamp_zero(own_state_tax))
    elif behavior is HomeStateBehavior.CREDIT_FULL:
        credit = min(home, own) if config.cap_at_own_tax else home
    elif behavior is HomeStateBehavior.HOME_STATE_ONLY:
        credit = min(home, own)
    else:
        unreachable(behavior)

    applied = min(credit, own)
    excess = clamp_zero(home - applied)
    notes.append(f"Credit of {format_money(applied)} for tax paid elsewhere")
    if excess > ZERO:
        notes.append(
            f"Excess of {format_money(excess)} paid elsewhere is not refunded or carried forward"
        )
    logger.debug(
        "reciprocity_credit behavior=%s home=%s own=%s credit=%s",
        behavior.value,
        home,
        own,
        applied,
    )
    return CreditResult(
        home_tax_paid=home,
        own_tax=own,
        credit_applied=applied,
        remaining_tax=clamp_zero(own - applied),
        excess_discarded=excess,
        behavior=behavior,
        granted=True,
        notes=notes,
        warnings=warnings,
    )
