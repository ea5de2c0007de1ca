"""
Input and result records for vehicle tax calculations.

``TaxInput`` is immutable; calculators never modify it. Results carry the
full audit trail: how the base was built, one line per rate applied, and
every note and warning raised along the way.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from auto_tax_engine.money import ZERO, clamp_zero, to_decimal
from auto_tax_engine.rules import (
    DealType,
    HomeStateBehavior,
    LeaseMethod,
    RateComponents,
    VehicleClass,
    VehicleTaxScheme,
)


@dataclass(frozen=True)
class FeeItem:
    code: str
    amount: Decimal


def _parse_date(value: Any) -> Optional[date]:
    if value in (None, ""):
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def _optional_decimal(data: dict, key: str) -> Optional[Decimal]:
    value = data.get(key)
    if value in (None, ""):
        return None
    return to_decimal(value)


def _parse_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y")
    return bool(value)


@dataclass(frozen=True)
class TaxInput:
    """One deal to be taxed."""

    jurisdiction: str
    deal_type: DealType = DealType.RETAIL
    as_of_date: Optional[date] = None
    deal_id: str = ""

    vehicle_price: Optional[Decimal] = None  # required for retail deals
    trade_in_value: Decimal = ZERO
    trade_in_payoff: Decimal = ZERO
    manufacturer_rebate: Decimal = ZERO
    dealer_rebate: Decimal = ZERO
    doc_fee: Decimal = ZERO
    accessories: Decimal = ZERO
    service_contracts: Decimal = ZERO
    gap: Decimal = ZERO
    other_fees: tuple[FeeItem, ...] = ()

    # Lease fields
    gross_cap_cost: Optional[Decimal] = None
    cap_reduction_cash: Decimal = ZERO
    cap_reduction_trade_in: Optional[Decimal] = None  # defaults to the trade-in equity
    base_monthly_payment: Optional[Decimal] = None
    payment_count: Optional[int] = None
    amortized_service_contract_monthly: Decimal = ZERO
    amortized_gap_monthly: Decimal = ZERO

    # Reciprocity
    home_jurisdiction: Optional[str] = None
    home_tax_paid: Decimal = ZERO
    home_tax_paid_date: Optional[date] = None
    proof_of_tax_paid: bool = False

    rates: Optional[RateComponents] = None
    transaction_date: Optional[date] = None
    vehicle_class: Optional[VehicleClass] = None
    body_type: Optional[str] = None
    assessed_value: Optional[Decimal] = None

    @property
    def negative_equity(self) -> Decimal:
        """Payoff owed beyond the trade-in's value."""
        return clamp_zero(self.trade_in_payoff - self.trade_in_value)

    @property
    def lease_trade_in_reduction(self) -> Decimal:
        if self.cap_reduction_trade_in is not None:
            return self.cap_reduction_trade_in
        return clamp_zero(self.trade_in_value - self.trade_in_payoff)

    @classmethod
    def from_dict(cls, data: dict) -> "TaxInput":
        """
        Build from a plain record (JSON object or CSV row).

        Amounts may be strings or numbers; dates are ISO strings. Other fees
        are a list of ``{"code": ..., "amount": ...}`` objects or a mapping
        of code to amount.
        """
        raw_fees = data.get("other_fees") or ()
        if isinstance(raw_fees, dict):
            raw_fees = [{"code": k, "amount": v} for k, v in raw_fees.items()]
        other_fees = tuple(
            FeeItem(code=str(f["code"]).upper(), amount=to_decimal(f["amount"]))
            for f in raw_fees
        )

        rates = None
        if data.get("rates"):
            r = data["rates"]
            rates = RateComponents(
                state=to_decimal(r["state"]),
                local=to_decimal(r.get("local")),
                special_district=to_decimal(r.get("special_district")),
            )

        count = data.get("payment_count")
        vehicle_class = data.get("vehicle_class")
        home = data.get("home_jurisdiction")
        return cls(
            jurisdiction=str(data["jurisdiction"]).strip().upper(),
            deal_type=DealType(str(data.get("deal_type", "retail")).lower()),
            as_of_date=_parse_date(data.get("as_of_date")),
            deal_id=str(data.get("deal_id", "")),
            vehicle_price=_optional_decimal(data, "vehicle_price"),
            trade_in_value=to_decimal(data.get("trade_in_value")),
            trade_in_payoff=to_decimal(data.get("trade_in_payoff")),
            manufacturer_rebate=to_decimal(data.get("manufacturer_rebate")),
            dealer_rebate=to_decimal(data.get("dealer_rebate")),
            doc_fee=to_decimal(data.get("doc_fee")),
            accessories=to_decimal(data.get("accessories")),
            service_contracts=to_decimal(data.get("service_contracts")),
            gap=to_decimal(data.get("gap")),
            other_fees=other_fees,
            gross_cap_cost=_optional_decimal(data, "gross_cap_cost"),
            cap_reduction_cash=to_decimal(data.get("cap_reduction_cash")),
            cap_reduction_trade_in=_optional_decimal(data, "cap_reduction_trade_in"),
            base_monthly_payment=_optional_decimal(data, "base_monthly_payment"),
            payment_count=int(count) if count not in (None, "") else None,
            amortized_service_contract_monthly=to_decimal(
                data.get("amortized_service_contract_monthly")
            ),
            amortized_gap_monthly=to_decimal(data.get("amortized_gap_monthly")),
            home_jurisdiction=str(home).strip().upper() if home else None,
            home_tax_paid=to_decimal(data.get("home_tax_paid")),
            home_tax_paid_date=_parse_date(data.get("home_tax_paid_date")),
            proof_of_tax_paid=_parse_bool(data.get("proof_of_tax_paid", False)),
            rates=rates,
            transaction_date=_parse_date(data.get("transaction_date")),
            vehicle_class=VehicleClass(str(vehicle_class).lower()) if vehicle_class else None,
            body_type=data.get("body_type") or None,
            assessed_value=_optional_decimal(data, "assessed_value"),
        )


@dataclass(frozen=True)
class BaseComponent:
    """One signed contribution to a taxable base."""

    label: str
    amount: Decimal


@dataclass(frozen=True)
class TaxLine:
    label: str
    taxable_amount: Decimal
    rate: Decimal
    tax: Decimal


@dataclass
class CreditResult:
    """Outcome of a reciprocity credit computation."""

    home_tax_paid: Decimal
    own_tax: Decimal
    credit_applied: Decimal
    remaining_tax: Decimal
    excess_discarded: Decimal
    behavior: HomeStateBehavior
    granted: bool
    notes: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class LeaseBreakdown:
    method: LeaseMethod
    upfront_taxable: Decimal
    upfront_tax: Decimal
    payment_taxable: Decimal
    payment_tax: Decimal
    payment_count: int
    total_tax_over_term: Decimal


@dataclass(frozen=True)
class HutWindow:
    """Collection window for a time-windowed use tax."""

    anchor: date
    closes: date
    as_of: date
    inside: bool


@dataclass
class TaxResult:
    """Result of a tax calculation for a single deal."""

    jurisdiction: str
    rule_version: int
    implemented: bool
    deal_type: DealType
    scheme: VehicleTaxScheme
    taxable_amount: Decimal
    lines: list[TaxLine]
    state_tax: Decimal
    local_tax: Decimal
    total_tax: Decimal
    effective_rate: Decimal
    base_components: list[BaseComponent] = field(default_factory=list)
    trade_in_credit: Decimal = ZERO
    notes: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    reciprocity: Optional[CreditResult] = None
    lease: Optional[LeaseBreakdown] = None
    hut_window: Optional[HutWindow] = None
    deal_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return _plain(self)


@dataclass
class BatchResult:
    """Aggregated result for a batch of deals."""

    results: list[TaxResult]
    errors: list[str]
    total_tax: Decimal
    deal_count: int
    jurisdiction_breakdown: dict[str, Decimal]


def _plain(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: _plain(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {str(_plain(k)): _plain(v) for k, v in value.items()}
    return value
