"""
Declarative jurisdiction rule model.

A ``JurisdictionRuleSet`` is pure data: which trade-in policy applies, which
rebates, fees and products are taxable, how leases are taxed, how
reciprocity credit works. All computation over this data lives in
``interpreters`` and the calculators, so adding a jurisdiction means adding
a record, never a code path.

Fields whose source material offers no official guidance are tagged
``Confidence.CONSERVATIVE_DEFAULT`` so they can be surfaced for review.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Mapping, NoReturn, Optional

from auto_tax_engine.exceptions import InvalidRuleSet
from auto_tax_engine.money import ZERO


def unreachable(value: NoReturn) -> NoReturn:
    """Exhaustiveness guard for enum dispatch; a type checker flags any caller
    whose ``if/elif`` chain leaves a member unhandled."""
    raise AssertionError(f"Unhandled policy variant: {value!r}")


class DealType(Enum):
    RETAIL = "retail"
    LEASE = "lease"


class TradeInPolicyType(Enum):
    NONE = "none"
    FULL = "full"
    CAPPED = "capped"
    PERCENT = "percent"


class ThresholdEvaluation(Enum):
    PRE_TRADE_IN = "pre_trade_in"
    POST_TRADE_IN = "post_trade_in"


class VehicleTaxScheme(Enum):
    STATE_ONLY = "state_only"
    STATE_PLUS_LOCAL = "state_plus_local"
    SPECIAL_TAVT = "special_tavt"  # one-time title tax
    SPECIAL_HUT = "special_hut"  # time-windowed use tax
    SPECIAL_PRIVILEGE = "special_privilege"  # vehicle-class progressive tax


class RebateKind(Enum):
    MANUFACTURER = "manufacturer"
    DEALER = "dealer"


class ProductKind(Enum):
    SERVICE_CONTRACT = "service_contract"
    GAP = "gap"
    ACCESSORIES = "accessories"


class LeaseMethod(Enum):
    MONTHLY = "monthly"
    FULL_UPFRONT = "full_upfront"
    HYBRID = "hybrid"
    NET_CAP_COST = "net_cap_cost"
    REDUCED_BASE = "reduced_base"


class LeaseSpecialScheme(Enum):
    NONE = "none"
    NY_MTR = "ny_mtr"
    NJ_LUXURY = "nj_luxury"
    PA_LEASE_TAX = "pa_lease_tax"
    IL_CHICAGO_COOK = "il_chicago_cook"
    TX_LEASE_SPECIAL = "tx_lease_special"
    VA_USAGE = "va_usage"
    MD_UPFRONT_GAIN = "md_upfront_gain"
    CO_HOME_RULE_LEASE = "co_home_rule_lease"


class ReciprocityScope(Enum):
    RETAIL_ONLY = "retail_only"
    LEASE_ONLY = "lease_only"
    BOTH = "both"


class HomeStateBehavior(Enum):
    NONE = "none"
    CREDIT_UP_TO_STATE_RATE = "credit_up_to_state_rate"
    CREDIT_FULL = "credit_full"
    HOME_STATE_ONLY = "home_state_only"


class Confidence(Enum):
    AUTHORITATIVE = "authoritative"
    CONSERVATIVE_DEFAULT = "conservative_default"


class VehicleClass(Enum):
    AUTO = "auto"
    TRUCK = "truck"
    RV = "rv"
    TRAILER = "trailer"
    MOTORCYCLE = "motorcycle"


# Fee codes used by the catalog. Other codes may appear on a deal; they are
# classified by the rule set's ``fees`` mapping like any other.
DOC_FEE = "DOC_FEE"
TITLE_FEE = "TITLE"
REGISTRATION_FEE = "REG"
ACQUISITION_FEE = "ACQUISITION_FEE"
PLATE_FEE = "PLATE"

# Matches every origin jurisdiction in a reciprocity override.
ANY_ORIGIN = "*"


@dataclass(frozen=True)
class Taxability:
    """One classified rule field: taxable or not, and how sure we are."""

    taxable: bool
    confidence: Confidence = Confidence.AUTHORITATIVE
    note: str = ""
    fixed_rate: Optional[Decimal] = None  # taxed at its own rate, not the vehicle's

    @property
    def is_conservative(self) -> bool:
        return self.confidence is Confidence.CONSERVATIVE_DEFAULT


def taxable(note: str = "", fixed_rate: Optional[Decimal] = None) -> Taxability:
    return Taxability(True, Confidence.AUTHORITATIVE, note, fixed_rate)


def exempt(note: str = "") -> Taxability:
    return Taxability(False, Confidence.AUTHORITATIVE, note)


def assumed(is_taxable: bool, note: str = "") -> Taxability:
    """A best-guess classification with no official guidance behind it."""
    return Taxability(is_taxable, Confidence.CONSERVATIVE_DEFAULT, note)


@dataclass(frozen=True)
class TradeInPolicy:
    kind: TradeInPolicyType
    cap: Optional[Decimal] = None
    percent: Optional[Decimal] = None

    @classmethod
    def none(cls) -> "TradeInPolicy":
        return cls(TradeInPolicyType.NONE)

    @classmethod
    def full(cls) -> "TradeInPolicy":
        return cls(TradeInPolicyType.FULL)

    @classmethod
    def capped(cls, cap: Decimal) -> "TradeInPolicy":
        return cls(TradeInPolicyType.CAPPED, cap=cap)

    @classmethod
    def percent_of(cls, percent: Decimal) -> "TradeInPolicy":
        return cls(TradeInPolicyType.PERCENT, percent=percent)


@dataclass(frozen=True)
class RateThreshold:
    """
    Rate-determining threshold.

    When the measured base is strictly above ``amount``, ``rate`` replaces
    the state rate on the whole base (not just the excess). ``evaluation``
    fixes whether the measure is taken before or after trade-in credit.
    """

    amount: Decimal
    rate: Decimal
    evaluation: ThresholdEvaluation = ThresholdEvaluation.PRE_TRADE_IN
    label: str = "threshold rate"


@dataclass(frozen=True)
class RateComponents:
    """Explicit jurisdiction rates supplied by the caller."""

    state: Decimal
    local: Decimal = ZERO
    special_district: Decimal = ZERO


@dataclass(frozen=True)
class LeaseRules:
    method: LeaseMethod = LeaseMethod.MONTHLY
    special_scheme: LeaseSpecialScheme = LeaseSpecialScheme.NONE
    cash_reduction_taxable: Taxability = field(
        default_factory=lambda: assumed(True, "Cash cap reduction assumed taxable")
    )
    trade_in_reduction_taxable: Taxability = field(
        default_factory=lambda: assumed(False, "Trade-in cap reduction assumed not taxed")
    )
    negative_equity_taxable: Optional[Taxability] = None  # None follows the retail rule
    # MONTHLY only: tax the taxable cap reduction at signing as well.
    tax_cap_reduction_upfront: bool = False
    rate: Optional[Decimal] = None  # replaces the state rate for leases
    reduced_base_factor: Optional[Decimal] = None  # REDUCED_BASE only
    note: str = ""


@dataclass(frozen=True)
class ReciprocityOverride:
    """Pairwise exception for one origin jurisdiction (or ``ANY_ORIGIN``)."""

    origin: str
    disallow_credit: bool = False
    max_age_days: Optional[int] = None
    behavior: Optional[HomeStateBehavior] = None
    note: str = ""


@dataclass(frozen=True)
class ReciprocityConfig:
    enabled: bool = True
    scope: ReciprocityScope = ReciprocityScope.BOTH
    home_state_behavior: HomeStateBehavior = HomeStateBehavior.CREDIT_UP_TO_STATE_RATE
    proof_required: bool = True
    cap_at_own_tax: bool = True
    overrides: tuple[ReciprocityOverride, ...] = ()
    confidence: Confidence = Confidence.AUTHORITATIVE
    note: str = ""


@dataclass(frozen=True)
class TavtConfig:
    rate: Decimal
    allow_trade_in_credit: bool = True
    manufacturer_rebate_taxable: bool = True
    dealer_rebate_taxable: bool = True
    apply_negative_equity: bool = True
    use_higher_of_price_or_assessed: bool = True


@dataclass(frozen=True)
class HutConfig:
    rate: Decimal
    window_days: int = 90
    include_trade_in_reduction: bool = True


@dataclass(frozen=True)
class PrivilegeBracket:
    """Marginal bracket: ``rate`` applies to the portion of the base above ``floor``."""

    floor: Decimal
    rate: Decimal


@dataclass(frozen=True)
class PrivilegeConfig:
    class_schedules: Mapping[VehicleClass, tuple[PrivilegeBracket, ...]]
    body_type_classes: Mapping[str, VehicleClass] = field(default_factory=dict)
    allow_trade_in_credit: bool = True
    apply_negative_equity: bool = True
    use_higher_of_price_or_assessed: bool = True

    def classify_body_type(self, body_type: str) -> Optional[VehicleClass]:
        return self.body_type_classes.get(body_type.strip().upper())


def _conservative_rebates() -> dict[RebateKind, Taxability]:
    return {
        RebateKind.MANUFACTURER: assumed(True, "Stub default: rebates taxable"),
        RebateKind.DEALER: assumed(True, "Stub default: rebates taxable"),
    }


def _conservative_fees() -> dict[str, Taxability]:
    return {
        DOC_FEE: assumed(True, "Stub default: doc fee taxable"),
        TITLE_FEE: exempt("Government fee"),
        REGISTRATION_FEE: exempt("Government fee"),
    }


def _conservative_products() -> dict[ProductKind, Taxability]:
    return {
        ProductKind.SERVICE_CONTRACT: assumed(False, "Stub default"),
        ProductKind.GAP: assumed(False, "Stub default"),
        ProductKind.ACCESSORIES: assumed(True, "Stub default"),
    }


@dataclass(frozen=True)
class JurisdictionRuleSet:
    """One effective-dated version of a jurisdiction's vehicle tax rules."""

    code: str
    name: str
    version: int
    effective_from: date
    state_rate: Decimal
    effective_to: Optional[date] = None  # exclusive; None means open-ended
    implemented: bool = True
    default_local_rate: Decimal = ZERO
    trade_in_policy: TradeInPolicy = field(default_factory=TradeInPolicy.full)
    rate_threshold: Optional[RateThreshold] = None
    vehicle_tax_scheme: VehicleTaxScheme = VehicleTaxScheme.STATE_ONLY
    rebates: Mapping[RebateKind, Taxability] = field(default_factory=_conservative_rebates)
    fees: Mapping[str, Taxability] = field(default_factory=_conservative_fees)
    products: Mapping[ProductKind, Taxability] = field(default_factory=_conservative_products)
    negative_equity: Taxability = field(
        default_factory=lambda: assumed(False, "No official guidance")
    )
    lease: LeaseRules = field(default_factory=LeaseRules)
    reciprocity: ReciprocityConfig = field(default_factory=ReciprocityConfig)
    tavt: Optional[TavtConfig] = None
    hut: Optional[HutConfig] = None
    privilege: Optional[PrivilegeConfig] = None
    max_tax: Optional[Decimal] = None  # ceiling on the state tax of one deal
    sources: tuple[str, ...] = ()
    notes: str = ""

    @classmethod
    def stub(
        cls,
        code: str,
        name: str,
        state_rate: Decimal,
        effective_from: date = date(2000, 1, 1),
    ) -> "JurisdictionRuleSet":
        """
        Conservative default for a jurisdiction with no authored rules.

        Full trade-in credit, every rebate taxable, state rate only.
        """
        return cls(
            code=code,
            name=name,
            version=1,
            effective_from=effective_from,
            state_rate=state_rate,
            implemented=False,
            trade_in_policy=TradeInPolicy.full(),
            vehicle_tax_scheme=VehicleTaxScheme.STATE_ONLY,
            reciprocity=ReciprocityConfig(confidence=Confidence.CONSERVATIVE_DEFAULT),
            notes="Stub: conservative defaults, not researched.",
        )

    def is_effective_on(self, as_of: date) -> bool:
        if as_of < self.effective_from:
            return False
        return self.effective_to is None or as_of < self.effective_to

    def validate(self) -> None:
        """Raise ``InvalidRuleSet`` if this record is internally inconsistent."""
        label = f"{self.code} v{self.version}"

        if self.effective_to is not None and self.effective_to <= self.effective_from:
            raise InvalidRuleSet(label, "effective_to must be after effective_from")
        if self.state_rate < ZERO or self.default_local_rate < ZERO:
            raise InvalidRuleSet(label, "rates must not be negative")
        if self.max_tax is not None and self.max_tax < ZERO:
            raise InvalidRuleSet(label, "max_tax must not be negative")

        policy = self.trade_in_policy
        if policy.kind is TradeInPolicyType.CAPPED:
            if policy.cap is None or policy.cap < ZERO:
                raise InvalidRuleSet(label, "CAPPED trade-in policy needs a non-negative cap")
        elif policy.kind is TradeInPolicyType.PERCENT:
            if policy.percent is None or not ZERO <= policy.percent <= Decimal("1"):
                raise InvalidRuleSet(label, "PERCENT trade-in policy needs a percent in [0, 1]")

        scheme = self.vehicle_tax_scheme
        if scheme is VehicleTaxScheme.SPECIAL_TAVT and self.tavt is None:
            raise InvalidRuleSet(label, "SPECIAL_TAVT scheme needs a tavt config")
        if scheme is VehicleTaxScheme.SPECIAL_HUT and self.hut is None:
            raise InvalidRuleSet(label, "SPECIAL_HUT scheme needs a hut config")
        if scheme is VehicleTaxScheme.SPECIAL_PRIVILEGE:
            if self.privilege is None or not self.privilege.class_schedules:
                raise InvalidRuleSet(label, "SPECIAL_PRIVILEGE scheme needs class schedules")
            for vehicle_class, brackets in self.privilege.class_schedules.items():
                floors = [b.floor for b in brackets]
                if not brackets or floors[0] != ZERO or floors != sorted(set(floors)):
                    raise InvalidRuleSet(
                        label,
                        f"privilege brackets for {vehicle_class.value} must start at 0 "
                        "and increase",
                    )

        if self.lease.method is LeaseMethod.REDUCED_BASE:
            factor = self.lease.reduced_base_factor
            if factor is None or not ZERO < factor <= Decimal("1"):
                raise InvalidRuleSet(label, "REDUCED_BASE lease needs a factor in (0, 1]")
        if self.hut is not None and self.hut.window_days <= 0:
            raise InvalidRuleSet(label, "HUT window must be a positive number of days")
        for override in self.reciprocity.overrides:
            if override.max_age_days is not None and override.max_age_days < 0:
                raise InvalidRuleSet(
                    label, f"negative reciprocity window for origin {override.origin}"
                )
