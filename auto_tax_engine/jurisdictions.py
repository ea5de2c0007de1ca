"""
Vehicle tax rule catalog.

Authored rule sets for the researched jurisdictions, and conservative stubs
for every other US state plus DC. This module holds data only; the
registry validates and indexes it.

Sources: state revenue department motor vehicle publications and
dealer-facing bulletins, cited per record.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from auto_tax_engine.rules import (
    ACQUISITION_FEE,
    ANY_ORIGIN,
    DOC_FEE,
    PLATE_FEE,
    REGISTRATION_FEE,
    TITLE_FEE,
    HomeStateBehavior,
    HutConfig,
    JurisdictionRuleSet,
    LeaseMethod,
    LeaseRules,
    LeaseSpecialScheme,
    PrivilegeBracket,
    PrivilegeConfig,
    ProductKind,
    RateThreshold,
    RebateKind,
    ReciprocityConfig,
    ReciprocityOverride,
    ReciprocityScope,
    TavtConfig,
    ThresholdEvaluation,
    TradeInPolicy,
    VehicleClass,
    VehicleTaxScheme,
    assumed,
    exempt,
    taxable,
)

D = Decimal


# ---------------------------------------------------------------------------
# Shared building blocks
# ---------------------------------------------------------------------------


def _rebates(manufacturer_taxable: bool, dealer_taxable: bool) -> dict:
    return {
        RebateKind.MANUFACTURER: taxable() if manufacturer_taxable else exempt(
            "Manufacturer rebate reduces the taxable price"
        ),
        RebateKind.DEALER: taxable() if dealer_taxable else exempt(
            "Dealer discount reduces the taxable price"
        ),
    }


def _fees(doc_fee_taxable: bool = True) -> dict:
    return {
        DOC_FEE: taxable("Dealer documentation fee") if doc_fee_taxable
        else exempt("Dealer documentation fee"),
        TITLE_FEE: exempt("Government fee"),
        REGISTRATION_FEE: exempt("Government fee"),
        PLATE_FEE: exempt("Government fee"),
    }


def _products(service_contract, gap, accessories=None) -> dict:
    return {
        ProductKind.SERVICE_CONTRACT: service_contract,
        ProductKind.GAP: gap,
        ProductKind.ACCESSORIES: accessories if accessories is not None else taxable(),
    }


_FULL_CREDIT = ReciprocityConfig(
    home_state_behavior=HomeStateBehavior.CREDIT_FULL,
    scope=ReciprocityScope.BOTH,
    proof_required=True,
    cap_at_own_tax=True,
)

_STATE_RATE_CREDIT = ReciprocityConfig(
    home_state_behavior=HomeStateBehavior.CREDIT_UP_TO_STATE_RATE,
    scope=ReciprocityScope.BOTH,
    proof_required=True,
    cap_at_own_tax=True,
)


# ---------------------------------------------------------------------------
# Authored jurisdictions
# ---------------------------------------------------------------------------

_CT_COMMON = dict(
    code="CT",
    name="Connecticut",
    state_rate=D("0.0635"),
    trade_in_policy=TradeInPolicy.full(),
    vehicle_tax_scheme=VehicleTaxScheme.STATE_ONLY,
    rebates=_rebates(manufacturer_taxable=True, dealer_taxable=False),
    fees=_fees(doc_fee_taxable=True),
    products=_products(
        service_contract=taxable("Taxed at the general rate", fixed_rate=D("0.0635")),
        gap=taxable("Taxed at the general rate", fixed_rate=D("0.0635")),
    ),
    negative_equity=assumed(False, "No official guidance on rolled-in negative equity"),
    lease=LeaseRules(
        method=LeaseMethod.HYBRID,
        cash_reduction_taxable=taxable("Cap cost reduction taxed at signing"),
        trade_in_reduction_taxable=exempt("Trade-in credit applies to leases"),
    ),
    reciprocity=_FULL_CREDIT,
    sources=(
        "CT DRS IP 2015(15) Sales and use tax on motor vehicles",
        "Conn. Gen. Stat. 12-408(1)(H)",
    ),
)

CONNECTICUT = (
    JurisdictionRuleSet(
        **_CT_COMMON,
        version=1,
        effective_from=date(2011, 7, 1),
        effective_to=date(2015, 7, 1),
        rate_threshold=RateThreshold(
            amount=D("50000"),
            rate=D("0.07"),
            evaluation=ThresholdEvaluation.PRE_TRADE_IN,
            label="luxury rate",
        ),
        notes="Luxury rate of 7% on vehicles over $50,000.",
    ),
    JurisdictionRuleSet(
        **_CT_COMMON,
        version=2,
        effective_from=date(2015, 7, 1),
        rate_threshold=RateThreshold(
            amount=D("50000"),
            rate=D("0.0775"),
            evaluation=ThresholdEvaluation.PRE_TRADE_IN,
            label="luxury rate",
        ),
        notes=(
            "Luxury rate of 7.75% on vehicles over $50,000, measured before "
            "trade-in credit and applied to the whole post-credit base."
        ),
    ),
)

_MA_COMMON = dict(
    code="MA",
    name="Massachusetts",
    state_rate=D("0.0625"),
    vehicle_tax_scheme=VehicleTaxScheme.STATE_ONLY,
    rebates=_rebates(manufacturer_taxable=True, dealer_taxable=False),
    fees=_fees(doc_fee_taxable=True),
    products=_products(
        service_contract=exempt("Optional service contracts not taxed"),
        gap=exempt("GAP is insurance"),
    ),
    negative_equity=exempt("Negative equity is a loan payoff, not sale price"),
    lease=LeaseRules(method=LeaseMethod.MONTHLY),
    reciprocity=_STATE_RATE_CREDIT,
    sources=("830 CMR 64H.25.1 Motor vehicles", "MA DOR TIR 17-6"),
)

MASSACHUSETTS = (
    JurisdictionRuleSet(
        **_MA_COMMON,
        version=1,
        effective_from=date(2000, 1, 1),
        effective_to=date(2009, 8, 1),
        trade_in_policy=TradeInPolicy.none(),
    ),
    JurisdictionRuleSet(
        **_MA_COMMON,
        version=2,
        effective_from=date(2009, 8, 1),
        effective_to=date(2017, 8, 1),
        trade_in_policy=TradeInPolicy.capped(D("10000")),
    ),
    JurisdictionRuleSet(
        **_MA_COMMON,
        version=3,
        effective_from=date(2017, 8, 1),
        trade_in_policy=TradeInPolicy.full(),
    ),
)

MICHIGAN = JurisdictionRuleSet(
    code="MI",
    name="Michigan",
    version=1,
    effective_from=date(2014, 1, 1),
    state_rate=D("0.06"),
    trade_in_policy=TradeInPolicy.capped(D("10000")),
    vehicle_tax_scheme=VehicleTaxScheme.STATE_ONLY,
    rebates=_rebates(manufacturer_taxable=True, dealer_taxable=False),
    fees=_fees(doc_fee_taxable=True),
    products=_products(
        service_contract=exempt("Extended warranties not taxed when separately stated"),
        gap=exempt("GAP is insurance"),
    ),
    negative_equity=assumed(False, "No official guidance"),
    lease=LeaseRules(method=LeaseMethod.MONTHLY),
    reciprocity=_STATE_RATE_CREDIT,
    sources=("MCL 205.51(1)(d)(ii) trade-in credit limit",),
    notes="Trade-in credit limited to a fixed dollar cap.",
)

INDIANA = JurisdictionRuleSet(
    code="IN",
    name="Indiana",
    version=1,
    effective_from=date(2008, 4, 1),
    state_rate=D("0.07"),
    trade_in_policy=TradeInPolicy.full(),
    vehicle_tax_scheme=VehicleTaxScheme.STATE_ONLY,
    rebates=_rebates(manufacturer_taxable=False, dealer_taxable=False),
    fees=_fees(doc_fee_taxable=True),
    products=_products(
        service_contract=taxable("Service contracts taxable"),
        gap=exempt("GAP is insurance"),
    ),
    negative_equity=assumed(False, "No official guidance"),
    lease=LeaseRules(method=LeaseMethod.MONTHLY),
    reciprocity=_STATE_RATE_CREDIT,
    sources=("IN DOR Sales Tax Information Bulletin 28S",),
)

NEW_YORK = JurisdictionRuleSet(
    code="NY",
    name="New York",
    version=1,
    effective_from=date(2009, 6, 1),
    state_rate=D("0.04"),
    default_local_rate=D("0.045"),
    trade_in_policy=TradeInPolicy.full(),
    vehicle_tax_scheme=VehicleTaxScheme.STATE_PLUS_LOCAL,
    rebates=_rebates(manufacturer_taxable=True, dealer_taxable=False),
    fees=_fees(doc_fee_taxable=True),
    products=_products(
        service_contract=taxable("Service contracts taxable"),
        gap=exempt("GAP is insurance"),
    ),
    negative_equity=assumed(False, "No official guidance"),
    lease=LeaseRules(
        method=LeaseMethod.MONTHLY,
        special_scheme=LeaseSpecialScheme.NY_MTR,
        tax_cap_reduction_upfront=True,
        cash_reduction_taxable=taxable(),
        trade_in_reduction_taxable=exempt(),
        note="Metropolitan commuter district surcharge may apply to leases.",
    ),
    reciprocity=ReciprocityConfig(
        enabled=False,
        home_state_behavior=HomeStateBehavior.NONE,
        note="No credit for tax paid to another state at registration.",
    ),
    sources=("NY TB-ST-790 Sales tax on motor vehicle leases",),
)

NEW_JERSEY = JurisdictionRuleSet(
    code="NJ",
    name="New Jersey",
    version=1,
    effective_from=date(2018, 1, 1),
    state_rate=D("0.06625"),
    trade_in_policy=TradeInPolicy.full(),
    vehicle_tax_scheme=VehicleTaxScheme.STATE_ONLY,
    rebates=_rebates(manufacturer_taxable=True, dealer_taxable=False),
    fees=_fees(doc_fee_taxable=True),
    products=_products(
        service_contract=taxable("Service contracts taxable"),
        gap=exempt("GAP is insurance"),
    ),
    negative_equity=assumed(False, "No official guidance"),
    lease=LeaseRules(
        method=LeaseMethod.FULL_UPFRONT,
        special_scheme=LeaseSpecialScheme.NJ_LUXURY,
        cash_reduction_taxable=taxable(),
        trade_in_reduction_taxable=exempt(),
        note="Lease receipts taxed in full at inception.",
    ),
    reciprocity=_STATE_RATE_CREDIT,
    sources=("N.J.S.A. 54:32B-2(w)", "N.J.S.A. 54:15C-1 luxury and fuel-inefficient surcharge"),
)

ILLINOIS = JurisdictionRuleSet(
    code="IL",
    name="Illinois",
    version=1,
    effective_from=date(2015, 1, 1),
    state_rate=D("0.0625"),
    default_local_rate=D("0.0125"),
    trade_in_policy=TradeInPolicy.full(),
    vehicle_tax_scheme=VehicleTaxScheme.STATE_PLUS_LOCAL,
    rebates=_rebates(manufacturer_taxable=True, dealer_taxable=False),
    fees=_fees(doc_fee_taxable=True),
    products=_products(
        service_contract=exempt("Service contracts not part of selling price"),
        gap=exempt("GAP is insurance"),
    ),
    negative_equity=assumed(False, "No official guidance"),
    lease=LeaseRules(
        method=LeaseMethod.MONTHLY,
        special_scheme=LeaseSpecialScheme.IL_CHICAGO_COOK,
        note="Chicago and Cook County personal property lease taxes are separate.",
    ),
    reciprocity=_STATE_RATE_CREDIT,
    sources=("35 ILCS 120/1", "IL Form RUT-50 instructions"),
)

PENNSYLVANIA = JurisdictionRuleSet(
    code="PA",
    name="Pennsylvania",
    version=1,
    effective_from=date(2004, 1, 1),
    state_rate=D("0.06"),
    default_local_rate=D("0.01"),
    trade_in_policy=TradeInPolicy.full(),
    vehicle_tax_scheme=VehicleTaxScheme.STATE_PLUS_LOCAL,
    rebates=_rebates(manufacturer_taxable=True, dealer_taxable=False),
    fees=_fees(doc_fee_taxable=True),
    products=_products(
        service_contract=taxable("Service contracts taxable"),
        gap=exempt("GAP is insurance"),
    ),
    negative_equity=assumed(False, "No official guidance"),
    lease=LeaseRules(
        method=LeaseMethod.MONTHLY,
        special_scheme=LeaseSpecialScheme.PA_LEASE_TAX,
        tax_cap_reduction_upfront=True,
        note="Additional 3% motor vehicle lease tax on lease payments.",
    ),
    reciprocity=_STATE_RATE_CREDIT,
    sources=("72 P.S. 7202", "72 P.S. 8101-D motor vehicle lease tax"),
)

VIRGINIA = JurisdictionRuleSet(
    code="VA",
    name="Virginia",
    version=1,
    effective_from=date(2016, 7, 1),
    state_rate=D("0.0415"),
    trade_in_policy=TradeInPolicy.none(),
    vehicle_tax_scheme=VehicleTaxScheme.STATE_ONLY,
    rebates=_rebates(manufacturer_taxable=True, dealer_taxable=False),
    fees=_fees(doc_fee_taxable=True),
    products=_products(
        service_contract=exempt("Not part of sale price for SUT"),
        gap=exempt("GAP is insurance"),
    ),
    negative_equity=assumed(False, "No official guidance"),
    lease=LeaseRules(
        method=LeaseMethod.FULL_UPFRONT,
        special_scheme=LeaseSpecialScheme.VA_USAGE,
        note="Motor vehicle sales and use tax due at titling on the leased vehicle.",
    ),
    reciprocity=_STATE_RATE_CREDIT,
    sources=("Va. Code 58.1-2402 motor vehicle sales and use tax",),
    notes="No trade-in credit against the motor vehicle sales and use tax.",
)

MARYLAND = JurisdictionRuleSet(
    code="MD",
    name="Maryland",
    version=1,
    effective_from=date(2013, 7, 1),
    state_rate=D("0.06"),
    trade_in_policy=TradeInPolicy.full(),
    vehicle_tax_scheme=VehicleTaxScheme.STATE_ONLY,
    rebates=_rebates(manufacturer_taxable=True, dealer_taxable=False),
    fees=_fees(doc_fee_taxable=True),
    products=_products(
        service_contract=exempt("Not part of titling value"),
        gap=exempt("GAP is insurance"),
    ),
    negative_equity=assumed(False, "No official guidance"),
    lease=LeaseRules(
        method=LeaseMethod.FULL_UPFRONT,
        special_scheme=LeaseSpecialScheme.MD_UPFRONT_GAIN,
        note="Excise titling tax collected at lease inception.",
    ),
    reciprocity=_STATE_RATE_CREDIT,
    sources=("Md. Transp. Code 13-809 excise titling tax",),
)

ARIZONA = JurisdictionRuleSet(
    code="AZ",
    name="Arizona",
    version=1,
    effective_from=date(2013, 6, 1),
    state_rate=D("0.056"),
    default_local_rate=D("0.025"),
    trade_in_policy=TradeInPolicy.full(),
    vehicle_tax_scheme=VehicleTaxScheme.STATE_PLUS_LOCAL,
    rebates=_rebates(manufacturer_taxable=False, dealer_taxable=False),
    fees=_fees(doc_fee_taxable=True),
    products=_products(
        service_contract=exempt("Warranty contracts not taxed"),
        gap=exempt("GAP is insurance"),
    ),
    negative_equity=assumed(False, "No official guidance"),
    lease=LeaseRules(method=LeaseMethod.MONTHLY),
    reciprocity=_STATE_RATE_CREDIT,
    sources=("A.R.S. 42-5061 retail classification",),
)

FLORIDA = JurisdictionRuleSet(
    code="FL",
    name="Florida",
    version=1,
    effective_from=date(2000, 1, 1),
    state_rate=D("0.06"),
    default_local_rate=D("0.01"),
    trade_in_policy=TradeInPolicy.full(),
    vehicle_tax_scheme=VehicleTaxScheme.STATE_PLUS_LOCAL,
    rebates=_rebates(manufacturer_taxable=True, dealer_taxable=False),
    fees=_fees(doc_fee_taxable=True),
    products=_products(
        service_contract=taxable("Service warranties taxable"),
        gap=exempt("GAP is insurance"),
    ),
    negative_equity=assumed(False, "No official guidance"),
    lease=LeaseRules(method=LeaseMethod.MONTHLY, tax_cap_reduction_upfront=True),
    reciprocity=_STATE_RATE_CREDIT,
    sources=("Fla. Admin. Code 12A-1.007", "FL DOR GT-800030 motor vehicle sales"),
    notes="Discretionary surtax applies to the first $5,000 only; not modeled.",
)

COLORADO = JurisdictionRuleSet(
    code="CO",
    name="Colorado",
    version=1,
    effective_from=date(2001, 1, 1),
    state_rate=D("0.029"),
    default_local_rate=D("0.04"),
    trade_in_policy=TradeInPolicy.full(),
    vehicle_tax_scheme=VehicleTaxScheme.STATE_PLUS_LOCAL,
    rebates=_rebates(manufacturer_taxable=False, dealer_taxable=False),
    fees=_fees(doc_fee_taxable=True),
    products=_products(
        service_contract=exempt("Optional maintenance contracts not taxed"),
        gap=exempt("GAP is insurance"),
    ),
    negative_equity=assumed(False, "No official guidance"),
    lease=LeaseRules(
        method=LeaseMethod.HYBRID,
        special_scheme=LeaseSpecialScheme.CO_HOME_RULE_LEASE,
        note="Home-rule cities set their own lease taxation.",
    ),
    reciprocity=_STATE_RATE_CREDIT,
    sources=("CO DOR Sales Tax Guide, motor vehicles", "1 CCR 201-4 39-26-102"),
)

GEORGIA = JurisdictionRuleSet(
    code="GA",
    name="Georgia",
    version=1,
    effective_from=date(2013, 3, 1),
    state_rate=D("0.04"),
    trade_in_policy=TradeInPolicy.full(),
    vehicle_tax_scheme=VehicleTaxScheme.SPECIAL_TAVT,
    rebates=_rebates(manufacturer_taxable=True, dealer_taxable=False),
    fees=_fees(doc_fee_taxable=False),
    products=_products(
        service_contract=exempt("Not subject to title ad valorem tax"),
        gap=exempt("Not subject to title ad valorem tax"),
        accessories=exempt("Not subject to title ad valorem tax"),
    ),
    negative_equity=exempt("Not part of fair market value"),
    lease=LeaseRules(
        method=LeaseMethod.MONTHLY,
        rate=D("0.04"),
        note="Leases pay sales tax on payments instead of TAVT.",
    ),
    reciprocity=_STATE_RATE_CREDIT,
    tavt=TavtConfig(
        rate=D("0.07"),
        allow_trade_in_credit=True,
        manufacturer_rebate_taxable=True,
        dealer_rebate_taxable=False,
        apply_negative_equity=False,
        use_higher_of_price_or_assessed=True,
    ),
    sources=("O.C.G.A. 48-5C-1 title ad valorem tax",),
    notes="One-time title ad valorem tax replaces sales tax on vehicle purchases.",
)

NORTH_CAROLINA = JurisdictionRuleSet(
    code="NC",
    name="North Carolina",
    version=1,
    effective_from=date(2015, 1, 1),
    state_rate=D("0.0475"),
    trade_in_policy=TradeInPolicy.full(),
    vehicle_tax_scheme=VehicleTaxScheme.SPECIAL_HUT,
    rebates=_rebates(manufacturer_taxable=False, dealer_taxable=True),
    fees=_fees(doc_fee_taxable=True),
    products=_products(
        service_contract=taxable("Included in highway use tax base"),
        gap=taxable("Included in highway use tax base"),
    ),
    negative_equity=taxable("Included in highway use tax base"),
    lease=LeaseRules(
        method=LeaseMethod.MONTHLY,
        rate=D("0.03"),
        note="Alternate highway use tax on lease receipts.",
    ),
    reciprocity=ReciprocityConfig(
        home_state_behavior=HomeStateBehavior.CREDIT_FULL,
        scope=ReciprocityScope.RETAIL_ONLY,
        proof_required=True,
        cap_at_own_tax=True,
        overrides=(
            ReciprocityOverride(
                origin=ANY_ORIGIN,
                max_age_days=90,
                note="Credit only for tax paid within 90 days of titling.",
            ),
        ),
    ),
    hut=HutConfig(rate=D("0.03"), window_days=90, include_trade_in_reduction=True),
    sources=("N.C.G.S. 105-187.3 highway use tax",),
    notes="Highway use tax collected at titling instead of sales tax.",
)

_WV_FLAT = (PrivilegeBracket(floor=D("0"), rate=D("0.05")),)

WEST_VIRGINIA = JurisdictionRuleSet(
    code="WV",
    name="West Virginia",
    version=1,
    effective_from=date(2008, 7, 1),
    state_rate=D("0.06"),
    trade_in_policy=TradeInPolicy.full(),
    vehicle_tax_scheme=VehicleTaxScheme.SPECIAL_PRIVILEGE,
    rebates=_rebates(manufacturer_taxable=False, dealer_taxable=False),
    fees=_fees(doc_fee_taxable=True),
    products=_products(
        service_contract=assumed(False, "No official guidance"),
        gap=exempt("GAP is insurance"),
    ),
    negative_equity=assumed(False, "No official guidance"),
    lease=LeaseRules(method=LeaseMethod.MONTHLY),
    reciprocity=_STATE_RATE_CREDIT,
    privilege=PrivilegeConfig(
        class_schedules={
            VehicleClass.AUTO: _WV_FLAT,
            VehicleClass.TRUCK: _WV_FLAT,
            VehicleClass.MOTORCYCLE: _WV_FLAT,
            VehicleClass.RV: (PrivilegeBracket(floor=D("0"), rate=D("0.06")),),
            VehicleClass.TRAILER: (PrivilegeBracket(floor=D("0"), rate=D("0.03")),),
        },
        body_type_classes={
            "SEDAN": VehicleClass.AUTO,
            "COUPE": VehicleClass.AUTO,
            "SUV": VehicleClass.AUTO,
            "WAGON": VehicleClass.AUTO,
            "PICKUP": VehicleClass.TRUCK,
            "VAN": VehicleClass.TRUCK,
            "MOTORCYCLE": VehicleClass.MOTORCYCLE,
            "MOTORHOME": VehicleClass.RV,
            "CAMPER": VehicleClass.RV,
            "TRAILER": VehicleClass.TRAILER,
        },
        allow_trade_in_credit=True,
        apply_negative_equity=False,
    ),
    sources=("W. Va. Code 17A-3-4 privilege tax on titling",),
    notes="Titling privilege tax in lieu of sales tax, rate by vehicle class.",
)

SOUTH_CAROLINA = JurisdictionRuleSet(
    code="SC",
    name="South Carolina",
    version=1,
    effective_from=date(2017, 7, 1),
    state_rate=D("0.05"),
    trade_in_policy=TradeInPolicy.full(),
    vehicle_tax_scheme=VehicleTaxScheme.STATE_ONLY,
    rebates={
        RebateKind.MANUFACTURER: taxable("Fee is charged on the price before rebates"),
        RebateKind.DEALER: taxable("Fee is charged on the price before dealer discounts"),
    },
    fees=_fees(doc_fee_taxable=True),
    products=_products(
        service_contract=exempt("Motor vehicle service contracts exempt"),
        gap=exempt("GAP is insurance"),
    ),
    negative_equity=taxable("Part of the amount financed for the vehicle"),
    lease=LeaseRules(
        method=LeaseMethod.FULL_UPFRONT,
        cash_reduction_taxable=exempt("Cap cost reductions not taxed separately"),
        trade_in_reduction_taxable=exempt("Trade-in credit applies to leases"),
        note="Infrastructure maintenance fee collected once at lease inception.",
    ),
    reciprocity=ReciprocityConfig(
        enabled=False,
        home_state_behavior=HomeStateBehavior.NONE,
        proof_required=False,
        note="No credit for tax paid elsewhere against the maintenance fee.",
    ),
    max_tax=D("500"),
    sources=(
        "SC Act No. 40 of 2017, infrastructure maintenance fee",
        "SC Code 12-36-2120(52) service contract exemption",
        "SCDMV infrastructure maintenance fee guidance",
    ),
    notes="Infrastructure maintenance fee of 5%, capped at $500, replaces sales tax.",
)

_LA_COMMON = dict(
    code="LA",
    name="Louisiana",
    trade_in_policy=TradeInPolicy.full(),
    vehicle_tax_scheme=VehicleTaxScheme.STATE_PLUS_LOCAL,
    rebates=_rebates(manufacturer_taxable=False, dealer_taxable=False),
    fees={
        **_fees(doc_fee_taxable=True),
        DOC_FEE: assumed(True, "Doc fee treated as part of the cash price"),
    },
    products=_products(
        service_contract=assumed(False, "Regulated as insurance"),
        gap=assumed(False, "Regulated as insurance"),
    ),
    negative_equity=exempt("Negative equity is debt, not purchase price"),
    lease=LeaseRules(
        method=LeaseMethod.MONTHLY,
        cash_reduction_taxable=assumed(False, "Cap cost reduction treatment unclear"),
        trade_in_reduction_taxable=assumed(False, "Follows the retail trade-in credit"),
    ),
    reciprocity=ReciprocityConfig(
        home_state_behavior=HomeStateBehavior.CREDIT_UP_TO_STATE_RATE,
        scope=ReciprocityScope.BOTH,
        proof_required=True,
        cap_at_own_tax=True,
        note=(
            "Credit limited to the state rate; the buyer still owes Louisiana "
            "tax beyond the credit."
        ),
    ),
    sources=(
        "La. R.S. 47:302 imposition of sales tax",
        "La. R.S. 47:337.86 credit for taxes paid",
        "La. R.S. 6:969.18 documentation fee cap",
    ),
    notes="Parish rates apply by the buyer's domicile; supply the local rate on the deal.",
)

LOUISIANA = (
    JurisdictionRuleSet(
        **_LA_COMMON,
        version=1,
        effective_from=date(2018, 7, 1),
        effective_to=date(2025, 1, 1),
        state_rate=D("0.0445"),
    ),
    JurisdictionRuleSet(
        **_LA_COMMON,
        version=2,
        effective_from=date(2025, 1, 1),
        effective_to=date(2030, 1, 1),
        state_rate=D("0.05"),
    ),
    JurisdictionRuleSet(
        **_LA_COMMON,
        version=3,
        effective_from=date(2030, 1, 1),
        state_rate=D("0.0475"),
    ),
)

ALABAMA = JurisdictionRuleSet(
    code="AL",
    name="Alabama",
    version=1,
    effective_from=date(2022, 7, 1),
    state_rate=D("0.02"),
    trade_in_policy=TradeInPolicy.full(),
    vehicle_tax_scheme=VehicleTaxScheme.STATE_PLUS_LOCAL,
    rebates=_rebates(manufacturer_taxable=True, dealer_taxable=False),
    fees=_fees(doc_fee_taxable=True),
    products=_products(
        service_contract=exempt("Warranty contracts exempt"),
        gap=exempt("GAP is insurance"),
    ),
    negative_equity=exempt("Not taxed on purchases"),
    lease=LeaseRules(
        method=LeaseMethod.HYBRID,
        rate=D("0.015"),
        cash_reduction_taxable=taxable("Cap cost reductions taxed at inception"),
        trade_in_reduction_taxable=taxable("No trade-in credit on leases"),
        negative_equity_taxable=taxable("Rolled-in negative equity taxed on leases"),
        note="Automotive lease rate of 1.5% plus local lease rates.",
    ),
    reciprocity=_STATE_RATE_CREDIT,
    sources=(
        "Ala. Code 40-23-2(4) automotive rate and trade-in credit",
        "Ala. Code 40-23-65 credit for tax paid to other states",
        "Ala. Admin. Code 810-6-5-.09 leasing and rental",
    ),
    notes="Reduced 2% automotive rate; local automotive rates vary by city and county.",
)

OHIO = JurisdictionRuleSet(
    code="OH",
    name="Ohio",
    version=1,
    effective_from=date(2013, 9, 1),
    state_rate=D("0.0575"),
    trade_in_policy=TradeInPolicy.full(),
    vehicle_tax_scheme=VehicleTaxScheme.STATE_PLUS_LOCAL,
    rebates=_rebates(manufacturer_taxable=False, dealer_taxable=True),
    fees={
        **_fees(doc_fee_taxable=False),
        ACQUISITION_FEE: taxable("Lease acquisition fee taxable"),
    },
    products=_products(
        service_contract=taxable("Extended warranties taxable"),
        gap=taxable("Taxable when sold within the agreement"),
    ),
    negative_equity=taxable("Ohio Admin. Code 5703-9-36"),
    lease=LeaseRules(
        method=LeaseMethod.FULL_UPFRONT,
        cash_reduction_taxable=exempt("Cap cost reductions reduce the payments"),
        trade_in_reduction_taxable=exempt("Trade-in reduces the capitalized cost"),
        note="Tax on the total of lease payments collected at signing.",
    ),
    reciprocity=ReciprocityConfig(
        home_state_behavior=HomeStateBehavior.CREDIT_UP_TO_STATE_RATE,
        scope=ReciprocityScope.BOTH,
        proof_required=True,
        cap_at_own_tax=True,
        overrides=tuple(
            ReciprocityOverride(
                origin=origin,
                note=f"Ohio tax collected from {origin} residents under a reciprocal agreement.",
            )
            for origin in ("AZ", "CA", "FL", "IN", "MA", "MI", "SC")
        ),
    ),
    sources=(
        "ORC 5739.02 sales and use tax",
        "ORC 5739.029 trade-in credit",
        "ORC 4517.261 documentary service charge",
        "Ohio Admin. Code 5703-9-36 negative equity",
    ),
    notes="Trade-in credit applies to new vehicles only; county rates up to 2.25%.",
)

KANSAS = JurisdictionRuleSet(
    code="KS",
    name="Kansas",
    version=1,
    effective_from=date(2015, 7, 1),
    state_rate=D("0.065"),
    trade_in_policy=TradeInPolicy.full(),
    vehicle_tax_scheme=VehicleTaxScheme.STATE_PLUS_LOCAL,
    rebates=_rebates(manufacturer_taxable=True, dealer_taxable=False),
    fees={
        **_fees(doc_fee_taxable=True),
        ACQUISITION_FEE: taxable("Lease acquisition fee taxable"),
    },
    products=_products(
        service_contract=taxable("K.S.A. 79-3603(r)"),
        gap=exempt("GAP is insurance when separately stated"),
    ),
    negative_equity=exempt("Not part of the selling price"),
    lease=LeaseRules(
        method=LeaseMethod.FULL_UPFRONT,
        cash_reduction_taxable=taxable("Cap cost reductions taxed at inception"),
        trade_in_reduction_taxable=taxable("Trade-in equity taxed as a cap cost reduction"),
        negative_equity_taxable=taxable("Rolled-in negative equity taxed on leases"),
        note="Lease tax paid in full at inception; no monthly tax.",
    ),
    reciprocity=_STATE_RATE_CREDIT,
    sources=(
        "K.S.A. 79-3603 sales and compensating use tax",
        "K.A.R. 92-19-55b operating leases",
        "KS DOR Pub. KS-1526 motor vehicle transactions",
    ),
)

UTAH = JurisdictionRuleSet(
    code="UT",
    name="Utah",
    version=1,
    effective_from=date(2018, 1, 1),
    state_rate=D("0.0685"),
    trade_in_policy=TradeInPolicy.full(),
    vehicle_tax_scheme=VehicleTaxScheme.STATE_ONLY,
    rebates=_rebates(manufacturer_taxable=False, dealer_taxable=False),
    fees={
        **_fees(doc_fee_taxable=True),
        ACQUISITION_FEE: taxable("Lease acquisition fee taxable"),
    },
    products=_products(
        service_contract=taxable("UT Tax Commission Ruling 97-004"),
        gap=exempt("UT Tax Commission Ruling 95-025"),
    ),
    negative_equity=exempt("Not part of the purchase price"),
    lease=LeaseRules(
        method=LeaseMethod.HYBRID,
        cash_reduction_taxable=taxable("Cap cost reductions taxed at inception"),
        trade_in_reduction_taxable=exempt("Trade-in credit applies to leases"),
        negative_equity_taxable=taxable("Rolled-in negative equity taxed on leases"),
    ),
    reciprocity=_STATE_RATE_CREDIT,
    sources=(
        "Utah Code 59-12-103 sales tax rate",
        "Utah Code 59-12-104 exemptions",
        "UT Tax Commission Publication 5",
    ),
    notes="Uniform statewide motor vehicle rate with no local add-on.",
)


AUTHORED: tuple[JurisdictionRuleSet, ...] = (
    *CONNECTICUT,
    *MASSACHUSETTS,
    MICHIGAN,
    INDIANA,
    NEW_YORK,
    NEW_JERSEY,
    ILLINOIS,
    PENNSYLVANIA,
    VIRGINIA,
    MARYLAND,
    ARIZONA,
    FLORIDA,
    COLORADO,
    GEORGIA,
    NORTH_CAROLINA,
    WEST_VIRGINIA,
    SOUTH_CAROLINA,
    *LOUISIANA,
    ALABAMA,
    OHIO,
    KANSAS,
    UTAH,
)


# ---------------------------------------------------------------------------
# Stubs: base state rate only
# ---------------------------------------------------------------------------

_STUB_STATES: dict[str, tuple[str, str]] = {
    "AK": ("Alaska", "0"),
    "AR": ("Arkansas", "0.065"),
    "CA": ("California", "0.0725"),
    "DE": ("Delaware", "0"),
    "HI": ("Hawaii", "0.04"),
    "ID": ("Idaho", "0.06"),
    "IA": ("Iowa", "0.05"),
    "KY": ("Kentucky", "0.06"),
    "ME": ("Maine", "0.055"),
    "MN": ("Minnesota", "0.065"),
    "MS": ("Mississippi", "0.05"),
    "MO": ("Missouri", "0.04225"),
    "MT": ("Montana", "0"),
    "NE": ("Nebraska", "0.055"),
    "NV": ("Nevada", "0.0685"),
    "NH": ("New Hampshire", "0"),
    "NM": ("New Mexico", "0.04"),
    "ND": ("North Dakota", "0.05"),
    "OK": ("Oklahoma", "0.0325"),
    "OR": ("Oregon", "0"),
    "RI": ("Rhode Island", "0.07"),
    "SD": ("South Dakota", "0.04"),
    "TN": ("Tennessee", "0.07"),
    "TX": ("Texas", "0.0625"),
    "VT": ("Vermont", "0.06"),
    "WA": ("Washington", "0.065"),
    "WI": ("Wisconsin", "0.05"),
    "WY": ("Wyoming", "0.04"),
    "DC": ("District of Columbia", "0.06"),
}

STUBS: tuple[JurisdictionRuleSet, ...] = tuple(
    JurisdictionRuleSet.stub(code, name, D(rate))
    for code, (name, rate) in sorted(_STUB_STATES.items())
)


def all_rule_sets() -> tuple[JurisdictionRuleSet, ...]:
    """Every authored version plus every stub."""
    return AUTHORED + STUBS
