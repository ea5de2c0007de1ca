"""
Automotive Tax Engine
=====================

Vehicle sales, use and lease tax calculation for dealership deals across
US jurisdictions, driven by declarative, effective-dated rule sets.

Modules:
    money            - Decimal amounts, rates and rounding
    rules            - Declarative jurisdiction rule model
    jurisdictions    - Rule catalog: researched jurisdictions and stubs
    registry         - Effective-dated rule lookup and JSON rule files
    interpreters     - Policy interpreters over rule data
    reciprocity      - Credit for tax paid to another jurisdiction
    calculator       - Retail calculation and deal dispatch
    special_schemes  - Title, highway use and privilege tax calculators
    lease            - Lease tax methods
    report_generator - Reports with CSV/JSON export
    cli              - Command-line interface
"""

__version__ = "1.0.0"

from auto_tax_engine.calculator import TaxCalculator
from auto_tax_engine.models import FeeItem, TaxInput, TaxResult
from auto_tax_engine.registry import JurisdictionRegistry, default_registry
from auto_tax_engine.report_generator import ReportGenerator

__all__ = [
    "TaxCalculator",
    "TaxInput",
    "TaxResult",
    "FeeItem",
    "JurisdictionRegistry",
    "default_registry",
    "ReportGenerator",
]
