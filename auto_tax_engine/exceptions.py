"""
Typed errors raised by the tax engine.

Each error carries a machine-readable ``code`` and the structured fields
that caused it, so callers catch by type instead of parsing messages.

    TaxEngineError
    |
    +-- UnknownJurisdiction
    +-- MissingRequiredField
    +-- MissingClassification
    +-- RuleSetLoadError
        +-- RuleSetLoadConflict
        +-- InvalidRuleSet

Everything else that looks irregular (stub jurisdiction, rate trap, missing
reciprocity proof, collection window miss) is reported as a warning on a
successful result, never raised.
"""

from __future__ import annotations

from datetime import date
from typing import Optional


class TaxEngineError(Exception):
    """Base class for all tax engine errors."""

    code: str = "TAX_ENGINE_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UnknownJurisdiction(TaxEngineError):
    """No rule set exists for the jurisdiction, not even a stub."""

    code = "UNKNOWN_JURISDICTION"

    def __init__(self, jurisdiction: str, as_of: Optional[date] = None) -> None:
        self.jurisdiction = jurisdiction
        self.as_of = as_of
        if as_of is None:
            message = f"Unknown jurisdiction: {jurisdiction}"
        else:
            message = (
                f"No rule set for {jurisdiction} effective on {as_of.isoformat()}"
            )
        super().__init__(message)


class MissingRequiredField(TaxEngineError):
    """A field the deal type needs was not supplied."""

    code = "MISSING_REQUIRED_FIELD"

    def __init__(self, field: str, deal_type: str) -> None:
        self.field = field
        self.deal_type = deal_type
        super().__init__(f"{deal_type} calculation requires '{field}'")


class MissingClassification(TaxEngineError):
    """A special scheme needs a vehicle classification that is absent or invalid."""

    code = "MISSING_CLASSIFICATION"

    def __init__(self, jurisdiction: str, detail: str) -> None:
        self.jurisdiction = jurisdiction
        self.detail = detail
        super().__init__(f"{jurisdiction}: {detail}")


class RuleSetLoadError(TaxEngineError):
    """The rule catalog could not be built. Raised at load time only."""

    code = "RULE_SET_LOAD_ERROR"

    def __init__(self, jurisdiction: str, detail: str) -> None:
        self.jurisdiction = jurisdiction
        self.detail = detail
        super().__init__(f"{jurisdiction}: {detail}")


class RuleSetLoadConflict(RuleSetLoadError):
    """Two versions of one jurisdiction overlap or are out of order."""

    code = "RULE_SET_LOAD_CONFLICT"


class InvalidRuleSet(RuleSetLoadError):
    """A single rule set is internally inconsistent."""

    code = "INVALID_RULE_SET"
