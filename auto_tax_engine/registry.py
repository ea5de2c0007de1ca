"""
Jurisdiction rule registry.

Indexes the rule catalog by jurisdiction code and effective date. The
catalog is validated once when the registry is built: any internally
inconsistent record or any pair of overlapping versions is a load error,
so a registry that exists is always consistent.

Also parses declarative JSON rule files, which use the same field names as
``JurisdictionRuleSet`` with enum values in lower case.
"""

from __future__ import annotations

import json
import logging
from datetime import date
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from auto_tax_engine.config import get_settings
from auto_tax_engine.exceptions import InvalidRuleSet, RuleSetLoadConflict, UnknownJurisdiction
from auto_tax_engine.jurisdictions import all_rule_sets
from auto_tax_engine.rules import (
    Confidence,
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
    Taxability,
    TavtConfig,
    ThresholdEvaluation,
    TradeInPolicy,
    TradeInPolicyType,
    VehicleClass,
    VehicleTaxScheme,
)

logger = logging.getLogger("auto_tax_engine.registry")


class JurisdictionRegistry:
    """Read-only, effective-dated index of jurisdiction rule sets."""

    def __init__(self, rule_sets: Iterable[JurisdictionRuleSet]) -> None:
        grouped: dict[str, list[JurisdictionRuleSet]] = {}
        for rule in rule_sets:
            rule.validate()
            grouped.setdefault(rule.code.upper(), []).append(rule)

        self._versions: dict[str, tuple[JurisdictionRuleSet, ...]] = {}
        for code, versions in grouped.items():
            ordered = sorted(versions, key=lambda r: (r.effective_from, r.version))
            self._check_versions(code, ordered)
            self._versions[code] = tuple(ordered)

        logger.info(
            "registry_loaded jurisdictions=%d versions=%d implemented=%d",
            len(self._versions),
            sum(len(v) for v in self._versions.values()),
            len(self.list_implemented()),
        )

    @staticmethod
    def _check_versions(code: str, ordered: list[JurisdictionRuleSet]) -> None:
        seen: set[int] = set()
        for rule in ordered:
            if rule.version in seen:
                logger.error("registry_conflict code=%s duplicate_version=%d", code, rule.version)
                raise RuleSetLoadConflict(code, f"duplicate version {rule.version}")
            seen.add(rule.version)

        for prev, cur in zip(ordered, ordered[1:]):
            if cur.version <= prev.version:
                logger.error("registry_conflict code=%s version_order", code)
                raise RuleSetLoadConflict(
                    code,
                    f"version {cur.version} starts after version {prev.version} "
                    "but is not numbered higher",
                )
            if prev.effective_to is None or prev.effective_to > cur.effective_from:
                logger.error(
                    "registry_conflict code=%s overlap=v%d,v%d", code, prev.version, cur.version
                )
                raise RuleSetLoadConflict(
                    code,
                    f"version {prev.version} overlaps version {cur.version} "
                    f"starting {cur.effective_from.isoformat()}",
                )

    @classmethod
    def with_rule_files(
        cls,
        paths: Iterable[Union[str, Path]],
        base: Optional[Iterable[JurisdictionRuleSet]] = None,
    ) -> "JurisdictionRegistry":
        """Build from the catalog (or ``base``) plus the records in each JSON file."""
        rule_sets = list(base if base is not None else all_rule_sets())
        for path in paths:
            rule_sets.extend(load_rule_file(path))
        return cls(rule_sets)

    # -- lookups ---------------------------------------------------------

    @property
    def codes(self) -> list[str]:
        return sorted(self._versions)

    @property
    def jurisdiction_count(self) -> int:
        return len(self._versions)

    def versions(self, code: str) -> tuple[JurisdictionRuleSet, ...]:
        key = code.strip().upper()
        if key not in self._versions:
            raise UnknownJurisdiction(code)
        return self._versions[key]

    def resolve(self, code: str, as_of: date) -> JurisdictionRuleSet:
        """
        Return the rule set in force for ``code`` on ``as_of``.

        Falls back to the latest version that started on or before ``as_of``
        when no version's range contains the date. A date before the first
        version raises ``UnknownJurisdiction``.
        """
        versions = self.versions(code)
        for rule in reversed(versions):
            if rule.is_effective_on(as_of):
                logger.debug("resolved code=%s version=%d as_of=%s", rule.code, rule.version, as_of)
                return rule
        started = [r for r in versions if r.effective_from <= as_of]
        if started:
            return started[-1]
        raise UnknownJurisdiction(code, as_of)

    def is_implemented(self, code: str) -> bool:
        return any(r.implemented for r in self.versions(code))

    def list_implemented(self) -> set[str]:
        return {code for code, versions in self._versions.items() if any(r.implemented for r in versions)}

    def list_stubs(self) -> set[str]:
        return set(self._versions) - self.list_implemented()


@lru_cache(maxsize=1)
def default_registry() -> JurisdictionRegistry:
    """The process-wide catalog, built once."""
    settings = get_settings()
    if settings.rules_file:
        return JurisdictionRegistry.with_rule_files([settings.rules_file])
    return JurisdictionRegistry(all_rule_sets())


# ---------------------------------------------------------------------------
# JSON rule records
# ---------------------------------------------------------------------------


def load_rule_file(path: Union[str, Path]) -> list[JurisdictionRuleSet]:
    """Parse a JSON file holding one rule record or a list of them."""
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise InvalidRuleSet(str(path), f"cannot read rule file: {exc}") from exc
    records = data if isinstance(data, list) else [data]
    rule_sets = [rule_set_from_dict(record) for record in records]
    logger.info("rule_file_loaded path=%s records=%d", path, len(rule_sets))
    return rule_sets


def rule_set_from_dict(data: dict[str, Any]) -> JurisdictionRuleSet:
    """Create a rule set from a plain record. Omitted fields keep their defaults."""
    code = str(data.get("code", "?")).upper()
    try:
        kwargs: dict[str, Any] = {
            "code": code,
            "name": data.get("name", code),
            "version": int(data.get("version", 1)),
            "effective_from": date.fromisoformat(data["effective_from"]),
            "state_rate": Decimal(str(data["state_rate"])),
            "implemented": bool(data.get("implemented", True)),
            "default_local_rate": Decimal(str(data.get("default_local_rate", "0"))),
            "vehicle_tax_scheme": VehicleTaxScheme(data.get("vehicle_tax_scheme", "state_only")),
            "sources": tuple(data.get("sources", ())),
            "notes": data.get("notes", ""),
        }
        if data.get("max_tax") is not None:
            kwargs["max_tax"] = Decimal(str(data["max_tax"]))
        if data.get("effective_to"):
            kwargs["effective_to"] = date.fromisoformat(data["effective_to"])
        if "trade_in_policy" in data:
            kwargs["trade_in_policy"] = _trade_in_policy(data["trade_in_policy"])
        if data.get("rate_threshold"):
            t = data["rate_threshold"]
            kwargs["rate_threshold"] = RateThreshold(
                amount=Decimal(str(t["amount"])),
                rate=Decimal(str(t["rate"])),
                evaluation=ThresholdEvaluation(t.get("evaluation", "pre_trade_in")),
                label=t.get("label", "threshold rate"),
            )
        if "rebates" in data:
            kwargs["rebates"] = {
                RebateKind(k): _taxability(v) for k, v in data["rebates"].items()
            }
        if "fees" in data:
            kwargs["fees"] = {k.upper(): _taxability(v) for k, v in data["fees"].items()}
        if "products" in data:
            kwargs["products"] = {
                ProductKind(k): _taxability(v) for k, v in data["products"].items()
            }
        if "negative_equity" in data:
            kwargs["negative_equity"] = _taxability(data["negative_equity"])
        if "lease" in data:
            kwargs["lease"] = _lease_rules(data["lease"])
        if "reciprocity" in data:
            kwargs["reciprocity"] = _reciprocity(data["reciprocity"])
        if data.get("tavt"):
            t = data["tavt"]
            kwargs["tavt"] = TavtConfig(
                rate=Decimal(str(t["rate"])),
                allow_trade_in_credit=t.get("allow_trade_in_credit", True),
                manufacturer_rebate_taxable=t.get("manufacturer_rebate_taxable", True),
                dealer_rebate_taxable=t.get("dealer_rebate_taxable", True),
                apply_negative_equity=t.get("apply_negative_equity", True),
                use_higher_of_price_or_assessed=t.get("use_higher_of_price_or_assessed", True),
            )
        if data.get("hut"):
            h = data["hut"]
            kwargs["hut"] = HutConfig(
                rate=Decimal(str(h["rate"])),
                window_days=int(h.get("window_days", 90)),
                include_trade_in_reduction=h.get("include_trade_in_reduction", True),
            )
        if data.get("privilege"):
            kwargs["privilege"] = _privilege(data["privilege"])
    except (KeyError, ValueError, TypeError, ArithmeticError) as exc:
        raise InvalidRuleSet(code, f"malformed rule record: {exc}") from exc
    return JurisdictionRuleSet(**kwargs)


def _taxability(value: Any) -> Taxability:
    if isinstance(value, bool):
        return Taxability(value)
    fixed = value.get("fixed_rate")
    return Taxability(
        taxable=bool(value["taxable"]),
        confidence=Confidence(value.get("confidence", "authoritative")),
        note=value.get("note", ""),
        fixed_rate=Decimal(str(fixed)) if fixed is not None else None,
    )


def _trade_in_policy(value: dict[str, Any]) -> TradeInPolicy:
    kind = TradeInPolicyType(value["kind"])
    cap = value.get("cap")
    percent = value.get("percent")
    return TradeInPolicy(
        kind,
        cap=Decimal(str(cap)) if cap is not None else None,
        percent=Decimal(str(percent)) if percent is not None else None,
    )


def _lease_rules(value: dict[str, Any]) -> LeaseRules:
    defaults = LeaseRules()
    rate = value.get("rate")
    factor = value.get("reduced_base_factor")
    return LeaseRules(
        method=LeaseMethod(value.get("method", "monthly")),
        special_scheme=LeaseSpecialScheme(value.get("special_scheme", "none")),
        cash_reduction_taxable=_taxability(value["cash_reduction_taxable"])
        if "cash_reduction_taxable" in value
        else defaults.cash_reduction_taxable,
        trade_in_reduction_taxable=_taxability(value["trade_in_reduction_taxable"])
        if "trade_in_reduction_taxable" in value
        else defaults.trade_in_reduction_taxable,
        negative_equity_taxable=_taxability(value["negative_equity_taxable"])
        if "negative_equity_taxable" in value
        else None,
        tax_cap_reduction_upfront=bool(value.get("tax_cap_reduction_upfront", False)),
        rate=Decimal(str(rate)) if rate is not None else None,
        reduced_base_factor=Decimal(str(factor)) if factor is not None else None,
        note=value.get("note", ""),
    )


def _reciprocity(value: dict[str, Any]) -> ReciprocityConfig:
    overrides = tuple(
        ReciprocityOverride(
            origin=str(o["origin"]).upper(),
            disallow_credit=bool(o.get("disallow_credit", False)),
            max_age_days=o.get("max_age_days"),
            behavior=HomeStateBehavior(o["behavior"]) if o.get("behavior") else None,
            note=o.get("note", ""),
        )
        for o in value.get("overrides", ())
    )
    return ReciprocityConfig(
        enabled=bool(value.get("enabled", True)),
        scope=ReciprocityScope(value.get("scope", "both")),
        home_state_behavior=HomeStateBehavior(
            value.get("home_state_behavior", "credit_up_to_state_rate")
        ),
        proof_required=bool(value.get("proof_required", True)),
        cap_at_own_tax=bool(value.get("cap_at_own_tax", True)),
        overrides=overrides,
        confidence=Confidence(value.get("confidence", "authoritative")),
        note=value.get("note", ""),
    )


def _privilege(value: dict[str, Any]) -> PrivilegeConfig:
    schedules = {
        VehicleClass(cls_name): tuple(
            PrivilegeBracket(floor=Decimal(str(b["floor"])), rate=Decimal(str(b["rate"])))
            for b in brackets
        )
        for cls_name, brackets in value["class_schedules"].items()
    }
    body_types = {
        k.upper(): VehicleClass(v) for k, v in value.get("body_type_classes", {}).items()
    }
    return PrivilegeConfig(
        class_schedules=schedules,
        body_type_classes=body_types,
        allow_trade_in_credit=value.get("allow_trade_in_credit", True),
        apply_negative_equity=value.get("apply_negative_equity", True),
        use_higher_of_price_or_assessed=value.get("use_higher_of_price_or_assessed", True),
    )
