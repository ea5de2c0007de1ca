"""
Tax calculation report generator.

Produces:
- Per-deal reports with base components, tax lines, notes and warnings
- Batch summaries with jurisdiction breakdowns
- Tax line tables as pandas DataFrames
- CSV and JSON export
"""

from __future__ import annotations

import json
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Iterable, Optional

import pandas as pd

from auto_tax_engine.models import BatchResult, TaxResult
from auto_tax_engine.money import ZERO, effective_rate, format_money, format_rate

LINE_COLUMNS = [
    "deal_id",
    "jurisdiction",
    "rule_version",
    "deal_type",
    "scheme",
    "line",
    "taxable_amount",
    "rate",
    "tax",
]


class _DecimalEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal and date objects."""

    def default(self, o: Any) -> Any:
        if isinstance(o, Decimal):
            return float(o)
        if isinstance(o, date):
            return o.isoformat()
        return super().default(o)


def _decimal_to_float(obj: Any) -> Any:
    """Recursively convert Decimal values to float for serialization."""
    if isinstance(obj, dict):
        return {k: _decimal_to_float(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_decimal_to_float(i) for i in obj]
    if isinstance(obj, Decimal):
        return float(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    return obj


class ReportGenerator:
    """
    Builds audit reports for vehicle tax results.

    Reports are plain dicts that keep Decimal amounts; exports convert them
    to floats. Files are written under ``output_dir``.
    """

    def __init__(self, output_dir: Optional[str] = None) -> None:
        self.output_dir = Path(output_dir) if output_dir else Path("reports")
        self.output_dir.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Structured reports
    # ------------------------------------------------------------------

    def result_report(self, result: TaxResult) -> dict[str, Any]:
        """Structured report for one calculation."""
        report: dict[str, Any] = {
            "report_type": "vehicle_tax_calculation",
            "generated_date": date.today().isoformat(),
            "deal_id": result.deal_id,
            "jurisdiction": result.jurisdiction,
            "rule_version": result.rule_version,
            "implemented": result.implemented,
            "deal_type": result.deal_type.value,
            "scheme": result.scheme.value,
            "summary": {
                "taxable_amount": result.taxable_amount,
                "trade_in_credit": result.trade_in_credit,
                "state_tax": result.state_tax,
                "local_tax": result.local_tax,
                "total_tax": result.total_tax,
                "effective_rate": result.effective_rate,
            },
            "base_components": [
                {"label": c.label, "amount": c.amount} for c in result.base_components
            ],
            "lines": [
                {
                    "line": line.label,
                    "taxable_amount": line.taxable_amount,
                    "rate": line.rate,
                    "tax": line.tax,
                }
                for line in result.lines
            ],
            "notes": list(result.notes),
            "warnings": list(result.warnings),
        }
        if result.reciprocity is not None:
            credit = result.reciprocity
            report["reciprocity"] = {
                "behavior": credit.behavior.value,
                "granted": credit.granted,
                "home_tax_paid": credit.home_tax_paid,
                "credit_applied": credit.credit_applied,
                "excess_discarded": credit.excess_discarded,
            }
        if result.lease is not None:
            lease = result.lease
            report["lease"] = {
                "method": lease.method.value,
                "upfront_taxable": lease.upfront_taxable,
                "upfront_tax": lease.upfront_tax,
                "payment_taxable": lease.payment_taxable,
                "payment_tax": lease.payment_tax,
                "payment_count": lease.payment_count,
                "total_tax_over_term": lease.total_tax_over_term,
            }
        if result.hut_window is not None:
            window = result.hut_window
            report["hut_window"] = {
                "anchor": window.anchor,
                "closes": window.closes,
                "inside": window.inside,
            }
        return report

    def batch_report(self, batch: BatchResult, period_label: str = "") -> dict[str, Any]:
        """Summary of a batch with a per-jurisdiction breakdown."""
        by_code: dict[str, list[TaxResult]] = {}
        for r in batch.results:
            by_code.setdefault(r.jurisdiction, []).append(r)

        details: list[dict[str, Any]] = []
        for code in sorted(by_code):
            results = by_code[code]
            taxable = sum((r.taxable_amount for r in results), ZERO)
            tax = sum((r.total_tax for r in results), ZERO)
            details.append(
                {
                    "jurisdiction": code,
                    "deal_count": len(results),
                    "taxable_amount": taxable,
                    "tax": tax,
                    "effective_rate": effective_rate(tax, taxable),
                    "stub": not all(r.implemented for r in results),
                }
            )

        total_taxable = sum((r.taxable_amount for r in batch.results), ZERO)
        warnings = [
            f"{r.deal_id or r.jurisdiction}: {w}" for r in batch.results for w in r.warnings
        ]
        return {
            "report_type": "vehicle_tax_batch",
            "period": period_label,
            "generated_date": date.today().isoformat(),
            "summary": {
                "total_deals": batch.deal_count,
                "calculated_deals": len(batch.results),
                "failed_deals": len(batch.errors),
                "total_taxable": total_taxable,
                "total_tax": batch.total_tax,
                "overall_effective_rate": effective_rate(batch.total_tax, total_taxable),
            },
            "jurisdiction_breakdown": details,
            "warnings": warnings,
            "errors": list(batch.errors),
        }

    def lines_frame(self, results: Iterable[TaxResult]) -> pd.DataFrame:
        """One row per tax line across all results."""
        rows = [
            {
                "deal_id": r.deal_id,
                "jurisdiction": r.jurisdiction,
                "rule_version": r.rule_version,
                "deal_type": r.deal_type.value,
                "scheme": r.scheme.value,
                "line": line.label,
                "taxable_amount": float(line.taxable_amount),
                "rate": float(line.rate),
                "tax": float(line.tax),
            }
            for r in results
            for line in r.lines
        ]
        return pd.DataFrame(rows, columns=LINE_COLUMNS)

    # ------------------------------------------------------------------
    # Export methods
    # ------------------------------------------------------------------

    def to_json(
        self,
        report: dict[str, Any],
        filename: Optional[str] = None,
    ) -> str:
        """Export a report to JSON. Returns the JSON string."""
        serializable = _decimal_to_float(report)
        json_str = json.dumps(serializable, indent=2, cls=_DecimalEncoder)

        if filename:
            path = self.output_dir / filename
            path.write_text(json_str, encoding="utf-8")

        return json_str

    def to_csv(
        self,
        results: Iterable[TaxResult],
        filename: Optional[str] = None,
    ) -> str:
        """Export every tax line to CSV. Returns the CSV string."""
        frame = self.lines_frame(results)
        csv_str = frame.to_csv(index=False)

        if filename:
            path = self.output_dir / filename
            path.write_text(csv_str, encoding="utf-8")

        return csv_str

    # ------------------------------------------------------------------
    # Console-formatted text output
    # ------------------------------------------------------------------

    def format_text(self, result: TaxResult) -> str:
        """Format one calculation as human-readable text for console output."""
        lines: list[str] = []
        status = "" if result.implemented else " (stub)"
        lines.append(f"{'=' * 60}")
        lines.append(
            f"  {result.jurisdiction} v{result.rule_version}{status} | "
            f"{result.deal_type.value} | {result.scheme.value}"
        )
        if result.deal_id:
            lines.append(f"  Deal: {result.deal_id}")
        lines.append(f"{'=' * 60}")
        lines.append("")

        lines.append("TAXABLE BASE")
        lines.append("-" * 40)
        for c in result.base_components:
            lines.append(f"  {c.label:<30} {format_money(c.amount):>14}")
        lines.append(f"  {'Taxable amount':<30} {format_money(result.taxable_amount):>14}")
        lines.append("")

        lines.append("TAX LINES")
        lines.append("-" * 40)
        for line in result.lines:
            lines.append(
                f"  {line.label:<24} {format_money(line.taxable_amount):>14} "
                f"@ {format_rate(line.rate):>7} = {format_money(line.tax):>12}"
            )
        lines.append("")

        if result.lease is not None:
            lease = result.lease
            lines.append("LEASE")
            lines.append("-" * 40)
            lines.append(f"  Method: {lease.method.value}")
            lines.append(f"  Due at signing: {format_money(lease.upfront_tax)}")
            lines.append(
                f"  Per payment: {format_money(lease.payment_tax)} x {lease.payment_count}"
            )
            lines.append("")

        if result.reciprocity is not None and result.reciprocity.granted:
            lines.append(
                f"Reciprocity credit: {format_money(result.reciprocity.credit_applied)}"
            )
            lines.append("")

        lines.append(f"TOTAL TAX: {format_money(result.total_tax)}")
        lines.append("")

        for title, items in (("NOTES", result.notes), ("WARNINGS", result.warnings)):
            if items:
                lines.append(title)
                lines.append("-" * 40)
                for item in items:
                    lines.append(f"  * {item}")
                lines.append("")

        return "\n".join(lines)
