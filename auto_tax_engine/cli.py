"""
Command-line interface for the Automotive Tax Engine.

Provides subcommands for single-deal and batch tax calculation and for
inspecting the jurisdiction rule catalog.
"""

from __future__ import annotations

import argparse
import csv
import json
import sys
from datetime import date
from pathlib import Path
from typing import Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from auto_tax_engine.calculator import TaxCalculator
from auto_tax_engine.config import get_settings
from auto_tax_engine.exceptions import TaxEngineError
from auto_tax_engine.log import configure_logging
from auto_tax_engine.models import FeeItem, TaxInput, TaxResult
from auto_tax_engine.money import format_money, format_rate, to_decimal
from auto_tax_engine.registry import default_registry
from auto_tax_engine.report_generator import ReportGenerator
from auto_tax_engine.rules import DealType, JurisdictionRuleSet, Taxability, VehicleClass

console = Console()


def _load_deals_csv(path: str) -> list[TaxInput]:
    """
    Load deals from a CSV file.

    Columns are ``TaxInput`` field names; ``jurisdiction`` is required.
    """
    deals: list[TaxInput] = []
    csv_path = Path(path)
    if not csv_path.exists():
        console.print(f"[red]File not found: {path}[/red]")
        sys.exit(1)

    with open(csv_path, newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        for i, row in enumerate(reader):
            row = {k.strip(): v.strip() for k, v in row.items() if k and v is not None}
            row.setdefault("deal_id", str(i + 1))
            try:
                deals.append(TaxInput.from_dict(row))
            except (KeyError, ValueError) as e:
                console.print(f"[yellow]Skipping row {i + 1}: {e}[/yellow]")
    return deals


def _load_deal_json(path: str) -> TaxInput:
    json_path = Path(path)
    if not json_path.exists():
        console.print(f"[red]File not found: {path}[/red]")
        sys.exit(1)
    return TaxInput.from_dict(json.loads(json_path.read_text(encoding="utf-8")))


def _deal_from_args(args: argparse.Namespace) -> TaxInput:
    jurisdiction = args.jurisdiction or get_settings().default_jurisdiction
    if not jurisdiction:
        console.print("[red]Provide --jurisdiction, or --file[/red]")
        sys.exit(1)

    def amount(value: Optional[str]):
        return to_decimal(value) if value else None

    other_fees = tuple(
        FeeItem(code.strip().upper(), to_decimal(value))
        for code, value in (item.split("=", 1) for item in args.fee or ())
    )
    return TaxInput(
        jurisdiction=jurisdiction.upper(),
        deal_type=DealType.LEASE if args.lease else DealType.RETAIL,
        as_of_date=date.fromisoformat(args.as_of) if args.as_of else None,
        deal_id="cli-calc",
        vehicle_price=amount(args.price),
        trade_in_value=to_decimal(args.trade_in),
        trade_in_payoff=to_decimal(args.payoff),
        manufacturer_rebate=to_decimal(args.mfr_rebate),
        dealer_rebate=to_decimal(args.dealer_rebate),
        doc_fee=to_decimal(args.doc_fee),
        accessories=to_decimal(args.accessories),
        service_contracts=to_decimal(args.service_contract),
        gap=to_decimal(args.gap),
        other_fees=other_fees,
        gross_cap_cost=amount(args.gross_cap_cost),
        cap_reduction_cash=to_decimal(args.cap_reduction),
        base_monthly_payment=amount(args.monthly_payment),
        payment_count=args.payments,
        home_jurisdiction=args.home.upper() if args.home else None,
        home_tax_paid=to_decimal(args.home_tax_paid),
        proof_of_tax_paid=args.proof,
        transaction_date=(
            date.fromisoformat(args.transaction_date) if args.transaction_date else None
        ),
        vehicle_class=VehicleClass(args.vehicle_class) if args.vehicle_class else None,
        body_type=args.body_type,
    )


def _print_result(result: TaxResult) -> None:
    stub = " [yellow](stub)[/yellow]" if not result.implemented else ""
    body = (
        f"[bold]Jurisdiction:[/bold] {result.jurisdiction} v{result.rule_version}{stub}\n"
        f"[bold]Deal Type:[/bold] {result.deal_type.value}\n"
        f"[bold]Scheme:[/bold] {result.scheme.value}\n"
        f"[bold]Taxable Amount:[/bold] {format_money(result.taxable_amount)}\n"
        f"[bold]Trade-in Credit:[/bold] {format_money(result.trade_in_credit)}\n"
        f"[bold]State Tax:[/bold] {format_money(result.state_tax)}\n"
        f"[bold]Local Tax:[/bold] {format_money(result.local_tax)}\n"
        f"[bold]Total Tax:[/bold] {format_money(result.total_tax)}\n"
        f"[bold]Effective Rate:[/bold] {format_rate(result.effective_rate)}"
    )
    if result.lease is not None:
        body += (
            f"\n[bold]Due at Signing:[/bold] {format_money(result.lease.upfront_tax)}"
            f"\n[bold]Per Payment:[/bold] {format_money(result.lease.payment_tax)}"
            f" x {result.lease.payment_count}"
        )
    console.print(Panel(body, title="Vehicle Tax Calculation", border_style="blue"))

    table = Table(title="Tax Lines", box=box.SIMPLE)
    table.add_column("Line")
    table.add_column("Taxable", justify="right")
    table.add_column("Rate", justify="right")
    table.add_column("Tax", justify="right", style="bold")
    for line in result.lines:
        table.add_row(
            line.label,
            format_money(line.taxable_amount),
            format_rate(line.rate),
            format_money(line.tax),
        )
    console.print(table)

    for n in result.notes:
        console.print(f"[dim]Note: {n}[/dim]")
    for w in result.warnings:
        console.print(f"[yellow]Warning: {w}[/yellow]")


# -----------------------------------------------------------------------
# Subcommand: calculate
# -----------------------------------------------------------------------


def cmd_calculate(args: argparse.Namespace) -> None:
    """Calculate tax for a single deal from flags or a JSON record."""
    deal = _load_deal_json(args.file) if args.file else _deal_from_args(args)
    result = TaxCalculator().calculate(deal)

    if args.json:
        rg = ReportGenerator(args.output_dir or get_settings().report_dir)
        console.print_json(rg.to_json(rg.result_report(result)))
        return
    _print_result(result)


# -----------------------------------------------------------------------
# Subcommand: batch
# -----------------------------------------------------------------------


def cmd_batch(args: argparse.Namespace) -> None:
    """Calculate tax for every deal in a CSV file."""
    deals = _load_deals_csv(args.file)
    batch = TaxCalculator().calculate_batch(deals)

    table = Table(title="Vehicle Tax Results", box=box.ROUNDED, show_lines=True)
    table.add_column("Deal", style="dim")
    table.add_column("Jurisdiction")
    table.add_column("Type")
    table.add_column("Taxable", justify="right")
    table.add_column("Tax", justify="right", style="bold")
    table.add_column("Rate", justify="right")
    table.add_column("Warnings", justify="center")

    for r in batch.results:
        table.add_row(
            r.deal_id[:12],
            f"{r.jurisdiction}{'' if r.implemented else '*'}",
            r.deal_type.value,
            format_money(r.taxable_amount),
            format_money(r.total_tax),
            format_rate(r.effective_rate),
            str(len(r.warnings)) if r.warnings else "",
        )

    console.print(table)
    console.print()
    console.print(
        Panel(
            f"[bold]Deals:[/bold] {batch.deal_count}\n"
            f"[bold]Calculated:[/bold] {len(batch.results)}\n"
            f"[bold]Total Tax:[/bold] {format_money(batch.total_tax)}",
            title="Batch Summary",
            border_style="green",
        )
    )
    for e in batch.errors:
        console.print(f"[red]Error: {e}[/red]")

    if args.export_json or args.export_csv:
        rg = ReportGenerator(args.output_dir or get_settings().report_dir)
        if args.export_json:
            rg.to_json(rg.batch_report(batch, period_label=args.period or ""), args.export_json)
            console.print(f"[green]JSON exported to {args.export_json}[/green]")
        if args.export_csv:
            rg.to_csv(batch.results, args.export_csv)
            console.print(f"[green]CSV exported to {args.export_csv}[/green]")


# -----------------------------------------------------------------------
# Subcommand: rules
# -----------------------------------------------------------------------


def _taxability_text(taxability: Taxability) -> str:
    text = "taxable" if taxability.taxable else "exempt"
    if taxability.fixed_rate is not None:
        text += f" @ {format_rate(taxability.fixed_rate)}"
    if taxability.is_conservative:
        text += " [yellow](default)[/yellow]"
    return text


def _print_rule_set(rule: JurisdictionRuleSet) -> None:
    threshold = "None"
    if rule.rate_threshold is not None:
        t = rule.rate_threshold
        threshold = (
            f"{format_rate(t.rate)} above {format_money(t.amount)} ({t.evaluation.value})"
        )
    policy = rule.trade_in_policy
    trade_in = policy.kind.value
    if policy.cap is not None:
        trade_in += f" (cap {format_money(policy.cap)})"
    if policy.percent is not None:
        trade_in += f" ({format_rate(policy.percent)})"

    console.print(
        Panel(
            f"[bold]Jurisdiction:[/bold] {rule.name} ({rule.code})\n"
            f"[bold]Version:[/bold] {rule.version} "
            f"from {rule.effective_from.isoformat()}"
            f"{' to ' + rule.effective_to.isoformat() if rule.effective_to else ''}\n"
            f"[bold]Implemented:[/bold] {'Yes' if rule.implemented else 'No (stub)'}\n"
            f"[bold]Scheme:[/bold] {rule.vehicle_tax_scheme.value}\n"
            f"[bold]State Rate:[/bold] {format_rate(rule.state_rate)}\n"
            f"[bold]Default Local Rate:[/bold] {format_rate(rule.default_local_rate)}\n"
            f"[bold]Threshold:[/bold] {threshold}\n"
            f"[bold]Trade-in:[/bold] {trade_in}\n"
            f"[bold]Negative Equity:[/bold] {_taxability_text(rule.negative_equity)}\n"
            f"[bold]Lease:[/bold] {rule.lease.method.value} / {rule.lease.special_scheme.value}\n"
            f"[bold]Reciprocity:[/bold] "
            f"{rule.reciprocity.home_state_behavior.value if rule.reciprocity.enabled else 'none'}\n"
            f"[bold]Notes:[/bold] {rule.notes}",
            title=f"{rule.name} Vehicle Tax Rules",
            border_style="cyan",
        )
    )

    table = Table(title="Taxability", box=box.SIMPLE)
    table.add_column("Item")
    table.add_column("Treatment")
    for kind, taxability in rule.rebates.items():
        table.add_row(f"{kind.value} rebate", _taxability_text(taxability))
    for code, taxability in rule.fees.items():
        table.add_row(f"fee {code}", _taxability_text(taxability))
    for kind, taxability in rule.products.items():
        table.add_row(kind.value, _taxability_text(taxability))
    console.print(table)

    for source in rule.sources:
        console.print(f"[dim]Source: {source}[/dim]")


def cmd_rules(args: argparse.Namespace) -> None:
    """Show the rule set in force for a jurisdiction."""
    as_of = date.fromisoformat(args.as_of) if args.as_of else date.today()
    rule = default_registry().resolve(args.jurisdiction, as_of)
    _print_rule_set(rule)


# -----------------------------------------------------------------------
# Subcommand: jurisdictions
# -----------------------------------------------------------------------


def cmd_jurisdictions(args: argparse.Namespace) -> None:
    """List catalog jurisdictions, researched and stub."""
    registry = default_registry()
    implemented = registry.list_implemented()

    table = Table(title="Jurisdictions", box=box.ROUNDED)
    table.add_column("Code", style="bold")
    table.add_column("Name")
    table.add_column("Scheme")
    table.add_column("Versions", justify="right")
    table.add_column("Status")

    for code in registry.codes:
        if args.implemented and code not in implemented:
            continue
        versions = registry.versions(code)
        latest = versions[-1]
        table.add_row(
            code,
            latest.name,
            latest.vehicle_tax_scheme.value,
            str(len(versions)),
            "researched" if code in implemented else "[dim]stub[/dim]",
        )
    console.print(table)
    console.print(
        f"{len(implemented)} researched, {len(registry.list_stubs())} stub jurisdictions"
    )


# -----------------------------------------------------------------------
# Argument parser
# -----------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="auto-tax",
        description="Automotive Tax Engine - Vehicle sales, use and lease tax by jurisdiction",
    )
    parser.add_argument("--log-level", help="Logging level (default from settings)")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # calculate
    calc_p = subparsers.add_parser("calculate", help="Calculate tax for one deal")
    calc_p.add_argument("--jurisdiction", "-j", help="Jurisdiction code, e.g. CT")
    calc_p.add_argument("--as-of", help="Rule date (YYYY-MM-DD), default today")
    calc_p.add_argument("--lease", action="store_true", help="Treat as a lease")
    calc_p.add_argument("--price", help="Vehicle price")
    calc_p.add_argument("--trade-in", help="Trade-in value")
    calc_p.add_argument("--payoff", help="Trade-in loan payoff")
    calc_p.add_argument("--mfr-rebate", help="Manufacturer rebate")
    calc_p.add_argument("--dealer-rebate", help="Dealer rebate")
    calc_p.add_argument("--doc-fee", help="Documentation fee")
    calc_p.add_argument("--fee", action="append", help="Other fee as CODE=AMOUNT")
    calc_p.add_argument("--accessories", help="Accessories amount")
    calc_p.add_argument("--service-contract", help="Service contract amount")
    calc_p.add_argument("--gap", help="GAP amount")
    calc_p.add_argument("--gross-cap-cost", help="Lease gross capitalized cost")
    calc_p.add_argument("--cap-reduction", help="Lease cash cap cost reduction")
    calc_p.add_argument("--monthly-payment", help="Lease base monthly payment")
    calc_p.add_argument("--payments", type=int, help="Lease payment count")
    calc_p.add_argument("--home", help="Jurisdiction where tax was already paid")
    calc_p.add_argument("--home-tax-paid", help="Tax already paid elsewhere")
    calc_p.add_argument("--proof", action="store_true", help="Proof of tax paid provided")
    calc_p.add_argument("--transaction-date", help="Transaction date (YYYY-MM-DD)")
    calc_p.add_argument(
        "--vehicle-class", choices=[c.value for c in VehicleClass], help="Vehicle class"
    )
    calc_p.add_argument("--body-type", help="Body type, e.g. SEDAN")
    calc_p.add_argument("--file", "-f", help="JSON file with one deal record")
    calc_p.add_argument("--json", action="store_true", help="Print the report as JSON")
    calc_p.add_argument("--output-dir", help="Output directory for exports")
    calc_p.set_defaults(func=cmd_calculate)

    # batch
    batch_p = subparsers.add_parser("batch", help="Calculate tax for a CSV of deals")
    batch_p.add_argument("--file", "-f", required=True, help="CSV file with deals")
    batch_p.add_argument("--period", help="Period label for reports")
    batch_p.add_argument("--export-json", help="Export batch report to JSON filename")
    batch_p.add_argument("--export-csv", help="Export tax lines to CSV filename")
    batch_p.add_argument("--output-dir", help="Output directory for exports")
    batch_p.set_defaults(func=cmd_batch)

    # rules
    rules_p = subparsers.add_parser("rules", help="Show a jurisdiction's rule set")
    rules_p.add_argument("--jurisdiction", "-j", required=True, help="Jurisdiction code")
    rules_p.add_argument("--as-of", help="Rule date (YYYY-MM-DD), default today")
    rules_p.set_defaults(func=cmd_rules)

    # jurisdictions
    jur_p = subparsers.add_parser("jurisdictions", help="List catalog jurisdictions")
    jur_p.add_argument(
        "--implemented", action="store_true", help="Only researched jurisdictions"
    )
    jur_p.set_defaults(func=cmd_jurisdictions)

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    configure_logging(args.log_level or get_settings().log_level)
    try:
        args.func(args)
    except TaxEngineError as e:
        console.print(f"[red]Error ({e.code}): {e.message}[/red]")
        sys.exit(1)
