#!/usr/bin/env python3
"""
Quick Start Example
===================

Demonstrates basic usage of the TaxCalculator: a Connecticut retail deal
that crosses the luxury rate threshold, then a lease in the same state.

Usage:
    python examples/quick_start.py
"""

from datetime import date
from decimal import Decimal

from auto_tax_engine import TaxCalculator, TaxInput
from auto_tax_engine.rules import DealType


def main() -> None:
    calculator = TaxCalculator()

    # $52,000 vehicle with a $10,000 trade-in and $500 doc fee
    deal = TaxInput(
        jurisdiction="CT",
        as_of_date=date(2024, 6, 1),
        deal_id="DEAL-001",
        vehicle_price=Decimal("52000"),
        trade_in_value=Decimal("10000"),
        doc_fee=Decimal("500"),
    )
    result = calculator.calculate(deal)

    print(f"Deal:           {result.deal_id}")
    print(f"Jurisdiction:   {result.jurisdiction} v{result.rule_version}")
    print(f"Taxable Amount: ${result.taxable_amount:,.2f}")
    print(f"Trade-in Credit:${result.trade_in_credit:,.2f}")
    for line in result.lines:
        print(f"  {line.label:<10} {line.rate:.4%} = ${line.tax:,.2f}")
    print(f"Total Tax:      ${result.total_tax:,.2f}")
    for w in result.warnings:
        print(f"Warning:        {w}")

    print("\n--- Lease ---")
    lease = TaxInput(
        jurisdiction="CT",
        deal_type=DealType.LEASE,
        as_of_date=date(2024, 6, 1),
        deal_id="DEAL-002",
        gross_cap_cost=Decimal("55000"),
        cap_reduction_cash=Decimal("5000"),
        base_monthly_payment=Decimal("480"),
        payment_count=36,
    )
    lease_result = calculator.calculate(lease)
    print(f"Method:         {lease_result.lease.method.value}")
    print(f"Due at signing: ${lease_result.lease.upfront_tax:,.2f}")
    print(f"Per payment:    ${lease_result.lease.payment_tax:,.2f}")
    print(f"Over the term:  ${lease_result.total_tax:,.2f}")


if __name__ == "__main__":
    main()
