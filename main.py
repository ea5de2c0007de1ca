#!/usr/bin/env python3
"""
Automotive Tax Engine - Entry Point

Calculates vehicle sales, use and lease tax for dealership deals under
each jurisdiction's effective-dated rules.

Usage:
    python main.py calculate -j CT --price 52000 --trade-in 10000 --doc-fee 500
    python main.py calculate -j CT --lease --gross-cap-cost 55000 --cap-reduction 5000 \
        --monthly-payment 480 --payments 36
    python main.py calculate --file deal.json --json
    python main.py batch --file deals.csv --export-json batch.json --export-csv lines.csv
    python main.py rules -j MA --as-of 2012-03-01
    python main.py jurisdictions --implemented
"""

from auto_tax_engine.cli import main

if __name__ == "__main__":
    main()
