"""Tests for the auto-tax command line."""

import json

import pytest
from rich.console import Console

from auto_tax_engine import cli


@pytest.fixture
def console(monkeypatch) -> Console:
    recording = Console(record=True, width=160)
    monkeypatch.setattr(cli, "console", recording)
    return recording


def _run(*argv: str) -> None:
    cli.main(list(argv))


# ── calculate ────────────────────────────────────────────────────────


def test_calculate_retail(console: Console):
    _run(
        "calculate", "-j", "CT", "--as-of", "2024-06-01",
        "--price", "52000", "--trade-in", "10000", "--doc-fee", "500",
    )
    out = console.export_text()
    assert "$3,293.75" in out
    assert "Rate trap" in out


def test_calculate_lease(console: Console):
    _run(
        "calculate", "-j", "ct", "--as-of", "2024-06-01", "--lease",
        "--gross-cap-cost", "55000", "--cap-reduction", "5000",
        "--monthly-payment", "480", "--payments", "36",
    )
    out = console.export_text()
    assert "Due at Signing: $387.50" in out
    assert "Per Payment: $37.20 x 36" in out


def test_calculate_json(console: Console, tmp_path):
    _run(
        "calculate", "-j", "CT", "--as-of", "2024-06-01", "--price", "28000",
        "--mfr-rebate", "3000", "--json", "--output-dir", str(tmp_path),
    )
    data = json.loads(console.export_text())
    assert data["summary"]["total_tax"] == 1778.0


def test_calculate_from_file(console: Console, tmp_path):
    path = tmp_path / "deal.json"
    path.write_text(
        json.dumps(
            {
                "jurisdiction": "WV",
                "as_of_date": "2024-06-01",
                "vehicle_price": "50000",
                "body_type": "camper",
            }
        )
    )
    _run("calculate", "--file", str(path))
    assert "$3,000.00" in console.export_text()


def test_calculate_unknown_jurisdiction_exits(console: Console):
    with pytest.raises(SystemExit) as exc:
        _run("calculate", "-j", "ZZ", "--price", "1000")
    assert exc.value.code == 1
    assert "UNKNOWN_JURISDICTION" in console.export_text()


def test_retail_without_price_exits(console: Console):
    with pytest.raises(SystemExit) as exc:
        _run("calculate", "-j", "CT", "--as-of", "2024-06-01")
    assert exc.value.code == 1
    assert "MISSING_REQUIRED_FIELD" in console.export_text()


def test_missing_classification_exits(console: Console):
    with pytest.raises(SystemExit) as exc:
        _run("calculate", "-j", "WV", "--as-of", "2024-06-01", "--price", "30000")
    assert exc.value.code == 1
    assert "MISSING_CLASSIFICATION" in console.export_text()


# ── batch ────────────────────────────────────────────────────────────


def test_batch_with_exports(console: Console, tmp_path):
    deals = tmp_path / "deals.csv"
    deals.write_text(
        "deal_id,jurisdiction,as_of_date,vehicle_price,trade_in_value\n"
        "A1,CT,2024-06-01,20000,\n"
        "A2,MA,2012-03-01,30000,15000\n"
        "A3,ZZ,2024-06-01,10000,\n"
    )
    _run(
        "batch", "--file", str(deals), "--period", "2024-06",
        "--export-json", "batch.json", "--export-csv", "lines.csv",
        "--output-dir", str(tmp_path),
    )
    out = console.export_text()
    assert "$2,520.00" in out
    assert "Unknown jurisdiction: ZZ" in out

    report = json.loads((tmp_path / "batch.json").read_text())
    assert report["summary"]["total_deals"] == 3
    assert report["summary"]["failed_deals"] == 1
    assert (tmp_path / "lines.csv").read_text().count("\n") == 3


def test_batch_missing_file_exits(console: Console, tmp_path):
    with pytest.raises(SystemExit):
        _run("batch", "--file", str(tmp_path / "nope.csv"))


# ── rules and jurisdictions ──────────────────────────────────────────


def test_rules_by_date(console: Console):
    _run("rules", "-j", "MA", "--as-of", "2012-03-01")
    out = console.export_text()
    assert "capped (cap $10,000.00)" in out
    assert "830 CMR 64H.25.1" in out


def test_jurisdictions_listing(console: Console):
    _run("jurisdictions")
    out = console.export_text()
    assert "22 researched, 29 stub jurisdictions" in out
    assert "DC" in out


def test_jurisdictions_implemented_only(console: Console):
    _run("jurisdictions", "--implemented")
    out = console.export_text()
    assert "Georgia" in out
    assert "Texas" not in out


def test_no_command_prints_help():
    with pytest.raises(SystemExit) as exc:
        _run()
    assert exc.value.code == 0
