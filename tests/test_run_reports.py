"""End-to-end tests for the report runner CLI."""

import json
import subprocess
import sys
from pathlib import Path

import pytest

SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "run_reports.py"


def run_cli(*args: str) -> subprocess.CompletedProcess[str]:
    """Run the CLI in a fresh interpreter."""
    return subprocess.run(
        [sys.executable, str(SCRIPT), *args],
        capture_output=True,
        text=True,
        check=False,
        timeout=120,
    )


@pytest.fixture
def staging_dir(tmp_path, staging_rows):
    """Write staging_rows as the four staging CSVs."""
    files = {
        "customers": "customers.csv",
        "products": "products.csv",
        "sales": "sales.csv",
        "sale_items": "salesitems.csv",
    }
    for table, file_name in files.items():
        rows = staging_rows[table]
        header = list(rows[0])
        lines = [",".join(header)] + [",".join(row[c] for c in header) for row in rows]
        (tmp_path / file_name).write_text("\n".join(lines) + "\n")
    return tmp_path


def test_list_catalog():
    """--list prints one line per report."""
    result = run_cli("--list")

    assert result.returncode == 0
    lines = result.stdout.strip().splitlines()
    assert len(lines) == 25
    assert lines[0].startswith("Q1 ")


def test_run_selected_reports(staging_dir):
    """Selected reports are printed as a JSON batch after the log lines."""
    result = run_cli("--staging-dir", str(staging_dir), "--report", "Q4", "--report", "Q5")

    assert result.returncode == 0
    out = result.stdout
    batch = json.loads(out[out.index('{\n  "results"') :])
    assert [r["code"] for r in batch["results"]] == ["Q4", "Q5"]
    assert batch["results"][1]["rows"] == [{"customer_id": 1, "product_id": 11, "profit": -5.0}]


def test_reference_date_flag(staging_dir):
    """--reference-date feeds the recency window."""
    result = run_cli(
        "--staging-dir", str(staging_dir), "--report", "Q22", "--reference-date", "2024-08-01"
    )

    assert result.returncode == 0
    assert '"code": "Q22"' in result.stdout


def test_missing_staging_dir(tmp_path):
    """A missing directory is reported with a non-zero exit code."""
    result = run_cli("--staging-dir", str(tmp_path / "absent"))

    assert result.returncode == 1
    assert "Staging directory not found" in result.stderr


def test_unknown_report(staging_dir):
    """Unknown report names fail before anything runs."""
    result = run_cli("--staging-dir", str(staging_dir), "--report", "nope")

    assert result.returncode == 1
    assert "Unknown report" in result.stderr


def test_bad_reference_date():
    """Malformed dates are rejected by argparse."""
    result = run_cli("--reference-date", "31/12/2024")

    assert result.returncode == 2
    assert "Invalid date format" in result.stderr
