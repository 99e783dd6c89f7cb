#!/usr/bin/env python
"""Report runner CLI.

Load the staging CSVs and print report results as JSON.

Usage:
    # List the catalog
    uv run python scripts/run_reports.py --list

    # Run every report
    uv run python scripts/run_reports.py --staging-dir data/staging

    # Run selected reports by name or code
    uv run python scripts/run_reports.py --report Q1 --report product_profit

    # Fix "today" for the recency reports
    uv run python scripts/run_reports.py --report Q22 --reference-date 2024-06-30
"""

from __future__ import annotations

import argparse
import sys
from datetime import date

from fashion_analytics.core.config import get_settings
from fashion_analytics.core.exceptions import IngestError, NotFoundError
from fashion_analytics.core.logging import configure_logging, correlation_scope, get_logger
from fashion_analytics.features.records.loader import load_staging_dir
from fashion_analytics.features.reports.catalog import list_reports
from fashion_analytics.features.reports.schemas import ReportParameters
from fashion_analytics.features.reports.service import ReportService

logger = get_logger(__name__)


def parse_date(date_str: str) -> date:
    """Parse date string in YYYY-MM-DD format.

    Raises:
        argparse.ArgumentTypeError: If date format is invalid.
    """
    try:
        return date.fromisoformat(date_str)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Invalid date format: {date_str}. Use YYYY-MM-DD") from e


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI."""
    parser = argparse.ArgumentParser(
        description="Fashion store analytics report runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Everything, from the configured staging directory
  run_reports.py

  # Two reports from another directory
  run_reports.py --staging-dir /tmp/staging --report Q4 --report Q18
        """,
    )
    parser.add_argument(
        "--staging-dir",
        default=None,
        help="Directory with the staging CSVs (default: STAGING_DIR setting)",
    )
    parser.add_argument(
        "--report",
        action="append",
        dest="reports",
        metavar="NAME",
        help="Report name or code to run; repeatable (default: all)",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List available reports and exit",
    )
    parser.add_argument(
        "--reference-date",
        type=parse_date,
        default=None,
        help="Reference date for recency windows (YYYY-MM-DD, default: today)",
    )
    return parser


def print_catalog() -> None:
    """Print one line per report."""
    for definition in list_reports():
        print(f"{definition.code:<4} {definition.name:<34} {', '.join(definition.columns)}")


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    args = create_parser().parse_args(argv)
    configure_logging()

    if args.list:
        print_catalog()
        return 0

    settings = get_settings()

    with correlation_scope():
        try:
            loaded = load_staging_dir(args.staging_dir, settings)
        except IngestError as e:
            print(f"ERROR: {e.message}", file=sys.stderr)
            return 1

        if loaded.rejected:
            print(f"WARN: {len(loaded.rejected)} staging row(s) rejected", file=sys.stderr)
            for rejected in loaded.rejected:
                print(
                    f"  {rejected.table.value}[{rejected.row_index}] "
                    f"{rejected.error_code}: {rejected.error_message}",
                    file=sys.stderr,
                )

        parameters = ReportParameters.from_settings(settings, reference_date=args.reference_date)
        service = ReportService(loaded.store, parameters)

        try:
            batch = service.run_many(args.reports)
        except NotFoundError as e:
            print(f"ERROR: {e.message}", file=sys.stderr)
            return 1

    print(batch.model_dump_json(indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
