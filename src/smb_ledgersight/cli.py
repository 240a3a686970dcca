# SMB LedgerSight - Ledger classification & cash-flow forecasting for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Command-line interface for SMB LedgerSight.

Usage overview
--------------

    smb-ledgersight [--config PATH] [--user EMAIL] [-v | --debug] COMMAND ...

Commands
--------

import
    Import a bank ledger and/or a report workbook for a user:

        smb-ledgersight import --ledger data/bank_2024.xlsx
        smb-ledgersight import --reports data/reports_2023.xlsx --ledger data/bank.csv

    Report sheets extend the chart of accounts and store annual summaries;
    ledger rows are classified, stored, then payroll and debts are synced.
    The import counters are printed, followed by the rejected rows when
    `--show-rejections` is given.

forecast
    Print the 30-day cash-flow forecast of a user:

        smb-ledgersight forecast
        smb-ledgersight forecast --anchor 2024-06-30 --points

payroll
    Print the inferred payroll log of a user, or the summary of one month
    (net pay, employee and employer CPF per employee):

        smb-ledgersight payroll
        smb-ledgersight payroll --month 4 --year 2024

categories
    Print the stored chart of accounts.

debts
    Print the detected debts with interest, total due and status.

Logging
-------
Diagnostics go through the `logging` module: WARNING by default, INFO with
`-v/--verbose`, DEBUG with `--debug`.
"""

import argparse
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional

from . import __version__
from .config import load_app_config
from .io import read_ledger, read_report_workbook
from .ledger_service import (
    cash_flow_forecast,
    category_tree,
    debt_overview,
    payroll_overview,
    payroll_period_summary,
    run_import,
)
from .views import (
    category_tree_view,
    debts_view,
    forecast_points_view,
    forecast_summary_view,
    import_report_view,
    payroll_summary_view,
)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(verbose: bool = False, debug: bool = False) -> None:
    """Configure root logging once for the CLI."""
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT)


def _build_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for the CLI."""
    ap = argparse.ArgumentParser(
        prog="smb-ledgersight",
        description=(
            "SMB LedgerSight - Ledger classification & cash-flow forecasting "
            "for SMBs. Classifies bank ledger rows into a chart of accounts, "
            "infers payroll from transaction text and projects the cash "
            "balance over the next 30 days."
        ),
    )

    # Generic options
    ap.add_argument(
        "--version",
        action="store_true",
        help="Show the installed version of smb_ledgersight and exit.",
    )
    ap.add_argument(
        "--config",
        dest="config_path",
        help=(
            "Path to the main TOML configuration file. If omitted, "
            "'smb_ledgersight_config.toml' in the current directory is used "
            "when present, built-in defaults otherwise."
        ),
    )
    ap.add_argument(
        "--user",
        dest="user_id",
        help="User / organisation e-mail. Defaults to [user].id of the config.",
    )
    ap.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log progress information (INFO level).",
    )
    ap.add_argument(
        "--debug",
        action="store_true",
        help="Log every classification decision (DEBUG level).",
    )

    subparsers = ap.add_subparsers(dest="command", metavar="command")

    # import
    import_parser = subparsers.add_parser(
        "import",
        help="Import a bank ledger and/or a report workbook.",
    )
    import_parser.add_argument(
        "--ledger",
        dest="ledger_path",
        metavar="PATH",
        help="Bank ledger file (.csv, .xlsx).",
    )
    import_parser.add_argument(
        "--reports",
        dest="reports_path",
        metavar="PATH",
        help="Report workbook with P&L / balance sheet sheets (.xlsx, .csv).",
    )
    import_parser.add_argument(
        "--show-rejections",
        action="store_true",
        help="Print every rejected or skipped ledger row.",
    )

    # forecast
    forecast_parser = subparsers.add_parser(
        "forecast",
        help="Print the 30-day cash-flow forecast.",
    )
    forecast_parser.add_argument(
        "--anchor",
        dest="anchor",
        metavar="YYYY-MM-DD",
        help="Anchor date (defaults to the latest transaction date).",
    )
    forecast_parser.add_argument(
        "--points",
        action="store_true",
        help="Also print the balance chart points.",
    )

    # payroll
    payroll_parser = subparsers.add_parser(
        "payroll",
        help="Print the inferred payroll log or one month's summary.",
    )
    payroll_parser.add_argument(
        "--month",
        type=int,
        choices=range(1, 13),
        metavar="1-12",
        help="Month of the summary (requires --year).",
    )
    payroll_parser.add_argument(
        "--year",
        type=int,
        help="Year of the summary (requires --month).",
    )

    subparsers.add_parser("categories", help="Print the chart of accounts.")
    subparsers.add_parser("debts", help="Print the detected debts.")

    return ap


def _parse_optional_date(value: Optional[str]) -> Optional[date]:
    """
    Parse an optional CLI date argument (YYYY-MM-DD).

    Raises
    ------
    SystemExit
        If the date format is invalid.
    """
    if value is None:
        return None

    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        msg = f"Invalid date format: {value!r}. Expected YYYY-MM-DD."
        raise SystemExit(msg) from exc


def _handle_import(args: argparse.Namespace, config, user_id: str, parser) -> None:
    if not args.ledger_path and not args.reports_path:
        parser.error("import: give --ledger and/or --reports.")

    ledger = None
    sheets = None
    if args.reports_path:
        path = Path(args.reports_path)
        if not path.is_file():
            parser.error(f"Report workbook not found: {path}")
        sheets = read_report_workbook(path)
    if args.ledger_path:
        path = Path(args.ledger_path)
        if not path.is_file():
            parser.error(f"Ledger file not found: {path}")
        ledger = read_ledger(path)

    report = run_import(config, user_id=user_id, ledger=ledger, report_sheets=sheets)

    print(f"Import for {report.user_id}")
    print(import_report_view(report).to_string(index=False))
    if report.failures:
        print("\nStorage failures (re-run the import to complete):")
        for line in report.failures:
            print(f"  - {line}")
    if args.show_rejections and report.rejections:
        print("\nRejected / skipped rows:")
        for line in report.rejections:
            print(f"  {line}")


def _handle_forecast(args: argparse.Namespace, config, user_id: str) -> None:
    anchor = _parse_optional_date(args.anchor)
    result = cash_flow_forecast(config, user_id=user_id, anchor_date=anchor)

    print(f"Cash-flow forecast for {user_id}")
    print(forecast_summary_view(result).to_string(index=False))
    if not result.monthly.empty:
        print("\nMonthly history used:")
        print(result.monthly.to_string(index=False))
    if args.points:
        print("\nBalance chart:")
        print(forecast_points_view(result).to_string(index=False))


def _handle_payroll(args: argparse.Namespace, config, user_id: str, parser) -> None:
    if (args.month is None) != (args.year is None):
        parser.error("payroll: give --month and --year together.")
    if args.month is not None:
        summary = payroll_period_summary(
            config, user_id=user_id, month=args.month, year=args.year
        )
        print(payroll_summary_view(summary).to_string(index=False))
        if summary.lines.empty:
            print(f"\nNo payroll logged for {summary.label}.")
        else:
            print()
            print(summary.lines.to_string(index=False))
        return

    df = payroll_overview(config, user_id=user_id)
    if df.empty:
        print("No payroll entries inferred yet.")
        return
    print(df.to_string(index=False))


def _handle_categories(config) -> None:
    tree = category_tree(config)
    if len(tree) == 0:
        print("No categories stored yet.")
        return
    print(category_tree_view(tree).to_string(index=False))


def _handle_debts(config, user_id: str) -> None:
    details = debt_overview(config, user_id=user_id)
    if not details:
        print("No debts detected.")
        return
    print(debts_view(details).to_string(index=False))


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for the SMB LedgerSight CLI.

    Parses the command line, configures logging, loads the configuration
    and dispatches to the requested command. Returns the process exit code.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    # --version: short-circuit and exit early.
    if args.version:
        print(f"smb_ledgersight version {__version__}")
        return 0

    setup_logging(verbose=args.verbose, debug=args.debug)

    if not args.command:
        parser.print_help()
        return 1

    try:
        config = load_app_config(args.config_path)
    except (FileNotFoundError, ValueError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    user_id = (args.user_id or config.user_id).strip().lower()

    try:
        if args.command == "import":
            _handle_import(args, config, user_id, parser)
        elif args.command == "forecast":
            _handle_forecast(args, config, user_id)
        elif args.command == "payroll":
            _handle_payroll(args, config, user_id, parser)
        elif args.command == "categories":
            _handle_categories(config)
        elif args.command == "debts":
            _handle_debts(config, user_id)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
