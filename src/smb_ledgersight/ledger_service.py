# SMB LedgerSight - Ledger classification & cash-flow forecasting for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.


"""
High-level services: one import run and one dashboard forecast.

This module sits between:
- the algorithmic core (`resolver`, `classifier`, `payroll`, `forecast`,
  `debts`), which never touches storage, and
- user-facing layers such as the CLI.

Import run
----------
`run_import` processes one upload for one user:

    1) load the stored category tree (seeded from the configured chart of
       accounts CSV on first use),
    2) resolve report sheets into the tree and collect annual summaries,
    3) persist new categories, then the merged annual summaries,
    4) classify the ledger rows against the same tree instance,
    5) store the transactions (chunked, idempotent),
    6) run the payroll sync over the user's whole stored history,
    7) detect debts from loan disbursements.

Every storage step is a separate unit: a `sqlite3.Error` (or a value that
cannot be stored) in one unit is logged, recorded in `ImportReport.failures` and the run continues with the
next unit. The in-memory results of the run are kept in the report. Since
every write is idempotent, re-running the same import completes whatever a
failed unit left out.

Dashboard forecast
------------------
`cash_flow_forecast` anchors the forecast on the user's latest transaction
date (today when there is none) and feeds the stored history to
`forecast.build_forecast`.
"""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

import pandas as pd

from .categories import CategoryTree, load_category_tree
from .classifier import TransactionClassifier, classify_ledger
from .config import AppConfig
from .db import (
    ROW_ERRORS,
    init_database,
    insert_debts,
    insert_employees,
    insert_transactions,
    latest_transaction_date,
    load_categories,
    load_debts,
    load_employees,
    load_logged_transaction_ids,
    load_payroll_logs,
    load_transaction_records,
    load_transactions,
    save_categories,
    upsert_annual_summaries,
    upsert_payroll_logs,
)
from .debts import DebtDetails, debt_details, detect_debts
from .forecast import ForecastResult, build_forecast
from .payroll import PayrollInferencer, PayrollPeriodSummary, payroll_summary
from .periods import _today
from .resolver import merge_annual_summaries, resolve_workbook

logger = logging.getLogger(__name__)


@dataclass
class ImportReport:
    """
    Outcome of one import run.

    Counters describe what was computed and what was written; `failures`
    lists the storage units that failed ("unit: error").
    """

    user_id: str
    rows_total: int = 0
    matched: int = 0
    rejected: int = 0
    skipped_empty: int = 0
    duplicates_in_batch: int = 0
    categories_created: int = 0
    summaries_written: int = 0
    transactions_inserted: int = 0
    transactions_already_stored: int = 0
    transactions_failed: int = 0
    employees_created: int = 0
    payroll_logs_written: int = 0
    debts_created: int = 0
    rejections: list[str] = field(default_factory=list)
    failures: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def _run_unit(report: ImportReport, unit: str, func, *args, **kwargs) -> Any:
    """Run one storage unit, recording its error instead of raising."""
    try:
        return func(*args, **kwargs)
    except ROW_ERRORS as exc:
        logger.exception("Import unit %r failed", unit)
        report.failures.append(f"{unit}: {exc}")
        return None


def _load_tree(app_config: AppConfig, report: ImportReport) -> CategoryTree:
    cfg = app_config.database
    tree = _run_unit(report, "load categories", load_categories, cfg)
    if tree is None:
        tree = CategoryTree()
    if len(tree) == 0 and app_config.chart_of_accounts is not None:
        seeded = load_category_tree(str(app_config.chart_of_accounts))
        written = _run_unit(report, "seed categories", save_categories, cfg, list(seeded))
        if written is not None:
            logger.info("Seeded %d categories from %s", written, app_config.chart_of_accounts)
        tree = seeded
    return tree


def _sync_payroll(app_config: AppConfig, user_id: str, report: ImportReport) -> None:
    cfg = app_config.database
    tree = load_categories(cfg)
    records = load_transaction_records(cfg, user_id)
    result = PayrollInferencer(app_config.payroll).sync(
        records,
        tree,
        user_id=user_id,
        employees=load_employees(cfg, user_id),
        logged_transaction_ids=load_logged_transaction_ids(cfg, user_id),
    )
    report.employees_created = insert_employees(cfg, result.new_employees)
    report.payroll_logs_written = upsert_payroll_logs(cfg, user_id, result.new_logs)


def _sync_debts(app_config: AppConfig, user_id: str, report: ImportReport) -> None:
    cfg = app_config.database
    existing = {d.key for d in load_debts(cfg, user_id)}
    debts = detect_debts(
        load_transaction_records(cfg, user_id),
        user_id=user_id,
        existing_keys=existing,
    )
    report.debts_created = insert_debts(cfg, debts)


def run_import(
    app_config: AppConfig,
    *,
    user_id: str,
    ledger: Optional[pd.DataFrame] = None,
    report_sheets: Optional[Mapping[str, Sequence[Sequence[Any]]]] = None,
) -> ImportReport:
    """
    Run one import for a user.

    Parameters
    ----------
    app_config:
        Application configuration (database, keywords, settings).
    user_id:
        Owner of the imported data (organisation e-mail).
    ledger:
        Normalized ledger rows as returned by `io.read_ledger`, or None.
    report_sheets:
        Report workbook sheets as returned by `io.read_report_workbook`,
        or None.

    Returns
    -------
    ImportReport

    Raises
    ------
    ValueError
        If the database engine is not supported.
    """
    user_key = user_id.strip().lower()
    cfg = app_config.database
    report = ImportReport(user_id=user_key)

    init_database(cfg)
    tree = _load_tree(app_config, report)

    # 1) Report sheets -> categories + annual summaries
    summaries = []
    if report_sheets:
        summaries = merge_annual_summaries(
            resolve_workbook(report_sheets, tree, user_id=user_key)
        )

    created = tree.created
    report.categories_created = len(created)
    if created:
        if _run_unit(report, "categories", save_categories, cfg, created) is not None:
            tree.mark_persisted()
    if summaries:
        written = _run_unit(report, "annual summaries", upsert_annual_summaries, cfg, summaries)
        report.summaries_written = written or 0

    if ledger is None:
        logger.info("Import for %s finished (no ledger).", user_key)
        return report

    # 2) Ledger -> classified transactions
    classifier = TransactionClassifier(tree, keywords=app_config.classifier)
    result = classify_ledger(ledger, classifier, user_id=user_key)
    report.rows_total = result.rows_total
    report.matched = result.matched
    report.rejected = result.rejected
    report.skipped_empty = result.skipped_empty
    report.duplicates_in_batch = result.duplicates_in_batch
    report.rejections = list(result.rejections)

    stats = _run_unit(report, "transactions", insert_transactions, cfg, result.transactions)
    if stats is not None:
        report.transactions_inserted = stats.rows_inserted
        report.transactions_already_stored = stats.duplicates_skipped
        report.transactions_failed = stats.rows_failed

    # 3) Downstream syncs over the stored history
    _run_unit(report, "payroll", _sync_payroll, app_config, user_key, report)
    _run_unit(report, "debts", _sync_debts, app_config, user_key, report)

    logger.info(
        "Import for %s finished: %d rows, %d matched, %d stored, %d failures",
        user_key,
        report.rows_total,
        report.matched,
        report.transactions_inserted,
        len(report.failures),
    )
    return report


def cash_flow_forecast(
    app_config: AppConfig,
    *,
    user_id: str,
    anchor_date: Optional[date] = None,
) -> ForecastResult:
    """
    Build the dashboard forecast for a user from stored transactions.

    The anchor is `anchor_date` when given, else the latest transaction
    date of the user, else today.
    """
    cfg = app_config.database
    anchor = anchor_date or latest_transaction_date(cfg, user_id) or _today()
    history = load_transactions(cfg, user_id, end=anchor)
    return build_forecast(history, anchor, settings=app_config.forecast)


def category_tree(app_config: AppConfig) -> CategoryTree:
    """Return the stored chart of accounts."""
    return load_categories(app_config.database)


def payroll_overview(app_config: AppConfig, *, user_id: str) -> pd.DataFrame:
    """Return the stored payroll log of a user."""
    return load_payroll_logs(app_config.database, user_id)


def payroll_period_summary(
    app_config: AppConfig,
    *,
    user_id: str,
    month: Optional[int] = None,
    year: Optional[int] = None,
) -> PayrollPeriodSummary:
    """
    Return the payroll summary of one month for a user.

    Without `month` and `year`, the most recent logged period is used
    (the current month when nothing is logged yet).
    """
    cfg = app_config.database
    logs = load_payroll_logs(cfg, user_id)
    if month is None or year is None:
        if logs.empty:
            today = _today()
            month, year = today.month, today.year
        else:
            # Logs are sorted most recent period first.
            year = int(logs["period_year"].iloc[0])
            month = int(logs["period_month"].iloc[0])
    return payroll_summary(
        logs,
        load_employees(cfg, user_id),
        month,
        year,
        settings=app_config.payroll,
    )


def debt_overview(
    app_config: AppConfig, *, user_id: str, today: Optional[date] = None
) -> list[DebtDetails]:
    """Return the stored debts of a user with interest and status."""
    day = today or _today()
    return [debt_details(d, day) for d in load_debts(app_config.database, user_id)]
