# SMB LedgerSight - Ledger classification & cash-flow forecasting for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
View utilities for SMB LedgerSight.

This module turns the results of the engine into flat DataFrames ready for
display (``DataFrame.to_string``) or CSV export:

- forecast_points_view : the balance chart (actual, bridge, predicted),
- forecast_summary_view: the key figures of a forecast as label/value rows,
- category_tree_view   : the chart of accounts, indented by depth,
- debts_view           : debts with interest, total due and status,
- payroll_summary_view : the totals of one month of payroll,
- import_report_view   : the counters of an import run.

The views do not compute anything new; they only select, order and round.
"""

import pandas as pd

from .categories import CategoryTree
from .debts import DebtDetails
from .forecast import ForecastResult
from .ledger_service import ImportReport
from .payroll import PayrollPeriodSummary


def forecast_points_view(result: ForecastResult) -> pd.DataFrame:
    """One row per chart point: date, actual, predicted."""
    rows = [
        {
            "date": p.date.isoformat(),
            "actual": p.actual_balance,
            "predicted": p.predicted_balance,
        }
        for p in result.points
    ]
    return pd.DataFrame(rows, columns=["date", "actual", "predicted"])


def forecast_summary_view(result: ForecastResult, decimals: int = 2) -> pd.DataFrame:
    """Key figures of a forecast as (metric, value) rows."""
    rows = [
        ("Anchor date", result.anchor_date.isoformat()),
        ("Current balance", round(result.current_balance, decimals)),
        ("Avg monthly revenue", round(result.avg_revenue, decimals)),
        ("Avg monthly fixed costs", round(result.avg_fixed, decimals)),
        ("Avg monthly variable costs", round(result.avg_variable, decimals)),
        ("Variable cost ratio", round(result.variable_ratio, 4)),
        ("Seasonality", round(result.seasonality, 4)),
        ("Projected balance", round(result.projected_balance, decimals)),
        ("Net monthly burn", round(result.net_burn, decimals)),
        ("Runway", result.runway_label),
    ]
    return pd.DataFrame(rows, columns=["metric", "value"])


def category_tree_view(tree: CategoryTree) -> pd.DataFrame:
    """Chart of accounts in depth-first order, names indented by depth."""
    rows = []

    def _walk(parent_id, depth):
        for cat in tree.children(parent_id):
            rows.append(
                {
                    "id": cat.id,
                    "type": cat.type,
                    "name": "  " * depth + cat.name,
                    "parent_id": cat.parent_id,
                    "active": cat.is_active,
                }
            )
            _walk(cat.id, depth + 1)

    _walk(None, 0)
    return pd.DataFrame(rows, columns=["id", "type", "name", "parent_id", "active"])


def debts_view(details: list[DebtDetails]) -> pd.DataFrame:
    rows = [
        {
            "creditor": d.debt.creditor,
            "description": d.debt.description,
            "principal": round(d.debt.principal_amount, 2),
            "rate_pct": d.debt.interest_rate,
            "start_date": d.debt.start_date.isoformat(),
            "due_date": d.debt.due_date.isoformat(),
            "interest": d.interest_amount,
            "total": d.total_amount,
            "days_remaining": d.days_remaining,
            "status": d.status,
        }
        for d in details
    ]
    columns = [
        "creditor",
        "description",
        "principal",
        "rate_pct",
        "start_date",
        "due_date",
        "interest",
        "total",
        "days_remaining",
        "status",
    ]
    return pd.DataFrame(rows, columns=columns)


def import_report_view(report: ImportReport) -> pd.DataFrame:
    """Counters of an import run as (item, count) rows."""
    rows = [
        ("Ledger rows", report.rows_total),
        ("Classified", report.matched),
        ("Uncategorized", report.rejected),
        ("Skipped (empty)", report.skipped_empty),
        ("Duplicates in file", report.duplicates_in_batch),
        ("Categories created", report.categories_created),
        ("Annual summaries written", report.summaries_written),
        ("Transactions stored", report.transactions_inserted),
        ("Transactions already stored", report.transactions_already_stored),
        ("Transactions failed", report.transactions_failed),
        ("Employees created", report.employees_created),
        ("Payroll logs written", report.payroll_logs_written),
        ("Debts created", report.debts_created),
    ]
    return pd.DataFrame(rows, columns=["item", "count"])


def payroll_summary_view(summary: PayrollPeriodSummary, decimals: int = 2) -> pd.DataFrame:
    """Totals of one month of payroll as (metric, value) rows."""
    rows = [
        ("Period", summary.label),
        ("Employees paid", summary.employee_count),
        ("Total net pay", round(summary.total_net_pay, decimals)),
        ("Employee CPF", round(summary.total_employee_cpf, decimals)),
        ("Employer CPF", round(summary.total_employer_cpf, decimals)),
    ]
    return pd.DataFrame(rows, columns=["metric", "value"])
