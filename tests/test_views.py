from datetime import date

import pandas as pd

from smb_ledgersight.categories import CategoryTree
from smb_ledgersight.debts import Debt, debt_details
from smb_ledgersight.forecast import build_forecast
from smb_ledgersight.ledger_service import ImportReport
from smb_ledgersight.payroll import PAYROLL_SUMMARY_COLUMNS, PayrollPeriodSummary
from smb_ledgersight.views import (
    category_tree_view,
    debts_view,
    forecast_points_view,
    forecast_summary_view,
    import_report_view,
    payroll_summary_view,
)


def test_category_tree_view_is_depth_first_and_indented() -> None:
    tree = CategoryTree()
    income = tree.add("Income", "Income")
    expenses = tree.add("Expenses", "Expense")
    tree.add("Utilities", "Expense", expenses.id)
    tree.add("Sales", "Income", income.id)

    df = category_tree_view(tree)

    assert list(df["name"]) == ["Income", "  Sales", "Expenses", "  Utilities"]


def test_forecast_views() -> None:
    history = pd.DataFrame(
        [
            {
                "date": pd.Timestamp("2024-01-05"),
                "description": "Customer invoices",
                "debit": 0.0,
                "credit": 3000.0,
                "category_id": 1,
                "category_name": "Sales",
            }
        ]
    )
    result = build_forecast(history, date(2024, 1, 31))

    points = forecast_points_view(result)
    assert list(points.columns) == ["date", "actual", "predicted"]
    assert len(points) == len(result.points) == 32
    assert points["date"].iloc[0] == "2024-01-05"

    summary = forecast_summary_view(result)
    values = dict(zip(summary["metric"], summary["value"]))
    assert values["Anchor date"] == "2024-01-31"
    assert values["Current balance"] == 3000.0
    assert values["Runway"] == "cash-flow positive"


def test_debts_view_and_import_report_view() -> None:
    debt = Debt(
        id=1,
        user_id="owner@smeworks.com",
        creditor="UOB Bank",
        principal_amount=10000.0,
        interest_rate=5.5,
        start_date=date(2023, 1, 1),
        due_date=date(2024, 1, 1),
        description="UOB Loan",
    )
    df = debts_view([debt_details(debt, date(2023, 6, 1))])
    assert df["total"].iloc[0] == 10550.0
    assert df["status"].iloc[0] == "Normal"

    report = ImportReport(user_id="owner@smeworks.com", rows_total=5, matched=3)
    rows = import_report_view(report)
    counts = dict(zip(rows["item"], rows["count"]))
    assert counts["Ledger rows"] == 5
    assert counts["Classified"] == 3


def test_payroll_summary_view() -> None:
    lines = pd.DataFrame(
        [
            {
                "employee_code": "SME001",
                "name": "Jane Lim",
                "entries": 1,
                "cpf_rate": 20.0,
                "gross_pay": 5000.0,
                "employee_cpf": 1000.0,
                "employer_cpf": 850.0,
                "total_cpf": 1850.0,
                "net_pay": 4000.0,
            }
        ],
        columns=PAYROLL_SUMMARY_COLUMNS,
    )

    df = payroll_summary_view(PayrollPeriodSummary(month=4, year=2024, lines=lines))

    values = dict(zip(df["metric"], df["value"]))
    assert values["Period"] == "April 2024"
    assert values["Employees paid"] == 1
    assert values["Total net pay"] == 4000.0
    assert values["Employer CPF"] == 850.0
