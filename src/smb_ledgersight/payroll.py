# SMB LedgerSight - Ledger classification & cash-flow forecasting for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Payroll inference from transaction text.

Small businesses rarely keep a payroll register next to their bank ledger.
Salary payments do however follow a recognizable memo pattern, e.g.
"Jane Lim Apr salary" or "Being Salary John Tan Mar". This module rebuilds a
best-effort payroll view from those memos:

- employees are created lazily the first time a new cleaned name is seen,
  with a sequential employee code derived from the organisation's e-mail
  domain and placeholder values for the required fields;
- one payroll log entry is produced per payroll transaction, with the gross
  salary and CPF contribution estimated from the net amount paid.

Only transactions classified into a payroll-like category (name containing
"Payroll", "Salaries" or "Wages") are considered.

The net-to-gross ratio (0.8) is a heuristic approximation of the employee
CPF deduction, not validated payroll logic. It is exposed as
`NET_TO_GROSS_RATIO` and can be overridden through `PayrollSettings`.

Period summary
--------------
`payroll_summary` rebuilds one month of payroll from the stored log: per
employee gross pay, employee CPF (from the employee's age-band rate),
employer CPF (17%) and net pay, plus the period totals and headcount.

Idempotence
-----------
The source transaction id is the key of a payroll log entry: transactions
already present among the existing log entries are skipped, and repeats
inside one batch are dropped ("first wins"). Running the inference twice
over the same transactions therefore yields the same log set.
"""

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

import pandas as pd

from .categories import CategoryTree
from .classifier import Transaction
from .textnorm import extract_employee_name

logger = logging.getLogger(__name__)

NET_TO_GROSS_RATIO = 0.8
STANDARD_CPF_RATE = 20.0
EMPLOYER_CPF_RATE = 17.0

# Employee CPF rate (%) past the standard age: (max age, rate).
STANDARD_CPF_MAX_AGE = 55
CPF_AGE_BANDS: tuple[tuple[int, float], ...] = ((60, 15.0), (65, 9.5), (70, 6.0))
CPF_RATE_OLDEST = 5.0

DEFAULT_NOISE_TOKENS: tuple[str, ...] = (
    "ntuc",
    "fairprice",
    "tissue",
    "breaking",
    "offer",
    "household",
    "cpf",
    "levy",
    "rental",
    "transport",
    "grab",
    "claims",
    "allowance",
    "repayment",
)

# Placeholder values for the required employee fields.
PLACEHOLDER_POSITION = "Employee"
PLACEHOLDER_AGE = 30
PLACEHOLDER_EMAIL_DOMAIN = "placeholder.com"
DEFAULT_EMPLOYEE_PREFIX = "EMP"
MIN_NAME_LENGTH = 3


@dataclass(frozen=True)
class PayrollSettings:
    """Tunable parameters of the payroll inference.

    Attributes:
        net_to_gross_ratio: Net pay / gross salary ratio used for estimates.
        default_cpf_rate: Employee CPF rate (%) up to age 55, and when the
            age is unknown.
        employer_cpf_rate: Employer CPF rate (%) used by period summaries.
        default_overtime_rate: Overtime hourly rate of new employees.
        noise_tokens: Names containing one of these tokens are not people
            (levies, claims, supermarket purchases booked as payroll...).
    """

    net_to_gross_ratio: float = NET_TO_GROSS_RATIO
    default_cpf_rate: float = STANDARD_CPF_RATE
    employer_cpf_rate: float = EMPLOYER_CPF_RATE
    default_overtime_rate: float = 0.0
    noise_tokens: tuple[str, ...] = DEFAULT_NOISE_TOKENS


@dataclass(frozen=True)
class Employee:
    """An employee inferred from payroll memos.

    `id` is None until the employee is stored.
    """

    id: Optional[int]
    user_id: str
    name: str
    employee_code: str
    email: str
    position: str
    age: int
    monthly_salary: float
    overtime_hourly_rate: float
    cpf_rate: float
    date_joined: date


@dataclass(frozen=True)
class PayrollLogEntry:
    """Estimated payroll record for one salary transaction.

    `employee_id` is the storage id of the employee when known. Entries for
    employees created in the same run reference them by `employee_code`
    until the storage layer resolves the id.
    """

    id: Optional[int]
    employee_id: Optional[int]
    employee_code: str
    source_transaction_id: int
    gross_salary_estimate: float
    cpf_amount_estimate: float
    net_pay: float
    base_salary: float
    period_month: int
    period_year: int


@dataclass
class PayrollSyncResult:
    """Outcome of one payroll sync.

    Attributes:
        new_employees: Employees to create, in order of first appearance.
        new_logs: Log entries for transactions not logged before.
        skipped: One line per payroll transaction that produced no log.
    """

    new_employees: list[Employee] = field(default_factory=list)
    new_logs: list[PayrollLogEntry] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def estimate_gross(net_pay: float, ratio: float = NET_TO_GROSS_RATIO) -> tuple[float, float]:
    """Estimate (gross salary, CPF amount) from a net amount paid.

    gross = net / ratio and cpf = gross - net, both rounded to 2 decimals.

    Example:
        >>> estimate_gross(4000)
        (5000.0, 1000.0)
    """
    if ratio <= 0:
        raise ValueError("net_to_gross ratio must be positive.")
    gross = net_pay / ratio
    return round(gross, 2), round(gross - net_pay, 2)


def cpf_rate_for_age(age: Optional[int], standard_rate: float = STANDARD_CPF_RATE) -> float:
    """Employee CPF rate (%) for an age; `standard_rate` up to 55 or when unknown.

    Example:
        >>> cpf_rate_for_age(62)
        9.5
    """
    if age is None or age <= STANDARD_CPF_MAX_AGE:
        return standard_rate
    for max_age, rate in CPF_AGE_BANDS:
        if age <= max_age:
            return rate
    return CPF_RATE_OLDEST


def employee_code_prefix(email: str) -> str:
    """First 3 letters of the e-mail domain, upper-cased ("EMP" if unusable).

    Example: "owner@smeworks.com.sg" -> "SME".
    """
    if "@" not in email:
        return DEFAULT_EMPLOYEE_PREFIX
    domain = email.split("@", 1)[1].split(".", 1)[0]
    letters = re.sub(r"[^A-Za-z]", "", domain)
    if len(letters) < 3:
        return DEFAULT_EMPLOYEE_PREFIX
    return letters[:3].upper()


def placeholder_email(name: str) -> str:
    return f"{name.replace(' ', '.').lower()}@{PLACEHOLDER_EMAIL_DOMAIN}"


class PayrollInferencer:
    """Derive employees and payroll log entries from payroll transactions."""

    def __init__(self, settings: Optional[PayrollSettings] = None):
        self.settings = settings or PayrollSettings()

    def clean_name(self, description: str) -> Optional[str]:
        """Employee name of a payroll memo, None when it is not a person."""
        name = extract_employee_name(description)
        if name is None or len(name) < MIN_NAME_LENGTH:
            return None
        lower = name.lower()
        if any(token in lower for token in self.settings.noise_tokens):
            return None
        return name

    def sync(
        self,
        transactions: Iterable[Transaction],
        tree: CategoryTree,
        *,
        user_id: str,
        employees: Sequence[Employee] = (),
        logged_transaction_ids: Iterable[int] = (),
    ) -> PayrollSyncResult:
        """Compute the employees and payroll logs missing from storage.

        Args:
            transactions: Stored transactions of the user (with ids).
            tree: Category tree used to select payroll categories.
            user_id: Organisation e-mail; its domain gives the code prefix.
            employees: Employees already known for the user.
            logged_transaction_ids: Source transaction ids already logged.

        Returns:
            A PayrollSyncResult. Nothing is written here; the caller
            persists the result.
        """
        user_key = user_id.strip().lower()
        payroll_ids = tree.payroll_category_ids()
        payroll_txns = [t for t in transactions if t.category_id in payroll_ids]
        result = PayrollSyncResult()

        known: dict[str, Employee] = {e.name: e for e in employees}
        prefix = employee_code_prefix(user_key)
        counter = len(employees) + 1
        logged = set(logged_transaction_ids)

        # Pass 1: employees.
        names: dict[int, Optional[str]] = {}
        for idx, txn in enumerate(payroll_txns):
            try:
                name = self.clean_name(txn.description)
                names[idx] = name
                if name is None or name in known:
                    continue
                employee = Employee(
                    id=None,
                    user_id=user_key,
                    name=name,
                    employee_code=f"{prefix}{counter:03d}",
                    email=placeholder_email(name),
                    position=PLACEHOLDER_POSITION,
                    age=PLACEHOLDER_AGE,
                    monthly_salary=txn.debit,
                    overtime_hourly_rate=self.settings.default_overtime_rate,
                    cpf_rate=cpf_rate_for_age(
                        PLACEHOLDER_AGE, self.settings.default_cpf_rate
                    ),
                    date_joined=txn.date,
                )
                known[name] = employee
                result.new_employees.append(employee)
                counter += 1
                logger.debug("New employee %s (%s)", name, employee.employee_code)
            except Exception as exc:  # noqa: BLE001
                names[idx] = None
                result.skipped.append(f"Transaction {txn.id}: [ERROR] {exc}")

        # Pass 2: payroll logs.
        for idx, txn in enumerate(payroll_txns):
            try:
                if txn.id is None:
                    result.skipped.append(f"{txn.description!r}: not stored yet")
                    continue
                if txn.id in logged:
                    continue
                name = names.get(idx)
                if name is None:
                    result.skipped.append(
                        f"Transaction {txn.id}: no employee name in {txn.description!r}"
                    )
                    continue
                net_pay = float(txn.debit)
                if net_pay == 0:
                    result.skipped.append(f"Transaction {txn.id}: zero net pay")
                    continue
                gross, cpf = estimate_gross(net_pay, self.settings.net_to_gross_ratio)
                employee = known[name]
                result.new_logs.append(
                    PayrollLogEntry(
                        id=None,
                        employee_id=employee.id,
                        employee_code=employee.employee_code,
                        source_transaction_id=txn.id,
                        gross_salary_estimate=gross,
                        cpf_amount_estimate=cpf,
                        net_pay=net_pay,
                        base_salary=gross,
                        period_month=txn.date.month,
                        period_year=txn.date.year,
                    )
                )
                logged.add(txn.id)
            except Exception as exc:  # noqa: BLE001
                result.skipped.append(f"Transaction {txn.id}: [ERROR] {exc}")

        logger.info(
            "Payroll sync: %d payroll transactions, %d new employees, "
            "%d new log entries, %d skipped",
            len(payroll_txns),
            len(result.new_employees),
            len(result.new_logs),
            len(result.skipped),
        )
        return result


# ---------------------------------------------------------------------------
# Period summary
# ---------------------------------------------------------------------------

PAYROLL_SUMMARY_COLUMNS = [
    "employee_code",
    "name",
    "entries",
    "cpf_rate",
    "gross_pay",
    "employee_cpf",
    "employer_cpf",
    "total_cpf",
    "net_pay",
]


@dataclass
class PayrollPeriodSummary:
    """
    Payroll of one month.

    Attributes
    ----------
    month, year:
        Period of the summary.
    lines:
        One row per employee paid in the period (PAYROLL_SUMMARY_COLUMNS).
    """

    month: int
    year: int
    lines: pd.DataFrame

    @property
    def label(self) -> str:
        return date(self.year, self.month, 1).strftime("%B %Y")

    @property
    def employee_count(self) -> int:
        return len(self.lines)

    @property
    def total_net_pay(self) -> float:
        return round(float(self.lines["net_pay"].sum()), 2)

    @property
    def total_employee_cpf(self) -> float:
        return round(float(self.lines["employee_cpf"].sum()), 2)

    @property
    def total_employer_cpf(self) -> float:
        return round(float(self.lines["employer_cpf"].sum()), 2)


def payroll_summary(
    logs: pd.DataFrame,
    employees: Sequence[Employee],
    month: int,
    year: int,
    settings: Optional[PayrollSettings] = None,
) -> PayrollPeriodSummary:
    """
    Summarize the payroll log of one month.

    Parameters
    ----------
    logs:
        Payroll log rows with at least employee_code, period_year,
        period_month and gross_salary_estimate (as returned by
        `db.load_payroll_logs`).
    employees:
        Known employees; they give the name and CPF rate of each line.
    month, year:
        Period to summarize.

    Returns
    -------
    PayrollPeriodSummary
        Gross pay is the sum of the gross estimates logged for the employee
        in the period. Employee CPF uses the employee's rate, employer CPF
        `settings.employer_cpf_rate`, and net pay is gross minus employee
        CPF. An employee with no log in the period has no line.

    Raises
    ------
    ValueError
        If `month` is not in 1..12.
    """
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month {month}: expected 1..12.")
    settings = settings or PayrollSettings()
    by_code = {e.employee_code: e for e in employees}

    rows = []
    if logs.empty:
        groups = []
    else:
        period = logs[(logs["period_year"] == year) & (logs["period_month"] == month)]
        groups = period.groupby("employee_code", sort=True)

    for code, group in groups:
        employee = by_code.get(code)
        if employee is not None:
            name, rate = employee.name, employee.cpf_rate
        else:
            name = str(group["name"].iloc[0]) if "name" in group else ""
            rate = settings.default_cpf_rate
        gross = round(float(group["gross_salary_estimate"].sum()), 2)
        employee_cpf = round(gross * rate / 100.0, 2)
        employer_cpf = round(gross * settings.employer_cpf_rate / 100.0, 2)
        rows.append(
            {
                "employee_code": code,
                "name": name,
                "entries": len(group),
                "cpf_rate": rate,
                "gross_pay": gross,
                "employee_cpf": employee_cpf,
                "employer_cpf": employer_cpf,
                "total_cpf": round(employee_cpf + employer_cpf, 2),
                "net_pay": round(gross - employee_cpf, 2),
            }
        )

    return PayrollPeriodSummary(
        month=month,
        year=year,
        lines=pd.DataFrame(rows, columns=PAYROLL_SUMMARY_COLUMNS),
    )
