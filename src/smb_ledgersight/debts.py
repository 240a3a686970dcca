# SMB LedgerSight - Ledger classification & cash-flow forecasting for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Debt detection from loan disbursements.

A loan shows up in the bank ledger as a credit whose description mentions
"loan" or "financing". Each such row becomes a `Debt` with:

- the creditor read from the description (DBS, OCBC, UOB, otherwise
  "General Creditor"),
- a default 5.5 % yearly interest rate,
- a due date one year after the disbursement.

Debts are keyed by (description, start date) so that re-running the
detection over the same history never creates duplicates.

`debt_details` computes simple interest, the total amount due, the days
remaining and a status label for display.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from typing import Optional

from .classifier import Transaction
from .periods import add_months

logger = logging.getLogger(__name__)

DEFAULT_INTEREST_RATE = 5.5
LOAN_MARKERS: tuple[str, ...] = ("loan", "financing")
CREDITORS: tuple[tuple[str, str], ...] = (
    ("DBS", "DBS Bank"),
    ("OCBC", "OCBC Bank"),
    ("UOB", "UOB Bank"),
)
GENERAL_CREDITOR = "General Creditor"
UPCOMING_DAYS = 30


@dataclass(frozen=True)
class Debt:
    """A loan owed by the business.

    Attributes:
        id: Storage identifier (None until persisted).
        user_id: Owner (normalized e-mail).
        creditor: Lender name.
        principal_amount: Amount received.
        interest_rate: Yearly rate in percent.
        start_date: Disbursement date.
        due_date: Repayment date.
        description: Ledger description of the disbursement.
    """

    id: Optional[int]
    user_id: str
    creditor: str
    principal_amount: float
    interest_rate: float
    start_date: date
    due_date: date
    description: str

    @property
    def key(self) -> str:
        return debt_key(self.description, self.start_date)


@dataclass(frozen=True)
class DebtDetails:
    """Derived figures of a debt at a given day."""

    debt: Debt
    interest_amount: float
    total_amount: float
    days_remaining: int
    status: str


def debt_key(description: str, start_date: date) -> str:
    return f"{description}|{start_date:%Y%m%d}"


def determine_creditor(description: str) -> str:
    for marker, creditor in CREDITORS:
        if marker in description:
            return creditor
    return GENERAL_CREDITOR


def is_loan_disbursement(txn: Transaction) -> bool:
    lower = txn.description.lower()
    return txn.credit > 0 and any(m in lower for m in LOAN_MARKERS)


def detect_debts(
    transactions: Iterable[Transaction],
    *,
    user_id: str,
    existing_keys: Iterable[str] = (),
    interest_rate: float = DEFAULT_INTEREST_RATE,
) -> list[Debt]:
    """Return the debts found in `transactions` that are not known yet."""
    user_key = user_id.strip().lower()
    seen = set(existing_keys)
    debts: list[Debt] = []
    for txn in transactions:
        if not is_loan_disbursement(txn):
            continue
        key = debt_key(txn.description, txn.date)
        if key in seen:
            continue
        seen.add(key)
        debts.append(
            Debt(
                id=None,
                user_id=user_key,
                creditor=determine_creditor(txn.description),
                principal_amount=float(txn.credit),
                interest_rate=interest_rate,
                start_date=txn.date,
                due_date=add_months(txn.date, 12),
                description=txn.description,
            )
        )
    logger.info("Debt detection: %d new debts", len(debts))
    return debts


def debt_details(debt: Debt, today: date) -> DebtDetails:
    """Simple interest, total due, days remaining and status of a debt.

    Status is "Overdue" past the due date, "Upcoming" within 30 days of it
    and "Normal" otherwise.
    """
    total_days = max(1, (debt.due_date - debt.start_date).days)
    interest = debt.principal_amount * (debt.interest_rate / 100.0) * total_days / 365.0
    days_remaining = (debt.due_date - today).days
    if days_remaining < 0:
        status = "Overdue"
    elif days_remaining <= UPCOMING_DAYS:
        status = "Upcoming"
    else:
        status = "Normal"
    return DebtDetails(
        debt=debt,
        interest_amount=round(interest, 2),
        total_amount=round(debt.principal_amount + interest, 2),
        days_remaining=days_remaining,
        status=status,
    )
