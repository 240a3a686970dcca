from datetime import date

import pytest

from smb_ledgersight.classifier import Transaction
from smb_ledgersight.debts import (
    Debt,
    debt_details,
    debt_key,
    detect_debts,
    determine_creditor,
    is_loan_disbursement,
)

USER = "owner@smeworks.com"


def _txn(description, debit=0.0, credit=0.0, day=date(2024, 1, 15)) -> Transaction:
    return Transaction(
        id=None,
        user_id=USER,
        date=day,
        description=description,
        debit=debit,
        credit=credit,
    )


def _debt(principal=10000.0, start=date(2023, 1, 1), due=date(2024, 1, 1)) -> Debt:
    return Debt(
        id=1,
        user_id=USER,
        creditor="DBS Bank",
        principal_amount=principal,
        interest_rate=5.5,
        start_date=start,
        due_date=due,
        description="DBS Loan disbursement",
    )


@pytest.mark.parametrize(
    "description, expected",
    [
        ("DBS Loan disbursement", "DBS Bank"),
        ("OCBC business loan", "OCBC Bank"),
        ("UOB Loan", "UOB Bank"),
        ("Equipment financing", "General Creditor"),
        ("dbs loan", "General Creditor"),
    ],
)
def test_determine_creditor(description, expected) -> None:
    assert determine_creditor(description) == expected


def test_only_credited_loans_are_disbursements() -> None:
    assert is_loan_disbursement(_txn("DBS Loan disbursement", credit=50000.0))
    assert is_loan_disbursement(_txn("Equipment Financing", credit=8000.0))
    assert not is_loan_disbursement(_txn("DBS Loan repayment", debit=1500.0))
    assert not is_loan_disbursement(_txn("Customer payment", credit=900.0))


def test_detect_debts_builds_one_year_loans() -> None:
    txns = [
        _txn("DBS Loan disbursement", credit=50000.0),
        _txn("DBS Loan repayment", debit=1500.0, day=date(2024, 2, 15)),
        _txn("Equipment Financing", credit=8000.0, day=date(2024, 2, 29)),
    ]

    debts = detect_debts(txns, user_id="Owner@SMEWorks.com")

    assert len(debts) == 2
    dbs, equipment = debts
    assert dbs.creditor == "DBS Bank"
    assert dbs.principal_amount == pytest.approx(50000.0)
    assert dbs.interest_rate == 5.5
    assert dbs.due_date == date(2025, 1, 15)
    assert dbs.user_id == USER
    assert equipment.creditor == "General Creditor"
    assert equipment.due_date == date(2025, 2, 28)


def test_detect_debts_skips_known_keys_and_batch_repeats() -> None:
    txn = _txn("DBS Loan disbursement", credit=50000.0)

    assert len(detect_debts([txn, txn], user_id=USER)) == 1

    known = {debt_key("DBS Loan disbursement", date(2024, 1, 15))}
    assert detect_debts([txn], user_id=USER, existing_keys=known) == []


def test_debt_key_format() -> None:
    assert debt_key("DBS Loan", date(2024, 1, 5)) == "DBS Loan|20240105"
    assert _debt().key == "DBS Loan disbursement|20230101"


def test_debt_details_simple_interest() -> None:
    details = debt_details(_debt(), today=date(2023, 6, 1))

    assert details.interest_amount == pytest.approx(550.0)
    assert details.total_amount == pytest.approx(10550.0)
    assert details.days_remaining == 214
    assert details.status == "Normal"


@pytest.mark.parametrize(
    "today, status",
    [
        (date(2023, 12, 15), "Upcoming"),
        (date(2023, 12, 2), "Upcoming"),
        (date(2023, 12, 1), "Normal"),
        (date(2024, 1, 1), "Upcoming"),
        (date(2024, 2, 1), "Overdue"),
    ],
)
def test_debt_details_status(today, status) -> None:
    assert debt_details(_debt(), today=today).status == status


def test_debt_details_minimum_one_day_of_interest() -> None:
    debt = _debt(principal=36500.0, start=date(2024, 1, 1), due=date(2024, 1, 1))
    assert debt_details(debt, today=date(2023, 1, 1)).interest_amount == pytest.approx(5.5)
