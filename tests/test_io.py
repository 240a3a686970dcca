import pandas as pd
import pytest

from smb_ledgersight.io import (
    match_header,
    parse_amount,
    parse_date,
    read_ledger,
    read_report_workbook,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("$1,250.50", 1250.5),
        ("1,000", 1000.0),
        ("", 0.0),
        ("abc", 0.0),
        (None, 0.0),
        (12, 12.0),
        (float("nan"), 0.0),
    ],
)
def test_parse_amount(value, expected) -> None:
    assert parse_amount(value) == expected


def test_parse_date() -> None:
    assert parse_date("2024-03-05") == pd.Timestamp("2024-03-05")
    assert parse_date(pd.Timestamp("2024-03-05 14:30")) == pd.Timestamp("2024-03-05")
    assert parse_date("not a date") is None
    assert parse_date(45000) is None
    assert parse_date("") is None


@pytest.mark.parametrize(
    "label, role",
    [
        ("Transaction Date", "date"),
        ("Trans", "date"),
        ("Vendor Name", "payee"),
        ("Narrative", "memo"),
        ("Description", "memo"),
        ("Withdrawal", "debit"),
        ("Amount", "debit"),
        ("DR", "debit"),
        ("Deposit", "credit"),
        ("Cr", "credit"),
        ("Bal", "balance"),
        ("Reference", None),
        ("", None),
    ],
)
def test_match_header(label, role) -> None:
    assert match_header(label) == role


def test_read_ledger_finds_header_below_title_rows(tmp_path) -> None:
    path = tmp_path / "bank.csv"
    path.write_text(
        "Bank statement,,,,,\n"
        "Date,Name,Description,Debit,Credit,Balance\n"
        '2024-03-05,SP Services,bill March,"$1,200.50",,10000\n'
        "not a date,IRAS,GST,50,,\n"
        ",,,,,\n"
        "2024-03-07,Acme,Invoice 7,,2500,\n",
        encoding="utf-8",
    )

    df = read_ledger(path)

    assert list(df.columns) == [
        "row_number",
        "date",
        "payee",
        "memo",
        "debit",
        "credit",
        "balance",
    ]
    assert list(df["row_number"]) == [3, 4, 6]
    assert df["date"].iloc[0] == pd.Timestamp("2024-03-05")
    assert pd.isna(df["date"].iloc[1])
    assert df["payee"].iloc[0] == "SP Services"
    assert df["memo"].iloc[0] == "bill March"
    assert df["debit"].iloc[0] == pytest.approx(1200.5)
    assert df["credit"].iloc[2] == pytest.approx(2500.0)
    assert df["balance"].iloc[0] == pytest.approx(10000.0)


def test_read_ledger_without_header_raises(tmp_path) -> None:
    path = tmp_path / "junk.csv"
    path.write_text("foo,bar\n1,2\n", encoding="utf-8")

    with pytest.raises(ValueError):
        read_ledger(path)


def test_read_ledger_without_amount_columns_raises(tmp_path) -> None:
    path = tmp_path / "no_amounts.csv"
    path.write_text("Date,Description\n2024-01-01,Something\n", encoding="utf-8")

    with pytest.raises(ValueError):
        read_ledger(path)


def test_read_ledger_from_excel(tmp_path) -> None:
    path = tmp_path / "bank.xlsx"
    pd.DataFrame(
        [
            ["Date", "Payee", "Amount"],
            ["2024-04-01", "Jane Lim Apr", 4000],
        ]
    ).to_excel(path, header=False, index=False)

    df = read_ledger(path)

    assert len(df) == 1
    assert df["payee"].iloc[0] == "Jane Lim Apr"
    assert df["debit"].iloc[0] == pytest.approx(4000.0)
    assert df["date"].iloc[0] == pd.Timestamp("2024-04-01")


def test_read_report_workbook_from_csv(tmp_path) -> None:
    path = tmp_path / "pl_2023.csv"
    path.write_text(",,2023\nIncome,,\n,Sales,120000\n", encoding="utf-8")

    sheets = read_report_workbook(path)

    assert list(sheets) == ["pl_2023"]
    rows = sheets["pl_2023"]
    assert len(rows) == 3
    assert rows[1][0] == "Income"
    assert rows[1][1] is None
    assert rows[2][2] == pytest.approx(120000.0)


def test_read_report_workbook_from_excel_keeps_sheet_order(tmp_path) -> None:
    path = tmp_path / "reports.xlsx"
    with pd.ExcelWriter(path) as writer:
        pd.DataFrame([[None, "2023"], ["Income", None]]).to_excel(
            writer, sheet_name="PL", header=False, index=False
        )
        pd.DataFrame([[None, "2023"], ["Current assets", None]]).to_excel(
            writer, sheet_name="BS", header=False, index=False
        )

    sheets = read_report_workbook(path)

    assert list(sheets) == ["PL", "BS"]
    assert sheets["BS"][1][0] == "Current assets"


def test_legacy_xls_workbooks_are_rejected(tmp_path) -> None:
    path = tmp_path / "bank.xls"
    path.write_bytes(b"\xd0\xcf\x11\xe0")

    with pytest.raises(ValueError, match="xlsx"):
        read_ledger(path)
    with pytest.raises(ValueError, match="xlsx"):
        read_report_workbook(path)
