# SMB LedgerSight - Ledger classification & cash-flow forecasting for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
I/O module for SMB LedgerSight.

This module reads the two kinds of files handled by an import:

1) Bank ledgers (CSV or Excel)
   ---------------------------
   Exports from banks and bookkeeping tools rarely agree on column names, so
   the header row is located by synonyms (case-insensitive):

       date     : "date", "posted", "trans"
       payee    : "name", "vendor", "payee"
       memo     : "desc", "memo", "details", "narrative", "particulars"
       debit    : "debit", "withdrawal", "amt", "amount", "dr"
       credit   : "credit", "received", "deposit", "cr"
       balance  : "balance", "bal"

   Short synonyms ("trans", "amt", "amount", "dr", "cr", "bal") must be the
   whole header; the others may appear anywhere in it. The header row is
   the first row (among the first 20) with a date column and a payee or
   memo column.

   Individual bad cells never raise: amounts are parsed safely ("$" and ","
   stripped, blanks and junk read as 0) and an unparseable date is kept as
   NaT so that the classification pass can report the row.

   Output schema:

       - ``row_number`` (int, 1-based row number in the source file)
       - ``date``       (datetime64[ns], NaT when unparseable)
       - ``payee``      (str)
       - ``memo``       (str)
       - ``debit``      (float)
       - ``credit``     (float)
       - ``balance``    (float)

2) Report workbooks (profit & loss, balance sheet)
   -----------------------------------------------
   Every sheet is returned as a list of rows (lists of raw cell values,
   None for blanks), ready for the category resolver.

If the structure of a file cannot be used at all (no header row, no amount
column), a clear ValueError is raised.
"""

import math
import os
from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional, Union

import pandas as pd

PathLike = Union[str, "os.PathLike[str]"]

EXCEL_SUFFIXES = (".xlsx", ".xlsm")
HEADER_SCAN_ROWS = 20

# role -> (substring synonyms, whole-header synonyms); checked in this order.
HEADER_SYNONYMS: dict[str, tuple[tuple[str, ...], tuple[str, ...]]] = {
    "date": (("date", "posted"), ("trans",)),
    "payee": (("name", "vendor", "payee"), ()),
    "memo": (("desc", "memo", "details", "narrative", "particulars"), ()),
    "debit": (("debit", "withdrawal"), ("amt", "amount", "dr")),
    "credit": (("credit", "received", "deposit"), ("cr",)),
    "balance": (("balance",), ("bal",)),
}

LEDGER_COLUMNS = ["row_number", "date", "payee", "memo", "debit", "credit", "balance"]


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and not value.strip()


def _cell_text(value: Any) -> str:
    return "" if _is_blank(value) else str(value).strip()


def parse_amount(value: Any) -> float:
    """Parse a money cell, returning 0.0 for blanks and junk.

    >>> parse_amount("$1,250.50")
    1250.5
    """
    if _is_blank(value) or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).replace("$", "").replace(",", "").strip()
    try:
        number = float(text)
    except ValueError:
        return 0.0
    return 0.0 if math.isnan(number) else number


def parse_date(value: Any) -> Optional[pd.Timestamp]:
    """Parse a date cell, returning None when it is not a date."""
    if _is_blank(value):
        return None
    if isinstance(value, (pd.Timestamp, datetime, date)):
        ts = pd.Timestamp(value)
        return None if pd.isna(ts) else ts.normalize()
    if isinstance(value, (int, float)):
        return None
    ts = pd.to_datetime(str(value).strip(), errors="coerce")
    return None if pd.isna(ts) else ts.normalize()


def match_header(label: str) -> Optional[str]:
    """Return the ledger role of a header label, None when unknown."""
    h = label.strip().lower()
    if not h:
        return None
    for role, (contains, exact) in HEADER_SYNONYMS.items():
        if h in exact or any(s in h for s in contains):
            return role
    return None


def _header_columns(row: list[Any]) -> dict[str, int]:
    cols: dict[str, int] = {}
    for idx, value in enumerate(row):
        role = match_header(_cell_text(value))
        if role is not None and role not in cols:
            cols[role] = idx
    return cols


def _is_excel(path: PathLike) -> bool:
    suffix = Path(path).suffix.lower()
    if suffix == ".xls":
        raise ValueError(
            f"Legacy .xls workbooks are not supported, save {path} as .xlsx."
        )
    return suffix in EXCEL_SUFFIXES


def _read_raw(path: PathLike, sheet_name: Union[int, str] = 0) -> pd.DataFrame:
    if _is_excel(path):
        return pd.read_excel(path, sheet_name=sheet_name, header=None)
    return pd.read_csv(path, header=None, dtype=object, skip_blank_lines=False)


def read_ledger(path: PathLike) -> pd.DataFrame:
    """
    Read a bank ledger (CSV or Excel) and normalize it.

    Parameters
    ----------
    path:
        Path to a .csv, .xlsx or .xlsm file. For workbooks, the first
        sheet is read.

    Returns
    -------
    pandas.DataFrame
        One row per non-blank data row, with the columns listed in the
        module docstring.

    Raises
    ------
    ValueError
        If no header row can be found, or if the header has neither a debit
        nor a credit column.
    """
    raw = _read_raw(path)
    rows = raw.astype(object).values.tolist()

    header_idx: Optional[int] = None
    cols: dict[str, int] = {}
    for idx, row in enumerate(rows[:HEADER_SCAN_ROWS]):
        found = _header_columns(row)
        if "date" in found and ("payee" in found or "memo" in found):
            header_idx, cols = idx, found
            break

    if header_idx is None:
        raise ValueError(
            "Invalid ledger structure: no header row with a date column and a "
            "name/description column was found."
        )
    if "debit" not in cols and "credit" not in cols:
        raise ValueError(
            "Invalid ledger structure: no debit/credit (or amount) column found."
        )

    def _cell(row: list[Any], role: str) -> Any:
        col = cols.get(role)
        if col is None or col >= len(row):
            return None
        return row[col]

    records = []
    for idx in range(header_idx + 1, len(rows)):
        row = rows[idx]
        if all(_is_blank(v) for v in row):
            continue
        parsed = parse_date(_cell(row, "date"))
        records.append(
            {
                "row_number": idx + 1,
                "date": parsed if parsed is not None else pd.NaT,
                "payee": _cell_text(_cell(row, "payee")),
                "memo": _cell_text(_cell(row, "memo")),
                "debit": parse_amount(_cell(row, "debit")),
                "credit": parse_amount(_cell(row, "credit")),
                "balance": parse_amount(_cell(row, "balance")),
            }
        )

    out = pd.DataFrame(records, columns=LEDGER_COLUMNS)
    out["date"] = pd.to_datetime(out["date"])
    return out


def _sheet_rows(df: pd.DataFrame) -> list[list[Any]]:
    obj = df.astype(object)
    return obj.where(obj.notna(), None).values.tolist()


def read_report_workbook(path: PathLike) -> dict[str, list[list[Any]]]:
    """
    Read a report workbook into {sheet name: rows}.

    Excel files return every sheet, in workbook order. A CSV file is read
    as a single sheet named after the file stem.
    """
    if _is_excel(path):
        sheets = pd.read_excel(path, sheet_name=None, header=None)
        return {str(name): _sheet_rows(df) for name, df in sheets.items()}

    df = pd.read_csv(path, header=None)
    return {Path(path).stem: _sheet_rows(df)}
