# SMB LedgerSight - Ledger classification & cash-flow forecasting for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Category resolver: builds the chart of accounts from report sheets.

Profit & loss and balance sheet exports are semi-structured: each row has a
label placed at some indentation column and, optionally, numeric values under
year-labeled columns. This module reads such rows and:

1. extends the shared `CategoryTree` (indentation column => depth,
   section headers => account type),
2. emits one `AnnualSummary` fact per (category, year) numeric cell.

Algorithm (one sheet)
---------------------
A stack maps indentation depth -> last category id seen at that depth.
For each row:

    1) update the current section type when the label contains a section
       keyword (income/revenue, expense, liabilities, asset),
    2) skip total / subtotal rows,
    3) discard stack entries at depth >= the row depth,
    4) the parent is the deepest remaining entry (depth < row depth),
    5) find the category by (name, type, parent) case-insensitively, or
       create it and append it to the tree immediately,
    6) push (depth -> category id),
    7) emit annual summaries for numeric cells under year columns.

The resolver never raises on data problems: empty labels are skipped and
ambiguous headers inherit the current section type. In the worst case the
resulting tree is flatter than intended.

Workbook level
--------------
`resolve_workbook` routes each sheet by name (P&L sheets start as Income,
balance sheets as Asset, other sheets are ignored) and shares one tree across
all sheets, so categories created by an earlier sheet are visible to later
sheets and to the classifier that runs afterwards.
"""

import logging
import math
import numbers
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Optional

from .categories import CategoryTree

logger = logging.getLogger(__name__)

# Ordered: the first matching keyword group decides the section type.
SECTION_KEYWORDS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("income", "revenue"), "Income"),
    (("expense",), "Expense"),
    (("liabilities",), "Liability"),
    (("asset",), "Asset"),
)

# Labels containing one of these markers are totals or subtotals.
SKIP_MARKERS: tuple[str, ...] = ("total", "net income")

# Column-header labels that are not categories.
HEADER_LABELS: frozenset[str] = frozenset(
    {"account", "accounts", "account name", "particulars", "description"}
)

_YEAR_4 = re.compile(r"(?<!\d)((?:19|20)\d{2})(?!\d)")
_YEAR_2 = re.compile(r"(?:\bfy\s*|')(\d{2})(?!\d)", re.IGNORECASE)


@dataclass(frozen=True)
class AnnualSummary:
    """Yearly actual amount of one category, read from a report sheet.

    Attributes:
        user_id: Owner of the figures (normalized e-mail).
        category_id: Category the amount belongs to.
        year: Calendar / fiscal year read from the column header.
        amount: Amount as printed in the report.
        report_type: Section type the row was read under (Income, Expense,
            Asset or Liability).
    """

    user_id: str
    category_id: int
    year: int
    amount: float
    report_type: str


# ---------------------------------------------------------------------------
# Cell helpers
# ---------------------------------------------------------------------------


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and not value.strip()


def _as_number(value: Any) -> Optional[float]:
    """Return the cell as a float if it is a real number, else None."""
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return None
    number = float(value)
    if math.isnan(number):
        return None
    return number


def parse_year(value: Any) -> Optional[int]:
    """Read a year out of a header cell.

    Accepted forms: 2023, 2023.0, "2023", "FY 2023", "Jan - Dec 2023",
    "FY23", "'23". Returns None when the cell is not year-like.
    """
    number = _as_number(value)
    if number is not None:
        if number.is_integer() and 1900 <= number <= 2099:
            return int(number)
        return None
    if not isinstance(value, str):
        return None
    match = _YEAR_4.search(value)
    if match:
        return int(match.group(1))
    match = _YEAR_2.search(value)
    if match:
        return 2000 + int(match.group(1))
    return None


def sheet_base_type(sheet_name: str) -> Optional[str]:
    """Base section type for a workbook sheet, None if it is not a report."""
    upper = sheet_name.upper()
    if "PL" in upper or "P&L" in upper:
        return "Income"
    if "BS" in upper or "BALANCE" in upper:
        return "Asset"
    return None


def _first_label(row: Sequence[Any]) -> tuple[Optional[int], str]:
    """Return (column index, text) of the first non-blank cell of a row."""
    for col, value in enumerate(row):
        if _is_blank(value):
            continue
        if _as_number(value) is not None:
            # A leading number is a value without label.
            return None, ""
        return col, str(value).strip()
    return None, ""


def _find_year_columns(rows: Sequence[Sequence[Any]]) -> tuple[Optional[int], dict[int, int]]:
    """Locate the header row and map its year columns to their year."""
    for idx, row in enumerate(rows):
        years = {}
        for col, value in enumerate(row):
            year = parse_year(value)
            if year is not None:
                years[col] = year
        if years:
            return idx, years
    return None, {}


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class CategoryResolver:
    """Resolve report sheets into categories of a shared CategoryTree."""

    def __init__(self, tree: CategoryTree):
        self.tree = tree

    def _section_type(self, lower_label: str, current: str) -> str:
        for keywords, section in SECTION_KEYWORDS:
            if any(k in lower_label for k in keywords):
                return section
        return current

    def resolve_sheet(
        self,
        rows: Sequence[Sequence[Any]],
        base_type: str,
        *,
        user_id: str,
    ) -> list[AnnualSummary]:
        """Extend the tree from one sheet and return its annual summaries.

        Args:
            rows: Sheet rows; each row is a sequence of cell values indexed
                by column. The column of the first non-blank cell is the
                indentation depth of the row.
            base_type: Section type in effect before any section header is
                seen ("Income" for P&L sheets, "Asset" for balance sheets).
            user_id: Owner of the emitted annual summaries.

        Returns:
            One AnnualSummary per numeric cell found under a year column.
        """
        user_key = user_id.strip().lower()
        header_idx, year_cols = _find_year_columns(rows)
        current_type = base_type
        stack: dict[int, int] = {}
        summaries: list[AnnualSummary] = []
        created = 0

        for idx, row in enumerate(rows):
            if idx == header_idx:
                continue

            depth, label = _first_label(row)
            if depth is None or not label:
                continue

            lower = label.lower()
            current_type = self._section_type(lower, current_type)

            if lower in HEADER_LABELS or any(m in lower for m in SKIP_MARKERS):
                logger.debug("Skipping total/header row %d: %r", idx, label)
                continue

            for key in [k for k in stack if k >= depth]:
                del stack[key]
            parent_id: Optional[int] = None
            if stack:
                candidate = stack[max(stack)]
                parent = self.tree.get(candidate)
                # A parent of another type would mix two forests.
                if parent is not None and parent.type == current_type:
                    parent_id = candidate

            category = self.tree.find(label, current_type, parent_id)
            if category is None:
                try:
                    category = self.tree.add(label, current_type, parent_id)
                except ValueError as exc:
                    logger.warning("Row %d: cannot create category %r: %s", idx, label, exc)
                    continue
                created += 1
                logger.debug(
                    "Category created: %s (id=%d, type=%s, parent=%s)",
                    category.name,
                    category.id,
                    category.type,
                    parent_id,
                )

            stack[depth] = category.id

            for col, year in year_cols.items():
                if col >= len(row):
                    continue
                amount = _as_number(row[col])
                if amount is None:
                    continue
                summaries.append(
                    AnnualSummary(
                        user_id=user_key,
                        category_id=category.id,
                        year=year,
                        amount=amount,
                        report_type=current_type,
                    )
                )

        logger.info(
            "Resolved sheet (base type %s): %d categories created, %d summaries",
            base_type,
            created,
            len(summaries),
        )
        return summaries


def resolve_workbook(
    sheets: Mapping[str, Sequence[Sequence[Any]]],
    tree: CategoryTree,
    *,
    user_id: str,
) -> list[AnnualSummary]:
    """Resolve every report sheet of a workbook into one shared tree.

    Sheets are processed in mapping order. P&L sheets ("PL", "P&L") start
    with the Income section type, balance sheets ("BS", "BALANCE") with the
    Asset section type; other sheets are ignored.
    """
    resolver = CategoryResolver(tree)
    summaries: list[AnnualSummary] = []
    for name, rows in sheets.items():
        base_type = sheet_base_type(name)
        if base_type is None:
            logger.debug("Sheet %r is not a report sheet, ignored", name)
            continue
        summaries.extend(resolver.resolve_sheet(rows, base_type, user_id=user_id))
    return summaries


def merge_annual_summaries(summaries: Sequence[AnnualSummary]) -> list[AnnualSummary]:
    """Merge summaries sharing (user, category, year) by summing amounts.

    The report type of the first summary of each group is kept. Output order
    follows the first occurrence of each key.
    """
    merged: dict[tuple[str, int, int], AnnualSummary] = {}
    for s in summaries:
        key = (s.user_id.strip().lower(), s.category_id, s.year)
        previous = merged.get(key)
        if previous is None:
            merged[key] = AnnualSummary(
                user_id=key[0],
                category_id=s.category_id,
                year=s.year,
                amount=s.amount,
                report_type=s.report_type,
            )
        else:
            merged[key] = AnnualSummary(
                user_id=key[0],
                category_id=s.category_id,
                year=s.year,
                amount=previous.amount + s.amount,
                report_type=previous.report_type,
            )
    return list(merged.values())
