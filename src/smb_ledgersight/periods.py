# SMB LedgerSight - Ledger classification & cash-flow forecasting for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Period helpers for SMB LedgerSight.

This module defines a Period value object, month arithmetic and the
trailing history window used by the cash-flow forecast.
"""

from calendar import monthrange
from dataclasses import dataclass
from datetime import date, datetime

import pandas as pd


@dataclass
class Period:
    """Represents a date range (inclusive) with a human-readable label."""

    start: date
    end: date
    label: str

    def __contains__(self, day: date) -> bool:
        return self.start <= day <= self.end


def _today() -> date:
    """Return today's date as a date object (isolated for easier testing)."""
    return datetime.today().date()


def add_months(day: date, months: int) -> date:
    """Shift a date by a number of calendar months.

    The day of month is clamped to the length of the target month, so
    31 March minus one month is 28/29 February.
    """
    index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    last_day = monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def trailing_window(anchor: date, months: int) -> Period:
    """The `months` calendar months of history ending on the anchor date.

    The window starts on the first day of the oldest month, so that it
    contains exactly `months` (year, month) groups, the last one partial.
    """
    if months <= 0:
        raise ValueError("History window must be at least one month.")
    start = add_months(anchor.replace(day=1), -(months - 1))
    return Period(start=start, end=anchor, label=f"Last {months} months to {anchor}")


def filter_by_period(df: pd.DataFrame, period: Period) -> pd.DataFrame:
    """
    Keep only the rows of a DataFrame whose 'date' falls within the period.

    The `date` column may hold datetime64 values or `datetime.date` objects.

    Parameters
    ----------
    df:
        DataFrame with at least a 'date' column.
    period:
        Period defining the [start, end] boundaries (inclusive).

    Returns
    -------
    pandas.DataFrame
        Filtered copy of the input.
    """
    if df.empty:
        return df.copy()
    dates = pd.to_datetime(df["date"])
    mask = (dates >= pd.Timestamp(period.start)) & (dates <= pd.Timestamp(period.end))
    return df.loc[mask].copy()
