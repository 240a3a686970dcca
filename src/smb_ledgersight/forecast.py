# SMB LedgerSight - Ledger classification & cash-flow forecasting for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Cash-flow forecasting engine for SMB LedgerSight.

The forecast is a small deterministic statistical model over the trailing
history of classified transactions (typically 6 months) ending on the anchor
date (the latest known transaction date).

Pipeline
--------
1) Monthly aggregation with recency weighting

   Transactions are grouped by (year, month). The most recent months present
   in the window (2 by default) get weight 3, older months weight 1. The
   oldest month always keeps weight 1, so with two months of history only
   the latest one is boosted. Each month is split into three buckets:

       revenue           credit side, except categories named "depreciation"
       fixed_expense     debit side matching a fixed-cost keyword
                         (rent, salary, loan, subscription, wage, payroll)
       variable_expense  every other debit-side amount

   Debit-side rows matching an anomaly keyword (renovation, deposit,
   equipment, setup fee) are one-off costs and are left out entirely.
   Keywords are searched in the category name and in the description.

2) Weighted averages

       avg_x = sum(month.x * month.weight) / sum(weight)
       variable_ratio = avg_variable / avg_revenue   (0 when avg_revenue is 0)

3) Seasonality

   A multiplier for the month following the anchor date: the average net
   cash flow of that calendar month in prior years, divided by the average
   monthly net cash flow of the whole history. Neutral (1.0) when no prior
   year data exists for that month or when either average is not positive.
   It scales the revenue used by the projection only.

4) Daily projection (30 days)

       daily_revenue  = avg_revenue * seasonality / 30
       daily_fixed    = avg_fixed / 30
       daily_variable = daily_revenue * variable_ratio
       balance       += daily_revenue - daily_fixed - daily_variable

5) Runway

       net_burn = (avg_fixed + avg_revenue * variable_ratio) - avg_revenue

   When net_burn > 0 the runway is balance / net_burn months (0 when the
   balance is already exhausted); otherwise the business is cash-flow
   positive.

Uncategorized transactions (category_id missing) are excluded from every
aggregate, including the current balance.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional

import pandas as pd

from .periods import add_months, filter_by_period, trailing_window

logger = logging.getLogger(__name__)

DAYS_PER_MONTH = 30
CASH_FLOW_POSITIVE = "cash-flow positive"


@dataclass(frozen=True)
class ForecastSettings:
    """Parameters of the forecast model."""

    history_months: int = 6
    horizon_days: int = 30
    recent_months: int = 2
    recent_weight: int = 3
    fixed_keywords: tuple[str, ...] = (
        "rent",
        "salary",
        "loan",
        "subscription",
        "wage",
        "payroll",
    )
    anomaly_keywords: tuple[str, ...] = (
        "renovation",
        "deposit",
        "equipment",
        "setup fee",
    )
    revenue_exclusions: tuple[str, ...] = ("depreciation",)


@dataclass(frozen=True)
class ForecastPoint:
    """One point of the balance chart.

    A point carries either an actual or a predicted balance, except the
    bridge point at the anchor date which carries both.
    """

    date: date
    actual_balance: Optional[float] = None
    predicted_balance: Optional[float] = None

    @property
    def is_bridge(self) -> bool:
        return self.actual_balance is not None and self.predicted_balance is not None


@dataclass
class ForecastResult:
    """Output of `build_forecast`.

    Attributes:
        anchor_date: Last day of known history.
        current_balance: Cumulative (credit - debit) over the window.
        monthly: One row per month: year, month, revenue, fixed_expense,
            variable_expense, weight.
        avg_revenue, avg_fixed, avg_variable: Weighted monthly averages.
        variable_ratio: avg_variable / avg_revenue (0 without revenue).
        seasonality: Revenue multiplier applied to the projection.
        points: Actual points, the bridge point, then predicted points.
        projected_balance: Predicted balance at the end of the horizon.
        net_burn: Monthly cost minus monthly revenue (> 0 means burning).
        runway_months: Months of runway, None when cash-flow positive.
        runway_label: Human-readable runway.
    """

    anchor_date: date
    current_balance: float
    monthly: pd.DataFrame
    avg_revenue: float
    avg_fixed: float
    avg_variable: float
    variable_ratio: float
    seasonality: float
    points: list[ForecastPoint] = field(default_factory=list)
    projected_balance: float = 0.0
    net_burn: float = 0.0
    runway_months: Optional[float] = None
    runway_label: str = CASH_FLOW_POSITIVE

    @property
    def predicted_points(self) -> list[ForecastPoint]:
        return [p for p in self.points if p.predicted_balance is not None and not p.is_bridge]

    @property
    def actual_points(self) -> list[ForecastPoint]:
        return [p for p in self.points if p.actual_balance is not None]


MONTHLY_COLUMNS = ["year", "month", "revenue", "fixed_expense", "variable_expense", "weight"]


def _contains_any(series: pd.Series, keywords: tuple[str, ...]) -> pd.Series:
    mask = pd.Series(False, index=series.index)
    for kw in keywords:
        mask |= series.str.contains(kw.lower(), regex=False)
    return mask


def prepare_history(history: pd.DataFrame) -> pd.DataFrame:
    """Normalize a transaction history DataFrame for the forecast.

    Expected columns: date, debit, credit and optionally description,
    category_id, category_name. Rows without a category are dropped.
    """
    columns = ["date", "description", "debit", "credit", "category_id", "category_name"]
    if history is None or history.empty:
        return pd.DataFrame(columns=columns)

    df = history.copy()
    for col in ("description", "category_name"):
        if col not in df.columns:
            df[col] = ""
    if "category_id" in df.columns:
        df = df[df["category_id"].notna()]
    else:
        df["category_id"] = pd.NA
    df["date"] = pd.to_datetime(df["date"]).dt.normalize()
    df["debit"] = pd.to_numeric(df["debit"], errors="coerce").fillna(0.0)
    df["credit"] = pd.to_numeric(df["credit"], errors="coerce").fillna(0.0)
    df["description"] = df["description"].fillna("").astype(str)
    df["category_name"] = df["category_name"].fillna("").astype(str)
    return df[columns].sort_values("date", kind="stable").reset_index(drop=True)


def monthly_aggregates(
    history: pd.DataFrame, settings: Optional[ForecastSettings] = None
) -> pd.DataFrame:
    """Split a (prepared) history into monthly revenue / fixed / variable buckets."""
    settings = settings or ForecastSettings()
    if history.empty:
        return pd.DataFrame(columns=MONTHLY_COLUMNS)

    df = history.copy()
    category = df["category_name"].str.lower()
    text = category + " " + df["description"].str.lower()

    revenue_ok = ~_contains_any(category, settings.revenue_exclusions)
    anomaly = _contains_any(text, settings.anomaly_keywords)
    fixed = _contains_any(text, settings.fixed_keywords)

    df["revenue"] = df["credit"].where(revenue_ok, 0.0)
    cost = df["debit"].where(~anomaly, 0.0)
    df["fixed_expense"] = cost.where(fixed, 0.0)
    df["variable_expense"] = cost.where(~fixed, 0.0)
    df["year"] = df["date"].dt.year
    df["month"] = df["date"].dt.month

    monthly = (
        df.groupby(["year", "month"], as_index=False)[
            ["revenue", "fixed_expense", "variable_expense"]
        ]
        .sum()
        .sort_values(["year", "month"])
        .reset_index(drop=True)
    )
    # The oldest month stays at baseline weight.
    recent = min(settings.recent_months, max(len(monthly) - 1, 0))
    recent_from = len(monthly) - recent
    monthly["weight"] = [
        settings.recent_weight if i >= recent_from else 1 for i in range(len(monthly))
    ]
    return monthly[MONTHLY_COLUMNS]


def _weighted(monthly: pd.DataFrame, column: str) -> float:
    total_weight = float(monthly["weight"].sum()) if not monthly.empty else 0.0
    if total_weight == 0:
        return 0.0
    return float((monthly[column] * monthly["weight"]).sum()) / total_weight


def compute_seasonality(history: pd.DataFrame, target_month: int, target_year: int) -> float:
    """Seasonal revenue multiplier for a target month.

    Ratio of the average net cash flow (credit - debit) of `target_month`
    in years before `target_year`, to the average monthly net cash flow of
    the whole history. Returns 1.0 (neutral) when there is no prior-year
    data for that month or when either average is not positive.
    """
    if history is None or history.empty:
        return 1.0
    dates = pd.to_datetime(history["date"])
    net = pd.to_numeric(history["credit"], errors="coerce").fillna(0.0) - pd.to_numeric(
        history["debit"], errors="coerce"
    ).fillna(0.0)
    by_month = net.groupby([dates.dt.year, dates.dt.month]).sum()
    by_month.index.names = ["year", "month"]

    years = by_month.index.get_level_values("year")
    months = by_month.index.get_level_values("month")
    prior = by_month[(months == target_month) & (years < target_year)]
    if prior.empty:
        return 1.0

    overall_avg = float(by_month.mean())
    target_avg = float(prior.mean())
    if overall_avg <= 0 or target_avg <= 0:
        return 1.0
    return target_avg / overall_avg


def _runway(balance: float, net_burn: float) -> tuple[Optional[float], str]:
    if net_burn <= 0:
        return None, CASH_FLOW_POSITIVE
    if balance <= 0:
        return 0.0, "0.0 months"
    months = balance / net_burn
    return months, f"{months:.1f} months"


def build_forecast(
    history: pd.DataFrame,
    anchor_date: date,
    *,
    settings: Optional[ForecastSettings] = None,
    opening_balance: float = 0.0,
) -> ForecastResult:
    """Build the cash-flow forecast from a transaction history.

    Parameters
    ----------
    history:
        Transactions of one user (any time span). Only the trailing window
        ending on `anchor_date` feeds the averages and the balance; the
        whole history (up to the anchor) feeds the seasonality.
    anchor_date:
        Last day of known history; the projection starts the day after.
    settings:
        Model parameters (defaults to `ForecastSettings()`).
    opening_balance:
        Balance before the first day of the window.

    Returns
    -------
    ForecastResult
    """
    settings = settings or ForecastSettings()
    prepared = prepare_history(history)
    if not prepared.empty:
        prepared = prepared[prepared["date"] <= pd.Timestamp(anchor_date)]
    window = filter_by_period(prepared, trailing_window(anchor_date, settings.history_months))

    monthly = monthly_aggregates(window, settings)
    avg_revenue = _weighted(monthly, "revenue")
    avg_fixed = _weighted(monthly, "fixed_expense")
    avg_variable = _weighted(monthly, "variable_expense")
    variable_ratio = avg_variable / avg_revenue if avg_revenue > 0 else 0.0

    # Actual balance series, one point per day with activity.
    points: list[ForecastPoint] = []
    balance = float(opening_balance)
    if not window.empty:
        daily = (window["credit"] - window["debit"]).groupby(window["date"]).sum()
        for day, net in daily.items():
            balance += float(net)
            points.append(ForecastPoint(date=day.date(), actual_balance=round(balance, 2)))
    current_balance = round(balance, 2)

    bridge = ForecastPoint(
        date=anchor_date,
        actual_balance=current_balance,
        predicted_balance=current_balance,
    )
    if points and points[-1].date == anchor_date:
        points[-1] = bridge
    else:
        points.append(bridge)

    target = add_months(anchor_date, 1)
    seasonality = compute_seasonality(prepared, target.month, target.year)

    daily_revenue = avg_revenue * seasonality / DAYS_PER_MONTH
    daily_fixed = avg_fixed / DAYS_PER_MONTH
    daily_variable = daily_revenue * variable_ratio
    daily_net = daily_revenue - daily_fixed - daily_variable

    projected = balance
    for i in range(1, settings.horizon_days + 1):
        projected += daily_net
        points.append(
            ForecastPoint(
                date=anchor_date + timedelta(days=i),
                predicted_balance=round(projected, 2),
            )
        )

    net_burn = (avg_fixed + avg_revenue * variable_ratio) - avg_revenue
    runway_months, runway_label = _runway(current_balance, net_burn)

    logger.info(
        "Forecast anchored on %s: %d months of history, balance %.2f, "
        "seasonality %.3f, runway %s",
        anchor_date,
        len(monthly),
        current_balance,
        seasonality,
        runway_label,
    )

    return ForecastResult(
        anchor_date=anchor_date,
        current_balance=current_balance,
        monthly=monthly,
        avg_revenue=avg_revenue,
        avg_fixed=avg_fixed,
        avg_variable=avg_variable,
        variable_ratio=variable_ratio,
        seasonality=seasonality,
        points=points,
        projected_balance=round(projected, 2),
        net_burn=net_burn,
        runway_months=runway_months,
        runway_label=runway_label,
    )
