from datetime import date, timedelta

import pandas as pd
import pytest

from smb_ledgersight.forecast import (
    CASH_FLOW_POSITIVE,
    ForecastSettings,
    build_forecast,
    compute_seasonality,
    monthly_aggregates,
    prepare_history,
)

COLUMNS = ["date", "description", "debit", "credit", "category_id", "category_name"]


def _history(rows) -> pd.DataFrame:
    df = pd.DataFrame(rows, columns=COLUMNS)
    df["date"] = pd.to_datetime(df["date"])
    return df


def _two_months() -> pd.DataFrame:
    return _history(
        [
            ("2024-01-05", "Customer invoices", 0.0, 10000.0, 1, "Sales"),
            ("2024-01-10", "Office rent Jan", 4000.0, 0.0, 2, "Rent"),
            ("2024-01-20", "Printer paper", 1000.0, 0.0, 3, "Supplies"),
            ("2024-02-05", "Customer invoices", 0.0, 12000.0, 1, "Sales"),
            ("2024-02-10", "Office rent Feb", 4000.0, 0.0, 2, "Rent"),
            ("2024-02-20", "Printer paper", 1000.0, 0.0, 3, "Supplies"),
        ]
    )


def test_two_month_history_weighted_averages() -> None:
    result = build_forecast(_two_months(), date(2024, 2, 29))

    assert list(result.monthly["weight"]) == [1, 3]
    assert result.avg_revenue == pytest.approx(11500.0)
    assert result.avg_fixed == pytest.approx(4000.0)
    assert result.avg_variable == pytest.approx(1000.0)
    assert result.variable_ratio == pytest.approx(1000.0 / 11500.0)
    assert result.seasonality == pytest.approx(1.0)
    assert result.current_balance == pytest.approx(12000.0)


def test_two_month_history_projection_and_runway() -> None:
    result = build_forecast(_two_months(), date(2024, 2, 29))

    predicted = result.predicted_points
    assert len(predicted) == 30
    # (11500 - 4000 - 1000) / 30 per day
    assert predicted[0].predicted_balance == pytest.approx(12216.67)
    assert predicted[-1].predicted_balance == pytest.approx(18500.0)
    assert result.projected_balance == pytest.approx(18500.0)
    assert result.net_burn == pytest.approx(-6500.0)
    assert result.runway_months is None
    assert result.runway_label == CASH_FLOW_POSITIVE


def test_bridge_point_joins_actual_and_predicted_series() -> None:
    anchor = date(2024, 2, 29)
    result = build_forecast(_two_months(), anchor)

    bridges = [p for p in result.points if p.is_bridge]
    assert len(bridges) == 1
    assert bridges[0].date == anchor
    assert bridges[0].actual_balance == bridges[0].predicted_balance == 12000.0

    assert all(p.date <= anchor for p in result.actual_points)
    assert [p.date for p in result.predicted_points] == [
        anchor + timedelta(days=i) for i in range(1, 31)
    ]


def test_zero_history_gives_flat_forecast() -> None:
    empty = pd.DataFrame(columns=COLUMNS)

    result = build_forecast(empty, date(2024, 6, 30))

    assert result.variable_ratio == 0.0
    assert result.seasonality == 1.0
    assert result.current_balance == 0.0
    assert len(result.predicted_points) == 30
    assert all(p.predicted_balance == 0.0 for p in result.predicted_points)
    assert result.runway_label == CASH_FLOW_POSITIVE
    assert result.monthly.empty


def test_anomalies_depreciation_and_uncategorized_rows_are_left_out() -> None:
    history = pd.concat(
        [
            _two_months(),
            _history(
                [
                    ("2024-02-12", "Shop renovation", 20000.0, 0.0, 4, "Repairs"),
                    ("2024-02-13", "Write-back", 0.0, 500.0, 5, "Depreciation"),
                    ("2024-02-14", "Unknown transfer", 999.0, 0.0, None, ""),
                ]
            ),
        ],
        ignore_index=True,
    )

    result = build_forecast(history, date(2024, 2, 29))

    assert result.avg_revenue == pytest.approx(11500.0)
    assert result.avg_variable == pytest.approx(1000.0)
    # Anomalies and exclusions still move the balance; uncategorized rows do not.
    assert result.current_balance == pytest.approx(12000.0 - 20000.0 + 500.0)


def test_burning_business_runway() -> None:
    history = _history(
        [
            ("2024-01-05", "Customer invoices", 0.0, 1000.0, 1, "Sales"),
            ("2024-01-10", "Office rent", 3000.0, 0.0, 2, "Rent"),
            ("2024-02-05", "Customer invoices", 0.0, 1000.0, 1, "Sales"),
            ("2024-02-10", "Office rent", 3000.0, 0.0, 2, "Rent"),
        ]
    )

    funded = build_forecast(history, date(2024, 2, 29), opening_balance=10000.0)
    assert funded.current_balance == pytest.approx(6000.0)
    assert funded.net_burn == pytest.approx(2000.0)
    assert funded.runway_months == pytest.approx(3.0)
    assert funded.runway_label == "3.0 months"

    broke = build_forecast(history, date(2024, 2, 29))
    assert broke.runway_months == 0.0
    assert broke.runway_label == "0.0 months"


def test_history_outside_window_or_after_anchor_is_ignored() -> None:
    history = pd.concat(
        [
            _two_months(),
            _history(
                [
                    ("2023-01-05", "Customer invoices", 0.0, 99999.0, 1, "Sales"),
                    ("2024-03-05", "Customer invoices", 0.0, 55555.0, 1, "Sales"),
                ]
            ),
        ],
        ignore_index=True,
    )

    result = build_forecast(history, date(2024, 2, 29))

    assert len(result.monthly) == 2
    assert result.current_balance == pytest.approx(12000.0)


def test_monthly_weights_favour_recent_months() -> None:
    rows = [
        (f"2024-0{m}-15", "Customer invoices", 0.0, 100.0, 1, "Sales") for m in range(1, 5)
    ]
    monthly = monthly_aggregates(prepare_history(_history(rows)))
    assert list(monthly["weight"]) == [1, 1, 3, 3]

    single = monthly_aggregates(prepare_history(_history(rows[:1])))
    assert list(single["weight"]) == [1]

    custom = monthly_aggregates(
        prepare_history(_history(rows)), ForecastSettings(recent_months=1, recent_weight=5)
    )
    assert list(custom["weight"]) == [1, 1, 1, 5]


def test_seasonality_uses_prior_year_same_month() -> None:
    history = _history(
        [
            ("2023-03-10", "Customer invoices", 0.0, 3000.0, 1, "Sales"),
            ("2023-04-10", "Customer invoices", 0.0, 1000.0, 1, "Sales"),
            ("2024-01-10", "Customer invoices", 0.0, 1000.0, 1, "Sales"),
            ("2024-02-10", "Customer invoices", 0.0, 1000.0, 1, "Sales"),
        ]
    )

    assert compute_seasonality(history, 3, 2024) == pytest.approx(2.0)
    # No prior-year data for May.
    assert compute_seasonality(history, 5, 2024) == 1.0


def test_seasonality_is_neutral_when_averages_are_not_positive() -> None:
    history = _history(
        [
            ("2023-03-10", "Office rent", 500.0, 0.0, 2, "Rent"),
            ("2024-01-10", "Customer invoices", 0.0, 100.0, 1, "Sales"),
        ]
    )

    assert compute_seasonality(history, 3, 2024) == 1.0
