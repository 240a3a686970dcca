# SMB LedgerSight - Ledger classification & cash-flow forecasting for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
SMB LedgerSight
---------------

A Python-based ledger intelligence engine designed for Small and Medium-sized
Businesses (SMBs). It turns raw bank-ledger rows (date, free-text memo,
debit / credit) into structured financial information.

Main capabilities:
- chart-of-accounts tree building from P&L / balance sheet report sheets,
- annual summary extraction from year-labeled report columns,
- priority-cascade heuristic classification of ledger rows,
- payroll inference (employees and payroll logs) from transaction text,
- debt detection from loan / financing receipts,
- a recency-weighted, seasonality-adjusted 30-day cash-flow forecast,
- a SQLite storage layer and a command-line interface.

SMB LedgerSight separates computation (resolver, classifier, payroll,
forecast), configuration (TOML), storage (SQLite) and presentation (CLI),
making it suitable for scripting, automation and bookkeeping workflows.


Version: 0.2.0

Usage:
    python -m smb_ledgersight.cli --help
"""

__all__ = ["categories", "resolver", "classifier", "payroll", "forecast"]

__version__ = "0.2.0"
