# SMB LedgerSight - Ledger classification & cash-flow forecasting for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.


"""
Database layer for SMB LedgerSight.

This module provides the low-level accessors used to persist the results of
an import and to read the history back for payroll inference and
forecasting. It is responsible for:

- Initializing the database schema (idempotent).
- Storing the chart of accounts (categories).
- Inserting classified transactions in chunks, ignoring rows already stored.
- Storing inferred employees and payroll log entries (upsert by source
  transaction id).
- Upserting annual summaries read from report sheets.
- Storing debts detected from loan disbursements.

------------------------------------------------------------------------------
Schema Overview
------------------------------------------------------------------------------

1) categories
   - id            INTEGER PRIMARY KEY
   - name          TEXT    NOT NULL
   - type          TEXT    NOT NULL  -- Income | Expense | Asset | Liability
   - parent_id     INTEGER           -- foreign key to categories.id
   - is_active     INTEGER NOT NULL DEFAULT 1
   - account_code  TEXT

2) transactions
   - id            INTEGER PRIMARY KEY AUTOINCREMENT
   - user_id       TEXT    NOT NULL
   - date          TEXT    NOT NULL  -- ISO date "YYYY-MM-DD"
   - description   TEXT    NOT NULL
   - debit_cents   INTEGER NOT NULL
   - credit_cents  INTEGER NOT NULL
   - category_id   INTEGER           -- NULL when classification failed
   - dedup_key     TEXT    NOT NULL UNIQUE  -- user|date|description|debit
   - imported_at   TEXT    NOT NULL  -- UTC timestamp

3) employees
   - id, user_id, name, employee_code, email, position, age,
     monthly_salary_cents, overtime_rate_cents, cpf_rate, date_joined
   - UNIQUE (user_id, name)

4) payroll_logs
   - id, employee_id, source_transaction_id (UNIQUE), gross_cents,
     cpf_cents, net_pay_cents, base_salary_cents, period_month, period_year

5) annual_summaries
   - id, user_id, category_id, year, amount_cents, report_type
   - UNIQUE (user_id, category_id, year)

6) debts
   - id, user_id, creditor, principal_cents, interest_rate, start_date,
     due_date, description
   - UNIQUE (user_id, description, start_date)

------------------------------------------------------------------------------
SQLite Notes
------------------------------------------------------------------------------

- Amounts are stored as integer cents and exposed as floats.
- Dates are stored as ISO-8601 text; timestamps are UTC.
- Foreign key enforcement is explicitly enabled.
- Every write is idempotent with respect to its natural key, so a whole
  import can safely be re-run after a partial failure.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path

import pandas as pd

from .categories import Category, CategoryTree
from .classifier import Transaction
from .debts import Debt
from .payroll import Employee, PayrollLogEntry
from .resolver import AnnualSummary

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1000

# A value that cannot be converted (NaN amount, malformed date) fails its row only.
ROW_ERRORS = (sqlite3.Error, ValueError, TypeError, OverflowError)

TRANSACTION_COLUMNS = [
    "id",
    "date",
    "description",
    "debit",
    "credit",
    "category_id",
    "category_name",
]

# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseConfig:
    """
    Database configuration for SMB LedgerSight.

    Attributes
    ----------
    engine:
        Database engine identifier. Only "sqlite" is supported.
    path:
        Path to the SQLite database file.
    """

    engine: str
    path: Path


@dataclass(frozen=True)
class InsertStats:
    """
    Summary of a chunked transaction insert.

    Attributes
    ----------
    rows_inserted:
        Number of new rows written to `transactions`.
    duplicates_skipped:
        Rows ignored because their composite key is already stored.
    rows_failed:
        Rows that could not be written even on the row-by-row retry.
    """

    rows_inserted: int
    duplicates_skipped: int
    rows_failed: int


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _ensure_sqlite(cfg: DatabaseConfig) -> None:
    """Raise if the configuration does not refer to a supported engine."""
    if cfg.engine.lower() != "sqlite":
        msg = (
            f"Unsupported database engine: {cfg.engine!r}. "
            "Only 'sqlite' is supported for now."
        )
        raise ValueError(msg)


def _connect(cfg: DatabaseConfig) -> sqlite3.Connection:
    """
    Open a SQLite connection with foreign keys enabled.

    The caller is responsible for closing the connection.
    """
    _ensure_sqlite(cfg)
    conn = sqlite3.connect(cfg.path)
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def _create_schema_if_needed(conn: sqlite3.Connection) -> None:
    """Create tables and indexes if they do not exist yet (idempotent)."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS categories (
            id            INTEGER PRIMARY KEY,
            name          TEXT    NOT NULL,
            type          TEXT    NOT NULL,
            parent_id     INTEGER,
            is_active     INTEGER NOT NULL DEFAULT 1,
            account_code  TEXT,

            FOREIGN KEY (parent_id) REFERENCES categories(id)
        );
        """
    )

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS transactions (
            id            INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id       TEXT    NOT NULL,
            date          TEXT    NOT NULL,  -- ISO date 'YYYY-MM-DD'
            description   TEXT    NOT NULL,
            debit_cents   INTEGER NOT NULL DEFAULT 0,
            credit_cents  INTEGER NOT NULL DEFAULT 0,
            category_id   INTEGER,
            dedup_key     TEXT    NOT NULL UNIQUE,
            imported_at   TEXT    NOT NULL,

            FOREIGN KEY (category_id) REFERENCES categories(id)
        );
        """
    )

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS employees (
            id                   INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id              TEXT    NOT NULL,
            name                 TEXT    NOT NULL,
            employee_code        TEXT    NOT NULL,
            email                TEXT    NOT NULL,
            position             TEXT    NOT NULL,
            age                  INTEGER NOT NULL,
            monthly_salary_cents INTEGER NOT NULL,
            overtime_rate_cents  INTEGER NOT NULL,
            cpf_rate             REAL    NOT NULL,
            date_joined          TEXT    NOT NULL,

            UNIQUE (user_id, name)
        );
        """
    )

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS payroll_logs (
            id                    INTEGER PRIMARY KEY AUTOINCREMENT,
            employee_id           INTEGER NOT NULL,
            source_transaction_id INTEGER NOT NULL UNIQUE,
            gross_cents           INTEGER NOT NULL,
            cpf_cents             INTEGER NOT NULL,
            net_pay_cents         INTEGER NOT NULL,
            base_salary_cents     INTEGER NOT NULL,
            period_month          INTEGER NOT NULL,
            period_year           INTEGER NOT NULL,

            FOREIGN KEY (employee_id) REFERENCES employees(id),
            FOREIGN KEY (source_transaction_id) REFERENCES transactions(id)
        );
        """
    )

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS annual_summaries (
            id            INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id       TEXT    NOT NULL,
            category_id   INTEGER NOT NULL,
            year          INTEGER NOT NULL,
            amount_cents  INTEGER NOT NULL,
            report_type   TEXT    NOT NULL,

            UNIQUE (user_id, category_id, year),
            FOREIGN KEY (category_id) REFERENCES categories(id)
        );
        """
    )

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS debts (
            id               INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id          TEXT    NOT NULL,
            creditor         TEXT    NOT NULL,
            principal_cents  INTEGER NOT NULL,
            interest_rate    REAL    NOT NULL,
            start_date       TEXT    NOT NULL,
            due_date         TEXT    NOT NULL,
            description      TEXT    NOT NULL,

            UNIQUE (user_id, description, start_date)
        );
        """
    )

    conn.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_transactions_user_date
            ON transactions(user_id, date);
        """
    )

    conn.commit()


def _to_iso_date(value) -> str:
    """Convert a date-like value to ISO 'YYYY-MM-DD' string."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return date.fromisoformat(str(value)[:10]).isoformat()


def _to_cents(amount: float) -> int:
    return int(round(float(amount) * 100))


def _now_utc_iso() -> str:
    """Return the current UTC datetime as ISO string."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _user_key(user_id: str) -> str:
    return user_id.strip().lower()


# ---------------------------------------------------------------------------
# Public API: schema
# ---------------------------------------------------------------------------


def init_database(cfg: DatabaseConfig) -> None:
    """
    Initialize the database schema if needed.

    - Creates the SQLite file (and its parent directory) if missing.
    - Creates tables and indexes if they are missing.
    - This function is idempotent: calling it multiple times is safe.

    Raises
    ------
    ValueError
        If cfg.engine is not supported.
    sqlite3.Error
        If schema creation fails.
    """
    _ensure_sqlite(cfg)
    cfg.path.parent.mkdir(parents=True, exist_ok=True)

    conn = _connect(cfg)
    try:
        _create_schema_if_needed(conn)
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Public API: categories
# ---------------------------------------------------------------------------


def load_categories(cfg: DatabaseConfig) -> CategoryTree:
    """Load the stored chart of accounts into a CategoryTree."""
    init_database(cfg)

    conn = _connect(cfg)
    try:
        df = pd.read_sql_query(
            "SELECT id, name, type, parent_id, is_active, account_code "
            "FROM categories ORDER BY id;",
            conn,
        )
    finally:
        conn.close()

    return CategoryTree.from_dataframe(df)


def save_categories(cfg: DatabaseConfig, categories: Iterable[Category]) -> int:
    """
    Insert categories that are not stored yet (by id).

    Categories must be given parents first, which is the order of
    `CategoryTree.created`.

    Returns
    -------
    int
        Number of categories inserted.
    """
    init_database(cfg)

    rows = [
        (c.id, c.name, c.type, c.parent_id, int(c.is_active), c.account_code)
        for c in categories
    ]
    if not rows:
        return 0

    conn = _connect(cfg)
    try:
        before = conn.total_changes
        conn.executemany(
            """
            INSERT OR IGNORE INTO categories (
                id, name, type, parent_id, is_active, account_code
            )
            VALUES (?, ?, ?, ?, ?, ?);
            """,
            rows,
        )
        conn.commit()
        return conn.total_changes - before
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Public API: transactions
# ---------------------------------------------------------------------------


def _transaction_row(txn: Transaction, imported_at: str) -> tuple:
    return (
        _user_key(txn.user_id),
        _to_iso_date(txn.date),
        txn.description,
        _to_cents(txn.debit),
        _to_cents(txn.credit),
        txn.category_id,
        txn.dedup_key,
        imported_at,
    )


_INSERT_TRANSACTION = """
    INSERT OR IGNORE INTO transactions (
        user_id, date, description, debit_cents, credit_cents,
        category_id, dedup_key, imported_at
    )
    VALUES (?, ?, ?, ?, ?, ?, ?, ?);
"""


def insert_transactions(
    cfg: DatabaseConfig,
    transactions: Sequence[Transaction],
    *,
    chunk_size: int = CHUNK_SIZE,
) -> InsertStats:
    """
    Insert transactions in chunks, ignoring rows whose key is already stored.

    Behavior
    --------
    - Rows are written `chunk_size` at a time, one SQLite transaction per
      chunk.
    - A chunk that fails is rolled back and retried row by row, so that a
      single bad row only loses itself.
    - Rows whose `dedup_key` already exists are counted as duplicates.

    Returns
    -------
    InsertStats
    """
    init_database(cfg)
    imported_at = _now_utc_iso()

    inserted = 0
    failed = 0
    conn = _connect(cfg)
    try:
        for start in range(0, len(transactions), chunk_size):
            chunk = transactions[start : start + chunk_size]
            before = conn.total_changes
            try:
                rows = [_transaction_row(t, imported_at) for t in chunk]
                conn.executemany(_INSERT_TRANSACTION, rows)
                conn.commit()
                inserted += conn.total_changes - before
                continue
            except ROW_ERRORS as exc:
                conn.rollback()
                logger.warning(
                    "Chunk starting at row %d failed (%s), retrying row by row.",
                    start,
                    exc,
                )

            for txn in chunk:
                before = conn.total_changes
                try:
                    conn.execute(_INSERT_TRANSACTION, _transaction_row(txn, imported_at))
                    conn.commit()
                    inserted += conn.total_changes - before
                except ROW_ERRORS as exc:
                    conn.rollback()
                    failed += 1
                    logger.warning("Transaction %r not stored: %s", txn.description, exc)
    finally:
        conn.close()

    stats = InsertStats(
        rows_inserted=inserted,
        duplicates_skipped=len(transactions) - inserted - failed,
        rows_failed=failed,
    )
    logger.info(
        "Stored transactions: %d inserted, %d already present, %d failed",
        stats.rows_inserted,
        stats.duplicates_skipped,
        stats.rows_failed,
    )
    return stats


def latest_transaction_date(cfg: DatabaseConfig, user_id: str) -> date | None:
    """Return the date of the user's most recent transaction, None if none."""
    init_database(cfg)

    conn = _connect(cfg)
    try:
        cur = conn.execute(
            "SELECT MAX(date) FROM transactions WHERE user_id = ?;",
            (_user_key(user_id),),
        )
        (value,) = cur.fetchone()
    finally:
        conn.close()

    return date.fromisoformat(value) if value else None


def load_transactions(
    cfg: DatabaseConfig,
    user_id: str,
    start: date | None = None,
    end: date | None = None,
) -> pd.DataFrame:
    """
    Load the user's transactions, optionally within [start, end].

    Returns
    -------
    pandas.DataFrame
        Columns: id, date (datetime64[ns]), description, debit, credit,
        category_id (nullable), category_name ("" when uncategorized).
        Amounts are reconstructed from cents.
    """
    init_database(cfg)

    query = """
        SELECT t.id, t.date, t.description, t.debit_cents, t.credit_cents,
               t.category_id, COALESCE(c.name, '') AS category_name
          FROM transactions t
          LEFT JOIN categories c ON c.id = t.category_id
         WHERE t.user_id = ?
    """
    params: list = [_user_key(user_id)]
    if start is not None:
        query += " AND t.date >= ?"
        params.append(start.isoformat())
    if end is not None:
        query += " AND t.date <= ?"
        params.append(end.isoformat())
    query += " ORDER BY t.date, t.id;"

    conn = _connect(cfg)
    try:
        rows = conn.execute(query, params).fetchall()
    finally:
        conn.close()

    if not rows:
        return pd.DataFrame(columns=TRANSACTION_COLUMNS)

    df = pd.DataFrame(
        rows,
        columns=[
            "id",
            "date",
            "description",
            "debit_cents",
            "credit_cents",
            "category_id",
            "category_name",
        ],
    )
    df["date"] = pd.to_datetime(df["date"], format="%Y-%m-%d")
    df["debit"] = df["debit_cents"].astype(float) / 100.0
    df["credit"] = df["credit_cents"].astype(float) / 100.0
    df["category_id"] = df["category_id"].astype("Int64")
    return df[TRANSACTION_COLUMNS]


def load_transaction_records(cfg: DatabaseConfig, user_id: str) -> list[Transaction]:
    """Load every transaction of the user as Transaction records."""
    df = load_transactions(cfg, user_id)
    user_key = _user_key(user_id)
    return [
        Transaction(
            id=int(r.id),
            user_id=user_key,
            date=r.date.date(),
            description=r.description,
            debit=float(r.debit),
            credit=float(r.credit),
            category_id=None if pd.isna(r.category_id) else int(r.category_id),
            category_name=r.category_name or None,
        )
        for r in df.itertuples(index=False)
    ]


# ---------------------------------------------------------------------------
# Public API: employees & payroll logs
# ---------------------------------------------------------------------------


def load_employees(cfg: DatabaseConfig, user_id: str) -> list[Employee]:
    """Return the stored employees of a user, in creation order."""
    init_database(cfg)

    conn = _connect(cfg)
    try:
        rows = conn.execute(
            """
            SELECT id, user_id, name, employee_code, email, position, age,
                   monthly_salary_cents, overtime_rate_cents, cpf_rate,
                   date_joined
              FROM employees
             WHERE user_id = ?
             ORDER BY id;
            """,
            (_user_key(user_id),),
        ).fetchall()
    finally:
        conn.close()

    return [
        Employee(
            id=r[0],
            user_id=r[1],
            name=r[2],
            employee_code=r[3],
            email=r[4],
            position=r[5],
            age=r[6],
            monthly_salary=r[7] / 100.0,
            overtime_hourly_rate=r[8] / 100.0,
            cpf_rate=r[9],
            date_joined=date.fromisoformat(r[10]),
        )
        for r in rows
    ]


def insert_employees(cfg: DatabaseConfig, employees: Iterable[Employee]) -> int:
    """Insert employees not stored yet (by user and name). Returns the count."""
    init_database(cfg)

    rows = [
        (
            _user_key(e.user_id),
            e.name,
            e.employee_code,
            e.email,
            e.position,
            e.age,
            _to_cents(e.monthly_salary),
            _to_cents(e.overtime_hourly_rate),
            e.cpf_rate,
            _to_iso_date(e.date_joined),
        )
        for e in employees
    ]
    if not rows:
        return 0

    conn = _connect(cfg)
    try:
        before = conn.total_changes
        conn.executemany(
            """
            INSERT OR IGNORE INTO employees (
                user_id, name, employee_code, email, position, age,
                monthly_salary_cents, overtime_rate_cents, cpf_rate,
                date_joined
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            rows,
        )
        conn.commit()
        return conn.total_changes - before
    finally:
        conn.close()


def load_logged_transaction_ids(cfg: DatabaseConfig, user_id: str) -> set[int]:
    """Source transaction ids that already have a payroll log entry."""
    init_database(cfg)

    conn = _connect(cfg)
    try:
        rows = conn.execute(
            """
            SELECT p.source_transaction_id
              FROM payroll_logs p
              JOIN employees e ON e.id = p.employee_id
             WHERE e.user_id = ?;
            """,
            (_user_key(user_id),),
        ).fetchall()
    finally:
        conn.close()

    return {r[0] for r in rows}


def upsert_payroll_logs(
    cfg: DatabaseConfig, user_id: str, logs: Iterable[PayrollLogEntry]
) -> int:
    """
    Write payroll log entries, keyed by source transaction id.

    Entries without an `employee_id` are linked through their employee code,
    so employees must be stored first. Repeats of a source transaction id
    within `logs` are dropped (first wins); an id already stored is updated.

    Returns
    -------
    int
        Number of entries written.
    """
    init_database(cfg)

    unique: dict[int, PayrollLogEntry] = {}
    for log in logs:
        unique.setdefault(log.source_transaction_id, log)
    if not unique:
        return 0

    conn = _connect(cfg)
    try:
        codes = dict(
            conn.execute(
                "SELECT employee_code, id FROM employees WHERE user_id = ?;",
                (_user_key(user_id),),
            ).fetchall()
        )
        rows = []
        for log in unique.values():
            employee_id = log.employee_id or codes.get(log.employee_code)
            if employee_id is None:
                logger.warning(
                    "No stored employee %s for transaction %d, log skipped.",
                    log.employee_code,
                    log.source_transaction_id,
                )
                continue
            rows.append(
                (
                    employee_id,
                    log.source_transaction_id,
                    _to_cents(log.gross_salary_estimate),
                    _to_cents(log.cpf_amount_estimate),
                    _to_cents(log.net_pay),
                    _to_cents(log.base_salary),
                    log.period_month,
                    log.period_year,
                )
            )

        conn.executemany(
            """
            INSERT INTO payroll_logs (
                employee_id, source_transaction_id, gross_cents, cpf_cents,
                net_pay_cents, base_salary_cents, period_month, period_year
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(source_transaction_id) DO UPDATE SET
                employee_id       = excluded.employee_id,
                gross_cents       = excluded.gross_cents,
                cpf_cents         = excluded.cpf_cents,
                net_pay_cents     = excluded.net_pay_cents,
                base_salary_cents = excluded.base_salary_cents,
                period_month      = excluded.period_month,
                period_year       = excluded.period_year;
            """,
            rows,
        )
        conn.commit()
        return len(rows)
    finally:
        conn.close()


def load_payroll_logs(cfg: DatabaseConfig, user_id: str) -> pd.DataFrame:
    """
    Return the payroll log of a user, most recent period first.

    Columns: employee_code, name, period_year, period_month, net_pay,
    gross_salary_estimate, cpf_amount_estimate, source_transaction_id.
    """
    init_database(cfg)

    conn = _connect(cfg)
    try:
        df = pd.read_sql_query(
            """
            SELECT e.employee_code, e.name, p.period_year, p.period_month,
                   p.net_pay_cents, p.gross_cents, p.cpf_cents,
                   p.source_transaction_id
              FROM payroll_logs p
              JOIN employees e ON e.id = p.employee_id
             WHERE e.user_id = ?
             ORDER BY p.period_year DESC, p.period_month DESC, e.employee_code;
            """,
            conn,
            params=(_user_key(user_id),),
        )
    finally:
        conn.close()

    df["net_pay"] = df.pop("net_pay_cents").astype(float) / 100.0
    df["gross_salary_estimate"] = df.pop("gross_cents").astype(float) / 100.0
    df["cpf_amount_estimate"] = df.pop("cpf_cents").astype(float) / 100.0
    return df[
        [
            "employee_code",
            "name",
            "period_year",
            "period_month",
            "net_pay",
            "gross_salary_estimate",
            "cpf_amount_estimate",
            "source_transaction_id",
        ]
    ]


# ---------------------------------------------------------------------------
# Public API: annual summaries
# ---------------------------------------------------------------------------


def upsert_annual_summaries(cfg: DatabaseConfig, summaries: Iterable[AnnualSummary]) -> int:
    """Upsert annual summaries keyed by (user_id, category_id, year)."""
    init_database(cfg)

    rows = [
        (_user_key(s.user_id), s.category_id, s.year, _to_cents(s.amount), s.report_type)
        for s in summaries
    ]
    if not rows:
        return 0

    conn = _connect(cfg)
    try:
        conn.executemany(
            """
            INSERT INTO annual_summaries (
                user_id, category_id, year, amount_cents, report_type
            )
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(user_id, category_id, year) DO UPDATE SET
                amount_cents = excluded.amount_cents,
                report_type  = excluded.report_type;
            """,
            rows,
        )
        conn.commit()
        return len(rows)
    finally:
        conn.close()


def load_annual_summaries(cfg: DatabaseConfig, user_id: str) -> pd.DataFrame:
    """Return the annual summaries of a user with their category names."""
    init_database(cfg)

    conn = _connect(cfg)
    try:
        df = pd.read_sql_query(
            """
            SELECT s.category_id, c.name AS category_name, s.year,
                   s.amount_cents, s.report_type
              FROM annual_summaries s
              JOIN categories c ON c.id = s.category_id
             WHERE s.user_id = ?
             ORDER BY s.year, s.category_id;
            """,
            conn,
            params=(_user_key(user_id),),
        )
    finally:
        conn.close()

    df["amount"] = df.pop("amount_cents").astype(float) / 100.0
    return df


# ---------------------------------------------------------------------------
# Public API: debts
# ---------------------------------------------------------------------------


def load_debts(cfg: DatabaseConfig, user_id: str) -> list[Debt]:
    """Return the stored debts of a user, oldest first."""
    init_database(cfg)

    conn = _connect(cfg)
    try:
        rows = conn.execute(
            """
            SELECT id, user_id, creditor, principal_cents, interest_rate,
                   start_date, due_date, description
              FROM debts
             WHERE user_id = ?
             ORDER BY start_date, id;
            """,
            (_user_key(user_id),),
        ).fetchall()
    finally:
        conn.close()

    return [
        Debt(
            id=r[0],
            user_id=r[1],
            creditor=r[2],
            principal_amount=r[3] / 100.0,
            interest_rate=r[4],
            start_date=date.fromisoformat(r[5]),
            due_date=date.fromisoformat(r[6]),
            description=r[7],
        )
        for r in rows
    ]


def insert_debts(cfg: DatabaseConfig, debts: Iterable[Debt]) -> int:
    """Insert debts not stored yet (by user, description, start date)."""
    init_database(cfg)

    rows = [
        (
            _user_key(d.user_id),
            d.creditor,
            _to_cents(d.principal_amount),
            d.interest_rate,
            _to_iso_date(d.start_date),
            _to_iso_date(d.due_date),
            d.description,
        )
        for d in debts
    ]
    if not rows:
        return 0

    conn = _connect(cfg)
    try:
        before = conn.total_changes
        conn.executemany(
            """
            INSERT OR IGNORE INTO debts (
                user_id, creditor, principal_cents, interest_rate,
                start_date, due_date, description
            )
            VALUES (?, ?, ?, ?, ?, ?, ?);
            """,
            rows,
        )
        conn.commit()
        return conn.total_changes - before
    finally:
        conn.close()
