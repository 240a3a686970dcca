# SMB LedgerSight - Ledger classification & cash-flow forecasting for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Configuration helpers for SMB LedgerSight.

This module is responsible for:
- loading the application configuration from a TOML file,
- providing built-in defaults when no configuration file exists,
- exposing typed dataclasses used by the rest of the application.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover - fallback for older Python
    import tomli as tomllib  # type: ignore[import]

from .classifier import ClassifierKeywords
from .db import DatabaseConfig
from .forecast import ForecastSettings
from .payroll import PayrollSettings

DEFAULT_CONFIG_FILE = "smb_ledgersight_config.toml"
DEFAULT_DB_PATH = "data/db/smb_ledgersight.sqlite"
DEFAULT_USER = "owner@example.com"


@dataclass(frozen=True)
class AppConfig:
    """
    Application-wide configuration for SMB LedgerSight.

    This aggregates:
    - the database configuration (where transactions are stored),
    - the default user (organisation e-mail) of the CLI,
    - an optional chart of accounts CSV used to seed the category tree,
    - the classifier keyword lists,
    - the payroll inference settings,
    - the forecast model settings.
    """

    database: DatabaseConfig
    user_id: str = DEFAULT_USER
    chart_of_accounts: Optional[Path] = None
    classifier: ClassifierKeywords = field(default_factory=ClassifierKeywords)
    payroll: PayrollSettings = field(default_factory=PayrollSettings)
    forecast: ForecastSettings = field(default_factory=ForecastSettings)


def _load_toml(path: Path) -> dict[str, Any]:
    """
    Load a TOML file and return its content as a dictionary.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the TOML content cannot be parsed or is not a table.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:  # noqa: BLE001
        raise ValueError(f"Failed to parse TOML config file: {path}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Invalid TOML root type in {path}, expected a table.")

    return data


def _section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = raw.get(name) or {}
    if not isinstance(section, Mapping):
        raise ValueError(f"Config section [{name}] must be a table.")
    return section


def _apply_overrides(defaults, section: Mapping[str, Any], name: str):
    """
    Return a copy of a settings dataclass with the values of a TOML section.

    Unknown keys raise a ValueError. List values replace the default tuple.
    """
    known = {f.name: f for f in fields(defaults)}
    values: dict[str, Any] = {}
    for key, value in section.items():
        if key not in known:
            raise ValueError(f"Unknown key {key!r} in config section [{name}].")
        default = getattr(defaults, key)
        try:
            if isinstance(default, tuple):
                if not isinstance(value, list):
                    raise TypeError("expected a list")
                values[key] = tuple(str(v).lower() for v in value)
            elif isinstance(default, bool):
                values[key] = bool(value)
            elif isinstance(default, int):
                values[key] = int(value)
            elif isinstance(default, float):
                values[key] = float(value)
            else:
                values[key] = value
        except (TypeError, ValueError) as exc:
            raise ValueError(
                f"Invalid value for '{name}.{key}' in the configuration: {value!r}."
            ) from exc

    current = {k: getattr(defaults, k) for k in known}
    current.update(values)
    return type(defaults)(**current)


def default_app_config(base_dir: Optional[Path] = None) -> AppConfig:
    """Built-in configuration, with the database under `base_dir` (or cwd)."""
    base = (base_dir or Path.cwd()).resolve()
    return AppConfig(
        database=DatabaseConfig(engine="sqlite", path=(base / DEFAULT_DB_PATH).resolve())
    )


def load_app_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Load the SMB LedgerSight application configuration from a TOML file.

    Expected top-level sections in the TOML file (all optional)
    -----------------------------------------------------------
    [database]
        Database engine ("sqlite") and SQLite file path.

    [user]
        `id`: default user / organisation e-mail.

    [paths]
        `chart_of_accounts`: optional CSV used to seed the category tree.

    [classifier]
        Keyword lists: utility, government, banking, food,
        business_suffixes, salary.

    [payroll]
        net_to_gross_ratio, default_cpf_rate, employer_cpf_rate,
        default_overtime_rate, noise_tokens.

    [forecast]
        history_months, horizon_days, recent_months, recent_weight,
        fixed_keywords, anomaly_keywords, revenue_exclusions.

    Notes
    -----
    - All file paths in the TOML are resolved relative to the directory of
      the TOML file itself.
    - Without an explicit path, `smb_ledgersight_config.toml` is read from
      the current directory if it exists; otherwise built-in defaults are
      used. An explicit path that does not exist is an error.

    Returns
    -------
    AppConfig
        Parsed and validated application configuration.

    Raises
    ------
    FileNotFoundError
        If an explicit config path does not exist.
    ValueError
        If the TOML is invalid or contains unknown keys / bad values.
    """
    if config_path is None:
        config_file = Path(DEFAULT_CONFIG_FILE).resolve()
        if not config_file.is_file():
            return default_app_config()
    else:
        config_file = Path(config_path).resolve()

    raw = _load_toml(config_file)
    base_dir = config_file.parent

    # 1) Database section
    database_section = _section(raw, "database")
    db_engine = str(database_section.get("engine") or "sqlite")
    db_path_raw = database_section.get("path") or DEFAULT_DB_PATH
    db_path = (base_dir / str(db_path_raw)).resolve()
    database_config = DatabaseConfig(engine=db_engine, path=db_path)

    # 2) User and paths
    user_section = _section(raw, "user")
    user_id = str(user_section.get("id") or DEFAULT_USER).strip().lower()

    paths_section = _section(raw, "paths")
    coa_raw = paths_section.get("chart_of_accounts")
    chart_of_accounts = (base_dir / str(coa_raw)).resolve() if coa_raw else None

    # 3) Engine settings
    classifier = _apply_overrides(
        ClassifierKeywords(), _section(raw, "classifier"), "classifier"
    )
    payroll = _apply_overrides(PayrollSettings(), _section(raw, "payroll"), "payroll")
    forecast = _apply_overrides(
        ForecastSettings(), _section(raw, "forecast"), "forecast"
    )

    if payroll.net_to_gross_ratio <= 0 or payroll.net_to_gross_ratio > 1:
        raise ValueError("'payroll.net_to_gross_ratio' must be in (0, 1].")
    for key in ("default_cpf_rate", "employer_cpf_rate"):
        if not 0 <= getattr(payroll, key) <= 100:
            raise ValueError(f"'payroll.{key}' must be a percentage in [0, 100].")
    if forecast.history_months <= 0 or forecast.horizon_days <= 0:
        raise ValueError(
            "'forecast.history_months' and 'forecast.horizon_days' must be positive."
        )

    return AppConfig(
        database=database_config,
        user_id=user_id,
        chart_of_accounts=chart_of_accounts,
        classifier=classifier,
        payroll=payroll,
        forecast=forecast,
    )
