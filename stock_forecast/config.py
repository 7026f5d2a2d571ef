"""Planner settings read from data/config.csv or data/config.xlsx."""

import logging
from datetime import date
from pathlib import Path

import pandas as pd

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = {
    "sku": "DEMO-SKU",
    "product_name": "",
    "in_stock": 0.0,
    "sales_30_days": 0.0,
    "horizon_days": 365,
    "medium_risk_turnover_days": 45,
    "history_file": "monthly_history",
    "batches_file": "in_transit",
    "strategy_dir": "data/strategies",
    "export_dir": "exports",
    "overrides_file": "forecast_overrides",
    # None means December of next year, resolved on every load
    "forecast_end_month": None,
}


def read_tabular_file(path_without_ext: Path) -> pd.DataFrame | None:
    """Read .csv or .xlsx file by base path."""
    csv_path = path_without_ext.with_suffix(".csv")
    xlsx_path = path_without_ext.with_suffix(".xlsx")

    if csv_path.exists():
        return pd.read_csv(csv_path)
    if xlsx_path.exists():
        return pd.read_excel(xlsx_path)
    return None


def _coerce(key: str, value):
    default = DEFAULT_SETTINGS.get(key)
    if isinstance(default, bool) or default is None:
        return value
    if isinstance(default, int):
        return int(float(value))
    if isinstance(default, float):
        return float(value)
    return str(value).strip()


def default_forecast_end_month(today: date | None = None) -> str:
    """December of the year after `today`."""
    today = today or date.today()
    return f"{today.year + 1}-12"


def load_settings(data_dir: str | Path = "data", overrides: dict | None = None, today: date | None = None) -> dict:
    """
    Defaults overlaid with the optional config file, then with `overrides`.

    Required columns in the config file: parameter, value
    """
    settings = dict(DEFAULT_SETTINGS)
    config_df = read_tabular_file(Path(data_dir) / "config")
    if config_df is not None:
        required = {"parameter", "value"}
        if not required.issubset(config_df.columns):
            raise ValueError(
                "Config file must contain columns: parameter, value. "
                f"Found: {list(config_df.columns)}"
            )
        file_values = dict(zip(config_df["parameter"].astype(str).str.strip(), config_df["value"]))
        settings.update({key: value for key, value in file_values.items() if pd.notna(value)})
        logger.info("Loaded %d setting(s) from %s", len(file_values), data_dir)

    settings.update(overrides or {})
    if not settings.get("forecast_end_month"):
        settings["forecast_end_month"] = default_forecast_end_month(today)
    return {key: _coerce(key, value) for key, value in settings.items()}
