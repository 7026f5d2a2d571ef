"""Forecast adjustments: overrides, ratio scaling and the combined monthly series."""

import logging
from datetime import date

import pandas as pd

from .demand_planner import DemandPlanner
from .models import StrategyConfig
from .utils import current_month, month_key, month_range, round_half_up, safe_divide, to_period

logger = logging.getLogger(__name__)


def resolve_base_forecast(month: str, baseline: float, overrides: dict, calculated: dict) -> float:
    """Manual override, else calculated forecast, else the backend baseline; only positive values count."""
    manual = overrides.get(month)
    if manual is not None and manual > 0:
        return float(manual)
    calc = calculated.get(month)
    if calc is not None and calc > 0:
        return float(calc)
    return float(baseline or 0)


def _unit_ratio(base: float, forecast_value: float, actual_value: float, actual_qty: float, fallback: float) -> float:
    if base > 0 and forecast_value:
        ratio = forecast_value / base
    elif actual_value and actual_qty:
        ratio = actual_value / actual_qty
    else:
        ratio = fallback
    return ratio or fallback


def apply_adjustments(
    record: dict,
    config: StrategyConfig,
    avg_price: float = 0.0,
    avg_customer_ratio: float = 0.0,
) -> dict:
    """
    Final forecast figures for one month of the combined series.

    `record` carries the month's history fields (month, type, actual_*,
    forecast_*); the forecast_* fields are the untouched backend baseline.
    The returned quantity never falls below the month's actual quantity.
    """
    month = record["month"]
    baseline = float(record.get("forecast_qty") or 0)
    overrides = config.forecast_overrides
    calculated = config.calculated_forecasts

    base = resolve_base_forecast(month, baseline, overrides, calculated)
    ratio = config.ratio_adjustment
    if ratio != 0 and (record.get("type") == "future" or overrides.get(month) or calculated.get(month)):
        base = round_half_up(base * (1 + ratio / 100))

    actual = float(record.get("actual_qty") or 0)
    remainder = max(0.0, base - actual)
    final_qty = actual + remainder

    baseline_amount = float(record.get("forecast_amount") or 0)
    baseline_customers = float(record.get("forecast_customer_count") or 0)
    price = _unit_ratio(base, baseline_amount, record.get("actual_amount"), actual, avg_price)
    customer_ratio = _unit_ratio(
        base, baseline_customers, record.get("actual_customer_count"), actual, avg_customer_ratio
    )

    untouched = base == baseline
    if baseline_amount > 0 and untouched:
        final_amount = baseline_amount
    else:
        final_amount = round_half_up(final_qty * price)
    if baseline_customers > 0 and untouched:
        final_customers = baseline_customers
    else:
        final_customers = round_half_up(final_qty * customer_ratio)

    return {
        "forecast_qty": final_qty,
        "forecast_remainder": remainder,
        "forecast_amount": final_amount,
        "forecast_customer_count": final_customers,
    }


def series_averages(history: pd.DataFrame) -> tuple[float, float]:
    """Average unit price and customers-per-unit over months that sold something."""
    sold = history[history["actual_qty"] > 0]
    total_qty = float(sold["actual_qty"].sum())
    avg_price = safe_divide(float(sold["actual_amount"].sum()), total_qty)
    avg_customer_ratio = safe_divide(float(sold["actual_customer_count"].sum()), total_qty)
    return avg_price, avg_customer_ratio


def build_forecast_series(
    history: pd.DataFrame,
    config: StrategyConfig,
    start_month: str | None = None,
    end_month: str | None = None,
    today: date | None = None,
) -> pd.DataFrame:
    """
    Combine history and adjusted forecasts into one row per month.

    The window defaults to the config's start/forecast months, else the
    months present in the history. Missing months become empty future rows.
    """
    planner = DemandPlanner()
    prepared = planner.load_monthly_history(history)

    start_month = start_month or config.start_year_month
    end_month = end_month or config.forecast_year_month
    if start_month and end_month:
        months = month_range(start_month, end_month)
    else:
        months = prepared["month"].tolist()

    avg_price, avg_customer_ratio = series_averages(prepared)
    by_month = prepared.set_index("month").to_dict("index")
    this_month = current_month(today)

    rows = []
    for month in months:
        record = by_month.get(month)
        if record is None:
            record = {col: 0.0 for col in prepared.columns if col not in ("month", "type")}
            record["type"] = "future"
        record = {**record, "month": month}

        adjusted = apply_adjustments(record, config, avg_price, avg_customer_ratio)
        strictly_future = month > this_month
        rows.append(
            {
                "month": month,
                "type": record["type"],
                "actual_qty": float(record.get("actual_qty") or 0),
                "actual_amount": None if strictly_future else record.get("actual_amount"),
                "actual_customer_count": None if strictly_future else record.get("actual_customer_count"),
                **adjusted,
            }
        )

    logger.debug("Built forecast series with %d months (avg price %.2f)", len(rows), avg_price)
    return pd.DataFrame(
        rows,
        columns=[
            "month",
            "type",
            "actual_qty",
            "actual_amount",
            "actual_customer_count",
            "forecast_qty",
            "forecast_remainder",
            "forecast_amount",
            "forecast_customer_count",
        ],
    )


def attach_simulation(series: pd.DataFrame, simulation: pd.DataFrame) -> pd.DataFrame:
    """
    Add monthly inbound, simulated stock and reference-line columns to a forecast series.

    Simulated stock is the last simulated day of each month, matching how
    the monthly stock outlook reports projected stock.
    """
    combined = series.copy()
    if simulation.empty:
        for col in ["inbound", "sim_stock", "sim_rop", "sim_safety"]:
            combined[col] = 0
        return combined

    working = simulation.copy()
    working["month"] = pd.to_datetime(working["date"]).dt.to_period("M").astype(str)
    working = working.sort_values("date")
    monthly = working.groupby("month", as_index=False).agg(
        inbound=("inbound", "sum"),
        sim_stock=("stock", "last"),
        sim_rop=("rop", "last"),
        sim_safety=("safety_stock", "last"),
    )
    combined = combined.merge(monthly, on="month", how="left")
    for col in ["inbound", "sim_stock", "sim_rop", "sim_safety"]:
        combined[col] = combined[col].fillna(0)
    return combined


OVERRIDE_TABLE_COLUMNS = ["month", "calculated", "override"]


def build_override_table(config: StrategyConfig, months) -> pd.DataFrame:
    """Editable table of calculated forecasts and manual overrides, one row per month."""
    rows = [
        {
            "month": month,
            "calculated": config.calculated_forecasts.get(month, 0.0),
            "override": config.forecast_overrides.get(month),
        }
        for month in months
    ]
    table = pd.DataFrame(rows, columns=OVERRIDE_TABLE_COLUMNS)
    table["override"] = pd.to_numeric(table["override"], errors="coerce")
    return table


def read_override_table(table: pd.DataFrame) -> dict:
    """
    Month -> override map from an edited override table.

    Required columns: month, override. Blank, zero or negative overrides clear
    the month; unreadable month keys are skipped with a warning.
    """
    if "month" not in table.columns or "override" not in table.columns:
        raise ValueError("Override table must contain 'month' and 'override' columns")

    values = pd.to_numeric(table["override"], errors="coerce")
    overrides = {}
    for month, value in zip(table["month"], values):
        if pd.isna(value) or value <= 0:
            continue
        try:
            key = month_key(to_period(str(month).strip()))
        except ValueError:
            logger.warning("Skipped override for unreadable month %r", month)
            continue
        overrides[key] = float(value)
    return overrides
