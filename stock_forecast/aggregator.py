"""Roll monthly forecast series up to calendar years."""

import pandas as pd

from .utils import round_half_up

SUM_COLUMNS = [
    "actual_qty",
    "actual_amount",
    "actual_customer_count",
    "forecast_qty",
    "forecast_remainder",
    "forecast_amount",
    "forecast_customer_count",
    "inbound",
]


def group_by_year(monthly_series: pd.DataFrame) -> pd.DataFrame:
    """
    Yearly totals of a monthly series.

    Quantities, amounts and customer counts are summed; simulated stock is
    averaged over the year's months. Reorder point and safety stock have no
    yearly meaning and are reported as 0.
    """
    working = monthly_series.copy()
    working["year"] = working["month"].astype(str).str[:4]
    sum_cols = [col for col in SUM_COLUMNS if col in working.columns]
    for col in sum_cols:
        working[col] = pd.to_numeric(working[col], errors="coerce").fillna(0)
    if "sim_stock" not in working.columns:
        working["sim_stock"] = 0
    working["sim_stock"] = pd.to_numeric(working["sim_stock"], errors="coerce").fillna(0)

    grouped = working.groupby("year", sort=True)
    yearly = grouped[sum_cols].sum()
    yearly["type"] = grouped["type"].first() if "type" in working.columns else "past"
    yearly["sim_stock"] = grouped["sim_stock"].mean().apply(round_half_up)
    yearly["sim_rop"] = 0
    yearly["sim_safety"] = 0

    yearly = yearly.reset_index().rename(columns={"year": "month"})
    ordered = ["month", "type", *sum_cols, "sim_stock", "sim_rop", "sim_safety"]
    return yearly[ordered]
