"""Run the forecast and replenishment pipeline for one SKU from files in data/."""

import logging
from datetime import date
from pathlib import Path

import pandas as pd

from stock_forecast import (
    DemandPlanner,
    ExcelGenerator,
    InTransitBatch,
    InventoryManager,
    StrategyStore,
    attach_simulation,
    batches_from_frame,
    build_forecast_series,
    build_kpi_snapshot,
    group_by_year,
    read_override_table,
)
from stock_forecast.config import load_settings, read_tabular_file
from stock_forecast.utils import current_month, shift_month

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
)
logger = logging.getLogger("stock_forecast.main")

DATA_DIR = Path("data")


def _load_history(settings: dict) -> pd.DataFrame:
    """
    Load monthly history for the SKU.

    Required columns: month, actual_qty
    """
    history = read_tabular_file(DATA_DIR / settings["history_file"])
    if history is None:
        raise FileNotFoundError(
            f"Missing monthly history. Provide 'data/{settings['history_file']}.csv' or .xlsx "
            "with columns: month, actual_qty (optional amounts, customer counts, forecast_*)."
        )
    if "sku" in history.columns:
        history = history[history["sku"].astype(str) == str(settings["sku"])]
    return history


def _load_batches(settings: dict, today: date) -> list[InTransitBatch]:
    """
    Load pending in-transit batches. Returns an empty list if the file is missing.

    Required columns: id, arrival_date, quantity
    """
    raw = read_tabular_file(DATA_DIR / settings["batches_file"])
    return batches_from_frame(raw, today=today, sku=settings["sku"])


def _load_overrides(settings: dict) -> dict | None:
    """
    Load manual forecast overrides. Returns None if the file is missing.

    Required columns: month, override
    """
    raw = read_tabular_file(DATA_DIR / settings["overrides_file"])
    if raw is None:
        return None
    if "sku" in raw.columns:
        raw = raw[raw["sku"].astype(str) == str(settings["sku"])]
    return read_override_table(raw)


def main(config_overrides: dict | None = None, today: date | None = None):
    """Run the forecasting and replenishment example."""
    today = today or date.today()
    settings = load_settings(DATA_DIR, overrides=config_overrides, today=today)
    sku = settings["sku"]

    print("=" * 60)
    print(f"Sales Forecast & Replenishment - {sku}")
    print("=" * 60)

    store = StrategyStore(settings["strategy_dir"])
    strategy = store.load(sku)
    end_month = strategy.forecast_year_month or settings["forecast_end_month"]
    start_month = strategy.start_year_month or shift_month(current_month(today), -36)

    print("\n[1] Loading inputs from data/ ...")
    history = _load_history(settings)
    batches = _load_batches(settings, today)
    overrides = _load_overrides(settings)
    if overrides is not None:
        strategy = strategy.with_changes(forecast_overrides=overrides)
        logger.info("Applied %d manual override(s) from %s", len(overrides), settings["overrides_file"])
    print(f"    History rows: {len(history)}")
    print(f"    In-transit batches: {len(batches)} ({sum(b.is_overdue for b in batches)} overdue)")
    print(f"    Benchmark: {strategy.benchmark_type}, ratio adjustment {strategy.ratio_adjustment:+.0f}%")

    print("\n[2] Forecasting...")
    planner = DemandPlanner()
    planner.load_monthly_history(history)
    calculated = planner.run_forecast(strategy, end_month, as_of=current_month(today))
    strategy = store.replace(
        sku,
        strategy.with_changes(calculated_forecasts=calculated),
        description=(
            f"Updated forecast config: benchmark {strategy.benchmark_type}, "
            f"ratio adjustment {strategy.ratio_adjustment}%"
        ),
    )
    series = build_forecast_series(history, strategy, start_month, end_month, today=today)
    print(f"    Forecast months: {len(calculated)} ({current_month(today)} to {end_month})")

    print("\n[3] Inventory policy and simulation...")
    kpi = build_kpi_snapshot(
        settings["in_stock"],
        batches,
        settings["sales_30_days"],
        strategy.lead_time_days,
        medium_risk_turnover_days=settings["medium_risk_turnover_days"],
    )
    inventory = InventoryManager.from_strategy(
        kpi.in_stock,
        kpi.sales_30_days,
        strategy,
        in_transit=kpi.in_transit,
        medium_risk_turnover_days=settings["medium_risk_turnover_days"],
    )
    status = inventory.get_stock_status(today)
    simulation = inventory.simulation_frame(batches, start_date=today, days=settings["horizon_days"])
    series = attach_simulation(series, simulation)
    yearly = group_by_year(series)

    print(f"    Safety stock: {status['safety_stock']}")
    print(f"    Reorder point: {status['reorder_point']:.0f}")
    print(f"    Turnover days: {kpi.turnover_days if kpi.turnover_days is not None else 'n/a (no sales)'}")
    print(f"    Stockout risk: {kpi.stockout_risk}")
    if status["restock_immediately"]:
        print("    Restock: IMMEDIATELY")
    elif status["suggested_restock_date"] is not None:
        print(f"    Suggested restock date: {status['suggested_restock_date'].isoformat()}")
    print(f"    Suggested restock qty (EOQ): {status['suggested_restock_qty']:.0f}")
    print(f"    Simulated restock events: {int(simulation['is_restock'].sum()) if not simulation.empty else 0}")

    print("\n[4] Exporting...")
    export_path = ExcelGenerator(output_dir=settings["export_dir"]).create_forecast_export(series, sku, today)

    print("\n" + "=" * 60)
    print(f"[OK] Monthly rows: {len(series)}")
    print(f"[OK] Yearly rows: {len(yearly)}")
    print(f"[OK] Export: {export_path}")
    print("=" * 60)

    return {
        "strategy": strategy,
        "kpi": kpi,
        "status": status,
        "series": series,
        "yearly": yearly,
        "simulation": simulation,
        "export_path": export_path,
    }


if __name__ == "__main__":
    results = main()
