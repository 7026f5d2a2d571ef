from datetime import date

import pandas as pd

from stock_forecast import (
    InventoryManager,
    MonthlyRecord,
    StrategyConfig,
    apply_adjustments,
    attach_simulation,
    build_forecast_series,
    build_override_table,
    read_override_table,
    resolve_base_forecast,
)
from stock_forecast.models import build_monthly_frame


def _record(**fields) -> dict:
    record = {
        "month": "2026-09",
        "type": "future",
        "actual_qty": 0.0,
        "actual_amount": 0.0,
        "actual_customer_count": 0.0,
        "forecast_qty": 100.0,
        "forecast_amount": 0.0,
        "forecast_customer_count": 0.0,
    }
    record.update(fields)
    return record


def test_override_then_calculated_then_baseline():
    overrides = {"2026-09": 300}
    calculated = {"2026-09": 200}
    assert resolve_base_forecast("2026-09", 100, overrides, calculated) == 300
    assert resolve_base_forecast("2026-09", 100, {}, calculated) == 200
    assert resolve_base_forecast("2026-09", 100, {}, {}) == 100


def test_non_positive_stored_values_are_ignored():
    assert resolve_base_forecast("2026-09", 100, {"2026-09": 0}, {"2026-09": -5}) == 100


def test_zero_ratio_is_a_no_op():
    adjusted = apply_adjustments(_record(), StrategyConfig(ratio_adjustment=0))
    assert adjusted["forecast_qty"] == 100


def test_ratio_scales_future_months():
    adjusted = apply_adjustments(_record(), StrategyConfig(ratio_adjustment=10))
    assert adjusted["forecast_qty"] == 110


def test_ratio_skips_past_months_without_stored_forecast():
    record = _record(type="past", actual_qty=50)
    adjusted = apply_adjustments(record, StrategyConfig(ratio_adjustment=10))
    assert adjusted["forecast_qty"] == 100


def test_ratio_applies_to_past_month_with_override():
    record = _record(type="past")
    config = StrategyConfig(ratio_adjustment=-50, forecast_overrides={"2026-09": 80})
    assert apply_adjustments(record, config)["forecast_qty"] == 40


def test_forecast_never_below_actual():
    adjusted = apply_adjustments(_record(type="past", actual_qty=150), StrategyConfig())
    assert adjusted["forecast_qty"] == 150
    assert adjusted["forecast_remainder"] == 0


def test_remainder_stacks_on_actual():
    adjusted = apply_adjustments(_record(type="past", actual_qty=40), StrategyConfig())
    assert adjusted["forecast_remainder"] == 60
    assert adjusted["forecast_qty"] == 100


def test_untouched_baseline_keeps_backend_amounts():
    record = _record(forecast_amount=999, forecast_customer_count=7)
    adjusted = apply_adjustments(record, StrategyConfig(), avg_price=1.0, avg_customer_ratio=1.0)
    assert adjusted["forecast_amount"] == 999
    assert adjusted["forecast_customer_count"] == 7


def test_overridden_month_reprices_from_own_actuals():
    record = _record(actual_qty=50, actual_amount=500, actual_customer_count=5)
    config = StrategyConfig(forecast_overrides={"2026-09": 200})
    adjusted = apply_adjustments(record, config, avg_price=3.0, avg_customer_ratio=1.0)
    assert adjusted["forecast_qty"] == 200
    assert adjusted["forecast_amount"] == 2000
    assert adjusted["forecast_customer_count"] == 20


def test_overridden_month_falls_back_to_series_average():
    config = StrategyConfig(calculated_forecasts={"2026-09": 100.0}, ratio_adjustment=20)
    adjusted = apply_adjustments(_record(forecast_qty=0), config, avg_price=3.0, avg_customer_ratio=0.5)
    assert adjusted["forecast_qty"] == 120
    assert adjusted["forecast_amount"] == 360
    assert adjusted["forecast_customer_count"] == 60


def test_clearing_override_falls_back_to_calculated_then_baseline():
    record = _record(forecast_qty=100)
    config = StrategyConfig(forecast_overrides={"2026-09": 300}, calculated_forecasts={"2026-09": 200})
    assert apply_adjustments(record, config)["forecast_qty"] == 300

    config = config.with_changes(forecast_overrides={})
    assert apply_adjustments(record, config)["forecast_qty"] == 200

    config = config.with_changes(calculated_forecasts={})
    assert apply_adjustments(record, config)["forecast_qty"] == 100


def _history() -> pd.DataFrame:
    return build_monthly_frame(
        [
            MonthlyRecord("2026-05", actual_qty=100, actual_amount=1000, actual_customer_count=10, forecast_qty=90),
            MonthlyRecord("2026-06", actual_qty=120, actual_amount=1200, actual_customer_count=12, forecast_qty=150),
            MonthlyRecord("2026-07", actual_qty=60, actual_amount=600, actual_customer_count=6, forecast_qty=130),
            MonthlyRecord("2026-08", forecast_qty=110, type="future"),
        ]
    )


def test_series_fills_gaps_as_future_months():
    series = build_forecast_series(
        _history(), StrategyConfig(), "2026-05", "2026-10", today=date(2026, 7, 10)
    )
    assert series["month"].tolist() == ["2026-05", "2026-06", "2026-07", "2026-08", "2026-09", "2026-10"]
    gap = series[series["month"] == "2026-10"].iloc[0]
    assert gap["type"] == "future"
    assert gap["forecast_qty"] == 0


def test_series_forecast_never_undercuts_actuals():
    config = StrategyConfig(ratio_adjustment=-40, calculated_forecasts={"2026-07": 50, "2026-09": 80})
    series = build_forecast_series(_history(), config, "2026-05", "2026-10", today=date(2026, 7, 10))
    assert (series["forecast_qty"] >= series["actual_qty"]).all()


def test_series_blanks_realised_figures_after_current_month():
    series = build_forecast_series(_history(), StrategyConfig(), "2026-05", "2026-09", today=date(2026, 7, 10))
    by_month = series.set_index("month")
    assert by_month.loc["2026-07", "actual_amount"] == 600
    assert pd.isna(by_month.loc["2026-08", "actual_amount"])
    assert pd.isna(by_month.loc["2026-09", "actual_customer_count"])


def test_series_window_defaults_to_history_months():
    series = build_forecast_series(_history(), StrategyConfig(), today=date(2026, 7, 10))
    assert series["month"].tolist() == ["2026-05", "2026-06", "2026-07", "2026-08"]


def test_attach_simulation_uses_month_end_stock():
    series = build_forecast_series(_history(), StrategyConfig(), "2026-07", "2026-09", today=date(2026, 7, 1))
    manager = InventoryManager(current_stock=400, sales_30_days=300)
    simulation = manager.simulation_frame(start_date=date(2026, 7, 1), days=31)
    combined = attach_simulation(series, simulation).set_index("month")
    assert combined.loc["2026-07", "sim_stock"] == 90
    assert combined.loc["2026-08", "sim_stock"] == 0
    assert {"inbound", "sim_rop", "sim_safety"} <= set(combined.columns)


def test_attach_simulation_with_empty_run():
    series = build_forecast_series(_history(), StrategyConfig(), today=date(2026, 7, 10))
    combined = attach_simulation(series, pd.DataFrame(columns=["date", "stock", "rop", "safety_stock", "inbound"]))
    assert (combined["sim_stock"] == 0).all()


def test_override_table_shows_calculated_and_existing_overrides():
    config = StrategyConfig(calculated_forecasts={"2026-11": 80, "2026-12": 90}, forecast_overrides={"2026-12": 150})
    table = build_override_table(config, ["2026-11", "2026-12", "2027-01"])
    assert table["month"].tolist() == ["2026-11", "2026-12", "2027-01"]
    assert table["calculated"].tolist() == [80, 90, 0]
    assert pd.isna(table.loc[0, "override"])
    assert table.loc[1, "override"] == 150


def test_edited_override_table_becomes_overrides():
    edited = pd.DataFrame(
        {
            "month": ["2026-11", "2026-12", "2027-01", "2027-02", "bad"],
            "calculated": [80, 90, 0, 0, 0],
            "override": [None, 0, 120, "200", 50],
        }
    )
    assert read_override_table(edited) == {"2027-01": 120.0, "2027-02": 200.0}


def test_overrides_from_table_take_precedence_in_series():
    config = StrategyConfig(calculated_forecasts={"2026-09": 80})
    table = build_override_table(config, ["2026-09"])
    table.loc[0, "override"] = 300
    config = config.with_changes(forecast_overrides=read_override_table(table))
    series = build_forecast_series(_history(), config, "2026-09", "2026-09", today=date(2026, 7, 10))
    assert series["forecast_qty"].tolist() == [300]
