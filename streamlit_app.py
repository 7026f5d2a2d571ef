"""Streamlit UI for tuning a SKU's forecast and replenishment strategy."""

from datetime import date
from pathlib import Path

import pandas as pd
import streamlit as st

from stock_forecast import (
    DemandPlanner,
    ExcelGenerator,
    InventoryManager,
    PersistenceError,
    StrategyConfig,
    StrategyStore,
    attach_simulation,
    batches_from_frame,
    build_forecast_series,
    build_kpi_snapshot,
    build_override_table,
    group_by_year,
    read_override_table,
)
from stock_forecast.config import load_settings
from stock_forecast.utils import current_month, month_range, shift_month

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _read_upload(uploaded_file) -> pd.DataFrame | None:
    if uploaded_file is None:
        return None
    if Path(uploaded_file.name).suffix.lower() == ".xlsx":
        return pd.read_excel(uploaded_file)
    return pd.read_csv(uploaded_file)


def _month_select(label: str, options: list[str], value: str) -> str:
    if value not in options:
        options = sorted({*options, value})
    return st.selectbox(label, options, index=options.index(value))


def _window_sidebar(strategy, this_month: str, default_end: str):
    """Start and forecast-end month selects; the end month never precedes the start."""
    st.header("Window")
    options = month_range(shift_month(this_month, -60), shift_month(this_month, 36))
    start = _month_select("Start month", options, strategy.start_year_month or shift_month(this_month, -36))
    end_options = [month for month in options if month >= max(start, this_month)]
    end = _month_select("Forecast through", end_options, strategy.forecast_year_month or default_end)
    return strategy.with_changes(start_year_month=start, forecast_year_month=end)


def _strategy_sidebar(strategy):
    """Collect strategy widgets into a new config; nothing is saved here."""
    st.header("Forecast Benchmark")
    benchmark = st.radio("Benchmark", ["mom", "yoy"], index=["mom", "yoy"].index(strategy.benchmark_type))
    mom_range = st.select_slider("MoM range (months)", options=[3, 6, 12], value=strategy.mom_range)
    mom_time = st.slider("MoM time split %", 0, 100, tuple(int(v) for v in strategy.mom_time_sliders))
    mom_weight = st.slider("MoM weight split %", 0, 100, tuple(int(v) for v in strategy.mom_weight_sliders))
    yoy_range = st.select_slider("YoY range (years)", options=[1, 2, 3], value=strategy.yoy_range)
    yoy_weight = st.slider("YoY weight split %", 0, 100, tuple(int(v) for v in strategy.yoy_weight_sliders))
    ratio = st.slider("Ratio adjustment %", -100, 200, int(strategy.ratio_adjustment))

    st.header("Stocking")
    safety_months = st.slider("Safety stock (months)", 0.5, 12.0, float(strategy.safety_stock_months), step=0.5)
    mode = st.radio(
        "Replenishment mode",
        ["fast", "economic"],
        index=["fast", "economic"].index(strategy.replenishment_mode),
        format_func=lambda m: "Fast (7 days)" if m == "fast" else "Economic (30 days)",
    )
    eoq = st.number_input("EOQ", min_value=0, value=int(strategy.eoq), step=50)

    return strategy.with_changes(
        benchmark_type=benchmark,
        mom_range=mom_range,
        mom_time_sliders=mom_time,
        mom_weight_sliders=mom_weight,
        yoy_range=yoy_range,
        yoy_weight_sliders=yoy_weight,
        ratio_adjustment=float(ratio),
        safety_stock_months=safety_months,
        replenishment_mode=mode,
        eoq=int(eoq),
    )




def _override_editor(strategy, this_month: str, end_month: str):
    """Per-month manual overrides for the forecast months; blank or 0 clears a month."""
    st.subheader("Manual Overrides")
    table = build_override_table(strategy, month_range(this_month, end_month))
    edited = st.data_editor(
        table,
        key="forecast_overrides",
        disabled=["month", "calculated"],
        hide_index=True,
        use_container_width=True,
        column_config={
            "month": st.column_config.TextColumn("Month"),
            "calculated": st.column_config.NumberColumn("Calculated", format="%d"),
            "override": st.column_config.NumberColumn("Override", min_value=0, step=1, format="%d"),
        },
    )
    return strategy.with_changes(forecast_overrides=read_override_table(edited))


def main():
    st.set_page_config(page_title="Sales Forecast & Replenishment", layout="wide")
    st.title("Sales Forecast & Replenishment")

    today = date.today()
    this_month = current_month(today)
    settings = load_settings("data", today=today)

    with st.sidebar:
        sku = st.text_input("SKU", value=settings["sku"])
        store = StrategyStore(settings["strategy_dir"])
        try:
            saved = store.load(sku)
        except PersistenceError as exc:
            st.error(f"Stored strategy could not be read, showing defaults: {exc}")
            saved = StrategyConfig()
        st.header("Uploads")
        history_file = st.file_uploader("Monthly History", type=["csv", "xlsx"])
        batches_file = st.file_uploader("In-Transit Batches", type=["csv", "xlsx"])
        st.header("Current Stock")
        in_stock = st.number_input("In stock", min_value=0.0, value=float(settings["in_stock"]))
        sales_30_days = st.number_input("Sales last 30 days", min_value=0.0, value=float(settings["sales_30_days"]))
        view = st.radio("View", ["month", "year"], horizontal=True)
        strategy = _window_sidebar(saved, this_month, settings["forecast_end_month"])
        strategy = _strategy_sidebar(strategy)

    history = _read_upload(history_file)
    if history is None:
        st.info("Upload a monthly history file (columns: month, actual_qty) to start.")
        return
    try:
        batches = batches_from_frame(_read_upload(batches_file), today=today, sku=sku)
    except ValueError as exc:
        st.error(str(exc))
        return

    start_month = strategy.start_year_month
    end_month = strategy.forecast_year_month

    planner = DemandPlanner()
    planner.load_monthly_history(history)
    strategy = strategy.with_changes(calculated_forecasts=planner.run_forecast(strategy, end_month, as_of=this_month))
    strategy = _override_editor(strategy, this_month, end_month)

    kpi = build_kpi_snapshot(
        in_stock,
        batches,
        sales_30_days,
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
    simulation = inventory.simulation_frame(batches, start_date=today, days=int(settings["horizon_days"]))
    series = attach_simulation(build_forecast_series(history, strategy, start_month, end_month, today=today), simulation)
    display = group_by_year(series) if view == "year" else series

    c1, c2, c3, c4, c5 = st.columns(5)
    c1.metric("In Stock", f"{kpi.in_stock:,.0f}")
    c2.metric("In Transit", f"{kpi.in_transit:,.0f}")
    c3.metric("Sales 30 Days", f"{kpi.sales_30_days:,.0f}")
    c4.metric("Turnover Days", "n/a" if kpi.turnover_days is None else kpi.turnover_days)
    c5.metric("Stockout Risk", kpi.stockout_risk)

    st.subheader("Replenishment Advice")
    a1, a2, a3, a4 = st.columns(4)
    a1.metric("Safety Stock", f"{status['safety_stock']:,}")
    a2.metric("Reorder Point", f"{status['reorder_point']:,.0f}")
    a3.metric("EOQ", f"{status['suggested_restock_qty']:,.0f}")
    if status["restock_immediately"]:
        a4.error("Restock immediately")
    elif status["suggested_restock_date"] is not None:
        a4.metric("Suggested Restock Date", status["suggested_restock_date"].isoformat())

    b1, b2 = st.columns(2)
    if b1.button("Save Strategy"):
        try:
            store.replace(sku, strategy)
            st.success("Strategy saved.")
        except PersistenceError as exc:
            st.error(f"Save failed: {exc}")
    if b2.button("Create Purchase Order"):
        try:
            order = store.create_purchase_order(sku, settings["product_name"], strategy, order_date=today)
            st.success(f"Draft purchase order created for {order['quantity']:,.0f} units.")
        except PersistenceError as exc:
            st.error(f"Purchase order failed: {exc}")

    st.subheader("Forecast Series")
    st.dataframe(display, use_container_width=True)

    st.subheader("Stock Simulation")
    st.dataframe(simulation[simulation["is_restock"] | (simulation["inbound"] > 0)], use_container_width=True)

    export_path = ExcelGenerator(output_dir=settings["export_dir"]).create_forecast_export(display, sku, today)
    st.download_button(
        label="Download Forecast Export",
        data=Path(export_path).read_bytes(),
        file_name=Path(export_path).name,
        mime=XLSX_MIME,
    )

    st.subheader("Operation Log")
    try:
        st.dataframe(pd.DataFrame(store.logs(sku)), use_container_width=True)
    except PersistenceError as exc:
        st.error(f"Operation log unavailable: {exc}")


if __name__ == "__main__":
    main()
