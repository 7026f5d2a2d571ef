from datetime import date, datetime

import pandas as pd
import pytest

from stock_forecast import InTransitBatch, InventoryManager, StrategyConfig, SupplierInfo, batches_from_frame
from stock_forecast.utils import month_range, normalize_slider_pair, round_half_up, shift_month


def test_defaults():
    config = StrategyConfig()
    assert config.safety_stock_months == 0.6
    assert config.replenishment_mode == "economic"
    assert config.lead_time_days == 30
    assert config.eoq == 1500
    assert config.with_changes(replenishment_mode="fast").lead_time_days == 7


@pytest.mark.parametrize(
    "changes",
    [
        {"benchmark_type": "weekly"},
        {"replenishment_mode": "overnight"},
        {"mom_range": 4},
        {"yoy_range": 5},
        {"forecast_year_month": "not-a-month"},
    ],
)
def test_invalid_values_are_rejected(changes):
    with pytest.raises(ValueError):
        StrategyConfig(**changes)


def test_with_changes_leaves_original_untouched():
    config = StrategyConfig()
    changed = config.with_changes(eoq=10)
    assert config.eoq == 1500
    assert changed.eoq == 10


def test_dict_round_trip_and_cache_key():
    config = StrategyConfig(supplier_info=SupplierInfo(name="Acme", order_unit_qty=12), ratio_adjustment=-5)
    assert StrategyConfig.from_dict(config.to_dict()) == config
    assert config.cache_key() == StrategyConfig.from_dict(config.to_dict()).cache_key()
    assert config.cache_key() != config.with_changes(eoq=1).cache_key()


def test_from_dict_clamps_safety_months_and_keeps_default_eoq():
    assert StrategyConfig.from_dict({"safety_stock_months": 40}).safety_stock_months == 12.0
    assert StrategyConfig.from_dict({"safety_stock_months": 0.1}).safety_stock_months == 0.5
    assert StrategyConfig.from_dict({}).eoq == 1500


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(0.5) == 1
    assert round_half_up(-2.5) == -2
    assert round_half_up(18.75) == 19


def test_month_helpers():
    assert shift_month("2026-01", -1) == "2025-12"
    assert month_range("2026-11", "2027-02") == ["2026-11", "2026-12", "2027-01", "2027-02"]
    assert month_range("2027-01", "2026-01") == []


def test_slider_pairs_are_clamped_and_ordered():
    assert normalize_slider_pair((80, 20), (33.0, 66.0)) == (20.0, 80.0)
    assert normalize_slider_pair((-10, 150), (33.0, 66.0)) == (0.0, 100.0)
    assert normalize_slider_pair(None, (33.0, 66.0)) == (33.0, 66.0)


def test_equal_configs_share_one_cache_key():
    from_ints = StrategyConfig(
        ratio_adjustment=-5,
        safety_stock_months=2,
        mom_time_sliders=(20, 70),
        forecast_overrides={"2026-11": 250},
        supplier_info=SupplierInfo(order_unit_qty=12),
    )
    from_floats = StrategyConfig(
        ratio_adjustment=-5.0,
        safety_stock_months=2.0,
        mom_time_sliders=(20.0, 70.0),
        forecast_overrides={"2026-11": 250.0},
        supplier_info=SupplierInfo(order_unit_qty=12.0),
    )
    assert from_ints == from_floats
    assert from_ints.cache_key() == from_floats.cache_key()


def test_month_maps_are_not_shared_between_configs():
    overrides = {"2026-11": 100}
    base = StrategyConfig(forecast_overrides=overrides)
    edited = base.with_changes(eoq=10)
    with pytest.raises(TypeError):
        edited.forecast_overrides["2026-12"] = 999
    overrides["2026-12"] = 999
    assert base.forecast_overrides == {"2026-11": 100.0}
    assert edited.forecast_overrides == {"2026-11": 100.0}
    assert type(base.to_dict()["forecast_overrides"]) is dict


def test_batch_arrival_is_a_plain_date():
    batch = InTransitBatch(id="B1", arrival_date=datetime(2026, 10, 21, 15, 30), quantity=40)
    assert batch.arrival_date == date(2026, 10, 21)
    assert type(batch.arrival_date) is date

    manager = InventoryManager(current_stock=10, sales_30_days=0)
    points = manager.simulate([batch], start_date=date(2026, 10, 19), days=5)
    assert [p.stock for p in points] == [10, 10, 50, 50, 50]


def test_batches_from_frame():
    raw = pd.DataFrame(
        {
            "id": ["B1", "B2", "B3", "B4"],
            "sku": ["SKU-1", "SKU-1", "SKU-1", "SKU-2"],
            "arrival_date": ["2026-10-25", "not a date", "2026-10-10", "2026-10-25"],
            "quantity": [100, 50, "n/a", 70],
        }
    )
    batches = batches_from_frame(raw, today=date(2026, 10, 19), sku="SKU-1")
    assert [b.id for b in batches] == ["B1", "B3"]
    assert batches[1].quantity == 0
    assert batches[1].is_overdue is True
    assert batches_from_frame(None) == []


def test_batches_from_frame_requires_columns():
    with pytest.raises(ValueError, match="arrival_date"):
        batches_from_frame(pd.DataFrame({"id": ["B1"], "quantity": [5]}))
