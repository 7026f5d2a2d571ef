"""Demand forecasting module: monthly baseline forecasts from sales history."""

import logging
from datetime import date

import numpy as np
import pandas as pd

from .models import HISTORY_COLUMNS, StrategyConfig
from .utils import current_month, month_key, month_range, normalize_slider_pair, round_half_up, to_period

logger = logging.getLogger(__name__)

NUMERIC_COLUMNS = [col for col in HISTORY_COLUMNS if col not in ("month", "type")]


def three_way_weights(breakpoints: tuple[float, float]) -> np.ndarray:
    """Split 100% at two increasing breakpoints into three weights (w1, w2 - w1, 100 - w2) / 100."""
    first, second = breakpoints
    return np.array([first, second - first, 100.0 - second]) / 100.0


class DemandPlanner:
    """Computes monthly baseline forecasts using a moving-average (MoM) or same-month (YoY) benchmark."""

    def __init__(self):
        """Initialize the demand planner."""
        self.historical_data = None
        self._actuals = {}

    def load_monthly_history(self, data: pd.DataFrame) -> pd.DataFrame:
        """
        Load monthly sales history for one SKU.

        Expected columns: month (YYYY-MM), actual_qty. Optional: type,
        actual_amount, actual_customer_count, forecast_qty, forecast_amount,
        forecast_customer_count. Unreadable numbers count as 0.
        """
        if "month" not in data.columns or "actual_qty" not in data.columns:
            raise ValueError("Data must contain 'month' and 'actual_qty' columns")

        prepared = data.copy()
        for col in NUMERIC_COLUMNS:
            if col not in prepared.columns:
                prepared[col] = 0.0
                continue
            raw = prepared[col]
            prepared[col] = pd.to_numeric(raw, errors="coerce")
            bad = prepared[col].isna() & raw.notna()
            if bad.any():
                logger.warning("Coerced %d non-numeric value(s) in '%s' to 0", int(bad.sum()), col)
            prepared[col] = prepared[col].fillna(0.0).astype(float)

        if "type" not in prepared.columns:
            prepared["type"] = "past"
        prepared["type"] = prepared["type"].fillna("past").astype(str)

        periods = pd.to_datetime(prepared["month"].astype(str), format="%Y-%m", errors="coerce")
        invalid = periods.isna()
        if invalid.any():
            logger.warning("Dropped %d row(s) with an unreadable month key", int(invalid.sum()))
        prepared = prepared[~invalid].copy()
        prepared["month"] = periods[~invalid].dt.strftime("%Y-%m")

        prepared = prepared.drop_duplicates(subset=["month"], keep="last").sort_values("month")
        self.historical_data = prepared[HISTORY_COLUMNS].reset_index(drop=True)
        self._actuals = dict(zip(self.historical_data["month"], self.historical_data["actual_qty"]))
        return self.historical_data

    def history_value(self, month: str) -> float:
        """Actual quantity sold in `month`, 0 when the month is not in the history."""
        return float(self._actuals.get(month, 0.0))

    def forecast_mom(self, config: StrategyConfig, as_of: str) -> float:
        """
        Segmented weighted moving average over the `mom_range` months before `as_of`.

        Months are ordered most recent first and cut into three contiguous
        segments at the two time breakpoints; empty segments drop out of the
        weight normalisation.
        """
        span = config.mom_range
        time_split = normalize_slider_pair(config.mom_time_sliders, (33.0, 66.0))
        weights = three_way_weights(normalize_slider_pair(config.mom_weight_sliders, (60.0, 90.0)))

        split1 = round_half_up(span * time_split[0] / 100)
        split2 = round_half_up(span * time_split[1] / 100)
        anchor = to_period(as_of)
        history = [self.history_value(month_key(anchor - i)) for i in range(1, span + 1)]

        bounds = [(0, split1), (split1, split2), (split2, span)]
        value = 0.0
        total_weight = 0.0
        for (start, end), weight in zip(bounds, weights):
            segment = history[start:end]
            if not segment:
                continue
            value += float(np.mean(segment)) * weight
            total_weight += weight

        return value / total_weight if total_weight > 0 else 0.0

    def forecast_yoy(self, target_month: str, config: StrategyConfig) -> float:
        """Blend of the same calendar month over the last 1-3 years."""
        target = to_period(target_month)
        same_month = [self.history_value(month_key(target - 12 * years)) for years in (1, 2, 3)]

        if config.yoy_range == 1:
            return same_month[0]

        breakpoints = normalize_slider_pair(config.yoy_weight_sliders, (33.0, 66.0))
        if config.yoy_range == 2:
            w1 = breakpoints[0] / 100
            return same_month[0] * w1 + same_month[1] * (1 - w1)

        return float(np.dot(same_month, three_way_weights(breakpoints)))

    def compute_baseline(self, target_month: str, config: StrategyConfig, as_of: str | None = None) -> int:
        """Baseline quantity for `target_month`, a non-negative integer."""
        if self.historical_data is None:
            raise ValueError("No historical data loaded")

        to_period(target_month)
        if config.benchmark_type == "yoy":
            prediction = self.forecast_yoy(target_month, config)
        else:
            prediction = self.forecast_mom(config, as_of or current_month())

        baseline = max(0, round_half_up(prediction))
        logger.debug("Baseline %s (%s): %d", target_month, config.benchmark_type, baseline)
        return baseline

    def run_forecast(self, config: StrategyConfig, end_month: str, as_of: str | None = None) -> dict[str, int]:
        """
        Compute baselines for every month from `as_of` (default: this month) through `end_month`.

        The result is the month -> quantity map stored as the strategy's
        calculated forecasts.
        """
        start = as_of or current_month()
        return {month: self.compute_baseline(month, config, as_of=start) for month in month_range(start, end_month)}


def compute_baseline(
    target_month: str,
    config: StrategyConfig,
    historical_series: pd.DataFrame,
    today: date | None = None,
) -> int:
    """Stateless form of `DemandPlanner.compute_baseline` anchored on today's month."""
    planner = DemandPlanner()
    planner.load_monthly_history(historical_series)
    return planner.compute_baseline(target_month, config, as_of=current_month(today))
