"""Month-key and numeric helpers shared by the forecasting modules."""

import logging
import math
from datetime import date

import pandas as pd

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from negative infinity (2.5 -> 3, -2.5 -> -2)."""
    return int(math.floor(float(value) + 0.5))


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    if not denominator:
        return default
    return numerator / denominator


def to_period(month) -> pd.Period:
    """Parse a 'YYYY-MM' key (or anything pandas understands) into a monthly Period."""
    try:
        return pd.Period(month, freq="M")
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid month key '{month}'. Expected format YYYY-MM.") from exc


def month_key(period: pd.Period) -> str:
    return period.strftime("%Y-%m")


def shift_month(month: str, months: int) -> str:
    return month_key(to_period(month) + months)


def current_month(today: date | None = None) -> str:
    today = today or date.today()
    return f"{today.year}-{today.month:02d}"


def month_range(start_month: str, end_month: str) -> list[str]:
    """Inclusive list of month keys from start to end; empty when end precedes start."""
    start = to_period(start_month)
    end = to_period(end_month)
    if end < start:
        return []
    return [month_key(p) for p in pd.period_range(start, end, freq="M")]


def normalize_slider_pair(values, default: tuple[float, float]) -> tuple[float, float]:
    """
    Clamp a two-thumb slider pair to [0, 100] and order it non-decreasing.

    Missing or unreadable pairs fall back to `default`.
    """
    try:
        first, second = (float(v) for v in list(values)[:2])
    except (TypeError, ValueError):
        logger.warning("Unreadable slider pair %r, using %r", values, default)
        return default

    clamped = (min(100.0, max(0.0, first)), min(100.0, max(0.0, second)))
    ordered = tuple(sorted(clamped))
    if ordered != (first, second):
        logger.warning("Slider pair %r normalised to %r", values, ordered)
    return ordered
